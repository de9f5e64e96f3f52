"""
Activity log schemas.

``ActivityLogFilter`` is the only way filters reach the activity service:
dates are parsed and the range is checked here, once, at the API boundary.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.database.models.activity_log import ActivityAction


def _parse_bound(value: Any, end_of_day: bool) -> Any:
    """Turn a bare date into the first or last instant of that day."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if len(text) == 10:
            try:
                value = date.fromisoformat(text)
            except ValueError:
                return text
        else:
            return text
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    return value


class ActivityLogFilter(BaseModel):
    """
    Filters for the activity log listing.

    Dates accept ISO dates or datetimes. A bare ``to_date`` covers the whole
    day; naive datetimes are taken as UTC.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    user_id: Optional[UUID] = Field(None, description="Acting user")
    action: Optional[ActivityAction] = Field(None, description="Recorded action")
    entity_id: Optional[str] = Field(None, max_length=255)
    entity_type: Optional[str] = Field(None, max_length=64)
    from_date: Optional[datetime] = Field(None, description="Inclusive lower bound")
    to_date: Optional[datetime] = Field(None, description="Inclusive upper bound")

    @field_validator("from_date", mode="before")
    @classmethod
    def parse_from_date(cls, v: Any) -> Any:
        return _parse_bound(v, end_of_day=False)

    @field_validator("to_date", mode="before")
    @classmethod
    def parse_to_date(cls, v: Any) -> Any:
        return _parse_bound(v, end_of_day=True)

    @field_validator("from_date", "to_date")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("entity_id", "entity_type", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_range(self) -> "ActivityLogFilter":
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("from_date must not be later than to_date")
        return self


class ActivityLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    user_email: str
    action: ActivityAction
    details: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    timestamp: datetime


class ActivityLogListResponse(BaseModel):
    logs: list[ActivityLogResponse]
    total: int
    page: int
    limit: int
    pages: int

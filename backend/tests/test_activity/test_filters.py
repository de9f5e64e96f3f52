"""
Tests for activity log filter parsing.
"""

from datetime import datetime, time, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.database.models import ActivityAction
from src.schemas.activity_logs import ActivityLogFilter


class TestActivityLogFilter:
    def test_bare_dates_cover_whole_days(self):
        filters = ActivityLogFilter(from_date="2026-03-01", to_date="2026-03-02")

        assert filters.from_date == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert filters.to_date == datetime.combine(
            datetime(2026, 3, 2).date(), time.max, tzinfo=timezone.utc
        )

    def test_same_day_range_is_valid(self):
        filters = ActivityLogFilter(from_date="2026-03-01", to_date="2026-03-01")

        assert filters.from_date < filters.to_date

    def test_naive_datetime_taken_as_utc(self):
        filters = ActivityLogFilter(from_date="2026-03-01T08:30:00")

        assert filters.from_date == datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

    def test_offset_datetime_normalized_to_utc(self):
        filters = ActivityLogFilter(to_date="2026-03-01T08:00:00+08:00")

        assert filters.to_date == datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)
        assert filters.to_date.utcoffset() == timedelta(0)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError, match="from_date must not be later than to_date"):
            ActivityLogFilter(from_date="2026-03-02", to_date="2026-03-01")

    def test_unparseable_date_rejected(self):
        with pytest.raises(ValidationError):
            ActivityLogFilter(from_date="yesterday")

    def test_blank_values_ignored(self):
        filters = ActivityLogFilter(from_date="", entity_type="  ")

        assert filters.from_date is None
        assert filters.entity_type is None

    def test_action_parsed(self):
        assert ActivityLogFilter(action="login").action == ActivityAction.LOGIN

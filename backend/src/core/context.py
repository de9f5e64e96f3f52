"""
Request-scoped caller context.

A ``RequestContext`` is built once per request by the API layer from the
bearer token and handed explicitly to every service operation that needs to
know who is acting. Services never look up the caller on their own.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from src.database.models.user import UserRole


class PermissionDeniedError(Exception):
    """Raised when the caller's role does not allow an operation."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.context = context


@dataclass(frozen=True)
class RequestContext:
    """
    Identity and client details of the authenticated caller.

    Attributes:
        user_id: Acting user's id
        email: Acting user's e-mail
        role: Acting user's role at token issue time
        ip_address: Client address, honouring proxy headers
        user_agent: Client user agent string
    """

    user_id: uuid.UUID
    email: str
    role: UserRole
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles

    def require_role(self, *roles: UserRole) -> None:
        """
        Ensure the caller holds one of ``roles``.

        Raises:
            PermissionDeniedError: If the caller's role is not listed
        """
        if self.role not in roles:
            raise PermissionDeniedError(
                "Insufficient permissions",
                user_id=str(self.user_id),
                role=self.role.value,
                required_roles=[role.value for role in roles],
            )

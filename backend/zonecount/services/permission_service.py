# Overview: Capability checks and security event logging.

"""
Permission Checking and Security Event Logging

Role-based access control with a fixed role table (see permissions.py).
Every service operation calls authorize() with the acting Principal, so
the same rule holds whether the call came from a route, the CLI or a test.

DESIGN PRINCIPLES:
- Fail closed: deny by default, a capability must be granted by the role
- Log denials only: granted checks are not logged
- Tenant isolation: a resource of another company is reported as not found
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import DEFAULT_ROLE_PERMISSIONS
from ..records import UserRecord, ROLE_ADMIN
from zonecount.time_utils import utcnow
from .tenant_service import TenantAccessError


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


@dataclass(frozen=True)
class Principal:
    """The authenticated actor: who is calling and on behalf of which company."""
    user_id: int
    company_id: int
    role: str
    name: str = ""

    @classmethod
    def from_user(cls, user: UserRecord) -> "Principal":
        return cls(user_id=user.id, company_id=user.company_id, role=user.role, name=user.name)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_role_permissions(role: str) -> set[str]:
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, set()))


def has_permission(principal: Principal | None, permission_code: str) -> bool:
    if principal is None:
        return False
    return permission_code in get_role_permissions(principal.role)


def authorize(principal: Principal | None, permission_code: str, resource=None) -> None:
    """
    Single access check used by every service.

    - no principal, or the role lacks the capability -> PermissionDeniedError
    - resource given and its company_id differs -> TenantAccessError
    """
    if principal is None:
        raise PermissionDeniedError("Authentication required")
    if not has_permission(principal, permission_code):
        raise PermissionDeniedError(f"Permission denied: {permission_code}")
    if resource is not None and getattr(resource, "company_id", None) != principal.company_id:
        raise TenantAccessError("Not found")


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    company_id: int | None = None,
) -> SecurityEvent:
    """
    Append one row to the security audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - CROSS_TENANT_ACCESS_DENIED
    - USER_CREATED
    """
    event = SecurityEvent(
        user_id=user_id,
        company_id=company_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event

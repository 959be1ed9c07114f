# Overview: Plain domain records exchanged between services and repositories.

"""
Domain records.

WHY: Services must run unchanged against the SQLAlchemy repository and the
in-memory repository used by tests. Both hand out these frozen dataclasses
instead of ORM instances, so no service ever depends on a live session.

Records are immutable; repositories return a fresh record after each change.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from zonecount.time_utils import to_utc_z


ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)


@dataclass(frozen=True)
class CompanyRecord:
    id: int | None
    name: str
    code: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


@dataclass(frozen=True)
class UserRecord:
    id: int | None
    company_id: int
    name: str
    email: str
    role: str
    password_hash: str
    created_at: datetime | None = None
    last_login_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        # password_hash never leaves the service layer
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }


@dataclass(frozen=True)
class ZoneRecord:
    id: int | None
    company_id: int
    name: str
    description: str
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


@dataclass(frozen=True)
class ProductRecord:
    id: int | None
    company_id: int
    code: str
    sku: str
    description: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "sku": self.sku,
            "description": self.description,
        }


@dataclass(frozen=True)
class ScanRecord:
    id: int | None
    company_id: int
    code: str
    sku: str
    description: str
    zone_id: int
    zone_name: str
    user_id: int
    count_number: int
    scanned_at: datetime
    is_serial: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "code": self.code,
            "sku": self.sku,
            "description": self.description,
            "zone_id": self.zone_id,
            "zone_name": self.zone_name,
            "user_id": self.user_id,
            "count_number": self.count_number,
            "scanned_at": to_utc_z(self.scanned_at),
            "is_serial": self.is_serial,
        }

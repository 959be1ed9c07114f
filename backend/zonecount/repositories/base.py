# Overview: Storage interface shared by the SQLAlchemy and in-memory repositories.

"""
Inventory repository interface.

WHY: Business logic (batch submission, reports, zone builder) binds to this
interface instead of a global collection or a concrete session, so the same
services run against SQLAlchemy in production and against an in-memory
fake in tests.

TENANT INVARIANT: every read and write takes company_id. There is no method
that lists rows across companies. The single exception is
find_users_by_email(), which only authentication uses.

TRANSACTIONS: mutations must run inside `with repo.transaction():`.
The block commits on success and discards every change on error.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Iterable, Mapping

from ..records import CompanyRecord, UserRecord, ZoneRecord, ProductRecord, ScanRecord


USER_MUTABLE_FIELDS = {"name", "email", "role", "password_hash", "last_login_at"}
ZONE_MUTABLE_FIELDS = {"name", "description"}


class InventoryRepository(ABC):

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """All-or-nothing unit of work."""

    # -- companies --

    @abstractmethod
    def add_company(self, company: CompanyRecord) -> CompanyRecord: ...

    @abstractmethod
    def get_company(self, company_id: int) -> CompanyRecord | None: ...

    @abstractmethod
    def list_companies(self) -> list[CompanyRecord]: ...

    # -- users --

    @abstractmethod
    def list_users(self, company_id: int) -> list[UserRecord]: ...

    @abstractmethod
    def get_user(self, company_id: int, user_id: int) -> UserRecord | None: ...

    @abstractmethod
    def get_user_by_email(self, company_id: int, email: str) -> UserRecord | None: ...

    @abstractmethod
    def find_users_by_email(self, email: str) -> list[UserRecord]:
        """Cross-company lookup used by login only."""

    @abstractmethod
    def add_user(self, user: UserRecord) -> UserRecord: ...

    @abstractmethod
    def update_user(self, company_id: int, user_id: int, changes: Mapping) -> UserRecord | None: ...

    @abstractmethod
    def delete_user(self, company_id: int, user_id: int) -> bool: ...

    # -- zones --

    @abstractmethod
    def list_zones(self, company_id: int) -> list[ZoneRecord]: ...

    @abstractmethod
    def get_zone(self, company_id: int, zone_id: int) -> ZoneRecord | None: ...

    @abstractmethod
    def get_zone_by_name(self, company_id: int, name: str) -> ZoneRecord | None: ...

    @abstractmethod
    def add_zones(self, zones: Iterable[ZoneRecord]) -> list[ZoneRecord]: ...

    @abstractmethod
    def update_zone(self, company_id: int, zone_id: int, changes: Mapping) -> ZoneRecord | None: ...

    @abstractmethod
    def delete_zone(self, company_id: int, zone_id: int) -> bool: ...

    # -- products --

    @abstractmethod
    def list_products(self, company_id: int) -> list[ProductRecord]: ...

    @abstractmethod
    def get_products_by_codes(self, company_id: int, codes: Iterable[str]) -> dict[str, ProductRecord]: ...

    @abstractmethod
    def upsert_products(self, company_id: int, rows: Iterable[Mapping]) -> tuple[int, int]:
        """Insert or update by code. Returns (created, updated)."""

    @abstractmethod
    def delete_all_products(self, company_id: int) -> int: ...

    # -- scans --

    @abstractmethod
    def list_scans(self, company_id: int) -> list[ScanRecord]:
        """Scans in insertion order (oldest first)."""

    @abstractmethod
    def count_scans(self, company_id: int) -> int: ...

    @abstractmethod
    def add_scans(self, scans: Iterable[ScanRecord]) -> list[ScanRecord]: ...

    @abstractmethod
    def get_scan(self, company_id: int, scan_id: int) -> ScanRecord | None: ...

    @abstractmethod
    def delete_scan(self, company_id: int, scan_id: int) -> bool: ...

    @abstractmethod
    def delete_scans_by_code(self, company_id: int, code: str) -> int: ...

    @abstractmethod
    def delete_all_scans(self, company_id: int) -> int: ...

    def get_product(self, company_id: int, code: str) -> ProductRecord | None:
        return self.get_products_by_codes(company_id, [code]).get(code)

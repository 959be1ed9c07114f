# Overview: In-memory implementation of the inventory repository, used by service tests.

from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterable, Mapping

from ..records import CompanyRecord, UserRecord, ZoneRecord, ProductRecord, ScanRecord
from zonecount.time_utils import utcnow
from .base import InventoryRepository, USER_MUTABLE_FIELDS, ZONE_MUTABLE_FIELDS


class InMemoryRepository(InventoryRepository):
    """
    Dict-backed repository.

    Transactions are serialized with a re-entrant lock. On error the
    tables are restored from the snapshot taken when the outermost
    transaction began.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._ids = {name: itertools.count(1) for name in ("companies", "users", "zones", "products", "scans")}
        self.companies: dict[int, CompanyRecord] = {}
        self.users: dict[int, UserRecord] = {}
        self.zones: dict[int, ZoneRecord] = {}
        self.products: dict[int, ProductRecord] = {}
        # dicts keep insertion order, which list_scans relies on
        self.scans: dict[int, ScanRecord] = {}

    def _next_id(self, table: str) -> int:
        return next(self._ids[table])

    def _tables(self) -> dict:
        return {
            "companies": self.companies,
            "users": self.users,
            "zones": self.zones,
            "products": self.products,
            "scans": self.scans,
        }

    @contextmanager
    def transaction(self):
        with self._lock:
            snapshot = None
            if self._depth == 0:
                # Records are frozen, so shallow copies of the tables suffice
                snapshot = {name: dict(rows) for name, rows in self._tables().items()}
            self._depth += 1
            try:
                yield self
            except Exception:
                if snapshot is not None:
                    for name, rows in snapshot.items():
                        setattr(self, name, rows)
                raise
            finally:
                self._depth -= 1

    # -- companies --

    def add_company(self, company: CompanyRecord) -> CompanyRecord:
        with self._lock:
            record = replace(company, id=self._next_id("companies"), created_at=company.created_at or utcnow())
            self.companies[record.id] = record
            return record

    def get_company(self, company_id: int) -> CompanyRecord | None:
        return self.companies.get(company_id)

    def list_companies(self) -> list[CompanyRecord]:
        return sorted(self.companies.values(), key=lambda c: c.id)

    # -- users --

    def list_users(self, company_id: int) -> list[UserRecord]:
        rows = [u for u in self.users.values() if u.company_id == company_id]
        return sorted(rows, key=lambda u: (u.name, u.id))

    def get_user(self, company_id: int, user_id: int) -> UserRecord | None:
        user = self.users.get(user_id)
        if user is None or user.company_id != company_id:
            return None
        return user

    def get_user_by_email(self, company_id: int, email: str) -> UserRecord | None:
        for user in self.users.values():
            if user.company_id == company_id and user.email == email:
                return user
        return None

    def find_users_by_email(self, email: str) -> list[UserRecord]:
        return [u for u in self.users.values() if u.email == email]

    def add_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            record = replace(user, id=self._next_id("users"), created_at=user.created_at or utcnow())
            self.users[record.id] = record
            return record

    def update_user(self, company_id: int, user_id: int, changes: Mapping) -> UserRecord | None:
        with self._lock:
            user = self.get_user(company_id, user_id)
            if user is None:
                return None
            updated = replace(user, **{k: v for k, v in changes.items() if k in USER_MUTABLE_FIELDS})
            self.users[user_id] = updated
            return updated

    def delete_user(self, company_id: int, user_id: int) -> bool:
        with self._lock:
            if self.get_user(company_id, user_id) is None:
                return False
            del self.users[user_id]
            return True

    # -- zones --

    def list_zones(self, company_id: int) -> list[ZoneRecord]:
        return [z for z in self.zones.values() if z.company_id == company_id]

    def get_zone(self, company_id: int, zone_id: int) -> ZoneRecord | None:
        zone = self.zones.get(zone_id)
        if zone is None or zone.company_id != company_id:
            return None
        return zone

    def get_zone_by_name(self, company_id: int, name: str) -> ZoneRecord | None:
        for zone in self.zones.values():
            if zone.company_id == company_id and zone.name == name:
                return zone
        return None

    def add_zones(self, zones: Iterable[ZoneRecord]) -> list[ZoneRecord]:
        with self._lock:
            now = utcnow()
            created = []
            for zone in zones:
                record = replace(zone, id=self._next_id("zones"), created_at=zone.created_at or now)
                self.zones[record.id] = record
                created.append(record)
            return created

    def update_zone(self, company_id: int, zone_id: int, changes: Mapping) -> ZoneRecord | None:
        with self._lock:
            zone = self.get_zone(company_id, zone_id)
            if zone is None:
                return None
            updated = replace(zone, **{k: v for k, v in changes.items() if k in ZONE_MUTABLE_FIELDS})
            self.zones[zone_id] = updated
            return updated

    def delete_zone(self, company_id: int, zone_id: int) -> bool:
        with self._lock:
            if self.get_zone(company_id, zone_id) is None:
                return False
            del self.zones[zone_id]
            return True

    # -- products --

    def list_products(self, company_id: int) -> list[ProductRecord]:
        rows = [p for p in self.products.values() if p.company_id == company_id]
        return sorted(rows, key=lambda p: p.code)

    def get_products_by_codes(self, company_id: int, codes: Iterable[str]) -> dict[str, ProductRecord]:
        wanted = set(codes)
        return {
            p.code: p
            for p in self.products.values()
            if p.company_id == company_id and p.code in wanted
        }

    def upsert_products(self, company_id: int, rows: Iterable[Mapping]) -> tuple[int, int]:
        with self._lock:
            rows = list(rows)
            existing = self.get_products_by_codes(company_id, (r["code"] for r in rows))
            created = updated = 0
            for r in rows:
                current = existing.get(r["code"])
                if current is None:
                    record = ProductRecord(
                        id=self._next_id("products"),
                        company_id=company_id,
                        code=r["code"],
                        sku=r["sku"],
                        description=r["description"],
                    )
                    created += 1
                else:
                    record = replace(current, sku=r["sku"], description=r["description"])
                    updated += 1
                self.products[record.id] = record
                existing[record.code] = record
            return created, updated

    def delete_all_products(self, company_id: int) -> int:
        with self._lock:
            doomed = [pid for pid, p in self.products.items() if p.company_id == company_id]
            for pid in doomed:
                del self.products[pid]
            return len(doomed)

    # -- scans --

    def list_scans(self, company_id: int) -> list[ScanRecord]:
        return [s for s in self.scans.values() if s.company_id == company_id]

    def count_scans(self, company_id: int) -> int:
        return len(self.list_scans(company_id))

    def add_scans(self, scans: Iterable[ScanRecord]) -> list[ScanRecord]:
        with self._lock:
            created = []
            for scan in scans:
                record = replace(scan, id=self._next_id("scans"))
                self.scans[record.id] = record
                created.append(record)
            return created

    def get_scan(self, company_id: int, scan_id: int) -> ScanRecord | None:
        scan = self.scans.get(scan_id)
        if scan is None or scan.company_id != company_id:
            return None
        return scan

    def delete_scan(self, company_id: int, scan_id: int) -> bool:
        with self._lock:
            if self.get_scan(company_id, scan_id) is None:
                return False
            del self.scans[scan_id]
            return True

    def _delete_scans_where(self, predicate) -> int:
        with self._lock:
            doomed = [sid for sid, s in self.scans.items() if predicate(s)]
            for sid in doomed:
                del self.scans[sid]
            return len(doomed)

    def delete_scans_by_code(self, company_id: int, code: str) -> int:
        return self._delete_scans_where(lambda s: s.company_id == company_id and s.code == code)

    def delete_all_scans(self, company_id: int) -> int:
        return self._delete_scans_where(lambda s: s.company_id == company_id)

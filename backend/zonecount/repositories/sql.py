# Overview: SQLAlchemy implementation of the inventory repository.

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Mapping

from sqlalchemy.orm import Session

from ..models import Company, User, SessionToken, Zone, Product, ScannedArticle
from ..records import CompanyRecord, UserRecord, ZoneRecord, ProductRecord, ScanRecord
from zonecount.time_utils import utcnow
from .base import InventoryRepository, USER_MUTABLE_FIELDS, ZONE_MUTABLE_FIELDS


class SqlAlchemyRepository(InventoryRepository):
    """
    Repository over a SQLAlchemy session.

    Accepts Flask-SQLAlchemy's scoped `db.session`, so one instance can live
    on the app for its whole lifetime. Mutating methods only flush;
    transaction() owns commit and rollback.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # -- companies --

    def add_company(self, company: CompanyRecord) -> CompanyRecord:
        row = Company(name=company.name, code=company.code, is_active=company.is_active)
        self.session.add(row)
        self.session.flush()
        return row.to_record()

    def get_company(self, company_id: int) -> CompanyRecord | None:
        row = self.session.query(Company).filter_by(id=company_id).first()
        return row.to_record() if row else None

    def list_companies(self) -> list[CompanyRecord]:
        rows = self.session.query(Company).order_by(Company.id.asc()).all()
        return [row.to_record() for row in rows]

    # -- users --

    def _user_row(self, company_id: int, user_id: int) -> User | None:
        return self.session.query(User).filter_by(id=user_id, company_id=company_id).first()

    def list_users(self, company_id: int) -> list[UserRecord]:
        rows = (
            self.session.query(User)
            .filter_by(company_id=company_id)
            .order_by(User.name.asc(), User.id.asc())
            .all()
        )
        return [row.to_record() for row in rows]

    def get_user(self, company_id: int, user_id: int) -> UserRecord | None:
        row = self._user_row(company_id, user_id)
        return row.to_record() if row else None

    def get_user_by_email(self, company_id: int, email: str) -> UserRecord | None:
        row = self.session.query(User).filter_by(company_id=company_id, email=email).first()
        return row.to_record() if row else None

    def find_users_by_email(self, email: str) -> list[UserRecord]:
        rows = self.session.query(User).filter_by(email=email).order_by(User.id.asc()).all()
        return [row.to_record() for row in rows]

    def add_user(self, user: UserRecord) -> UserRecord:
        row = User(
            company_id=user.company_id,
            name=user.name,
            email=user.email,
            role=user.role,
            password_hash=user.password_hash,
            created_at=user.created_at or utcnow(),
        )
        self.session.add(row)
        self.session.flush()
        return row.to_record()

    def update_user(self, company_id: int, user_id: int, changes: Mapping) -> UserRecord | None:
        row = self._user_row(company_id, user_id)
        if not row:
            return None
        for key, value in changes.items():
            if key in USER_MUTABLE_FIELDS:
                setattr(row, key, value)
        self.session.flush()
        return row.to_record()

    def delete_user(self, company_id: int, user_id: int) -> bool:
        row = self._user_row(company_id, user_id)
        if not row:
            return False
        # SQLite does not enforce ON DELETE CASCADE without a pragma
        self.session.query(SessionToken).filter_by(user_id=row.id).delete()
        self.session.delete(row)
        self.session.flush()
        return True

    # -- zones --

    def _zone_row(self, company_id: int, zone_id: int) -> Zone | None:
        return self.session.query(Zone).filter_by(id=zone_id, company_id=company_id).first()

    def list_zones(self, company_id: int) -> list[ZoneRecord]:
        rows = self.session.query(Zone).filter_by(company_id=company_id).order_by(Zone.id.asc()).all()
        return [row.to_record() for row in rows]

    def get_zone(self, company_id: int, zone_id: int) -> ZoneRecord | None:
        row = self._zone_row(company_id, zone_id)
        return row.to_record() if row else None

    def get_zone_by_name(self, company_id: int, name: str) -> ZoneRecord | None:
        row = self.session.query(Zone).filter_by(company_id=company_id, name=name).first()
        return row.to_record() if row else None

    def add_zones(self, zones: Iterable[ZoneRecord]) -> list[ZoneRecord]:
        now = utcnow()
        rows = [
            Zone(
                company_id=z.company_id,
                name=z.name,
                description=z.description,
                created_at=z.created_at or now,
            )
            for z in zones
        ]
        self.session.add_all(rows)
        self.session.flush()
        return [row.to_record() for row in rows]

    def update_zone(self, company_id: int, zone_id: int, changes: Mapping) -> ZoneRecord | None:
        row = self._zone_row(company_id, zone_id)
        if not row:
            return None
        for key, value in changes.items():
            if key in ZONE_MUTABLE_FIELDS:
                setattr(row, key, value)
        self.session.flush()
        return row.to_record()

    def delete_zone(self, company_id: int, zone_id: int) -> bool:
        row = self._zone_row(company_id, zone_id)
        if not row:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    # -- products --

    def list_products(self, company_id: int) -> list[ProductRecord]:
        rows = (
            self.session.query(Product)
            .filter_by(company_id=company_id)
            .order_by(Product.code.asc())
            .all()
        )
        return [row.to_record() for row in rows]

    def get_products_by_codes(self, company_id: int, codes: Iterable[str]) -> dict[str, ProductRecord]:
        codes = set(codes)
        if not codes:
            return {}
        rows = (
            self.session.query(Product)
            .filter(Product.company_id == company_id, Product.code.in_(codes))
            .all()
        )
        return {row.code: row.to_record() for row in rows}

    def upsert_products(self, company_id: int, rows: Iterable[Mapping]) -> tuple[int, int]:
        rows = list(rows)
        existing = {
            p.code: p
            for p in self.session.query(Product)
            .filter(Product.company_id == company_id, Product.code.in_({r["code"] for r in rows}))
            .all()
        } if rows else {}

        created = updated = 0
        for r in rows:
            product = existing.get(r["code"])
            if product is None:
                product = Product(company_id=company_id, code=r["code"], sku=r["sku"], description=r["description"])
                self.session.add(product)
                existing[r["code"]] = product
                created += 1
            else:
                product.sku = r["sku"]
                product.description = r["description"]
                updated += 1
        self.session.flush()
        return created, updated

    def delete_all_products(self, company_id: int) -> int:
        deleted = self.session.query(Product).filter_by(company_id=company_id).delete()
        self.session.flush()
        return deleted

    # -- scans --

    def list_scans(self, company_id: int) -> list[ScanRecord]:
        rows = (
            self.session.query(ScannedArticle)
            .filter_by(company_id=company_id)
            .order_by(ScannedArticle.id.asc())
            .all()
        )
        return [row.to_record() for row in rows]

    def count_scans(self, company_id: int) -> int:
        return self.session.query(ScannedArticle).filter_by(company_id=company_id).count()

    def add_scans(self, scans: Iterable[ScanRecord]) -> list[ScanRecord]:
        rows = [
            ScannedArticle(
                company_id=s.company_id,
                code=s.code,
                sku=s.sku,
                description=s.description,
                zone_id=s.zone_id,
                zone_name=s.zone_name,
                user_id=s.user_id,
                count_number=s.count_number,
                scanned_at=s.scanned_at,
                is_serial=s.is_serial,
            )
            for s in scans
        ]
        self.session.add_all(rows)
        self.session.flush()
        return [row.to_record() for row in rows]

    def get_scan(self, company_id: int, scan_id: int) -> ScanRecord | None:
        row = self.session.query(ScannedArticle).filter_by(id=scan_id, company_id=company_id).first()
        return row.to_record() if row else None

    def delete_scan(self, company_id: int, scan_id: int) -> bool:
        deleted = (
            self.session.query(ScannedArticle)
            .filter_by(id=scan_id, company_id=company_id)
            .delete()
        )
        self.session.flush()
        return deleted > 0

    def delete_scans_by_code(self, company_id: int, code: str) -> int:
        deleted = (
            self.session.query(ScannedArticle)
            .filter_by(company_id=company_id, code=code)
            .delete()
        )
        self.session.flush()
        return deleted

    def delete_all_scans(self, company_id: int) -> int:
        deleted = self.session.query(ScannedArticle).filter_by(company_id=company_id).delete()
        self.session.flush()
        return deleted

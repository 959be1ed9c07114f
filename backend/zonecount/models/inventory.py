from __future__ import annotations

from ..extensions import db
from ..records import ZoneRecord, ProductRecord, ScanRecord
from zonecount.time_utils import to_utc_z


class Zone(db.Model):
    """
    Named physical location inside a company's warehouse (e.g. "C01-E03").

    Zone names are unique within a company. Deleting a zone does not
    cascade to scans: historical scans keep their zone_id.
    """
    __tablename__ = "zones"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_zones_company_name"),
        db.Index("ix_zones_company_id", "company_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)

    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_record(self) -> ZoneRecord:
        return ZoneRecord(
            id=self.id,
            company_id=self.company_id,
            name=self.name,
            description=self.description,
            created_at=self.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master row. `code` is an EAN or a serial number.

    Master data: scans copy sku/description from here at ingestion time.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "code", name="uq_products_company_code"),
        db.Index("ix_products_company_sku", "company_id", "sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=False)

    def to_record(self) -> ProductRecord:
        return ProductRecord(
            id=self.id,
            company_id=self.company_id,
            code=self.code,
            sku=self.sku,
            description=self.description,
        )


class ScannedArticle(db.Model):
    """
    One scan event.

    sku, description and zone_name are denormalized at write time.
    zone_id and user_id are plain integers, not foreign keys: zones and
    users may be deleted while their scans stay readable.

    IMMUTABLE: rows are only ever inserted or deleted.
    """
    __tablename__ = "scanned_articles"
    __table_args__ = (
        db.Index("ix_scanned_articles_company_code", "company_id", "code"),
        db.Index("ix_scanned_articles_company_zone", "company_id", "zone_id"),
        db.CheckConstraint("count_number BETWEEN 1 AND 3", name="ck_scanned_articles_count_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=False)

    zone_id = db.Column(db.Integer, nullable=False)
    zone_name = db.Column(db.String(64), nullable=False)

    user_id = db.Column(db.Integer, nullable=False, index=True)
    count_number = db.Column(db.Integer, nullable=False)
    scanned_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_serial = db.Column(db.Boolean, nullable=False, default=False)

    def to_record(self) -> ScanRecord:
        return ScanRecord(
            id=self.id,
            company_id=self.company_id,
            code=self.code,
            sku=self.sku,
            description=self.description,
            zone_id=self.zone_id,
            zone_name=self.zone_name,
            user_id=self.user_id,
            count_number=self.count_number,
            scanned_at=self.scanned_at,
            is_serial=bool(self.is_serial),
        )

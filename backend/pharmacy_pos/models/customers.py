from __future__ import annotations

from ..extensions import db
from pharmacy_pos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data for tracking purchases.

    MULTI-TENANT: Customers are scoped to stores via store_id.
    Phone numbers are unique within a store.

    total_purchases_paise is a denormalized lifetime aggregate. Billing only
    ever increments it, with an atomic add (never read-modify-write).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("store_id", "phone", name="uq_customers_store_phone"),
        db.CheckConstraint("total_purchases_paise >= 0", name="ck_customers_total_purchases_nonneg"),
        db.Index("ix_customers_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=True)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    total_purchases_paise = db.Column(db.BigInteger, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("customers", lazy=True))

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
            "phone": self.phone,
            "email": self.email,
            "is_active": self.is_active,
            "total_purchases_paise": self.total_purchases_paise,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from pharmacy_pos.time_utils import to_utc_z, to_iso_date

class Product(db.Model):
    """
    Product master data with its on-hand stock counter.

    MULTI-TENANT: Products are scoped to stores via store_id.
    SKUs are unique within a store.

    STOCK INVARIANT:
    - quantity is never negative (enforced by a CHECK constraint as a backstop)
    - every decrement is a single conditional UPDATE
      (quantity = quantity - n WHERE quantity >= n), never read-then-write;
      see services/inventory_ledger.py

    PRICES are integer paise; tax and discount are integer basis points
    (500 = 5.00%).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_nonneg"),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.Index("ix_products_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    generic_name = db.Column(db.String(255), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    manufacturer = db.Column(db.String(255), nullable=True)

    cost_price_paise = db.Column(db.Integer, nullable=False, default=0)
    selling_price_paise = db.Column(db.Integer, nullable=False, default=0)
    mrp_paise = db.Column(db.Integer, nullable=False, default=0)
    tax_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=20)
    unit = db.Column(db.String(16), nullable=False, default="pcs")

    # Pharmacy batch traceability
    batch_number = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    requires_prescription = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sku": self.sku,
            "name": self.name,
            "generic_name": self.generic_name,
            "barcode": self.barcode,
            "manufacturer": self.manufacturer,
            "cost_price_paise": self.cost_price_paise,
            "selling_price_paise": self.selling_price_paise,
            "mrp_paise": self.mrp_paise,
            "tax_bps": self.tax_bps,
            "discount_bps": self.discount_bps,
            "quantity": self.quantity,
            "reorder_level": self.reorder_level,
            "unit": self.unit,
            "batch_number": self.batch_number,
            "expiry_date": to_iso_date(self.expiry_date),
            "requires_prescription": self.requires_prescription,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from pharmacy_pos.time_utils import to_utc_z

class Store(db.Model):
    """
    Pharmacy store: the tenant boundary.

    MULTI-TENANT: Every product, customer, bill and subscription carries
    store_id. No query may read or write another store's rows.

    timezone drives the issue date encoded in bill numbers.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    timezone = db.Column(db.String(64), nullable=False, default="Asia/Kolkata")
    license_number = db.Column(db.String(64), nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "timezone": self.timezone,
            "license_number": self.license_number,
            "gst_number": self.gst_number,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

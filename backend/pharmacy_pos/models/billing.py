from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from ..errors import ImmutableRecordError
from pharmacy_pos.time_utils import to_utc_z, to_iso_date


BILL_STATUS_COMPLETED = "COMPLETED"

PAYMENT_METHODS = ("CASH", "CARD", "UPI", "BANK_TRANSFER", "OTHER")


class Bill(db.Model):
    """
    Immutable financial record of one checkout.

    WHY immutable: downstream reporting and tax filings read these rows.
    Corrections, if ever supported, are separate compensating records.

    All amounts are integer paise:
    - subtotal_paise        = sum of line taxable amounts (after item discounts, before tax)
    - tax_paise             = sum of line tax
    - item_discount_paise   = sum of line discounts
    - discount_paise        = item_discount_paise + global_discount_paise
    - grand_total_paise     = subtotal + tax + doctor fees + other charges - global discount
    - change_paise          = max(0, amount_paid - grand_total)
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.UniqueConstraint("store_id", "bill_number", name="uq_bills_store_number"),
        db.Index("ix_bills_store_billed_at", "store_id", "billed_at"),
        db.Index("ix_bills_store_customer", "store_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    # Human-readable, store-scoped (e.g., "INV-261018-0001")
    bill_number = db.Column(db.String(64), nullable=False)

    subtotal_paise = db.Column(db.BigInteger, nullable=False)
    tax_paise = db.Column(db.BigInteger, nullable=False, default=0)
    item_discount_paise = db.Column(db.BigInteger, nullable=False, default=0)
    global_discount_paise = db.Column(db.BigInteger, nullable=False, default=0)
    discount_paise = db.Column(db.BigInteger, nullable=False, default=0)
    doctor_fees_paise = db.Column(db.BigInteger, nullable=False, default=0)
    other_charges_paise = db.Column(db.BigInteger, nullable=False, default=0)
    grand_total_paise = db.Column(db.BigInteger, nullable=False)

    amount_paid_paise = db.Column(db.BigInteger, nullable=False, default=0)
    change_paise = db.Column(db.BigInteger, nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    status = db.Column(db.String(16), nullable=False, default=BILL_STATUS_COMPLETED, index=True)

    doctor_name = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    billed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("bills", lazy=True))
    user = db.relationship("User")
    customer = db.relationship("Customer", backref=db.backref("bills", lazy=True))
    lines = db.relationship(
        "BillLineItem",
        back_populates="bill",
        order_by="BillLineItem.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Bill id={self.id} number={self.bill_number!r} store_id={self.store_id}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "bill_number": self.bill_number,
            "subtotal_paise": self.subtotal_paise,
            "tax_paise": self.tax_paise,
            "item_discount_paise": self.item_discount_paise,
            "global_discount_paise": self.global_discount_paise,
            "discount_paise": self.discount_paise,
            "doctor_fees_paise": self.doctor_fees_paise,
            "other_charges_paise": self.other_charges_paise,
            "grand_total_paise": self.grand_total_paise,
            "amount_paid_paise": self.amount_paid_paise,
            "change_paise": self.change_paise,
            "payment_method": self.payment_method,
            "status": self.status,
            "doctor_name": self.doctor_name,
            "notes": self.notes,
            "billed_at": to_utc_z(self.billed_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class BillLineItem(db.Model):
    """
    One sold line within a Bill.

    product_id is NULL for ad-hoc (non-inventory) lines.

    SNAPSHOT: cost_price_paise, mrp_paise, batch_number and expiry_date are
    copied from the product at time of sale. They must never be back-filled
    from current product state; the product may have changed since.
    """
    __tablename__ = "bill_line_items"
    __table_args__ = (
        db.UniqueConstraint("bill_id", "line_number", name="uq_bill_lines_bill_line"),
        db.Index("ix_bill_lines_store_product", "store_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_paise = db.Column(db.BigInteger, nullable=False)
    mrp_paise = db.Column(db.BigInteger, nullable=False)
    cost_price_paise = db.Column(db.BigInteger, nullable=True)

    discount_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_paise = db.Column(db.BigInteger, nullable=False, default=0)
    taxable_paise = db.Column(db.BigInteger, nullable=False)
    tax_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_paise = db.Column(db.BigInteger, nullable=False, default=0)
    net_total_paise = db.Column(db.BigInteger, nullable=False)

    batch_number = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bill = db.relationship("Bill", back_populates="lines")
    product = db.relationship("Product")

    @property
    def is_inventory_backed(self) -> bool:
        return self.product_id is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price_paise": self.unit_price_paise,
            "mrp_paise": self.mrp_paise,
            "cost_price_paise": self.cost_price_paise,
            "discount_bps": self.discount_bps,
            "discount_paise": self.discount_paise,
            "taxable_paise": self.taxable_paise,
            "tax_bps": self.tax_bps,
            "tax_paise": self.tax_paise,
            "net_total_paise": self.net_total_paise,
            "batch_number": self.batch_number,
            "expiry_date": to_iso_date(self.expiry_date),
        }


class BillSequence(db.Model):
    """
    Atomic per-store, per-day bill number counters.

    WHY: Random suffixes can silently collide. The counter row is bumped with
    a single UPDATE inside the checkout transaction, so two checkouts in the
    same store can never be handed the same number.
    """
    __tablename__ = "bill_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sequence_date", name="uq_bill_sequences_store_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    sequence_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())


def _reject_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableRecordError(
        f"{type(target).__name__} records are immutable",
        details={"id": target.id},
    )


def _reject_delete(mapper, connection, target):
    raise ImmutableRecordError(
        f"{type(target).__name__} records cannot be deleted",
        details={"id": target.id},
    )


for _model in (Bill, BillLineItem):
    event.listen(_model, "before_update", _reject_update)
    event.listen(_model, "before_delete", _reject_delete)

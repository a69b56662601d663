from __future__ import annotations

from ..extensions import db


PLAN_TRIAL = "TRIAL"
PLAN_BASIC = "BASIC"
PLAN_STANDARD = "STANDARD"
PLAN_ADVANCED = "ADVANCED"

STATUS_ACTIVE = "ACTIVE"
STATUS_EXPIRED = "EXPIRED"
STATUS_CANCELLED = "CANCELLED"
STATUS_SUSPENDED = "SUSPENDED"


class Subscription(db.Model):
    """
    Store subscription to a plan.

    Read-only from this service's point of view: plans are purchased and
    renewed elsewhere. The latest row (by created_at, id) is authoritative
    and feeds the feature gate checked before every checkout.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.Index("ix_subscriptions_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    plan = db.Column(db.String(16), nullable=False, default=PLAN_TRIAL)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("subscriptions", lazy=True))

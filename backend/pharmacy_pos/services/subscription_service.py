# Overview: Subscription status checks and per-plan usage limits (the feature gate).

"""
Subscription Feature Gate

Plans are bought and renewed outside this service; here the latest
subscription row for a store is only read (and flipped to EXPIRED once its
end date has passed). Routes call the gate before handing a request to the
billing engine:

    require_active_subscription(store_id)   -> Subscription or FeatureGateError
    check_feature_limit(store_id, feature)  -> None or FeatureGateError

Limits are per plan; -1 means unlimited. bills_per_day counts bills created
since 00:00 UTC today.
"""

from __future__ import annotations

import logging
from datetime import datetime, time

from sqlalchemy import func, select

from ..errors import FeatureGateError
from ..extensions import db
from ..models import Bill, Customer, Product, Subscription, User
from ..models.subscriptions import (
    PLAN_ADVANCED,
    PLAN_BASIC,
    PLAN_STANDARD,
    PLAN_TRIAL,
    STATUS_CANCELLED,
    STATUS_EXPIRED,
    STATUS_SUSPENDED,
)
from pharmacy_pos.time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)

UNLIMITED = -1

PLAN_LIMITS: dict[str, dict[str, int]] = {
    PLAN_TRIAL: {"products": 50, "users": 2, "bills_per_day": 20, "customers": 100},
    PLAN_BASIC: {"products": 500, "users": 5, "bills_per_day": 100, "customers": 1000},
    PLAN_STANDARD: {"products": 2000, "users": 15, "bills_per_day": 500, "customers": 5000},
    PLAN_ADVANCED: {"products": UNLIMITED, "users": UNLIMITED, "bills_per_day": UNLIMITED, "customers": UNLIMITED},
}


def get_latest_subscription(store_id: int, session=None) -> Subscription | None:
    session = session or db.session
    return session.execute(
        select(Subscription)
        .where(Subscription.store_id == store_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def require_active_subscription(store_id: int, session=None) -> Subscription:
    """
    Return the store's current subscription or raise FeatureGateError.

    A subscription past its end date is marked EXPIRED as a side effect.
    """
    session = session or db.session
    subscription = get_latest_subscription(store_id, session)

    if subscription is None:
        raise FeatureGateError(
            "No subscription found. Please subscribe to continue.",
            code="NO_SUBSCRIPTION",
        )

    if subscription.status == STATUS_CANCELLED:
        raise FeatureGateError(
            "Subscription has been cancelled. Please resubscribe to continue.",
            code="SUBSCRIPTION_CANCELLED",
        )

    if subscription.status == STATUS_SUSPENDED:
        raise FeatureGateError(
            "Subscription has been suspended. Please contact support.",
            code="SUBSCRIPTION_SUSPENDED",
        )

    end_date = subscription.end_date
    if end_date is not None and end_date.tzinfo is not None:
        end_date = end_date.replace(tzinfo=None)
    is_past_end = end_date is not None and end_date < utcnow()

    if subscription.status == STATUS_EXPIRED or is_past_end:
        if subscription.status != STATUS_EXPIRED:
            subscription.status = STATUS_EXPIRED
            session.commit()
            logger.info("Marked subscription %s of store %s as expired", subscription.id, store_id)

        if subscription.plan == PLAN_TRIAL:
            message = "Your free trial has expired. Please upgrade to continue."
        else:
            message = "Subscription has expired. Please renew to continue."
        raise FeatureGateError(
            message,
            code="SUBSCRIPTION_EXPIRED",
            details={"plan": subscription.plan, "expired_at": to_utc_z(subscription.end_date)},
        )

    return subscription


def _start_of_utc_day() -> datetime:
    return datetime.combine(utcnow().date(), time.min)


def current_usage(store_id: int, feature: str, session=None) -> int | None:
    """Current usage count for a limited feature, or None for unknown features."""
    session = session or db.session

    if feature == "products":
        stmt = select(func.count(Product.id)).where(Product.store_id == store_id)
    elif feature == "users":
        stmt = select(func.count(User.id)).where(User.store_id == store_id)
    elif feature == "customers":
        stmt = select(func.count(Customer.id)).where(Customer.store_id == store_id)
    elif feature == "bills_per_day":
        stmt = select(func.count(Bill.id)).where(
            Bill.store_id == store_id,
            Bill.billed_at >= _start_of_utc_day(),
        )
    else:
        return None

    return session.execute(stmt).scalar_one()


def check_feature_limit(store_id: int, feature: str, subscription: Subscription | None = None, session=None) -> None:
    """
    Raise FeatureGateError(FEATURE_LIMIT_REACHED) once usage hits the plan limit.

    Unknown features are not limited.
    """
    session = session or db.session
    if subscription is None:
        subscription = require_active_subscription(store_id, session)

    limit = PLAN_LIMITS.get(subscription.plan, {}).get(feature)
    if limit is None or limit == UNLIMITED:
        return

    used = current_usage(store_id, feature, session)
    if used is None:
        return

    if used >= limit:
        raise FeatureGateError(
            f"You have reached the {feature} limit for your plan. Please upgrade to continue.",
            code="FEATURE_LIMIT_REACHED",
            details={
                "feature": feature,
                "current": used,
                "limit": limit,
                "plan": subscription.plan,
            },
        )

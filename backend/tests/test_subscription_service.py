# Overview: Pytest coverage for plan limits behind the feature gate.

import pytest

from pharmacy_pos.errors import FeatureGateError
from pharmacy_pos.models import Customer
from pharmacy_pos.models.subscriptions import PLAN_ADVANCED, PLAN_BASIC, PLAN_TRIAL
from pharmacy_pos.services import subscription_service
from conftest import make_product, make_subscription


def test_plan_limits_table():
    assert subscription_service.PLAN_LIMITS[PLAN_TRIAL]["bills_per_day"] == 20
    assert subscription_service.PLAN_LIMITS[PLAN_BASIC]["bills_per_day"] == 100
    assert subscription_service.PLAN_LIMITS[PLAN_ADVANCED]["bills_per_day"] == subscription_service.UNLIMITED


def test_product_limit(db_session, store_a, monkeypatch):
    make_subscription(db_session, store_a)
    monkeypatch.setitem(subscription_service.PLAN_LIMITS[PLAN_TRIAL], "products", 2)

    make_product(db_session, store_a, "P1", quantity=1)
    subscription_service.check_feature_limit(store_a.id, "products")

    make_product(db_session, store_a, "P2", quantity=1)
    with pytest.raises(FeatureGateError) as exc:
        subscription_service.check_feature_limit(store_a.id, "products")
    assert exc.value.code == "FEATURE_LIMIT_REACHED"
    assert exc.value.status_code == 403


def test_counts_only_own_store(db_session, store_a, store_b, monkeypatch):
    make_subscription(db_session, store_a)
    monkeypatch.setitem(subscription_service.PLAN_LIMITS[PLAN_TRIAL], "customers", 1)

    db_session.add(Customer(store_id=store_b.id, first_name="Other", phone="1"))
    db_session.commit()

    subscription_service.check_feature_limit(store_a.id, "customers")


def test_unlimited_plan(db_session, store_a):
    make_subscription(db_session, store_a, plan=PLAN_ADVANCED)
    assert subscription_service.check_feature_limit(store_a.id, "bills_per_day") is None


def test_unknown_feature_is_not_limited(db_session, store_a):
    make_subscription(db_session, store_a)
    subscription_service.check_feature_limit(store_a.id, "ocr_imports")
    assert subscription_service.current_usage(store_a.id, "ocr_imports") is None


def test_no_subscription(db_session, store_a):
    with pytest.raises(FeatureGateError) as exc:
        subscription_service.require_active_subscription(store_a.id)
    assert exc.value.code == "NO_SUBSCRIPTION"

# Overview: Pytest coverage for the pos CLI group.

from pharmacy_pos.models import Product, Store, Subscription, User
from pharmacy_pos.services.session_service import validate_session


def _invoke(app, *args):
    return app.test_cli_runner().invoke(args=["pos", *args])


def test_seed_demo_is_idempotent(app, db_session):
    first = _invoke(app, "seed-demo")
    second = _invoke(app, "seed-demo")

    assert first.exit_code == 0, first.output
    assert "Created 4 products" in first.output
    assert "Created 0 products" in second.output

    store = db_session.query(Store).filter_by(code="DEMO").one()
    assert db_session.query(Product).filter_by(store_id=store.id).count() == 4
    assert db_session.query(User).filter_by(store_id=store.id).count() == 1
    assert db_session.query(Subscription).filter_by(store_id=store.id).count() == 1


def test_issue_token(app, db_session):
    _invoke(app, "seed-demo")

    result = _invoke(app, "issue-token", "--store-code", "DEMO", "--username", "cashier")

    assert result.exit_code == 0, result.output
    token = result.output.strip().splitlines()[-1]
    context = validate_session(token)
    assert context is not None
    assert context.user.username == "cashier"


def test_issue_token_unknown_user(app, db_session):
    _invoke(app, "seed-demo")
    result = _invoke(app, "issue-token", "--store-code", "DEMO", "--username", "ghost")
    assert "FAIL" in result.output


def test_stock_add_and_set(app, db_session):
    _invoke(app, "seed-demo")
    product = db_session.query(Product).filter_by(sku="ORS-21").one()
    store_id, product_id = product.store_id, product.id

    added = _invoke(app, "stock", "--store-id", str(store_id), "--product-id", str(product_id), "--add", "10")
    assert "now has 160 on hand" in added.output

    counted = _invoke(app, "stock", "--store-id", str(store_id), "--product-id", str(product_id), "--set", "42")
    assert "now has 42 on hand" in counted.output

    db_session.expire_all()
    assert db_session.get(Product, product_id).quantity == 42


def test_stock_requires_one_mode(app, db_session):
    result = _invoke(app, "stock", "--store-id", "1", "--product-id", "1")
    assert "exactly one of --add or --set" in result.output


def test_stock_unknown_product(app, db_session):
    _invoke(app, "seed-demo")
    store = db_session.query(Store).filter_by(code="DEMO").one()
    result = _invoke(app, "stock", "--store-id", str(store.id), "--product-id", "9999", "--add", "1")
    assert "FAIL Product not found" in result.output

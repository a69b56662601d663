# Overview: Flask CLI commands for bootstrap, tokens, and stock maintenance.

# backend/pharmacy_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask pos <command> [options]
#
# - python -m flask pos init-db
#   Create all tables (development; production uses flask db upgrade).
# - python -m flask pos reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask pos seed-demo
#   Idempotent demo data: one store, a cashier, an active TRIAL subscription,
#   a handful of products and one customer.
# - python -m flask pos issue-token --store-code DEMO --username cashier
#   Print a bearer token for a user (there is no login endpoint).
# - python -m flask pos stock --store-id 1 --product-id 3 --add 24
# - python -m flask pos stock --store-id 1 --product-id 3 --set 10
#   Receive stock or set the counted quantity through the inventory ledger.

from datetime import date, timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Customer, Product, Store, Subscription, User
from .models.subscriptions import PLAN_TRIAL, STATUS_ACTIVE
from .services import session_service
from .services.concurrency import run_unit_of_work
from .services.inventory_ledger import InventoryLedger
from .services.pricing import format_paise
from .time_utils import utcnow


DEMO_PRODUCTS = [
    # sku, name, generic, selling, mrp, cost, tax bps, qty, batch
    ("PCM-500", "Paracetamol 500mg", "Paracetamol", 2000, 2200, 1200, 1200, 200, "B24-PCM"),
    ("AMX-250", "Amoxicillin 250mg", "Amoxicillin", 8500, 9000, 6000, 1200, 80, "B24-AMX"),
    ("ORS-21", "ORS Sachet 21g", "Oral rehydration salts", 2100, 2100, 1500, 500, 150, "B24-ORS"),
    ("CTZ-10", "Cetirizine 10mg", "Cetirizine", 3500, 4000, 2000, 1200, 120, "B24-CTZ"),
]


@click.group('pos')
def pos_group():
    """Pharmacy POS bootstrap and maintenance commands."""


@pos_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@pos_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask pos seed-demo' to add demo data.")


@pos_group.command('seed-demo')
@click.option('--store-code', default='DEMO', help='Store code')
@click.option('--store-name', default='Demo Pharmacy', help='Store name')
@click.option('--timezone', 'tz_name', default='Asia/Kolkata', help='IANA timezone of the store')
@with_appcontext
def seed_demo(store_code, store_name, tz_name):
    """Create a demo store with a cashier, products, a customer and a trial subscription."""
    db.create_all()

    store = db.session.query(Store).filter_by(code=store_code).first()
    if not store:
        store = Store(name=store_name, code=store_code, timezone=tz_name, is_active=True)
        db.session.add(store)
        db.session.flush()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    cashier = db.session.query(User).filter_by(store_id=store.id, username='cashier').first()
    if not cashier:
        cashier = User(
            store_id=store.id,
            username='cashier',
            email='cashier@pharmacy.local',
            full_name='Demo Cashier',
            role='CASHIER',
        )
        db.session.add(cashier)
        click.echo("PASS Created user: cashier")

    if not db.session.query(Subscription).filter_by(store_id=store.id).first():
        now = utcnow()
        db.session.add(Subscription(
            store_id=store.id,
            plan=PLAN_TRIAL,
            status=STATUS_ACTIVE,
            start_date=now,
            end_date=now + timedelta(days=14),
        ))
        click.echo("PASS Created 14-day TRIAL subscription")

    created = 0
    for sku, name, generic, selling, mrp, cost, tax_bps, qty, batch in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(store_id=store.id, sku=sku).first():
            continue
        db.session.add(Product(
            store_id=store.id,
            sku=sku,
            name=name,
            generic_name=generic,
            selling_price_paise=selling,
            mrp_paise=mrp,
            cost_price_paise=cost,
            tax_bps=tax_bps,
            quantity=qty,
            batch_number=batch,
            expiry_date=date.today() + timedelta(days=365),
        ))
        created += 1
    click.echo(f"PASS Created {created} products")

    if not db.session.query(Customer).filter_by(store_id=store.id, phone='9000000001').first():
        db.session.add(Customer(store_id=store.id, first_name='Walk-in', last_name='Regular', phone='9000000001'))
        click.echo("PASS Created customer: Walk-in Regular")

    db.session.commit()
    click.echo("DONE Demo data ready. Next: python -m flask pos issue-token --store-code "
               f"{store.code} --username cashier")


@pos_group.command('issue-token')
@click.option('--store-code', required=True, help='Store code')
@click.option('--username', required=True, help='Username within the store')
@click.option('--max-age', type=int, default=None, help='Token lifetime in seconds')
@with_appcontext
def issue_token(store_code, username, max_age):
    """Print a bearer token for a store user."""
    store = db.session.query(Store).filter_by(code=store_code).first()
    if not store:
        click.echo(f"FAIL Store '{store_code}' not found")
        return

    user = db.session.query(User).filter_by(store_id=store.id, username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found in store '{store_code}'")
        return

    if max_age is None:
        max_age = current_app.config.get("AUTH_TOKEN_MAX_AGE", session_service.DEFAULT_TOKEN_MAX_AGE)

    try:
        session, token = session_service.create_session(user.id, max_age_seconds=max_age)
    except PosError as e:
        click.echo(f"FAIL Could not issue token: {e.message}")
        return

    click.echo(f"PASS Token for {user.username} (store {store.code}), expires {session.expires_at:%Y-%m-%d %H:%M} UTC:")
    click.echo(token)


@pos_group.command('stock')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--add', 'add_qty', type=int, default=None, help='Units received')
@click.option('--set', 'set_qty', type=int, default=None, help='Counted quantity on hand')
@with_appcontext
def stock(store_id, product_id, add_qty, set_qty):
    """Receive stock (--add) or record a stock take (--set)."""
    if (add_qty is None) == (set_qty is None):
        click.echo("FAIL Pass exactly one of --add or --set")
        return

    ledger = InventoryLedger(db.session)
    cfg = current_app.config

    def _op():
        if add_qty is not None:
            return ledger.restock(store_id, product_id, add_qty)
        return ledger.adjust_to(store_id, product_id, set_qty)

    try:
        on_hand = run_unit_of_work(
            _op,
            session=db.session,
            attempts=cfg.get("CHECKOUT_RETRY_ATTEMPTS", 3),
            backoff_base=cfg.get("CHECKOUT_RETRY_BACKOFF", 0.1),
        )
    except PosError as e:
        click.echo(f"FAIL {e.message}")
        return

    product = db.session.get(Product, product_id)
    click.echo(
        f"PASS {product.sku} now has {on_hand} on hand "
        f"(selling price {format_paise(product.selling_price_paise)})"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pos_group)

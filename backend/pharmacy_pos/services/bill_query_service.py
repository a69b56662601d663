# Overview: Read-only, store-scoped queries over bills and their line items.

"""
Bill Queries

MULTI-TENANT: every query filters on store_id first. A bill id from another
store behaves exactly like a missing bill (NotFoundError), so ids cannot be
enumerated across tenants.
"""

from __future__ import annotations

from datetime import datetime, time

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Bill, Customer, Product
from ..models.billing import BILL_STATUS_COMPLETED
from pharmacy_pos.time_utils import parse_iso_datetime, to_iso_date

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
PRODUCT_SEARCH_LIMIT = 10


def _page_window(page: int | None, limit: int | None, default_limit: int, max_limit: int) -> tuple[int, int]:
    page = max(page or 1, 1)
    limit = limit or default_limit
    limit = max(1, min(limit, max_limit))
    return page, limit


def _parse_bound(name: str, value, *, end_of_day: bool = False) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime", details={"field": name})
    # A bare date as upper bound covers the whole day
    if end_of_day and parsed is not None and len(str(value).strip()) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def _paginate(session, stmt, count_stmt, page: int, limit: int) -> tuple[list[Bill], dict]:
    total = session.execute(count_stmt).scalar_one()
    rows = session.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()
    total_pages = (total + limit - 1) // limit if total > 0 else 0
    return list(rows), {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
    }


def list_bills(
    store_id: int,
    *,
    page: int | None = None,
    limit: int | None = None,
    search: str | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    default_limit: int = DEFAULT_PAGE_SIZE,
    max_limit: int = MAX_PAGE_SIZE,
    session=None,
) -> dict:
    """
    Store-scoped bill listing, newest first.

    search matches bill number, customer first name or phone (case-insensitive
    substring). start_date/end_date bound billed_at; an end date without a time
    includes that whole day.
    """
    session = session or db.session
    page, limit = _page_window(page, limit, default_limit, max_limit)

    start = _parse_bound("startDate", start_date)
    end = _parse_bound("endDate", end_date, end_of_day=True)
    if start and end and end < start:
        raise ValidationError("endDate must not be before startDate")

    conditions = [Bill.store_id == store_id]
    if status:
        conditions.append(Bill.status == status.strip().upper())
    if start is not None:
        conditions.append(Bill.billed_at >= start)
    if end is not None:
        conditions.append(Bill.billed_at <= end)

    stmt = select(Bill)
    count_stmt = select(func.count(Bill.id))

    term = (search or "").strip()
    if term:
        pattern = f"%{term.lower()}%"
        stmt = stmt.outerjoin(Customer, Customer.id == Bill.customer_id)
        count_stmt = count_stmt.outerjoin(Customer, Customer.id == Bill.customer_id)
        conditions.append(
            or_(
                func.lower(Bill.bill_number).like(pattern),
                func.lower(Customer.first_name).like(pattern),
                func.lower(Customer.phone).like(pattern),
            )
        )

    stmt = (
        stmt.where(*conditions)
        .options(selectinload(Bill.customer))
        .order_by(Bill.billed_at.desc(), Bill.id.desc())
    )
    count_stmt = count_stmt.where(*conditions)

    bills, pagination = _paginate(session, stmt, count_stmt, page, limit)
    return {
        "bills": [bill_summary(bill) for bill in bills],
        "pagination": pagination,
    }


def bill_summary(bill: Bill) -> dict:
    data = bill.to_dict(include_lines=True)
    data["customer"] = bill.customer.to_dict() if bill.customer else None
    return data


def get_bill(store_id: int, bill_id: int, session=None) -> Bill:
    session = session or db.session
    bill = session.execute(
        select(Bill)
        .where(Bill.id == bill_id, Bill.store_id == store_id)
        .options(selectinload(Bill.customer), selectinload(Bill.user), selectinload(Bill.store))
    ).scalar_one_or_none()
    if bill is None:
        raise NotFoundError("Bill not found", details={"bill_id": bill_id})
    return bill


def bill_detail(bill: Bill) -> dict:
    data = bill_summary(bill)
    data["biller"] = bill.user.to_dict() if bill.user else None
    data["store"] = bill.store.to_dict() if bill.store else None
    return data


def _require_customer(session, store_id: int, customer_id: int) -> None:
    found = session.execute(
        select(Customer.id).where(Customer.id == customer_id, Customer.store_id == store_id)
    ).scalar_one_or_none()
    if found is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})


def get_customer_bills(
    store_id: int,
    customer_id: int,
    *,
    page: int | None = None,
    limit: int | None = None,
    session=None,
) -> dict:
    """Purchase history for one customer (default 10 per page)."""
    session = session or db.session
    _require_customer(session, store_id, customer_id)
    page, limit = _page_window(page, limit, 10, MAX_PAGE_SIZE)

    conditions = (Bill.store_id == store_id, Bill.customer_id == customer_id)
    stmt = select(Bill).where(*conditions).order_by(Bill.billed_at.desc(), Bill.id.desc())
    count_stmt = select(func.count(Bill.id)).where(*conditions)

    bills, pagination = _paginate(session, stmt, count_stmt, page, limit)
    return {
        "bills": [bill.to_dict() for bill in bills],
        "pagination": pagination,
    }


def get_customer_last_bill_items(store_id: int, customer_id: int, session=None) -> list[dict]:
    """
    Lines of the customer's most recent completed bill, for POS auto-fill.

    Inventory-backed lines also carry the product's current state so the
    cashier can see whether it is still in stock at today's price.
    """
    session = session or db.session
    _require_customer(session, store_id, customer_id)

    last_bill = session.execute(
        select(Bill)
        .where(
            Bill.store_id == store_id,
            Bill.customer_id == customer_id,
            Bill.status == BILL_STATUS_COMPLETED,
        )
        .order_by(Bill.billed_at.desc(), Bill.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if last_bill is None:
        return []

    product_ids = {line.product_id for line in last_bill.lines if line.product_id is not None}
    products = {}
    if product_ids:
        products = {
            p.id: p
            for p in session.execute(
                select(Product).where(Product.store_id == store_id, Product.id.in_(product_ids))
            ).scalars()
        }

    items = []
    for line in last_bill.lines:
        product = products.get(line.product_id)
        items.append({
            "product_id": line.product_id,
            "product_name": line.product_name,
            "product_sku": line.product_sku,
            "quantity": line.quantity,
            "unit_price_paise": line.unit_price_paise,
            "discount_bps": line.discount_bps,
            "tax_bps": line.tax_bps,
            "product": product.to_dict() if product else None,
        })
    return items


def search_products_for_billing(store_id: int, query: str, session=None) -> list[dict]:
    """
    POS lookup: active, in-stock products whose name, SKU or barcode contains query.
    """
    session = session or db.session
    term = (query or "").strip()
    if not term:
        return []
    pattern = f"%{term.lower()}%"

    products = session.execute(
        select(Product)
        .where(
            Product.store_id == store_id,
            Product.is_active.is_(True),
            Product.quantity > 0,
            or_(
                func.lower(Product.name).like(pattern),
                func.lower(Product.sku).like(pattern),
                func.lower(Product.barcode).like(pattern),
            ),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .limit(PRODUCT_SEARCH_LIMIT)
    ).scalars().all()

    return [
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "selling_price_paise": p.selling_price_paise,
            "mrp_paise": p.mrp_paise,
            "quantity": p.quantity,
            "tax_bps": p.tax_bps,
            "discount_bps": p.discount_bps,
            "expiry_date": to_iso_date(p.expiry_date),
            "batch_number": p.batch_number,
            "unit": p.unit,
        }
        for p in products
    ]

# Overview: POS checkout orchestration; turns a cart into one immutable Bill atomically.

"""
Billing Engine - checkout as a single unit of work

Checkout Invariants (authoritative)

- All-or-nothing: stock decrements, the Bill row, its line items and the
  customer aggregate commit together or not at all. Lines are processed one
  at a time, but no other reader can observe a partial result.
- Only InventoryBackedLine items reach the InventoryLedger. AdHocLine items
  are priced and recorded but never touch stock.
- Inventory-backed lines carry a snapshot (cost, mrp, batch, expiry) taken
  at the instant of the decrement.
- grand_total = subtotal + tax + doctor_fees + other_charges - global_discount
  where subtotal = sum(taxable) and tax = sum(line tax).
- change = max(0, amount_paid - grand_total). Partial payment is accepted and
  still recorded as COMPLETED; callers that forbid it validate first.
- Storage conflicts restart the whole unit of work, bounded by
  retry_attempts; exhaustion surfaces as ConflictError.
- Input validation runs before any storage access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from sqlalchemy import select

from ..errors import NotFoundError, ValidationError
from ..models import Bill, BillLineItem, User
from ..models.billing import BILL_STATUS_COMPLETED, PAYMENT_METHODS
from pharmacy_pos.time_utils import utcnow
from .bill_number_service import BillNumberGenerator
from .concurrency import run_unit_of_work
from .customer_account_service import CustomerAccountUpdater
from .inventory_ledger import InventoryLedger, ProductSnapshot
from .pricing import LinePricing, compute_line, summarize_lines

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 100_000
# Ceiling for any stored amount: line gross or net, bill total, amount paid (Rs 99,99,99,999.99)
MAX_TOTAL_PAISE = 99_999_999_999


@dataclass(frozen=True)
class InventoryBackedLine:
    """Cart line for a stocked product. Name and SKU are snapshotted from the product row."""
    product_id: int
    quantity: int
    unit_price_paise: int
    discount_bps: int = 0
    tax_bps: int = 0


@dataclass(frozen=True)
class AdHocLine:
    """Cart line not tracked in inventory (e.g., a service or loose item)."""
    product_name: str
    product_sku: str
    quantity: int
    unit_price_paise: int
    discount_bps: int = 0
    tax_bps: int = 0


CheckoutLine = Union[InventoryBackedLine, AdHocLine]


@dataclass(frozen=True)
class CheckoutRequest:
    items: tuple[CheckoutLine, ...]
    amount_paid_paise: int
    payment_method: str = "CASH"
    customer_id: int | None = None
    global_discount_paise: int = 0
    doctor_fees_paise: int = 0
    other_charges_paise: int = 0
    doctor_name: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class _BillTotals:
    lines: tuple[LinePricing, ...]
    subtotal: int
    tax: int
    item_discount: int
    grand_total: int
    change: int


def _require_non_negative(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer amount in paise", details={"field": name})
    if value < 0:
        raise ValidationError(f"{name} cannot be negative", details={"field": name})
    if value > MAX_TOTAL_PAISE:
        raise ValidationError(f"{name} is too large", details={"field": name, "max_paise": MAX_TOTAL_PAISE})


def _validate_request(request: CheckoutRequest) -> _BillTotals:
    """
    Validate and price the request without touching storage.

    Errors identify the offending line by its zero-based index.
    """
    if not request.items:
        raise ValidationError("Bill must have at least one item")

    if request.payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Unsupported payment method: {request.payment_method}",
            details={"allowed": list(PAYMENT_METHODS)},
        )

    if request.customer_id is not None and (
        isinstance(request.customer_id, bool) or not isinstance(request.customer_id, int)
    ):
        raise ValidationError("customer_id must be an integer", details={"field": "customer_id"})

    for name in ("amount_paid_paise", "global_discount_paise", "doctor_fees_paise", "other_charges_paise"):
        _require_non_negative(name, getattr(request, name))

    priced = []
    for index, item in enumerate(request.items):
        if isinstance(item, InventoryBackedLine):
            if isinstance(item.product_id, bool) or not isinstance(item.product_id, int):
                raise ValidationError("product_id must be an integer", details={"line": index})
        elif isinstance(item, AdHocLine):
            if not (item.product_name or "").strip() or not (item.product_sku or "").strip():
                raise ValidationError(
                    "Ad-hoc items require product_name and product_sku",
                    details={"line": index},
                )
        else:
            raise ValidationError("Unknown line item type", details={"line": index})

        try:
            pricing = compute_line(item.unit_price_paise, item.quantity, item.discount_bps, item.tax_bps)
        except ValidationError as exc:
            raise ValidationError(exc.message, details={**exc.details, "line": index}) from exc

        if item.quantity > MAX_LINE_QUANTITY:
            raise ValidationError(
                f"quantity cannot exceed {MAX_LINE_QUANTITY}",
                details={"line": index, "quantity": item.quantity},
            )
        if max(pricing.gross, pricing.net) > MAX_TOTAL_PAISE:
            raise ValidationError(
                "Line total is too large",
                details={"line": index, "max_paise": MAX_TOTAL_PAISE},
            )
        priced.append(pricing)

    summary = summarize_lines(priced)
    grand_total = (
        summary.subtotal
        + summary.tax
        + request.doctor_fees_paise
        + request.other_charges_paise
        - request.global_discount_paise
    )
    if grand_total < 0:
        raise ValidationError(
            "Discount exceeds bill total",
            details={"global_discount_paise": request.global_discount_paise},
        )
    if grand_total > MAX_TOTAL_PAISE or summary.subtotal + summary.tax > MAX_TOTAL_PAISE:
        raise ValidationError("Bill total is too large", details={"max_paise": MAX_TOTAL_PAISE})

    return _BillTotals(
        lines=tuple(priced),
        subtotal=summary.subtotal,
        tax=summary.tax,
        item_discount=summary.discount,
        grand_total=grand_total,
        change=max(0, request.amount_paid_paise - grand_total),
    )


def _build_line(
    *,
    store_id: int,
    line_number: int,
    item: CheckoutLine,
    pricing: LinePricing,
    snapshot: ProductSnapshot | None,
) -> BillLineItem:
    line = BillLineItem(
        store_id=store_id,
        line_number=line_number,
        quantity=item.quantity,
        unit_price_paise=item.unit_price_paise,
        discount_bps=item.discount_bps,
        discount_paise=pricing.discount,
        taxable_paise=pricing.taxable,
        tax_bps=item.tax_bps,
        tax_paise=pricing.tax,
        net_total_paise=pricing.net,
    )
    if snapshot is not None:
        line.product_id = snapshot.product_id
        line.product_name = snapshot.name
        line.product_sku = snapshot.sku
        line.cost_price_paise = snapshot.cost_price_paise
        line.mrp_paise = snapshot.mrp_paise
        line.batch_number = snapshot.batch_number
        line.expiry_date = snapshot.expiry_date
    else:
        line.product_id = None
        line.product_name = item.product_name.strip()
        line.product_sku = item.product_sku.strip()
        line.cost_price_paise = None
        line.mrp_paise = item.unit_price_paise
    return line


class BillingEngine:
    """
    Orchestrates checkout against an explicit session.

    The session is the storage handle for the whole unit of work; the
    collaborators (ledger, number generator, customer updater) are built on
    the same session so they share one transaction.
    """

    def __init__(
        self,
        session,
        *,
        bill_number_prefix: str = "INV",
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
    ):
        self.session = session
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.inventory = InventoryLedger(session)
        self.bill_numbers = BillNumberGenerator(session, prefix=bill_number_prefix)
        self.customer_accounts = CustomerAccountUpdater(session)

    def _require_biller(self, store_id: int, biller_id: int) -> None:
        found = self.session.execute(
            select(User.id).where(User.id == biller_id, User.store_id == store_id)
        ).scalar_one_or_none()
        if found is None:
            raise NotFoundError("Biller not found in store", details={"user_id": biller_id})

    def create_bill(self, store_id: int, biller_id: int, request: CheckoutRequest) -> Bill:
        totals = _validate_request(request)

        def _op() -> Bill:
            self._require_biller(store_id, biller_id)

            snapshots: list[ProductSnapshot | None] = []
            for item in request.items:
                if isinstance(item, InventoryBackedLine):
                    snapshots.append(
                        self.inventory.reserve_and_decrement(store_id, item.product_id, item.quantity)
                    )
                else:
                    snapshots.append(None)

            lines = [
                _build_line(
                    store_id=store_id,
                    line_number=index + 1,
                    item=item,
                    pricing=pricing,
                    snapshot=snapshot,
                )
                for index, (item, pricing, snapshot) in enumerate(
                    zip(request.items, totals.lines, snapshots)
                )
            ]

            if request.customer_id is not None:
                self.customer_accounts.record_purchase(store_id, request.customer_id, totals.grand_total)

            bill = Bill(
                store_id=store_id,
                user_id=biller_id,
                customer_id=request.customer_id,
                bill_number=self.bill_numbers.next(store_id),
                subtotal_paise=totals.subtotal,
                tax_paise=totals.tax,
                item_discount_paise=totals.item_discount,
                global_discount_paise=request.global_discount_paise,
                discount_paise=totals.item_discount + request.global_discount_paise,
                doctor_fees_paise=request.doctor_fees_paise,
                other_charges_paise=request.other_charges_paise,
                grand_total_paise=totals.grand_total,
                amount_paid_paise=request.amount_paid_paise,
                change_paise=totals.change,
                payment_method=request.payment_method,
                status=BILL_STATUS_COMPLETED,
                doctor_name=request.doctor_name,
                notes=request.notes,
                billed_at=utcnow(),
            )
            bill.lines = lines
            self.session.add(bill)
            self.session.flush()
            return bill

        bill = run_unit_of_work(
            _op,
            session=self.session,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
        )
        logger.info(
            "Created bill %s for store %s (%d lines, total %d paise)",
            bill.bill_number, store_id, len(request.items), totals.grand_total,
        )
        return bill

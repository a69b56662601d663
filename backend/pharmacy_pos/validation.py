from __future__ import annotations

from typing import Any

from .errors import ValidationError
from .models.billing import PAYMENT_METHODS
from .services.billing_engine import AdHocLine, CheckoutRequest, InventoryBackedLine
from .services.pricing import to_bps, to_paise


# Largest rupee amount accepted on any money field: 99,99,999.99 (999,999,999 paise)
MAX_AMOUNT_PAISE = 999_999_999
MAX_LINE_ITEMS = 200


def _coerce_int(name: str, value: Any, *, line: int | None = None) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals and
    scientific notation so "1.5" quantities never get truncated silently.
    """
    details = {"field": name}
    if line is not None:
        details["line"] = line

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer", details=details)
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)", details=details)
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)", details=details)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", details=details)
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal", details=details)
    raise ValidationError(f"{name} must be an integer", details=details)


def _coerce_amount(name: str, value: Any, *, line: int | None = None, default: int | None = 0) -> int:
    """Rupee decimal -> paise. None/"" falls back to default (or is required if default is None)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            details = {"field": name}
            if line is not None:
                details["line"] = line
            raise ValidationError(f"{name} is required", details=details)
        return default
    try:
        paise = to_paise(value, name)
    except ValidationError as exc:
        if line is not None:
            raise ValidationError(exc.message, details={**exc.details, "line": line}) from exc
        raise
    if paise > MAX_AMOUNT_PAISE:
        details = {"field": name, "max_paise": MAX_AMOUNT_PAISE}
        if line is not None:
            details["line"] = line
        raise ValidationError(f"{name} is too large", details=details)
    return paise


def _coerce_percent(name: str, value: Any, *, line: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    try:
        return to_bps(value, name)
    except ValidationError as exc:
        raise ValidationError(exc.message, details={**exc.details, "line": line}) from exc


def _optional_text(value: Any, max_len: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text[:max_len]


def _parse_item(index: int, raw: Any):
    if not isinstance(raw, dict):
        raise ValidationError("Each item must be an object", details={"line": index})

    quantity = _coerce_int("quantity", raw.get("quantity"), line=index)
    unit_price = _coerce_amount("unitPrice", raw.get("unitPrice"), line=index, default=None)
    discount_bps = _coerce_percent("discountPercent", raw.get("discountPercent"), line=index)
    tax_bps = _coerce_percent("taxPercent", raw.get("taxPercent"), line=index)

    product_id = raw.get("productId")
    if product_id is not None and product_id != "":
        return InventoryBackedLine(
            product_id=_coerce_int("productId", product_id, line=index),
            quantity=quantity,
            unit_price_paise=unit_price,
            discount_bps=discount_bps,
            tax_bps=tax_bps,
        )

    return AdHocLine(
        product_name=_optional_text(raw.get("productName"), 255) or "",
        product_sku=_optional_text(raw.get("productSku"), 64) or "",
        quantity=quantity,
        unit_price_paise=unit_price,
        discount_bps=discount_bps,
        tax_bps=tax_bps,
    )


def parse_checkout_payload(payload: Any) -> CheckoutRequest:
    """
    Turn a POST /bills JSON body into a typed CheckoutRequest.

    Items carrying productId become InventoryBackedLine; items without it are
    AdHocLine and never touch stock. Money fields are rupee decimals with at
    most 2 places and become integer paise; percentages become basis points.

    Range checks on the resulting integers (quantity > 0, percent <= 100,
    non-negative fees) live in the billing engine so every caller gets them.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Bill must have at least one item", details={"field": "items"})
    if len(raw_items) > MAX_LINE_ITEMS:
        raise ValidationError(
            f"A bill can have at most {MAX_LINE_ITEMS} items",
            details={"field": "items", "count": len(raw_items)},
        )

    items = tuple(_parse_item(index, raw) for index, raw in enumerate(raw_items))

    customer_id = payload.get("customerId")
    if customer_id is not None and customer_id != "":
        customer_id = _coerce_int("customerId", customer_id)
    else:
        customer_id = None

    payment_method = payload.get("paymentMethod") or "CASH"
    if not isinstance(payment_method, str) or payment_method.strip().upper() not in PAYMENT_METHODS:
        raise ValidationError(
            f"Unsupported payment method: {payment_method}",
            details={"field": "paymentMethod", "allowed": list(PAYMENT_METHODS)},
        )

    return CheckoutRequest(
        items=items,
        amount_paid_paise=_coerce_amount("amountPaid", payload.get("amountPaid"), default=None),
        payment_method=payment_method.strip().upper(),
        customer_id=customer_id,
        global_discount_paise=_coerce_amount("discountAmount", payload.get("discountAmount")),
        doctor_fees_paise=_coerce_amount("doctorFees", payload.get("doctorFees")),
        other_charges_paise=_coerce_amount("otherCharges", payload.get("otherCharges")),
        doctor_name=_optional_text(payload.get("doctorName"), 255),
        notes=_optional_text(payload.get("notes"), 2000),
    )

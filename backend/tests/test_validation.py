# Overview: Pytest coverage for turning checkout JSON into a typed request.

import pytest

from pharmacy_pos.errors import ValidationError
from pharmacy_pos.services.billing_engine import AdHocLine, InventoryBackedLine
from pharmacy_pos.validation import parse_checkout_payload


def _payload(**overrides):
    payload = {
        "customerId": 7,
        "items": [
            {"productId": 3, "productName": "Paracetamol", "productSku": "PARA", "quantity": 2,
             "unitPrice": "100.00", "taxPercent": 5},
            {"productName": "Dressing", "productSku": "SVC-1", "quantity": "1", "unitPrice": 49.5,
             "discountPercent": "10"},
        ],
        "paymentMethod": "upi",
        "amountPaid": "300",
        "discountAmount": "5.25",
        "doctorFees": 20,
        "otherCharges": "0",
        "doctorName": "  Dr. Iyer ",
        "notes": "",
    }
    payload.update(overrides)
    return payload


def test_full_payload():
    request = parse_checkout_payload(_payload())

    first, second = request.items
    assert first == InventoryBackedLine(product_id=3, quantity=2, unit_price_paise=10000, discount_bps=0, tax_bps=500)
    assert second == AdHocLine(
        product_name="Dressing", product_sku="SVC-1", quantity=1,
        unit_price_paise=4950, discount_bps=1000, tax_bps=0,
    )
    assert request.customer_id == 7
    assert request.payment_method == "UPI"
    assert request.amount_paid_paise == 30000
    assert request.global_discount_paise == 525
    assert request.doctor_fees_paise == 2000
    assert request.other_charges_paise == 0
    assert request.doctor_name == "Dr. Iyer"
    assert request.notes is None


def test_defaults():
    request = parse_checkout_payload({
        "items": [{"productId": "5", "quantity": 1, "unitPrice": 10}],
        "amountPaid": 10,
    })
    assert request.payment_method == "CASH"
    assert request.customer_id is None
    assert request.global_discount_paise == 0
    assert request.doctor_fees_paise == 0
    assert request.items[0].product_id == 5


def test_null_product_id_is_adhoc():
    request = parse_checkout_payload(_payload(items=[
        {"productId": None, "productName": "Consultation", "productSku": "SVC", "quantity": 1, "unitPrice": 1},
    ]))
    assert isinstance(request.items[0], AdHocLine)


@pytest.mark.parametrize("payload", [
    None,
    [],
    {"items": [], "amountPaid": 1},
    {"items": "x", "amountPaid": 1},
    {"items": [{"productId": 1, "quantity": 1, "unitPrice": 1}]},
])
def test_rejects_malformed_body(payload):
    with pytest.raises(ValidationError):
        parse_checkout_payload(payload)


@pytest.mark.parametrize("item,field", [
    ({"productId": 1, "quantity": 1.5, "unitPrice": 1}, "quantity"),
    ({"productId": 1, "quantity": "2.0", "unitPrice": 1}, "quantity"),
    ({"productId": 1, "quantity": "1e3", "unitPrice": 1}, "quantity"),
    ({"productId": 1, "quantity": 1}, "unitPrice"),
    ({"productId": 1, "quantity": 1, "unitPrice": "1.005"}, "unitPrice"),
    ({"productId": 1, "quantity": 1, "unitPrice": 1, "taxPercent": "abc"}, "taxPercent"),
    ({"productId": "x1", "quantity": 1, "unitPrice": 1}, "productId"),
    ({"productId": True, "quantity": 1, "unitPrice": 1}, "productId"),
])
def test_rejects_bad_item_fields(item, field):
    with pytest.raises(ValidationError) as exc:
        parse_checkout_payload({"items": [item], "amountPaid": 1})
    assert exc.value.details["field"] == field
    assert exc.value.details["line"] == 0


def test_second_item_error_names_its_index():
    with pytest.raises(ValidationError) as exc:
        parse_checkout_payload({
            "items": [
                {"productId": 1, "quantity": 1, "unitPrice": 1},
                {"productId": 2, "quantity": "many", "unitPrice": 1},
            ],
            "amountPaid": 1,
        })
    assert exc.value.details["line"] == 1


def test_rejects_unknown_payment_method():
    with pytest.raises(ValidationError) as exc:
        parse_checkout_payload(_payload(paymentMethod="BITCOIN"))
    assert "CASH" in exc.value.details["allowed"]


def test_rejects_huge_amount():
    with pytest.raises(ValidationError):
        parse_checkout_payload(_payload(amountPaid="10000000000"))


def test_too_many_items():
    items = [{"productId": 1, "quantity": 1, "unitPrice": 1}] * 201
    with pytest.raises(ValidationError):
        parse_checkout_payload({"items": items, "amountPaid": 1})

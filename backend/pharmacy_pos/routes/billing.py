# Overview: Flask API routes for POS billing; parses input and returns JSON responses.

# backend/pharmacy_pos/routes/billing.py
"""
Billing API routes.

MULTI-TENANT: store_id always comes from the token (g.store_id), never from
the request body or query string.

Checkout (POST /bills) additionally requires an active subscription and a
remaining bills_per_day quota for the store's plan.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_active_subscription, require_auth, require_feature_limit
from ..errors import PosError
from ..extensions import db
from ..services import bill_query_service
from ..services.billing_engine import BillingEngine
from ..validation import parse_checkout_payload


billing_bp = Blueprint("billing", __name__, url_prefix="/api/v1/billing")


def _error_response(e: PosError):
    return jsonify(e.to_dict()), e.status_code


def _internal_error():
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500


def build_billing_engine(session=None) -> BillingEngine:
    """BillingEngine wired to the app config."""
    cfg = current_app.config
    return BillingEngine(
        session or db.session,
        bill_number_prefix=cfg.get("BILL_NUMBER_PREFIX", "INV"),
        retry_attempts=cfg.get("CHECKOUT_RETRY_ATTEMPTS", 3),
        retry_backoff=cfg.get("CHECKOUT_RETRY_BACKOFF", 0.1),
    )


@billing_bp.post("/bills")
@require_auth
@require_active_subscription
@require_feature_limit("bills_per_day")
def create_bill_route():
    """
    Check out a cart and persist one immutable bill.

    Body (camelCase, rupee decimals):
    {customerId?, items: [{productId?, productName, productSku, quantity,
     unitPrice, discountPercent?, taxPercent?}], paymentMethod?, amountPaid,
     discountAmount?, doctorFees?, otherCharges?, doctorName?, notes?}
    """
    try:
        checkout = parse_checkout_payload(request.get_json(silent=True))
        bill = build_billing_engine().create_bill(g.store_id, g.current_user.id, checkout)
        return jsonify({"bill": bill_query_service.bill_summary(bill)}), 201

    except PosError as e:
        if e.status_code >= 500:
            current_app.logger.error("Checkout failed for store %s: %s", g.store_id, e.message)
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create bill")
        return _internal_error()


@billing_bp.get("/bills")
@require_auth
def list_bills_route():
    """
    List the store's bills, newest first.

    Query params: page, limit, search, status, startDate, endDate
    """
    try:
        result = bill_query_service.list_bills(
            g.store_id,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            search=request.args.get("search"),
            status=request.args.get("status"),
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            default_limit=current_app.config.get("DEFAULT_PAGE_SIZE", 20),
            max_limit=current_app.config.get("MAX_PAGE_SIZE", 100),
        )
        return jsonify(result), 200

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list bills")
        return _internal_error()


@billing_bp.get("/bills/<int:bill_id>")
@require_auth
def get_bill_route(bill_id: int):
    try:
        bill = bill_query_service.get_bill(g.store_id, bill_id)
        return jsonify({"bill": bill_query_service.bill_detail(bill)}), 200

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get bill")
        return _internal_error()


@billing_bp.get("/products/search")
@require_auth
def search_products_route():
    """Up to 10 active, in-stock products matching name, SKU or barcode."""
    try:
        products = bill_query_service.search_products_for_billing(g.store_id, request.args.get("q", ""))
        return jsonify({"products": products}), 200

    except PosError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to search products")
        return _internal_error()

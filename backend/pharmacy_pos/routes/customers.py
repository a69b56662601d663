# Overview: Flask API routes for customer purchase history.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..errors import PosError
from ..services import bill_query_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/v1/billing/customers")


@customers_bp.get("/<int:customer_id>/bills")
@require_auth
def customer_bills_route(customer_id: int):
    try:
        result = bill_query_service.get_customer_bills(
            g.store_id,
            customer_id,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify(result), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get customer bills")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500


@customers_bp.get("/<int:customer_id>/last-bill-items")
@require_auth
def customer_last_bill_items_route(customer_id: int):
    """Items of the customer's last completed bill, for POS auto-fill."""
    try:
        items = bill_query_service.get_customer_last_bill_items(g.store_id, customer_id)
        return jsonify({"items": items}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get customer last bill items")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500

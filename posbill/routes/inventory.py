# Overview: Flask API routes for stock movements.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..services import inventory_service
from ..services.inventory_service import InventoryError
from ..services.tenant_service import TenantAccessError
from ..validation import NotFoundError, ValidationError

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/transactions")
@require_auth
def create_transaction_route():
    """
    Record a stock movement.

    Body: {productId, quantity, type: purchase|sale|adjustment, reference?, notes?}
    Returns the transaction and the product's new stock.
    """
    payload = request.get_json(silent=True) or {}
    try:
        tx = inventory_service.record_stock_change(g.store_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    except InventoryError as e:
        return jsonify({"message": e.message, "details": e.details}), 400

    body = tx.to_dict()
    body["product"] = tx.product.to_dict()
    return jsonify(body), 201


@inventory_bp.get("/transactions")
@require_auth
def list_transactions_route():
    product_id = request.args.get("productId", type=int)
    try:
        txs = inventory_service.list_transactions(g.store_id, product_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify([t.to_dict() for t in txs])

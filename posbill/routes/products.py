# Overview: Flask API routes for products; parses input and returns JSON responses.

"""
Product management routes.

MULTI-TENANT: All product operations are scoped to g.store_id (set by
@require_auth). Another store's product id is a 403, an unknown id a 404.
"""
from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import products_service
from ..services.tenant_service import TenantAccessError
from ..validation import ConflictError, NotFoundError, ValidationError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - search: substring of name, SKU or barcode (case-insensitive)
    - category: exact category
    """
    products = products_service.list_products(
        g.store_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    return jsonify([p.to_dict() for p in products])


@products_bp.get("/low-stock")
@require_auth
def low_stock_route():
    limit = request.args.get("limit", type=int)
    return jsonify([p.to_dict() for p in products_service.low_stock_products(g.store_id, limit)])


@products_bp.get("/top-selling")
@require_auth
def top_selling_route():
    limit = request.args.get("limit", type=int)
    return jsonify(products_service.top_selling_products(g.store_id, limit))


@products_bp.get("/barcode/<code>")
@require_auth
def product_by_barcode_route(code: str):
    product = products_service.find_by_barcode(g.store_id, code)
    if product is None:
        return jsonify({"message": "Product not found"}), 404
    return jsonify(product.to_dict())


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.store_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify(product.to_dict())


@products_bp.get("/<int:product_id>/barcode.svg")
@require_auth
def product_barcode_svg_route(product_id: int):
    try:
        product = products_service.get_product(product_id, g.store_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403

    if not product.barcode:
        return jsonify({"message": "Product has no barcode"}), 404

    try:
        svg = products_service.barcode_svg(product.barcode)
    except Exception:
        current_app.logger.exception("Failed to render barcode for product %s", product.id)
        return jsonify({"message": "Failed to render barcode"}), 500
    return Response(svg, mimetype="image/svg+xml")


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(g.store_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    return jsonify(product.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Update product fields. Stock changes go through inventory transactions."""
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, g.store_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    return jsonify(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id, g.store_id, user_id=g.current_user.id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    return "", 204

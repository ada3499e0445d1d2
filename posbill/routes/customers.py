# Overview: Flask API routes for customers.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..services import customers_service
from ..services.tenant_service import TenantAccessError
from ..validation import ConflictError, NotFoundError, ValidationError

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    customers = customers_service.list_customers(g.store_id, search=request.args.get("search"))
    return jsonify([c.to_dict() for c in customers])


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customers_service.get_customer(customer_id, g.store_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify(customer.to_dict())


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customers_service.create_customer(g.store_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    return jsonify(customer.to_dict()), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customers_service.update_customer(customer_id, g.store_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify(customer.to_dict())


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        customers_service.delete_customer(customer_id, g.store_id, user_id=g.current_user.id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    return "", 204

# Overview: Store settings and staff account routes.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF
from ..services import auth_service, store_service
from ..services.store_service import StoreError
from ..validation import ConflictError, ValidationError

stores_bp = Blueprint("stores", __name__, url_prefix="/api")


@stores_bp.get("/store")
@require_auth
def get_store_route():
    return jsonify(g.store.to_dict())


@stores_bp.put("/store")
@require_auth
@require_role(ROLE_ADMIN, ROLE_MANAGER)
def update_store_route():
    """Update the caller's store settings. The store code cannot change."""
    payload = request.get_json(silent=True) or {}
    try:
        store = store_service.update_store(g.store_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except StoreError as e:
        return jsonify({"message": str(e)}), 400
    return jsonify(store.to_dict())


@stores_bp.get("/users")
@require_auth
def list_users_route():
    users = store_service.list_store_users(g.store_id)
    return jsonify([u.to_dict() for u in users])


@stores_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """Create a staff account in the caller's store (admin only)."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            store_id=g.store_id,
            username=data.get("username"),
            password=data.get("password"),
            name=data.get("name"),
            email=data.get("email"),
            role=data.get("role") or ROLE_STAFF,
            actor_user_id=g.current_user.id,
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409
    return jsonify(user.to_dict()), 201

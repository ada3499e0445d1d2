# Overview: Flask API routes for per-store invoice templates.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..services import invoice_template_service
from ..services.invoice_template_service import TemplateError
from ..services.tenant_service import TenantAccessError
from ..validation import NotFoundError, ValidationError

invoice_templates_bp = Blueprint("invoice_templates", __name__, url_prefix="/api/invoice-templates")


@invoice_templates_bp.get("")
@require_auth
def list_templates_route():
    templates = invoice_template_service.list_templates(g.store_id)
    return jsonify([t.to_dict() for t in templates])


@invoice_templates_bp.get("/default/<int:store_id>")
@require_auth
def default_template_route(store_id: int):
    if store_id != g.store_id:
        return jsonify({"message": "You don't have permission to access this store's templates"}), 403
    template = invoice_template_service.get_default_template(store_id)
    if template is None:
        return jsonify({"message": "No default template found"}), 404
    return jsonify(template.to_dict())


@invoice_templates_bp.get("/<int:template_id>")
@require_auth
def get_template_route(template_id: int):
    try:
        template = invoice_template_service.get_template(template_id, g.store_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify(template.to_dict())


@invoice_templates_bp.post("")
@require_auth
def create_template_route():
    """The first template of a store becomes its default."""
    payload = request.get_json(silent=True) or {}
    try:
        template = invoice_template_service.create_template(g.store_id, payload, user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    return jsonify(template.to_dict()), 201


@invoice_templates_bp.put("/<int:template_id>")
@require_auth
def update_template_route(template_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        template = invoice_template_service.update_template(
            template_id, g.store_id, payload, user_id=g.current_user.id
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except TemplateError as e:
        return jsonify({"message": e.message}), 400
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify(template.to_dict())


@invoice_templates_bp.delete("/<int:template_id>")
@require_auth
def delete_template_route(template_id: int):
    try:
        invoice_template_service.delete_template(template_id, g.store_id, user_id=g.current_user.id)
    except TemplateError as e:
        return jsonify({"message": e.message}), 400
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return "", 204


@invoice_templates_bp.post("/<int:template_id>/set-default")
@require_auth
def set_default_template_route(template_id: int):
    try:
        template = invoice_template_service.set_default_template(
            template_id, g.store_id, user_id=g.current_user.id
        )
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify(template.to_dict())

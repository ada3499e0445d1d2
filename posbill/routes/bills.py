# Overview: Flask API routes for bills: creation, reads, status changes, SMS and invoice rendering.

"""
Bill routes.

MULTI-TENANT: store and user come from the session, never from the
payload. A bill id belonging to another store is a 403.

Creating a bill commits bill, items, stock changes and the audit row
together; the SMS receipt is dispatched only after that commit.
"""

from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import billing_service, invoice_template_service, sms_service
from ..services.billing_service import BillError
from ..services.inventory_service import InventoryError
from ..services.tenant_service import TenantAccessError
from ..validation import ConflictError, NotFoundError, ValidationError

bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


@bills_bp.get("")
@require_auth
def list_bills_route():
    bills = billing_service.list_bills(g.store_id)
    return jsonify([b.to_dict_with_customer() for b in bills])


@bills_bp.get("/recent")
@require_auth
def recent_bills_route():
    limit = request.args.get("limit", type=int)
    bills = billing_service.recent_bills(g.store_id, limit)
    return jsonify([b.to_dict_with_customer() for b in bills])


@bills_bp.get("/<int:bill_id>")
@require_auth
def get_bill_route(bill_id: int):
    try:
        bill = billing_service.get_bill(bill_id, g.store_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    return jsonify(bill.to_dict_with_items())


@bills_bp.get("/number/<bill_number>")
@require_auth
def get_bill_by_number_route(bill_number: str):
    try:
        bill = billing_service.get_bill_by_number(g.store_id, bill_number)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    return jsonify(bill.to_dict_with_items())


@bills_bp.post("")
@require_auth
def create_bill_route():
    """
    Create a bill.

    Body: {"bill": {customerId?, subtotal, tax, discount, total, status?, notes?, upiId?, billNumber?},
           "items": [{productId, quantity, price, total?}, ...]}
    """
    data = request.get_json(silent=True) or {}
    try:
        bill = billing_service.create_bill(
            g.store_id,
            g.current_user.id,
            data.get("bill"),
            data.get("items"),
        )
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except (BillError, InventoryError) as e:
        return jsonify({"message": e.message, "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    except ConflictError as e:
        return jsonify({"message": str(e)}), 409

    bill_id = bill.id
    if bill.customer is not None and bill.customer.phone:
        try:
            sms_service.dispatch_bill_sms(current_app._get_current_object(), bill_id, g.current_user.id)
        except Exception:
            # Bill is committed; a dispatch problem must not turn it into an error
            current_app.logger.exception("Failed to dispatch SMS for bill %s", bill_id)

    return jsonify(billing_service.get_bill(bill_id, g.store_id).to_dict_with_items()), 201


@bills_bp.put("/<int:bill_id>/status")
@require_auth
def update_bill_status_route(bill_id: int):
    data = request.get_json(silent=True) or {}
    try:
        bill = billing_service.update_status(bill_id, g.store_id, data.get("status"), user_id=g.current_user.id)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403
    except (BillError, InventoryError) as e:
        return jsonify({"message": e.message, "details": e.details}), 400
    return jsonify(bill.to_dict())


@bills_bp.post("/<int:bill_id>/send-sms")
@require_auth
def send_bill_sms_route(bill_id: int):
    """Resend the SMS receipt for a bill, synchronously."""
    try:
        bill = billing_service.get_bill(bill_id, g.store_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403

    customer = bill.customer
    if customer is None:
        return jsonify({"message": "Bill has no associated customer"}), 400
    if not customer.phone:
        return jsonify({"message": "Customer has no phone number"}), 400

    result = sms_service.send_bill_sms(bill, customer)
    sms_service.record_sms_outcome(bill, customer, result, g.current_user.id)

    if not result.success:
        return jsonify({
            "message": "Failed to send SMS notification",
            "error": result.error_message or "Unknown error",
        }), 500
    return jsonify({"message": "SMS notification sent successfully"}), 200


@bills_bp.get("/<int:bill_id>/invoice")
@require_auth
def render_invoice_route(bill_id: int):
    """
    Printable HTML invoice.

    Query params:
    - templateId: template to use (defaults to the store's default template)
    """
    template_id = request.args.get("templateId", type=int)
    try:
        bill = billing_service.get_bill(bill_id, g.store_id)
        if template_id is not None:
            template = invoice_template_service.get_template(template_id, g.store_id)
        else:
            template = invoice_template_service.get_default_template(g.store_id)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"message": str(e)}), 403

    html = invoice_template_service.render_invoice(bill, template)
    return Response(html, mimetype="text/html")

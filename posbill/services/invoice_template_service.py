# Overview: Per-store invoice templates and HTML invoice rendering.

"""
Invoice Template Service

DEFAULT INVARIANT: once a store has any template, exactly one of them is the
default. The first template created becomes the default; making another one
default clears the previous default in the same transaction; the default can
be neither deleted nor un-defaulted directly.

Every write that can change which template is default first locks the
store row (_lock_store_templates), so two such writes for one store never
interleave, including the very first template of a store.
"""

from __future__ import annotations

from flask import current_app, render_template

from ..extensions import db
from ..models import Bill, InvoiceTemplate, Store
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .activity_service import log_activity
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .tenant_service import get_scoped_or_raise

TEMPLATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "isDefault", "headerHtml", "footerHtml", "styles", "logoUrl"},
    required_on_create={"name"},
)

DEFAULT_HEADER_HTML = "<h1>Invoice</h1><p>Receipt</p>"
DEFAULT_FOOTER_HTML = "<p>Thank you for your business!</p>"

STYLE_DEFAULTS = {
    "primaryColor": "#f3f4f6",
    "secondaryColor": "#ffffff",
    "headerTextColor": "#000000",
    "bodyTextColor": "#374151",
    "footerTextColor": "#6b7280",
    "borderColor": "#e5e7eb",
    "fontFamily": "system-ui, sans-serif",
    "fontSize": "16px",
    "borderStyle": "solid",
    "borderWidth": "1px",
    "borderRadius": "0.375rem",
}

_MAX_STYLE_VALUE = 100
_FORBIDDEN_STYLE_CHARS = set(";{}<>\\")


class TemplateError(Exception):
    """Template rule violation; maps to 400."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _validate_styles(styles) -> dict | None:
    """Only known keys with short plain values, since styles end up inside CSS."""
    if styles is None:
        return None
    errors = []
    cleaned = {}
    for key, value in styles.items():
        if key not in STYLE_DEFAULTS:
            errors.append({"field": f"styles.{key}", "message": f"Unknown style {key}"})
            continue
        if not isinstance(value, str) or len(value) > _MAX_STYLE_VALUE or _FORBIDDEN_STYLE_CHARS & set(value):
            errors.append({"field": f"styles.{key}", "message": f"Invalid value for {key}"})
            continue
        cleaned[key] = value.strip()
    if errors:
        raise ValidationError("Invalid request data", errors=errors)
    return cleaned


def merged_styles(template: InvoiceTemplate | None) -> dict:
    styles = dict(STYLE_DEFAULTS)
    if template is not None and template.styles:
        styles.update({k: v for k, v in template.styles.items() if v})
    return styles


def list_templates(store_id: int) -> list[InvoiceTemplate]:
    return (
        db.session.query(InvoiceTemplate)
        .filter(InvoiceTemplate.store_id == store_id)
        .order_by(InvoiceTemplate.updated_at.desc(), InvoiceTemplate.id.desc())
        .all()
    )


def get_template(template_id: int, store_id: int) -> InvoiceTemplate:
    return get_scoped_or_raise(InvoiceTemplate, template_id, store_id, label="Invoice template")


def get_default_template(store_id: int) -> InvoiceTemplate | None:
    return (
        db.session.query(InvoiceTemplate)
        .filter(InvoiceTemplate.store_id == store_id, InvoiceTemplate.is_default.is_(True))
        .first()
    )


def _lock_store_templates(store_id: int) -> None:
    """Serialize default-template changes for one store."""
    begin_write_transaction()
    lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()


def _clear_default(store_id: int, except_id: int | None = None) -> None:
    q = lock_for_update(
        db.session.query(InvoiceTemplate).filter(
            InvoiceTemplate.store_id == store_id,
            InvoiceTemplate.is_default.is_(True),
        )
    )
    for other in q.all():
        if other.id != except_id:
            other.is_default = False
    db.session.flush()


def create_template(store_id: int, payload: dict, *, user_id: int | None = None) -> InvoiceTemplate:
    patch = validate_payload(model=InvoiceTemplate, payload=payload, policy=TEMPLATE_POLICY, partial=False)
    patch["styles"] = _validate_styles(patch.get("styles"))

    def _op():
        _lock_store_templates(store_id)
        has_default = get_default_template(store_id) is not None
        make_default = bool(patch.get("is_default")) or not has_default
        if make_default and has_default:
            _clear_default(store_id)

        values = dict(patch)
        values["is_default"] = make_default
        values.setdefault("header_html", DEFAULT_HEADER_HTML)
        values.setdefault("footer_html", DEFAULT_FOOTER_HTML)

        template = InvoiceTemplate(store_id=store_id, **values)
        db.session.add(template)
        db.session.flush()

        log_activity(
            action="Invoice template created",
            entity_type="invoice_template",
            entity_id=template.id,
            details=f'Template "{template.name}" created',
            store_id=store_id,
            user_id=user_id,
        )
        db.session.commit()
        return template

    return run_with_retry(_op)


def update_template(template_id: int, store_id: int, payload: dict, *, user_id: int | None = None) -> InvoiceTemplate:
    patch = validate_payload(model=InvoiceTemplate, payload=payload, policy=TEMPLATE_POLICY, partial=True)
    if "styles" in patch:
        patch["styles"] = _validate_styles(patch["styles"])

    def _op():
        _lock_store_templates(store_id)
        template = get_scoped_or_raise(InvoiceTemplate, template_id, store_id, label="Invoice template", lock=True)

        if "is_default" in patch:
            if patch["is_default"] and not template.is_default:
                _clear_default(store_id, except_id=template.id)
            elif not patch["is_default"] and template.is_default:
                raise TemplateError("Cannot unset the default template; set another template as default instead")

        for key, value in patch.items():
            setattr(template, key, value)

        log_activity(
            action="Invoice template updated",
            entity_type="invoice_template",
            entity_id=template.id,
            details=f'Template "{template.name}" updated',
            store_id=store_id,
            user_id=user_id,
        )
        db.session.commit()
        return template

    return run_with_retry(_op)


def delete_template(template_id: int, store_id: int, *, user_id: int | None = None) -> None:
    def _op():
        _lock_store_templates(store_id)
        template = get_scoped_or_raise(InvoiceTemplate, template_id, store_id, label="Invoice template", lock=True)
        if template.is_default:
            raise TemplateError("Cannot delete the default template")

        log_activity(
            action="Invoice template deleted",
            entity_type="invoice_template",
            entity_id=template.id,
            details=f'Template "{template.name}" deleted',
            store_id=store_id,
            user_id=user_id,
        )
        db.session.delete(template)
        db.session.commit()

    run_with_retry(_op)


def set_default_template(template_id: int, store_id: int, *, user_id: int | None = None) -> InvoiceTemplate:
    """Make template_id the store's only default, in one transaction."""

    def _op():
        _lock_store_templates(store_id)
        template = get_scoped_or_raise(InvoiceTemplate, template_id, store_id, label="Invoice template", lock=True)
        _clear_default(store_id, except_id=template.id)
        template.is_default = True

        log_activity(
            action="Invoice template set as default",
            entity_type="invoice_template",
            entity_id=template.id,
            details=f'Template "{template.name}" set as default',
            store_id=store_id,
            user_id=user_id,
        )
        db.session.commit()
        return template

    return run_with_retry(_op)


def render_invoice(bill: Bill, template: InvoiceTemplate | None = None) -> str:
    """
    Render a bill as a standalone HTML page.

    Header and footer HTML are store-authored and inserted as-is; everything
    else is escaped by Jinja2.
    """
    return render_template(
        "invoice.html",
        bill=bill,
        store=bill.store,
        customer=bill.customer,
        items=list(bill.items),
        template=template,
        header_html=template.header_html if template else None,
        footer_html=template.footer_html if template else None,
        logo_url=template.logo_url if template else None,
        styles=merged_styles(template),
        currency=current_app.config.get("CURRENCY_SYMBOL", "₹"),
    )

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class InvoiceTemplate(db.Model):
    """
    Per-store styling and HTML fragments for printed invoices.

    Exactly one template per store is the default once any exists. The
    invariant is kept by invoice_template_service, which swaps defaults
    inside a single transaction.
    """
    __tablename__ = "invoice_templates"
    __table_args__ = (
        db.Index("ix_invoice_templates_store_default", "store_id", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    header_html = db.Column(db.Text, nullable=True)
    footer_html = db.Column(db.Text, nullable=True)
    # primaryColor, fontFamily, borderStyle, ...
    styles = db.Column(db.JSON, nullable=True)
    logo_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("invoice_templates", lazy=True))

    def __repr__(self) -> str:
        return f"<InvoiceTemplate id={self.id} name={self.name!r} default={self.is_default}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "name": self.name,
            "isDefault": self.is_default,
            "headerHtml": self.header_html,
            "footerHtml": self.footer_html,
            "styles": self.styles or {},
            "logoUrl": self.logo_url,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

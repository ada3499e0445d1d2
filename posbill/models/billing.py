from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z

STATUS_PAID = "paid"
STATUS_PENDING = "pending"
STATUS_CANCELLED = "cancelled"
VALID_BILL_STATUSES = {STATUS_PAID, STATUS_PENDING, STATUS_CANCELLED}


class Bill(db.Model):
    """
    Bill (invoice) header.

    Amounts are computed by the till and stored as submitted. Items carry
    their own price/total snapshots, so later product price changes never
    alter a historical bill.
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.UniqueConstraint("store_id", "bill_number", name="uq_bills_store_number"),
        db.Index("ix_bills_store_status_created", "store_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    bill_number = db.Column(db.String(64), nullable=False)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    tax = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PAID, index=True)
    notes = db.Column(db.Text, nullable=True)
    upi_id = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("bills", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("bills", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "BillItem",
        backref="bill",
        lazy=True,
        order_by="BillItem.id",
    )

    def __repr__(self) -> str:
        return f"<Bill id={self.id} number={self.bill_number!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "customerId": self.customer_id,
            "userId": self.user_id,
            "billNumber": self.bill_number,
            "subtotal": money_str(self.subtotal),
            "tax": money_str(self.tax),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "status": self.status,
            "notes": self.notes,
            "upiId": self.upi_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_dict_with_customer(self) -> dict:
        data = self.to_dict()
        data["customer"] = self.customer.to_dict() if self.customer else None
        return data

    def to_dict_with_items(self) -> dict:
        data = self.to_dict_with_customer()
        data["items"] = [item.to_dict_with_product() for item in self.items]
        data["store"] = self.store.to_dict() if self.store else None
        data["user"] = self.user.to_dict() if self.user else None
        return data


class BillItem(db.Model):
    """Line item on a bill; price and total are snapshots at sale time."""
    __tablename__ = "bill_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "billId": self.bill_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": money_str(self.price),
            "total": money_str(self.total),
        }

    def to_dict_with_product(self) -> dict:
        data = self.to_dict()
        data["product"] = self.product.to_dict() if self.product else None
        return data


class DocumentSequence(db.Model):
    """
    Per-store document counters; one row per (store, document type).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", name="uq_doc_sequences_store_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

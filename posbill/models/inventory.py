from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z

TX_PURCHASE = "purchase"
TX_SALE = "sale"
TX_ADJUSTMENT = "adjustment"
VALID_TX_TYPES = {TX_PURCHASE, TX_SALE, TX_ADJUSTMENT}


class Product(db.Model):
    """
    Product master data with a stored stock quantity.

    MULTI-TENANT: Products are scoped to stores via store_id.

    Stock is a mutable counter. Every change to it is paired with an
    InventoryTransaction row written in the same DB transaction, so the
    transaction history always explains the current number.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        db.UniqueConstraint("store_id", "barcode", name="uq_products_store_barcode"),
        db.Index("ix_products_store_name", "store_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True, index=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    cost = db.Column(db.Numeric(10, 2), nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=5)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} store_id={self.store_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock < (self.min_stock_level or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "name": self.name,
            "sku": self.sku,
            "barcode": self.barcode,
            "description": self.description,
            "category": self.category,
            "price": money_str(self.price),
            "cost": money_str(self.cost),
            "stock": self.stock,
            "minStockLevel": self.min_stock_level,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """Signed stock delta with a reason code (purchase/sale/adjustment)."""
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_store_product_created", "store_id", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)

    # Bill number or other reference
    reference = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("inventory_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "productId": self.product_id,
            "userId": self.user_id,
            "quantity": self.quantity,
            "type": self.type,
            "reference": self.reference,
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
        }

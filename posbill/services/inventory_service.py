# Overview: Stock movements; every change to Product.stock goes through here or billing_service.

"""
Inventory Invariants

- Product.stock is a stored counter; each change to it is paired with an
  InventoryTransaction row in the same DB transaction.
- quantity on a transaction is signed: purchases add, sales subtract,
  adjustments may go either way.
- Stock may not go negative unless ALLOW_NEGATIVE_STOCK is set.
- Each manual stock change appends one ActivityLog row in the same transaction.
"""

from __future__ import annotations

from flask import current_app, has_app_context

from ..extensions import db
from ..models import InventoryTransaction, Product
from ..models.inventory import TX_PURCHASE, TX_SALE, VALID_TX_TYPES
from ..validation import ValidationError
from .activity_service import log_activity
from .concurrency import run_with_retry
from .tenant_service import get_scoped_or_raise


class InventoryError(Exception):
    """Business rule violation on a stock movement (e.g., insufficient stock)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


def negative_stock_allowed() -> bool:
    if not has_app_context():
        return False
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", False))


def lock_product(product_id: int, store_id: int) -> Product:
    """Load a product FOR UPDATE, enforcing store ownership."""
    return get_scoped_or_raise(Product, product_id, store_id, label="Product", lock=True)


def apply_stock_delta(product: Product, delta: int) -> None:
    """
    Apply a signed delta to a locked product's stock.

    Raises:
        InventoryError: result would be negative and negative stock is not allowed
    """
    new_stock = (product.stock or 0) + delta
    if delta < 0 and new_stock < 0 and not negative_stock_allowed():
        raise InventoryError(
            f"Insufficient stock for {product.name}",
            details={
                "productId": product.id,
                "available": product.stock,
                "requested": -delta,
            },
        )
    # Expression update so the database applies the delta to the current value
    product.stock = Product.stock + delta
    db.session.flush()
    db.session.refresh(product, attribute_names=["stock"])


def _normalize_quantity(tx_type: str, quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        if isinstance(quantity, str) and quantity.strip().lstrip("-").isdigit():
            quantity = int(quantity.strip())
        else:
            raise ValidationError(
                "Invalid request data",
                errors=[{"field": "quantity", "message": "quantity must be an integer"}],
            )
    if quantity == 0:
        raise ValidationError(
            "Invalid request data",
            errors=[{"field": "quantity", "message": "quantity must not be zero"}],
        )
    if tx_type == TX_SALE:
        return -abs(quantity)
    if tx_type == TX_PURCHASE:
        return abs(quantity)
    return quantity


def record_stock_change(store_id: int, payload: dict, *, user_id: int | None = None) -> InventoryTransaction:
    """
    Record a manual stock movement.

    payload: {productId, quantity, type, reference?, notes?}
    Sale quantities are stored negative and purchase quantities positive
    whatever sign the client sent.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors = []
    product_id = payload.get("productId")
    if isinstance(product_id, bool) or not isinstance(product_id, int):
        errors.append({"field": "productId", "message": "productId must be an integer"})
    tx_type = payload.get("type")
    if tx_type not in VALID_TX_TYPES:
        errors.append({"field": "type", "message": "type must be purchase, sale, or adjustment"})
    if errors:
        raise ValidationError("Invalid request data", errors=errors)

    quantity = _normalize_quantity(tx_type, payload.get("quantity"))
    reference = payload.get("reference")
    notes = payload.get("notes")

    def _op():
        product = lock_product(product_id, store_id)
        apply_stock_delta(product, quantity)

        tx = InventoryTransaction(
            store_id=store_id,
            product_id=product.id,
            user_id=user_id,
            quantity=quantity,
            type=tx_type,
            reference=str(reference)[:64] if reference else None,
            notes=str(notes)[:255] if notes else None,
        )
        db.session.add(tx)
        db.session.flush()

        log_activity(
            action="Inventory updated",
            entity_type="product",
            entity_id=product.id,
            details=f"{tx_type} of {quantity} for {product.name}; stock now {product.stock}",
            store_id=store_id,
            user_id=user_id,
        )
        db.session.commit()
        return tx

    return run_with_retry(_op)


def list_transactions(store_id: int, product_id: int | None = None) -> list[InventoryTransaction]:
    """Store transactions newest first, optionally for one product."""
    q = db.session.query(InventoryTransaction).filter(InventoryTransaction.store_id == store_id)
    if product_id is not None:
        get_scoped_or_raise(Product, product_id, store_id, label="Product")
        q = q.filter(InventoryTransaction.product_id == product_id)
    return q.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc()).all()

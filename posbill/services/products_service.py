"""
Products Service

MULTI-TENANT: Every query filters on the caller's store_id, and single-row
operations go through get_scoped_or_raise so another store's product is a
403 rather than a silent miss.

Stock is not writable through product updates. It changes only through
inventory transactions (inventory_service) and bills (billing_service), so
the transaction history always explains the current number.
"""
from __future__ import annotations

import io
import re
import time

import barcode
from barcode.writer import SVGWriter
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Bill, BillItem, InventoryTransaction, Product
from ..models.billing import STATUS_PAID
from ..models.inventory import TX_PURCHASE
from ..validation import ConflictError, ModelValidationPolicy, validate_payload
from .activity_service import log_activity
from .tenant_service import get_scoped_or_raise

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "sku",
        "barcode",
        "description",
        "category",
        "price",
        "cost",
        "stock",
        "minStockLevel",
    },
    required_on_create={"name", "sku", "price", "cost"},
    non_negative={"price", "cost", "stock", "minStockLevel"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock"},
    non_negative=PRODUCT_POLICY.non_negative - {"stock"},
)

DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100

_SKU_CLEAN_RE = re.compile(r"[^a-zA-Z0-9]")


def generate_barcode_value(sku: str, store_id: int | None) -> str:
    """
    Build a Code128-safe barcode value: S<storeId><sku alnum><6-digit time>.

    The time suffix is the last six digits of the epoch in milliseconds.
    """
    store_prefix = f"S{store_id}" if store_id else "S0"
    clean_sku = _SKU_CLEAN_RE.sub("", sku or "")
    suffix = str(int(time.time() * 1000))[-6:]
    return f"{store_prefix}{clean_sku}{suffix}"


def barcode_svg(value: str) -> bytes:
    """Render value as a Code128 SVG image."""
    barcode_class = barcode.get_barcode_class("code128")
    barcode_instance = barcode_class(value, writer=SVGWriter())

    buffer = io.BytesIO()
    barcode_instance.write(
        buffer,
        options={
            "module_width": 0.3,
            "module_height": 15.0,
            "quiet_zone": 6.5,
            "font_size": 10,
            "text_distance": 5.0,
            "background": "white",
            "foreground": "black",
        },
    )
    return buffer.getvalue()


def _clamp_limit(limit: int | None) -> int:
    return min(max(limit or DEFAULT_LIST_LIMIT, 1), MAX_LIST_LIMIT)


def _ensure_unique(store_id: int, *, sku: str | None, barcode_value: str | None, exclude_id: int | None = None) -> None:
    if sku is not None:
        q = db.session.query(Product.id).filter(Product.store_id == store_id, Product.sku == sku)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise ConflictError("SKU already exists in this store")
    if barcode_value:
        q = db.session.query(Product.id).filter(Product.store_id == store_id, Product.barcode == barcode_value)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first():
            raise ConflictError("Barcode already exists in this store")


def list_products(store_id: int, *, search: str | None = None, category: str | None = None) -> list[Product]:
    """Store products ordered by name; search matches name, SKU or barcode."""
    q = db.session.query(Product).filter(Product.store_id == store_id)
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.sku.ilike(like), Product.barcode.ilike(like)))
    if category and category.strip():
        q = q.filter(Product.category == category.strip())
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int, store_id: int) -> Product:
    return get_scoped_or_raise(Product, product_id, store_id, label="Product")


def find_by_barcode(store_id: int, code: str) -> Product | None:
    if not code:
        return None
    return (
        db.session.query(Product)
        .filter(Product.store_id == store_id, Product.barcode == code.strip())
        .first()
    )


def create_product(store_id: int, payload: dict, *, user_id: int | None = None) -> Product:
    """
    Create a product. A barcode is generated when none is given, and any
    opening stock is recorded as a purchase transaction.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)

    if not patch.get("barcode"):
        patch["barcode"] = generate_barcode_value(patch["sku"], store_id)
    _ensure_unique(store_id, sku=patch["sku"], barcode_value=patch["barcode"])

    opening_stock = patch.pop("stock", None) or 0
    product = Product(store_id=store_id, stock=opening_stock, **patch)
    db.session.add(product)
    db.session.flush()

    if opening_stock:
        db.session.add(InventoryTransaction(
            store_id=store_id,
            product_id=product.id,
            user_id=user_id,
            quantity=opening_stock,
            type=TX_PURCHASE,
            notes="Opening stock",
        ))

    log_activity(
        action="Product created",
        entity_type="product",
        entity_id=product.id,
        details=f"Created product {product.name} ({product.sku})",
        store_id=store_id,
        user_id=user_id,
    )
    db.session.commit()
    return product


def update_product(product_id: int, store_id: int, payload: dict, *, user_id: int | None = None) -> Product:
    product = get_product(product_id, store_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    if patch.get("barcode") == "":
        patch["barcode"] = None

    _ensure_unique(
        store_id,
        sku=patch.get("sku"),
        barcode_value=patch.get("barcode"),
        exclude_id=product.id,
    )

    for key, value in patch.items():
        setattr(product, key, value)

    log_activity(
        action="Product updated",
        entity_type="product",
        entity_id=product.id,
        details=f"Updated product {product.name}",
        store_id=store_id,
        user_id=user_id,
    )
    db.session.commit()
    return product


def delete_product(product_id: int, store_id: int, *, user_id: int | None = None) -> None:
    """Delete a product; products that appear on bills are kept for history."""
    product = get_product(product_id, store_id)

    on_bills = db.session.query(BillItem.id).filter(BillItem.product_id == product.id).first()
    if on_bills:
        raise ConflictError("Product appears on bills and cannot be deleted")

    db.session.query(InventoryTransaction).filter(
        InventoryTransaction.product_id == product.id
    ).delete(synchronize_session=False)

    log_activity(
        action="Product deleted",
        entity_type="product",
        entity_id=product.id,
        details=f"Deleted product {product.name} ({product.sku})",
        store_id=store_id,
        user_id=user_id,
    )
    db.session.delete(product)
    db.session.commit()


def low_stock_products(store_id: int, limit: int | None = None) -> list[Product]:
    """Products with stock below their minimum level, emptiest first."""
    return (
        db.session.query(Product)
        .filter(Product.store_id == store_id, Product.stock < Product.min_stock_level)
        .order_by(Product.stock.asc(), Product.id.asc())
        .limit(_clamp_limit(limit))
        .all()
    )


def top_selling_products(store_id: int, limit: int | None = None) -> list[dict]:
    """Units sold per product across paid bills, best sellers first."""
    units_sold = func.sum(BillItem.quantity).label("units_sold")
    rows = (
        db.session.query(Product, units_sold)
        .join(BillItem, BillItem.product_id == Product.id)
        .join(Bill, Bill.id == BillItem.bill_id)
        .filter(Bill.store_id == store_id, Bill.status == STATUS_PAID)
        .group_by(Product.id)
        .order_by(units_sold.desc(), Product.id.asc())
        .limit(_clamp_limit(limit))
        .all()
    )
    return [{"product": product.to_dict(), "unitsSold": int(units or 0)} for product, units in rows]

# Overview: Bill creation (one transaction for bill, items, stock and audit) and bill reads.

"""
Billing Service

Bill creation is a single unit of work:
- bill header row (number allocated per store when not supplied)
- one BillItem per line, with price/total snapshots
- stock decremented on each product, row-locked
- one `sale` InventoryTransaction per line (quantity = -line quantity,
  reference = bill number)
- one "Bill created" ActivityLog row

Either all of it commits or none of it does. SMS receipts are sent by the
caller after the commit (see sms_service.dispatch_bill_sms).

Header amounts are stored as submitted by the till.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Bill, BillItem, Customer, InventoryTransaction, Store
from ..models.billing import STATUS_CANCELLED, STATUS_PAID, VALID_BILL_STATUSES
from ..models.inventory import TX_ADJUSTMENT, TX_SALE
from ..money import to_money
from ..validation import ConflictError, NotFoundError, ValidationError, parse_amount, parse_positive_int
from .activity_service import log_activity
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .document_service import next_document_number
from .inventory_service import apply_stock_delta, lock_product
from .tenant_service import get_scoped_or_raise

BILL_DOCUMENT_TYPE = "bill"
BILL_NUMBER_PREFIX = "INV"

DEFAULT_RECENT_LIMIT = 5
MAX_RECENT_LIMIT = 100


class BillError(Exception):
    """Bill rule violation; maps to 400."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


def _optional_text(value, name: str, max_len: int | None, errors: list) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list, bool)):
        errors.append({"field": name, "message": f"{name} must be a string"})
        return None
    text = str(value).strip()
    if max_len is not None and len(text) > max_len:
        errors.append({"field": name, "message": f"{name} must be at most {max_len} characters"})
        return None
    return text or None


def parse_bill_header(header) -> dict:
    """Validate the bill header; returns column-keyed values."""
    if not isinstance(header, dict):
        raise ValidationError("Invalid request data", errors=[{"field": "bill", "message": "bill is required"}])

    errors: list[dict] = []
    parsed: dict = {}

    for name in ("subtotal", "tax", "total"):
        if header.get(name) is None:
            errors.append({"field": f"bill.{name}", "message": f"{name} is required"})
            continue
        try:
            parsed[name] = parse_amount(header[name], name)
        except ValidationError as e:
            errors.append({"field": f"bill.{name}", "message": e.message})

    try:
        parsed["discount"] = parse_amount(header.get("discount") or 0, "discount")
    except ValidationError as e:
        errors.append({"field": "bill.discount", "message": e.message})

    status = header.get("status") or STATUS_PAID
    if status not in VALID_BILL_STATUSES:
        errors.append({"field": "bill.status", "message": "status must be paid, pending, or cancelled"})
    elif status == STATUS_CANCELLED:
        # Cancelling restocks, so a bill must exist before it can be cancelled
        errors.append({"field": "bill.status", "message": "A new bill cannot be cancelled"})
    parsed["status"] = status

    customer_id = header.get("customerId")
    if customer_id is not None:
        try:
            customer_id = parse_positive_int(customer_id, "customerId")
        except ValidationError as e:
            errors.append({"field": "bill.customerId", "message": e.message})
    parsed["customer_id"] = customer_id

    parsed["notes"] = _optional_text(header.get("notes"), "notes", None, errors)
    parsed["upi_id"] = _optional_text(header.get("upiId"), "upiId", 128, errors)
    parsed["bill_number"] = _optional_text(header.get("billNumber"), "billNumber", 64, errors)

    if errors:
        raise ValidationError("Invalid request data", errors=errors)
    return parsed


def parse_bill_items(items) -> list[dict]:
    """Validate bill lines; a missing line total is price * quantity."""
    if not isinstance(items, list) or not items:
        raise ValidationError(
            "Invalid request data",
            errors=[{"field": "items", "message": "At least one item is required"}],
        )

    errors: list[dict] = []
    parsed: list[dict] = []
    for idx, item in enumerate(items):
        prefix = f"items[{idx}]"
        if not isinstance(item, dict):
            errors.append({"field": prefix, "message": "item must be an object"})
            continue
        line: dict = {}
        for name, parser in (
            ("productId", lambda v: parse_positive_int(v, "productId")),
            ("quantity", lambda v: parse_positive_int(v, "quantity")),
            ("price", lambda v: parse_amount(v, "price")),
        ):
            if item.get(name) is None:
                errors.append({"field": f"{prefix}.{name}", "message": f"{name} is required"})
                continue
            try:
                line[name] = parser(item[name])
            except ValidationError as e:
                errors.append({"field": f"{prefix}.{name}", "message": e.message})

        if item.get("total") is not None:
            try:
                line["total"] = parse_amount(item["total"], "total")
            except ValidationError as e:
                errors.append({"field": f"{prefix}.total", "message": e.message})
        elif "price" in line and "quantity" in line:
            line["total"] = to_money(line["price"] * line["quantity"])

        parsed.append(line)

    if errors:
        raise ValidationError("Invalid request data", errors=errors)
    return parsed


def create_bill(store_id: int, user_id: int | None, header: dict, items: list) -> Bill:
    """
    Create a bill with its items, decrementing stock, in one transaction.

    Raises:
        ValidationError: malformed header or items
        BillError: unknown product/customer, or insufficient stock
        TenantAccessError: product or customer of another store
        ConflictError: client-supplied bill number already used
    """
    parsed_header = parse_bill_header(header)
    parsed_items = parse_bill_items(items)

    def _op():
        begin_write_transaction()

        store = db.session.get(Store, store_id)

        customer_id = parsed_header["customer_id"]
        if customer_id is not None:
            try:
                get_scoped_or_raise(Customer, customer_id, store_id, label="Customer")
            except NotFoundError:
                raise BillError("Customer not found", details={"customerId": customer_id})

        bill_number = parsed_header["bill_number"]
        if bill_number:
            taken = db.session.query(Bill.id).filter_by(store_id=store_id, bill_number=bill_number).first()
            if taken:
                raise ConflictError(f"Bill number {bill_number} already exists")
        else:
            bill_number = next_document_number(
                store_id=store_id,
                document_type=BILL_DOCUMENT_TYPE,
                prefix=BILL_NUMBER_PREFIX,
            )

        bill = Bill(
            store_id=store_id,
            customer_id=customer_id,
            user_id=user_id,
            bill_number=bill_number,
            subtotal=parsed_header["subtotal"],
            tax=parsed_header["tax"],
            discount=parsed_header["discount"],
            total=parsed_header["total"],
            status=parsed_header["status"],
            notes=parsed_header["notes"],
            upi_id=parsed_header["upi_id"] or (store.upi_id if store else None),
        )
        db.session.add(bill)
        db.session.flush()

        for line in parsed_items:
            try:
                product = lock_product(line["productId"], store_id)
            except NotFoundError:
                raise BillError("Product not found", details={"productId": line["productId"]})

            apply_stock_delta(product, -line["quantity"])

            db.session.add(BillItem(
                bill_id=bill.id,
                product_id=product.id,
                quantity=line["quantity"],
                price=line["price"],
                total=line["total"],
            ))
            db.session.add(InventoryTransaction(
                store_id=store_id,
                product_id=product.id,
                user_id=user_id,
                quantity=-line["quantity"],
                type=TX_SALE,
                reference=bill_number,
            ))

        log_activity(
            action="Bill created",
            entity_type="bill",
            entity_id=bill.id,
            details=f"Bill {bill_number} created with {len(parsed_items)} item(s), total {bill.total}",
            store_id=store_id,
            user_id=user_id,
        )

        db.session.commit()
        return bill

    return run_with_retry(_op)


def get_bill(bill_id: int, store_id: int) -> Bill:
    return get_scoped_or_raise(Bill, bill_id, store_id, label="Bill")


def get_bill_by_number(store_id: int, bill_number: str) -> Bill:
    bill = db.session.query(Bill).filter_by(store_id=store_id, bill_number=bill_number).first()
    if bill is None:
        raise NotFoundError("Bill not found")
    return bill


def list_bills(store_id: int) -> list[Bill]:
    return (
        db.session.query(Bill)
        .filter(Bill.store_id == store_id)
        .order_by(Bill.created_at.desc(), Bill.id.desc())
        .all()
    )


def recent_bills(store_id: int, limit: int | None = None) -> list[Bill]:
    limit = min(max(limit or DEFAULT_RECENT_LIMIT, 1), MAX_RECENT_LIMIT)
    return (
        db.session.query(Bill)
        .filter(Bill.store_id == store_id)
        .order_by(Bill.created_at.desc(), Bill.id.desc())
        .limit(limit)
        .all()
    )


def update_status(bill_id: int, store_id: int, status, *, user_id: int | None = None) -> Bill:
    """
    Change a bill's status.

    Cancelling returns every line's quantity to stock with an `adjustment`
    transaction in the same DB transaction. Cancelled bills are final.
    """
    if status not in VALID_BILL_STATUSES:
        raise ValidationError(
            "Invalid request data",
            errors=[{"field": "status", "message": "status must be paid, pending, or cancelled"}],
        )

    def _op():
        bill = get_scoped_or_raise(Bill, bill_id, store_id, label="Bill", lock=True)
        if bill.status == STATUS_CANCELLED:
            raise BillError("Cancelled bills cannot change status")

        previous = bill.status
        if status == STATUS_CANCELLED:
            items = lock_for_update(db.session.query(BillItem).filter_by(bill_id=bill.id)).all()
            for item in items:
                product = lock_product(item.product_id, store_id)
                apply_stock_delta(product, item.quantity)
                db.session.add(InventoryTransaction(
                    store_id=store_id,
                    product_id=product.id,
                    user_id=user_id,
                    quantity=item.quantity,
                    type=TX_ADJUSTMENT,
                    reference=bill.bill_number,
                    notes="Bill cancelled",
                ))

        bill.status = status
        log_activity(
            action="Bill status updated",
            entity_type="bill",
            entity_id=bill.id,
            details=f"Bill {bill.bill_number} status changed from {previous} to {status}",
            store_id=store_id,
            user_id=user_id,
        )
        db.session.commit()
        return bill

    return run_with_retry(_op)

# Overview: Store-scoped customer records.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Bill, Customer
from ..validation import ConflictError, ModelValidationPolicy, validate_payload
from .activity_service import log_activity
from .tenant_service import get_scoped_or_raise

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address"},
    required_on_create={"name"},
)


def list_customers(store_id: int, search: str | None = None) -> list[Customer]:
    """Customers by name; search is a case-insensitive match on name, email or phone."""
    q = db.session.query(Customer).filter(Customer.store_id == store_id)
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Customer.name.ilike(like),
            Customer.email.ilike(like),
            Customer.phone.ilike(like),
        ))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int, store_id: int) -> Customer:
    return get_scoped_or_raise(Customer, customer_id, store_id, label="Customer")


def create_customer(store_id: int, payload: dict, *, user_id: int | None = None) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)

    customer = Customer(store_id=store_id, **patch)
    db.session.add(customer)
    db.session.flush()

    log_activity(
        action="Customer created",
        entity_type="customer",
        entity_id=customer.id,
        details=f"Created customer {customer.name}",
        store_id=store_id,
        user_id=user_id,
    )
    db.session.commit()
    return customer


def update_customer(customer_id: int, store_id: int, payload: dict, *, user_id: int | None = None) -> Customer:
    customer = get_customer(customer_id, store_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)

    for key, value in patch.items():
        setattr(customer, key, value)

    log_activity(
        action="Customer updated",
        entity_type="customer",
        entity_id=customer.id,
        details=f"Updated customer {customer.name}",
        store_id=store_id,
        user_id=user_id,
    )
    db.session.commit()
    return customer


def delete_customer(customer_id: int, store_id: int, *, user_id: int | None = None) -> None:
    customer = get_customer(customer_id, store_id)

    if db.session.query(Bill.id).filter(Bill.customer_id == customer.id).first():
        raise ConflictError("Customer has bills and cannot be deleted")

    log_activity(
        action="Customer deleted",
        entity_type="customer",
        entity_id=customer.id,
        details=f"Deleted customer {customer.name}",
        store_id=store_id,
        user_id=user_id,
    )
    db.session.delete(customer)
    db.session.commit()

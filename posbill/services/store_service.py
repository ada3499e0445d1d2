from __future__ import annotations

from ..extensions import db
from ..models import Store, User
from ..validation import ModelValidationPolicy, validate_payload
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry

# code is what staff type at login; it never changes after registration
STORE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "upiId", "taxRate"},
    non_negative={"taxRate"},
)


class StoreError(Exception):
    """Raised when store operations fail."""


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise StoreError("Store not found")
    return store


def update_store(store_id: int, payload: dict, *, user_id: int | None = None) -> Store:
    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=True)
    if "tax_rate" in patch and patch["tax_rate"] is not None and patch["tax_rate"] > 100:
        raise StoreError("taxRate must be between 0 and 100")

    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise StoreError("Store not found")

        for key, value in patch.items():
            setattr(store, key, value)

        log_activity(
            action="Store updated",
            entity_type="store",
            entity_id=store.id,
            details=f"Store settings updated ({', '.join(sorted(patch)) or 'no changes'})",
            store_id=store.id,
            user_id=user_id,
        )
        db.session.commit()
        return store

    return run_with_retry(_op)


def list_store_users(store_id: int) -> list[User]:
    return (
        db.session.query(User)
        .filter(User.store_id == store_id)
        .order_by(User.username.asc())
        .all()
    )


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.code.asc()).all()

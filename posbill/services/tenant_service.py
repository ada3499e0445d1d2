"""
Tenant Service: Store Scoping Helpers

Every authenticated request is scoped to the user's store, and
cross-store access must be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.store_id set (see @require_auth)
2. Entity IDs from client input are resolved, then checked against g.store_id
3. A missing entity is a 404; an entity owned by another store is a 403
4. Cross-store access attempts are logged
"""

from __future__ import annotations

from typing import TypeVar

from flask import current_app, g, has_request_context, request

from ..extensions import db
from ..validation import NotFoundError
from .concurrency import lock_for_update

T = TypeVar("T")


class TenantAccessError(Exception):
    """Raised when cross-store access is attempted."""


def _log_cross_tenant_attempt(entity_type: str, entity_id: int, owner_store_id: int, store_id: int) -> None:
    if not has_request_context():
        return
    user = getattr(g, "current_user", None)
    current_app.logger.warning(
        "Cross-store access denied: user=%s store=%s %s=%s owner_store=%s path=%s",
        user.id if user else None,
        store_id,
        entity_type,
        entity_id,
        owner_store_id,
        request.path,
    )


def get_scoped_or_raise(model: type[T], entity_id: int, store_id: int, *, label: str, lock: bool = False) -> T:
    """
    Load an entity by id and require it to belong to store_id.

    Raises:
        NotFoundError: no row with that id
        TenantAccessError: row exists but belongs to another store
    """
    query = db.session.query(model).filter_by(id=entity_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    entity = query.first()
    if entity is None:
        raise NotFoundError(f"{label} not found")
    if entity.store_id != store_id:
        _log_cross_tenant_attempt(label.lower(), entity_id, entity.store_id, store_id)
        raise TenantAccessError(f"You don't have permission to access this {label.lower()}")
    return entity

# Overview: Append-only activity log writes and reads.

from __future__ import annotations

from ..extensions import db
from ..models import ActivityLog

DEFAULT_LIMIT = 10
MAX_LIMIT = 200


def log_activity(
    *,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    details: str | None = None,
    store_id: int | None = None,
    user_id: int | None = None,
    commit: bool = False,
) -> ActivityLog:
    """
    Append an activity row to the current session.

    By default nothing is committed: the row rides along with the caller's
    transaction so it is persisted if and only if the change it describes is.
    """
    entry = ActivityLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        store_id=store_id,
        user_id=user_id,
    )
    db.session.add(entry)
    if commit:
        db.session.commit()
    return entry


def list_activity(store_id: int, limit: int | None = None) -> list[ActivityLog]:
    limit = min(max(limit or DEFAULT_LIMIT, 1), MAX_LIMIT)
    return (
        db.session.query(ActivityLog)
        .filter(ActivityLog.store_id == store_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )

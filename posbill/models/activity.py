from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ActivityLog(db.Model):
    """
    Free-text audit trail of store activity.

    IMMUTABLE: Never update or delete. Append-only.
    Rows are written inside the same DB transaction as the change they
    describe, except SMS outcomes which are recorded after delivery.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(64), nullable=False)
    # product, customer, bill, inventory, invoice_template, store, user
    entity_type = db.Column(db.String(32), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "userId": self.user_id,
            "action": self.action,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "details": self.details,
            "createdAt": to_utc_z(self.created_at),
        }

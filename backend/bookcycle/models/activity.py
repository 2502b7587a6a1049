from __future__ import annotations

from ..extensions import db
from bookcycle.time_utils import to_utc_z


class ActivityLog(db.Model):
    """
    Append-only audit trail of administrative actions.

    Written inside the same transaction as the change it describes, so a
    rolled-back operation leaves no activity row behind.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }

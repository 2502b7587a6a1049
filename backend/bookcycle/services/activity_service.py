# Overview: Service-layer operations for the activity log; append-only audit trail.

from __future__ import annotations

from ..extensions import db
from ..models import ActivityLog
from .store import read_guard

"""
Activity Log Invariants

- Append-only: rows are never updated or deleted by the application.
- log_activity() only adds to the session; the caller's unit of work commits
  it together with the change being recorded.
"""

CREATE_SHEET = "CREATE_SHEET"
DELETE_SHEET = "DELETE_SHEET"
MOVE_TO_COMPARE = "MOVE_TO_COMPARE"
CONSOLIDATE_REQUESTS = "CONSOLIDATE_REQUESTS"
UPDATE_PRICES = "UPDATE_PRICES"
FINALIZE_SELECTED_COMPARISON = "FINALIZE_SELECTED_COMPARISON"
FINALIZE_COMPARISON = "FINALIZE_COMPARISON"
MOVE_PURCHASE_BACK = "MOVE_PURCHASE_BACK"
CLOSE_PURCHASE_CYCLE = "CLOSE_PURCHASE_CYCLE"
DELETE_PURCHASE_CYCLE = "DELETE_PURCHASE_CYCLE"
UPDATE_USER_ROLE = "UPDATE_USER_ROLE"


def log_activity(*, user_id: int | None, action: str, description: str | None = None) -> ActivityLog:
    entry = ActivityLog(user_id=user_id, action=action, description=description)
    db.session.add(entry)
    return entry


def list_recent_activity(*, limit: int = 50, action: str | None = None) -> list[ActivityLog]:
    with read_guard("load activity log"):
        q = db.session.query(ActivityLog)
        if action:
            q = q.filter(ActivityLog.action == action)
        return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()

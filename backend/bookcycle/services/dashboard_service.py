# Overview: Service-layer read models for the admin and teacher dashboards.

"""
Dashboard Service

Counts over the live workspace, read in one pass. Nothing here writes.

ADMIN: active teachers, book requests, pending sheets, finalized purchases
(with their grand total) and the latest activity entries.

TEACHER: the teacher's own requests, their assigned sheets still pending,
and their most recent requests.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import BookRequest, FinalizedPurchase, Profile, PurchaseSheet
from ..models.auth import ROLE_TEACHER
from ..models.purchasing import SHEET_PENDING
from ..validation import format_cents
from . import activity_service
from .store import read_guard


RECENT_LIMIT = 5


def admin_summary(*, recent_limit: int = RECENT_LIMIT) -> dict:
    with read_guard("load admin dashboard"):
        teacher_count = (
            db.session.query(func.count(Profile.id))
            .filter(Profile.role == ROLE_TEACHER, Profile.is_active.is_(True))
            .scalar()
        )
        request_count = db.session.query(func.count(BookRequest.id)).scalar()
        pending_sheets = (
            db.session.query(func.count(PurchaseSheet.id))
            .filter(PurchaseSheet.status == SHEET_PENDING)
            .scalar()
        )
        purchase_count, purchase_total = db.session.query(
            func.count(FinalizedPurchase.id),
            func.coalesce(func.sum(FinalizedPurchase.total_amount_cents), 0),
        ).one()

    recent = activity_service.list_recent_activity(limit=recent_limit)
    return {
        "total_teachers": teacher_count,
        "total_requests": request_count,
        "pending_sheets": pending_sheets,
        "finalized_purchases": purchase_count,
        "finalized_total_cents": int(purchase_total),
        "finalized_total": format_cents(int(purchase_total)),
        "recent_activity": recent,
    }


def teacher_summary(teacher_id: int, *, recent_limit: int = RECENT_LIMIT) -> dict:
    with read_guard("load teacher dashboard"):
        request_count = (
            db.session.query(func.count(BookRequest.id))
            .filter(BookRequest.teacher_id == teacher_id)
            .scalar()
        )
        pending_sheets = (
            db.session.query(func.count(PurchaseSheet.id))
            .filter(PurchaseSheet.assigned_to == teacher_id, PurchaseSheet.status == SHEET_PENDING)
            .scalar()
        )
        recent = (
            db.session.query(BookRequest)
            .filter(BookRequest.teacher_id == teacher_id)
            .order_by(BookRequest.created_at.desc(), BookRequest.id.desc())
            .limit(recent_limit)
            .all()
        )
    return {
        "total_requests": request_count,
        "pending_sheets": pending_sheets,
        "recent_requests": recent,
    }

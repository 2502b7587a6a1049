# Overview: Service-layer operations for closing purchase cycles and browsing history.

"""
Purchase Cycle Archive Service

================================================================================
PURPOSE: Close the current purchase cycle by snapshotting the whole live
workspace into history and clearing it for the next cycle
================================================================================

CLOSE SEQUENCE (one transaction):
1. Generate one fresh cycle id (uuid4) for the whole run.
2. Read the full workspace: every finalized purchase (with its request),
   every book request, every purchase sheet. Not scoped to any sheet.
3. Insert the three history batches, each row tagged with the cycle id and
   an original_*_id back-reference. Empty sets are skipped.
4. Flush the history rows, then delete the live rows by the id lists
   gathered in step 2: finalized purchases, price comparisons of the
   gathered requests, book requests, purchase sheets.

Appending history always happens before destroying live rows. Deletes use
the ids read in step 2, never a re-evaluated filter, so rows created after
the snapshot are left alone.

IRREVERSIBLE: history rows are flat copies, not resurrectable live rows.
================================================================================
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError
from ..models import (
    BookRequest,
    BookRequestHistory,
    FinalizedPurchase,
    FinalizedPurchaseHistory,
    PriceComparison,
    PurchaseHistory,
    PurchaseSheet,
)
from ..time_utils import to_utc_z, utcnow
from ..validation import format_cents
from . import activity_service
from .store import read_guard, unit_of_work


logger = logging.getLogger(__name__)


@dataclass
class CycleCloseResult:
    cycle_id: str
    closed_at: object
    sheet_count: int
    request_count: int
    purchase_count: int
    price_comparison_count: int
    total_amount_cents: int

    def to_dict(self) -> dict:
        return {
            "cycle_id": self.cycle_id,
            "closed_at": to_utc_z(self.closed_at),
            "sheets_archived": self.sheet_count,
            "requests_archived": self.request_count,
            "purchases_archived": self.purchase_count,
            "price_comparisons_deleted": self.price_comparison_count,
            "total_amount_cents": self.total_amount_cents,
            "total_amount": format_cents(self.total_amount_cents),
        }


def new_cycle_id() -> str:
    return str(uuid.uuid4())


def _purchase_history_rows(
    cycle_id: str,
    purchases: list[FinalizedPurchase],
    closed_by: int | None,
    closed_at,
) -> list[FinalizedPurchaseHistory]:
    rows = []
    for purchase in purchases:
        req = purchase.book_request
        rows.append(FinalizedPurchaseHistory(
            cycle_id=cycle_id,
            original_purchase_id=purchase.id,
            original_book_request_id=purchase.book_request_id,
            shop_name=purchase.shop_name,
            price_per_unit_cents=purchase.price_per_unit_cents,
            total_amount_cents=purchase.total_amount_cents,
            finalized_by=purchase.finalized_by,
            book_name=req.book_name,
            author=req.author,
            edition=req.edition,
            quantity=req.quantity,
            teacher_name=req.teacher_name,
            cycle_closed_by=closed_by,
            cycle_closed_at=closed_at,
        ))
    return rows


def _request_history_rows(
    cycle_id: str,
    requests: list[BookRequest],
    closed_by: int | None,
    closed_at,
) -> list[BookRequestHistory]:
    return [
        BookRequestHistory(
            cycle_id=cycle_id,
            original_request_id=req.id,
            original_sheet_id=req.sheet_id,
            teacher_id=req.teacher_id,
            teacher_name=req.teacher_name,
            book_name=req.book_name,
            author=req.author,
            edition=req.edition,
            quantity=req.quantity,
            status=req.status,
            cycle_closed_by=closed_by,
            cycle_closed_at=closed_at,
        )
        for req in requests
    ]


def _sheet_history_rows(
    cycle_id: str,
    sheets: list[PurchaseSheet],
    closed_by: int | None,
    closed_at,
) -> list[PurchaseHistory]:
    return [
        PurchaseHistory(
            cycle_id=cycle_id,
            original_sheet_id=sheet.id,
            sheet_name=sheet.sheet_name,
            department=sheet.department,
            created_by=sheet.created_by,
            assigned_to=sheet.assigned_to,
            status=sheet.status,
            cycle_closed_by=closed_by,
            cycle_closed_at=closed_at,
        )
        for sheet in sheets
    ]


def close_cycle(*, closed_by: int | None) -> CycleCloseResult:
    """
    Archive every live sheet, request and finalized purchase under one new
    cycle id, then delete them from the workspace.

    An empty workspace is not an error: nothing is archived, the result
    carries zero counts, and the close is still logged.

    Raises:
        StoreError: any persistence failure (nothing is committed)
    """
    cycle_id = new_cycle_id()
    closed_at = utcnow()

    with unit_of_work("close purchase cycle"):
        purchases = db.session.query(FinalizedPurchase).order_by(FinalizedPurchase.id.asc()).all()
        requests = db.session.query(BookRequest).order_by(BookRequest.id.asc()).all()
        sheets = db.session.query(PurchaseSheet).order_by(PurchaseSheet.id.asc()).all()

        purchase_ids = [p.id for p in purchases]
        request_ids = [r.id for r in requests]
        sheet_ids = [s.id for s in sheets]
        total_cents = sum(p.total_amount_cents for p in purchases)

        # Append history first
        if purchases:
            db.session.add_all(_purchase_history_rows(cycle_id, purchases, closed_by, closed_at))
        if requests:
            db.session.add_all(_request_history_rows(cycle_id, requests, closed_by, closed_at))
        if sheets:
            db.session.add_all(_sheet_history_rows(cycle_id, sheets, closed_by, closed_at))
        if purchases or requests or sheets:
            db.session.flush()

        # Then destroy live rows, children before parents
        comparison_count = 0
        if purchase_ids:
            db.session.query(FinalizedPurchase).filter(
                FinalizedPurchase.id.in_(purchase_ids)
            ).delete(synchronize_session=False)
        if request_ids:
            comparison_count = db.session.query(PriceComparison).filter(
                PriceComparison.book_request_id.in_(request_ids)
            ).delete(synchronize_session=False)
            db.session.query(BookRequest).filter(
                BookRequest.id.in_(request_ids)
            ).delete(synchronize_session=False)
        if sheet_ids:
            db.session.query(PurchaseSheet).filter(
                PurchaseSheet.id.in_(sheet_ids)
            ).delete(synchronize_session=False)

        activity_service.log_activity(
            user_id=closed_by,
            action=activity_service.CLOSE_PURCHASE_CYCLE,
            description=(
                f"Closed purchase cycle {cycle_id}: {len(sheets)} sheets, "
                f"{len(requests)} requests, {len(purchases)} purchases archived"
            ),
        )

    logger.warning(
        "Closed purchase cycle %s: %d sheets, %d requests, %d purchases archived",
        cycle_id, len(sheet_ids), len(request_ids), len(purchase_ids),
    )
    return CycleCloseResult(
        cycle_id=cycle_id,
        closed_at=closed_at,
        sheet_count=len(sheet_ids),
        request_count=len(request_ids),
        purchase_count=len(purchase_ids),
        price_comparison_count=comparison_count,
        total_amount_cents=total_cents,
    )


def _close_stamps(model) -> dict:
    """cycle_id -> (closed_at, closed_by) as recorded on one history kind."""
    return {
        cycle_id: (closed_at, closed_by)
        for cycle_id, closed_at, closed_by in db.session.query(
            model.cycle_id,
            func.max(model.cycle_closed_at),
            func.max(model.cycle_closed_by),
        ).group_by(model.cycle_id).all()
    }


def list_cycles() -> list[dict]:
    """
    One summary per archived cycle, most recently closed first.

    Every history kind carries the close stamp, so a cycle is listed with its
    close time whichever kinds it archived.
    """
    with read_guard("list purchase cycles"):
        stamps: dict[str, tuple] = {}
        for model in (FinalizedPurchaseHistory, BookRequestHistory, PurchaseHistory):
            stamps.update(_close_stamps(model))

        sheet_rows = (
            db.session.query(PurchaseHistory.cycle_id, PurchaseHistory.sheet_name)
            .order_by(PurchaseHistory.id.asc())
            .all()
        )
        purchase_totals = {
            cycle_id: (count, total)
            for cycle_id, count, total in db.session.query(
                FinalizedPurchaseHistory.cycle_id,
                func.count(FinalizedPurchaseHistory.id),
                func.coalesce(func.sum(FinalizedPurchaseHistory.total_amount_cents), 0),
            ).group_by(FinalizedPurchaseHistory.cycle_id).all()
        }
        request_counts = dict(
            db.session.query(
                BookRequestHistory.cycle_id,
                func.count(BookRequestHistory.id),
            ).group_by(BookRequestHistory.cycle_id).all()
        )

    sheet_names: dict[str, list[str]] = {}
    for cycle_id, sheet_name in sheet_rows:
        sheet_names.setdefault(cycle_id, []).append(sheet_name)

    ordered = sorted(stamps.items(), key=lambda item: (item[1][0], item[0]), reverse=True)

    cycles = []
    for cycle_id, (closed_at, closed_by) in ordered:
        count, total = purchase_totals.get(cycle_id, (0, 0))
        names = sheet_names.get(cycle_id, [])
        cycles.append({
            "cycle_id": cycle_id,
            "cycle_closed_at": to_utc_z(closed_at),
            "cycle_closed_by": closed_by,
            "sheet_names": names,
            "sheet_count": len(names),
            "request_count": request_counts.get(cycle_id, 0),
            "total_purchases": count,
            "total_amount_cents": int(total),
            "total_amount": format_cents(int(total)),
        })
    return cycles


def get_cycle(cycle_id: str) -> dict:
    """All archived rows of one cycle. Raises NotFoundError for unknown ids."""
    with read_guard("load purchase cycle"):
        sheets = (
            db.session.query(PurchaseHistory)
            .filter(PurchaseHistory.cycle_id == cycle_id)
            .order_by(PurchaseHistory.id.asc())
            .all()
        )
        requests = (
            db.session.query(BookRequestHistory)
            .filter(BookRequestHistory.cycle_id == cycle_id)
            .order_by(BookRequestHistory.id.asc())
            .all()
        )
        purchases = (
            db.session.query(FinalizedPurchaseHistory)
            .filter(FinalizedPurchaseHistory.cycle_id == cycle_id)
            .order_by(FinalizedPurchaseHistory.id.asc())
            .all()
        )

    if not (sheets or requests or purchases):
        raise NotFoundError(f"Purchase cycle {cycle_id} not found")

    total = sum(p.total_amount_cents for p in purchases)
    stamped = (sheets or requests or purchases)[0]
    return {
        "cycle_id": cycle_id,
        "cycle_closed_at": to_utc_z(stamped.cycle_closed_at),
        "cycle_closed_by": stamped.cycle_closed_by,
        "sheets": sheets,
        "requests": requests,
        "purchases": purchases,
        "total_amount_cents": total,
    }


def delete_cycle(cycle_id: str, *, actor_id: int | None) -> dict:
    """
    Permanently delete every history row of one cycle.

    Returns the number of rows removed per kind.
    """
    with unit_of_work("delete purchase cycle"):
        counts = {
            "purchases": db.session.query(FinalizedPurchaseHistory)
            .filter(FinalizedPurchaseHistory.cycle_id == cycle_id)
            .delete(synchronize_session=False),
            "requests": db.session.query(BookRequestHistory)
            .filter(BookRequestHistory.cycle_id == cycle_id)
            .delete(synchronize_session=False),
            "sheets": db.session.query(PurchaseHistory)
            .filter(PurchaseHistory.cycle_id == cycle_id)
            .delete(synchronize_session=False),
        }
        if not any(counts.values()):
            raise NotFoundError(f"Purchase cycle {cycle_id} not found")

        activity_service.log_activity(
            user_id=actor_id,
            action=activity_service.DELETE_PURCHASE_CYCLE,
            description=f"Deleted purchase cycle {cycle_id}",
        )

    logger.warning("Deleted purchase cycle %s: %s", cycle_id, counts)
    return counts

# Overview: Service-layer operations for finalizing purchases and moving them back.

"""
Purchase Finalization Service

WHY: Finalizing commits the cheapest shop for a book request as the purchase
decision: unit price = the book's minimum recorded price, total = unit price
x request quantity.

RULES:
1. Books without a positive recorded price are skipped, not rejected.
2. A call that would finalize nothing raises NoValidPricesError and writes
   nothing.
3. A book is finalized at most once. Finalizing it again returns the
   existing purchase until it has been moved back.
4. finalize_all works on every request under a comparing sheet and moves
   those sheets to completed.
5. move_back is the compensating operation: the purchase's shop price is
   restored as an unselected comparison row, the purchase is deleted and the
   owning sheet returns to comparing, all in one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..extensions import db
from ..errors import EmptySelectionError, NoValidPricesError, NotFoundError
from ..models import BookRequest, FinalizedPurchase, PriceComparison, PurchaseSheet
from ..models.purchasing import SHEET_COMPARING, SHEET_COMPLETED
from ..validation import format_cents, parse_id_list
from . import activity_service
from .price_service import best_offer_in_session
from .sheet_service import apply_transition
from .store import read_guard, unit_of_work


logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    purchases: list[FinalizedPurchase] = field(default_factory=list)
    created_count: int = 0
    skipped_request_ids: list[int] = field(default_factory=list)
    completed_sheet_ids: list[int] = field(default_factory=list)

    @property
    def total_amount_cents(self) -> int:
        return sum(p.total_amount_cents for p in self.purchases)


def _finalize_requests(requests: list[BookRequest], finalized_by: int | None) -> FinalizeResult:
    """Create purchases for priced requests inside the caller's unit of work."""
    result = FinalizeResult()
    if not requests:
        return result

    existing = {
        p.book_request_id: p
        for p in db.session.query(FinalizedPurchase)
        .filter(FinalizedPurchase.book_request_id.in_([r.id for r in requests]))
        .all()
    }

    for req in requests:
        if req.id in existing:
            result.purchases.append(existing[req.id])
            continue

        best = best_offer_in_session(req.id)
        if best.price_cents <= 0 or not best.shop_name:
            result.skipped_request_ids.append(req.id)
            continue

        purchase = FinalizedPurchase(
            book_request_id=req.id,
            shop_name=best.shop_name,
            price_per_unit_cents=best.price_cents,
            total_amount_cents=best.price_cents * req.quantity,
            finalized_by=finalized_by,
        )
        db.session.add(purchase)
        result.purchases.append(purchase)
        result.created_count += 1

    return result


def finalize(book_ids, *, finalized_by: int | None) -> FinalizeResult:
    """
    Finalize the selected book requests at their minimum price.

    Raises:
        EmptySelectionError: no book ids
        NotFoundError: a book id has no BookRequest
        NoValidPricesError: none of the books has a positive price
    """
    ids = parse_id_list(book_ids, "book_ids")
    if not ids:
        raise EmptySelectionError("No books selected for finalization")

    with unit_of_work("finalize purchases"):
        by_id = {
            r.id: r for r in db.session.query(BookRequest).filter(BookRequest.id.in_(ids)).all()
        }
        missing = [i for i in ids if i not in by_id]
        if missing:
            raise NotFoundError(f"Book requests not found: {', '.join(str(m) for m in missing)}")

        result = _finalize_requests([by_id[i] for i in ids], finalized_by)
        if not result.purchases:
            raise NoValidPricesError("No books with valid prices to finalize")

        activity_service.log_activity(
            user_id=finalized_by,
            action=activity_service.FINALIZE_SELECTED_COMPARISON,
            description=f"Finalized comparison for {result.created_count} of {len(ids)} selected books",
        )

    logger.info(
        "Finalized %d purchases (%d skipped) totalling %s",
        result.created_count, len(result.skipped_request_ids), format_cents(result.total_amount_cents),
    )
    return result


def finalize_all(*, finalized_by: int | None) -> FinalizeResult:
    """
    Finalize every request under a comparing sheet and complete those sheets.

    Raises NoValidPricesError if nothing could be finalized.
    """
    with unit_of_work("finalize all purchases"):
        sheets = (
            db.session.query(PurchaseSheet)
            .filter(PurchaseSheet.status == SHEET_COMPARING)
            .order_by(PurchaseSheet.id.asc())
            .all()
        )
        sheet_ids = [s.id for s in sheets]
        requests = (
            db.session.query(BookRequest)
            .filter(BookRequest.sheet_id.in_(sheet_ids))
            .order_by(BookRequest.id.asc())
            .all()
        ) if sheet_ids else []

        result = _finalize_requests(requests, finalized_by)
        if not result.purchases:
            raise NoValidPricesError("No books with valid prices to finalize")

        for sheet in sheets:
            apply_transition(sheet, SHEET_COMPLETED)
        result.completed_sheet_ids = sheet_ids

        activity_service.log_activity(
            user_id=finalized_by,
            action=activity_service.FINALIZE_COMPARISON,
            description=f"Finalized {result.created_count} book purchases",
        )

    logger.info(
        "Finalized all: %d purchases created, %d sheets completed",
        result.created_count, len(sheet_ids),
    )
    return result


def move_back(purchase_id: int, *, actor_id: int | None) -> PriceComparison:
    """
    Undo a finalization.

    Returns the restored PriceComparison row (is_selected=False). Any earlier
    comparison row for the same book and shop is replaced by it.
    """
    with unit_of_work("move purchase back"):
        purchase = db.session.get(FinalizedPurchase, purchase_id)
        if purchase is None:
            raise NotFoundError(f"Finalized purchase {purchase_id} not found")

        request = purchase.book_request

        db.session.query(PriceComparison).filter(
            PriceComparison.book_request_id == purchase.book_request_id,
            PriceComparison.shop_name == purchase.shop_name,
        ).delete(synchronize_session=False)

        restored = PriceComparison(
            book_request_id=purchase.book_request_id,
            shop_name=purchase.shop_name,
            price_cents=purchase.price_per_unit_cents,
            is_selected=False,
        )
        db.session.add(restored)
        db.session.delete(purchase)

        if request is not None and request.sheet is not None:
            apply_transition(request.sheet, SHEET_COMPARING)

        activity_service.log_activity(
            user_id=actor_id,
            action=activity_service.MOVE_PURCHASE_BACK,
            description=f'Moved purchase "{request.book_name if request else purchase_id}" back to comparison phase',
        )

    logger.info("Moved finalized purchase %s back to comparison", purchase_id)
    return restored


def list_finalized_purchases() -> tuple[list[FinalizedPurchase], int]:
    """Live finalized purchases, newest first, with the grand total in cents."""
    with read_guard("list finalized purchases"):
        purchases = (
            db.session.query(FinalizedPurchase)
            .order_by(FinalizedPurchase.created_at.desc(), FinalizedPurchase.id.desc())
            .all()
        )
    return purchases, sum(p.total_amount_cents for p in purchases)

# Overview: Service-layer operations for consolidating teachers' requests into one sheet.

"""
Consolidation Service

WHY: Several teachers often ask for the same book. Consolidation merges the
pending requests of selected teachers into one deduplicated request list
under a new "consolidated" sheet, so prices are compared once per title.

MERGE RULES:
- Requests are grouped by (book_name, author, edition), compared
  case-insensitively. The first-seen request supplies the group's spelling.
- A group's quantity is the sum of its members' quantities.
- A group's teacher_name lists each distinct contributor once, in first-seen
  order, joined with ", ".
- Input order is request creation order (then id), so the result is stable.

COPYING, NOT MOVING: original requests are left untouched. Every pending
request of the selected teachers is a source, including copies already sitting
on an earlier consolidated sheet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..extensions import db
from ..departments import CONSOLIDATED_TAG
from ..errors import EmptySelectionError
from ..models import BookRequest, Profile, PurchaseSheet
from ..models.purchasing import REQUEST_PENDING, SHEET_PENDING
from ..time_utils import utc_today
from ..validation import parse_id_list
from . import activity_service
from .store import unit_of_work


logger = logging.getLogger(__name__)

TEACHER_NAME_SEPARATOR = ", "


@dataclass
class MergedRequest:
    """One deduplicated title with summed quantity and its contributors."""
    book_name: str
    author: str
    edition: str
    quantity: int
    teacher_id: int | None
    teacher_names: list[str] = field(default_factory=list)
    source_request_ids: list[int] = field(default_factory=list)

    @property
    def teacher_name(self) -> str:
        return TEACHER_NAME_SEPARATOR.join(self.teacher_names)


@dataclass
class ConsolidationResult:
    sheet: PurchaseSheet
    requests: list[BookRequest]
    source_count: int
    teacher_count: int


def merge_key(book_name: str, author: str, edition: str) -> tuple[str, str, str]:
    return (book_name.strip().casefold(), author.strip().casefold(), edition.strip().casefold())


def merge_requests(requests) -> list[MergedRequest]:
    """
    Group requests by case-insensitive (book_name, author, edition).

    Pure function over any iterable of objects with book_name, author,
    edition, quantity, teacher_id, teacher_name (and optionally id).
    Output keeps the order in which each group was first seen.
    """
    groups: dict[tuple[str, str, str], MergedRequest] = {}
    for req in requests:
        key = merge_key(req.book_name, req.author, req.edition)
        merged = groups.get(key)
        if merged is None:
            merged = MergedRequest(
                book_name=req.book_name,
                author=req.author,
                edition=req.edition,
                quantity=0,
                teacher_id=req.teacher_id,
            )
            groups[key] = merged

        merged.quantity += req.quantity
        if req.teacher_name not in merged.teacher_names:
            merged.teacher_names.append(req.teacher_name)
        req_id = getattr(req, "id", None)
        if req_id is not None:
            merged.source_request_ids.append(req_id)

    return list(groups.values())


def consolidated_sheet_name(teachers, today=None) -> str:
    first_names = ", ".join(t.first_name for t in teachers)
    day = (today or utc_today()).isoformat()
    return f"Consolidated Sheet - {first_names} - {day}"


def consolidate(teacher_ids, *, created_by: int | None) -> ConsolidationResult:
    """
    Merge the pending requests of the given teachers into a new pending
    consolidated sheet.

    Raises:
        EmptySelectionError: no teacher ids, or no pending requests for them
    """
    ids = parse_id_list(teacher_ids, "teacher_ids")
    if not ids:
        raise EmptySelectionError("Please select at least one teacher")

    with unit_of_work("consolidate requests"):
        source = (
            db.session.query(BookRequest)
            .filter(
                BookRequest.teacher_id.in_(ids),
                BookRequest.status == REQUEST_PENDING,
            )
            .order_by(BookRequest.created_at.asc(), BookRequest.id.asc())
            .all()
        )
        if not source:
            raise EmptySelectionError("No pending book requests found from selected teachers")

        merged = merge_requests(source)

        teachers = (
            db.session.query(Profile)
            .filter(Profile.id.in_(ids))
            .order_by(Profile.full_name.asc(), Profile.id.asc())
            .all()
        )

        sheet = PurchaseSheet(
            sheet_name=consolidated_sheet_name(teachers),
            department=CONSOLIDATED_TAG,
            created_by=created_by,
            assigned_to=None,
            status=SHEET_PENDING,
        )
        db.session.add(sheet)
        db.session.flush()

        created = [
            BookRequest(
                sheet_id=sheet.id,
                teacher_id=m.teacher_id,
                teacher_name=m.teacher_name,
                book_name=m.book_name,
                author=m.author,
                edition=m.edition,
                quantity=m.quantity,
                status=REQUEST_PENDING,
            )
            for m in merged
        ]
        db.session.add_all(created)

        activity_service.log_activity(
            user_id=created_by,
            action=activity_service.CONSOLIDATE_REQUESTS,
            description=(
                f"Consolidated {len(source)} requests into {len(merged)} unique books "
                f"from {len(ids)} teachers"
            ),
        )

    logger.info(
        "Consolidated %d requests into %d titles on sheet %s",
        len(source), len(merged), sheet.id,
    )
    return ConsolidationResult(sheet=sheet, requests=created, source_count=len(source), teacher_count=len(ids))

# Overview: Service-layer operations for purchase sheets; owns the sheet lifecycle.

"""
Purchase Sheet Lifecycle Service

================================================================================
PURPOSE: Enforce the pending -> comparing -> completed lifecycle of purchase sheets
================================================================================

STATE MACHINE:
    PENDING -> COMPARING -> COMPLETED
                   ^            |
                   +------------+   (move back of a finalized purchase)

    PENDING:   Teachers add, edit and withdraw requests under the sheet.
    COMPARING: Shop prices are recorded for the sheet's requests.
    COMPLETED: Every priced request has been finalized.

RULES:
1. Cannot skip states (PENDING -> COMPLETED is forbidden)
2. PENDING -> COMPARING requires at least one book request on the sheet
3. COMPARING -> COMPLETED happens only through finalize-all
4. COMPLETED -> COMPARING happens only through a purchase move back
5. Sheets leave the workspace only through a cycle close (archived first)
   or an explicit manual delete

KNOWN GAP: request create/edit does not check the sheet status; a teacher can
still add requests to a comparing or completed sheet through the API.
================================================================================
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..departments import Department, parse_sheet_department
from ..errors import EmptySelectionError, InvalidTransitionError, NoRequestsError, NotFoundError, ValidationError
from ..models import BookRequest, Profile, PurchaseSheet
from ..models.auth import ROLE_TEACHER
from ..models.purchasing import SHEET_COMPARING, SHEET_COMPLETED, SHEET_PENDING, SHEET_STATUSES
from ..validation import require_text
from . import activity_service
from .store import read_guard, unit_of_work


logger = logging.getLogger(__name__)

VALID_STATUSES = set(SHEET_STATUSES)

_VALID_TRANSITIONS = {
    (SHEET_PENDING, SHEET_COMPARING),
    (SHEET_COMPARING, SHEET_COMPLETED),
    (SHEET_COMPLETED, SHEET_COMPARING),
    (SHEET_COMPARING, SHEET_COMPARING),
}


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check a sheet status transition against the lifecycle table.

    Valid transitions:
    - pending -> comparing
    - comparing -> completed
    - completed -> comparing (move back)
    - comparing -> comparing (move back while still comparing)
    """
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in _VALID_TRANSITIONS


def apply_transition(sheet: PurchaseSheet, to_status: str) -> PurchaseSheet:
    """
    Move a sheet to to_status inside the caller's unit of work.

    Raises InvalidTransitionError for transitions outside the table.
    """
    if not can_transition(sheet.status, to_status):
        raise InvalidTransitionError(
            f"Cannot move sheet {sheet.id} from '{sheet.status}' to '{to_status}'"
        )
    sheet.status = to_status
    return sheet


def get_sheet(sheet_id: int) -> PurchaseSheet:
    with read_guard("load purchase sheet"):
        sheet = db.session.get(PurchaseSheet, sheet_id)
    if sheet is None:
        raise NotFoundError(f"Purchase sheet {sheet_id} not found")
    return sheet


def list_sheets(*, status: str | None = None, assigned_to: int | None = None) -> list[PurchaseSheet]:
    if status is not None:
        validate_status(status)
    with read_guard("list purchase sheets"):
        q = db.session.query(PurchaseSheet)
        if status is not None:
            q = q.filter(PurchaseSheet.status == status)
        if assigned_to is not None:
            q = q.filter(PurchaseSheet.assigned_to == assigned_to)
        return q.order_by(PurchaseSheet.created_at.desc(), PurchaseSheet.id.desc()).all()


def count_requests(sheet_id: int) -> int:
    with read_guard("count sheet requests"):
        return db.session.query(BookRequest).filter(BookRequest.sheet_id == sheet_id).count()


def _teacher_or_error(profile_id: int) -> Profile:
    teacher = db.session.get(Profile, profile_id)
    if teacher is None:
        raise NotFoundError(f"Profile {profile_id} not found")
    if teacher.role != ROLE_TEACHER:
        raise ValidationError("Sheets can only be assigned to teachers")
    return teacher


def create_sheet(
    *,
    sheet_name: str,
    assigned_to: int,
    created_by: int | None,
    department=None,
) -> PurchaseSheet:
    """
    Create a pending sheet assigned to one teacher.

    department defaults to the assigned teacher's department.
    """
    sheet_name = require_text(sheet_name, "sheet_name", max_length=255)
    dept = parse_sheet_department(department) if department is not None else None

    with unit_of_work("create purchase sheet"):
        teacher = _teacher_or_error(assigned_to)
        sheet = PurchaseSheet(
            sheet_name=sheet_name,
            assigned_to=teacher.id,
            created_by=created_by,
            department=dept or Department.parse(teacher.department).value,
            status=SHEET_PENDING,
        )
        db.session.add(sheet)
        activity_service.log_activity(
            user_id=created_by,
            action=activity_service.CREATE_SHEET,
            description=f'Created purchase sheet "{sheet_name}" for {teacher.full_name}',
        )
    return sheet


def create_sheets_for_all_teachers(*, sheet_name: str, created_by: int | None) -> list[PurchaseSheet]:
    """One pending sheet per active teacher, named "<name> - <teacher full name>"."""
    sheet_name = require_text(sheet_name, "sheet_name", max_length=200)

    with unit_of_work("create purchase sheets"):
        teachers = (
            db.session.query(Profile)
            .filter(Profile.role == ROLE_TEACHER, Profile.is_active.is_(True))
            .order_by(Profile.full_name.asc(), Profile.id.asc())
            .all()
        )
        if not teachers:
            raise EmptySelectionError("No teachers to assign sheets to")

        sheets = [
            PurchaseSheet(
                sheet_name=f"{sheet_name} - {teacher.full_name}",
                assigned_to=teacher.id,
                created_by=created_by,
                department=teacher.department,
                status=SHEET_PENDING,
            )
            for teacher in teachers
        ]
        db.session.add_all(sheets)
        activity_service.log_activity(
            user_id=created_by,
            action=activity_service.CREATE_SHEET,
            description=f'Created purchase sheets "{sheet_name}" for all {len(teachers)} teachers',
        )
    return sheets


def move_to_compare(sheet_id: int, *, actor_id: int | None) -> tuple[PurchaseSheet, int]:
    """
    Move a pending sheet into the comparison phase.

    Returns (sheet, number of requests moved).

    Raises:
        NotFoundError: unknown sheet
        NoRequestsError: the sheet has no book requests
        InvalidTransitionError: the sheet is not pending
    """
    with unit_of_work("move sheet to comparison"):
        sheet = db.session.get(PurchaseSheet, sheet_id)
        if sheet is None:
            raise NotFoundError(f"Purchase sheet {sheet_id} not found")

        request_count = db.session.query(BookRequest).filter(BookRequest.sheet_id == sheet.id).count()
        if request_count == 0:
            raise NoRequestsError("No book requests found in this sheet")

        apply_transition(sheet, SHEET_COMPARING)
        activity_service.log_activity(
            user_id=actor_id,
            action=activity_service.MOVE_TO_COMPARE,
            description=f"Moved {request_count} book requests to comparison phase",
        )

    logger.info("Sheet %s moved to comparison with %d requests", sheet_id, request_count)
    return sheet, request_count


def delete_sheet(sheet_id: int, *, actor_id: int | None) -> None:
    """
    Manually delete a sheet. Its requests are kept and orphaned (sheet_id NULL).
    """
    with unit_of_work("delete purchase sheet"):
        sheet = db.session.get(PurchaseSheet, sheet_id)
        if sheet is None:
            raise NotFoundError(f"Purchase sheet {sheet_id} not found")

        orphaned = (
            db.session.query(BookRequest)
            .filter(BookRequest.sheet_id == sheet.id)
            .update({BookRequest.sheet_id: None}, synchronize_session="fetch")
        )
        name = sheet.sheet_name
        db.session.delete(sheet)
        activity_service.log_activity(
            user_id=actor_id,
            action=activity_service.DELETE_SHEET,
            description=f'Deleted purchase sheet "{name}" ({orphaned} requests orphaned)',
        )

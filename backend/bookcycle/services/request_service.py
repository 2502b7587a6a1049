# Overview: Service-layer operations for book requests; encapsulates business logic and database work.

"""
Book Request Service

WHY: Teachers record the books they need against a purchase sheet they are
assigned to. Requests from different teachers never share counters or rows,
so concurrent creates do not conflict.

VALIDATION: book_name, author and edition are required and non-blank;
quantity is a positive integer. Input is validated before any query runs.

NOT ENFORCED HERE: the sheet's status. Adding a request to a comparing or
completed sheet is allowed at this layer.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, PermissionDeniedError
from ..models import BookRequest, FinalizedPurchase, PriceComparison, Profile, PurchaseSheet
from ..models.purchasing import REQUEST_PENDING
from ..validation import ModelValidationPolicy, enforce_rules_book_request, validate_payload
from .store import read_guard, unit_of_work


BOOK_REQUEST_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"book_name", "author", "edition", "quantity"},
    required_on_create={"book_name", "author", "edition", "quantity"},
)

BOOK_REQUEST_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"book_name", "author", "edition", "quantity", "status"},
)


def _check_owner(request: BookRequest, acting_teacher_id: int | None) -> None:
    if acting_teacher_id is not None and request.teacher_id != acting_teacher_id:
        raise PermissionDeniedError("You can only change your own book requests")


def create_request(*, sheet_id: int, teacher_id: int, fields: dict) -> BookRequest:
    """
    Create a pending book request under a sheet.

    teacher_name is snapshotted from the teacher's profile.

    Raises:
        ValidationError: missing/blank field or quantity < 1
        NotFoundError: unknown sheet or teacher
    """
    patch = validate_payload(
        model=BookRequest,
        payload=fields,
        policy=BOOK_REQUEST_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_book_request(patch)

    with unit_of_work("create book request"):
        sheet = db.session.get(PurchaseSheet, sheet_id)
        if sheet is None:
            raise NotFoundError(f"Purchase sheet {sheet_id} not found")
        teacher = db.session.get(Profile, teacher_id)
        if teacher is None:
            raise NotFoundError(f"Profile {teacher_id} not found")

        request = BookRequest(
            sheet_id=sheet.id,
            teacher_id=teacher.id,
            teacher_name=teacher.full_name,
            status=REQUEST_PENDING,
            **patch,
        )
        db.session.add(request)
    return request


def get_request(request_id: int) -> BookRequest:
    with read_guard("load book request"):
        request = db.session.get(BookRequest, request_id)
    if request is None:
        raise NotFoundError(f"Book request {request_id} not found")
    return request


def list_by_sheet(sheet_id: int) -> list[BookRequest]:
    with read_guard("list sheet requests"):
        return (
            db.session.query(BookRequest)
            .filter(BookRequest.sheet_id == sheet_id)
            .order_by(BookRequest.created_at.asc(), BookRequest.id.asc())
            .all()
        )


def list_by_teacher(teacher_id: int) -> list[BookRequest]:
    with read_guard("list teacher requests"):
        return (
            db.session.query(BookRequest)
            .filter(BookRequest.teacher_id == teacher_id)
            .order_by(BookRequest.created_at.desc(), BookRequest.id.desc())
            .all()
        )


def update_request(request_id: int, fields: dict, *, acting_teacher_id: int | None = None) -> BookRequest:
    """
    Patch a request. Only the provided fields change.

    acting_teacher_id, when given, must own the request.
    """
    patch = validate_payload(
        model=BookRequest,
        payload=fields,
        policy=BOOK_REQUEST_UPDATE_POLICY,
        partial=True,
    )
    enforce_rules_book_request(patch)

    with unit_of_work("update book request"):
        request = db.session.get(BookRequest, request_id)
        if request is None:
            raise NotFoundError(f"Book request {request_id} not found")
        _check_owner(request, acting_teacher_id)

        for key, value in patch.items():
            setattr(request, key, value)
    return request


def delete_request(request_id: int, *, acting_teacher_id: int | None = None) -> None:
    """
    Withdraw a request together with its recorded shop prices.

    Raises ConflictError if the request already has a finalized purchase;
    move the purchase back first.
    """
    with unit_of_work("delete book request"):
        request = db.session.get(BookRequest, request_id)
        if request is None:
            raise NotFoundError(f"Book request {request_id} not found")
        _check_owner(request, acting_teacher_id)

        finalized = (
            db.session.query(FinalizedPurchase.id)
            .filter(FinalizedPurchase.book_request_id == request.id)
            .first()
        )
        if finalized:
            raise ConflictError("Book request has a finalized purchase; move it back before deleting")

        db.session.query(PriceComparison).filter(
            PriceComparison.book_request_id == request.id
        ).delete(synchronize_session=False)
        db.session.delete(request)

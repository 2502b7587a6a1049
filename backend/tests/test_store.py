"""
Unit-of-work tests.

A driver failure inside a unit of work must roll back everything written
in it and surface as StoreError with the original error chained.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from bookcycle.errors import NotFoundError, StoreError
from bookcycle.extensions import db
from bookcycle.models import BookRequest, PurchaseSheet
from bookcycle.services.store import unit_of_work


def test_constraint_violation_becomes_store_error(db_session, teacher, pending_sheet):
    with pytest.raises(StoreError) as exc_info:
        with unit_of_work("add broken request"):
            db.session.add(PurchaseSheet(
                sheet_name="Should vanish",
                department="computer_science_and_engineering",
                assigned_to=teacher.id,
                status="pending",
            ))
            db.session.add(BookRequest(
                sheet_id=pending_sheet.id,
                teacher_id=teacher.id,
                teacher_name=teacher.full_name,
                book_name="Broken",
                author="Nobody",
                edition="1st",
                quantity=0,
                status="pending",
            ))

    assert isinstance(exc_info.value.__cause__, IntegrityError)
    assert exc_info.value.status_code == 503
    assert PurchaseSheet.query.filter_by(sheet_name="Should vanish").count() == 0
    assert BookRequest.query.count() == 0


def test_domain_error_rolls_back_and_propagates(db_session, teacher):
    with pytest.raises(NotFoundError):
        with unit_of_work("half done"):
            db.session.add(PurchaseSheet(
                sheet_name="Half done",
                department="computer_science_and_engineering",
                assigned_to=teacher.id,
                status="pending",
            ))
            db.session.flush()
            raise NotFoundError("missing")

    assert PurchaseSheet.query.count() == 0


def test_clean_exit_commits(db_session, teacher):
    with unit_of_work("add sheet"):
        db.session.add(PurchaseSheet(
            sheet_name="Kept",
            department="computer_science_and_engineering",
            assigned_to=teacher.id,
            status="pending",
        ))
    db.session.rollback()

    assert PurchaseSheet.query.filter_by(sheet_name="Kept").count() == 1

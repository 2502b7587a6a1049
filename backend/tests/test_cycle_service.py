"""
Purchase cycle archive tests.

Verifies:
- Closing a cycle copies every live sheet, request and purchase into
  history under one new cycle id, then empties the live tables
- Closing an empty workspace archives nothing but is still logged
- Every cycle keeps its close stamp, with or without archived sheets
- History rows cannot be edited
- Cycles can be listed, loaded and deleted
"""

from datetime import datetime, timezone

import pytest

from bookcycle.errors import ImmutableHistoryError, NotFoundError
from bookcycle.models import (
    ActivityLog,
    BookRequest,
    BookRequestHistory,
    FinalizedPurchase,
    FinalizedPurchaseHistory,
    PriceComparison,
    PurchaseHistory,
    PurchaseSheet,
)
from bookcycle.services import cycle_service, finalize_service, price_service

from conftest import add_request, make_sheet


def _seed_workspace(teacher, teacher_b, admin):
    """2 sheets, 5 requests, 3 finalized purchases."""
    sheet_a = make_sheet(teacher.id, status="comparing", name="Sheet A")
    sheet_b = make_sheet(teacher_b.id, status="comparing", name="Sheet B")
    books = [
        add_request(sheet_a, teacher, book_name="A1", quantity=1),
        add_request(sheet_a, teacher, book_name="A2", quantity=2),
        add_request(sheet_a, teacher, book_name="A3", quantity=3),
        add_request(sheet_b, teacher_b, book_name="B1", quantity=1),
        add_request(sheet_b, teacher_b, book_name="B2", quantity=5),
    ]
    priced = books[:3]
    price_service.record_prices(
        [b.id for b in books],
        {b.id: {"Shop": 10} for b in priced},
    )
    finalize_service.finalize([b.id for b in priced], finalized_by=admin.id)
    return books


class TestCloseCycle:
    def test_archive_conservation(self, db_session, admin, teacher, teacher_b):
        _seed_workspace(teacher, teacher_b, admin)

        result = cycle_service.close_cycle(closed_by=admin.id)

        assert (result.sheet_count, result.request_count, result.purchase_count) == (2, 5, 3)
        assert PurchaseHistory.query.filter_by(cycle_id=result.cycle_id).count() == 2
        assert BookRequestHistory.query.filter_by(cycle_id=result.cycle_id).count() == 5
        assert FinalizedPurchaseHistory.query.filter_by(cycle_id=result.cycle_id).count() == 3

        assert PurchaseSheet.query.count() == 0
        assert BookRequest.query.count() == 0
        assert FinalizedPurchase.query.count() == 0
        assert PriceComparison.query.count() == 0

    def test_history_rows_keep_denormalized_fields(self, db_session, admin, teacher, teacher_b):
        books = _seed_workspace(teacher, teacher_b, admin)
        original_id = books[1].id

        result = cycle_service.close_cycle(closed_by=admin.id)

        row = FinalizedPurchaseHistory.query.filter_by(original_book_request_id=original_id).one()
        assert row.book_name == "A2"
        assert row.quantity == 2
        assert row.teacher_name == "Alice Anand"
        assert row.total_amount_cents == 2000
        assert result.total_amount_cents == 1000 + 2000 + 3000

        sheet_row = PurchaseHistory.query.filter_by(sheet_name="Sheet B").one()
        assert sheet_row.cycle_closed_by == admin.id
        assert sheet_row.cycle_closed_at is not None

    def test_each_close_gets_a_new_cycle_id(self, db_session, admin, teacher):
        add_request(make_sheet(teacher.id), teacher)
        first = cycle_service.close_cycle(closed_by=admin.id)
        add_request(make_sheet(teacher.id), teacher)
        second = cycle_service.close_cycle(closed_by=admin.id)

        assert first.cycle_id != second.cycle_id

    def test_sheets_without_purchases_still_archived(self, db_session, admin, teacher):
        make_sheet(teacher.id, name="Empty sheet")

        result = cycle_service.close_cycle(closed_by=admin.id)

        assert (result.sheet_count, result.request_count, result.purchase_count) == (1, 0, 0)

    def test_empty_workspace_closes_with_zero_counts(self, db_session, admin):
        result = cycle_service.close_cycle(closed_by=admin.id)

        assert result.sheet_count == 0
        assert result.request_count == 0
        assert result.purchase_count == 0
        assert result.to_dict()["total_amount"] == "0.00"
        assert PurchaseHistory.query.count() == 0
        assert ActivityLog.query.filter_by(action="CLOSE_PURCHASE_CYCLE", user_id=admin.id).count() == 1
        assert cycle_service.list_cycles() == []

    def test_second_close_archives_nothing(self, db_session, admin, teacher):
        make_sheet(teacher.id)
        cycle_service.close_cycle(closed_by=admin.id)

        again = cycle_service.close_cycle(closed_by=admin.id)

        assert again.sheet_count == 0
        assert PurchaseHistory.query.count() == 1

    def test_logs_activity(self, db_session, admin, teacher):
        make_sheet(teacher.id)
        cycle_service.close_cycle(closed_by=admin.id)

        assert ActivityLog.query.filter_by(action="CLOSE_PURCHASE_CYCLE", user_id=admin.id).count() == 1


class TestHistoryImmutability:
    def test_history_row_update_rejected(self, db_session, admin, teacher):
        make_sheet(teacher.id, name="Original")
        cycle_service.close_cycle(closed_by=admin.id)

        row = PurchaseHistory.query.one()
        row.sheet_name = "Edited"
        with pytest.raises(ImmutableHistoryError):
            db_session.flush()
        db_session.rollback()

        assert PurchaseHistory.query.one().sheet_name == "Original"


class TestBrowseCycles:
    def test_list_cycles_newest_first(self, db_session, admin, teacher, teacher_b, monkeypatch):
        monkeypatch.setattr(cycle_service, "utcnow", lambda: datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
        make_sheet(teacher.id, name="First")
        first = cycle_service.close_cycle(closed_by=admin.id)
        monkeypatch.setattr(cycle_service, "utcnow", lambda: datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc))
        _seed_workspace(teacher, teacher_b, admin)
        second = cycle_service.close_cycle(closed_by=admin.id)

        cycles = cycle_service.list_cycles()

        assert [c["cycle_id"] for c in cycles] == [second.cycle_id, first.cycle_id]
        assert cycles[0]["cycle_closed_at"].startswith("2026-06-01")
        assert cycles[1]["cycle_closed_at"].startswith("2026-03-01")
        summary = next(c for c in cycles if c["cycle_id"] == second.cycle_id)
        assert summary["sheet_names"] == ["Sheet A", "Sheet B"]
        assert summary["request_count"] == 5
        assert summary["total_purchases"] == 3
        assert summary["total_amount_cents"] == 6000
        assert summary["total_amount"] == "60.00"

    def test_get_cycle(self, db_session, admin, teacher, teacher_b):
        _seed_workspace(teacher, teacher_b, admin)
        result = cycle_service.close_cycle(closed_by=admin.id)

        cycle = cycle_service.get_cycle(result.cycle_id)

        assert len(cycle["sheets"]) == 2
        assert len(cycle["requests"]) == 5
        assert len(cycle["purchases"]) == 3
        assert cycle["total_amount_cents"] == 6000

    def test_cycle_without_sheets_keeps_close_stamp(self, db_session, admin, teacher, monkeypatch):
        monkeypatch.setattr(cycle_service, "utcnow", lambda: datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))
        make_sheet(teacher.id, name="Older")
        older = cycle_service.close_cycle(closed_by=admin.id)
        monkeypatch.setattr(cycle_service, "utcnow", lambda: datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc))
        add_request(None, teacher, book_name="Loose")
        sheetless = cycle_service.close_cycle(closed_by=admin.id)

        cycle = cycle_service.get_cycle(sheetless.cycle_id)
        cycles = cycle_service.list_cycles()

        assert cycle["sheets"] == []
        assert cycle["cycle_closed_by"] == admin.id
        assert cycle["cycle_closed_at"].startswith("2026-06-01")
        assert [c["cycle_id"] for c in cycles] == [sheetless.cycle_id, older.cycle_id]
        assert cycles[0]["cycle_closed_by"] == admin.id
        assert cycles[0]["sheet_count"] == 0
        assert cycles[0]["request_count"] == 1

    def test_get_unknown_cycle(self, db_session):
        with pytest.raises(NotFoundError):
            cycle_service.get_cycle("no-such-cycle")

    def test_delete_cycle(self, db_session, admin, teacher, teacher_b):
        _seed_workspace(teacher, teacher_b, admin)
        result = cycle_service.close_cycle(closed_by=admin.id)

        counts = cycle_service.delete_cycle(result.cycle_id, actor_id=admin.id)

        assert counts == {"purchases": 3, "requests": 5, "sheets": 2}
        assert PurchaseHistory.query.count() == 0
        assert ActivityLog.query.filter_by(action="DELETE_PURCHASE_CYCLE").count() == 1

    def test_delete_unknown_cycle(self, db_session):
        with pytest.raises(NotFoundError):
            cycle_service.delete_cycle("no-such-cycle", actor_id=None)

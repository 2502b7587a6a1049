"""
Purchase finalization tests.

Verifies:
- Unit price is the book's minimum price; total = unit price x quantity
- Books without prices are skipped; all-unpriced selections fail without writes
- Finalizing twice never duplicates purchases
- finalize_all completes the comparing sheets
- move_back restores the price row and returns the sheet to comparing
"""

import pytest

from bookcycle.errors import EmptySelectionError, NoValidPricesError, NotFoundError
from bookcycle.models import ActivityLog, FinalizedPurchase, PriceComparison, PurchaseSheet
from bookcycle.services import finalize_service, price_service

from conftest import add_request


class TestFinalize:
    def test_minimum_price_times_quantity(self, db_session, admin, teacher, comparing_sheet):
        book = add_request(comparing_sheet, teacher, quantity=4)
        price_service.record_prices([book.id], {book.id: {"ShopA": 100, "ShopB": 85, "ShopC": 90}})

        result = finalize_service.finalize([book.id], finalized_by=admin.id)

        purchase = result.purchases[0]
        assert purchase.shop_name == "ShopB"
        assert purchase.price_per_unit_cents == 8500
        assert purchase.total_amount_cents == 34000
        assert purchase.finalized_by == admin.id
        assert result.total_amount_cents == 34000

    def test_unpriced_books_are_skipped(self, db_session, admin, teacher, comparing_sheet):
        priced = add_request(comparing_sheet, teacher, book_name="Priced")
        unpriced = add_request(comparing_sheet, teacher, book_name="Unpriced")
        price_service.record_prices([priced.id], {priced.id: {"A": 10}})

        result = finalize_service.finalize([priced.id, unpriced.id], finalized_by=admin.id)

        assert result.created_count == 1
        assert result.skipped_request_ids == [unpriced.id]

    def test_nothing_priced_writes_nothing(self, db_session, admin, teacher, comparing_sheet):
        book = add_request(comparing_sheet, teacher)

        with pytest.raises(NoValidPricesError):
            finalize_service.finalize([book.id], finalized_by=admin.id)

        assert FinalizedPurchase.query.count() == 0
        assert ActivityLog.query.count() == 0

    def test_finalize_twice_does_not_duplicate(self, db_session, admin, teacher, comparing_sheet):
        book = add_request(comparing_sheet, teacher, quantity=3)
        price_service.record_prices([book.id], {book.id: {"A": 20}})

        first = finalize_service.finalize([book.id], finalized_by=admin.id)
        second = finalize_service.finalize([book.id], finalized_by=admin.id)

        assert FinalizedPurchase.query.count() == 1
        assert second.created_count == 0
        assert first.total_amount_cents == second.total_amount_cents == 6000

    def test_empty_selection_rejected(self, db_session):
        with pytest.raises(EmptySelectionError):
            finalize_service.finalize([], finalized_by=None)

    def test_unknown_book_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            finalize_service.finalize([424242], finalized_by=None)


class TestFinalizeAll:
    def test_completes_comparing_sheets(self, db_session, admin, teacher, comparing_sheet):
        a = add_request(comparing_sheet, teacher, book_name="A", quantity=2)
        b = add_request(comparing_sheet, teacher, book_name="B", quantity=1)
        price_service.record_prices([a.id, b.id], {a.id: {"X": 10}, b.id: {"X": 7, "Y": 6}})

        result = finalize_service.finalize_all(finalized_by=admin.id)

        assert result.created_count == 2
        assert result.total_amount_cents == 2000 + 600
        assert result.completed_sheet_ids == [comparing_sheet.id]
        assert db_session.get(PurchaseSheet, comparing_sheet.id).status == "completed"
        assert ActivityLog.query.filter_by(action="FINALIZE_COMPARISON").count() == 1

    def test_pending_sheets_are_ignored(self, db_session, admin, teacher, pending_sheet, comparing_sheet):
        pending_book = add_request(pending_sheet, teacher, book_name="Pending")
        book = add_request(comparing_sheet, teacher, book_name="Comparing")
        price_service.record_prices(
            [pending_book.id, book.id],
            {pending_book.id: {"A": 1}, book.id: {"A": 1}},
        )

        result = finalize_service.finalize_all(finalized_by=admin.id)

        assert [p.book_request_id for p in result.purchases] == [book.id]
        assert db_session.get(PurchaseSheet, pending_sheet.id).status == "pending"

    def test_nothing_priced_leaves_sheets_comparing(self, db_session, admin, teacher, comparing_sheet):
        add_request(comparing_sheet, teacher)

        with pytest.raises(NoValidPricesError):
            finalize_service.finalize_all(finalized_by=admin.id)

        assert db_session.get(PurchaseSheet, comparing_sheet.id).status == "comparing"


class TestMoveBack:
    def test_restores_price_and_reopens_sheet(self, db_session, admin, teacher, comparing_sheet):
        book = add_request(comparing_sheet, teacher, quantity=4)
        price_service.record_prices([book.id], {book.id: {"ShopA": 100, "ShopB": 85}})
        finalize_service.finalize_all(finalized_by=admin.id)
        purchase = FinalizedPurchase.query.one()

        restored = finalize_service.move_back(purchase.id, actor_id=admin.id)

        assert restored.price_cents == 8500
        assert restored.shop_name == "ShopB"
        assert restored.is_selected is False
        assert FinalizedPurchase.query.count() == 0
        assert db_session.get(PurchaseSheet, comparing_sheet.id).status == "comparing"
        shops = sorted(r.shop_name for r in PriceComparison.query.filter_by(book_request_id=book.id))
        assert shops == ["ShopA", "ShopB"]

    def test_replaces_existing_row_for_same_shop(self, db_session, admin, teacher, comparing_sheet):
        book = add_request(comparing_sheet, teacher)
        price_service.record_prices([book.id], {book.id: {"ShopA": 40, "ShopB": 30}})
        first = finalize_service.finalize([book.id], finalized_by=admin.id)

        restored = finalize_service.move_back(first.purchases[0].id, actor_id=admin.id)

        rows = PriceComparison.query.filter_by(book_request_id=book.id, shop_name="ShopB").all()
        assert [r.id for r in rows] == [restored.id]
        assert rows[0].is_selected is False

    def test_book_can_be_finalized_again(self, db_session, admin, teacher, comparing_sheet):
        book = add_request(comparing_sheet, teacher, quantity=2)
        price_service.record_prices([book.id], {book.id: {"A": 15}})
        first = finalize_service.finalize([book.id], finalized_by=admin.id)

        finalize_service.move_back(first.purchases[0].id, actor_id=admin.id)
        again = finalize_service.finalize([book.id], finalized_by=admin.id)

        assert again.created_count == 1
        assert again.total_amount_cents == 3000

    def test_unknown_purchase(self, db_session):
        with pytest.raises(NotFoundError):
            finalize_service.move_back(999999, actor_id=None)


def test_list_finalized_purchases_totals(db_session, admin, teacher, comparing_sheet):
    a = add_request(comparing_sheet, teacher, book_name="A", quantity=2)
    b = add_request(comparing_sheet, teacher, book_name="B", quantity=3)
    price_service.record_prices([a.id, b.id], {a.id: {"X": "1.50"}, b.id: {"X": "2.25"}})
    finalize_service.finalize([a.id, b.id], finalized_by=admin.id)

    purchases, total = finalize_service.list_finalized_purchases()

    assert len(purchases) == 2
    assert total == 300 + 675

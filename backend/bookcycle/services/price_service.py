# Overview: Service-layer operations for shop price comparison.

"""
Price Comparison Service

WHY: Before buying, the admin collects each shop's unit price for every book
under a comparing sheet. The cheapest shop per book is what finalization
commits to.

SAVE SEMANTICS (replace, not append):
- Saving prices for a set of books deletes every existing comparison row of
  those books, then inserts one row per (book, shop) with a positive price.
- Re-saving the same matrix therefore yields the same rows.
- is_selected is true for every row at that book's minimum price at save time.

MINIMUM PRICE:
- min price is the smallest positive recorded price, or 0 if there is none.
- When several shops share the minimum, the shop whose name sorts first
  (case-insensitive, then exact) wins. This makes the winner independent of
  row order.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..errors import EmptySelectionError, NotFoundError, ValidationError
from ..models import BookRequest, PriceComparison, PurchaseSheet
from ..models.purchasing import SHEET_COMPARING
from ..validation import format_cents, parse_id, parse_price_cents, require_text
from . import activity_service
from .store import read_guard, unit_of_work


@dataclass(frozen=True)
class BestOffer:
    book_request_id: int
    price_cents: int
    shop_name: str

    def to_dict(self) -> dict:
        return {
            "book_request_id": self.book_request_id,
            "min_price_cents": self.price_cents,
            "min_price": format_cents(self.price_cents),
            "shop_name": self.shop_name,
        }


def _shop_sort_key(shop_name: str):
    return (shop_name.casefold(), shop_name)


def pick_best(book_request_id: int, quotes) -> BestOffer:
    """
    Reduce (shop_name, price_cents) pairs to the winning offer.

    Non-positive prices are ignored. With no positive price the result has
    price_cents == 0 and an empty shop name.
    """
    best: tuple[int, str] | None = None
    for shop_name, price_cents in quotes:
        if price_cents is None or price_cents <= 0:
            continue
        if best is None:
            best = (price_cents, shop_name)
            continue
        if price_cents < best[0] or (
            price_cents == best[0] and _shop_sort_key(shop_name) < _shop_sort_key(best[1])
        ):
            best = (price_cents, shop_name)

    if best is None:
        return BestOffer(book_request_id=book_request_id, price_cents=0, shop_name="")
    return BestOffer(book_request_id=book_request_id, price_cents=best[0], shop_name=best[1])


def best_offer_in_session(book_request_id: int) -> BestOffer:
    """Best offer for one book using the caller's session (no transaction of its own)."""
    rows = (
        db.session.query(PriceComparison.shop_name, PriceComparison.price_cents)
        .filter(PriceComparison.book_request_id == book_request_id)
        .order_by(PriceComparison.id.asc())
        .all()
    )
    return pick_best(book_request_id, rows)


def best_offer(book_request_id: int) -> BestOffer:
    """Raises NotFoundError if the book request does not exist."""
    with read_guard("load price comparisons"):
        if db.session.get(BookRequest, book_request_id) is None:
            raise NotFoundError(f"Book request {book_request_id} not found")
        return best_offer_in_session(book_request_id)


def min_price_cents(book_request_id: int) -> int:
    """Smallest positive recorded price in cents, or 0."""
    return best_offer(book_request_id).price_cents


def min_price_shop(book_request_id: int) -> str:
    """Shop offering the minimum price, or "" when there is no positive price."""
    return best_offer(book_request_id).shop_name


def _normalize_matrix(book_ids: list[int], price_matrix: dict) -> dict[int, dict[str, int]]:
    """
    Validate {book_id: {shop_name: price}} and convert prices to cents.

    Book ids may arrive as JSON string keys. Every book in the matrix must be
    in book_ids.
    """
    if price_matrix is None:
        price_matrix = {}
    if not isinstance(price_matrix, dict):
        raise ValidationError("prices must be an object keyed by book id")

    allowed = set(book_ids)
    normalized: dict[int, dict[str, int]] = {}
    for raw_book_id, shops in price_matrix.items():
        book_id = parse_id(raw_book_id, "book id")
        if book_id not in allowed:
            raise ValidationError(f"Book request {book_id} is not part of this price update")
        if shops is None:
            shops = {}
        if not isinstance(shops, dict):
            raise ValidationError(f"prices for book {book_id} must be an object keyed by shop name")

        row = normalized.setdefault(book_id, {})
        for raw_shop, raw_price in shops.items():
            shop = require_text(raw_shop, "shop_name", max_length=255)
            if shop in row:
                raise ValidationError(f"Shop '{shop}' listed twice for book {book_id}")
            row[shop] = parse_price_cents(raw_price, f"price for '{shop}'")
    return normalized


def record_prices(
    book_ids,
    price_matrix: dict,
    *,
    actor_id: int | None = None,
) -> list[PriceComparison]:
    """
    Replace the price comparisons of book_ids with price_matrix.

    Raises:
        EmptySelectionError: no book ids
        ValidationError: malformed matrix or price
        NotFoundError: a book id has no BookRequest
    """
    ordered_ids: list[int] = []
    for raw in book_ids or []:
        book_id = parse_id(raw, "book id")
        if book_id not in ordered_ids:
            ordered_ids.append(book_id)
    if not ordered_ids:
        raise EmptySelectionError("No books selected for price update")

    matrix = _normalize_matrix(ordered_ids, price_matrix)

    with unit_of_work("save prices"):
        found = {
            row_id
            for (row_id,) in db.session.query(BookRequest.id).filter(BookRequest.id.in_(ordered_ids)).all()
        }
        missing = [book_id for book_id in ordered_ids if book_id not in found]
        if missing:
            raise NotFoundError(f"Book requests not found: {', '.join(str(m) for m in missing)}")

        db.session.query(PriceComparison).filter(
            PriceComparison.book_request_id.in_(ordered_ids)
        ).delete(synchronize_session=False)

        rows: list[PriceComparison] = []
        shops_seen: set[str] = set()
        for book_id in ordered_ids:
            quotes = matrix.get(book_id, {})
            best = pick_best(book_id, quotes.items())
            for shop, cents in quotes.items():
                if cents <= 0:
                    continue
                shops_seen.add(shop)
                rows.append(PriceComparison(
                    book_request_id=book_id,
                    shop_name=shop,
                    price_cents=cents,
                    is_selected=cents == best.price_cents,
                ))
        db.session.add_all(rows)

        activity_service.log_activity(
            user_id=actor_id,
            action=activity_service.UPDATE_PRICES,
            description=f"Updated prices for {len(ordered_ids)} books across {len(shops_seen)} shops",
        )
    return rows


def comparing_requests() -> list[BookRequest]:
    """Every book request under a sheet in the comparing state."""
    with read_guard("load comparison requests"):
        return (
            db.session.query(BookRequest)
            .join(PurchaseSheet, BookRequest.sheet_id == PurchaseSheet.id)
            .filter(PurchaseSheet.status == SHEET_COMPARING)
            .order_by(BookRequest.sheet_id.asc(), BookRequest.id.asc())
            .all()
        )


def comparison_workspace() -> dict:
    """
    The admin's comparison grid: books under comparing sheets, the shops
    quoted so far, the saved price matrix, and the current best offers.
    """
    books = comparing_requests()
    book_ids = [b.id for b in books]

    with read_guard("load price comparisons"):
        comparisons = (
            db.session.query(PriceComparison)
            .filter(PriceComparison.book_request_id.in_(book_ids))
            .order_by(PriceComparison.id.asc())
            .all()
        ) if book_ids else []

    prices: dict[int, dict[str, int]] = {}
    shops: list[str] = []
    for comp in comparisons:
        prices.setdefault(comp.book_request_id, {})[comp.shop_name] = comp.price_cents
        if comp.shop_name not in shops:
            shops.append(comp.shop_name)

    return {
        "books": books,
        "shops": shops,
        "prices": prices,
        "best": {book_id: pick_best(book_id, prices.get(book_id, {}).items()) for book_id in book_ids},
    }


def save_workspace_prices(price_matrix: dict, *, actor_id: int | None) -> list[PriceComparison]:
    """Record prices for every book currently in the comparison workspace."""
    book_ids = [b.id for b in comparing_requests()]
    return record_prices(book_ids, price_matrix, actor_id=actor_id)

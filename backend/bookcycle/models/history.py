from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from bookcycle.errors import ImmutableHistoryError
from bookcycle.time_utils import to_utc_z
from bookcycle.validation import format_cents

"""
Purchase-cycle history (append-only).

- One cycle close writes all three kinds under a single cycle_id.
- Rows are flat denormalized copies; original_*_id columns are plain
  integers, not foreign keys, because the live rows are deleted right after.
- Rows are never updated. The only removal path is deleting a whole cycle.
"""


class PurchaseHistory(db.Model):
    """Snapshot of a purchase sheet at cycle close."""
    __tablename__ = "purchase_history"
    __table_args__ = (
        db.Index("ix_purchase_history_cycle", "cycle_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cycle_id = db.Column(db.String(36), nullable=False)
    original_sheet_id = db.Column(db.Integer, nullable=True)

    sheet_name = db.Column(db.String(255), nullable=False)
    department = db.Column(db.String(64), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    assigned_to = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(16), nullable=False)

    cycle_closed_by = db.Column(db.Integer, nullable=True)
    cycle_closed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "original_sheet_id": self.original_sheet_id,
            "sheet_name": self.sheet_name,
            "department": self.department,
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "status": self.status,
            "cycle_closed_by": self.cycle_closed_by,
            "cycle_closed_at": to_utc_z(self.cycle_closed_at),
        }


class BookRequestHistory(db.Model):
    """Snapshot of a book request at cycle close."""
    __tablename__ = "book_requests_history"
    __table_args__ = (
        db.Index("ix_book_requests_history_cycle", "cycle_id"),
        db.Index("ix_book_requests_history_closed_at", "cycle_closed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cycle_id = db.Column(db.String(36), nullable=False)
    original_request_id = db.Column(db.Integer, nullable=True)
    original_sheet_id = db.Column(db.Integer, nullable=True)

    teacher_id = db.Column(db.Integer, nullable=True)
    teacher_name = db.Column(db.String(1024), nullable=False)
    book_name = db.Column(db.String(255), nullable=False)
    author = db.Column(db.String(255), nullable=False)
    edition = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), nullable=True)

    cycle_closed_by = db.Column(db.Integer, nullable=True)
    cycle_closed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "original_request_id": self.original_request_id,
            "original_sheet_id": self.original_sheet_id,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher_name,
            "book_name": self.book_name,
            "author": self.author,
            "edition": self.edition,
            "quantity": self.quantity,
            "status": self.status,
            "cycle_closed_by": self.cycle_closed_by,
            "cycle_closed_at": to_utc_z(self.cycle_closed_at),
        }


class FinalizedPurchaseHistory(db.Model):
    """Snapshot of a finalized purchase, joined with its request fields."""
    __tablename__ = "finalized_purchases_history"
    __table_args__ = (
        db.Index("ix_finalized_purchases_history_cycle", "cycle_id"),
        db.Index("ix_finalized_purchases_history_closed_at", "cycle_closed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cycle_id = db.Column(db.String(36), nullable=False)
    original_purchase_id = db.Column(db.Integer, nullable=True)
    original_book_request_id = db.Column(db.Integer, nullable=True)

    shop_name = db.Column(db.String(255), nullable=False)
    price_per_unit_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    finalized_by = db.Column(db.Integer, nullable=True)

    book_name = db.Column(db.String(255), nullable=False)
    author = db.Column(db.String(255), nullable=False)
    edition = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    teacher_name = db.Column(db.String(1024), nullable=False)

    cycle_closed_by = db.Column(db.Integer, nullable=True)
    cycle_closed_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "original_purchase_id": self.original_purchase_id,
            "original_book_request_id": self.original_book_request_id,
            "shop_name": self.shop_name,
            "price_per_unit_cents": self.price_per_unit_cents,
            "price_per_unit": format_cents(self.price_per_unit_cents),
            "total_amount_cents": self.total_amount_cents,
            "total_amount": format_cents(self.total_amount_cents),
            "finalized_by": self.finalized_by,
            "book_name": self.book_name,
            "author": self.author,
            "edition": self.edition,
            "quantity": self.quantity,
            "teacher_name": self.teacher_name,
            "cycle_closed_by": self.cycle_closed_by,
            "cycle_closed_at": to_utc_z(self.cycle_closed_at),
        }


HISTORY_MODELS = (PurchaseHistory, BookRequestHistory, FinalizedPurchaseHistory)


def _reject_history_update(mapper, connection, target):
    raise ImmutableHistoryError(
        f"{type(target).__name__} {target.id} is an archived snapshot and cannot be modified"
    )


for _model in HISTORY_MODELS:
    event.listen(_model, "before_update", _reject_history_update)

from __future__ import annotations

from ..extensions import db
from bookcycle.time_utils import to_utc_z
from bookcycle.validation import format_cents


# Sheet lifecycle states (see services/sheet_service.py for the transition table)
SHEET_PENDING = "pending"
SHEET_COMPARING = "comparing"
SHEET_COMPLETED = "completed"
SHEET_STATUSES = (SHEET_PENDING, SHEET_COMPARING, SHEET_COMPLETED)

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"


class PurchaseSheet(db.Model):
    """
    A named batch of book requests assigned to one teacher, or a
    consolidated batch across many (assigned_to is NULL, department is the
    consolidated tag).

    LIFECYCLE: pending -> comparing -> completed; a move-back returns a
    completed sheet to comparing. Sheets are only destroyed by a cycle close
    (snapshotted first) or an explicit manual delete.
    """
    __tablename__ = "purchase_sheets"
    __table_args__ = (
        db.Index("ix_purchase_sheets_status", "status"),
        db.Index("ix_purchase_sheets_assigned_to", "assigned_to"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sheet_name = db.Column(db.String(255), nullable=False)

    # Department enum value or "consolidated"
    department = db.Column(db.String(64), nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SHEET_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    creator = db.relationship("Profile", foreign_keys=[created_by])
    assigned_teacher = db.relationship("Profile", foreign_keys=[assigned_to])

    def __repr__(self) -> str:
        return f"<PurchaseSheet id={self.id} name={self.sheet_name!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sheet_name": self.sheet_name,
            "department": self.department,
            "created_by": self.created_by,
            "assigned_to": self.assigned_to,
            "assigned_teacher_name": self.assigned_teacher.full_name if self.assigned_teacher else None,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BookRequest(db.Model):
    """
    One teacher's request for a book under a purchase sheet.

    teacher_name is a snapshot taken at creation (consolidated requests hold
    a comma-separated list of contributors). sheet_id becomes NULL when the
    owning sheet is deleted manually.
    """
    __tablename__ = "book_requests"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_book_requests_quantity_positive"),
        db.Index("ix_book_requests_teacher_status", "teacher_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sheet_id = db.Column(db.Integer, db.ForeignKey("purchase_sheets.id"), nullable=True, index=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True, index=True)
    teacher_name = db.Column(db.String(1024), nullable=False)

    book_name = db.Column(db.String(255), nullable=False)
    author = db.Column(db.String(255), nullable=False)
    edition = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    # "pending" / "approved" or free text
    status = db.Column(db.String(32), nullable=False, default=REQUEST_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sheet = db.relationship("PurchaseSheet", backref=db.backref("book_requests", lazy=True))

    def __repr__(self) -> str:
        return f"<BookRequest id={self.id} book={self.book_name!r} qty={self.quantity} sheet_id={self.sheet_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sheet_id": self.sheet_id,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher_name,
            "book_name": self.book_name,
            "author": self.author,
            "edition": self.edition,
            "quantity": self.quantity,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PriceComparison(db.Model):
    """
    A shop's quoted unit price for one book request.

    Rows are replaced wholesale each time prices are saved for a set of books;
    is_selected marks the rows at that book's minimum price at save time.
    """
    __tablename__ = "price_comparisons"
    __table_args__ = (
        db.CheckConstraint("price_cents >= 0", name="ck_price_comparisons_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_request_id = db.Column(db.Integer, db.ForeignKey("book_requests.id"), nullable=False, index=True)
    shop_name = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    is_selected = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    book_request = db.relationship("BookRequest", backref=db.backref("price_comparisons", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_request_id": self.book_request_id,
            "shop_name": self.shop_name,
            "price_cents": self.price_cents,
            "price": format_cents(self.price_cents),
            "is_selected": self.is_selected,
            "created_at": to_utc_z(self.created_at),
        }


class FinalizedPurchase(db.Model):
    """
    The committed purchase decision for one book request: the winning shop,
    its unit price, and total = unit price x request quantity.
    """
    __tablename__ = "finalized_purchases"
    __table_args__ = (
        db.CheckConstraint("price_per_unit_cents > 0", name="ck_finalized_purchases_price_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    book_request_id = db.Column(db.Integer, db.ForeignKey("book_requests.id"), nullable=False, index=True)
    shop_name = db.Column(db.String(255), nullable=False)
    price_per_unit_cents = db.Column(db.Integer, nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    finalized_by = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    book_request = db.relationship("BookRequest", backref=db.backref("finalized_purchases", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<FinalizedPurchase id={self.id} book_request_id={self.book_request_id} "
            f"shop={self.shop_name!r} total_cents={self.total_amount_cents}>"
        )

    def to_dict(self, *, include_request: bool = False) -> dict:
        data = {
            "id": self.id,
            "book_request_id": self.book_request_id,
            "shop_name": self.shop_name,
            "price_per_unit_cents": self.price_per_unit_cents,
            "price_per_unit": format_cents(self.price_per_unit_cents),
            "total_amount_cents": self.total_amount_cents,
            "total_amount": format_cents(self.total_amount_cents),
            "finalized_by": self.finalized_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_request and self.book_request is not None:
            req = self.book_request
            data["book_request"] = {
                "book_name": req.book_name,
                "author": req.author,
                "edition": req.edition,
                "quantity": req.quantity,
                "teacher_name": req.teacher_name,
                "sheet_id": req.sheet_id,
            }
        return data

from __future__ import annotations

from ..extensions import db
from bookcycle.time_utils import to_utc_z


class SystemSettings(db.Model):
    """
    Singleton row of institution-wide settings.

    request_deadline: after this instant teachers can no longer add requests
    (NULL means no deadline).
    """
    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)
    request_deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    teacher_registration_enabled = db.Column(db.Boolean, nullable=False, default=True)
    admin_registration_enabled = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "request_deadline": to_utc_z(self.request_deadline),
            "teacher_registration_enabled": self.teacher_registration_enabled,
            "admin_registration_enabled": self.admin_registration_enabled,
            "updated_at": to_utc_z(self.updated_at),
        }

# Overview: Service-layer operations for system settings.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..errors import ValidationError
from ..models import SystemSettings
from ..models.auth import ROLE_ADMIN, ROLE_TEACHER
from ..time_utils import parse_iso_datetime, utcnow
from .store import unit_of_work


_UNSET = object()


def get_settings() -> SystemSettings:
    """Return the singleton settings row, creating defaults on first use."""
    settings = db.session.query(SystemSettings).order_by(SystemSettings.id.asc()).first()
    if settings is not None:
        return settings

    with unit_of_work("initialize settings"):
        settings = SystemSettings(
            teacher_registration_enabled=True,
            admin_registration_enabled=True,
        )
        db.session.add(settings)
    return settings


def update_settings(
    *,
    request_deadline=_UNSET,
    teacher_registration_enabled=_UNSET,
    admin_registration_enabled=_UNSET,
) -> SystemSettings:
    """
    Patch settings. Only arguments that are passed are changed; pass
    request_deadline=None to clear the deadline.
    """
    patch: dict = {}

    if request_deadline is not _UNSET:
        if request_deadline is None or isinstance(request_deadline, datetime):
            patch["request_deadline"] = request_deadline
        elif isinstance(request_deadline, str):
            try:
                patch["request_deadline"] = parse_iso_datetime(request_deadline)
            except ValueError:
                raise ValidationError("request_deadline must be an ISO-8601 datetime")
        else:
            raise ValidationError("request_deadline must be an ISO-8601 datetime")

    for key, value in (
        ("teacher_registration_enabled", teacher_registration_enabled),
        ("admin_registration_enabled", admin_registration_enabled),
    ):
        if value is _UNSET:
            continue
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be true or false")
        patch[key] = value

    settings = get_settings()
    with unit_of_work("update settings"):
        for key, value in patch.items():
            setattr(settings, key, value)
    return settings


def is_request_window_open(now: datetime | None = None) -> bool:
    deadline = get_settings().request_deadline
    if deadline is None:
        return True
    return (now or utcnow()) <= deadline


def is_registration_enabled(role: str) -> bool:
    settings = get_settings()
    if role == ROLE_ADMIN:
        return settings.admin_registration_enabled
    if role == ROLE_TEACHER:
        return settings.teacher_registration_enabled
    return False

# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Operations take the acting profile from an explicit SessionContext
instead of ambient global state. A context is created at login, invalidated
at logout, and never shared between unrelated requests.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout and idle timeout (Config.SESSION_*_TIMEOUT_HOURS)
- Revocable on logout or password change
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import SessionToken, Profile
from .store import unit_of_work
from bookcycle.time_utils import utcnow


@dataclass
class SessionContext:
    """
    Identity for one authenticated call.

    user_id is the stable profile id services record as the actor.
    """
    profile: Profile
    session: SessionToken

    @property
    def user_id(self) -> int:
        return self.profile.id

    @property
    def role(self) -> str:
        return self.profile.role

    @property
    def is_admin(self) -> bool:
        return self.profile.is_admin


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy), sent to the client only."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    profile_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for a profile.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    plaintext_token = generate_token()
    token_hash = hash_token(plaintext_token)
    now = utcnow()

    with unit_of_work("create session"):
        profile = db.session.get(Profile, profile_id)
        if not profile:
            raise NotFoundError("Profile not found")
        if not profile.is_active:
            raise ValidationError("Profile is not active")

        session = SessionToken(
            profile_id=profile_id,
            token_hash=token_hash,
            created_at=now,
            last_used_at=now,
            expires_at=now + _absolute_timeout(),
            user_agent=user_agent,
            ip_address=ip_address,
            is_revoked=False
        )
        db.session.add(session)

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is invalid, expired, or revoked
    - Profile is deactivated

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()

    with unit_of_work("validate session"):
        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False
        ).first()

        if not session:
            return None

        if session.expires_at < now:
            return None

        if now - session.last_used_at > _idle_timeout():
            _revoke(session, "Idle timeout", now)
            return None

        profile = session.profile
        if not profile or not profile.is_active:
            _revoke(session, "Profile deactivated", now)
            return None

        session.last_used_at = now

    return SessionContext(profile=profile, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    with unit_of_work("revoke session"):
        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False
        ).first()

        if not session:
            return False

        _revoke(session, reason, utcnow())
    return True


def revoke_all_sessions(profile_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke all active sessions for a profile. Returns count revoked."""
    now = utcnow()
    with unit_of_work("revoke sessions"):
        sessions = db.session.query(SessionToken).filter_by(
            profile_id=profile_id,
            is_revoked=False
        ).all()
        for session in sessions:
            _revoke(session, reason, now)
    return len(sessions)

# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sheet, request, finalization and cycle close is attributed to a
profile. Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from sqlalchemy import func, or_
from ..extensions import db
from ..models import Profile
from ..models.auth import ROLE_ADMIN, ROLE_TEACHER, VALID_ROLES
from ..departments import Department
from ..errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ..validation import require_text
from . import activity_service
from .store import read_guard, unit_of_work
from bookcycle.time_utils import utcnow


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. Malformed hashes verify False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email) -> str:
    email = require_text(email, "email", max_length=255).lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("email is not a valid address")
    return email


def create_profile(
    *,
    email: str,
    password: str,
    full_name: str,
    department,
    role: str = ROLE_TEACHER,
    bcrypt_rounds: int = 12,
) -> Profile:
    """
    Create a new profile with a bcrypt-hashed password.

    Raises:
        ValidationError / PasswordValidationError: bad input
        ConflictError: email already registered
    """
    email = normalize_email(email)
    full_name = require_text(full_name, "full_name", max_length=255)
    dept = Department.parse(department)
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(VALID_ROLES))}")

    password_hash = hash_password(password, rounds=bcrypt_rounds)

    with unit_of_work("create profile"):
        existing = db.session.query(Profile).filter_by(email=email).first()
        if existing:
            raise ConflictError("A profile with this email already exists")

        profile = Profile(
            email=email,
            full_name=full_name,
            department=dept.value,
            role=role,
            password_hash=password_hash,
            is_active=True,
        )
        db.session.add(profile)
    return profile


def authenticate(email: str, password: str) -> Profile | None:
    """
    Authenticate by email and password.

    Returns the Profile if credentials are valid, None otherwise.
    Updates last_login_at on success.
    """
    if not email or not password:
        return None

    with unit_of_work("authenticate"):
        profile = db.session.query(Profile).filter(
            Profile.email == email.strip().lower(),
            Profile.is_active.is_(True),
        ).first()

        if not profile or not verify_password(password, profile.password_hash):
            return None

        profile.last_login_at = utcnow()
    return profile


def get_profile(profile_id: int) -> Profile:
    with read_guard("load profile"):
        profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(f"Profile {profile_id} not found")
    return profile


def list_teachers(*, include_inactive: bool = False) -> list[Profile]:
    with read_guard("list teachers"):
        q = db.session.query(Profile).filter(Profile.role == ROLE_TEACHER)
        if not include_inactive:
            q = q.filter(Profile.is_active.is_(True))
        return q.order_by(Profile.full_name.asc(), Profile.id.asc()).all()


def list_profiles(
    *,
    role: str | None = None,
    department=None,
    search: str | None = None,
) -> list[Profile]:
    """
    Profiles for the user management screen.

    role and department filter exactly; search matches name, email or
    department value case-insensitively.
    """
    if role is not None and role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(VALID_ROLES))}")
    dept = Department.parse(department).value if department is not None else None

    with read_guard("list profiles"):
        q = db.session.query(Profile)
        if role is not None:
            q = q.filter(Profile.role == role)
        if dept is not None:
            q = q.filter(Profile.department == dept)
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            q = q.filter(or_(
                func.lower(Profile.full_name).like(pattern),
                func.lower(Profile.email).like(pattern),
                func.lower(Profile.department).like(pattern),
            ))
        return q.order_by(Profile.role.asc(), Profile.full_name.asc(), Profile.id.asc()).all()


def profile_stats() -> dict:
    """Head counts per role and per department, over all profiles."""
    with read_guard("count profiles"):
        by_role = dict(
            db.session.query(Profile.role, func.count(Profile.id)).group_by(Profile.role).all()
        )
        by_department = dict(
            db.session.query(Profile.department, func.count(Profile.id)).group_by(Profile.department).all()
        )
    return {
        "total_users": sum(by_role.values()),
        "admin_users": by_role.get(ROLE_ADMIN, 0),
        "teacher_users": by_role.get(ROLE_TEACHER, 0),
        "department_counts": by_department,
    }


def update_role(profile_id: int, role: str, *, actor_id: int | None) -> Profile:
    """
    Promote a teacher to admin or demote an admin to teacher.

    Raises:
        ValidationError: unknown role
        PermissionDeniedError: an admin changing their own role
        NotFoundError: unknown profile
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(VALID_ROLES))}")
    if actor_id is not None and actor_id == profile_id:
        raise PermissionDeniedError("You cannot change your own role")

    with unit_of_work("update profile role"):
        profile = db.session.get(Profile, profile_id)
        if profile is None:
            raise NotFoundError(f"Profile {profile_id} not found")

        if profile.role != role:
            profile.role = role
            activity_service.log_activity(
                user_id=actor_id,
                action=activity_service.UPDATE_USER_ROLE,
                description=f"Changed role of {profile.email} to {role}",
            )
    return profile


def change_password(
    *,
    profile_id: int,
    current_password: str,
    new_password: str,
    bcrypt_rounds: int = 12,
) -> Profile:
    """Change a profile's password after verifying the current one."""
    profile = get_profile(profile_id)
    if not verify_password(current_password or "", profile.password_hash):
        raise ValidationError("Current password is incorrect")
    new_hash = hash_password(new_password, rounds=bcrypt_rounds)

    with unit_of_work("change password"):
        profile.password_hash = new_hash
    return profile

# Overview: Password hashing, strength rules and credential checks.

"""
Authentication Service

Every scan must be attributable to a user. Passwords are hashed with
bcrypt and checked against strength rules before hashing.

MULTI-TENANT: Users belong to exactly one company. E-mail is unique
within a company, so the same address may log into two companies; login
accepts an optional company_id to disambiguate.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char
- Session tokens managed separately (see session_service.py)
- Authentication fails for users of inactive companies
"""

from __future__ import annotations

import re
import secrets
import string

import bcrypt

from ..records import UserRecord
from ..repositories import get_repository
from ..validation import normalize_email
from zonecount.time_utils import utcnow


BCRYPT_ROUNDS = 12

SPECIAL_CHARACTERS = "!@#$%^&*(),.:{}|<>"


class PasswordValidationError(Exception):
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
    if not isinstance(password, str):
        raise PasswordValidationError("Password is required")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. A malformed stored hash
    counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def generate_password(length: int = 14) -> str:
    """
    Random password that always passes validate_password_strength().

    Used when an admin creates a user without typing a password; the
    plaintext is returned once in the API response and never stored.
    """
    alphabet = string.ascii_letters + string.digits + SPECIAL_CHARACTERS
    while True:
        candidate = "".join(secrets.choice(alphabet) for _ in range(length))
        try:
            validate_password_strength(candidate)
        except PasswordValidationError:
            continue
        return candidate


def authenticate(
    email: str,
    password: str,
    company_id: int | None = None,
    repo=None,
) -> UserRecord | None:
    """
    Authenticate user with e-mail and password.

    If company_id is given, only that company's account is considered.
    Otherwise every account with this e-mail is tried in id order and the
    first one whose password verifies wins.

    Returns the UserRecord (with last_login_at updated) or None.
    """
    repo = repo or get_repository()
    if not email or not password:
        return None

    candidates = repo.find_users_by_email(normalize_email(email))
    if company_id is not None:
        candidates = [u for u in candidates if u.company_id == company_id]

    for user in candidates:
        company = repo.get_company(user.company_id)
        if company is None or not company.is_active:
            continue
        if verify_password(password, user.password_hash):
            with repo.transaction():
                return repo.update_user(user.company_id, user.id, {"last_login_at": utcnow()})

    return None

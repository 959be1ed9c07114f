# Overview: Opaque session tokens stored as SHA-256 hashes.

"""
Session Token Management Service

Tokens are random, hashed in the database and time-limited. The
plaintext token lives only on the client, either in the
Authorization: Bearer header or in the HttpOnly session cookie.

MULTI-TENANT: Sessions capture company_id at creation time. The company
of a session never changes for its lifetime.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout of SESSION_LIFETIME_HOURS (1 day by default)
- Revocable on logout, user deletion or company deactivation
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken
from ..records import UserRecord
from ..repositories import get_repository
from zonecount.time_utils import utcnow


DEFAULT_SESSION_LIFETIME = timedelta(hours=24)


@dataclass
class SessionContext:
    """
    Result of validate_session: who is calling and for which company.
    """
    user: UserRecord
    session: SessionToken
    company_id: int


def session_lifetime() -> timedelta:
    hours = current_app.config.get("SESSION_LIFETIME_HOURS")
    if not hours:
        return DEFAULT_SESSION_LIFETIME
    return timedelta(hours=int(hours))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    SHA-256 of the token, hex encoded.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user: UserRecord,
    user_agent: str | None = None,
    ip_address: str | None = None,
    repo=None,
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Raises ValueError if the user's company is missing or inactive.
    """
    repo = repo or get_repository()
    company = repo.get_company(user.company_id)
    if company is None or not company.is_active:
        raise ValueError("Company is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        company_id=user.company_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + session_lifetime(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str, repo=None) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is unknown, expired or revoked
    - The user no longer exists in the session's company
    - The company is deactivated

    Updates last_used_at on success.
    """
    if not token:
        return None

    repo = repo or get_repository()
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    user = repo.get_user(session.company_id, session.user_id)
    if user is None:
        _revoke(session, "User deleted")
        return None

    company = repo.get_company(session.company_id)
    if company is None or not company.is_active:
        _revoke(session, "Company deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, company_id=session.company_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Returns count of sessions revoked."""
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """
    Delete expired and revoked sessions created more than `older_than_days` ago.

    Returns count of sessions deleted. Run periodically via
    `flask maintenance cleanup-sessions`.
    """
    now = utcnow()
    cutoff = now - timedelta(days=older_than_days)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted

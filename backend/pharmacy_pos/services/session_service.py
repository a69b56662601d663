# Overview: Bearer session tokens bound to a user and that user's store.

"""
Session Token Management

Tokens are cryptographically random and only their SHA-256 hash is stored.
The store_id captured at issue time is the tenant context for every request
made with the token.

Login flows are out of scope; tokens are issued by `flask pos issue-token`
(and by tests).
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import SessionToken, Store, User
from pharmacy_pos.time_utils import utcnow

DEFAULT_TOKEN_MAX_AGE = 12 * 60 * 60


@dataclass
class SessionContext:
    user: User
    session: SessionToken
    store_id: int


def generate_token() -> str:
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int, max_age_seconds: int = DEFAULT_TOKEN_MAX_AGE) -> tuple[SessionToken, str]:
    """
    Issue a token for an active user of an active store.

    Returns (session_record, plaintext_token). Only the hash is persisted.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", details={"user_id": user_id})
    if not user.is_active:
        raise ValidationError("User account is deactivated", details={"user_id": user_id})

    store = db.session.get(Store, user.store_id)
    if store is None or not store.is_active:
        raise ValidationError("Store is not active", details={"store_id": user.store_id})

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        store_id=user.store_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + timedelta(seconds=max_age_seconds),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a plaintext token to its SessionContext.

    Returns None if the token is unknown, revoked or expired, or if the user
    or store has since been deactivated.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return None

    expires_at = session.expires_at
    if expires_at.tzinfo is not None:
        expires_at = expires_at.replace(tzinfo=None)
    if expires_at < utcnow():
        return None

    user = session.user
    if user is None or not user.is_active:
        return None

    store = db.session.get(Store, session.store_id)
    if store is None or not store.is_active:
        return None

    return SessionContext(user=user, session=session, store_id=session.store_id)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True

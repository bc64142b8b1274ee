"""
auth/tokens.py -- JWT and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id, username, email, role, issue time and expiry. Lifetime is
       fixed (TOKEN_EXPIRE_SECONDS, 24 hours by default); there is no refresh.
       Verification returns None on any failure -- the guard turns that into
       Unauthenticated.

       Expiry is checked here against an explicit `now` rather than by
       jose's internal clock, so the token lifetime can be exercised in tests
       without sleeping or patching time.

  Passwords: bcrypt used directly, cost factor from BCRYPT_ROUNDS. The
       _DUMMY_HASH constant enables timing equalization in the authenticator
       so response time does not reveal whether an email exists.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import User
from core.config import get_settings

logger = logging.getLogger("assetdesk.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "id", "username", "email", "role", "iat", "exp")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt rejects input over 72 bytes; auth.validation.check_password keeps
    new passwords within that limit.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash or a password bcrypt refuses to process is
    treated as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def is_bcrypt_hash(value: object) -> bool:
    """Cheap structural check used by the pre-hashed bulk import path."""
    return isinstance(value, str) and value.startswith(("$2a$", "$2b$", "$2y$")) and len(value) == 60


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("assetdesk_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt comparison whose result is discarded.

    Called when there is no stored hash to compare against so the caller
    spends the same time as a real verification.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user: User, now: datetime | None = None) -> str:
    """Encode a signed JWT asserting the user's identity.

    Args:
        user: A persisted User (id must be set).
        now:  Issue time. Defaults to the current UTC time.
    """
    if user.id is None:
        raise ValueError("Cannot issue a token for an unsaved user")
    issued = now or datetime.now(timezone.utc)
    expires = issued + timedelta(seconds=_settings.token_expire_seconds)
    payload = {
        "sub": str(user.id),
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str, now: datetime | None = None) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Signature and structure are verified by jose; expiry is compared against
    `now` (default: current UTC time). A token is valid strictly before its
    exp timestamp.
    """
    try:
        payload = jwt.decode(
            token,
            _settings.secret_key,
            algorithms=[_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        return None
    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        return None
    current = now or datetime.now(timezone.utc)
    try:
        expired = int(current.timestamp()) >= int(payload["exp"])
    except (TypeError, ValueError):
        return None
    if expired:
        return None
    return payload

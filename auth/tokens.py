"""
auth/tokens.py -- JWT encode/decode and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, username, email, the full role-name list, iat, exp, iss and
       aud. The signature covers every claim, so editing any of them
       invalidates the token. Verification returns None on any failure --
       the route layer turns that into a 401.

  Expiry: zero clock-skew tolerance. jose's own exp check is disabled and
       replaced by an explicit `now >= exp` rejection, so a token is dead at
       the exact second it expires rather than one second later. Taking `now`
       as a parameter also lets tests pin the boundary without sleeping.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       offline brute-force of a leaked hash expensive.

  SECRET_KEY / issuer / audience / TTL: sourced from core.config.get_settings()
       once at module load.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenIdentity
from core.config import get_settings

logger = logging.getLogger("gatekeeper.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps passwords at 100 characters, and the complexity rule limits
    them to ASCII, so inputs stay close to that threshold.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def token_lifetime(expire_seconds: int = 0) -> int:
    """Return the effective TTL: expire_seconds if positive, else the configured default."""
    return expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds


def create_access_token(
    user_id: int,
    username: str,
    email: str,
    roles: Iterable[str],
    expire_seconds: int = 0,
    now: Optional[datetime] = None,
) -> str:
    """Encode a signed JWT with user identity, role names, and expiry.

    Args:
        user_id:        Numeric user ID stored in the DB.
        username:       Username claim.
        email:          Email claim.
        roles:          Role names assigned to the user at issue time.
        expire_seconds: Token lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
        now:            Issue instant. Defaults to the current UTC time.
                        Truncated to whole seconds (JWT NumericDate).
    """
    issued_at = _timestamp(now)
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "username": username,
        "email": email,
        "roles": list(roles),
        "iat": issued_at,
        "exp": issued_at + token_lifetime(expire_seconds),
        "iss": _settings.jwt_issuer,
        "aud": _settings.jwt_audience,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str, now: Optional[datetime] = None) -> Optional[dict]:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Checks signature, issuer, audience, and expiry (no leeway), then the
    presence and type of the claims the rest of the app relies on.
    """
    try:
        payload = jwt.decode(
            token,
            _settings.secret_key,
            algorithms=[_ALGORITHM],
            audience=_settings.jwt_audience,
            issuer=_settings.jwt_issuer,
            options={"verify_exp": False, "require_exp": True, "require_iss": True, "require_aud": True},
        )
    except JWTError:
        return None

    exp = payload.get("exp")
    if not _is_int(exp):
        return None
    current = now.timestamp() if now is not None else datetime.now(timezone.utc).timestamp()
    if current >= exp:
        return None
    if not _is_int(payload.get("user_id")) or not isinstance(payload.get("roles"), list):
        return None
    return payload


def validate_token(token: str, now: Optional[datetime] = None) -> bool:
    """Return True if the token is authentic, meant for us, and unexpired."""
    return decode_access_token(token, now=now) is not None


def identity_from_token(token: str) -> Optional[TokenIdentity]:
    """Rebuild the identity carried by a token WITHOUT verifying it.

    Pure local decode of the payload segment -- no key, no network, no expiry
    check. Use it to display who a token belongs to (e.g. a client restoring
    a session), never to authorize anything. A structurally invalid token or
    payload returns None.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None

    user_id = claims.get("user_id")
    roles = claims.get("roles")
    exp = claims.get("exp")
    if not _is_int(user_id) or not _is_int(exp) or not isinstance(roles, list):
        return None
    if not all(isinstance(r, str) for r in roles):
        return None
    return TokenIdentity(
        user_id=user_id,
        username=str(claims.get("username", "")),
        email=str(claims.get("email", "")),
        roles=tuple(roles),
        expires_at=datetime.fromtimestamp(exp, timezone.utc),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _timestamp(now: Optional[datetime]) -> int:
    moment = now if now is not None else datetime.now(timezone.utc)
    return int(moment.timestamp())


def _is_int(value) -> bool:
    # bool is an int subclass; a JSON true is never a valid NumericDate or id.
    return isinstance(value, int) and not isinstance(value, bool)

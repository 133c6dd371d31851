"""
auth/service.py -- The login workflow: credentials in, signed token out.

login() composes the directory (lookup + roles), the credential verifier
(bcrypt), and the token codec (JWT). It answers with a LoginResult or None.

Anti-enumeration:
  Unknown email, inactive account, and wrong password all return None, and
  the route turns every None into the same 401 body. bcrypt runs on every
  path -- against _DUMMY_HASH when the email is unknown -- so response time
  does not reveal which of the three conditions held either.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from auth.directory import UserDirectory, to_profile
from auth.models import LoginResult, User
from auth.tokens import create_access_token, hash_password, token_lifetime, validate_token, verify_password

logger = logging.getLogger("gatekeeper.auth")

# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("gatekeeper_timing_dummy")


def authenticate_user(directory: UserDirectory, email: str, password: str) -> Optional[User]:
    """Return the User for valid credentials of an active account, else None.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Inactive or wrong password: bcrypt runs against the real hash
    """
    user = directory.get_credentials_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


def login(
    directory: UserDirectory,
    email: str,
    password: str,
    expire_seconds: int = 0,
    now: Optional[datetime] = None,
) -> Optional[LoginResult]:
    """Authenticate and issue a token carrying the user's current role names.

    expires_at is exactly the token's exp claim: issue instant (whole
    seconds) plus the configured lifetime.
    """
    user = authenticate_user(directory, email, password)
    if user is None:
        logger.warning("Login failed")
        return None

    roles = directory.get_role_names(user.id)
    issued_at = datetime.fromtimestamp(int((now or datetime.now(timezone.utc)).timestamp()), timezone.utc)
    ttl = token_lifetime(expire_seconds)
    token = create_access_token(
        user.id,
        user.username,
        user.email,
        roles,
        expire_seconds=ttl,
        now=issued_at,
    )
    logger.info("Login succeeded for user id=%s", user.id)
    return LoginResult(
        token=token,
        user=to_profile(user, roles),
        expires_at=datetime.fromtimestamp(issued_at.timestamp() + ttl, timezone.utc),
    )


def validate(token: str, now: Optional[datetime] = None) -> bool:
    """Stateless token check: signature, issuer, audience, expiry. No revocation."""
    return validate_token(token, now=now)

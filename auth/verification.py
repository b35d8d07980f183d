"""
auth/verification.py -- Email verification token lifecycle.

A verification window is opened at registration: a random token and an expiry
are stored together on the principal. Delivering the token (email) is outside
this service. Redeeming it flips is_email_verified and clears both fields in
one UPDATE, so a token works at most once.

Callers never learn why a token failed: unknown, mismatched, expired and
already-used tokens all raise the same InvalidOrExpiredToken.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from auth.errors import InvalidOrExpiredToken

if TYPE_CHECKING:
    from auth.store import PrincipalStore

logger = logging.getLogger("forsalearn.auth")

DEFAULT_VERIFICATION_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class VerificationResult:
    principal_id: int
    verified_at: datetime


def new_verification_token(ttl: timedelta = DEFAULT_VERIFICATION_TTL) -> tuple[str, datetime]:
    """Return a fresh (token, expires_at) pair. 32 random bytes, urlsafe."""
    return secrets.token_urlsafe(32), datetime.now(timezone.utc) + ttl


def verify_email(store: PrincipalStore, token: str, now: datetime | None = None) -> VerificationResult:
    """Redeem a verification token or raise InvalidOrExpiredToken."""
    moment = now or datetime.now(timezone.utc)
    principal_id = store.consume_email_verification(token, moment)
    if principal_id is None:
        logger.info("Email verification rejected")
        raise InvalidOrExpiredToken()
    logger.info("Email verified for principal %s", principal_id)
    return VerificationResult(principal_id=principal_id, verified_at=moment)

"""
auth/tokens.py -- Bearer token issuance and verification.

JWT: python-jose with HS256. Tokens carry the principal id (as the `sub`
claim), the role, and `iat`/`exp` timestamps. The default validity window is
seven days.

TokenIssuer is constructed once at startup from Settings and injected through
app.state, so there is exactly one signing secret per process. There is no
revocation list: logout is client-side, and rotating SECRET_KEY invalidates
every outstanding token.

Verification failures raise instead of returning None so the auth dependency
can tell expired tokens from forged or malformed ones:
  ExpiredSignatureError                     -> ExpiredToken
  any other JWTError, bad claims, garbage   -> InvalidToken

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredToken, InvalidToken
from auth.models import ROLES

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"
DEFAULT_TOKEN_LIFETIME = timedelta(days=7)


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token."""

    principal_id: int
    role: str
    expires_at: datetime


class TokenIssuer:
    """Signs and verifies bearer tokens with a single process-wide secret.

    Usage:
        tokens = TokenIssuer.from_settings(get_settings())
        token = tokens.issue(principal.id, principal.role)
        claims = tokens.verify(token)   # raises InvalidToken / ExpiredToken
    """

    def __init__(self, secret_key: str, lifetime: timedelta = DEFAULT_TOKEN_LIFETIME) -> None:
        if not secret_key:
            raise ValueError("TokenIssuer requires a non-empty secret key.")
        self._secret_key = secret_key
        self.lifetime = lifetime

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(settings.secret_key, timedelta(days=settings.token_expire_days))

    def issue(self, principal_id: int, role: str) -> str:
        """Encode a signed token binding the principal id and role."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(principal_id),
            "role": role,
            "iat": now,
            "exp": now + self.lifetime,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry and return the claims.

        Raises ExpiredToken for a correctly signed token past its `exp`, and
        InvalidToken for everything else that fails.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except (JWTError, ValueError, TypeError) as exc:
            raise InvalidToken() from exc

        role = payload.get("role")
        try:
            principal_id = int(payload["sub"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc
        if role not in ROLES:
            raise InvalidToken()
        return TokenClaims(principal_id=principal_id, role=role, expires_at=expires_at)

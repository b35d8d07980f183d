"""
auth/credentials.py -- Password hashing and credential checks.

Passwords: bcrypt used directly (no passlib wrapper), fixed work factor of 10
rounds. The salt is embedded in the hash string, so verify needs only the
stored hash.

bcrypt only looks at the first 72 bytes of its input and current releases
raise on longer input, so both hash and verify truncate to 72 bytes. Doing it
in both places keeps them consistent.

The _DUMMY_HASH constant enables timing equalization in
authenticate_principal() so response time does not reveal whether an email is
registered.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

import bcrypt

from auth.errors import AccountDeactivated, InvalidCredentials, PendingApproval
from auth.models import INSTRUCTOR

if TYPE_CHECKING:
    from auth.models import Principal
    from auth.store import PrincipalStore

logger = logging.getLogger("forsalearn.auth")

BCRYPT_ROUNDS = 10
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Malformed hashes count as a mismatch instead of raising.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first unknown-email login is not
# measurably faster than the rest.
_DUMMY_HASH: str = hash_password("forsalearn_timing_dummy")


def authenticate_principal(
    store: PrincipalStore,
    email: str,
    password: str,
    roles: Iterable[str],
) -> Principal:
    """Check a login attempt against the store for the given role set.

    Order of checks:
      1. Unknown email, or a role outside `roles` -> InvalidCredentials. bcrypt
         still runs against _DUMMY_HASH so timing matches a real check.
      2. Inactive account -> AccountDeactivated (403).
      3. Wrong password -> InvalidCredentials.
      4. Unapproved instructor -> PendingApproval (403, isPending flag).

    The same InvalidCredentials is raised for cases 1 and 3 so the caller
    cannot tell which of email, role or password was wrong.

    Returns the Principal (with hashed_password loaded) on success.
    """
    allowed = set(roles)
    principal = store.get_by_email(email, include_secret=True)
    if principal is None or principal.role not in allowed or principal.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        logger.info("Login rejected: unknown email or role outside %s", sorted(allowed))
        raise InvalidCredentials()
    if not principal.is_active:
        logger.info("Login rejected: principal %s is deactivated", principal.id)
        raise AccountDeactivated()
    if not verify_password(password, principal.hashed_password):
        logger.info("Login rejected: bad password for principal %s", principal.id)
        raise InvalidCredentials()
    if principal.role == INSTRUCTOR and not principal.profile.is_approved:
        logger.info("Login rejected: instructor %s pending approval", principal.id)
        raise PendingApproval()
    return principal

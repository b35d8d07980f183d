"""
auth/dependencies.py -- FastAPI Depends() gates for protected routes.

The gates form an ordered pipeline. Each stage either raises an AuthError
(short-circuiting the request) or returns the principal for the next stage:

  get_current_principal      Authorization: Bearer <token> -> Principal
  authorize(*roles)          role membership check
  check_instructor_approval  instructors must be approved; others pass

FastAPI caches get_current_principal per request, so a route that stacks all
three resolves the token and loads the principal once.

Usage:
    @router.get("/formateur/dashboard")
    def dashboard(
        principal: Principal = Depends(authorize(INSTRUCTOR)),
        _approved: Principal = Depends(check_instructor_approval),
    ): ...

Layer rule: may import from fastapi (Depends/Request) because this module is
part of the dependency injection system. No imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import AccountDeactivated, Forbidden, InternalError, NotApproved, Unauthenticated
from auth.models import INSTRUCTOR, Principal
from auth.store import PrincipalStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("forsalearn.auth")

_BEARER_PREFIX = "Bearer "


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise Unauthenticated()
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthenticated()
    return token


def get_current_principal(request: Request) -> Principal:
    """Authenticate the request from its bearer token.

    Raises:
      Unauthenticated (401)     no header, wrong scheme, or principal gone
      InvalidToken (401)        bad signature or malformed token
      ExpiredToken (401)        token past its expiry
      AccountDeactivated (403)  principal exists but is_active is False
      InternalError (500)       the store could not be queried

    The returned principal never carries the password hash.
    """
    token = _bearer_token(request)
    tokens: TokenIssuer = request.app.state.tokens
    claims = tokens.verify(token)

    store: PrincipalStore = request.app.state.store
    try:
        principal = store.get_by_id(claims.principal_id)
    except SQLAlchemyError as exc:
        logger.exception("Principal lookup failed for id %s", claims.principal_id)
        raise InternalError() from exc

    if principal is None:
        raise Unauthenticated("User no longer exists.")
    if not principal.is_active:
        raise AccountDeactivated()
    request.state.principal = principal
    return principal


def authorize(*roles: str) -> Callable[..., Principal]:
    """Build a gate that admits only principals whose role is in `roles`."""
    allowed = frozenset(roles)

    def _role_gate(request: Request, principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise Forbidden(f"Role '{principal.role}' is not authorized to access {request.url.path}.")
        return principal

    return _role_gate


def check_instructor_approval(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Reject instructors an administrator has not approved yet. Other roles pass through."""
    if principal.role == INSTRUCTOR and not principal.profile.is_approved:
        raise NotApproved()
    return principal

"""
api/routes/auth.py -- Registration, login and account endpoints.

Routes (mounted under /api/auth):
  POST /register/admin       -- create an administrator (can be disabled)
  POST /register/formateur   -- create an instructor (starts unapproved)
  POST /register/visiteur    -- create a learner
  POST /login/admin          -- administrators only
  POST /login                -- instructors and learners only
  GET  /me                   -- current principal (requires auth)
  POST /logout               -- informational; tokens are stateless
  GET  /verify-email/{token} -- redeem an email verification token

Security:
  Registration shares one budget of 3 requests/hour per address across the
  three endpoints; login shares 5 requests/15 minutes across both login
  endpoints.
  authenticate_principal() provides timing equalization and the generic
  InvalidCredentials -- use it, never inline the lookup + bcrypt check.
  Cache-Control: no-store on every response that carries a token.

The slowapi decorator sits BELOW @router so the router registers the
rate-limited wrapper. This module does not use `from __future__ import
annotations`: FastAPI resolves the wrapper's annotations against slowapi's
globals, so they must be real objects.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_LIMIT, LOGIN_SCOPE, REGISTER_LIMIT, REGISTER_SCOPE, limiter
from api.models import (
    AdminRegister,
    AuthResponse,
    InstructorRegister,
    LearnerRegister,
    LoginRequest,
    MessageResponse,
    UserResponse,
    public_profile,
)
from auth.credentials import authenticate_principal
from auth.dependencies import get_current_principal
from auth.errors import DuplicateEmail, Forbidden, InternalError
from auth.models import (
    ADMIN,
    INSTRUCTOR,
    LEARNER,
    AdminProfile,
    Certificate,
    InstructorProfile,
    LearnerProfile,
    Principal,
    Project,
)
from auth.store import PrincipalStore, iso_timestamp
from auth.tokens import TokenIssuer
from auth.verification import new_verification_token, verify_email

logger = logging.getLogger("forsalearn.api.auth")

_LOGIN_THROTTLED = "Too many login attempts. Please try again after 15 minutes."
_REGISTER_THROTTLED = "Too many accounts created from this IP. Please try again after an hour."

# Auth policy:
# - POST /register/*, /login, /login/admin, /logout, GET /verify-email/{token}: public
# - GET  /me: requires auth (get_current_principal)
router = APIRouter()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post("/register/admin", status_code=201, response_model=AuthResponse)
@limiter.shared_limit(REGISTER_LIMIT, scope=REGISTER_SCOPE, error_message=_REGISTER_THROTTLED)
def register_admin(request: Request, body: AdminRegister) -> JSONResponse:
    """Create an administrator account.

    Disabled with ALLOW_ADMIN_REGISTRATION=false; the seeded admin is then the
    only way in.
    """
    if not request.app.state.settings.allow_admin_registration:
        raise Forbidden("Admin registration is disabled.")
    principal = _base_principal(body, ADMIN, AdminProfile())
    return _register(request, principal, body.password, "Admin registered successfully")


@router.post("/register/formateur", status_code=201, response_model=AuthResponse)
@limiter.shared_limit(REGISTER_LIMIT, scope=REGISTER_SCOPE, error_message=_REGISTER_THROTTLED)
def register_instructor(request: Request, body: InstructorRegister) -> JSONResponse:
    """Create an instructor account. It stays unapproved until an admin signs off."""
    now = iso_timestamp(datetime.now(timezone.utc))
    profile = InstructorProfile(
        skills=body.skills,
        certificates=[Certificate(name=c.name, kind=c.kind, value=c.value, uploaded_at=now) for c in body.certificates],
        projects=[
            Project(title=p.title, description=p.description, kind=p.kind, value=p.value, uploaded_at=now)
            for p in body.projects
        ],
        bio=body.bio,
        is_approved=False,
    )
    principal = _base_principal(body, INSTRUCTOR, profile)
    return _register(
        request,
        principal,
        body.password,
        "Formateur registered successfully. Waiting for admin approval.",
    )


@router.post("/register/visiteur", status_code=201, response_model=AuthResponse)
@limiter.shared_limit(REGISTER_LIMIT, scope=REGISTER_SCOPE, error_message=_REGISTER_THROTTLED)
def register_learner(request: Request, body: LearnerRegister) -> JSONResponse:
    """Create a learner account with an empty enrollment list and wishlist."""
    profile = LearnerProfile(skills_needed=body.skills_needed, interests=body.interests)
    principal = _base_principal(body, LEARNER, profile)
    return _register(request, principal, body.password, "Visiteur registered successfully")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@router.post("/login/admin", response_model=AuthResponse)
@limiter.shared_limit(LOGIN_LIMIT, scope=LOGIN_SCOPE, error_message=_LOGIN_THROTTLED)
def login_admin(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate an administrator and stamp last_login before responding."""
    store: PrincipalStore = request.app.state.store
    principal = authenticate_principal(store, body.email, body.password, roles=(ADMIN,))
    store.record_login(principal.id)
    refreshed = store.get_by_id(principal.id)
    if refreshed is None:
        raise InternalError()
    logger.info("Admin %s logged in", principal.id)
    return _auth_response(request, 200, "Admin login successful", refreshed)


@router.post("/login", response_model=AuthResponse)
@limiter.shared_limit(LOGIN_LIMIT, scope=LOGIN_SCOPE, error_message=_LOGIN_THROTTLED)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate an instructor or learner.

    Administrators are rejected here with the same InvalidCredentials as an
    unknown email. Unapproved instructors get 403 with isPending=true.
    """
    store: PrincipalStore = request.app.state.store
    principal = authenticate_principal(store, body.email, body.password, roles=(INSTRUCTOR, LEARNER))
    logger.info("%s %s logged in", principal.role, principal.id)
    return _auth_response(request, 200, "Login successful", principal)


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse)
def me(principal: Principal = Depends(get_current_principal)) -> UserResponse:
    """Return the authenticated principal's public profile."""
    return UserResponse(message="Current user", user=public_profile(principal))


@router.post("/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    """Tokens are stateless: the client discards its copy, nothing is revoked."""
    return MessageResponse(message="Logout successful. Please remove the token from client storage.")


@router.get("/verify-email/{token}", response_model=MessageResponse)
def verify_email_token(request: Request, token: str) -> MessageResponse:
    """Redeem an email verification token. Unknown and expired tokens share one 400."""
    verify_email(request.app.state.store, token)
    return MessageResponse(message="Email verified successfully. You can now login.")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _base_principal(body, role: str, profile) -> Principal:
    return Principal(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        phone_number=body.phone_number,
        role=role,
        profile=profile,
    )


def _register(request: Request, principal: Principal, password: str, message: str) -> JSONResponse:
    """Persist a new principal with an open verification window and issue its token.

    The duplicate pre-check gives the common case a clean error; the UNIQUE
    constraint behind create_principal() settles concurrent races.
    """
    store: PrincipalStore = request.app.state.store
    if store.email_exists(principal.email):
        raise DuplicateEmail()

    ttl = timedelta(hours=request.app.state.settings.email_verification_ttl_hours)
    verification_token, expires_at = new_verification_token(ttl)
    principal.email_verification_token = verification_token
    principal.email_verification_expires = iso_timestamp(expires_at)

    principal_id = store.create_principal(principal, password)
    created = store.get_by_id(principal_id)
    if created is None:
        raise InternalError()
    logger.info("Registered %s %s", created.role, created.id)
    return _auth_response(request, 201, message, created)


def _auth_response(request: Request, status_code: int, message: str, principal: Principal) -> JSONResponse:
    tokens: TokenIssuer = request.app.state.tokens
    token = tokens.issue(principal.id, principal.role)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, token=token, user=public_profile(principal)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp

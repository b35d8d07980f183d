"""
api/routes/admin.py -- Administrator actions on other principals.

Routes (mounted under /api/admin):
  GET   /instructors/pending          -- instructors awaiting approval
  PATCH /instructors/{id}/approval    -- approve or reject an instructor
  PATCH /users/{id}/status            -- activate or deactivate any principal

Approval is the only way an instructor's is_approved flag changes. A
deactivated principal keeps its tokens, but every later request carrying them
is rejected with 403 by the auth gate.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import ApprovalUpdate, StatusUpdate, UserListResponse, UserResponse, public_profile
from auth.dependencies import authorize, get_current_principal
from auth.errors import AuthError, NotFound
from auth.models import ADMIN, INSTRUCTOR, Principal
from auth.store import PrincipalStore

logger = logging.getLogger("forsalearn.api.admin")

# Auth policy:
# - every route: requires the admin role (router-level authorize gate)
router = APIRouter(dependencies=[Depends(authorize(ADMIN))])


@router.get("/instructors/pending", response_model=UserListResponse)
def list_pending_instructors(request: Request) -> UserListResponse:
    """Return instructors whose accounts have not been approved yet, oldest first."""
    store: PrincipalStore = request.app.state.store
    pending = store.list_pending_instructors()
    return UserListResponse(
        message=f"{len(pending)} instructor(s) pending approval",
        users=[public_profile(p) for p in pending],
    )


@router.patch("/instructors/{instructor_id}/approval", response_model=UserResponse)
def update_instructor_approval(
    request: Request,
    instructor_id: int,
    body: ApprovalUpdate,
    admin: Principal = Depends(get_current_principal),
) -> UserResponse:
    """Approve (stamping approver and time) or reject an instructor."""
    store: PrincipalStore = request.app.state.store
    target = store.get_by_id(instructor_id)
    if target is None or target.role != INSTRUCTOR:
        raise NotFound("Instructor not found.")

    store.set_instructor_approval(instructor_id, body.approved, admin.id, body.rejection_reason)
    logger.info(
        "Admin %s %s instructor %s",
        admin.id,
        "approved" if body.approved else "rejected",
        instructor_id,
    )
    updated = store.get_by_id(instructor_id)
    verb = "approved" if body.approved else "rejected"
    return UserResponse(message=f"Instructor {verb}", user=public_profile(updated))


@router.patch("/users/{principal_id}/status", response_model=UserResponse)
def update_status(
    request: Request,
    principal_id: int,
    body: StatusUpdate,
    admin: Principal = Depends(get_current_principal),
) -> UserResponse:
    """Activate or deactivate a principal. Admins cannot deactivate themselves."""
    store: PrincipalStore = request.app.state.store
    if not body.is_active and principal_id == admin.id:
        raise AuthError("You cannot deactivate your own account.")
    if not store.update_principal(principal_id, is_active=body.is_active):
        raise NotFound("User not found.")
    logger.info("Admin %s set is_active=%s on principal %s", admin.id, body.is_active, principal_id)
    updated = store.get_by_id(principal_id)
    return UserResponse(
        message="Account activated" if body.is_active else "Account deactivated",
        user=public_profile(updated),
    )

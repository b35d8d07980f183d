"""
api/routes/dashboard.py -- Role dashboards built from the principal's own profile.

  GET /api/formateur/dashboard -- instructors only, and only once approved
  GET /api/visiteur/dashboard  -- learners only

Read-only; no mutations here. The instructor route is the canonical example of
stacking all three gates: authenticate, authorize the role, check approval.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from api.models import EnrollmentOut, InstructorDashboard, LearnerDashboard
from auth.dependencies import authorize, check_instructor_approval
from auth.models import INSTRUCTOR, LEARNER, Principal

router = APIRouter()


@router.get("/formateur/dashboard", response_model=InstructorDashboard)
def instructor_dashboard(
    principal: Principal = Depends(authorize(INSTRUCTOR)),
    _approved: Principal = Depends(check_instructor_approval),
) -> InstructorDashboard:
    profile = principal.profile
    return InstructorDashboard(
        message=f"Welcome back, {principal.first_name}",
        skills=profile.skills,
        total_earnings=profile.total_earnings,
        total_students=profile.total_students,
        rating=profile.rating,
        total_reviews=profile.total_reviews,
        certificate_count=len(profile.certificates),
        project_count=len(profile.projects),
        approved_at=profile.approved_at,
    )


@router.get("/visiteur/dashboard", response_model=LearnerDashboard)
def learner_dashboard(principal: Principal = Depends(authorize(LEARNER))) -> LearnerDashboard:
    """Summarize enrollments: in progress means enrolled and not completed."""
    profile = principal.profile
    enrollments = profile.enrolled_courses
    return LearnerDashboard(
        message=f"Welcome back, {principal.first_name}",
        skills_needed=profile.skills_needed,
        interests=profile.interests,
        enrolled_count=len(enrollments),
        in_progress_count=sum(1 for e in enrollments if not e.completed),
        total_courses_completed=profile.total_courses_completed,
        wishlist=profile.wishlist,
        enrolled_courses=[EnrollmentOut.model_validate(asdict(e)) for e in enrollments],
    )

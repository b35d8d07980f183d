"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work.

A Principal is a tagged union: the common identity record plus a role tag
selecting exactly one of three extension payloads (AdminProfile,
InstructorProfile, LearnerProfile). PROFILE_TYPES maps each role to the
payload class it must carry; the store rejects mismatches on insert.

Timestamps are ISO 8601 strings (UTC), as written by the store.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

# Role tags. The French names are part of the public wire contract.
ADMIN = "admin"
INSTRUCTOR = "formateur"
LEARNER = "visiteur"
ROLES = (ADMIN, INSTRUCTOR, LEARNER)

DEFAULT_ADMIN_PERMISSIONS = ["manage_users", "manage_courses", "manage_payments", "view_statistics"]


@dataclass
class Certificate:
    """Instructor credential, either a link or an uploaded file path."""

    name: str
    kind: str  # "link" | "file"
    value: str  # URL or stored file path
    uploaded_at: str | None = None


@dataclass
class Project:
    title: str
    kind: str  # "link" | "file"
    value: str
    description: str | None = None
    uploaded_at: str | None = None


@dataclass
class Enrollment:
    """A learner's enrollment in one course. course_id references the course service."""

    course_id: str
    enrolled_at: str | None = None
    progress: int = 0  # 0-100
    completed: bool = False
    completed_at: str | None = None
    certificate_issued: bool = False
    certificate_url: str | None = None


@dataclass
class AdminProfile:
    permissions: list[str] = field(default_factory=lambda: list(DEFAULT_ADMIN_PERMISSIONS))
    last_login: str | None = None


@dataclass
class InstructorProfile:
    """Instructor extension.

    is_approved gates every instructor-only capability. It stays False until an
    administrator approves the account; approved_by holds that admin's id.
    """

    skills: list[str] = field(default_factory=list)
    certificates: list[Certificate] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    bio: str = ""
    is_approved: bool = False
    approved_by: int | None = None
    approved_at: str | None = None
    rejection_reason: str | None = None
    total_earnings: float = 0.0
    total_students: int = 0
    rating: float = 0.0  # 0-5
    total_reviews: int = 0


@dataclass
class LearnerProfile:
    skills_needed: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    enrolled_courses: list[Enrollment] = field(default_factory=list)
    wishlist: list[str] = field(default_factory=list)  # course ids, no duplicates
    total_courses_completed: int = 0


RoleProfile = Union[AdminProfile, InstructorProfile, LearnerProfile]

PROFILE_TYPES: dict[str, type] = {
    ADMIN: AdminProfile,
    INSTRUCTOR: InstructorProfile,
    LEARNER: LearnerProfile,
}


@dataclass
class Principal:
    """An authenticated actor: administrator, instructor or learner.

    hashed_password is None whenever the record was loaded without its secret
    (the default for everything except login). Plaintext is never stored.

    email_verification_token and email_verification_expires are set and
    cleared together. The reset_password_* pair is persisted but no flow
    issues or consumes it yet.
    """

    first_name: str
    last_name: str
    email: str
    phone_number: str
    role: str  # one of ROLES; immutable after creation
    profile: RoleProfile
    id: int | None = None
    hashed_password: str | None = None
    is_active: bool = True
    is_email_verified: bool = False
    email_verification_token: str | None = None
    email_verification_expires: str | None = None
    reset_password_token: str | None = None
    reset_password_expires: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

"""
API request and response models for ForsaLearn REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (firstName, skillsNeeded, ...). Models declare
snake_case fields and generate the aliases; populate_by_name lets handlers
and tests construct them with either spelling.
"""

import re
from dataclasses import asdict
from typing import Annotated, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from auth.models import ADMIN, INSTRUCTOR, LEARNER, Principal

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PHONE_PATTERN = re.compile(r"^[0-9]{10,15}$")

# Free text is trimmed before length checks. Passwords use plain `str` and are
# taken exactly as sent.
Text = Annotated[str, StringConstraints(strip_whitespace=True)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _CamelOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def _clean_tags(values: list[str]) -> list[str]:
    """Strip, drop blanks and duplicates, keep order."""
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


# ---------------------------------------------------------------------------
# Request models -- registration
# ---------------------------------------------------------------------------


class _EmailModel(_CamelModel):
    """Base for bodies carrying an email: RFC syntax via email-validator, stored lower-case."""

    email: EmailStr

    @field_validator("email", mode="wrap")
    @classmethod
    def normalize_email(cls, value, handler) -> str:
        try:
            email = handler(value.strip() if isinstance(value, str) else value)
        except ValidationError as exc:
            raise ValueError("Please provide a valid email") from exc
        return email.lower()


class _RegisterBase(_EmailModel):
    """Fields every registration shares. All violations are reported together."""

    first_name: Text = Field(min_length=2, max_length=50)
    last_name: Text = Field(min_length=2, max_length=50)
    phone_number: Text
    password: str = Field(min_length=6, max_length=128)

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError("Please provide a valid phone number")
        return value


class AdminRegister(_RegisterBase):
    """Request body for POST /api/auth/register/admin."""


class CertificateIn(_CamelModel):
    name: Text = Field(min_length=1, max_length=200)
    kind: Literal["link", "file"] = Field(alias="type")
    value: Text = Field(min_length=1, max_length=2048)


class ProjectIn(_CamelModel):
    title: Text = Field(min_length=1, max_length=200)
    description: Optional[Text] = Field(default=None, max_length=2000)
    kind: Literal["link", "file"] = Field(alias="type")
    value: Text = Field(min_length=1, max_length=2048)


class InstructorRegister(_RegisterBase):
    """Request body for POST /api/auth/register/formateur."""

    skills: list[str]
    certificates: list[CertificateIn] = Field(default_factory=list)
    projects: list[ProjectIn] = Field(default_factory=list)
    bio: Text = Field(default="", max_length=500)

    @field_validator("skills")
    @classmethod
    def require_skill(cls, values: list[str]) -> list[str]:
        cleaned = _clean_tags(values)
        if not cleaned:
            raise ValueError("At least one skill is required")
        return cleaned


class LearnerRegister(_RegisterBase):
    """Request body for POST /api/auth/register/visiteur.

    skills_needed must be present but may be empty.
    """

    skills_needed: list[str]
    interests: list[str] = Field(default_factory=list)

    @field_validator("skills_needed", "interests")
    @classmethod
    def clean(cls, values: list[str]) -> list[str]:
        return _clean_tags(values)


# ---------------------------------------------------------------------------
# Request models -- login and admin actions
# ---------------------------------------------------------------------------


class LoginRequest(_EmailModel):
    """Request body for POST /api/auth/login and /api/auth/login/admin."""

    password: str = Field(min_length=1, max_length=128)


class ApprovalUpdate(_CamelModel):
    """Request body for PATCH /api/admin/instructors/{id}/approval."""

    approved: bool
    rejection_reason: Optional[Text] = Field(default=None, max_length=500)


class StatusUpdate(_CamelModel):
    """Request body for PATCH /api/admin/users/{id}/status."""

    is_active: bool


# ---------------------------------------------------------------------------
# Response models -- public profiles (tagged by role)
# ---------------------------------------------------------------------------


class CertificateOut(_CamelOut):
    name: str
    kind: str = Field(alias="type")
    value: str
    uploaded_at: Optional[str] = None


class ProjectOut(_CamelOut):
    title: str
    description: Optional[str] = None
    kind: str = Field(alias="type")
    value: str
    uploaded_at: Optional[str] = None


class EnrollmentOut(_CamelOut):
    course_id: str
    enrolled_at: Optional[str] = None
    progress: int = 0
    completed: bool = False
    completed_at: Optional[str] = None
    certificate_issued: bool = False
    certificate_url: Optional[str] = None


class PrincipalOut(_CamelOut):
    """Fields every public profile carries. The password hash and the
    verification/reset tokens are never part of it."""

    id: int
    first_name: str
    last_name: str
    email: str
    phone_number: str
    role: str
    is_active: bool
    is_email_verified: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AdminOut(PrincipalOut):
    role: Literal["admin"]
    permissions: list[str]
    last_login: Optional[str] = None


class InstructorOut(PrincipalOut):
    role: Literal["formateur"]
    skills: list[str]
    certificates: list[CertificateOut]
    projects: list[ProjectOut]
    bio: str
    is_approved: bool
    approved_by: Optional[int] = None
    approved_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    total_earnings: float
    total_students: int
    rating: float
    total_reviews: int


class LearnerOut(PrincipalOut):
    role: Literal["visiteur"]
    skills_needed: list[str]
    interests: list[str]
    enrolled_courses: list[EnrollmentOut]
    wishlist: list[str]
    total_courses_completed: int


_PROFILE_OUT = {ADMIN: AdminOut, INSTRUCTOR: InstructorOut, LEARNER: LearnerOut}


def public_profile(principal: Principal) -> dict:
    """Build the role-shaped, JSON-ready public profile of a principal.

    Factory colocated with the output models so the mapping lives in one
    place rather than in every route handler.
    """
    base = {
        "id": principal.id,
        "first_name": principal.first_name,
        "last_name": principal.last_name,
        "email": principal.email,
        "phone_number": principal.phone_number,
        "role": principal.role,
        "is_active": principal.is_active,
        "is_email_verified": principal.is_email_verified,
        "created_at": principal.created_at,
        "updated_at": principal.updated_at,
    }
    model = _PROFILE_OUT[principal.role].model_validate({**base, **asdict(principal.profile)})
    return model.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Response models -- envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AuthResponse(BaseModel):
    """Success body for registration and login."""

    model_config = ConfigDict(frozen=True)

    message: str
    token: str
    user: dict


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: dict


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    users: list[dict]


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(_CamelOut):
    """Error envelope returned on 4xx/5xx responses.

    message is always present. errors appears on validation failures,
    is_pending (isPending) on logins of instructors awaiting approval, stack
    only in DEBUG mode. Render with model_dump(by_alias=True, exclude_none=True).
    """

    message: str
    code: str
    errors: Optional[list[FieldError]] = None
    is_pending: Optional[bool] = None
    stack: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    message: str = "ForsaLearn API is running."
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Role dashboards
# ---------------------------------------------------------------------------


class InstructorDashboard(_CamelOut):
    message: str
    skills: list[str]
    total_earnings: float
    total_students: int
    rating: float
    total_reviews: int
    certificate_count: int
    project_count: int
    approved_at: Optional[str] = None


class LearnerDashboard(_CamelOut):
    message: str
    skills_needed: list[str]
    interests: list[str]
    enrolled_count: int
    in_progress_count: int
    total_courses_completed: int
    wishlist: list[str]
    enrolled_courses: list[EnrollmentOut]

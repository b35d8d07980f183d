"""
auth/store.py -- SQLAlchemy Core persistence layer for principals.

Pattern: Repository + Data Mapper. PrincipalStore is the repository;
_row_to_principal and the _*_profile_from_row helpers are the mappers. Route
and dependency code never touches SQL directly.

Schema: one `users` base table shared by every role plus one extension table
per role (admin_profiles, instructor_profiles, learner_profiles) keyed by
user_id. The base row and its extension row are inserted in one transaction,
so a principal never exists without its role payload.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are normalized (trim + lower-case) before every read and write, and
  the UNIQUE constraint on users.email makes the database the arbiter of
  concurrent registrations: the loser gets DuplicateEmail.

  Passwords only enter through create_principal() and
  update_principal(password=...), both of which hash. Updates that do not
  touch the password leave the stored hash alone.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.credentials import hash_password
from auth.errors import DuplicateEmail
from auth.models import (
    ADMIN,
    INSTRUCTOR,
    LEARNER,
    PROFILE_TYPES,
    AdminProfile,
    Certificate,
    Enrollment,
    InstructorProfile,
    LearnerProfile,
    Principal,
    Project,
)

logger = logging.getLogger("forsalearn.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("email", String(255), nullable=False, unique=True),  # always lower-case
    Column("phone_number", String(15), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("is_email_verified", Integer, nullable=False, server_default="0"),
    Column("email_verification_token", String(128), index=True),
    Column("email_verification_expires", String(32)),
    Column("reset_password_token", String(128)),
    Column("reset_password_expires", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_admin_profiles = Table(
    "admin_profiles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("permissions", Text, nullable=False),  # JSON array
    Column("last_login", String(32)),
)

_instructor_profiles = Table(
    "instructor_profiles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("skills", Text, nullable=False),  # JSON array
    Column("certificates", Text, nullable=False),  # JSON array of objects
    Column("projects", Text, nullable=False),  # JSON array of objects
    Column("bio", String(500), nullable=False, server_default=""),
    Column("is_approved", Integer, nullable=False, server_default="0"),
    Column("approved_by", Integer),
    Column("approved_at", String(32)),
    Column("rejection_reason", Text),
    Column("total_earnings", Float, nullable=False, server_default="0"),
    Column("total_students", Integer, nullable=False, server_default="0"),
    Column("rating", Float, nullable=False, server_default="0"),
    Column("total_reviews", Integer, nullable=False, server_default="0"),
)

_learner_profiles = Table(
    "learner_profiles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id"), primary_key=True),
    Column("skills_needed", Text, nullable=False),  # JSON array
    Column("interests", Text, nullable=False),  # JSON array
    Column("enrolled_courses", Text, nullable=False),  # JSON array of objects
    Column("wishlist", Text, nullable=False),  # JSON array of course ids
    Column("total_courses_completed", Integer, nullable=False, server_default="0"),
)

_PROFILE_TABLES: dict[str, Table] = {
    ADMIN: _admin_profiles,
    INSTRUCTOR: _instructor_profiles,
    LEARNER: _learner_profiles,
}

# Base-table fields a caller may change through update_principal().
# role and email are deliberately absent: role is fixed at creation.
_UPDATABLE_FIELDS = {"first_name", "last_name", "phone_number", "is_active", "password"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign keys on every new SQLite connection."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def iso_timestamp(moment: datetime) -> str:
    # Fixed-width UTC form so stored timestamps compare correctly as strings.
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return iso_timestamp(datetime.now(timezone.utc))


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PrincipalStore:
    """Repository for Principal entities and their role extensions.

    Usage:
        store = PrincipalStore("sqlite:///forsalearn_auth.db")
        pid = store.create_principal(principal, password="secret1")
        principal = store.get_by_id(pid)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_principal(self, principal: Principal, password: str) -> int:
        """Hash the password, insert base + extension rows, return the new id.

        Both inserts run in one transaction. Raises DuplicateEmail when the
        email is already taken by any role, including when a concurrent
        registration wins the race on the UNIQUE constraint.
        """
        expected = PROFILE_TYPES.get(principal.role)
        if expected is None or not isinstance(principal.profile, expected):
            raise ValueError(f"Profile {type(principal.profile).__name__} does not match role {principal.role!r}")

        email = normalize_email(principal.email)
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        first_name=principal.first_name,
                        last_name=principal.last_name,
                        email=email,
                        phone_number=principal.phone_number,
                        hashed_password=hash_password(password),
                        role=principal.role,
                        is_active=1 if principal.is_active else 0,
                        is_email_verified=1 if principal.is_email_verified else 0,
                        email_verification_token=principal.email_verification_token,
                        email_verification_expires=principal.email_verification_expires,
                        created_at=now,
                        updated_at=now,
                    )
                )
                user_id = result.inserted_primary_key[0]
                conn.execute(
                    _PROFILE_TABLES[principal.role].insert().values(
                        user_id=user_id, **_profile_to_row(principal.profile)
                    )
                )
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        logger.info("Created %s principal %s", principal.role, user_id)
        return user_id

    def update_principal(self, principal_id: int, **fields) -> bool:
        """Update mutable base fields on an existing principal.

        Accepted fields: first_name, last_name, phone_number, is_active,
        password. A `password` value is plaintext and is hashed here; when it
        is absent the stored hash is not touched. Unknown fields (including
        role and email) raise ValueError.

        Returns True if a row was updated, False if principal_id was not found.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)!r}")
        values = dict(fields)
        if "password" in values:
            values["hashed_password"] = hash_password(values.pop("password"))
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        values["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == principal_id).values(**values))
        return result.rowcount > 0

    def record_login(self, principal_id: int) -> None:
        """Stamp last_login on an administrator's profile."""
        with self.engine.begin() as conn:
            conn.execute(
                _admin_profiles.update().where(_admin_profiles.c.user_id == principal_id).values(last_login=_now_iso())
            )

    def set_instructor_approval(
        self,
        instructor_id: int,
        approved: bool,
        admin_id: int,
        rejection_reason: str | None = None,
    ) -> bool:
        """Record an administrator's approval decision on an instructor.

        Approving stamps approved_by/approved_at and clears any earlier
        rejection reason. Rejecting (or revoking) clears the approval stamp
        and stores the reason. Returns False if no instructor has that id.
        """
        if approved:
            values = {
                "is_approved": 1,
                "approved_by": admin_id,
                "approved_at": _now_iso(),
                "rejection_reason": None,
            }
        else:
            values = {
                "is_approved": 0,
                "approved_by": None,
                "approved_at": None,
                "rejection_reason": rejection_reason,
            }
        with self.engine.begin() as conn:
            result = conn.execute(
                _instructor_profiles.update().where(_instructor_profiles.c.user_id == instructor_id).values(**values)
            )
            if result.rowcount:
                conn.execute(_users.update().where(_users.c.id == instructor_id).values(updated_at=_now_iso()))
        return result.rowcount > 0

    def set_email_verification(self, principal_id: int, token: str, expires_at: datetime) -> None:
        """Open a verification window: store token and expiry together."""
        with self.engine.begin() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == principal_id)
                .values(
                    email_verification_token=token,
                    email_verification_expires=iso_timestamp(expires_at),
                    updated_at=_now_iso(),
                )
            )

    def consume_email_verification(self, token: str, now: datetime) -> int | None:
        """Atomically redeem a verification token.

        Matches a principal whose stored token equals `token` and whose expiry
        is strictly after `now`; marks it verified and clears token + expiry in
        the same UPDATE. Returns the principal id, or None when nothing
        matched (unknown, mismatched, expired or already used).
        """
        if not token:
            return None
        match = (_users.c.email_verification_token == token) & (_users.c.email_verification_expires > iso_timestamp(now))
        with self.engine.begin() as conn:
            principal_id = conn.execute(select(_users.c.id).where(match)).scalar()
            if principal_id is None:
                return None
            result = conn.execute(
                _users.update()
                .where(match & (_users.c.id == principal_id))
                .values(
                    is_email_verified=1,
                    email_verification_token=None,
                    email_verification_expires=None,
                    updated_at=_now_iso(),
                )
            )
        return principal_id if result.rowcount == 1 else None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count(self) -> int:
        """Return the number of principals. Also serves as the health probe."""
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() or 0

    def email_exists(self, email: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(_users.c.email == normalize_email(email))).fetchone()
        return row is not None

    def get_by_id(self, principal_id: int, include_secret: bool = False) -> Principal | None:
        """Look up a principal by id. The password hash is omitted unless asked for."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == principal_id)).fetchone()
            return self._load(conn, row, include_secret) if row is not None else None

    def get_by_email(self, email: str, include_secret: bool = False) -> Principal | None:
        """Look up a principal by email, case-insensitively."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
            return self._load(conn, row, include_secret) if row is not None else None

    def get_by_verification_token(self, token: str) -> Principal | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email_verification_token == token)).fetchone()
            return self._load(conn, row, False) if row is not None else None

    def list_pending_instructors(self) -> list[Principal]:
        """Return instructors still awaiting approval, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select()
                .join(_instructor_profiles, _instructor_profiles.c.user_id == _users.c.id)
                .where(_instructor_profiles.c.is_approved == 0)
                .order_by(_users.c.created_at)
            ).fetchall()
            return [self._load(conn, r, False) for r in rows]

    def close(self) -> None:
        self.engine.dispose()

    def _load(self, conn: Connection, row, include_secret: bool) -> Principal:
        table = _PROFILE_TABLES[row.role]
        ext = conn.execute(table.select().where(table.c.user_id == row.id)).fetchone()
        return _row_to_principal(row, ext, include_secret)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _profile_to_row(profile) -> dict:
    if isinstance(profile, AdminProfile):
        return {"permissions": json.dumps(profile.permissions), "last_login": profile.last_login}
    if isinstance(profile, InstructorProfile):
        return {
            "skills": json.dumps(profile.skills),
            "certificates": json.dumps([asdict(c) for c in profile.certificates]),
            "projects": json.dumps([asdict(p) for p in profile.projects]),
            "bio": profile.bio or "",
            "is_approved": 1 if profile.is_approved else 0,
            "approved_by": profile.approved_by,
            "approved_at": profile.approved_at,
            "rejection_reason": profile.rejection_reason,
            "total_earnings": profile.total_earnings,
            "total_students": profile.total_students,
            "rating": profile.rating,
            "total_reviews": profile.total_reviews,
        }
    wishlist = list(dict.fromkeys(profile.wishlist))
    return {
        "skills_needed": json.dumps(profile.skills_needed),
        "interests": json.dumps(profile.interests),
        "enrolled_courses": json.dumps([asdict(e) for e in profile.enrolled_courses]),
        "wishlist": json.dumps(wishlist),
        "total_courses_completed": profile.total_courses_completed,
    }


def _admin_profile_from_row(ext) -> AdminProfile:
    return AdminProfile(permissions=json.loads(ext.permissions), last_login=ext.last_login)


def _instructor_profile_from_row(ext) -> InstructorProfile:
    return InstructorProfile(
        skills=json.loads(ext.skills),
        certificates=[Certificate(**c) for c in json.loads(ext.certificates)],
        projects=[Project(**p) for p in json.loads(ext.projects)],
        bio=ext.bio or "",
        is_approved=bool(ext.is_approved),
        approved_by=ext.approved_by,
        approved_at=ext.approved_at,
        rejection_reason=ext.rejection_reason,
        total_earnings=ext.total_earnings,
        total_students=ext.total_students,
        rating=ext.rating,
        total_reviews=ext.total_reviews,
    )


def _learner_profile_from_row(ext) -> LearnerProfile:
    return LearnerProfile(
        skills_needed=json.loads(ext.skills_needed),
        interests=json.loads(ext.interests),
        enrolled_courses=[Enrollment(**e) for e in json.loads(ext.enrolled_courses)],
        wishlist=json.loads(ext.wishlist),
        total_courses_completed=ext.total_courses_completed,
    )


_PROFILE_MAPPERS = {
    ADMIN: _admin_profile_from_row,
    INSTRUCTOR: _instructor_profile_from_row,
    LEARNER: _learner_profile_from_row,
}


def _row_to_principal(row, ext, include_secret: bool) -> Principal:
    if ext is None:
        # Only reachable if the extension row was removed out of band.
        profile = PROFILE_TYPES[row.role]()
    else:
        profile = _PROFILE_MAPPERS[row.role](ext)
    return Principal(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        phone_number=row.phone_number,
        role=row.role,
        profile=profile,
        hashed_password=row.hashed_password if include_secret else None,
        is_active=bool(row.is_active),
        is_email_verified=bool(row.is_email_verified),
        email_verification_token=row.email_verification_token,
        email_verification_expires=row.email_verification_expires,
        reset_password_token=row.reset_password_token,
        reset_password_expires=row.reset_password_expires,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

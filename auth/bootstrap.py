"""
auth/bootstrap.py -- First administrator seeding.

Run at startup by the lifespan and on demand by `python main.py seed-admin`.
Credentials come from Settings (ADMIN_EMAIL / ADMIN_PASSWORD and the optional
name/phone fields). The seeded admin is created pre-verified.

Seeding is idempotent: if any principal already holds the configured email,
nothing is written.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auth.errors import DuplicateEmail
from auth.models import ADMIN, AdminProfile, Principal

if TYPE_CHECKING:
    from auth.store import PrincipalStore
    from core.config import Settings

logger = logging.getLogger("forsalearn.bootstrap")


def seed_admin(store: PrincipalStore, settings: Settings) -> int | None:
    """Create the configured admin if missing. Returns the new id, or None if skipped."""
    if not settings.admin_email or not settings.admin_password:
        logger.info("Admin seed skipped: ADMIN_EMAIL / ADMIN_PASSWORD not configured")
        return None
    if store.email_exists(settings.admin_email):
        logger.info("Admin seed skipped: %s already registered", settings.admin_email)
        return None

    admin = Principal(
        first_name=settings.admin_first_name,
        last_name=settings.admin_last_name,
        email=settings.admin_email,
        phone_number=settings.admin_phone_number,
        role=ADMIN,
        profile=AdminProfile(),
        is_email_verified=True,
    )
    try:
        admin_id = store.create_principal(admin, settings.admin_password)
    except DuplicateEmail:
        # Another process seeded between the check and the insert.
        logger.info("Admin seed skipped: %s registered concurrently", settings.admin_email)
        return None
    logger.info("Seeded admin %s (id=%s)", settings.admin_email, admin_id)
    return admin_id

"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for ForsaLearn happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): DEBUG-conditional SECRET_KEY handling.
      Dev mode generates a key with a warning; production refuses to start
      without one.

Settings are consumed at process start (lifespan, limiter construction) and
are not re-read per request. Rotating SECRET_KEY invalidates every token
issued under the old key.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("forsalearn.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'forsalearn_auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # DEBUG=true is development mode: auto-generated secret, stack traces in
    # 500 responses.
    debug: bool = False
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    # Browser origin allowed by the CORS policy.
    client_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    token_expire_days: int = 7
    email_verification_ttl_hours: int = 24

    # ------------------------------------------------------------------
    # Rate limiting (limits library notation, keyed per remote address)
    # ------------------------------------------------------------------

    login_rate_limit: str = "5/15 minutes"
    register_rate_limit: str = "3/hour"
    rate_limit_storage_uri: str = "memory://"

    # ------------------------------------------------------------------
    # Registration and bootstrap
    # ------------------------------------------------------------------

    allow_admin_registration: bool = True

    admin_email: str = ""
    admin_password: str = ""
    admin_first_name: str = "Admin"
    admin_last_name: str = "ForsaLearn"
    admin_phone_number: str = "0600000000"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive a restart.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()

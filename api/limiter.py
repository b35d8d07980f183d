"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to attach to app.state and handle 429s) and in
route modules (to apply per-route limits with @limiter.limit() and
@limiter.shared_limit()).

Using a single shared instance ensures all routes share the same counter
store. Counters are keyed by remote address. The backend comes from
RATE_LIMIT_STORAGE_URI: the default "memory://" keeps them process-local;
pointing it at e.g. "redis://host:6379" shares them across workers without
touching any route.

The limit strings and the storage URI are read from Settings once, at import.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

LOGIN_LIMIT = _settings.login_rate_limit
REGISTER_LIMIT = _settings.register_rate_limit

# Shared scopes: every endpoint in a group draws from the same per-address budget.
LOGIN_SCOPE = "login"
REGISTER_SCOPE = "register"

limiter = Limiter(key_func=get_remote_address, storage_uri=_settings.rate_limit_storage_uri)

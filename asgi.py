"""
asgi.py -- Application assembly for ForsaLearn auth.

The ASGI entry point servers import. api/main.py builds the complete app;
this module only re-exports it so deployment commands stay stable.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]

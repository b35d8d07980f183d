#!/usr/bin/env python3
"""
ForsaLearn auth -- command-line entry point.

Usage:
  python main.py seed-admin
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload

Environment variables (see core/config.py for the full list):
  ADMIN_EMAIL, ADMIN_PASSWORD   Credentials of the administrator seed-admin creates.
  DATABASE_URL                  SQLAlchemy URL of the credential store.
  SECRET_KEY                    Token signing key (auto-generated when DEBUG=true).
"""

import argparse
import logging
import sys

from auth.bootstrap import seed_admin
from auth.store import PrincipalStore
from core.config import get_settings


def _seed_admin() -> int:
    settings = get_settings()
    if not settings.admin_email or not settings.admin_password:
        print("  [!] ADMIN_EMAIL and ADMIN_PASSWORD must be set to seed an admin.")
        return 1

    store = PrincipalStore(settings.database_url)
    try:
        admin_id = seed_admin(store, settings)
    finally:
        store.close()

    if admin_id is None:
        print(f"  Admin {settings.admin_email} already exists, nothing to do.")
    else:
        print(f"  Admin {settings.admin_email} created (id={admin_id}).")
    return 0


def _serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=host, port=port, reload=reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="forsalearn-auth",
        description="Authentication and access control service for ForsaLearn.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ADMIN_EMAIL=admin@forsalearn.ma ADMIN_PASSWORD=change-me python main.py seed-admin
  DEBUG=true python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.add_parser("seed-admin", help="Create the configured administrator if it does not exist")
    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s %(message)s")

    if args.command == "seed-admin":
        return _seed_admin()
    if args.command == "serve":
        return _serve(args.host, args.port, args.reload)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

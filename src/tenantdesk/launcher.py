"""
TenantDesk command line entry point.

Subcommands:
- ``serve``: run the API server with uvicorn (default)
- ``init-db``: create all tables in the configured database
- ``create-admin``: create a system admin person and a root account
"""

import argparse
import asyncio
import getpass
import sys
from typing import List, Optional

import uvicorn

from .config import get_config, validate_startup_security
from .utils.logging_config import get_logger, initialize_logging


def init_db() -> None:
    """Create all tables (development convenience; use Alembic in production)."""
    from .db import models  # noqa: F401
    from .db.database import Base, engine

    Base.metadata.create_all(bind=engine)
    get_logger("database").info(f"Database tables created at {engine.url}")


def create_admin(email: str, full_name: str, account_name: str, password: str) -> int:
    """Create a system admin and a root account they administer."""
    from .db.database import SessionLocal
    from .db.models import Membership, Person, Profile
    from .repositories.sqlalchemy_impl import SQLAlchemyAccountRepository

    logger = get_logger("main")
    db = SessionLocal()
    try:
        if db.query(Person).filter(Person.email == email.lower()).first():
            logger.error(f"A person with email {email} already exists")
            return 1

        person = Person(email=email.lower(), full_name=full_name)
        person.set_password(password)
        db.add(person)
        db.flush()
        db.add(Profile(person_id=person.id, display_name=full_name, system_role="system_admin"))

        account = asyncio.run(
            SQLAlchemyAccountRepository(db).create(display_name=account_name)
        )
        db.add(Membership(person_id=person.id, account_id=account.id, account_role="admin"))
        db.commit()
        logger.info(f"Created system admin {email} with root account {account.id}")
        return 0
    finally:
        db.close()


def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    config = get_config()
    validate_startup_security()
    uvicorn.run(
        "tenantdesk.main:app",
        host=host or config.server.host,
        port=port or config.server.port,
        reload=reload or config.server.auto_reload,
        workers=1 if reload else config.server.workers,
        log_level="debug" if config.server.debug else "info",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tenantdesk", description="TenantDesk API server")
    sub = parser.add_subparsers(dest="command")

    serve_parser = sub.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on changes")

    sub.add_parser("init-db", help="Create database tables")

    admin_parser = sub.add_parser("create-admin", help="Create a system admin")
    admin_parser.add_argument("email")
    admin_parser.add_argument("--name", default="Administrator", help="Full name")
    admin_parser.add_argument("--account", default="Platform", help="Root account name")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    initialize_logging()

    if args.command == "init-db":
        init_db()
        return 0
    if args.command == "create-admin":
        password = getpass.getpass("Password: ")
        if len(password) < 8:
            print("Password must be at least 8 characters", file=sys.stderr)
            return 1
        return create_admin(args.email, args.name, args.account, password)

    serve(
        getattr(args, "host", None),
        getattr(args, "port", None),
        getattr(args, "reload", False),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
selfecho management commands.

Usage:
    python manage.py init-db
    python manage.py add-account --host imap.example.com --username me@example.com [--port 993] [--tls ssl]
    python manage.py list-accounts
    python manage.py sync [--account-id ID] [--limit 50]

The password for add-account is read from IMAP_ACCOUNT_PASSWORD or prompted for.

Environment Variables:
    DATABASE_URL: async SQLAlchemy URL (e.g. postgresql+asyncpg://...)
    IMAP_SECRET: passphrase the stored IMAP passwords are encrypted with
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv(override=True)
from logging_config import setup_logging  # noqa: E402
from selfecho.api.payloads.accounts import TLSMode  # noqa: E402
from selfecho.container import ApplicationContainer  # noqa: E402
from selfecho.controllers.imap.models import AccountConfig  # noqa: E402
from selfecho.database import DatabaseManager  # noqa: E402
from selfecho.db import fastapi_sqlalchemy_context  # noqa: E402
from selfecho.exceptions import BaseError  # noqa: E402
from settings import settings  # noqa: E402

setup_logging()

logger = logging.getLogger(__name__)

container = ApplicationContainer()


async def init_db() -> None:
    """Create the tables directly from the models (development databases)."""
    manager = DatabaseManager()
    manager.init_db()
    try:
        await manager.create_tables()
    finally:
        await manager.close()


async def add_account(host: str, port: int, username: str, password: str, tls_mode: TLSMode) -> None:
    async with fastapi_sqlalchemy_context():
        account_controller = container.controllers.account_controller()
        account_id = await account_controller.register_account(host, port, username, password, tls_mode)
        logger.info(f"Created IMAP account {account_id}")


async def list_accounts() -> None:
    async with fastapi_sqlalchemy_context():
        account_controller = container.controllers.account_controller()
        accounts, total = await account_controller.list_accounts(page=1, limit=100)

        if total == 0:
            print("No accounts found in database.")
            return

        logger.info(f"Found {total} accounts:")
        logger.info("-" * 80)
        for account in accounts:
            mode = "ssl" if account.use_ssl else "starttls" if account.use_starttls else "plain"
            logger.info(
                f"{account.id:4d}. {account.username:30} {account.host}:{account.port} {mode:8} "
                f"last_uid={account.last_uid} uidvalidity={account.last_uid_validity}"
            )
        logger.info("-" * 80)


async def sync_account(account_id: int | None, limit: int) -> None:
    async with fastapi_sqlalchemy_context():
        account_repo = container.repos.account()
        account = await account_repo.get(account_id) if account_id is not None else await account_repo.get_latest()
        if account is None:
            raise SystemExit("No IMAP account found")

        sync_engine = container.controllers.imap_sync_engine()
        result = await sync_engine.sync(AccountConfig.from_account(account), limit)
        logger.info(
            f"Synced account {result.account_id}: {result.new_messages} new messages, "
            f"last_uid={result.last_uid}, uidvalidity={result.uid_validity}, reset={result.reset}"
        )


def read_password() -> str:
    password = os.environ.get("IMAP_ACCOUNT_PASSWORD")
    if password:
        return password
    return getpass.getpass("IMAP password: ")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="selfecho management commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables from the models")

    add = subparsers.add_parser("add-account", help="Register an IMAP account")
    add.add_argument("--host", required=True)
    add.add_argument("--port", type=int, default=0, help="Defaults to 993")
    add.add_argument("--username", required=True)
    add.add_argument("--tls", choices=[mode.value for mode in TLSMode], default=TLSMode.SSL.value)

    subparsers.add_parser("list-accounts", help="List registered IMAP accounts")

    sync = subparsers.add_parser("sync", help="Run one synchronous sync")
    sync.add_argument("--account-id", type=int, help="Defaults to the most recently added account")
    sync.add_argument("--limit", type=int, default=settings.imap.list_sync_limit)

    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    try:
        if args.command == "init-db":
            asyncio.run(init_db())
        elif args.command == "add-account":
            asyncio.run(add_account(args.host, args.port, args.username, read_password(), TLSMode(args.tls)))
        elif args.command == "list-accounts":
            asyncio.run(list_accounts())
        elif args.command == "sync":
            asyncio.run(sync_account(args.account_id, args.limit))

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except BaseError as e:
        logger.error(f"Command failed; {e}")
        sys.exit(1)
    except Exception:
        logger.exception("Command failed")
        sys.exit(1)


if __name__ == "__main__":
    main()

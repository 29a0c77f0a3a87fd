"""
MemeHub - command line entry point.

    memehub serve                 Run the API with uvicorn
    memehub create-admin NAME     Create an admin account
    memehub sweep-orphans         List (or --delete) unreferenced images
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys

import uvicorn

from memehub.auth.jwt import create_admin
from memehub.config import get_settings
from memehub.media.orphans import sweep_orphans
from memehub.storage import create_storage

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Commands
# =============================================================================


def serve(args: argparse.Namespace) -> int:
    settings = get_settings()
    uvicorn.run(
        "memehub.api.app:create_app",
        factory=True,
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


async def _create_admin(username: str, password: str) -> None:
    storage = create_storage(get_settings().storage_config())
    await storage.initialize()
    try:
        await create_admin(storage.admins, username, password)
    finally:
        await storage.close()


def create_admin_command(args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    try:
        asyncio.run(_create_admin(args.username, password))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Created admin {args.username}")
    return 0


async def _sweep(delete: bool, prefix: str | None):
    storage = create_storage(get_settings().storage_config())
    await storage.initialize()
    try:
        return await sweep_orphans(storage.records, storage.assets, prefix=prefix, dry_run=not delete)
    finally:
        await storage.close()


def sweep_orphans_command(args: argparse.Namespace) -> int:
    report = asyncio.run(_sweep(args.delete, args.prefix))

    for asset_id in report.orphans:
        print(asset_id)
    if report.dry_run:
        print(f"{len(report.orphans)} orphaned assets (dry run, pass --delete to remove)")
        return 0

    print(f"Deleted {len(report.deleted)}, failed {len(report.failed)}")
    return 1 if report.failed else 0


# =============================================================================
# CLI Entry Point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memehub", description="MemeHub API server and tools")
    commands = parser.add_subparsers(dest="command", required=True)

    serve_parser = commands.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default: API_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: API_PORT)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve_parser.set_defaults(func=serve)

    admin_parser = commands.add_parser("create-admin", help="Create an admin account")
    admin_parser.add_argument("username")
    admin_parser.add_argument("--password", help="Prompted for when omitted")
    admin_parser.set_defaults(func=create_admin_command)

    sweep_parser = commands.add_parser("sweep-orphans", help="Find images no meme references")
    sweep_parser.add_argument("--delete", action="store_true", help="Delete what is found")
    sweep_parser.add_argument("--prefix", help="Only consider ids under this prefix")
    sweep_parser.set_defaults(func=sweep_orphans_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

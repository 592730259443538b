"""
Command line entry point.

    authserver start      bootstrap the stores and serve the HTTP API
    authserver bootstrap  bootstrap the stores and print the admin credentials
"""

import argparse
import ssl
import sys
from pathlib import Path
from typing import List, Optional

from aiohttp import web
from loguru import logger
from pydantic import ValidationError as SettingsError

from .api import create_app
from .auth import AuthManager, AuthServerError
from .config import Settings
from .log import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="authserver", description="Authorization server")
    parser.add_argument(
        "--config",
        type=Path,
        help="JSON config file"
    )
    parser.add_argument(
        "--system-db",
        type=Path,
        help="System database path"
    )
    parser.add_argument(
        "--token-db",
        type=Path,
        help="Token database path"
    )
    parser.add_argument(
        "--log-level",
        help="Log level (TRACE, DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL)"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    start = commands.add_parser("start", help="Serve the HTTP API")
    start.add_argument(
        "--bind",
        help="Interface to listen on"
    )
    start.add_argument(
        "--port",
        type=int,
        help="Port to listen on"
    )

    commands.add_parser("bootstrap", help="Seed the stores and print admin credentials")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    return Settings.load(
        args.config,
        system_db=args.system_db,
        token_db=args.token_db,
        log_level=args.log_level,
        api_bind=getattr(args, "bind", None),
        api_port=getattr(args, "port", None),
    )


def make_manager(settings: Settings) -> AuthManager:
    return AuthManager(settings.system_db, settings.token_db, token_ttl=settings.token_ttl)


def run_bootstrap(settings: Settings) -> int:
    result = make_manager(settings).bootstrap()
    print(f"admin id:     {result.admin.id}")
    if result.seeded:
        print(f"admin secret: {result.secret}")
    else:
        print("admin secret: (already bootstrapped; not shown)")
    return 0


def run_server(settings: Settings) -> int:
    manager = make_manager(settings)
    result = manager.bootstrap()
    if result.seeded:
        # Only chance to see the secret; it is stored hashed
        logger.warning(f"Admin user {result.admin.name} ({result.admin.id}) secret: {result.secret}")

    ssl_context = None
    if settings.tls_enabled:
        ssl_context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        ssl_context.load_cert_chain(str(settings.tls_cert), str(settings.tls_key))

    scheme = "https" if ssl_context else "http"
    logger.info(f"Starting authserver on {scheme}://{settings.api_bind}:{settings.api_port}")

    web.run_app(
        create_app(manager, settings),
        host=settings.api_bind,
        port=settings.api_port,
        ssl_context=ssl_context,
        print=None,
    )
    logger.info("Server stopped")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args)
    except (OSError, ValueError, SettingsError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "bootstrap":
            return run_bootstrap(settings)
        return run_server(settings)
    except AuthServerError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

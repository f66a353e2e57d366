"""Command-line interface for webmail-core.

This module provides the operator entry point: mailbox administration,
trash purge and the anonymous ingestion server.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

import structlog
from pydantic import ValidationError

from webmail_core import __version__
from webmail_core.config import Settings, get_settings
from webmail_core.exceptions import ConfigurationError, WebmailError
from webmail_core.ingest import AnonymousIngestGateway, DailyQuota, IngestServer
from webmail_core.mailbox import MailboxService, MailboxUsageAccountant
from webmail_core.sessions import SessionRegistry
from webmail_core.storage import AttachmentStore
from webmail_core.utils import format_size

logger = structlog.get_logger()


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="webmail-core", description="Filesystem mailbox storage")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Mailbox commands
    mailbox_parser = subparsers.add_parser("mailbox", help="Create, list and measure mailboxes")
    mailbox_sub = mailbox_parser.add_subparsers(dest="mailbox_command", required=True)

    create_parser = mailbox_sub.add_parser("create", help="Create a mailbox and its folders")
    create_parser.add_argument("name", help="Mailbox (user) name")

    mailbox_sub.add_parser("list", help="List existing mailboxes")

    usage_parser = mailbox_sub.add_parser("usage", help="Show disk usage of a mailbox")
    usage_parser.add_argument("name", help="Mailbox (user) name")

    # Trash commands
    trash_parser = subparsers.add_parser("trash", help="Trash maintenance")
    trash_sub = trash_parser.add_subparsers(dest="trash_command", required=True)

    purge_parser = trash_sub.add_parser("purge", help="Delete trashed mail past retention")
    purge_parser.add_argument(
        "name",
        nargs="?",
        default=None,
        help="Mailbox to purge (default: every mailbox)",
    )
    purge_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention in days (default: settings trash_retention_days)",
    )

    # Ingestion commands
    ingest_parser = subparsers.add_parser("ingest", help="Anonymous datagram ingestion")
    ingest_sub = ingest_parser.add_subparsers(dest="ingest_command", required=True)

    serve_parser = ingest_sub.add_parser("serve", help="Run the ingestion endpoint")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: settings ingest_host)")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port (default: settings ingest_port)")

    return parser


def _cmd_mailbox_create(args: argparse.Namespace, settings: Settings) -> int:
    mailboxes = MailboxService.from_settings(settings)
    mailboxes.create_mailbox(args.name)
    print(f"Mailbox {args.name} ready under {mailboxes.user_root(args.name)}")
    return 0


def _cmd_mailbox_list(args: argparse.Namespace, settings: Settings) -> int:
    mailboxes = MailboxService.from_settings(settings)
    for name in mailboxes.list_mailboxes():
        print(name)
    return 0


def _cmd_mailbox_usage(args: argparse.Namespace, settings: Settings) -> int:
    mailboxes = MailboxService.from_settings(settings)
    accountant = MailboxUsageAccountant(mailboxes, AttachmentStore(settings.attachments_root))

    usage = accountant.usage(args.name)
    print(f"Records: {format_size(usage.record_bytes)}")
    print(f"Attachments: {format_size(usage.attachment_bytes)}")
    print(f"Total: {format_size(usage.total)}")
    return 0


def _cmd_trash_purge(args: argparse.Namespace, settings: Settings) -> int:
    mailboxes = MailboxService.from_settings(settings)

    if args.name:
        counts = {args.name: mailboxes.purge_trash(args.name, args.days)}
    else:
        counts = mailboxes.purge_all_trash(args.days)

    for name, removed in counts.items():
        print(f"{name}: {removed} removed")
    return 0


async def serve(
    settings: Settings,
    sessions: SessionRegistry,
    stop: asyncio.Event,
    *,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the ingestion endpoint and the session sweeper until ``stop`` is set.

    ``sessions`` is the process's session registry. Transport layers living
    in the same process issue and validate tokens through it; this function
    owns its lifecycle: it is swept while serving and closed on shutdown.

    Args:
        settings: Application settings.
        sessions: Session registry to sweep and close.
        stop: Event that ends serving when set.
        host: Bind address, defaults to ``settings.ingest_host``.
        port: Bind port, defaults to ``settings.ingest_port``.
    """
    mailboxes = MailboxService.from_settings(settings)
    gateway = AnonymousIngestGateway(mailboxes, DailyQuota(settings.ingest_daily_limit))

    sweeper = asyncio.create_task(sessions.run_sweeper(settings.session_sweep_interval_seconds))
    try:
        async with IngestServer(
            gateway,
            host or settings.ingest_host,
            settings.ingest_port if port is None else port,
            max_datagram_bytes=settings.ingest_max_datagram_bytes,
        ) as server:
            bound_host, bound_port = server.address
            print(f"Listening for anonymous mail on {bound_host}:{bound_port}")
            await stop.wait()
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        sessions.close()


async def _cmd_ingest_serve(args: argparse.Namespace, settings: Settings) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops; Ctrl+C still ends asyncio.run.
            pass

    await serve(settings, SessionRegistry.from_settings(settings), stop, host=args.host, port=args.port)
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the webmail-core CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, 1 for domain errors, 2 for unknown commands).
    """
    if args is None:
        args = sys.argv[1:]

    try:
        settings = _load_settings()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
    )

    logger.info("webmail_core_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "mailbox":
            if parsed.mailbox_command == "create":
                return _cmd_mailbox_create(parsed, settings)
            if parsed.mailbox_command == "list":
                return _cmd_mailbox_list(parsed, settings)
            if parsed.mailbox_command == "usage":
                return _cmd_mailbox_usage(parsed, settings)
        if parsed.command == "trash" and parsed.trash_command == "purge":
            return _cmd_trash_purge(parsed, settings)
        if parsed.command == "ingest" and parsed.ingest_command == "serve":
            return asyncio.run(_cmd_ingest_serve(parsed, settings))
    except WebmailError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())

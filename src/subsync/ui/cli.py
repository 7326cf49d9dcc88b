"""Command-line entry point: serve the HTTP API or run a single sync or refresh cycle."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from subsync.app import build_subscription_sync
from subsync.config import configure_logging
from subsync.domain.errors import SubscriptionError
from subsync.domain.reconciliation import RefreshOutcome

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from subsync.domain.subscription_sync import SubscriptionSync

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile subscriptions with the vendor")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=DEFAULT_HOST, help="Bind address")
    serve.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help="Bind port (default: %(default)s)"
    )

    sync = subparsers.add_parser("sync", help="Run one full sync for an owner")
    sync.add_argument("--owner", type=str, required=True, help="Owner (customer) id")

    refresh = subparsers.add_parser(
        "refresh", help="Run one background-style refresh for an owner and wait for it"
    )
    refresh.add_argument("--owner", type=str, required=True, help="Owner (customer) id")

    return parser.parse_args(list(argv))


async def _run_sync(subscription_sync: SubscriptionSync, owner_id: str) -> None:
    try:
        cycle = await subscription_sync.full_sync(owner_id)
    finally:
        await subscription_sync.aclose()
    log.info(
        "Full sync finished for owner %s: updated=%s, created=%s, skipped=%s, "
        "duplicates=%s, invalid=%s, rows=%s",
        owner_id,
        cycle.summary.updated,
        cycle.summary.created,
        len(cycle.summary.skipped),
        len(cycle.merge.duplicates),
        len(cycle.merge.invalid),
        len(cycle.subscriptions),
    )


async def _run_refresh(subscription_sync: SubscriptionSync, owner_id: str) -> RefreshOutcome:
    try:
        outcome = await subscription_sync.refresh(owner_id)
    finally:
        await subscription_sync.aclose()
    log.info("Refresh finished for owner %s: %s", owner_id, outcome)
    return outcome


def _serve(subscription_sync: SubscriptionSync, *, host: str, port: int) -> None:
    import uvicorn  # noqa: PLC0415

    from subsync.api import create_app  # noqa: PLC0415

    uvicorn.run(create_app(subscription_sync), host=host, port=port, log_config=None)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        subscription_sync = build_subscription_sync()
        if parsed_args.command == "serve":
            _serve(subscription_sync, host=parsed_args.host, port=parsed_args.port)
        elif parsed_args.command == "sync":
            asyncio.run(_run_sync(subscription_sync, parsed_args.owner))
        elif parsed_args.command == "refresh":
            outcome = asyncio.run(_run_refresh(subscription_sync, parsed_args.owner))
            if outcome not in {RefreshOutcome.COMMITTED, RefreshOutcome.NOTHING_TO_DO}:
                sys.exit(1)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except SubscriptionError as exc:
        log.error("%s: %s", exc.kind, exc.message)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

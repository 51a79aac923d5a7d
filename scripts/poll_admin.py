"""Watch a user's submitted tax form for admin actions from the command line.

Runs the admin poller against the configured backend and prints every
notification it raises. Useful when checking that backend staff actions reach
the client without a device at hand.

Example usages::

    # Run one diff cycle and exit.
    python -m scripts.poll_admin --token "$TOKEN" --once

    # Keep polling until interrupted.
    python -m scripts.poll_admin --token "$TOKEN"

    # Forget the stored markers for a form so the next cycle starts fresh.
    python -m scripts.poll_admin --token "$TOKEN" --clear-form 42 --once
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import datetime
from typing import Optional

import httpx

from taxease.core.events import NotificationRaised
from taxease.main import TaxEaseApp, create_app

EXIT_OK = 0
EXIT_USAGE_ERROR = 2


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _print_notification(event: NotificationRaised) -> None:
    print(f"[{_timestamp()}] {event.type.upper()} {event.title}: {event.body}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Poll the backend for admin status changes and documents."
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("TAXEASE_ACCESS_TOKEN"),
        help="Bearer token for the backend (default: $TAXEASE_ACCESS_TOKEN).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single diff cycle instead of polling until interrupted.",
    )
    parser.add_argument(
        "--clear-form",
        metavar="FORM_ID",
        help="Delete the stored status and document markers for a form first.",
    )
    return parser


async def run(
    token: str,
    *,
    once: bool = False,
    clear_form: Optional[str] = None,
    app: Optional[TaxEaseApp] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TaxEaseApp:
    app = app or create_app(transport=transport)
    app.bus.subscribe(NotificationRaised, _print_notification)

    if clear_form:
        await app.poller.clear_stored_data(clear_form)
        print(f"[{_timestamp()}] Cleared stored markers for form {clear_form}")

    if once:
        await app.poller.force_check(token)
        status = app.poller.get_polling_status()
        print(f"[{_timestamp()}] Check complete | last_check={status['last_check']}")
        return app

    print("Watching for admin actions (Ctrl+C to exit)")
    app.notifications.start_admin_polling(token)
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await app.shutdown()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.token:
        print("A backend token is required (--token or TAXEASE_ACCESS_TOKEN).", file=sys.stderr)
        return EXIT_USAGE_ERROR

    try:
        asyncio.run(run(args.token, once=args.once, clear_form=args.clear_form))
    except KeyboardInterrupt:
        print("\nStopped watching.")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

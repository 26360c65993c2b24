"""Command-line entry point for the Cachet bridge.

Usage:
    uv run python -m src.cli serve
    uv run python -m src.cli replay payload.json [--squash | --no-squash]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import uvicorn
from pydantic import ValidationError

from src.alerts.models import AlertGroup
from src.alerts.reconciler import reconcile
from src.cachet.client import CachetClient
from src.config import get_settings
from src.errors import BridgeError

logger = logging.getLogger(__name__)


class _HealthCheckFilter(logging.Filter):
    """Drop uvicorn access-log lines for /health probes."""

    def filter(self, record: logging.LogRecord) -> bool:
        return "/health" not in record.getMessage()


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _serve() -> int:
    settings = get_settings()
    logging.getLogger("uvicorn.access").addFilter(_HealthCheckFilter())
    uvicorn.run(
        "src.api.main:app",
        host=settings.http_host,
        port=settings.http_port,
        log_level="debug" if settings.debug else "info",
        log_config=None,
    )
    return 0


async def _replay(path: Path, squash: bool | None) -> int:
    """Reconcile a saved webhook payload once and print what happened."""
    settings = get_settings()
    try:
        group = AlertGroup.model_validate(json.loads(path.read_text()))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"Cannot load payload {path}: {e}", file=sys.stderr)
        return 2

    try:
        result = await reconcile(
            group,
            CachetClient(settings),
            label_name=settings.label_name,
            squash=settings.squash_incident if squash is None else squash,
        )
    except BridgeError as e:
        print(f"Error ({e.kind}): {e}", file=sys.stderr)
        return 1

    for mutation in result.mutations:
        print(f"{mutation.operation:<9} {mutation.component} (component {mutation.component_id})")
    print(f"{result.skipped} alert(s) skipped")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Parse args and run the selected command."""
    parser = argparse.ArgumentParser(description="Alertmanager to Cachet bridge")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("serve", help="Run the webhook receiver")
    replay = sub.add_parser("replay", help="Reconcile a saved Alertmanager payload once")
    replay.add_argument("payload", type=Path, help="Path to a webhook JSON body")
    replay.add_argument(
        "--squash",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Override SQUASH_INCIDENT for this run",
    )
    args = parser.parse_args(argv)

    _configure_logging(get_settings().debug)

    if args.command == "serve":
        sys.exit(_serve())
    sys.exit(asyncio.run(_replay(args.payload, args.squash)))


if __name__ == "__main__":
    main()

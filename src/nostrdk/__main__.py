"""CLI entry point for one-off fetches.

Connects a [Session][nostrdk.core.session.Session] to the configured relays,
runs one fetch and prints matching events as JSON lines on stdout.

Examples:
    ```bash
    python -m nostrdk fetch-event nevent1... --relay wss://nos.lol
    python -m nostrdk fetch-events --kind 1 --author <hex> --limit 20
    python -m nostrdk fetch-events --kind 10002 --config config/session.yaml --timeout 10
    ```
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nostrdk.core.exceptions import ConfigurationError
from nostrdk.core.logger import Logger, StructuredFormatter
from nostrdk.core.metrics import MetricsServer
from nostrdk.core.session import Session, SessionConfig
from nostrdk.core.yaml import load_yaml
from nostrdk.models.event import Event
from nostrdk.models.filter import Filter


DEFAULT_CONFIG = Path("config") / "session.yaml"
DEFAULT_TIMEOUT = 10.0

logger = Logger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="nostrdk", description="nostrdk fetch client")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Session config path (default: {DEFAULT_CONFIG})",
    )
    common.add_argument(
        "--relay",
        action="append",
        default=[],
        help="Relay URL to add to the pool (repeatable)",
    )
    common.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds for connecting and for the fetch (default: {DEFAULT_TIMEOUT})",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    fetch_event = commands.add_parser(
        "fetch-event", parents=[common], help="Fetch one event by id, bech32 entity or coordinate"
    )
    fetch_event.add_argument("event_id", help="note/nevent/naddr, hex id or kind:pubkey:d")

    fetch_events = commands.add_parser(
        "fetch-events", parents=[common], help="Fetch every event matching a filter"
    )
    fetch_events.add_argument("--kind", type=int, action="append", default=[], help="Event kind")
    fetch_events.add_argument("--author", action="append", default=[], help="Hex author pubkey")
    fetch_events.add_argument("--limit", type=int, help="Maximum events per relay")

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install ``StructuredFormatter`` on a stderr root handler."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def build_config(args: argparse.Namespace) -> SessionConfig:
    """Load the config file (if present) and apply CLI overrides.

    Raises:
        ConfigurationError: If the file is invalid or no relay is configured.
    """
    config_dict: dict[str, Any] = {}
    if args.config.exists():
        config_dict = load_yaml(args.config)
    elif args.config != DEFAULT_CONFIG:
        raise ConfigurationError(f"Config file not found: {args.config}")

    config_dict["explicit_relay_urls"] = [
        *config_dict.get("explicit_relay_urls", []),
        *args.relay,
    ]
    config_dict.setdefault("fetch_timeout", args.timeout)
    config = SessionConfig.from_dict(config_dict)
    if not config.explicit_relay_urls:
        raise ConfigurationError("No relays configured: pass --relay or set explicit_relay_urls")
    return config


def build_filter(args: argparse.Namespace) -> Filter:
    return Filter(
        kinds=args.kind or None,
        authors=args.author or None,
        limit=args.limit,
    )


def print_events(events: list[Event]) -> None:
    for event in sorted(events, key=lambda e: (-e.created_at, e.id)):
        sys.stdout.write(event.to_json() + "\n")
    sys.stdout.flush()


async def run(args: argparse.Namespace, config: SessionConfig) -> int:
    """Connect, run the requested fetch and print the result.

    Returns:
        Exit code: 0 when something was found, 2 when nothing matched.
    """
    metrics_server = MetricsServer(config.metrics)
    await metrics_server.start()
    session = Session(config)
    try:
        await session.connect(timeout=args.timeout)
        if args.command == "fetch-event":
            event = await session.fetch_event(args.event_id)
            events = [event] if event is not None else []
        else:
            events = list(await session.fetch_events(build_filter(args)))
    finally:
        await session.close()
        await metrics_server.stop()

    logger.info("fetch_completed", command=args.command, events=len(events))
    print_events(events)
    return 0 if events else 2


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the session config and fetch."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = build_config(args)
        return await run(args, config)
    except (ConfigurationError, ValidationError, ValueError) as e:
        logger.error("invalid_input", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()

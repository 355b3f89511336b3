"""
Notifier entry point.

Loads configuration, configures logging, and either serves the HTTP surface
or runs a single notification cycle for one region.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from .config import load_config
from .service import NotifierService


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(level)
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Findvax availability notifier")
    parser.add_argument(
        "-c", "--config",
        default="notify.yaml",
        help="Path to configuration file (default: notify.yaml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("serve", help="Serve intake and trigger endpoints")
    run_parser = sub.add_parser("run", help="Run one notification cycle and exit")
    run_parser.add_argument("--region", required=True, help="Region state token, e.g. ma")
    return parser


def run(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    log = structlog.get_logger()
    log.info("notify.config_loaded", config_path=args.config, command=args.command)

    service = NotifierService(config)
    if args.command == "run":
        result = asyncio.run(service.run_once(args.region))
        sys.exit(0 if result.ok else 1)

    try:
        asyncio.run(service.run_forever())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()

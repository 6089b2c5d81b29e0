"""Command-line entry point.

Usage:
    memewatch run [--dry-run] [--log-level LEVEL]
    memewatch config
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys

from pydantic import ValidationError

from memewatch import __version__
from memewatch.config import Settings, get_settings
from memewatch.pipeline import Pipeline

logger = logging.getLogger("memewatch")

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memewatch", description="Whale buy detector for Base and Solana")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start ingestion and alerting")
    run.add_argument("--dry-run", action="store_true", help="Log alerts instead of sending them")
    run.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL",
    )

    sub.add_parser("config", help="Print the effective configuration with secrets redacted")
    return parser


def configure_logging(level: int) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # Transport libraries log every frame at DEBUG.
    for noisy in ("websockets", "aiohttp", "web3", "urllib3"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


async def _run(settings: Settings, *, dry_run: bool) -> None:
    pipeline = Pipeline(settings, dry_run=dry_run)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Windows event loops do not support signal handlers.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, pipeline.request_stop)
    await pipeline.run()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    if args.command == "config":
        print(json.dumps(settings.redacted_summary(), indent=2))
        return 0

    dry_run = args.dry_run or settings.dry_run
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    if dry_run != settings.dry_run:
        settings = settings.model_copy(update={"dry_run": dry_run})
    configure_logging(settings.get_logging_level())

    try:
        settings.validate_requirements(command="run")
    except ValueError as e:
        logger.error("%s", e)
        return 2

    try:
        asyncio.run(_run(settings, dry_run=dry_run))
    except KeyboardInterrupt:
        pass
    except RuntimeError as e:
        logger.error("Exiting: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

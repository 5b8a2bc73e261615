# src/main.py — v3
"""CLI entry point: summary, quiz, settings commands.

Usage:
    vidbrief summary <video_id> [--language en] [--caller cli]
    vidbrief quiz <video_id> [--language en] [--caller cli]
    vidbrief settings

Artifacts are printed to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from vidbrief.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PIPELINE_ERROR = 2
EXIT_INTERRUPTED = 130

_SECRET_FIELDS = ("youtube_api_key", "google_api_key")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR

    from vidbrief.config.settings import ConfigurationError, load_settings
    from vidbrief.core.errors import VidbriefError

    try:
        settings = load_settings()
    except (ConfigurationError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except VidbriefError as exc:
        logger.error("Request failed (%s): %s", exc.kind.value, exc.message)
        print(json.dumps({"error": exc.kind.value, "detail": exc.message}), file=sys.stderr)
        return EXIT_PIPELINE_ERROR
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_ERROR


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="vidbrief",
        description=f"vidbrief v{__version__}: summaries and quizzes for online videos",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    for kind, help_text in (
        ("summary", "Summarize a video"),
        ("quiz", "Generate a five-question quiz for a video"),
    ):
        p = subparsers.add_parser(kind, help=help_text)
        p.add_argument("video_id", help="Platform video identifier")
        p.add_argument(
            "-l", "--language", default="en",
            help="Output language code (default: en)",
        )
        p.add_argument(
            "--caller", default="cli",
            help="Caller identity used for rate limiting (default: cli)",
        )
        p.set_defaults(func=_cmd_artifact, kind=kind)

    p_settings = subparsers.add_parser(
        "settings", help="Print the resolved configuration",
    )
    p_settings.set_defaults(func=_cmd_settings)

    return parser


async def _cmd_artifact(args: argparse.Namespace, settings) -> int:
    """Request one summary or quiz and print it."""
    from vidbrief.api.facade import VideoBriefService

    async with VideoBriefService(settings) as service:
        artifact = await service.request(
            args.video_id, args.language, args.kind, caller_id=args.caller
        )
    print(artifact.model_dump_json(indent=2))
    return EXIT_OK


async def _cmd_settings(args: argparse.Namespace, settings) -> int:
    """Print settings as JSON with credentials masked."""
    data = settings.model_dump(mode="json")
    for name in _SECRET_FIELDS:
        if data.get(name):
            data[name] = "***"
    data["supported_languages"] = settings.supported_languages_list
    print(json.dumps(data, indent=2, sort_keys=True))
    return EXIT_OK


def _setup_logging(settings, verbose: bool) -> None:
    from vidbrief.logging.logger import setup_logging

    setup_logging(settings, verbose=verbose)


if __name__ == "__main__":
    sys.exit(main())

"""Main module for the screenshot relay CLI."""

import sys
import argparse
from pathlib import Path

from . import __version__
from .core.config import load_settings
from .core.factories import RelayPipelineFactory
from .core.logging_config import configure_logging
from .core.models import RelayRequest


def run_process(args: argparse.Namespace) -> int:
    """
    Run one relay call from parsed CLI arguments.

    Returns:
        Process exit code: 0 on success, 1 on any relay error.
    """
    settings = load_settings()
    logger = configure_logging(settings, level="DEBUG" if args.debug else None)
    orchestrator = RelayPipelineFactory.create_pipeline(settings=settings)

    request = RelayRequest(
        screenshots=args.url,
        dry_run=args.dry_run,
        pad=args.pad,
        resize_width=args.resize_width,
        box=args.box,
        caption=args.caption,
    )
    result = orchestrator.run(request)

    if not result.ok:
        logger.error(f"{result.error} ({result.error_kind}): {result.message}")
        print(f"Error [{result.error_kind}]: {result.message}", file=sys.stderr)
        return 1

    if result.dry_run:
        output = Path(args.output)
        output.write_bytes(result.image.data)
        print(f"Wrote {result.image.width}x{result.image.height} image to {output}")
    else:
        print(f"Relayed {result.image.width}x{result.image.height} image from {result.source_url}")

    timings = ", ".join(f"{stage}={ms}ms" for stage, ms in result.timings.items())
    logger.info(f"Stage timings: {timings}")
    return 0


def main() -> None:
    """
    Entry point for the command-line interface (CLI) of the screenshot relay.

    ``process`` runs a single fetch/transform/relay cycle with settings taken
    from the environment; ``version`` prints version information.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="screenshot-relay",
        description="Screenshot Relay - fetch a screenshot, extract its content and relay it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Auto-trim a screenshot and save it locally without relaying
  screenshot-relay process --url https://example.com/shot.png --dry-run

  # Cut a fixed region and send it to the configured Telegram chat
  TELEGRAM_BOT_TOKEN=... TELEGRAM_CHAT_ID=... \\
      screenshot-relay process --url https://example.com/shot.png --box 0,50,1270,250

  # Show version
  screenshot-relay version
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    process_parser: argparse.ArgumentParser = subparsers.add_parser(
        "process", help="Fetch, transform and relay one screenshot"
    )
    process_parser.add_argument("--url", required=True, help="Source screenshot URL")
    process_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Write the image to --output instead of relaying it",
    )
    process_parser.add_argument(
        "--output", default="screenshot.png", help="Output path for --dry-run"
    )
    process_parser.add_argument(
        "--pad", default=None, help="Padding in pixels added after trimming (default: 8)"
    )
    process_parser.add_argument(
        "--resize-width",
        default=None,
        help="Scale the output to this width, clamped to 320-4000",
    )
    process_parser.add_argument(
        "--box",
        default=None,
        help="Manual region left,top,width,height (disables auto-trim)",
    )
    process_parser.add_argument("--caption", default=None, help="Caption for the relayed image")
    process_parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )

    subparsers.add_parser("version", help="Show version information")

    args: argparse.Namespace = parser.parse_args()

    if args.command == "process":
        sys.exit(run_process(args))

    elif args.command == "version":
        print("Screenshot Relay CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

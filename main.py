# main.py

"""Entry point for the pricewatch tracker (cycle runner, tracker, API)."""

import argparse
import asyncio
import logging
import sys

from pricewatch.config.logging_config import setup_logging
from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    platforms = ", ".join(p["label"] for p in Settings.PLATFORMS)

    parser = argparse.ArgumentParser(
        prog="pricewatch",
        description="Marketplace price tracker with email alerts.",
        epilog=f"Supported platforms: {platforms}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Update every tracked product once.")
    run.add_argument(
        "--csv",
        action="store_true",
        default=False,
        dest="export_csv",
        help="Also export the cycle outcomes as CSV.",
    )

    track = sub.add_parser("track", help="Start tracking a product URL.")
    track.add_argument("url", help="Product page URL.")
    track.add_argument(
        "-e",
        "--email",
        default=None,
        help="Subscribe this address to the product's alerts.",
    )

    sub.add_parser("list", help="Show tracked products.")

    serve = sub.add_parser("serve", help="Serve the /api/cron trigger.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main() -> None:
    """Route to the requested subcommand and exit with its code."""
    args = _build_parser().parse_args()
    log_file = setup_logging(args.command)
    logger.info("pricewatch %s starting, log file: %s", args.command, log_file)

    from pricewatch.cli import runner

    if args.command == "run":
        exit_code = asyncio.run(runner.run_cycle(args.export_csv))
    elif args.command == "track":
        exit_code = runner.track_url(args.url, args.email)
    elif args.command == "list":
        exit_code = runner.list_products()
    else:
        exit_code = runner.serve(args.host, args.port)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

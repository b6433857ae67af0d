# src/checkup/cli.py

import argparse
import sys
from pathlib import Path

from checkup import log_utils
from checkup.config import load_config
from checkup.exceptions import ConfigurationError
from checkup.release.naming import rename_to_latest
from checkup.server import run_server
from checkup.utils import get_version


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checkup", description="checkup - caching proxy for release listings"
    )
    subparsers = parser.add_subparsers(dest="command")

    # Command to run the proxy server
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument(
        "--config", help="Path to the YAML config file (default: user config dir)"
    )
    serve_parser.add_argument("--cache", help="Cache directory")
    serve_parser.add_argument(
        "--cache-hours", type=float, help="How long cached releases stay fresh"
    )
    serve_parser.add_argument("--host", help="Address to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to listen on")
    serve_parser.add_argument("--log-dir", help="Also write logs to this directory")

    # Command to preview stable download names
    latest_parser = subparsers.add_parser(
        "latest-name", help="Print the stable 'latest' name for asset filenames"
    )
    latest_parser.add_argument("filenames", nargs="+", metavar="FILENAME")

    subparsers.add_parser("version", help="Show the installed version")
    return parser


def _run_serve(args: argparse.Namespace) -> None:
    try:
        config = load_config(args.config).with_overrides(
            cache_dir=args.cache,
            cache_hours=args.cache_hours,
            host=args.host,
            port=args.port,
            log_dir=args.log_dir,
        )
    except ConfigurationError as e:
        log_utils.logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if config.log_level:
        log_utils.set_log_level(config.log_level)
    if config.log_dir:
        log_utils.add_file_logging(Path(config.log_dir), config.log_level or "INFO")

    run_server(config)


def main():
    # Logging is automatically initialized by importing log_utils

    """
    Entry point for the checkup command-line interface.

    Dispatches the `serve`, `latest-name` and `version` subcommands; prints
    help when no subcommand is given.
    """
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "serve":
        _run_serve(args)
    elif args.command == "latest-name":
        for filename in args.filenames:
            print(f"{filename} -> {rename_to_latest(filename)}")
    elif args.command == "version":
        print(f"checkup v{get_version()}")
    else:
        parser.print_help()


if __name__ == "__main__":
    main()

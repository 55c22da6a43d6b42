"""Command-line entry point: ``gherkin-sync sync --project ID``.

Exit codes: 0 on success or when already in sync, 1 on any fatal error
(configuration, repository, network or API), 130 when interrupted.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import Config, load_config
from .config_loader import discover_config_files, load_hierarchical_config
from .config_schema import DEFAULT_API_URL, UnifiedConfig, build_config, to_fallbacks
from .core.client import SyncApiClient
from .core.git import GitRepository
from .errors import ConfigurationError, GherkinSyncError
from .logger import setup_logging
from .sync.engine import SyncEngine
from .sync.reporter import format_sync_report, report_to_json

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gherkin-sync",
        description="Synchronise Gherkin feature files in a Git repository "
        "with a test-management service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync the current repository with project 42
  export TESTCOLLAB_TOKEN=your_api_token_here
  gherkin-sync sync --project 42

  # Preview the delta without submitting it
  gherkin-sync sync --project 42 --dry-run

  # Use a self-hosted API and keep a copy of the payload
  gherkin-sync sync --project 42 --api-url https://tc.example.com/api --payload-file delta.json
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"gherkin-sync version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    sync = subparsers.add_parser(
        "sync",
        help="Synchronise feature files changed since the last sync",
    )
    sync.add_argument(
        "--project",
        required=True,
        help="Remote project ID",
    )
    sync.add_argument(
        "--api-url",
        help=f"API base URL (default: TESTCOLLAB_API_URL env var, config file, or {DEFAULT_API_URL})",
    )
    sync.add_argument(
        "--repo",
        default=".",
        help="Path inside the Git repository to sync (default: current directory)",
    )
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and print the delta without submitting it",
    )
    sync.add_argument(
        "--payload-file",
        type=Path,
        help="Write the delta JSON to this file before submitting",
    )
    sync.add_argument(
        "--json",
        action="store_true",
        help="Print the final report as JSON (progress goes to stderr)",
    )
    sync.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging, raw diff records and the outgoing payload",
    )
    sync.add_argument(
        "--log-file",
        help="Also append log records to this file",
    )
    return parser


def _load_runtime_config(args: argparse.Namespace) -> tuple[Config, UnifiedConfig]:
    """Resolve configuration: CLI > env (.env loaded first) > YAML > defaults."""
    load_dotenv()

    try:
        unified = build_config(load_hierarchical_config())
    except (ValidationError, yaml.YAMLError, OSError, ValueError) as e:
        raise ConfigurationError(f"Invalid config file: {e}") from e

    config = load_config(
        project_id=args.project,
        api_url=args.api_url,
        debug=args.debug,
        yaml_fallbacks=to_fallbacks(unified),
    )
    return config, unified


def run_sync(args: argparse.Namespace) -> int:
    try:
        config, unified = _load_runtime_config(args)
    except ConfigurationError as e:
        _stderr_print(f"ERROR: {e}")
        return 1

    setup_logging(
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )
    config_files = discover_config_files()
    if config_files:
        logger.info("Configuration loaded from: %s", config_files[0])
    logger.info("API URL: %s", config.api_url)

    # Keep stdout clean for the JSON document.
    progress = _stderr_print if args.json else print

    engine = SyncEngine(
        client=SyncApiClient(config),
        repo=GitRepository(args.repo),
        project_id=config.project_id,
        debug=config.debug,
        feature_extension=config.feature_extension,
        warn_uncommitted=config.warn_uncommitted,
        progress=progress,
        payload_file=args.payload_file,
    )

    try:
        report = engine.run(dry_run=args.dry_run)
    except GherkinSyncError as e:
        _stderr_print(f"ERROR: {e}")
        return 1

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print()
        print(format_sync_report(report))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return run_sync(args)


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    run()

"""CLI entry point for mailsift.

Usage:
    mailsift --current-month               # Process this month
    mailsift --start 2025-01-01 --end 2025-01-31
    mailsift --status                      # Show what previous runs produced
    mailsift --help                        # Show all options
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from mailsift.core.config import Config
from mailsift.core.dates import DateRange
from mailsift.core.errors import ConfigurationError
from mailsift.core.logging import configure_logging
from mailsift.llm.client import ALLOWED_MODELS
from mailsift.pipeline import PipelineOrchestrator, format_status, get_status
from mailsift.pipeline.processor import ItemResult


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Extract events, people, receipts and bills from EML files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in the working directory)",
    )
    parser.add_argument(
        "--input-directory",
        type=Path,
        default=None,
        help="Directory containing EML files",
    )
    parser.add_argument(
        "--output-directory",
        type=Path,
        default=None,
        help="Directory to write markdown and cached responses to",
    )

    # Date range
    parser.add_argument("--start", default=None, metavar="YYYY-MM-DD", help="Start date")
    parser.add_argument("--end", default=None, metavar="YYYY-MM-DD", help="End date")
    parser.add_argument(
        "--current-month",
        action="store_true",
        help="Process the current month (cannot be combined with --start/--end)",
    )

    # Models
    parser.add_argument(
        "--model",
        choices=ALLOWED_MODELS,
        default=None,
        help="Model for HTML conversion (default: gpt-4o)",
    )
    parser.add_argument(
        "--classify-model",
        choices=ALLOWED_MODELS,
        default=None,
        help="Model for classification, extraction and rendering (default: gpt-4o-mini)",
    )
    parser.add_argument(
        "--context-directories",
        type=Path,
        nargs="+",
        default=None,
        metavar="DIR",
        help="Directories of .md/.txt files appended to every prompt",
    )
    parser.add_argument(
        "--config-directory",
        type=Path,
        default=None,
        help="Directory holding personas/ and instructions/ prompt overrides",
    )
    parser.add_argument(
        "--overrides",
        action="store_true",
        help="Apply prompt overrides from the config directory",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of files processed concurrently (default: 3)",
    )

    # Behaviour
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Walk already processed files again (cached responses are reused)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the files that would be processed",
    )
    parser.add_argument("--verbose", action="store_true", help="Log progress")
    parser.add_argument("--debug", action="store_true", help="Log everything")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show current pipeline status",
    )

    return parser.parse_args(argv)


def get_env_file(args: argparse.Namespace) -> Path | None:
    """Get the .env file path from args or default location."""
    env_file = args.env_file if args.env_file is not None else Path.cwd() / ".env"
    return env_file if env_file.exists() else None


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration and apply command line overrides.

    Raises:
        ConfigurationError: If the config file is unreadable or invalid.
    """
    config = Config.load(args.config, get_env_file(args))
    return config.with_overrides(
        input_directory=args.input_directory,
        output_directory=args.output_directory,
        model=args.model,
        classify_model=args.classify_model,
        context_directories=tuple(args.context_directories) if args.context_directories else None,
        config_directory=args.config_directory,
        overrides=args.overrides or None,
        workers=args.workers,
        replace=args.replace or None,
        dry_run=args.dry_run or None,
        verbose=args.verbose or None,
        debug=args.debug or None,
    )


def on_item_event(file: Path, event: str, result: ItemResult | None) -> None:
    """Print per-file progress."""
    if event == "complete" and result:
        print(f"  OK: {file.name} -> {result.artifact_path}")
    elif event == "skip":
        reason = result.status if result else "dry run"
        print(f"  - {file.name} skipped ({reason})")
    elif event == "fail":
        detail = f" ({'; '.join(result.messages)})" if result and result.messages else ""
        print(f"  FAIL: {file.name}{detail}")


def run_pipeline(args: argparse.Namespace, config: Config) -> int:
    """Run the main pipeline and return the exit code."""
    # Status mode
    if args.status:
        print(format_status(get_status(config)))
        return 0

    try:
        date_range = DateRange.create(
            start=args.start,
            end=args.end,
            current_month=args.current_month,
            timezone=config.timezone,
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    orchestrator = PipelineOrchestrator(config, date_range)
    errors = orchestrator.validate()
    if errors:
        print("Configuration errors:", file=sys.stderr)
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    print(
        f"Processing {config.input_directory} from {date_range.start:%Y-%m-%d} "
        f"to {date_range.end:%Y-%m-%d} (workers={config.workers})"
    )
    orchestrator.add_callback(on_item_event)

    try:
        result = orchestrator.run_sync()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    # Print summary
    print("\n" + "=" * 60)
    print(result.message)
    for error in result.errors:
        print(f"  - {error}")
    print("=" * 60)

    return 0 if result.success else 1


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for the extraction pipeline."""
    args = parse_args(argv)

    # Load configuration
    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(verbose=config.verbose, debug=config.debug)
    sys.exit(run_pipeline(args, config))


if __name__ == "__main__":
    main()

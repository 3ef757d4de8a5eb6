"""Header frequency report for a directory of EML files.

Usage:
    mailsift-frequency --directory mail --header From
    mailsift-frequency -d mail -H To --num-rows 20
"""

from __future__ import annotations

import argparse
import sys
from collections import Counter
from collections.abc import Sequence
from pathlib import Path

import structlog

from mailsift.core.email import parse_addresses, parse_eml
from mailsift.core.logging import configure_logging
from mailsift.core.types import ParsedEmail

logger = structlog.get_logger(__name__)

ADDRESS_HEADERS = ("from", "to", "cc", "bcc")
DEFAULT_ROWS = 50


def extract_header_values(eml: ParsedEmail, header: str) -> list[str]:
    """Values of one header: email addresses for address headers, raw text otherwise."""
    key = header.lower()
    if key in ADDRESS_HEADERS:
        if key == "from":
            addresses = eml.from_
        elif key == "to":
            addresses = eml.to
        elif key == "cc":
            addresses = eml.cc
        else:
            values = [v for k, v in eml.headers.items() if k.lower() == "bcc"]
            addresses = parse_addresses(values)
        return [a.email for a in addresses if a.email]

    return [v for k, v in eml.headers.items() if k.lower() == key and v]


def find_eml_files(directory: Path) -> list[Path]:
    return sorted(p for p in directory.rglob("*.eml") if p.is_file())


def count_header_values(directory: Path, header: str) -> Counter[str]:
    """Count header values across every EML file under a directory.

    Files that cannot be read or parsed are reported and skipped.
    """
    counter: Counter[str] = Counter()
    for path in find_eml_files(directory):
        try:
            eml = parse_eml(path.read_bytes())
            values = extract_header_values(eml, header)
        except (OSError, ValueError) as e:
            logger.warning("eml_unreadable", path=str(path), error=str(e))
            print(f"Error reading {path}: {e}", file=sys.stderr)
            continue
        counter.update(values)
    logger.info("header_values_counted", header=header, distinct=len(counter))
    return counter


def format_histogram(counter: Counter[str], max_rows: int = DEFAULT_ROWS) -> str:
    """Render the most common values as a markdown table."""
    total = sum(counter.values())
    lines = [
        "| Email Address                          | Count |   %   |",
        "|----------------------------------------|-------|-------|",
    ]
    for value, count in counter.most_common(max_rows):
        percent = f"{count / total * 100:.2f}"
        lines.append(f"| {value:<38} | {count:>5} | {percent:>5}% |")
    return "\n".join(lines)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Count how often each value of a header appears in EML files",
    )
    parser.add_argument(
        "-d",
        "--directory",
        type=Path,
        required=True,
        help="Directory containing .eml files",
    )
    parser.add_argument(
        "-H",
        "--header",
        required=True,
        help="Header to extract values from (e.g. From, To, Cc, Bcc)",
    )
    parser.add_argument(
        "-n",
        "--num-rows",
        type=int,
        default=DEFAULT_ROWS,
        help=f"Number of rows to display (default: {DEFAULT_ROWS})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress")
    parser.add_argument("-D", "--debug", action="store_true", help="Log everything")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for the frequency report."""
    args = parse_args(argv)
    configure_logging(verbose=args.verbose, debug=args.debug)

    if not args.directory.is_dir():
        print(f"Directory does not exist: {args.directory}", file=sys.stderr)
        sys.exit(1)

    counter = count_header_values(args.directory, args.header)
    print(format_histogram(counter, args.num_rows))


if __name__ == "__main__":
    main()

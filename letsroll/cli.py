"""Command line entry point.

Usage:
    letsroll "3D6 reroll(1) sum"
    letsroll -f request.txt -s results.txt
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from letsroll.config import settings
from letsroll.errors import DiceError
from letsroll.generators import DiceGenerator
from letsroll.session import MultiSession, roll

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="letsroll", description="Roll dice from a textual request."
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("dice", nargs="?", help='Dice request, e.g. "5D8 4D2 +1000"')
    source.add_argument("-f", "--file", type=Path, help="Read the dice request from a file.")
    parser.add_argument("-s", "--save", type=Path, help="Save the results in a file.")
    parser.add_argument("--seed", type=int, default=settings.seed, help="Seed the dice.")
    parser.add_argument(
        "--auto-total",
        action="store_true",
        default=settings.auto_total,
        help="Total numeric dice when the request names no action.",
    )
    return parser


def write_results(session: MultiSession, path: Path) -> None:
    """Write the rendered report of a session to path, UTF-8 encoded."""
    path.write_text(str(session) + "\n", encoding="utf-8")


def run(args: argparse.Namespace) -> MultiSession:
    request = args.file.read_text(encoding="utf-8") if args.file else args.dice
    session = roll(request.strip(), generator=DiceGenerator(args.seed), auto_total=args.auto_total)
    print(f"Rolling...\n{session}")
    if args.save:
        write_results(session, args.save)
        print(f"Wrote results to file {args.save}")
    return session


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=settings.log_level.upper())
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except (DiceError, OSError) as exc:
        logger.debug("Request failed", exc_info=True)
        print(f"FAILURE : {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

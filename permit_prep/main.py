"""Permit Prep CLI entrypoint: ``python -m permit_prep.main``."""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from .observability.logging_setup import configure_logging
from .orchestration.workflow import MODES, run_workflow
from .util.console import console


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="permit-prep",
        description="Adaptive California DMV permit test practice.",
    )
    parser.add_argument("--user", default="default", help="learner id for saved history")
    parser.add_argument("--mode", choices=MODES, default="adaptive")
    parser.add_argument("--count", type=int, default=None, help="questions per quiz")
    parser.add_argument("--category", default=None, help="restrict adaptive quiz to a category")
    parser.add_argument(
        "--readiness",
        action="store_true",
        help="only print the readiness report",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    # Keep INFO events out of the interactive quiz unless asked for.
    configure_logging(default_level="WARNING")
    try:
        run_workflow(
            user_id=args.user,
            mode=args.mode,
            count=args.count,
            category=args.category,
            readiness_only=args.readiness,
        )
    except KeyboardInterrupt:
        console.print("\n[dim]Session cancelled.[/dim]")
        sys.exit(0)


if __name__ == "__main__":
    main()

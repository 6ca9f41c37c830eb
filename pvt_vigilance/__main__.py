from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Ensure the repository root (parent of this package) is on ``sys.path``.

    If this module is executed as a script (``python pvt_vigilance/__main__.py``),
    the package may not be discoverable by Python.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


if __package__:
    # python -m pvt_vigilance
    from .app import run
    from .config import PvtConfig, StimulusType
else:
    _ensure_repo_root_on_path()
    from pvt_vigilance.app import run
    from pvt_vigilance.config import PvtConfig, StimulusType


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pvt_vigilance", description="Run a Psychomotor Vigilance Test.")
    parser.add_argument("--duration", type=float, default=300.0, help="session length in seconds")
    parser.add_argument("--min-interval", type=float, default=2.0, help="shortest inter-stimulus interval (s)")
    parser.add_argument("--max-interval", type=float, default=10.0, help="longest inter-stimulus interval (s)")
    parser.add_argument("--countdown", type=float, default=3.0, help="countdown before the session (s)")
    parser.add_argument("--stimulus", choices=[s.value for s in StimulusType], default=StimulusType.CIRCLE.value)
    parser.add_argument("--practice", action="store_true", help="run a 30 s practice first")
    parser.add_argument("--no-sound", action="store_true")
    parser.add_argument("--no-haptic", action="store_true")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--db", type=Path, default=None, help="sqlite file to store the result in")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for running the test from the command line."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = PvtConfig(
            duration_s=args.duration,
            min_interval_s=args.min_interval,
            max_interval_s=args.max_interval,
            countdown_s=args.countdown,
            stimulus_type=StimulusType(args.stimulus),
            enable_sound=not args.no_sound,
            enable_haptic=not args.no_haptic,
            enable_practice=args.practice,
        )
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    return run(config=config, seed=args.seed, db_path=args.db)


if __name__ == "__main__":
    raise SystemExit(main())

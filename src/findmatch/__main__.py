from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .app import EXIT_CONFIG, run_auto, run_gui, run_headless
from .config import load_round_config
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="findmatch",
        description="Find the Match - click every copy of the reference item",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--gui", action="store_true", help="Force GUI mode (Arcade)")
    mode.add_argument("--headless", action="store_true", help="Force headless mode (console auto player)")
    parser.add_argument("--config", default=None, help="Path to a round config YAML (default: embedded)")
    parser.add_argument("--seed", default=None, help="Seed for reproducible rounds (int or any string)")
    parser.add_argument("--rounds", type=int, default=3, help="Rounds to play in headless mode")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    seed = args.seed
    if seed is not None and seed.lstrip("-").isdigit():
        seed = int(seed)

    try:
        config = load_round_config(args.config)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG

    if args.gui:
        return run_gui(config, seed=seed)
    if args.headless:
        return run_headless(config, seed=seed, rounds=args.rounds)
    return run_auto(config, seed=seed, rounds=args.rounds)


if __name__ == "__main__":
    sys.exit(main())

"""
run_simulation.py: Monte Carlo bankroll projection from the command line.

Prints the full result (percentile bands, profit and bust probabilities,
histograms) as JSON on stdout.  Progress logging goes to stderr.

Usage
-----
  python scripts/run_simulation.py --win-prob 0.55 --odds 1.95 --seed 42
  python scripts/run_simulation.py --stake flat --amount 25 --paths 5000
  python scripts/run_simulation.py --samples history.json --stake kelly --workers 4
  python scripts/run_simulation.py --scenarios --seed 7

``--samples`` reads a JSON list of ``[win_prob, decimal_odds]`` pairs.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure the project root (one level up from scripts/) is on sys.path so that
# `from smartedge.xxx import ...` resolves when the script is run directly.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from smartedge.core.errors import ConfigurationError  # noqa: E402
from smartedge.services.bankroll_sim import (  # noqa: E402
    SimulationConfig,
    StakeRule,
    WinProbSource,
    simulate_bankroll,
    simulate_scenarios,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Project bankroll outcomes for a staking rule with Monte Carlo paths."
    )
    parser.add_argument("--bankroll", type=float, default=1000.0, help="Starting bankroll")
    parser.add_argument("--paths", type=int, default=1000, help="Number of simulated paths")
    parser.add_argument("--bets", type=int, default=250, help="Bets per path")
    parser.add_argument(
        "--stake",
        choices=("flat", "percentage", "kelly"),
        default="kelly",
        help="Staking rule",
    )
    parser.add_argument(
        "--amount",
        type=float,
        default=10.0,
        help="Currency per bet (flat) or percent of bankroll (percentage)",
    )
    parser.add_argument("--kelly-multiplier", type=float, default=0.25)
    parser.add_argument("--max-fraction", type=float, default=0.05)
    parser.add_argument("--win-prob", type=float, default=0.55, help="Fixed win probability")
    parser.add_argument("--odds", type=float, default=1.95, help="Fixed decimal odds")
    parser.add_argument(
        "--samples",
        type=Path,
        help="JSON file of [win_prob, decimal_odds] pairs; overrides --win-prob/--odds",
    )
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument(
        "--scenarios",
        action="store_true",
        help="Also run bull and bear scenarios with win probabilities shifted by 5 points",
    )
    parser.add_argument("--workers", type=int, default=None, help="Worker threads")
    parser.add_argument("--bins", type=int, default=10, help="P/L histogram bins")
    parser.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact)")
    return parser


def _stake_rule(args: argparse.Namespace) -> StakeRule:
    if args.stake == "flat":
        return StakeRule.flat(args.amount)
    if args.stake == "percentage":
        return StakeRule.percentage(args.amount)
    return StakeRule.kelly(multiplier=args.kelly_multiplier, max_fraction=args.max_fraction)


def _source(args: argparse.Namespace) -> WinProbSource:
    if args.samples is None:
        return WinProbSource.fixed(args.win_prob, args.odds)
    try:
        return WinProbSource.from_samples(json.loads(args.samples.read_text()))
    except ConfigurationError:
        raise
    except (OSError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read samples from {args.samples}: {exc}") from exc


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)

    try:
        cfg = SimulationConfig(
            starting_bankroll=args.bankroll,
            paths=args.paths,
            bets_per_path=args.bets,
            stake_rule=_stake_rule(args),
            win_prob_source=_source(args),
            seed=args.seed,
            workers=args.workers,
            histogram_bins=args.bins,
        )
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    result = simulate_scenarios(cfg) if args.scenarios else simulate_bankroll(cfg)
    print(json.dumps(result.to_dict(), indent=args.indent or None))
    return 0


if __name__ == "__main__":
    sys.exit(main())

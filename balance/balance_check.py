"""
Balance Check CLI.

Quick pass/fail gate for CI: runs a short simulation and exits 0 when the
overall balance score clears the threshold with no critical issues, 1
otherwise.

Usage:
    python -m balance.balance_check                 # 50 generations, threshold 70
    python -m balance.balance_check --strict        # threshold 80
    python -m balance.balance_check --threshold 60 --generations 20 --seed 7
    python -m balance.balance_check --players 8 --days 30
"""

import argparse
import sys
from typing import Dict, Any

from balance.simulate import run_simulation
from sim.errors import SimulationError
from sim.runner import SimulationConfig


DEFAULT_THRESHOLD = 70
STRICT_THRESHOLD = 80
DEFAULT_GENERATIONS = 50
DEFAULT_PLAYERS = 20
DEFAULT_DAYS = 50


def quick_balance_check(
    generations: int = DEFAULT_GENERATIONS,
    seed: int = None,
    threshold: float = DEFAULT_THRESHOLD,
    players: int = DEFAULT_PLAYERS,
    days: int = DEFAULT_DAYS,
) -> Dict[str, Any]:
    """
    Run a quiet simulation and judge it.

    Returns:
        {"balanced", "score", "threshold", "critical", "issues"}
    """
    config = SimulationConfig(generations=generations, players=players, days=days, seed=seed)
    results = run_simulation(config, quiet=True)
    critical = results.critical_issues()

    return {
        "balanced": results.balance_score >= threshold and not critical,
        "score": results.balance_score,
        "threshold": threshold,
        "critical": len(critical),
        "issues": [f"[{i.severity}] {i.description}" for i in results.issues],
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pass/fail balance gate")
    parser.add_argument("--strict", action="store_true",
                        help=f"Require a score of {STRICT_THRESHOLD}")
    parser.add_argument("--threshold", type=float, default=None,
                        help=f"Minimum overall balance score (default {DEFAULT_THRESHOLD})")
    parser.add_argument("--generations", type=int, default=DEFAULT_GENERATIONS,
                        help="Generations to simulate")
    parser.add_argument("--players", type=int, default=DEFAULT_PLAYERS,
                        help="Players per generation")
    parser.add_argument("--days", type=int, default=DEFAULT_DAYS,
                        help="Days per generation")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.threshold is not None:
        threshold = args.threshold
    else:
        threshold = STRICT_THRESHOLD if args.strict else DEFAULT_THRESHOLD

    print("=" * 60)
    print("Balance Check")
    print("=" * 60)
    print(f"  Generations: {args.generations}  Players: {args.players}  Days: {args.days}")
    print(f"  Threshold: {threshold}  Seed: {args.seed}")

    try:
        report = quick_balance_check(
            generations=args.generations, seed=args.seed, threshold=threshold,
            players=args.players, days=args.days,
        )
    except SimulationError as e:
        print(f"Balance check failed to run: {e}")
        return 1

    print(f"\n  Balance score: {report['score']:.1f}")
    if report["issues"]:
        print("  Issues:")
        for issue in report["issues"]:
            print(f"    {issue}")

    if report["balanced"]:
        print("\nPASSED")
        return 0
    print("\nFAILED")
    return 1


if __name__ == "__main__":
    sys.exit(main())

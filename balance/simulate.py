"""
Balance Simulation CLI.

Run many generations and print balance statistics.

Usage:
    python -m balance.simulate                      # 100 generations
    python -m balance.simulate -g 1000 -s 42        # reproducible run
    python -m balance.simulate -g 100 -p 50 -v      # 50 players, verbose
    python -m balance.simulate --workers 4 --output results.json
"""

import argparse
import json
import sys
import time

from ai.logger import convert_numpy
from balance.analyzer import BalanceAccumulator, SimulationResults
from sim.errors import SimulationError
from sim.random_source import time_seed
from sim.runner import SimulationConfig, run_generations, run_parallel, make_logger


PROGRESS_EVERY = 10


def run_simulation(config: SimulationConfig, quiet: bool = False) -> SimulationResults:
    """
    Run config.generations generations and analyze them.

    Args:
        config: Simulation configuration (a base seed is fixed here when unset)
        quiet: Skip the banner, progress and report tables

    Returns:
        SimulationResults
    """
    config.validate()
    if config.seed is None:
        config.seed = time_seed()

    if not quiet:
        print("=" * 60)
        print("Balance Simulation")
        print("=" * 60)
        print(f"  Generations: {config.generations}")
        print(f"  Players per generation: {config.players}")
        print(f"  Days per generation: {config.days}")
        print(f"  Seed: {config.seed}")
        print(f"  Workers: {config.workers}")
        print()

    accumulator = BalanceAccumulator(config.to_dict())
    start_time = time.time()

    def on_result(summary):
        accumulator.add_generation_result(summary)
        done = accumulator.total_generations
        if not quiet and (done % PROGRESS_EVERY == 0 or done == config.generations):
            elapsed = time.time() - start_time
            speed = done / elapsed if elapsed > 0 else 0.0
            print(f"  Progress: {done}/{config.generations} generations ({elapsed:.1f}s, {speed:.1f}/s)")

    if config.workers > 1:
        run_parallel(config, on_result=on_result)
    else:
        run_generations(config, logger=make_logger(config), on_result=on_result)

    results = accumulator.generate_results()
    if not quiet:
        print_results(results)
    return results


def print_results(results: SimulationResults):
    print("\n" + "=" * 60)
    print("Simulation Results")
    print("=" * 60)

    print("\nBALANCE SCORES (0-100, higher is better):")
    print(f"  Overall:  {results.balance_score:.1f}")
    print(f"  Race:     {results.race_balance_score}")
    print(f"  Class:    {results.class_balance_score}")
    print(f"  Skill:    {results.skill_balance_score}")

    print("\nRACE STATISTICS:")
    print(f"  {'Race':<12} {'Played':>6} {'Wins':>5} {'Win%':>6} {'Share%':>7} {'Avg Score':>10}")
    print("  " + "-" * 50)
    for race, stats in results.race_stats.items():
        print(f"  {race:<12} {stats.games_played:>6} {stats.wins:>5} {stats.win_rate * 100:>5.1f}% "
              f"{stats.win_share * 100:>6.1f}% {stats.average_score:>10.0f}")

    print("\nCLASS STATISTICS:")
    print(f"  {'Class':<16} {'Wins':>5} {'Share%':>7} {'Captain Survival':>17}")
    print("  " + "-" * 48)
    for cls, stats in results.class_stats.items():
        survival = stats.extra["captain_survival_rate"] * 100
        print(f"  {cls:<16} {stats.wins:>5} {stats.win_share * 100:>6.1f}% {survival:>16.1f}%")

    print("\nSKILL STATISTICS:")
    print(f"  {'Skill':<16} {'Wins':>5} {'Share%':>7} {'Effectiveness':>14}")
    print("  " + "-" * 45)
    for skill, stats in results.skill_stats.items():
        print(f"  {skill:<16} {stats.wins:>5} {stats.win_share * 100:>6.1f}% "
              f"{stats.extra['skill_effectiveness']:>14.2f}")

    combat = results.combat_stats
    print("\nCOMBAT STATISTICS:")
    print(f"  Total combats:     {combat['total_combats']}")
    print(f"  Attacker win rate: {combat['attacker_win_rate'] * 100:.1f}%")
    print(f"  Defender win rate: {combat['defender_win_rate'] * 100:.1f}%")
    print(f"  Draw rate:         {combat['draw_rate'] * 100:.1f}%")
    print(f"  Avg casualties:    {combat['average_casualties']:.1f}")
    print(f"  Critical hits:     {combat['critical_hit_rate'] * 100:.1f}%")
    print(f"  Critical misses:   {combat['critical_miss_rate'] * 100:.1f}%")

    print("\nGAME STATISTICS:")
    print(f"  Average game length:      {results.average_game_length:.1f} days")
    print(f"  Average winner score:     {results.average_winner_score:.0f}")
    print(f"  Average winner territory: {results.average_territory_per_winner:.1f} plots")
    print(f"  Average players at end:   {results.average_players_remaining:.1f}")

    if results.issues:
        print("\nBALANCE ISSUES DETECTED:")
        for issue in results.issues:
            print(f"  [{issue.severity.upper()}] {issue.description}")
            print(f"     Suggestion: {issue.suggestion}")
    else:
        print("\nNo significant balance issues detected!")

    print("\nAGENT TYPE WINS:")
    for agent_type, wins in results.wins_by_agent_type.items():
        share = wins / results.total_generations * 100 if results.total_generations else 0.0
        print(f"  {agent_type:<12} {wins:>4} wins ({share:.1f}%)")
    print()


def write_results(results: SimulationResults, path: str):
    with open(path, "w") as f:
        json.dump(convert_numpy(results.to_dict()), f, indent=2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a strategy balance simulation")
    parser.add_argument("-g", "--generations", type=int, default=100,
                        help="Number of generations to simulate")
    parser.add_argument("-p", "--players", type=int, default=20,
                        help="Players per generation")
    parser.add_argument("-d", "--days", type=int, default=50,
                        help="Days per generation")
    parser.add_argument("-s", "--seed", type=int, default=None,
                        help="Random seed for reproducibility")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Show per-generation output")
    parser.add_argument("--workers", type=int, default=1,
                        help="Worker processes")
    parser.add_argument("--log-dir", type=str, default=None,
                        help="Write JSONL combat logs to this directory")
    parser.add_argument("--output", type=str, default=None,
                        help="Write results as JSON to this file")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = SimulationConfig(
        generations=args.generations,
        players=args.players,
        days=args.days,
        seed=args.seed,
        verbose=args.verbose,
        workers=args.workers,
        log_dir=args.log_dir,
        log_enabled=args.log_dir is not None,
    )

    try:
        results = run_simulation(config)
    except SimulationError as e:
        print(f"Simulation failed: {e}")
        return 1

    if args.output:
        write_results(results, args.output)
        print(f"Results written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

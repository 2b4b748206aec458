"""
Headless Generation Runner.

Run whole generations without UI for balance evaluation. Every generation
gets its own seed derived from the run's base seed, so sequential, parallel
and repeated runs all see the same games.
"""

import multiprocessing
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Callable

import numpy as np

from sim.errors import ConfigurationError, SimulationError
from sim.generation import GenerationEngine
from sim.random_source import SeededRandom, validate_seed, time_seed
from sim.rules import AGENT_TYPES, DEFAULT_AGENT_DISTRIBUTION, GENERATION_LENGTH, MAP_SIZE, INITIAL_FORSAKEN_COVERAGE
from sim.state import GenerationSummary
from ai.logger import SimulationLogger


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class SimulationConfig:
    generations: int = 100
    players: int = 20
    days: int = GENERATION_LENGTH
    seed: Optional[int] = None
    verbose: bool = False
    agent_distribution: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_AGENT_DISTRIBUTION))
    map_size: int = MAP_SIZE
    forsaken_coverage: float = INITIAL_FORSAKEN_COVERAGE
    workers: int = 1
    log_dir: Optional[str] = None
    log_enabled: bool = False

    def validate(self) -> "SimulationConfig":
        """Raise ConfigurationError on the first bad field; returns self."""
        if self.generations < 1:
            raise ConfigurationError(f"generations must be >= 1, got {self.generations}")
        if self.players < 1:
            raise ConfigurationError(f"players must be >= 1, got {self.players}")
        if self.days < 1:
            raise ConfigurationError(f"days must be >= 1, got {self.days}")
        if self.seed is not None:
            validate_seed(self.seed)
        if self.map_size < 3:
            raise ConfigurationError(f"map_size must be >= 3, got {self.map_size}")
        if not 0 <= self.forsaken_coverage <= 1:
            raise ConfigurationError(f"forsaken_coverage must be in [0, 1], got {self.forsaken_coverage}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")

        if not self.agent_distribution:
            raise ConfigurationError("agent_distribution is empty")
        for agent_type, weight in self.agent_distribution.items():
            if agent_type not in AGENT_TYPES:
                raise ConfigurationError(f"Unknown agent type in distribution: {agent_type!r}")
            if weight < 0:
                raise ConfigurationError(f"Negative weight for {agent_type!r}: {weight}")
        if sum(self.agent_distribution.values()) <= 0:
            raise ConfigurationError("agent_distribution weights sum to zero")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generations": self.generations,
            "players": self.players,
            "days": self.days,
            "seed": self.seed,
            "verbose": self.verbose,
            "agent_distribution": dict(self.agent_distribution),
            "map_size": self.map_size,
            "forsaken_coverage": self.forsaken_coverage,
            "workers": self.workers,
            "log_dir": self.log_dir,
            "log_enabled": self.log_enabled,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "SimulationConfig":
        defaults = cls()
        return cls(
            generations=d.get("generations", defaults.generations),
            players=d.get("players", defaults.players),
            days=d.get("days", defaults.days),
            seed=d.get("seed"),
            verbose=d.get("verbose", False),
            agent_distribution=dict(d.get("agent_distribution") or defaults.agent_distribution),
            map_size=d.get("map_size", defaults.map_size),
            forsaken_coverage=d.get("forsaken_coverage", defaults.forsaken_coverage),
            workers=d.get("workers", 1),
            log_dir=d.get("log_dir"),
            log_enabled=d.get("log_enabled", False),
        )


DEFAULT_CONFIG = SimulationConfig()


def generation_seed(base_seed: int, generation_id: int) -> int:
    """Seed of one generation; depends only on the base seed and the id."""
    return SeededRandom(base_seed).fork(f"generation-{generation_id}").seed


def make_logger(config: SimulationConfig) -> Optional[SimulationLogger]:
    if not config.log_enabled:
        return None
    return SimulationLogger(log_dir=config.log_dir, enabled=True)


# =============================================================================
# RUNNING
# =============================================================================

def run_generation(
    config: SimulationConfig,
    generation_id: int = 1,
    seed: int = None,
    logger: SimulationLogger = None,
) -> GenerationSummary:
    """
    Run a single generation.

    Args:
        config: Simulation configuration
        generation_id: Id recorded on the summary
        seed: Seed for this generation; config.seed (or the clock) when omitted
        logger: Optional JSONL logger

    Returns:
        GenerationSummary
    """
    if seed is None:
        seed = config.seed if config.seed is not None else time_seed()
    engine = GenerationEngine(config, rng=SeededRandom(seed), logger=logger)
    return engine.run(generation_id)


def run_generations(
    config: SimulationConfig,
    logger: SimulationLogger = None,
    on_result: Callable[[GenerationSummary], None] = None,
) -> List[GenerationSummary]:
    """
    Run config.generations generations one after another.

    Generation ids start at 1. on_result is called after each generation,
    in order, so callers can accumulate and report progress.
    """
    config.validate()
    base_seed = config.seed if config.seed is not None else time_seed()

    summaries = []
    for generation_id in range(1, config.generations + 1):
        summary = run_generation(config, generation_id, generation_seed(base_seed, generation_id), logger)
        summaries.append(summary)
        if on_result is not None:
            on_result(summary)
    return summaries


def _worker_run_generation(args) -> Dict:
    """Top-level so it pickles; returns a plain dict for the parent to rebuild."""
    config_dict, generation_id, seed = args
    config = SimulationConfig.from_dict(config_dict)
    config.verbose = False
    return run_generation(config, generation_id, seed).to_dict()


def run_parallel(
    config: SimulationConfig,
    on_result: Callable[[GenerationSummary], None] = None,
) -> List[GenerationSummary]:
    """
    Run generations across config.workers processes.

    Results come back in generation order and are handed to on_result from
    the parent process only. Workers do not log.
    """
    config.validate()
    if config.workers <= 1:
        return run_generations(config, logger=make_logger(config), on_result=on_result)

    base_seed = config.seed if config.seed is not None else time_seed()
    work_items = [
        (config.to_dict(), generation_id, generation_seed(base_seed, generation_id))
        for generation_id in range(1, config.generations + 1)
    ]

    with multiprocessing.Pool(processes=config.workers) as pool:
        raw = pool.map(_worker_run_generation, work_items)

    summaries = []
    for data in raw:
        summary = GenerationSummary.from_dict(data)
        summaries.append(summary)
        if on_result is not None:
            on_result(summary)
    return summaries


def run_seed_sweep(
    seeds: List[int],
    config: SimulationConfig = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Repeat the configured run once per base seed.

    A seed whose run fails is recorded with its error and the sweep moves
    on to the next seed.

    Returns:
        {"results": {seed: [GenerationSummary, ...]},
         "failures": [{"seed": seed, "error": str}, ...]}
    """
    config = config or SimulationConfig()
    results: Dict[int, List[GenerationSummary]] = {}
    failures: List[Dict[str, Any]] = []

    for seed in seeds:
        run_config = SimulationConfig.from_dict({**config.to_dict(), "seed": seed})
        try:
            results[seed] = run_parallel(run_config)
        except SimulationError as e:
            failures.append({"seed": seed, "error": f"{type(e).__name__}: {e}"})
            if verbose:
                print(f"  Seed {seed} failed: {e}")
            continue
        if verbose:
            print(f"  Seed {seed}: {len(results[seed])} generations")

    return {"results": results, "failures": failures}


def summarize_runs(summaries: List[GenerationSummary]) -> Dict:
    """Quick aggregate over summaries for the runner's own report."""
    if not summaries:
        return {"n_generations": 0}

    lengths = [s.final_day for s in summaries]
    survivors = [len(s.survivors) for s in summaries]
    combats = [len(s.combats) for s in summaries]
    winner_scores = [s.winner.score for s in summaries if s.winner is not None]

    return {
        "n_generations": len(summaries),
        "avg_length": np.mean(lengths),
        "std_length": np.std(lengths),
        "avg_survivors": np.mean(survivors),
        "avg_combats": np.mean(combats),
        "avg_winner_score": np.mean(winner_scores) if winner_scores else 0.0,
        "no_winner": sum(1 for s in summaries if s.winner_id is None),
    }


def main():
    """Run a short seeded batch and print aggregate statistics."""
    print("=" * 60)
    print("Generation Runner")
    print("=" * 60)

    config = SimulationConfig(generations=10, seed=42)

    print(f"\nRunning {config.generations} generations "
          f"({config.players} players, {config.days} days, seed={config.seed})...")
    start_time = time.time()

    summaries = run_generations(config, logger=make_logger(config))
    results = summarize_runs(summaries)

    elapsed = time.time() - start_time

    print(f"\nResults ({elapsed:.2f}s):")
    print(f"  Average Length: {results['avg_length']:.1f} ± {results['std_length']:.1f} days")
    print(f"  Average Survivors: {results['avg_survivors']:.1f}")
    print(f"  Average Combats: {results['avg_combats']:.1f}")
    print(f"  Average Winner Score: {results['avg_winner_score']:.0f}")
    print(f"  Generations Without Winner: {results['no_winner']}")

    print("\n" + "=" * 60)
    print("Done!")


if __name__ == "__main__":
    main()

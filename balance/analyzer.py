"""
Balance Analyzer.

Accumulates finished generations and turns them into per-race, per-class and
per-skill statistics, combat statistics, balance scores and a list of
balance issues. Accumulators only hold counters and sample lists, so two of
them (for example from separate worker batches) merge by addition.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

import numpy as np

from sim.rules import RACES, CAPTAIN_CLASSES, ALL_SKILLS, AGENT_TYPES
from sim.state import GenerationSummary


# Minimum plays before an entity's win share is judged
MIN_GAMES_FOR_RELIABILITY = 50

# Relative deviation of win share from the fair share
CRITICAL_DEVIATION = 0.75
HIGH_DEVIATION = 0.5
MEDIUM_DEVIATION = 0.25

MIN_COMBATS_FOR_CHECK = 100
ATTACKER_WIN_RATE_RANGE = (0.35, 0.60)
CRITICAL_HIT_RATE_RANGE = (0.03, 0.07)

SEVERITIES = ["low", "medium", "high", "critical"]


def average(values) -> float:
    return float(np.mean(values)) if len(values) > 0 else 0.0


def rate(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def calculate_balance_score(win_shares: List[float]) -> int:
    """
    0-100 score from the spread of win shares; 100 when all are equal.

    Variance is normalized by (1/N)^2, so a single entity winning every
    generation scores 0.
    """
    if len(win_shares) == 0:
        return 100
    expected = 1.0 / len(win_shares)
    variance = float(np.var(win_shares))
    return int(round(max(0.0, 100 * (1 - variance / (expected * expected)))))


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class EntityStats:
    """Win and score figures for one race, class or skill."""
    name: str
    games_played: int = 0
    wins: int = 0
    win_rate: float = 0.0
    win_share: float = 0.0
    average_score: float = 0.0
    extra: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        d = {
            "name": self.name,
            "games_played": self.games_played,
            "wins": self.wins,
            "win_rate": self.win_rate,
            "win_share": self.win_share,
            "average_score": self.average_score,
        }
        d.update(self.extra)
        return d


@dataclass
class BalanceIssue:
    severity: str
    category: str
    description: str
    data: Dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def to_dict(self) -> Dict:
        return {
            "severity": self.severity,
            "category": self.category,
            "description": self.description,
            "data": dict(self.data),
            "suggestion": self.suggestion,
        }


@dataclass
class SimulationResults:
    config: Dict[str, Any]
    total_generations: int
    generations_with_winner: int

    wins_by_race: Dict[str, int]
    wins_by_class: Dict[str, int]
    wins_by_skill: Dict[str, int]
    wins_by_agent_type: Dict[str, int]

    average_game_length: float
    average_winner_score: float
    average_players_remaining: float
    average_territory_per_winner: float

    balance_score: float
    race_balance_score: int
    class_balance_score: int
    skill_balance_score: int

    race_stats: Dict[str, EntityStats]
    class_stats: Dict[str, EntityStats]
    skill_stats: Dict[str, EntityStats]
    combat_stats: Dict[str, Any]
    economy_stats: Dict[str, Any]

    issues: List[BalanceIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def critical_issues(self) -> List[BalanceIssue]:
        return [i for i in self.issues if i.severity == "critical"]

    def to_dict(self) -> Dict:
        return {
            "config": dict(self.config),
            "total_generations": self.total_generations,
            "generations_with_winner": self.generations_with_winner,
            "wins_by_race": dict(self.wins_by_race),
            "wins_by_class": dict(self.wins_by_class),
            "wins_by_skill": dict(self.wins_by_skill),
            "wins_by_agent_type": dict(self.wins_by_agent_type),
            "average_game_length": self.average_game_length,
            "average_winner_score": self.average_winner_score,
            "average_players_remaining": self.average_players_remaining,
            "average_territory_per_winner": self.average_territory_per_winner,
            "balance_score": self.balance_score,
            "race_balance_score": self.race_balance_score,
            "class_balance_score": self.class_balance_score,
            "skill_balance_score": self.skill_balance_score,
            "race_stats": {k: v.to_dict() for k, v in self.race_stats.items()},
            "class_stats": {k: v.to_dict() for k, v in self.class_stats.items()},
            "skill_stats": {k: v.to_dict() for k, v in self.skill_stats.items()},
            "combat_stats": dict(self.combat_stats),
            "economy_stats": dict(self.economy_stats),
            "issues": [i.to_dict() for i in self.issues],
            "warnings": list(self.warnings),
        }


# =============================================================================
# ACCUMULATOR
# =============================================================================

def _counter(keys) -> Dict[str, int]:
    return {k: 0 for k in keys}


def _samples(keys) -> Dict[str, List[float]]:
    return {k: [] for k in keys}


class BalanceAccumulator:
    """
    Single-writer tally of generation results.

    Args:
        config: Plain dict of the run configuration, echoed in the results
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = dict(config or {})
        self.total_generations = 0
        self.generations_with_winner = 0

        self.wins = {
            "race": _counter(RACES),
            "class": _counter(CAPTAIN_CLASSES),
            "skill": _counter(ALL_SKILLS),
            "agent_type": _counter(AGENT_TYPES),
        }
        self.plays = {
            "race": _counter(RACES),
            "class": _counter(CAPTAIN_CLASSES),
            "skill": _counter(ALL_SKILLS),
        }
        self.scores = {
            "race": _samples(RACES),
            "class": _samples(CAPTAIN_CLASSES),
            "skill": _samples(ALL_SKILLS),
        }

        # Per-race player samples
        self.survival_days = _samples(RACES)
        self.territories_held = _samples(RACES)
        self.combats_won = _samples(RACES)
        self.combats_lost = _samples(RACES)

        # Per-class captain figures
        self.captains_total = _counter(CAPTAIN_CLASSES)
        self.captains_survived = _counter(CAPTAIN_CLASSES)
        self.death_save_rolls = _samples(CAPTAIN_CLASSES)

        # Combat
        self.roll_distribution = {face: 0 for face in range(1, 21)}
        self.combat_results = {"attacker_victory": 0, "defender_victory": 0, "draw": 0}
        self.total_combats = 0
        self.total_casualties = 0

        # Economy at end of game
        self.building_distribution: Dict[str, int] = {}
        self.unit_distribution: Dict[str, int] = {}
        self.end_resources: Dict[str, List[float]] = {}

        # Game level samples
        self.game_lengths: List[int] = []
        self.winner_scores: List[int] = []
        self.winner_territories: List[int] = []
        self.players_remaining: List[int] = []

    # =========================================================================
    # INPUT
    # =========================================================================

    def add_generation_result(self, summary: GenerationSummary):
        self.total_generations += 1
        self.game_lengths.append(summary.final_day)
        self.players_remaining.append(len(summary.survivors))

        classes_by_player = {}
        for player in summary.players:
            classes_by_player[player.id] = player.captain_class
            self.plays["race"][player.race] += 1
            self.plays["class"][player.captain_class] += 1
            self.plays["skill"][player.captain_skill] += 1
            self.scores["race"][player.race].append(player.score)
            self.scores["class"][player.captain_class].append(player.score)
            self.scores["skill"][player.captain_skill].append(player.score)

            survived = summary.final_day if not player.is_eliminated else (player.eliminated_day or 0)
            self.survival_days[player.race].append(survived)
            self.territories_held[player.race].append(player.territories_held)
            self.combats_won[player.race].append(player.battles_won)
            self.combats_lost[player.race].append(player.battles_lost)

            self.captains_total[player.captain_class] += 1
            if player.captain_alive:
                self.captains_survived[player.captain_class] += 1

            for building_type, count in player.building_counts.items():
                self.building_distribution[building_type] = self.building_distribution.get(building_type, 0) + count
            for unit_type, count in player.unit_counts.items():
                self.unit_distribution[unit_type] = self.unit_distribution.get(unit_type, 0) + count
            for resource, amount in player.resources.items():
                self.end_resources.setdefault(resource, []).append(amount)

        winner = summary.winner
        if winner is not None:
            self.generations_with_winner += 1
            self.wins["race"][winner.race] += 1
            self.wins["class"][winner.captain_class] += 1
            self.wins["skill"][winner.captain_skill] += 1
            self.wins["agent_type"][winner.agent_type] += 1
            self.winner_scores.append(winner.score)
            self.winner_territories.append(winner.territories_held)

        for combat in summary.combats:
            self.total_combats += 1
            self.combat_results[combat.result] += 1
            self.total_casualties += combat.attacker_casualties + combat.defender_casualties
            for face in combat.rolls:
                self.roll_distribution[face] += 1
            for player_id, save in ((combat.attacker_id, combat.attacker_death_save),
                                    (combat.defender_id, combat.defender_death_save)):
                if save is not None and player_id in classes_by_player:
                    self.death_save_rolls[classes_by_player[player_id]].append(save.roll)

    def merge(self, other: "BalanceAccumulator") -> "BalanceAccumulator":
        """Fold another accumulator into this one; returns self."""
        self.total_generations += other.total_generations
        self.generations_with_winner += other.generations_with_winner

        for table, other_table in ((self.wins, other.wins), (self.plays, other.plays)):
            for category, counts in other_table.items():
                for key, value in counts.items():
                    table[category][key] = table[category].get(key, 0) + value
        for category, samples in other.scores.items():
            for key, values in samples.items():
                self.scores[category].setdefault(key, []).extend(values)

        for mine, theirs in (
            (self.survival_days, other.survival_days),
            (self.territories_held, other.territories_held),
            (self.combats_won, other.combats_won),
            (self.combats_lost, other.combats_lost),
            (self.death_save_rolls, other.death_save_rolls),
            (self.end_resources, other.end_resources),
        ):
            for key, values in theirs.items():
                mine.setdefault(key, []).extend(values)

        for mine, theirs in (
            (self.captains_total, other.captains_total),
            (self.captains_survived, other.captains_survived),
            (self.roll_distribution, other.roll_distribution),
            (self.combat_results, other.combat_results),
            (self.building_distribution, other.building_distribution),
            (self.unit_distribution, other.unit_distribution),
        ):
            for key, value in theirs.items():
                mine[key] = mine.get(key, 0) + value

        self.total_combats += other.total_combats
        self.total_casualties += other.total_casualties
        self.game_lengths.extend(other.game_lengths)
        self.winner_scores.extend(other.winner_scores)
        self.winner_territories.extend(other.winner_territories)
        self.players_remaining.extend(other.players_remaining)
        return self

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def _entity_stats(self, category: str, name: str) -> EntityStats:
        plays = self.plays[category].get(name, 0)
        wins = self.wins[category].get(name, 0)
        return EntityStats(
            name=name,
            games_played=plays,
            wins=wins,
            win_rate=rate(wins, plays),
            win_share=rate(wins, self.generations_with_winner),
            average_score=average(self.scores[category].get(name, [])),
        )

    def race_stats(self) -> Dict[str, EntityStats]:
        stats = {}
        for race in RACES:
            entry = self._entity_stats("race", race)
            entry.extra = {
                "average_territories_held": average(self.territories_held[race]),
                "average_survival_days": average(self.survival_days[race]),
                "average_combats_won": average(self.combats_won[race]),
                "average_combats_lost": average(self.combats_lost[race]),
            }
            stats[race] = entry
        return stats

    def class_stats(self) -> Dict[str, EntityStats]:
        stats = {}
        for cls in CAPTAIN_CLASSES:
            entry = self._entity_stats("class", cls)
            entry.extra = {
                "captain_survival_rate": rate(self.captains_survived[cls], self.captains_total[cls]),
                "average_death_save_roll": average(self.death_save_rolls[cls]),
                "death_saves": len(self.death_save_rolls[cls]),
            }
            stats[cls] = entry
        return stats

    def skill_stats(self) -> Dict[str, EntityStats]:
        fair_share = 1.0 / len(ALL_SKILLS)
        stats = {}
        for skill in ALL_SKILLS:
            entry = self._entity_stats("skill", skill)
            # 1.0 means the skill wins exactly its fair share
            entry.extra = {"skill_effectiveness": entry.win_share / fair_share}
            stats[skill] = entry
        return stats

    def combat_stats(self) -> Dict[str, Any]:
        total_rolls = sum(self.roll_distribution.values())
        return {
            "total_combats": self.total_combats,
            "attacker_win_rate": rate(self.combat_results["attacker_victory"], self.total_combats),
            "defender_win_rate": rate(self.combat_results["defender_victory"], self.total_combats),
            "draw_rate": rate(self.combat_results["draw"], self.total_combats),
            "average_casualties": rate(self.total_casualties, self.total_combats),
            "critical_hit_rate": rate(self.roll_distribution[20], total_rolls),
            "critical_miss_rate": rate(self.roll_distribution[1], total_rolls),
            "roll_distribution": dict(self.roll_distribution),
        }

    def economy_stats(self) -> Dict[str, Any]:
        return {
            "building_distribution": dict(sorted(self.building_distribution.items())),
            "unit_distribution": dict(sorted(self.unit_distribution.items())),
            "average_end_resources": {k: average(v) for k, v in sorted(self.end_resources.items())},
        }

    def identify_issues(self, race_stats: Dict[str, EntityStats], class_stats: Dict[str, EntityStats],
                        skill_stats: Dict[str, EntityStats], combat_stats: Dict[str, Any]) -> List[BalanceIssue]:
        issues: List[BalanceIssue] = []

        for category, label, stats in (
            ("race", "race", race_stats),
            ("class", "captain class", class_stats),
            ("skill", "skill", skill_stats),
        ):
            expected = 1.0 / len(stats)
            for name, entry in stats.items():
                if entry.games_played < MIN_GAMES_FOR_RELIABILITY:
                    continue
                deviation = abs(entry.win_share - expected) / expected
                if deviation <= MEDIUM_DEVIATION:
                    continue
                high = entry.win_share > expected
                if deviation > CRITICAL_DEVIATION:
                    severity = "critical"
                elif deviation > HIGH_DEVIATION:
                    severity = "high"
                else:
                    severity = "medium"
                issues.append(BalanceIssue(
                    severity=severity,
                    category=category,
                    description=(
                        f"{name} {label} win share is {'above' if high else 'below'} fair "
                        f"({entry.win_share * 100:.1f}% vs expected {expected * 100:.1f}%)"
                    ),
                    data={category: name, "win_share": entry.win_share, "expected": expected,
                          "deviation": deviation},
                    suggestion=(
                        "Monitor in future simulations" if severity == "medium"
                        else f"Consider {'nerfing' if high else 'buffing'} {name}"
                    ),
                ))

        if combat_stats["total_combats"] > MIN_COMBATS_FOR_CHECK:
            low, high = ATTACKER_WIN_RATE_RANGE
            attacker_rate = combat_stats["attacker_win_rate"]
            if attacker_rate > high:
                issues.append(BalanceIssue(
                    "high", "combat",
                    f"Attackers win too often ({attacker_rate * 100:.1f}%)",
                    {"attacker_win_rate": attacker_rate},
                    "Increase defender bonuses or wall effectiveness",
                ))
            elif attacker_rate < low:
                issues.append(BalanceIssue(
                    "high", "combat",
                    f"Attackers win too rarely ({attacker_rate * 100:.1f}%)",
                    {"attacker_win_rate": attacker_rate},
                    "Reduce defender bonuses or improve siege effectiveness",
                ))

            low, high = CRITICAL_HIT_RATE_RANGE
            crit_rate = combat_stats["critical_hit_rate"]
            if crit_rate < low or crit_rate > high:
                issues.append(BalanceIssue(
                    "low", "combat",
                    f"Critical hit rate deviates from expected ({crit_rate * 100:.1f}% vs 5%)",
                    {"critical_hit_rate": crit_rate},
                    "Verify the d20 roll distribution",
                ))

        issues.sort(key=lambda i: -SEVERITIES.index(i.severity))
        return issues

    def generate_results(self) -> SimulationResults:
        race_stats = self.race_stats()
        class_stats = self.class_stats()
        skill_stats = self.skill_stats()
        combat_stats = self.combat_stats()

        race_score = calculate_balance_score([s.win_share for s in race_stats.values()])
        class_score = calculate_balance_score([s.win_share for s in class_stats.values()])
        skill_score = calculate_balance_score([s.win_share for s in skill_stats.values()])

        issues = self.identify_issues(race_stats, class_stats, skill_stats, combat_stats)

        return SimulationResults(
            config=self.config,
            total_generations=self.total_generations,
            generations_with_winner=self.generations_with_winner,
            wins_by_race=dict(self.wins["race"]),
            wins_by_class=dict(self.wins["class"]),
            wins_by_skill=dict(self.wins["skill"]),
            wins_by_agent_type=dict(self.wins["agent_type"]),
            average_game_length=average(self.game_lengths),
            average_winner_score=average(self.winner_scores),
            average_players_remaining=average(self.players_remaining),
            average_territory_per_winner=average(self.winner_territories),
            balance_score=(race_score + class_score + skill_score) / 3,
            race_balance_score=race_score,
            class_balance_score=class_score,
            skill_balance_score=skill_score,
            race_stats=race_stats,
            class_stats=class_stats,
            skill_stats=skill_stats,
            combat_stats=combat_stats,
            economy_stats=self.economy_stats(),
            issues=issues,
            warnings=[i.description for i in issues if i.severity in ("low", "medium")],
        )


def analyze(summaries: List[GenerationSummary], config: Optional[Dict[str, Any]] = None) -> SimulationResults:
    accumulator = BalanceAccumulator(config)
    for summary in summaries:
        accumulator.add_generation_result(summary)
    return accumulator.generate_results()

import pytest

from balance.analyzer import BalanceAccumulator, analyze, calculate_balance_score
from sim.rules import ALL_SKILLS, CAPTAIN_CLASSES, RACES
from sim.runner import run_generations
from sim.state import GenerationSummary, PlayerEndState


def _end_state(pid, race, captain_class="warlord", skill="vanguard", score=100, eliminated_day=None):
    return PlayerEndState(
        id=pid, race=race, captain_class=captain_class, captain_skill=skill, agent_type="balanced",
        score=score, territories_held=0 if eliminated_day else 3,
        is_eliminated=eliminated_day is not None, eliminated_day=eliminated_day,
        captain_alive=True, battles_won=0, battles_lost=0, total_kills=0, total_deaths=0,
        morale=100, is_premium=False, resources={"gold": 500},
    )


def _korrath_always_wins(generation_id):
    winner = _end_state("player-0", "korrath", score=300)
    loser = _end_state("player-1", "ironveld", "archmage", "destruction", score=50, eliminated_day=9)
    return GenerationSummary(
        generation_id=generation_id, seed=generation_id, final_day=20,
        players=(winner, loser), combats=(), winner_id="player-0",
    )


@pytest.mark.parametrize("shares,expected", [
    ([0.25, 0.25, 0.25, 0.25], 100),
    ([1.0, 0.0, 0.0, 0.0], 0),
    ([1.0, 0.0], 0),
    ([], 100),
])
def test_balance_score(shares, expected):
    assert calculate_balance_score(shares) == expected


def test_balance_score_partial_spread():
    score = calculate_balance_score([0.5, 0.5, 0.0, 0.0])
    assert 0 < score < 100


def test_empty_accumulator():
    results = BalanceAccumulator().generate_results()
    assert results.total_generations == 0
    assert results.combat_stats["attacker_win_rate"] == 0.0
    assert results.combat_stats["critical_hit_rate"] == 0.0
    assert results.average_game_length == 0.0
    assert results.issues == []
    assert set(results.race_stats) == set(RACES)
    assert set(results.class_stats) == set(CAPTAIN_CLASSES)
    assert set(results.skill_stats) == set(ALL_SKILLS)


def test_dominant_race_is_critical():
    results = analyze([_korrath_always_wins(i) for i in range(1, 61)])
    assert results.wins_by_race["korrath"] == 60
    assert results.race_stats["korrath"].win_share == 1.0
    assert results.race_stats["korrath"].win_rate == 1.0
    assert results.race_balance_score == 0

    critical = [i for i in results.critical_issues() if i.category == "race"]
    names = {i.data["race"] for i in critical}
    assert names == {"korrath", "ironveld"}
    korrath = next(i for i in critical if i.data["race"] == "korrath")
    assert "above" in korrath.description
    assert korrath.suggestion == "Consider nerfing korrath"


def test_small_samples_are_not_judged():
    results = analyze([_korrath_always_wins(i) for i in range(1, 11)])
    assert [i for i in results.issues if i.category == "race"] == []


def test_survival_days_use_elimination_day():
    results = analyze([_korrath_always_wins(1)])
    assert results.race_stats["korrath"].extra["average_survival_days"] == 20
    assert results.race_stats["ironveld"].extra["average_survival_days"] == 9
    assert results.average_players_remaining == 1


def test_merge_matches_single_accumulator(small_config):
    summaries = run_generations(small_config)
    summaries += [_korrath_always_wins(3), _korrath_always_wins(4)]

    combined = BalanceAccumulator()
    for summary in summaries:
        combined.add_generation_result(summary)

    left, right = BalanceAccumulator(), BalanceAccumulator()
    for summary in summaries[:2]:
        left.add_generation_result(summary)
    for summary in summaries[2:]:
        right.add_generation_result(summary)

    assert left.merge(right).generate_results().to_dict() == combined.generate_results().to_dict()


def test_combat_tallies_from_real_generations(small_config):
    summaries = run_generations(small_config)
    results = analyze(summaries)
    combats = sum(len(s.combats) for s in summaries)
    assert results.combat_stats["total_combats"] == combats
    if combats:
        total = (results.combat_stats["attacker_win_rate"] + results.combat_stats["defender_win_rate"]
                 + results.combat_stats["draw_rate"])
        assert total == pytest.approx(1.0)
        rolls = sum(results.combat_stats["roll_distribution"].values())
        assert rolls == sum(len(c.rolls) for s in summaries for c in s.combats)

import pytest

from ai.schema import ActionType, AgentAction, PHASE_ACTIVE, PHASE_ENDGAME, PHASE_PLANNING
from sim.errors import PlacementError
from sim.generation import (
    GenerationEngine, attack_ratio, defense_share, garrison_units, get_phase, is_eliminated, portion,
)
from sim.random_source import SeededRandom
from sim.runner import SimulationConfig, run_generation
from sim.state import Building, UnitStack, WorldCell

from tests.helpers import make_player


@pytest.fixture
def engine(small_config):
    engine = GenerationEngine(small_config, rng=SeededRandom(small_config.seed))
    engine.setup()
    return engine


def _free_neighbor(engine, player):
    for cell_id in sorted(player.territories):
        for neighbor in engine.world.adjacent(engine.world.get(cell_id)):
            if neighbor.owner_id is None:
                return neighbor
    raise AssertionError("no free neighbour")


# =============================================================================
# HELPERS
# =============================================================================

def test_phases():
    assert [get_phase(d, 12) for d in (1, 5, 6, 7, 8, 12)] == [
        PHASE_PLANNING, PHASE_PLANNING, PHASE_ACTIVE, PHASE_ACTIVE, PHASE_ENDGAME, PHASE_ENDGAME,
    ]


def test_is_eliminated():
    player = make_player(units={"warshield": 5})
    assert is_eliminated(player)
    player.territories.add(3)
    assert not is_eliminated(player)
    player.captain.alive = False
    assert not is_eliminated(player)
    player.armies[0].units.clear()
    assert is_eliminated(player)


def test_attack_ratio_and_defense_share():
    assert attack_ratio("aggressive", 1) == pytest.approx(0.68)
    assert attack_ratio("defensive", 100) == 0.25
    assert defense_share(1) == 0.6
    assert defense_share(4) == 0.5
    assert defense_share(400) == 0.15


def test_garrison_grows_with_buildings():
    player = make_player(race="korrath")
    cell = WorldCell(id=0, x=0, y=0, zone="outer", terrain="plains", owner_id=player.id)
    bare = garrison_units(player, cell)[0]
    cell.buildings.append(Building("wall", 0, completed=True))
    walled = garrison_units(player, cell)[0]
    assert bare.unit_type == walled.unit_type == "warshield"
    assert walled.quantity > bare.quantity
    assert walled.current_hp == walled.max_hp


def test_portion_scales_hit_points():
    stacks = [UnitStack("warshield", 10, 80), UnitStack("rageborn", 1, 8)]
    half = portion(stacks, 0.5)
    assert len(half) == 1
    assert (half[0].quantity, half[0].current_hp) == (5, 40)


# =============================================================================
# SETUP
# =============================================================================

def test_setup_seats_every_player(engine, small_config):
    assert engine.order == [f"player-{i}" for i in range(small_config.players)]
    owners = {}
    for player in engine.players.values():
        assert len(player.territories) >= 2
        assert player.main_army.total_units == 10
        assert player.main_army.cell_id in player.territories
        for cell_id in player.territories:
            assert engine.world.get(cell_id).owner_id == player.id
            assert cell_id not in owners
            owners[cell_id] = player.id
    joined = [e for e in engine.events if e.type == "player_joined"]
    assert len(joined) == small_config.players


def test_placement_failure_propagates():
    config = SimulationConfig(generations=1, players=4, days=5, seed=3, map_size=20)
    engine = GenerationEngine(config)
    with pytest.raises(PlacementError):
        engine.run(1)
    assert engine.players == {}
    assert [e.type for e in engine.events] == ["placement_failed"]
    assert engine.events[0].data["player_index"] == 0


# =============================================================================
# ACTIONS
# =============================================================================

def test_build_starts_construction(engine):
    player = engine.players["player-0"]
    engine.day = 2
    cell_id = min(player.territories)
    gold = player.resources["gold"]
    assert engine.apply_action(player, AgentAction(ActionType.BUILD, 1, cell_id=cell_id, building_type="farm"))
    building = engine.world.get(cell_id).buildings[-1]
    assert building.type == "farm" and not building.completed
    assert building.completion_day > engine.day
    assert player.resources["gold"] < gold


def test_build_rejected_on_foreign_cell(engine):
    player = engine.players["player-0"]
    other = min(engine.players["player-1"].territories)
    assert not engine.apply_action(player, AgentAction(ActionType.BUILD, 1, cell_id=other, building_type="farm"))


def test_expand_claims_adjacent_cell(engine):
    player = engine.players["player-0"]
    target = _free_neighbor(engine, player)
    target.is_forsaken = False
    target.forsaken_strength = 0
    assert engine.apply_action(player, AgentAction(ActionType.EXPAND, 1, cell_id=target.id))
    assert target.owner_id == player.id
    assert target.id in player.territories
    assert engine.events[-1].type == "territory_claimed"


def test_attacks_are_refused_while_planning(engine):
    player = engine.players["player-0"]
    target = _free_neighbor(engine, player)
    target.is_forsaken = True
    target.forsaken_strength = 100
    engine.phase = PHASE_PLANNING
    assert not engine.apply_action(player, AgentAction(ActionType.ATTACK, 1, cell_id=target.id))
    assert engine.combats == []


def test_attack_on_forsaken_cell_is_recorded(engine):
    player = engine.players["player-0"]
    player.main_army.add_units("warshield", 200)
    target = _free_neighbor(engine, player)
    target.is_forsaken = True
    target.forsaken_strength = 100
    engine.phase = PHASE_ACTIVE
    engine.day = 6

    assert engine.apply_action(player, AgentAction(ActionType.ATTACK, 1, cell_id=target.id))
    assert len(engine.combats) == 1
    record = engine.combats[0]
    assert record.defender_id is None
    assert player.battles_won + player.battles_lost == 1
    if record.result == "attacker_victory":
        assert target.owner_id == player.id
        assert not target.is_forsaken
    else:
        assert target.owner_id is None


def test_wait_is_accepted(engine):
    assert engine.apply_action(engine.players["player-0"], AgentAction.wait())


# =============================================================================
# FULL GENERATIONS
# =============================================================================

def test_same_seed_same_generation(small_config):
    first = run_generation(small_config, 1, seed=77)
    second = run_generation(small_config, 1, seed=77)
    assert first.to_dict() == second.to_dict()


def test_generation_invariants(small_config):
    summary = run_generation(small_config, 1, seed=2024)
    assert 1 <= summary.final_day <= small_config.days
    assert len(summary.eliminations_by_day) == summary.final_day
    assert list(summary.eliminations_by_day) == sorted(summary.eliminations_by_day)

    for player in summary.players:
        if player.is_eliminated:
            assert player.territories_held == 0
            assert player.eliminated_day is not None

    if summary.winner_id is not None:
        winner = summary.winner
        assert not winner.is_eliminated
        assert winner.score == max(p.score for p in summary.survivors)


def test_phase_changes_are_announced(small_config):
    summary = run_generation(small_config, 1, seed=5)
    changes = [e.data["phase"] for e in summary.events if e.type == "generation_phase_change"]
    if summary.final_day >= 8:
        assert changes == [PHASE_ACTIVE, PHASE_ENDGAME]
    for combat in summary.combats:
        assert combat.day > 5

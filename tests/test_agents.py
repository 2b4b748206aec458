import pytest

from ai.policies import decide, rank_actions
from ai.schema import ActionType, AgentAction, AgentType, PlayerView, PHASE_ACTIVE, PHASE_PLANNING
from sim.generation import GenerationEngine
from sim.random_source import SeededRandom


def _snapshot(engine):
    players = {pid: p.to_dict() for pid, p in engine.players.items()}
    cells = [c.to_dict() for c in engine.world.cells]
    return players, cells


def _view(engine, player, day=12, phase=PHASE_ACTIVE):
    cells = engine.world.cells_owned_by(player.id)
    return PlayerView(player, cells, day, phase, engine.world, engine.players)


@pytest.fixture
def engine(small_config):
    engine = GenerationEngine(small_config)
    engine.setup()
    return engine


@pytest.mark.parametrize("agent_type", list(AgentType))
def test_decide_does_not_touch_the_view(engine, agent_type):
    before = _snapshot(engine)
    rng = SeededRandom(99)
    for player in engine.players.values():
        for day in (2, 12, 40):
            action = decide(_view(engine, player, day=day), rng, agent_type)
            assert isinstance(action, AgentAction)
    assert _snapshot(engine) == before


@pytest.mark.parametrize("agent_type", list(AgentType))
def test_rank_actions_orders_by_priority(engine, agent_type):
    player = engine.players["player-0"]
    ranked = rank_actions(_view(engine, player), SeededRandom(5), agent_type)
    assert ranked
    priorities = [a.priority for a in ranked]
    assert priorities == sorted(priorities, reverse=True)


@pytest.mark.parametrize("agent_type", list(AgentType))
def test_no_attacks_while_planning(engine, agent_type):
    rng = SeededRandom(11)
    for player in engine.players.values():
        view = _view(engine, player, day=1, phase=PHASE_PLANNING)
        for _ in range(5):
            actions = rank_actions(view, rng, agent_type)
            assert all(a.type != ActionType.ATTACK for a in actions)


def test_decide_is_reproducible(engine):
    player = engine.players["player-1"]
    first = decide(_view(engine, player), SeededRandom(3), AgentType.RANDOM)
    second = decide(_view(engine, player), SeededRandom(3), AgentType.RANDOM)
    assert first == second


def test_decide_uses_the_players_agent_type(engine):
    player = engine.players["player-0"]
    player.agent_type = AgentType.BALANCED.value
    implicit = decide(_view(engine, player), SeededRandom(8))
    explicit = decide(_view(engine, player), SeededRandom(8), AgentType.BALANCED)
    assert implicit == explicit


def test_opening_build_targets_an_owned_cell(engine):
    player = engine.players["player-0"]
    view = _view(engine, player, day=1, phase=PHASE_PLANNING)
    action = decide(view, SeededRandom(1), AgentType.BALANCED)
    assert action.type == ActionType.BUILD
    assert action.building_type == "farm"
    assert action.cell_id in player.territories


def test_agent_action_dict_round_trip():
    action = AgentAction(ActionType.TRAIN, 5, unit_type="warshield", quantity=4)
    assert action.to_dict() == {"type": "train", "priority": 5, "unit_type": "warshield", "quantity": 4}
    assert AgentAction.from_dict(action.to_dict()) == action
    assert AgentAction.wait().to_dict() == {"type": "wait", "priority": 0}

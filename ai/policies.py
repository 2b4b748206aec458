"""
Decision Agents.

Five policies (random, aggressive, defensive, economic, balanced) that look
at a PlayerView and propose scored candidate actions. `decide` dispatches on
the player's agent type and returns the single highest-priority candidate;
ties keep the order in which the policy proposed them. Policies never mutate
the view: the only state they touch is the random source.
"""

import math
from typing import Callable, Dict, List, Optional

from ai.schema import ActionType, AgentType, AgentAction, PlayerView, PHASE_PLANNING, PHASE_ENDGAME
from sim.economy import (
    available_buildings, available_units, affordable_quantity, best_build_cell,
    building_cost, can_afford, can_build, has_enough_food, unit_cost,
)
from sim.random_source import SeededRandom
from sim.rules import EXPAND_GOLD_COST, UNIT_DEFINITIONS, ZONE_MULTIPLIERS
from sim.state import WorldCell


PRODUCTION_BUILDINGS = ("farm", "mine", "lumbermill", "market")


# =============================================================================
# HELPERS
# =============================================================================

def count_buildings(cells: List[WorldCell], building_type: str, completed_only: bool = False) -> int:
    return sum(c.count_buildings(building_type, completed_only) for c in cells)


def has_building(cells: List[WorldCell], building_type: str, completed_only: bool = False) -> bool:
    return count_buildings(cells, building_type, completed_only) > 0


def units_with_role(unit_types: List[str], role: str) -> List[str]:
    return [u for u in unit_types if UNIT_DEFINITIONS[u]["role"] == role]


def build_action(view: PlayerView, building_type: str, priority: float) -> Optional[AgentAction]:
    cell = best_build_cell(view.player, view.cells, building_type)
    if cell is None:
        return None
    return AgentAction(ActionType.BUILD, priority, cell_id=cell.id, building_type=building_type)


def build_action_on(view: PlayerView, cell: WorldCell, building_type: str,
                    priority: float) -> Optional[AgentAction]:
    """Build on a specific cell when the rules allow it there."""
    if not can_build(view.player, cell, building_type)[0]:
        return None
    return AgentAction(ActionType.BUILD, priority, cell_id=cell.id, building_type=building_type)


def train_action(view: PlayerView, unit_type: str, quantity: int, priority: float) -> Optional[AgentAction]:
    quantity = affordable_quantity(view.player, unit_type, quantity)
    if quantity <= 0:
        return None
    return AgentAction(ActionType.TRAIN, priority, unit_type=unit_type, quantity=quantity)


def attack_action(cell: WorldCell, priority: float) -> AgentAction:
    return AgentAction(ActionType.ATTACK, priority, cell_id=cell.id)


def expansion_cost(cell: WorldCell) -> int:
    return math.floor(EXPAND_GOLD_COST * ZONE_MULTIPLIERS[cell.zone])


def expand_action(view: PlayerView, priority: float, reserve: int = 0) -> Optional[AgentAction]:
    """Claim the most valuable free neighbour we can pay for and keep `reserve` gold."""
    gold = view.player.resources.get("gold", 0) - reserve
    candidates = [c for c in view.free_cells() if expansion_cost(c) <= gold]
    if not candidates:
        return None
    best = max(candidates, key=lambda c: (ZONE_MULTIPLIERS[c.zone], -c.id))
    return AgentAction(ActionType.EXPAND, priority, cell_id=best.id)


def upgrade_action(view: PlayerView, priority: float) -> Optional[AgentAction]:
    """Free the first prisoner stack we can afford to pay half price for."""
    army = view.player.main_army
    if army is None:
        return None
    for stack in army.units:
        if not stack.is_prisoner or stack.quantity <= 0:
            continue
        half = {k: v // 2 for k, v in unit_cost(stack.unit_type, stack.quantity).items()}
        if can_afford(view.player.resources, half):
            return AgentAction(ActionType.UPGRADE, priority, unit_type=stack.unit_type, quantity=stack.quantity)
    return None


def relocate_action(view: PlayerView, action_type: ActionType, cell: Optional[WorldCell],
                    priority: float) -> Optional[AgentAction]:
    army = view.player.main_army
    if cell is None or army is None or army.cell_id == cell.id:
        return None
    return AgentAction(action_type, priority, cell_id=cell.id)


def staging_cell(view: PlayerView, target: WorldCell) -> Optional[WorldCell]:
    """Own cell touching the target."""
    for neighbor in view.world.adjacent(target):
        if neighbor.owner_id == view.player.id:
            return neighbor
    return None


def weakest_enemy_cell(view: PlayerView, targets: List[WorldCell]) -> Optional[WorldCell]:
    enemy_cells = [t for t in targets if not t.is_forsaken and t.owner_id is not None]
    if not enemy_cells:
        return None
    return min(enemy_cells, key=lambda c: view.strength_of(c.owner_id))


def _add(actions: List[AgentAction], action: Optional[AgentAction]):
    if action is not None:
        actions.append(action)


# =============================================================================
# POLICIES
# =============================================================================

def random_policy(view: PlayerView, rng: SeededRandom) -> List[AgentAction]:
    """Baseline: coin flips over every action kind, random priorities."""
    actions = []

    if view.cells and rng.chance(0.4):
        options = available_buildings(view.player, view.cells)
        if options:
            _add(actions, build_action(view, rng.pick(options), rng.int(1, 10)))

    if rng.chance(0.5):
        options = available_units(view.player, view.cells)
        if options:
            _add(actions, train_action(view, rng.pick(options), rng.int(1, 5), rng.int(1, 10)))

    if view.phase != PHASE_PLANNING and rng.chance(0.3):
        targets = view.attack_targets()
        if targets:
            actions.append(attack_action(rng.pick(targets), rng.int(1, 10)))

    if rng.chance(0.2):
        _add(actions, expand_action(view, rng.int(1, 10)))

    if rng.chance(0.1):
        border = view.border_cells()
        if border:
            _add(actions, relocate_action(view, ActionType.MOVE, rng.pick(border), rng.int(1, 10)))

    if not actions or rng.chance(0.2):
        actions.append(AgentAction.wait())

    return actions


def aggressive_policy(view: PlayerView, rng: SeededRandom) -> List[AgentAction]:
    """Barracks first, attackers always, hit Forsaken and weaker neighbours."""
    actions = []
    player, cells = view.player, view.cells
    strength = view.army_strength

    if view.day <= 10:
        if not has_building(cells, "barracks"):
            _add(actions, build_action(view, "barracks", 10))
        if not has_building(cells, "farm") and not has_enough_food(player, cells):
            _add(actions, build_action(view, "farm", 8))

    available = available_units(player, cells)
    attackers = units_with_role(available, "attacker")
    if attackers and has_enough_food(player, cells):
        _add(actions, train_action(view, rng.pick(attackers), min(10, player.resources["gold"] // 50), 9))
    elif not attackers and available:
        _add(actions, train_action(view, rng.pick(available), min(5, player.resources["gold"] // 40), 7))

    if view.phase != PHASE_PLANNING:
        targets = view.attack_targets()
        forsaken = [t for t in targets if t.is_forsaken and t.forsaken_strength < strength * 0.8]
        if forsaken:
            actions.append(attack_action(forsaken[0], 10))

        weakest = weakest_enemy_cell(view, targets)
        if weakest is not None and strength > 200:
            if strength > view.strength_of(weakest.owner_id) * 1.2:
                actions.append(attack_action(weakest, 8))
            else:
                _add(actions, relocate_action(view, ActionType.MOVE, staging_cell(view, weakest), 4))

    if view.day > 15 and not has_building(cells, "armory"):
        _add(actions, build_action(view, "armory", 6))

    if view.day > 20 and not has_building(cells, "warhall"):
        _add(actions, build_action(view, "warhall", 5))

    _add(actions, upgrade_action(view, 3))
    _add(actions, expand_action(view, 2, reserve=500))

    return actions or [AgentAction.wait()]


def defensive_policy(view: PlayerView, rng: SeededRandom) -> List[AgentAction]:
    """Farms, walls on the border, a heavy defender garrison, cautious expansion."""
    actions = []
    player, cells = view.player, view.cells
    strength = view.army_strength
    gold = player.resources["gold"]

    if view.day <= 15:
        if count_buildings(cells, "farm") < 2:
            _add(actions, build_action(view, "farm", 9))
        if count_buildings(cells, "mine") < 1:
            _add(actions, build_action(view, "mine", 8))
        if not has_building(cells, "barracks"):
            _add(actions, build_action(view, "barracks", 7))

    if view.day > 10:
        unwalled = [c for c in view.border_cells() if not c.has_building("wall", completed_only=False)]
        if unwalled and can_afford(player.resources, building_cost(player.race, "wall")):
            for cell in unwalled:
                action = build_action_on(view, cell, "wall", 8)
                if action is not None:
                    actions.append(action)
                    break
        if count_buildings(cells, "watchtower") < 3:
            _add(actions, build_action(view, "watchtower", 6))
        if view.day > 15 and not has_building(cells, "armory"):
            _add(actions, build_action(view, "armory", 7))

    if view.threat_level() > 0.5:
        _add(actions, relocate_action(view, ActionType.DEFEND, view.most_threatened_cell(), 8))

    available = available_units(player, cells)
    defenders = units_with_role(available, "defender")
    if defenders and has_enough_food(player, cells):
        _add(actions, train_action(view, rng.pick(defenders), min(15, gold // 35), 8))

    attackers = units_with_role(available, "attacker")
    if attackers and gold > 300:
        _add(actions, train_action(view, rng.pick(attackers), min(8, (gold - 200) // 45), 6))

    if view.phase != PHASE_PLANNING:
        targets = view.attack_targets()
        forsaken = [t for t in targets if t.is_forsaken and t.forsaken_strength < strength * 0.7]
        if forsaken:
            actions.append(attack_action(forsaken[0], 6))

        if view.phase == PHASE_ENDGAME and strength > 300:
            for target in targets:
                if target.is_forsaken:
                    continue
                if view.strength_of(target.owner_id) < strength * 0.4:
                    actions.append(attack_action(target, 5))
                    break

    _add(actions, expand_action(view, 4, reserve=800))

    if view.day > 30:
        if not has_building(cells, "market"):
            _add(actions, build_action(view, "market", 5))
        for cell in cells:
            if cell.has_building("wall") and not cell.has_building("gate", completed_only=False):
                _add(actions, build_action_on(view, cell, "gate", 4))
                break

    return actions or [AgentAction.wait()]


def economic_policy(view: PlayerView, rng: SeededRandom) -> List[AgentAction]:
    """Production buildings first, land grabs, an army only once rich."""
    actions = []
    player, cells = view.player, view.cells
    strength = view.army_strength
    gold = player.resources["gold"]

    farms = count_buildings(cells, "farm", completed_only=True)
    if farms < min(6, math.ceil(len(cells) / 2)):
        _add(actions, build_action(view, "farm", 10))

    mines = count_buildings(cells, "mine", completed_only=True)
    if mines < min(4, math.ceil(len(cells) / 3)):
        _add(actions, build_action(view, "mine", 9))

    if count_buildings(cells, "lumbermill", completed_only=True) < 2:
        _add(actions, build_action(view, "lumbermill", 8))

    if mines >= 1 and count_buildings(cells, "market", completed_only=True) < 2:
        _add(actions, build_action(view, "market", 7))

    _add(actions, expand_action(view, 6, reserve=300))

    if view.day > 20 and count_buildings(cells, "warehouse", completed_only=True) < 2:
        _add(actions, build_action(view, "warehouse", 6))

    if view.day > 10 and not has_building(cells, "barracks"):
        _add(actions, build_action(view, "barracks", 6))

    if view.day > 15 and gold > 1000:
        available = available_units(player, cells)
        if available and has_enough_food(player, cells):
            defenders = units_with_role(available, "defender")
            attackers = units_with_role(available, "attacker")
            if defenders:
                _add(actions, train_action(view, rng.pick(defenders), min(10, (gold - 500) // 40), 5))
            if attackers and gold > 800:
                _add(actions, train_action(view, rng.pick(attackers), min(5, (gold - 600) // 50), 4))

    _add(actions, upgrade_action(view, 4))

    if view.day > 30 and gold > 2000:
        if not has_building(cells, "warhall"):
            _add(actions, build_action(view, "warhall", 5))
        elites = units_with_role(available_units(player, cells), "elite")
        if elites:
            _add(actions, train_action(view, rng.pick(elites), min(5, (gold - 1500) // 100), 4))

    if view.phase != PHASE_PLANNING:
        targets = view.attack_targets()
        weak = [t for t in targets if t.is_forsaken and t.forsaken_strength < strength * 0.4]
        if weak:
            actions.append(attack_action(weak[0], 3))

        if view.day > 35 and strength > 500:
            enemy_cells = [t for t in targets if not t.is_forsaken]
            if enemy_cells:
                actions.append(attack_action(enemy_cells[0], 4))

    return actions or [AgentAction.wait()]


def balanced_policy(view: PlayerView, rng: SeededRandom) -> List[AgentAction]:
    """Phase-driven: set up early, adapt to threat mid-game, push late."""
    actions = []
    player, cells = view.player, view.cells
    strength = view.army_strength
    threat = view.threat_level()

    if view.day <= 10:
        _balanced_opening(view, actions)
    elif view.day <= 35:
        _balanced_midgame(view, actions, threat)
    else:
        if player.race != "sylvaeth" and not has_building(cells, "siegeworkshop"):
            _add(actions, build_action(view, "siegeworkshop", 7))
        if not has_building(cells, "magetower"):
            _add(actions, build_action(view, "magetower", 6))

    if threat > 0.6:
        _add(actions, relocate_action(view, ActionType.DEFEND, view.most_threatened_cell(), 7))

    _balanced_training(view, rng, actions, threat)

    if view.phase != PHASE_PLANNING and threat <= 0.7:
        targets = view.attack_targets()
        beatable = [t for t in targets if t.is_forsaken and t.forsaken_strength < strength * 0.6]
        if beatable:
            best = max(beatable, key=lambda c: ZONE_MULTIPLIERS[c.zone])
            actions.append(attack_action(best, 6))

        if view.day > 20 and strength > 300 and threat < 0.4:
            for target in targets:
                if target.is_forsaken:
                    continue
                if strength > view.strength_of(target.owner_id) * 1.5:
                    actions.append(attack_action(target, 5))
                    break

    _add(actions, expand_action(view, 5, reserve=400))
    _add(actions, upgrade_action(view, 3))

    return actions or [AgentAction.wait()]


def _balanced_opening(view: PlayerView, actions: List[AgentAction]):
    # farm -> barracks -> mine -> second farm
    cells = view.cells
    if not has_building(cells, "farm"):
        _add(actions, build_action(view, "farm", 10))
    elif not has_building(cells, "barracks"):
        _add(actions, build_action(view, "barracks", 9))
    elif not has_building(cells, "mine"):
        _add(actions, build_action(view, "mine", 8))
    elif count_buildings(cells, "farm") < 2:
        _add(actions, build_action(view, "farm", 7))


def _balanced_midgame(view: PlayerView, actions: List[AgentAction], threat: float):
    cells = view.cells
    if threat > 0.6:
        if not has_building(cells, "wall"):
            _add(actions, build_action(view, "wall", 9))
        if count_buildings(cells, "watchtower") < 2:
            _add(actions, build_action(view, "watchtower", 8))
    elif economy_score(cells) < 0.5:
        mines = count_buildings(cells, "mine")
        if mines < 2:
            _add(actions, build_action(view, "mine", 8))
        if mines >= 1 and not has_building(cells, "market"):
            _add(actions, build_action(view, "market", 7))
    else:
        if not has_building(cells, "warhall"):
            _add(actions, build_action(view, "warhall", 7))
        if not has_building(cells, "armory"):
            _add(actions, build_action(view, "armory", 6))


def _balanced_training(view: PlayerView, rng: SeededRandom, actions: List[AgentAction], threat: float):
    player, cells = view.player, view.cells
    available = available_units(player, cells)
    if not available or not has_enough_food(player, cells):
        return

    gold = player.resources["gold"]
    defenders = units_with_role(available, "defender")
    attackers = units_with_role(available, "attacker")
    elites = units_with_role(available, "elite")

    if threat > 0.5 and defenders:
        _add(actions, train_action(view, rng.pick(defenders), min(8, gold // 40), 7))
        return

    if attackers and gold > 300:
        _add(actions, train_action(view, rng.pick(attackers), min(5, (gold - 200) // 50), 5))
    if defenders and gold > 200:
        _add(actions, train_action(view, rng.pick(defenders), min(4, (gold - 100) // 40), 4))
    if elites and gold > 800:
        _add(actions, train_action(view, rng.pick(elites), min(3, (gold - 600) // 100), 4))


def economy_score(cells: List[WorldCell]) -> float:
    """Completed production buildings against three per cell, in [0, 1]."""
    built = sum(
        1 for c in cells for b in c.buildings
        if b.completed and b.type in PRODUCTION_BUILDINGS
    )
    return min(1.0, built / max(1, len(cells) * 3))


# =============================================================================
# DISPATCH
# =============================================================================

POLICIES: Dict[AgentType, Callable[[PlayerView, SeededRandom], List[AgentAction]]] = {
    AgentType.RANDOM: random_policy,
    AgentType.AGGRESSIVE: aggressive_policy,
    AgentType.DEFENSIVE: defensive_policy,
    AgentType.ECONOMIC: economic_policy,
    AgentType.BALANCED: balanced_policy,
}


def rank_actions(view: PlayerView, rng: SeededRandom, agent_type: AgentType = None) -> List[AgentAction]:
    """All candidates of the player's policy, highest priority first (stable)."""
    agent_type = AgentType(agent_type or view.player.agent_type)
    candidates = POLICIES[agent_type](view, rng)
    return sorted(candidates, key=lambda a: -a.priority)


def decide(view: PlayerView, rng: SeededRandom, agent_type: AgentType = None) -> AgentAction:
    """The one action this player takes today."""
    ranked = rank_actions(view, rng, agent_type)
    return ranked[0] if ranked else AgentAction.wait()

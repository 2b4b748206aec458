"""
Economy Rules.

Daily production and food upkeep, building and unit costs, build
prerequisites, trainable units and scoring. Functions take a player plus the
cells it owns and never touch the world map directly.
"""

import math
from typing import Dict, List, Optional, Tuple

from sim.rules import (
    BUILDING_DEFINITIONS, UNIT_DEFINITIONS, RESOURCE_TYPES,
    ZONE_MULTIPLIERS, ZONE_PRIORITY, FOOD_RATES, CELL_BASE_PRODUCTION, BUILDING_PRODUCTION,
    RACE_BUILDING_OUTPUT, RACE_BUILDING_RESTRICTIONS, RACE_BUILDING_COST_MULTIPLIER,
    ROLE_BUILDING_REQUIREMENTS, SCORE_PER_ZONE, SCORE_PER_BUILDING, SCORE_PER_BATTLE_WON,
    units_for_race,
)
from sim.state import SimPlayer, WorldCell


SYLVAETH_PRODUCTION_BONUS = 1.10
VAELTHIR_MANA_BONUS = 1.50
MERCHANT_UPKEEP_DISCOUNT = 0.90
ARMY_SCORE_DIVISOR = 100


# =============================================================================
# RESOURCE ARITHMETIC
# =============================================================================

def can_afford(resources: Dict[str, int], cost: Dict[str, int]) -> bool:
    return all(resources.get(k, 0) >= v for k, v in cost.items() if v)


def deduct_resources(resources: Dict[str, int], cost: Dict[str, int]):
    for key, value in cost.items():
        if value:
            resources[key] = resources.get(key, 0) - value


def add_resources(resources: Dict[str, int], addition: Dict[str, int]):
    for key, value in addition.items():
        if value:
            resources[key] = resources.get(key, 0) + value


# =============================================================================
# PRODUCTION / UPKEEP
# =============================================================================

def race_building_modifier(race: str, building_type: str) -> float:
    return RACE_BUILDING_OUTPUT.get(race, {}).get(building_type, 1.0)


def calculate_daily_production(player: SimPlayer, cells: List[WorldCell]) -> Dict[str, int]:
    """
    Resources a player's cells yield in one day.

    Each cell gives base gold and food scaled by its zone; completed
    buildings add their output, scaled by zone and race. Sylvaeth get +10%
    on everything, Vaelthir +50% mana. Values are floored.
    """
    production = {r: 0.0 for r in RESOURCE_TYPES}

    for cell in cells:
        zone_mult = ZONE_MULTIPLIERS[cell.zone]
        for resource, amount in CELL_BASE_PRODUCTION.items():
            production[resource] += amount * zone_mult

        for building in cell.buildings:
            if not building.completed:
                continue
            for resource, amount in BUILDING_PRODUCTION.get(building.type, {}).items():
                production[resource] += amount * zone_mult * race_building_modifier(player.race, building.type)

    if player.race == "sylvaeth":
        for resource in production:
            production[resource] *= SYLVAETH_PRODUCTION_BONUS
    elif player.race == "vaelthir":
        production["mana"] *= VAELTHIR_MANA_BONUS

    return {r: math.floor(v) for r, v in production.items()}


def calculate_food_consumption(player: SimPlayer) -> int:
    """Daily food eaten by every army, after race rate and class discount."""
    rate = FOOD_RATES[player.race]
    consumption = 0.0
    for army in player.armies:
        for unit in army.units:
            consumption += UNIT_DEFINITIONS[unit.unit_type]["food"] * unit.quantity * rate

    if player.captain_class == "merchantprince":
        consumption *= MERCHANT_UPKEEP_DISCOUNT

    return math.ceil(consumption)


def process_daily_tick(player: SimPlayer, cells: List[WorldCell]) -> Dict:
    """
    Add production and subtract food upkeep. Food may go negative;
    starvation is the orchestrator's job.
    """
    production = calculate_daily_production(player, cells)
    consumption = calculate_food_consumption(player)
    add_resources(player.resources, production)
    player.resources["food"] -= consumption
    return {
        "production": production,
        "consumption": consumption,
        "net_food": production["food"] - consumption,
    }


def has_enough_food(player: SimPlayer, cells: List[WorldCell]) -> bool:
    consumption = calculate_food_consumption(player)
    production = calculate_daily_production(player, cells)
    return production["food"] >= consumption or player.resources.get("food", 0) > consumption * 5


# =============================================================================
# COSTS
# =============================================================================

def building_cost(race: str, building_type: str) -> Dict[str, int]:
    """Building cost with the race surcharge (Vaelthir pay 15% more, rounded up)."""
    cost = dict(BUILDING_DEFINITIONS[building_type]["cost"])
    mult = RACE_BUILDING_COST_MULTIPLIER.get(race)
    if mult:
        cost = {k: math.ceil(v * mult) for k, v in cost.items()}
    return cost


def unit_cost(unit_type: str, quantity: int = 1) -> Dict[str, int]:
    unit = UNIT_DEFINITIONS[unit_type]
    cost = {"gold": unit["cost"] * quantity}
    if unit.get("mana"):
        cost["mana"] = unit["mana"] * quantity
    return cost


def can_afford_unit(player: SimPlayer, unit_type: str, quantity: int = 1) -> bool:
    return can_afford(player.resources, unit_cost(unit_type, quantity))


def affordable_quantity(player: SimPlayer, unit_type: str, limit: int) -> int:
    """Largest quantity up to limit the player can pay for."""
    per_unit = unit_cost(unit_type, 1)
    quantity = limit
    for resource, amount in per_unit.items():
        quantity = min(quantity, player.resources.get(resource, 0) // amount)
    return max(0, quantity)


def build_days(building_type: str, skill: str = None) -> int:
    """Whole days until a building started today completes; artificers build 25% faster."""
    hours = BUILDING_DEFINITIONS[building_type]["build_hours"]
    if skill == "artificer":
        hours *= 0.75
    return math.ceil(hours / 24)


# =============================================================================
# BUILD RULES
# =============================================================================

def can_build(player: SimPlayer, cell: WorldCell, building_type: str) -> Tuple[bool, Optional[str]]:
    """
    Check whether a player may start a building on one of their cells.

    Returns:
        (allowed, reason when not allowed)
    """
    definition = BUILDING_DEFINITIONS.get(building_type)
    if definition is None:
        return False, "Unknown building type"
    if cell.owner_id != player.id:
        return False, "Not your territory"
    if cell.count_buildings(building_type) >= definition["max_per_cell"]:
        return False, "Max buildings of this type reached"
    if definition["requires"] and not cell.has_building(definition["requires"]):
        return False, f"Requires {definition['requires']}"
    if building_type in RACE_BUILDING_RESTRICTIONS.get(player.race, []):
        return False, "Race restriction"
    if not can_afford(player.resources, building_cost(player.race, building_type)):
        return False, "Cannot afford"
    return True, None


def available_buildings(player: SimPlayer, cells: List[WorldCell]) -> List[str]:
    available = []
    for building_type in BUILDING_DEFINITIONS:
        if any(can_build(player, cell, building_type)[0] for cell in cells):
            available.append(building_type)
    return available


def best_build_cell(player: SimPlayer, cells: List[WorldCell], building_type: str) -> Optional[WorldCell]:
    """First buildable cell, most valuable zone first."""
    for cell in sorted(cells, key=lambda c: (ZONE_PRIORITY[c.zone], c.id)):
        if can_build(player, cell, building_type)[0]:
            return cell
    return None


def has_building_anywhere(cells: List[WorldCell], building_type: str, completed_only: bool = True) -> bool:
    return any(cell.has_building(building_type, completed_only) for cell in cells)


def available_units(player: SimPlayer, cells: List[WorldCell]) -> List[str]:
    """Race units (and siege) whose training building stands completed and one unit is affordable."""
    available = []
    for unit_type in units_for_race(player.race):
        required = ROLE_BUILDING_REQUIREMENTS[UNIT_DEFINITIONS[unit_type]["role"]]
        if not has_building_anywhere(cells, required):
            continue
        if can_afford_unit(player, unit_type, 1):
            available.append(unit_type)
    return available


# =============================================================================
# SCORING
# =============================================================================

def calculate_score(player: SimPlayer, cells: List[WorldCell]) -> int:
    """Zone points per cell, 5 per completed building, army value / 100, 10 per battle won."""
    score = 0
    for cell in cells:
        score += SCORE_PER_ZONE[cell.zone]
        score += SCORE_PER_BUILDING * sum(1 for b in cell.buildings if b.completed)

    for army in player.armies:
        for unit in army.units:
            score += (UNIT_DEFINITIONS[unit.unit_type]["cost"] * unit.quantity) // ARMY_SCORE_DIVISOR

    score += player.battles_won * SCORE_PER_BATTLE_WON
    return score

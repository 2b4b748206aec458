"""
Game Rule Tables.

Static definitions for races, captain classes and skills, units, buildings,
zones, terrain and economy constants. Everything the simulation balances
against lives here so a tuning pass touches one file.
"""

from typing import Dict, List, Optional

from sim.errors import ConfigurationError, RosterError


# =============================================================================
# RACES / CAPTAINS
# =============================================================================

RACES = ["ironveld", "vaelthir", "korrath", "sylvaeth", "ashborn", "breathborn"]

CAPTAIN_SKILLS = {
    "warlord": ["vanguard", "fortress"],
    "archmage": ["destruction", "protection"],
    "highpriest": ["crusader", "oracle"],
    "shadowmaster": ["assassin", "saboteur"],
    "merchantprince": ["profiteer", "artificer"],
    "beastlord": ["packalpha", "warden"],
}

CAPTAIN_CLASSES = list(CAPTAIN_SKILLS.keys())
ALL_SKILLS = [skill for skills in CAPTAIN_SKILLS.values() for skill in skills]

AGENT_TYPES = ["random", "aggressive", "defensive", "economic", "balanced"]

RESOURCE_TYPES = ["gold", "stone", "wood", "food", "mana"]


# =============================================================================
# DEATH SAVES
# =============================================================================

DEATH_SAVE_THRESHOLD = 10
MAX_DEATH_SAVE_MODIFIER = 5
WOUND_RECOVERY_DAYS = 1

RACE_DEATH_SAVE_MODIFIERS = {"ashborn": 2}
CLASS_DEATH_SAVE_MODIFIERS = {"warlord": 2, "shadowmaster": 3}
ASSASSINATION_PENALTY = -3
CRITICAL_HIT_PENALTY = -1
ASSASSINATION_CHANCE = 0.12


# =============================================================================
# UNITS
# =============================================================================

ROLE_ORDER = {"defender": 1, "attacker": 2, "elite": 3, "siege": 4}

UNIT_DEFINITIONS = {
    # Ironveld
    "stoneshield": {"atk": 8, "def": 25, "hp": 60, "cost": 30, "food": 1, "role": "defender", "race": "ironveld"},
    "hammerer": {"atk": 20, "def": 12, "hp": 45, "cost": 45, "food": 1, "role": "attacker", "race": "ironveld"},
    "siegeanvil": {"atk": 15, "def": 35, "hp": 100, "cost": 100, "food": 2, "role": "elite", "race": "ironveld"},
    # Vaelthir
    "bloodwarden": {"atk": 10, "def": 18, "hp": 35, "cost": 40, "food": 1, "role": "defender", "race": "vaelthir"},
    "crimsonblade": {"atk": 28, "def": 6, "hp": 25, "cost": 50, "food": 1, "role": "attacker", "race": "vaelthir"},
    "magister": {"atk": 40, "def": 5, "hp": 30, "cost": 120, "mana": 50, "food": 2, "role": "elite", "race": "vaelthir"},
    # Korrath
    "warshield": {"atk": 12, "def": 15, "hp": 40, "cost": 25, "food": 1, "role": "defender", "race": "korrath"},
    "rageborn": {"atk": 25, "def": 5, "hp": 35, "cost": 35, "food": 2, "role": "attacker", "race": "korrath"},
    "warchief": {"atk": 35, "def": 20, "hp": 70, "cost": 90, "food": 3, "role": "elite", "race": "korrath"},
    # Sylvaeth
    "veilguard": {"atk": 8, "def": 20, "hp": 35, "cost": 35, "food": 1, "role": "defender", "race": "sylvaeth"},
    "fadestriker": {"atk": 22, "def": 8, "hp": 30, "cost": 45, "food": 1, "role": "attacker", "race": "sylvaeth"},
    "dreamweaver": {"atk": 15, "def": 15, "hp": 40, "cost": 80, "mana": 30, "food": 1, "role": "elite", "race": "sylvaeth"},
    # Ashborn
    "cinderguard": {"atk": 12, "def": 18, "hp": 45, "cost": 35, "food": 0, "role": "defender", "race": "ashborn"},
    "ashstriker": {"atk": 22, "def": 10, "hp": 35, "cost": 40, "food": 0, "role": "attacker", "race": "ashborn"},
    "pyreknight": {"atk": 30, "def": 15, "hp": 50, "cost": 85, "food": 0, "role": "elite", "race": "ashborn"},
    # Breathborn
    "galeguard": {"atk": 10, "def": 16, "hp": 30, "cost": 30, "food": 1, "role": "defender", "race": "breathborn"},
    "zephyr": {"atk": 18, "def": 8, "hp": 25, "cost": 40, "food": 1, "role": "attacker", "race": "breathborn"},
    "stormherald": {"atk": 25, "def": 18, "hp": 45, "cost": 95, "food": 2, "role": "elite", "race": "breathborn"},
    # Universal siege
    "batteringram": {"atk": 5, "def": 25, "hp": 80, "cost": 100, "food": 0, "role": "siege", "race": None},
    "catapult": {"atk": 10, "def": 10, "hp": 50, "cost": 200, "food": 0, "role": "siege", "race": None},
    "trebuchet": {"atk": 15, "def": 5, "hp": 40, "cost": 400, "food": 0, "role": "siege", "race": None},
}


def get_unit(unit_type: str) -> Dict:
    """Unit definition or RosterError for an unknown type."""
    unit = UNIT_DEFINITIONS.get(unit_type)
    if unit is None:
        raise RosterError(f"Unknown unit type: {unit_type!r}")
    return unit


def units_for_race(race: str) -> List[str]:
    """Race units followed by the universal siege engines."""
    return [
        name for name, unit in UNIT_DEFINITIONS.items()
        if unit["race"] == race or unit["race"] is None
    ]


def unit_for_role(race: str, role: str) -> Optional[str]:
    for name in units_for_race(race):
        if UNIT_DEFINITIONS[name]["role"] == role:
            return name
    return None


# =============================================================================
# BUILDINGS
# =============================================================================

BUILDING_DEFINITIONS = {
    "farm": {"cost": {"gold": 100, "wood": 50}, "build_hours": 4, "max_per_cell": 2, "requires": None},
    "mine": {"cost": {"gold": 150, "stone": 75}, "build_hours": 6, "max_per_cell": 2, "requires": None},
    "lumbermill": {"cost": {"gold": 150, "wood": 75}, "build_hours": 6, "max_per_cell": 2, "requires": None},
    "market": {"cost": {"gold": 300, "stone": 100}, "build_hours": 8, "max_per_cell": 1, "requires": "mine"},
    "barracks": {"cost": {"gold": 200, "wood": 100}, "build_hours": 6, "max_per_cell": 1, "requires": None},
    "warhall": {"cost": {"gold": 400, "stone": 200}, "build_hours": 10, "max_per_cell": 1, "requires": "barracks"},
    "siegeworkshop": {"cost": {"gold": 500, "wood": 300}, "build_hours": 12, "max_per_cell": 1, "requires": "barracks"},
    "armory": {"cost": {"gold": 350, "stone": 150}, "build_hours": 8, "max_per_cell": 1, "requires": "barracks"},
    "wall": {"cost": {"gold": 400, "stone": 500}, "build_hours": 12, "max_per_cell": 1, "requires": None},
    "watchtower": {"cost": {"gold": 150, "wood": 100}, "build_hours": 4, "max_per_cell": 2, "requires": None},
    "gate": {"cost": {"gold": 250, "stone": 200}, "build_hours": 6, "max_per_cell": 1, "requires": "wall"},
    "magetower": {"cost": {"gold": 400, "stone": 200}, "build_hours": 10, "max_per_cell": 1, "requires": None},
    "shrine": {"cost": {"gold": 200, "stone": 150}, "build_hours": 6, "max_per_cell": 1, "requires": "magetower"},
    "warehouse": {"cost": {"gold": 250, "wood": 150}, "build_hours": 6, "max_per_cell": 1, "requires": "mine"},
}

BUILDING_TYPES = list(BUILDING_DEFINITIONS.keys())

RACE_BUILDING_RESTRICTIONS = {"sylvaeth": ["siegeworkshop"]}
RACE_BUILDING_COST_MULTIPLIER = {"vaelthir": 1.15}

# Buildings a unit role needs before it can be trained.
ROLE_BUILDING_REQUIREMENTS = {
    "defender": "barracks",
    "attacker": "barracks",
    "elite": "warhall",
    "siege": "siegeworkshop",
}


# =============================================================================
# WORLD
# =============================================================================

MAP_SIZE = 100
ZONES = ["outer", "middle", "inner", "heart"]
ZONE_BOUNDARIES = {"heart": 5, "inner": 20, "middle": 35}
ZONE_PRIORITY = {"heart": 0, "inner": 1, "middle": 2, "outer": 3}
ZONE_MULTIPLIERS = {"outer": 1.0, "middle": 1.5, "inner": 2.0, "heart": 3.0}

TERRAIN_TYPES = ["plains", "forest", "mountain", "river", "ruins", "corruption"]

TERRAIN_WEIGHTS = {
    "outer": [40, 30, 15, 10, 4, 1],
    "middle": [35, 25, 20, 10, 8, 2],
    "inner": [30, 20, 20, 10, 15, 5],
    "heart": [25, 15, 15, 10, 20, 15],
}

TERRAIN_DEFENSE = {
    "plains": 1.0,
    "forest": 1.2,
    "mountain": 1.35,
    "river": 1.1,
    "ruins": 1.15,
    "corruption": 0.9,
}

FORSAKEN_STRENGTH = {
    "outer": (50, 150),
    "middle": (100, 300),
    "inner": (200, 500),
    "heart": (400, 800),
}

INITIAL_FORSAKEN_COVERAGE = 0.3
HEARTBEAT_COVERAGE = 0.1
HEARTBEAT_GROWTH = 1.2
HEARTBEAT_CAP = 1.5
HEARTBEAT_INTERVAL_DAYS = 7

# Zone garrison militia size when a player cell is attacked.
GARRISON_BASE = {"heart": 80, "inner": 60, "middle": 40, "outer": 25}
GARRISON_BUILDING_BONUS = {"barracks": 40, "wall": 30, "watchtower": 15, "armory": 20, "warhall": 25}
GARRISON_RACE_MULTIPLIER = {"ironveld": 1.3, "ashborn": 1.15}


# =============================================================================
# ECONOMY
# =============================================================================

FOOD_RATES = {
    "ashborn": 0.0,
    "ironveld": 0.5,
    "breathborn": 0.7,
    "sylvaeth": 0.8,
    "vaelthir": 1.0,
    "korrath": 1.0,
}

ENTRY_TIERS = {
    "free": {"plots": 2, "resources": {"gold": 1000, "stone": 400, "wood": 400, "food": 200, "mana": 0}},
    "premium": {"plots": 10, "resources": {"gold": 5000, "stone": 2000, "wood": 2000, "food": 1000, "mana": 0}},
}
PREMIUM_CHANCE = 0.3

CELL_BASE_PRODUCTION = {"gold": 10, "food": 5}

BUILDING_PRODUCTION = {
    "farm": {"food": 50},
    "mine": {"gold": 40},
    "lumbermill": {"wood": 40},
    "market": {"gold": 100},
    "magetower": {"mana": 20},
    "shrine": {"mana": 10},
}

RACE_BUILDING_OUTPUT = {
    "ironveld": {"mine": 1.15},
    "vaelthir": {"magetower": 1.3},
    "ashborn": {"farm": 0.8},
}

SCORE_PER_ZONE = {"heart": 100, "inner": 5, "middle": 2, "outer": 1}
SCORE_PER_BUILDING = 5
SCORE_PER_BATTLE_WON = 10

EXPAND_GOLD_COST = 150

MORALE_EFFECTS = {
    "captain_death": -30,
    "major_defeat": -20,
    "minor_defeat": -10,
    "draw": -5,
    "minor_victory": 5,
    "major_victory": 10,
}
STARVATION_MORALE_LOSS = 10
STARVATION_DESERTION = 0.1


# =============================================================================
# GENERATION
# =============================================================================

GENERATION_LENGTH = 50
PLANNING_DAYS = 5
ENDGAME_DAYS = 5
STARTING_ARMY_SIZE = 10
PREMIUM_EXTRA_PLOTS = 8
MAX_COMBAT_ROUNDS = 3

DEFAULT_AGENT_DISTRIBUTION = {
    "random": 0.10,
    "aggressive": 0.25,
    "defensive": 0.20,
    "economic": 0.20,
    "balanced": 0.25,
}


def validate_captain(captain_class: str, skill: str):
    """Raise ConfigurationError unless skill belongs to captain_class."""
    if captain_class not in CAPTAIN_SKILLS:
        raise ConfigurationError(f"Unknown captain class: {captain_class!r}")
    if skill not in CAPTAIN_SKILLS[captain_class]:
        raise ConfigurationError(
            f"Skill {skill!r} does not belong to class {captain_class!r}"
        )


def validate_race(race: str):
    if race not in RACES:
        raise ConfigurationError(f"Unknown race: {race!r}")

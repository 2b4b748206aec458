"""
Round-Based Combat Resolution.

Dice-modulated damage between two unit rosters, role-ordered casualty
distribution, Ashborn reformation, captain death saves, loot and prisoners.
All randomness comes from an injected SeededRandom so a combat replays
exactly from its seed. The caller's rosters are never mutated: every round
works on copies and the resolver hands back new stacks.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from sim.errors import RosterError
from sim.random_source import SeededRandom
from sim.rules import (
    ROLE_ORDER, UNIT_DEFINITIONS, TERRAIN_DEFENSE, MAX_COMBAT_ROUNDS,
    DEATH_SAVE_THRESHOLD, MAX_DEATH_SAVE_MODIFIER,
    RACE_DEATH_SAVE_MODIFIERS, CLASS_DEATH_SAVE_MODIFIERS,
    ASSASSINATION_PENALTY, CRITICAL_HIT_PENALTY, ASSASSINATION_CHANCE,
    get_unit, unit_for_role,
)
from sim.state import (
    Captain, UnitStack, CombatEvent, CombatRound, CombatRecord, DeathSave,
)


# =============================================================================
# ROLL TABLES
# =============================================================================

def _band_table(bands: List[Tuple[int, int, float]]) -> Dict[int, float]:
    table = {}
    for low, high, mult in bands:
        for face in range(low, high + 1):
            table[face] = mult
    return table


ATTACK_MULTIPLIERS = _band_table([
    (1, 1, 0.5), (2, 4, 0.7), (5, 8, 0.85), (9, 12, 1.0),
    (13, 16, 1.1), (17, 19, 1.25), (20, 20, 1.5),
])

DEFENSE_MULTIPLIERS = _band_table([
    (1, 1, 0.5), (2, 4, 0.75), (5, 8, 0.9), (9, 12, 1.0),
    (13, 16, 1.1), (17, 19, 1.2), (20, 20, 1.4),
])

CRITICAL_HIT = 20
CRITICAL_MISS = 1

PRISONER_EFFECTIVENESS = 0.6
KORRATH_ATTACK_BONUS = 1.35
IRONVELD_WALL_BONUS = 1.1
VAELTHIR_PENETRATION = 0.75
WALL_DEFENSE_BONUS = 1.3

# Surviving stacks never sit below this share of nominal HP
HP_FLOOR_RATIO = 0.1

REFORM_CHANCE = 0.25
REFORM_FRACTION = 0.25

LOOT_RATE = 0.1
KORRATH_LOOT_MULTIPLIER = 1.3
LOOTABLE_RESOURCES = ["gold", "stone", "wood", "food"]

PRISONER_RATE = 0.05
KORRATH_PRISONER_RATE = 0.10

FORSAKEN_MIN_UNITS = 5
FORSAKEN_STRENGTH_PER_UNIT = 8
FORSAKEN_COMPOSITION = [("warshield", 0.6), ("rageborn", 0.4)]


def attack_multiplier(roll: int) -> float:
    return ATTACK_MULTIPLIERS[roll]


def defense_multiplier(roll: int) -> float:
    return DEFENSE_MULTIPLIERS[roll]


# =============================================================================
# COMBATANTS
# =============================================================================

@dataclass
class CombatSide:
    """
    One side of a fight as the resolver sees it.

    `captain` is set only when the captain travels with this army and is
    alive; Forsaken sides have no race, player or captain.
    """
    units: List[UnitStack]
    race: Optional[str] = None
    player_id: Optional[str] = None
    captain: Optional[Captain] = None
    resources: Dict[str, int] = field(default_factory=dict)

    @property
    def total_units(self) -> int:
        return sum(u.quantity for u in self.units)


def validate_roster(units: List[UnitStack]):
    """
    Raise RosterError for anything the resolver cannot fight with.

    Checked: known unit type, non-negative quantity, HP within
    [0, quantity * hp_per_unit].
    """
    for stack in units:
        unit = get_unit(stack.unit_type)
        if not isinstance(stack.quantity, int) or isinstance(stack.quantity, bool):
            raise RosterError(f"{stack.unit_type}: quantity must be an integer, got {stack.quantity!r}")
        if stack.quantity < 0:
            raise RosterError(f"{stack.unit_type}: negative quantity {stack.quantity}")
        cap = stack.quantity * unit["hp"]
        if stack.current_hp < 0 or stack.current_hp > cap:
            raise RosterError(
                f"{stack.unit_type}: hit points {stack.current_hp} outside [0, {cap}]"
            )


def forsaken_roster(strength: float) -> List[UnitStack]:
    """Pseudo-army for a Forsaken cell: 60% warshield, 40% rageborn, full health."""
    unit_count = max(FORSAKEN_MIN_UNITS, math.floor(strength / FORSAKEN_STRENGTH_PER_UNIT))
    units = []
    for unit_type, share in FORSAKEN_COMPOSITION:
        quantity = math.floor(unit_count * share)
        if quantity > 0:
            units.append(UnitStack.full(unit_type, quantity))
    return units


def copy_roster(units: List[UnitStack]) -> List[UnitStack]:
    return [u.copy() for u in units]


# =============================================================================
# DAMAGE
# =============================================================================

def side_totals(units: List[UnitStack]) -> Tuple[float, float]:
    """Raw (ATK, DEF) of a roster; prisoner stacks fight at 60%."""
    atk = 0.0
    defense = 0.0
    for stack in units:
        unit = UNIT_DEFINITIONS[stack.unit_type]
        weight = PRISONER_EFFECTIVENESS if stack.is_prisoner else 1.0
        atk += unit["atk"] * stack.quantity * weight
        defense += unit["def"] * stack.quantity * weight
    return atk, defense


def compute_damage(
    attacker_units: List[UnitStack],
    defender_units: List[UnitStack],
    attacker_roll: int,
    defender_roll: int,
    attacker_race: str = None,
    defender_race: str = None,
    defender_has_wall: bool = False,
    terrain: str = None,
) -> Dict:
    """
    Damage each side deals for one pair of rolls.

    Modifier order matters: Korrath ATK, Ironveld wall DEF, Vaelthir
    penetration, the wall itself, then terrain.

    Returns:
        Dict with attacker_damage, defender_damage and the special-ability
        events that fired
    """
    attacker_atk, attacker_def = side_totals(attacker_units)
    defender_atk, defender_def = side_totals(defender_units)
    events = []

    if attacker_race == "korrath":
        attacker_atk *= KORRATH_ATTACK_BONUS
        events.append(CombatEvent("special_ability", "Blood Frenzy: +35% ATK"))

    if defender_race == "ironveld" and defender_has_wall:
        defender_def *= IRONVELD_WALL_BONUS
        events.append(CombatEvent("special_ability", "Ironveld Wall Bonus: +10% DEF"))

    if attacker_race == "vaelthir":
        defender_def *= VAELTHIR_PENETRATION
        events.append(CombatEvent("special_ability", "Vaelthir Magic: ignores 25% DEF"))

    if defender_has_wall:
        defender_def *= WALL_DEFENSE_BONUS
        events.append(CombatEvent("defend", "Wall provides +30% DEF"))

    if terrain is not None:
        defender_def *= TERRAIN_DEFENSE.get(terrain, 1.0)

    raw_attacker = math.floor(
        attacker_atk * attack_multiplier(attacker_roll) - defender_def * defense_multiplier(defender_roll)
    )
    raw_defender = math.floor(
        defender_atk * attack_multiplier(defender_roll) - attacker_def * defense_multiplier(attacker_roll)
    )

    # A natural 1 may deal nothing; anything else deals at least 1
    attacker_floor = 0 if attacker_roll == CRITICAL_MISS else 1
    defender_floor = 0 if defender_roll == CRITICAL_MISS else 1

    return {
        "attacker_damage": max(attacker_floor, raw_attacker),
        "defender_damage": max(defender_floor, raw_defender),
        "events": events,
    }


def apply_damage(units: List[UnitStack], damage: int) -> Tuple[List[UnitStack], int, Dict[Tuple[str, bool], int]]:
    """
    Spread damage over a copy of the roster, front line first.

    Stacks are hit in role order (defender, attacker, elite, siege). Each
    stack absorbs up to its current HP; floor(absorbed / hp_per_unit) units
    die. A surviving stack is lifted back to 10% of its nominal HP.

    Returns:
        (new roster without empty stacks, total casualties,
         casualties keyed by (unit_type, is_prisoner))
    """
    working = sorted(copy_roster(units), key=lambda s: ROLE_ORDER.get(s.role, len(ROLE_ORDER) + 1))
    losses: Dict[Tuple[str, bool], int] = {}
    total = 0
    remaining = max(0, damage)

    for stack in working:
        if remaining <= 0:
            break
        if stack.quantity <= 0:
            continue

        hp_per_unit = stack.hp_per_unit
        absorbed = min(remaining, stack.current_hp)
        stack.current_hp -= absorbed
        remaining -= absorbed

        casualties = min(stack.quantity, math.floor(absorbed / hp_per_unit))
        stack.quantity -= casualties
        total += casualties
        if casualties:
            key = (stack.unit_type, stack.is_prisoner)
            losses[key] = losses.get(key, 0) + casualties

        if stack.quantity > 0:
            stack.current_hp = max(stack.current_hp, stack.quantity * hp_per_unit * HP_FLOOR_RATIO)
        else:
            stack.current_hp = 0

    return [s for s in working if s.quantity > 0], total, losses


def reform_units(
    units: List[UnitStack],
    losses: Dict[Tuple[str, bool], int],
    casualties: int,
    rng: SeededRandom,
) -> int:
    """
    Ashborn reformation, in place on an already-copied roster.

    25% chance that floor(casualties * 0.25 * random()) units return to the
    stack that lost the most. Only quantity comes back, not hit points; a
    stack that was wiped out returns at the 10% HP floor.

    Returns:
        Units reformed
    """
    if casualties <= 0 or not losses or not rng.chance(REFORM_CHANCE):
        return 0
    reformed = math.floor(casualties * REFORM_FRACTION * rng.random())
    if reformed <= 0:
        return 0

    unit_type, is_prisoner = max(losses, key=lambda k: losses[k])
    for stack in units:
        if stack.unit_type == unit_type and stack.is_prisoner == is_prisoner:
            stack.quantity += reformed
            return reformed

    hp = UNIT_DEFINITIONS[unit_type]["hp"]
    units.append(UnitStack(
        unit_type=unit_type,
        quantity=reformed,
        current_hp=reformed * hp * HP_FLOOR_RATIO,
        is_prisoner=is_prisoner,
    ))
    return reformed


def _roster_hp(units: List[UnitStack]) -> float:
    return sum(u.current_hp for u in units)


def _roster_count(units: List[UnitStack]) -> int:
    return sum(u.quantity for u in units)


# =============================================================================
# ROUNDS
# =============================================================================

def resolve_round(
    attacker_units: List[UnitStack],
    defender_units: List[UnitStack],
    rng: SeededRandom,
    round_number: int = 1,
    attacker_race: str = None,
    defender_race: str = None,
    defender_has_wall: bool = False,
    terrain: str = None,
) -> Tuple[CombatRound, List[UnitStack], List[UnitStack], int]:
    """
    Resolve one exchange of blows.

    Both rosters are validated before anything is rolled, and damage lands on
    copies, so a failure leaves the inputs untouched.

    Returns:
        (round record, new attacker roster, new defender roster,
         defender units reformed)
    """
    validate_roster(attacker_units)
    validate_roster(defender_units)

    attacker_roll = rng.weighted_d20()
    defender_roll = rng.weighted_d20()

    damage = compute_damage(
        attacker_units, defender_units, attacker_roll, defender_roll,
        attacker_race=attacker_race,
        defender_race=defender_race,
        defender_has_wall=defender_has_wall,
        terrain=terrain,
    )
    events = list(damage["events"])

    for side, roll in (("Attacker", attacker_roll), ("Defender", defender_roll)):
        if roll == CRITICAL_HIT:
            events.append(CombatEvent("critical_hit", f"{side} critical hit! x{attack_multiplier(roll)} damage"))
        elif roll == CRITICAL_MISS:
            events.append(CombatEvent("critical_miss", f"{side} critical failure! x{attack_multiplier(roll)} damage"))

    new_defender, defender_casualties, defender_losses = apply_damage(defender_units, damage["attacker_damage"])
    new_attacker, attacker_casualties, _ = apply_damage(attacker_units, damage["defender_damage"])

    reformed = 0
    if defender_race == "ashborn":
        reformed = reform_units(new_defender, defender_losses, defender_casualties, rng)
        if reformed:
            events.append(CombatEvent(
                "reformation", f"Ashborn Reformation: {reformed} units reform", quantity=reformed
            ))

    record = CombatRound(
        round_number=round_number,
        attacker_roll=attacker_roll,
        defender_roll=defender_roll,
        attacker_damage=damage["attacker_damage"],
        defender_damage=damage["defender_damage"],
        attacker_casualties=attacker_casualties,
        defender_casualties=defender_casualties,
        attacker_remaining_hp=_roster_hp(new_attacker),
        defender_remaining_hp=_roster_hp(new_defender),
        events=tuple(events),
    )
    return record, new_attacker, new_defender, reformed


# =============================================================================
# CAPTAINS
# =============================================================================

def death_save_modifiers(
    race: Optional[str],
    captain_class: str,
    skill: str,
    is_defending: bool,
    trigger: str = "army_destroyed",
) -> List[Tuple[str, int]]:
    modifiers = []
    if race in RACE_DEATH_SAVE_MODIFIERS:
        modifiers.append((f"{race} race", RACE_DEATH_SAVE_MODIFIERS[race]))
    if captain_class in CLASS_DEATH_SAVE_MODIFIERS:
        modifiers.append((f"{captain_class} class", CLASS_DEATH_SAVE_MODIFIERS[captain_class]))
    if skill == "fortress" and is_defending:
        modifiers.append(("fortress skill (defending)", 2))
    if skill == "warden":
        modifiers.append(("warden beasts", 2))
    if trigger == "assassination":
        modifiers.append(("assassination", ASSASSINATION_PENALTY))
    elif trigger == "critical_hit":
        modifiers.append(("critical hit", CRITICAL_HIT_PENALTY))
    return modifiers


def death_save(
    rng: SeededRandom,
    race: Optional[str],
    captain_class: str,
    skill: str,
    is_defending: bool = False,
    trigger: str = "army_destroyed",
) -> DeathSave:
    """
    Roll a captain's death save.

    Plain d20 plus modifiers, the modifier total clamped to +/-5; the captain
    survives on a final roll of 10 or more.
    """
    roll = rng.d20()
    modifiers = death_save_modifiers(race, captain_class, skill, is_defending, trigger)
    total = sum(v for _, v in modifiers)
    total = max(-MAX_DEATH_SAVE_MODIFIER, min(MAX_DEATH_SAVE_MODIFIER, total))
    final_roll = roll + total
    return DeathSave(
        roll=roll,
        modifiers=tuple(modifiers),
        total_modifier=total,
        final_roll=final_roll,
        survived=final_roll >= DEATH_SAVE_THRESHOLD,
    )


def _save_trigger(enemy_roll: Optional[int]) -> str:
    return "critical_hit" if enemy_roll == CRITICAL_HIT else "army_destroyed"


def _captain_event(label: str, save: DeathSave) -> CombatEvent:
    if save.survived:
        return CombatEvent("captain_wounded", f"{label} captain wounded (rolled {save.roll}{save.total_modifier:+d})")
    return CombatEvent("captain_died", f"{label} captain died (rolled {save.roll}{save.total_modifier:+d})")


# =============================================================================
# SPOILS
# =============================================================================

def calculate_loot(defender_resources: Dict[str, int], attacker_race: str = None) -> Dict[str, int]:
    """10% of the loser's gold, stone, wood and food, floored; Korrath take 30% more of that."""
    loot = {r: math.floor(defender_resources.get(r, 0) * LOOT_RATE) for r in LOOTABLE_RESOURCES}
    if attacker_race == "korrath":
        loot = {r: math.floor(amount * KORRATH_LOOT_MULTIPLIER) for r, amount in loot.items()}
    return loot


def calculate_prisoners(defender_casualties: int, attacker_race: str = None) -> int:
    rate = KORRATH_PRISONER_RATE if attacker_race == "korrath" else PRISONER_RATE
    return math.floor(defender_casualties * rate)


def determine_result(attacker_units: List[UnitStack], defender_units: List[UnitStack]) -> str:
    attacker_left = _roster_count(attacker_units)
    defender_left = _roster_count(defender_units)
    if attacker_left > defender_left:
        return "attacker_victory"
    if defender_left > attacker_left:
        return "defender_victory"
    return "draw"


# =============================================================================
# COMBAT
# =============================================================================

def resolve_combat(
    attacker: CombatSide,
    defender: CombatSide,
    rng: SeededRandom,
    day: int = 0,
    cell_id: int = None,
    terrain: str = None,
    defender_has_wall: bool = False,
    combat_id: str = None,
    max_rounds: int = MAX_COMBAT_ROUNDS,
) -> CombatRecord:
    """
    Fight up to `max_rounds` rounds and settle captains, loot and prisoners.

    The fight stops as soon as either side has no units left. The side with
    more units remaining wins; equal counts are a draw. A captain whose army
    is wiped out makes a death save. An assassin captain gets one attempt
    per combat at the opposing captain.

    Args:
        attacker: Attacking side
        defender: Defending side (no player_id for Forsaken)
        rng: Random source; the only source of randomness
        day: Simulation day, recorded on the combat
        cell_id: Contested cell
        terrain: Terrain of the contested cell, scales defender DEF
        defender_has_wall: Completed wall on the contested cell
        combat_id: Record id; derived from day and rng when omitted

    Returns:
        Immutable CombatRecord
    """
    validate_roster(attacker.units)
    validate_roster(defender.units)

    if combat_id is None:
        combat_id = f"combat-{day}-{rng.int(0, 99999)}"

    attacker_units = copy_roster(attacker.units)
    defender_units = copy_roster(defender.units)
    rounds: List[CombatRound] = []
    attacker_casualties = 0
    defender_reformed = 0

    for round_number in range(1, max_rounds + 1):
        if _roster_count(attacker_units) == 0 or _roster_count(defender_units) == 0:
            break
        round_record, attacker_units, defender_units, reformed = resolve_round(
            attacker_units, defender_units, rng,
            round_number=round_number,
            attacker_race=attacker.race,
            defender_race=defender.race,
            defender_has_wall=defender_has_wall,
            terrain=terrain,
        )
        rounds.append(round_record)
        attacker_casualties += round_record.attacker_casualties
        defender_reformed += reformed

    # Net losses: reformed Ashborn come back off the tally
    defender_casualties = _roster_count(defender.units) - _roster_count(defender_units)

    result = determine_result(attacker_units, defender_units)
    final_events: List[CombatEvent] = []

    # Captain death saves; a natural 20 on the killing blow makes them harder
    last_round = rounds[-1] if rounds else None
    attacker_trigger = _save_trigger(last_round.defender_roll if last_round else None)
    defender_trigger = _save_trigger(last_round.attacker_roll if last_round else None)
    attacker_save = None
    defender_save = None
    if attacker.captain is not None and attacker.captain.alive and _roster_count(attacker_units) == 0:
        attacker_save = death_save(
            rng, attacker.race, attacker.captain.captain_class, attacker.captain.skill,
            is_defending=False, trigger=attacker_trigger,
        )
        final_events.append(_captain_event("Attacker", attacker_save))
    if defender.captain is not None and defender.captain.alive and _roster_count(defender_units) == 0:
        defender_save = death_save(
            rng, defender.race, defender.captain.captain_class, defender.captain.skill,
            is_defending=True, trigger=defender_trigger,
        )
        final_events.append(_captain_event("Defender", defender_save))

    # Assassination attempts
    for striker, target, label in ((attacker, defender, "Defender"), (defender, attacker, "Attacker")):
        if striker.captain is None or striker.captain.skill != "assassin":
            continue
        if target.captain is None or not target.captain.alive:
            continue
        existing = defender_save if target is defender else attacker_save
        if existing is not None and not existing.survived:
            continue
        if not rng.chance(ASSASSINATION_CHANCE):
            continue
        save = death_save(
            rng, target.race, target.captain.captain_class, target.captain.skill,
            is_defending=target is defender, trigger="assassination",
        )
        final_events.append(CombatEvent("assassination", f"Assassin strikes at the {label.lower()} captain"))
        final_events.append(_captain_event(label, save))
        if target is defender:
            defender_save = save
        else:
            attacker_save = save

    if final_events and rounds:
        last = rounds[-1]
        rounds[-1] = replace(last, events=last.events + tuple(final_events))

    loot: Dict[str, int] = {}
    prisoners = 0
    prisoner_unit_type = None
    # Forsaken garrisons yield neither loot nor prisoners
    if result == "attacker_victory" and defender.player_id is not None:
        loot = calculate_loot(defender.resources, attacker.race)
        prisoners = calculate_prisoners(defender_casualties, attacker.race)
        if prisoners > 0:
            prisoner_unit_type = unit_for_role(defender.race, "defender")

    return CombatRecord(
        id=combat_id,
        day=day,
        cell_id=cell_id,
        attacker_id=attacker.player_id,
        defender_id=defender.player_id,
        attacker_race=attacker.race,
        defender_race=defender.race,
        terrain=terrain,
        defender_has_wall=defender_has_wall,
        attacker_initial=tuple(copy_roster(attacker.units)),
        defender_initial=tuple(copy_roster(defender.units)),
        attacker_final=tuple(attacker_units),
        defender_final=tuple(defender_units),
        rounds=tuple(rounds),
        attacker_casualties=attacker_casualties,
        defender_casualties=defender_casualties,
        attacker_reformed=0,
        defender_reformed=defender_reformed,
        result=result,
        attacker_death_save=attacker_save,
        defender_death_save=defender_save,
        attacker_captain_died=attacker_save is not None and not attacker_save.survived,
        defender_captain_died=defender_save is not None and not defender_save.survived,
        attacker_captain_wounded=attacker_save is not None and attacker_save.survived,
        defender_captain_wounded=defender_save is not None and defender_save.survived,
        loot=loot,
        prisoners_captured=prisoners,
        prisoner_unit_type=prisoner_unit_type,
    )


import json

import pytest

from sim.combat import (
    CombatSide, apply_damage, compute_damage, death_save, death_save_modifiers,
    forsaken_roster, reform_units, resolve_combat, resolve_round, calculate_loot, calculate_prisoners,
)
from sim.errors import ConfigurationError, RosterError
from sim.random_source import SeededRandom
from sim.rules import MAX_COMBAT_ROUNDS
from sim.state import Captain, UnitStack


def _fight(seed, attacker_units, defender_units, **kwargs):
    attacker = CombatSide(units=attacker_units, race="korrath", player_id="a")
    defender = CombatSide(units=defender_units, race="ironveld", player_id="d",
                          resources={"gold": 1000, "stone": 500, "wood": 300, "food": 100})
    return resolve_combat(attacker, defender, SeededRandom(seed), day=3, cell_id=17, combat_id="c-1", **kwargs)


def test_same_seed_byte_identical(stacks):
    a = _fight(42, stacks(warshield=100), stacks(stoneshield=100))
    b = _fight(42, stacks(warshield=100), stacks(stoneshield=100))
    assert json.dumps(a.to_dict(), sort_keys=True) == json.dumps(b.to_dict(), sort_keys=True)


def test_round_cap_and_casualty_bounds(stacks):
    for seed in range(25):
        record = _fight(seed, stacks(warshield=100, rageborn=20), stacks(stoneshield=100))
        assert 1 <= len(record.rounds) <= MAX_COMBAT_ROUNDS
        assert 0 <= record.attacker_casualties <= 120
        assert 0 <= record.defender_casualties <= 100
        assert sum(u.quantity for u in record.attacker_final) == 120 - record.attacker_casualties
        assert sum(u.quantity for u in record.defender_final) == 100 - record.defender_casualties
        for stack in record.attacker_final + record.defender_final:
            assert stack.quantity > 0
            assert 0 <= stack.current_hp <= stack.max_hp


def test_winner_has_more_units(stacks):
    record = _fight(1, stacks(warshield=200), stacks(stoneshield=2))
    assert record.result == "attacker_victory"
    assert record.winner == "attacker"


def test_fight_stops_when_side_destroyed(stacks):
    wiped = 0
    for seed in range(20):
        record = _fight(seed, stacks(rageborn=300), stacks(stoneshield=3))
        for earlier in record.rounds[:-1]:
            assert earlier.attacker_remaining_hp > 0
            assert earlier.defender_remaining_hp > 0
        if not record.defender_final:
            wiped += 1
            assert record.rounds[-1].defender_remaining_hp == 0
    assert wiped > 0


def test_caller_rosters_not_mutated(stacks):
    attacker_units = stacks(warshield=50)
    defender_units = stacks(stoneshield=50)
    before = [u.to_dict() for u in attacker_units + defender_units]
    _fight(5, attacker_units, defender_units)
    assert [u.to_dict() for u in attacker_units + defender_units] == before


@pytest.mark.parametrize("bad", [
    UnitStack("dragon", 5, 100),
    UnitStack("warshield", -1, 0),
    UnitStack("warshield", 5, 201),
    UnitStack("warshield", 5, -1),
])
def test_roster_errors_before_any_roll(stacks, bad):
    rng = SeededRandom(3)
    good = stacks(stoneshield=10)
    with pytest.raises(RosterError):
        resolve_round([bad], good, rng)
    # nothing was drawn from the source
    assert rng.random() == SeededRandom(3).random()
    assert issubclass(RosterError, ConfigurationError)


def test_damage_floor_and_critical_miss(stacks):
    weak = stacks(stoneshield=1)
    strong = stacks(stoneshield=100)
    # a natural 1 may deal nothing
    assert compute_damage(weak, strong, 1, 20)["attacker_damage"] == 0
    # anything else deals at least 1
    assert compute_damage(weak, strong, 2, 20)["attacker_damage"] == 1


def test_race_and_wall_modifiers(stacks):
    attacker = stacks(warshield=10)
    defender = stacks(stoneshield=10)
    plain = compute_damage(attacker, defender, 10, 10)
    korrath = compute_damage(attacker, defender, 10, 10, attacker_race="korrath")
    walled = compute_damage(attacker, defender, 10, 10, defender_has_wall=True)
    assert korrath["attacker_damage"] >= plain["attacker_damage"]
    assert walled["attacker_damage"] <= plain["attacker_damage"]
    assert any(e.type == "special_ability" for e in korrath["events"])
    assert any(e.type == "defend" for e in walled["events"])


def test_pinned_hp_smoothing():
    # 10 warshields (40 hp each) down to 50 hp; 20 damage leaves 30 but no unit dies
    roster = [UnitStack("warshield", 10, 50)]
    new_roster, casualties, losses = apply_damage(roster, 20)
    assert casualties == 0
    assert losses == {}
    assert new_roster[0].quantity == 10
    # lifted back to 10% of 400
    assert new_roster[0].current_hp == 40
    assert roster[0].current_hp == 50


def test_damage_order_front_line_first():
    roster = [UnitStack.full("rageborn", 10), UnitStack.full("warshield", 10)]
    new_roster, casualties, losses = apply_damage(roster, 80)
    assert casualties == 2
    assert losses == {("warshield", False): 2}
    by_type = {s.unit_type: s for s in new_roster}
    assert by_type["rageborn"].quantity == 10


def test_apply_damage_wipes_stack():
    new_roster, casualties, _ = apply_damage([UnitStack.full("warshield", 3)], 10_000)
    assert new_roster == []
    assert casualties == 3


def test_death_save_modifier_clamped():
    # ashborn +2, warlord +2, fortress while defending +2
    modifiers = death_save_modifiers("ashborn", "warlord", "fortress", is_defending=True)
    assert sum(v for _, v in modifiers) == 6
    rng = SeededRandom(8)
    for _ in range(50):
        save = death_save(rng, "ashborn", "warlord", "fortress", is_defending=True)
        assert save.total_modifier == 5
        assert save.final_roll == save.roll + 5
        assert save.survived == (save.final_roll >= 10)


def test_death_save_penalties():
    assassination = death_save_modifiers("korrath", "highpriest", "oracle", False, trigger="assassination")
    critical = death_save_modifiers("korrath", "highpriest", "oracle", False, trigger="critical_hit")
    assert assassination == [("assassination", -3)]
    assert critical == [("critical hit", -1)]


def test_captain_save_when_army_destroyed(stacks):
    attacker = CombatSide(units=stacks(rageborn=500), race="korrath", player_id="a")
    defender = CombatSide(units=stacks(stoneshield=1), race="ironveld", player_id="d",
                          captain=Captain("warlord", "fortress"))
    for seed in range(20):
        record = resolve_combat(attacker, defender, SeededRandom(seed))
        if not record.defender_final:
            assert record.defender_death_save is not None
            assert record.defender_captain_died != record.defender_captain_wounded
            return
    pytest.fail("defender was never wiped out")


def test_forsaken_roster():
    roster = forsaken_roster(100)
    assert {s.unit_type: s.quantity for s in roster} == {"warshield": 7, "rageborn": 4}
    assert all(s.current_hp == s.max_hp for s in roster)
    # minimum of five units
    assert sum(s.quantity for s in forsaken_roster(1)) == 5


def test_no_loot_from_forsaken(stacks):
    attacker = CombatSide(units=stacks(rageborn=300), race="korrath", player_id="a")
    defender = CombatSide(units=forsaken_roster(50))
    record = resolve_combat(attacker, defender, SeededRandom(2))
    assert record.defender_id is None
    assert record.loot == {}


def test_no_prisoners_from_forsaken(stacks):
    attacker = CombatSide(units=stacks(rageborn=300), race="korrath", player_id="a")
    victories = 0
    for seed in range(10):
        record = resolve_combat(attacker, CombatSide(units=forsaken_roster(200)), SeededRandom(seed))
        if record.result == "attacker_victory":
            victories += 1
            assert record.defender_casualties > 0
            assert record.prisoners_captured == 0
            assert record.prisoner_unit_type is None
    assert victories > 0


def test_loot_and_prisoner_rates():
    loot = calculate_loot({"gold": 1000, "stone": 55, "wood": 0, "food": 9, "mana": 500})
    assert loot == {"gold": 100, "stone": 5, "wood": 0, "food": 0}
    assert calculate_loot({"gold": 1000}, "korrath")["gold"] == 130
    # base loot is floored before the korrath bonus: floor(10 * 1.3)
    assert calculate_loot({"gold": 109}, "korrath")["gold"] == 13
    assert calculate_loot({"stone": 9}, "korrath")["stone"] == 0
    assert calculate_prisoners(100) == 5
    assert calculate_prisoners(100, "korrath") == 10


# =============================================================================
# ASHBORN REFORMATION
# =============================================================================

class _AlwaysReform:
    """Random source stand-in: every chance succeeds, every draw is high."""

    def chance(self, probability):
        return True

    def random(self):
        return 0.99


def test_reform_returns_units_to_heaviest_loss():
    roster = [UnitStack.full("cinderguard", 5), UnitStack.full("ashstriker", 4)]
    losses = {("cinderguard", False): 8, ("ashstriker", False): 2}
    reformed = reform_units(roster, losses, 10, _AlwaysReform())
    # floor(10 * 0.25 * 0.99)
    assert reformed == 2
    assert roster[0].quantity == 7
    assert roster[0].current_hp == 5 * 45
    assert roster[1].quantity == 4


def test_reform_revives_a_wiped_stack_at_hp_floor():
    roster = []
    reformed = reform_units(roster, {("cinderguard", False): 12}, 12, _AlwaysReform())
    assert reformed == 2
    assert roster == [UnitStack("cinderguard", 2, 2 * 45 * 0.1)]


def test_ashborn_defender_casualties_are_net_of_reformation(stacks):
    reformations = 0
    for seed in range(200):
        attacker = CombatSide(units=stacks(warshield=30), race="korrath", player_id="a")
        defender = CombatSide(units=stacks(cinderguard=20), race="ashborn", player_id="d")
        record = resolve_combat(attacker, defender, SeededRandom(seed))
        remaining = sum(u.quantity for u in record.defender_final)
        assert remaining <= 20
        assert record.defender_casualties == 20 - remaining
        for round_record in record.rounds:
            reformed = sum(e.quantity or 0 for e in round_record.events if e.type == "reformation")
            assert reformed <= round_record.defender_casualties
        if record.defender_reformed:
            reformations += 1
            gross = sum(r.defender_casualties for r in record.rounds)
            assert record.defender_casualties == gross - record.defender_reformed
    assert reformations > 0


def test_only_ashborn_reform(stacks):
    for seed in range(50):
        attacker = CombatSide(units=stacks(warshield=30), race="korrath", player_id="a")
        defender = CombatSide(units=stacks(warshield=20), race="korrath", player_id="d")
        assert resolve_combat(attacker, defender, SeededRandom(seed)).defender_reformed == 0


# =============================================================================
# ASSASSINATION
# =============================================================================

def _final_event_types(record):
    return [e.type for e in record.rounds[-1].events]


def _duel(seed, attacker_captain, defender_captain, stacks, attacker_units=None, defender_units=None):
    attacker = CombatSide(units=attacker_units or stacks(warshield=50), race="korrath",
                          player_id="a", captain=attacker_captain)
    defender = CombatSide(units=defender_units or stacks(stoneshield=50), race="ironveld",
                          player_id="d", captain=defender_captain)
    return resolve_combat(attacker, defender, SeededRandom(seed))


def test_attacking_assassin_strikes_defender_captain(stacks):
    strikes = 0
    for seed in range(200):
        record = _duel(seed, Captain("shadowmaster", "assassin"), Captain("warlord", "vanguard"), stacks)
        if "assassination" in _final_event_types(record):
            strikes += 1
            assert ("assassination", -3) in record.defender_death_save.modifiers
    assert strikes > 0


def test_defending_assassin_strikes_attacker_captain(stacks):
    strikes = 0
    for seed in range(200):
        record = _duel(seed, Captain("warlord", "vanguard"), Captain("shadowmaster", "assassin"), stacks)
        if "assassination" in _final_event_types(record):
            strikes += 1
            assert ("assassination", -3) in record.attacker_death_save.modifiers
    assert strikes > 0


def test_no_assassination_of_a_dead_captain(stacks):
    for seed in range(200):
        fallen = Captain("warlord", "vanguard", alive=False)
        record = _duel(seed, Captain("shadowmaster", "assassin"), fallen, stacks)
        assert "assassination" not in _final_event_types(record)
        assert record.defender_death_save is None


def test_no_assassination_after_a_failed_save(stacks):
    failed = 0
    for seed in range(200):
        record = _duel(seed, Captain("shadowmaster", "assassin"), Captain("highpriest", "oracle"), stacks,
                       attacker_units=stacks(rageborn=500), defender_units=stacks(stoneshield=1))
        types = _final_event_types(record)
        captain_events = [t for t in types if t in ("captain_wounded", "captain_died")]
        if captain_events and captain_events[0] == "captain_died":
            failed += 1
            assert "assassination" not in types
            assert record.defender_captain_died
    assert failed > 0

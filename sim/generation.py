"""
Generation Orchestrator.

Runs one complete generation: builds the world, seats the players, steps the
day loop (economy, starvation, construction, one agent action per player,
heartbeat, eliminations) and returns an immutable GenerationSummary.

The engine owns every mutation; agents only read a PlayerView and the
combat resolver only returns a record, which is committed here.
"""

import math
from typing import Dict, List, Optional, Tuple

from ai.policies import decide, expansion_cost
from ai.schema import ActionType, AgentAction, PlayerView, PHASE_PLANNING, PHASE_ACTIVE, PHASE_ENDGAME
from sim.combat import CombatSide, forsaken_roster, resolve_combat
from sim.economy import (
    available_units, affordable_quantity, build_days, building_cost, calculate_score,
    can_afford, can_build, deduct_resources, process_daily_tick, unit_cost,
)
from sim.errors import PlacementError
from sim.random_source import SeededRandom
from sim.rules import (
    RACES, CAPTAIN_CLASSES, CAPTAIN_SKILLS, ENTRY_TIERS, PREMIUM_CHANCE, PREMIUM_EXTRA_PLOTS,
    STARTING_ARMY_SIZE, PLANNING_DAYS, ENDGAME_DAYS, HEARTBEAT_INTERVAL_DAYS,
    GARRISON_BASE, GARRISON_BUILDING_BONUS, GARRISON_RACE_MULTIPLIER,
    MORALE_EFFECTS, STARVATION_MORALE_LOSS, STARVATION_DESERTION, WOUND_RECOVERY_DAYS,
    unit_for_role,
)
from sim.state import (
    Army, Building, Captain, CombatRecord, GenerationEvent, GenerationSummary,
    PlayerEndState, SimPlayer, UnitStack, WorldCell,
)
from sim.world import WorldMap


# Share of the main army sent on an attack: (base, per-territory reduction, floor)
ATTACK_RATIOS = {
    "aggressive": (0.7, 0.02, 0.5),
    "defensive": (0.4, 0.02, 0.25),
    "balanced": (0.55, 0.015, 0.4),
}
DEFAULT_ATTACK_RATIO = (0.5, 0.015, 0.35)

DEFENSE_SHARE_MIN = 0.15
DEFENSE_SHARE_MAX = 0.6
MAJOR_RESULT_LOSS = 0.5
HP_FLOOR_RATIO = 0.1

StackKey = Tuple[str, bool]


# =============================================================================
# HELPERS
# =============================================================================

def get_phase(day: int, days: int) -> str:
    if day <= PLANNING_DAYS:
        return PHASE_PLANNING
    if day > days - ENDGAME_DAYS:
        return PHASE_ENDGAME
    return PHASE_ACTIVE


def is_eliminated(player: SimPlayer) -> bool:
    """A player is out once they hold no land, or lost their captain and every unit."""
    if not player.territories:
        return True
    return not player.captain_alive and player.total_units == 0


def attack_ratio(agent_type: str, territory_count: int) -> float:
    base, step, floor = ATTACK_RATIOS.get(agent_type, DEFAULT_ATTACK_RATIO)
    return max(floor, base - max(1, territory_count) * step)


def defense_share(territory_count: int) -> float:
    """Larger empires spread their army thinner."""
    return max(DEFENSE_SHARE_MIN, min(DEFENSE_SHARE_MAX, 1.0 / math.sqrt(max(1, territory_count))))


def garrison_units(player: SimPlayer, cell: WorldCell) -> List[UnitStack]:
    """Local militia of the cell's zone, boosted by completed buildings and race."""
    size = GARRISON_BASE[cell.zone]
    for building_type, bonus in GARRISON_BUILDING_BONUS.items():
        if cell.has_building(building_type):
            size += bonus
    mult = GARRISON_RACE_MULTIPLIER.get(player.race)
    if mult:
        size = math.floor(size * mult)
    return [UnitStack.full(unit_for_role(player.race, "defender"), size)]


def portion(units: List[UnitStack], ratio: float) -> List[UnitStack]:
    """Take floor(ratio) of every stack, hit points scaled the same way."""
    result = []
    for stack in units:
        quantity = math.floor(stack.quantity * ratio)
        if quantity <= 0:
            continue
        hp = min(math.floor(stack.current_hp * ratio), quantity * stack.hp_per_unit)
        result.append(UnitStack(stack.unit_type, quantity, hp, stack.is_prisoner, stack.original_race))
    return result


def aggregate(units) -> Dict[StackKey, List[float]]:
    totals: Dict[StackKey, List[float]] = {}
    for stack in units:
        entry = totals.setdefault((stack.unit_type, stack.is_prisoner), [0, 0.0])
        entry[0] += stack.quantity
        entry[1] += stack.current_hp
    return totals


def merge_rosters(*rosters: List[UnitStack]) -> List[UnitStack]:
    merged: List[UnitStack] = []
    for roster in rosters:
        for stack in roster:
            existing = next(
                (m for m in merged if m.unit_type == stack.unit_type and m.is_prisoner == stack.is_prisoner),
                None,
            )
            if existing is None:
                merged.append(stack.copy())
            else:
                existing.quantity += stack.quantity
                existing.current_hp += stack.current_hp
    return merged


def clamp_stack_hp(stack: UnitStack):
    """Keep hit points inside [10% of max, max]; empty stacks hold none."""
    if stack.quantity <= 0:
        stack.quantity = 0
        stack.current_hp = 0
        return
    cap = stack.quantity * stack.hp_per_unit
    stack.current_hp = max(cap * HP_FLOOR_RATIO, min(stack.current_hp, cap))


def clamp_morale(value: int) -> int:
    return max(0, min(100, value))


# =============================================================================
# ENGINE
# =============================================================================

class GenerationEngine:
    """
    Runs generations for one configuration.

    Args:
        config: SimulationConfig (players, days, agent_distribution,
            map_size, forsaken_coverage, verbose, seed)
        rng: Random source; built from config.seed when omitted
        logger: Optional SimulationLogger receiving combats and summaries
    """

    def __init__(self, config, rng: SeededRandom = None, logger=None):
        self.config = config
        self.rng = rng if rng is not None else SeededRandom(config.seed)
        self.logger = logger

        self.world: Optional[WorldMap] = None
        self.players: Dict[str, SimPlayer] = {}
        self.order: List[str] = []
        self.combats: List[CombatRecord] = []
        self.events: List[GenerationEvent] = []
        self.generation_id = 0
        self.day = 0
        self.phase = PHASE_PLANNING

    # =========================================================================
    # SETUP
    # =========================================================================

    def _emit(self, event_type: str, player_id: str = None, **data):
        self.events.append(GenerationEvent(self.day, event_type, player_id, data))

    def _roll_player_specs(self) -> List[Tuple[str, str, str, str, bool]]:
        agent_types = list(self.config.agent_distribution.keys())
        weights = [self.config.agent_distribution[a] for a in agent_types]
        specs = []
        for _ in range(self.config.players):
            agent_type = self.rng.weighted_pick(agent_types, weights)
            race = self.rng.pick(RACES)
            captain_class = self.rng.pick(CAPTAIN_CLASSES)
            skill = self.rng.pick(CAPTAIN_SKILLS[captain_class])
            premium = self.rng.chance(PREMIUM_CHANCE)
            specs.append((agent_type, race, captain_class, skill, premium))
        return specs

    def setup(self):
        """
        Build the world and seat every player.

        Raises:
            PlacementError: starting clusters could not be filled; no player
                exists yet when this is raised
        """
        self.world = WorldMap(self.rng, self.config.map_size)
        self.world.generate()
        self.world.spawn_forsaken(self.config.forsaken_coverage)

        self.players = {}
        self.order = []
        self.combats = []
        self.events = []
        self.day = 0
        self.phase = PHASE_PLANNING

        specs = self._roll_player_specs()
        try:
            positions = self.world.find_starting_positions(len(specs), ENTRY_TIERS["free"]["plots"])
        except PlacementError as e:
            self._emit("placement_failed", player_index=e.player_index, placed=e.placed)
            raise

        for i, ((agent_type, race, captain_class, skill, premium), cell_ids) in enumerate(zip(specs, positions)):
            tier = ENTRY_TIERS["premium" if premium else "free"]
            player = SimPlayer(
                id=f"player-{i}",
                race=race,
                captain=Captain(captain_class, skill),
                agent_type=agent_type,
                resources=dict(tier["resources"]),
                is_premium=premium,
                joined_day=1,
            )
            self.players[player.id] = player
            self.order.append(player.id)

            for cell_id in cell_ids:
                self._claim(player, self.world.get(cell_id))
            if premium:
                self._claim_extra_plots(player, PREMIUM_EXTRA_PLOTS)

            army = Army(id=f"army-{player.id}-0", owner_id=player.id, cell_id=cell_ids[0], has_captain=True)
            army.add_units(unit_for_role(race, "defender"), STARTING_ARMY_SIZE)
            player.armies.append(army)

            self._emit("player_joined", player.id, race=race, captain_class=captain_class,
                       skill=skill, agent_type=agent_type, is_premium=premium)

    def _claim(self, player: SimPlayer, cell: WorldCell):
        self.world.claim(cell, player.id)
        player.territories.add(cell.id)

    def _claim_extra_plots(self, player: SimPlayer, count: int):
        """Grow outward from the starting cluster over free, non-Forsaken cells."""
        claimed = 0
        frontier = sorted(player.territories)
        while frontier and claimed < count:
            cell = self.world.get(frontier.pop(0))
            for neighbor in self.world.adjacent(cell):
                if claimed >= count:
                    break
                if neighbor.owner_id is None and not neighbor.is_forsaken:
                    self._claim(player, neighbor)
                    frontier.append(neighbor.id)
                    claimed += 1

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    def live_players(self) -> List[SimPlayer]:
        return [self.players[pid] for pid in self.order if not self.players[pid].is_eliminated]

    def run(self, generation_id: int = 0) -> GenerationSummary:
        """Play one generation to the last day or until one player remains."""
        self.generation_id = generation_id
        if self.config.verbose:
            print(f"\n=== Generation {generation_id} ===")
        if self.logger is not None:
            self.logger.start_generation(generation_id, self.rng.seed, self.config.to_dict())

        self.setup()
        eliminations_by_day: List[int] = []
        eliminated = 0

        for day in range(1, self.config.days + 1):
            self.day = day
            phase = get_phase(day, self.config.days)
            if phase != self.phase:
                self._emit("generation_phase_change", previous=self.phase, phase=phase)
                self.phase = phase

            for player in self.live_players():
                self.process_player_day(player)

            if day % HEARTBEAT_INTERVAL_DAYS == 0:
                spawned = self.world.heartbeat(day)
                self._emit("forsaken_spawned", count=spawned)

            eliminated += self.check_eliminations()
            eliminations_by_day.append(eliminated)

            if len(self.live_players()) <= 1:
                if self.config.verbose:
                    print(f"  Generation ended early on day {day}")
                break

        summary = self.summarize(eliminations_by_day)
        if self.config.verbose:
            winner = summary.winner
            if winner is not None:
                print(f"  Winner: {winner.id} ({winner.race}/{winner.captain_class}, "
                      f"{winner.agent_type}) score {winner.score}")
            else:
                print("  No winner")
        if self.logger is not None:
            self.logger.end_generation(summary)
        return summary

    def process_player_day(self, player: SimPlayer):
        cells = self.world.cells_owned_by(player.id)
        process_daily_tick(player, cells)
        if player.resources["food"] < 0:
            self.starve(player)
        self.complete_buildings(player, cells)

        view = PlayerView(player, cells, self.day, self.phase, self.world, self.players)
        action = decide(view, self.rng)
        self.apply_action(player, action)

        player.score = calculate_score(player, self.world.cells_owned_by(player.id))

    def starve(self, player: SimPlayer):
        """Out of food: morale drops and a tenth of every stack deserts."""
        player.morale = clamp_morale(player.morale - STARVATION_MORALE_LOSS)
        deserted = 0
        for army in player.armies:
            for stack in army.units:
                lost = min(stack.quantity, math.ceil(stack.quantity * STARVATION_DESERTION))
                stack.quantity -= lost
                deserted += lost
                clamp_stack_hp(stack)
            army.prune()
        player.total_deaths += deserted
        player.resources["food"] = 0
        self._emit("starvation", player.id, deserted=deserted)

    def complete_buildings(self, player: SimPlayer, cells: List[WorldCell]):
        for cell in cells:
            for building in cell.buildings:
                if not building.completed and building.completion_day <= self.day:
                    building.completed = True
                    self._emit("building_completed", player.id, cell_id=cell.id, building_type=building.type)

    def check_eliminations(self) -> int:
        newly = 0
        for player in self.live_players():
            if not is_eliminated(player):
                continue
            player.is_eliminated = True
            player.eliminated_day = self.day
            reason = "no_territories" if not player.territories else "army_destroyed"
            for cell_id in sorted(player.territories):
                self.world.release(self.world.get(cell_id))
            player.territories.clear()
            self._emit("player_eliminated", player.id, reason=reason)
            newly += 1
        return newly

    def determine_winner(self) -> Optional[SimPlayer]:
        survivors = self.live_players()
        if not survivors:
            return None
        best = survivors[0]
        for player in survivors[1:]:
            if player.score > best.score:
                best = player
        return best

    def summarize(self, eliminations_by_day: List[int]) -> GenerationSummary:
        winner = self.determine_winner()
        players = []
        for pid in self.order:
            player = self.players[pid]
            counts: Dict[str, int] = {}
            for cell in self.world.cells_owned_by(pid):
                for building in cell.buildings:
                    if building.completed:
                        counts[building.type] = counts.get(building.type, 0) + 1
            players.append(PlayerEndState.from_player(player, counts))

        return GenerationSummary(
            generation_id=self.generation_id,
            seed=self.rng.seed,
            final_day=self.day,
            players=tuple(players),
            combats=tuple(self.combats),
            events=tuple(self.events),
            winner_id=winner.id if winner is not None else None,
            eliminations_by_day=tuple(eliminations_by_day),
        )

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def apply_action(self, player: SimPlayer, action: AgentAction) -> bool:
        """Carry out an action; returns False when the rules reject it."""
        handlers = {
            ActionType.BUILD: self._do_build,
            ActionType.TRAIN: self._do_train,
            ActionType.ATTACK: self._do_attack,
            ActionType.MOVE: self._do_relocate,
            ActionType.DEFEND: self._do_relocate,
            ActionType.EXPAND: self._do_expand,
            ActionType.UPGRADE: self._do_upgrade,
        }
        handler = handlers.get(action.type)
        if handler is None:
            return action.type == ActionType.WAIT
        return handler(player, action)

    def _owned_cell(self, player: SimPlayer, cell_id: Optional[int]) -> Optional[WorldCell]:
        if cell_id is None or cell_id not in player.territories:
            return None
        return self.world.get(cell_id)

    def _do_build(self, player: SimPlayer, action: AgentAction) -> bool:
        cell = self._owned_cell(player, action.cell_id)
        if cell is None or not action.building_type:
            return False
        allowed, _ = can_build(player, cell, action.building_type)
        if not allowed:
            return False
        deduct_resources(player.resources, building_cost(player.race, action.building_type))
        cell.buildings.append(Building(
            type=action.building_type,
            cell_id=cell.id,
            completed=False,
            completion_day=self.day + build_days(action.building_type, player.captain_skill),
        ))
        return True

    def _do_train(self, player: SimPlayer, action: AgentAction) -> bool:
        cells = self.world.cells_owned_by(player.id)
        if action.unit_type not in available_units(player, cells):
            return False
        quantity = affordable_quantity(player, action.unit_type, action.quantity)
        if quantity <= 0:
            return False
        deduct_resources(player.resources, unit_cost(action.unit_type, quantity))

        army = player.main_army
        if army is None:
            army = Army(
                id=f"army-{player.id}-{len(player.armies)}",
                owner_id=player.id,
                cell_id=min(player.territories),
                has_captain=player.captain_alive,
            )
            player.armies.append(army)
        army.add_units(action.unit_type, quantity)
        return True

    def _do_relocate(self, player: SimPlayer, action: AgentAction) -> bool:
        cell = self._owned_cell(player, action.cell_id)
        army = player.main_army
        if cell is None or army is None:
            return False
        army.cell_id = cell.id
        return True

    def _do_expand(self, player: SimPlayer, action: AgentAction) -> bool:
        if action.cell_id is None:
            return False
        cell = self.world.get(action.cell_id)
        if cell.owner_id is not None or cell.is_forsaken:
            return False
        if not any(self.world.are_adjacent(cell, self.world.get(c)) for c in player.territories):
            return False
        cost = {"gold": expansion_cost(cell)}
        if not can_afford(player.resources, cost):
            return False
        deduct_resources(player.resources, cost)
        self._claim(player, cell)
        self._emit("territory_claimed", player.id, cell_id=cell.id, by="expand")
        return True

    def _do_upgrade(self, player: SimPlayer, action: AgentAction) -> bool:
        """Free a prisoner stack for half its training cost."""
        army = player.main_army
        if army is None or not action.unit_type:
            return False
        stack = army.stack_for(action.unit_type, is_prisoner=True)
        if stack is None or stack.quantity <= 0:
            return False
        cost = {k: v // 2 for k, v in unit_cost(stack.unit_type, stack.quantity).items()}
        if not can_afford(player.resources, cost):
            return False
        deduct_resources(player.resources, cost)

        regular = army.stack_for(stack.unit_type, is_prisoner=False)
        if regular is None:
            stack.is_prisoner = False
            stack.original_race = None
        else:
            regular.quantity += stack.quantity
            regular.current_hp += stack.current_hp
            stack.quantity = 0
            army.prune()
        return True

    # =========================================================================
    # ATTACKS
    # =========================================================================

    def _do_attack(self, player: SimPlayer, action: AgentAction) -> bool:
        if self.phase == PHASE_PLANNING or action.cell_id is None:
            return False
        target = self.world.get(action.cell_id)
        if target.owner_id == player.id:
            return False
        if not any(self.world.are_adjacent(target, self.world.get(c)) for c in player.territories):
            return False
        army = player.main_army
        if army is None or army.total_units == 0:
            return False

        defender: Optional[SimPlayer] = None
        if target.is_forsaken:
            defender_side = CombatSide(units=forsaken_roster(target.forsaken_strength))
            garrison: List[UnitStack] = []
            contribution: List[UnitStack] = []
            has_wall = False
        elif target.owner_id is not None:
            defender = self.players.get(target.owner_id)
            if defender is None or defender.is_eliminated:
                return False
            garrison = garrison_units(defender, target)
            contribution = []
            defending_army = defender.main_army
            if defending_army is not None and defending_army.total_units > 0:
                share = 1.0 if defending_army.cell_id == target.id else defense_share(len(defender.territories))
                contribution = portion(defending_army.units, share)
            captain = None
            if contribution and defending_army.has_captain and defender.captain_alive:
                captain = defender.captain
            defender_side = CombatSide(
                units=merge_rosters(garrison, contribution),
                race=defender.race,
                player_id=defender.id,
                captain=captain,
                resources=dict(defender.resources),
            )
            has_wall = target.has_building("wall")
        else:
            return False

        committed = portion(army.units, attack_ratio(player.agent_type, len(player.territories)))
        if not committed:
            return False
        attacker_captain = None
        if army.has_captain and player.captain_alive and not player.captain.is_wounded(self.day):
            attacker_captain = player.captain
        attacker_side = CombatSide(
            units=committed,
            race=player.race,
            player_id=player.id,
            captain=attacker_captain,
            resources=dict(player.resources),
        )

        record = resolve_combat(
            attacker_side, defender_side, self.rng,
            day=self.day,
            cell_id=target.id,
            terrain=target.terrain,
            defender_has_wall=has_wall,
            combat_id=f"combat-{self.generation_id}-{self.day}-{len(self.combats)}",
        )
        self.commit_combat(player, army, defender, target, record, garrison, contribution)
        return True

    def commit_combat(self, attacker: SimPlayer, army: Army, defender: Optional[SimPlayer],
                      target: WorldCell, record: CombatRecord,
                      garrison: List[UnitStack], contribution: List[UnitStack]):
        """Write a finished combat back into the players and the world."""
        self._write_back_attacker(army, record)
        if defender is not None and defender.main_army is not None and contribution:
            self._write_back_defender(defender.main_army, record, garrison)

        attacker.total_kills += record.defender_casualties
        attacker.total_deaths += record.attacker_casualties
        if defender is not None:
            defender.total_kills += record.attacker_casualties
            defender.total_deaths += record.defender_casualties

        self._settle_captain(attacker, record.attacker_captain_died, record.attacker_captain_wounded)
        if defender is not None:
            self._settle_captain(defender, record.defender_captain_died, record.defender_captain_wounded)

        self._apply_morale(attacker, defender, record)

        if record.result == "attacker_victory":
            attacker.battles_won += 1
            if defender is not None:
                defender.battles_lost += 1
                self._transfer_territory(attacker, defender, target)
                self._move_loot(attacker, defender, record.loot)
            else:
                self._claim(attacker, target)
                self._emit("territory_claimed", attacker.id, cell_id=target.id, by="conquest")
            if record.prisoners_captured > 0 and record.prisoner_unit_type:
                army.add_units(record.prisoner_unit_type, record.prisoners_captured,
                               is_prisoner=True, original_race=record.defender_race)
        else:
            attacker.battles_lost += 1
            if defender is not None:
                defender.battles_won += 1

        self.combats.append(record)
        self._emit("combat", attacker.id, combat_id=record.id, result=record.result,
                   cell_id=target.id, defender_id=record.defender_id)
        if self.logger is not None:
            self.logger.log_combat(record)

    def _write_back_attacker(self, army: Army, record: CombatRecord):
        committed = aggregate(record.attacker_initial)
        survived = aggregate(record.attacker_final)
        for key, (sent_qty, sent_hp) in committed.items():
            stack = army.stack_for(*key)
            if stack is None:
                continue
            back_qty, back_hp = survived.get(key, (0, 0.0))
            stack.quantity -= sent_qty - min(back_qty, sent_qty)
            stack.current_hp = stack.current_hp - sent_hp + back_hp
            clamp_stack_hp(stack)
        army.prune()

    def _write_back_defender(self, army: Army, record: CombatRecord, garrison: List[UnitStack]):
        """Militia absorbs losses first; whatever is left comes out of the main army."""
        initial = aggregate(record.defender_initial)
        final = aggregate(record.defender_final)
        militia = aggregate(garrison)
        for key, (start_qty, _) in initial.items():
            lost = max(0, start_qty - final.get(key, (0, 0.0))[0])
            lost -= militia.get(key, (0, 0.0))[0]
            stack = army.stack_for(*key)
            if lost <= 0 or stack is None:
                continue
            lost = min(lost, stack.quantity)
            stack.quantity -= lost
            stack.current_hp -= lost * stack.hp_per_unit
            clamp_stack_hp(stack)
        army.prune()

    def _settle_captain(self, player: SimPlayer, died: bool, wounded: bool):
        if died:
            player.captain.alive = False
            for army in player.armies:
                army.has_captain = False
            player.morale = clamp_morale(player.morale + MORALE_EFFECTS["captain_death"])
            self._emit("captain_died", player.id)
        elif wounded:
            player.captain.wounded_until_day = self.day + 1 + WOUND_RECOVERY_DAYS
            self._emit("captain_wounded", player.id, until_day=player.captain.wounded_until_day)

    def _apply_morale(self, attacker: SimPlayer, defender: Optional[SimPlayer], record: CombatRecord):
        if record.result == "draw":
            attacker.morale = clamp_morale(attacker.morale + MORALE_EFFECTS["draw"])
            if defender is not None:
                defender.morale = clamp_morale(defender.morale + MORALE_EFFECTS["draw"])
            return

        if record.result == "attacker_victory":
            winner, loser = attacker, defender
            loser_initial = sum(u.quantity for u in record.defender_initial)
            loser_lost = record.defender_casualties
        else:
            winner, loser = defender, attacker
            loser_initial = sum(u.quantity for u in record.attacker_initial)
            loser_lost = record.attacker_casualties

        major = loser_initial > 0 and loser_lost / loser_initial >= MAJOR_RESULT_LOSS
        if winner is not None:
            key = "major_victory" if major else "minor_victory"
            winner.morale = clamp_morale(winner.morale + MORALE_EFFECTS[key])
        if loser is not None:
            key = "major_defeat" if major else "minor_defeat"
            loser.morale = clamp_morale(loser.morale + MORALE_EFFECTS[key])

    def _transfer_territory(self, attacker: SimPlayer, defender: SimPlayer, target: WorldCell):
        defender.territories.discard(target.id)
        self._claim(attacker, target)
        for army in defender.armies:
            if army.cell_id == target.id:
                army.cell_id = min(defender.territories) if defender.territories else None
        self._emit("territory_lost", defender.id, cell_id=target.id, to=attacker.id)
        self._emit("territory_claimed", attacker.id, cell_id=target.id, by="conquest")

    def _move_loot(self, attacker: SimPlayer, defender: SimPlayer, loot: Dict[str, int]):
        for resource, amount in loot.items():
            taken = max(0, min(amount, defender.resources.get(resource, 0)))
            defender.resources[resource] = defender.resources.get(resource, 0) - taken
            attacker.resources[resource] = attacker.resources.get(resource, 0) + taken

"""
Pure Python Simulation State Containers.

Dataclasses for world cells, armies, simulated players, combat records and
generation summaries. Everything here serializes through to_dict/from_dict
so records can be logged as JSONL and shipped between worker processes.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple, Any

from sim.rules import (
    AGENT_TYPES, RESOURCE_TYPES, UNIT_DEFINITIONS,
    validate_captain, validate_race,
)
from sim.errors import ConfigurationError


def empty_resources() -> Dict[str, int]:
    return {r: 0 for r in RESOURCE_TYPES}


# =============================================================================
# UNITS / ARMIES
# =============================================================================

@dataclass
class UnitStack:
    """A group of identical units sharing an aggregate hit point pool."""
    unit_type: str
    quantity: int = 0
    current_hp: float = 0
    is_prisoner: bool = False
    original_race: Optional[str] = None

    @classmethod
    def full(cls, unit_type: str, quantity: int, **kwargs) -> "UnitStack":
        """Stack at full health."""
        hp = UNIT_DEFINITIONS[unit_type]["hp"]
        return cls(unit_type=unit_type, quantity=quantity, current_hp=hp * quantity, **kwargs)

    @property
    def hp_per_unit(self) -> int:
        return UNIT_DEFINITIONS[self.unit_type]["hp"]

    @property
    def max_hp(self) -> float:
        return self.quantity * self.hp_per_unit

    @property
    def role(self) -> str:
        return UNIT_DEFINITIONS[self.unit_type]["role"]

    def copy(self) -> "UnitStack":
        return UnitStack(
            unit_type=self.unit_type,
            quantity=self.quantity,
            current_hp=self.current_hp,
            is_prisoner=self.is_prisoner,
            original_race=self.original_race,
        )

    def to_dict(self) -> Dict:
        return {
            "unit_type": self.unit_type,
            "quantity": self.quantity,
            "current_hp": self.current_hp,
            "is_prisoner": self.is_prisoner,
            "original_race": self.original_race,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "UnitStack":
        return cls(
            unit_type=d["unit_type"],
            quantity=int(d.get("quantity", 0)),
            current_hp=d.get("current_hp", 0),
            is_prisoner=bool(d.get("is_prisoner", False)),
            original_race=d.get("original_race"),
        )


@dataclass
class Army:
    """Unit stacks owned by one player and standing on one cell."""
    id: str
    owner_id: Optional[str] = None
    cell_id: Optional[int] = None
    units: List[UnitStack] = field(default_factory=list)
    has_captain: bool = False

    @property
    def total_units(self) -> int:
        return sum(u.quantity for u in self.units)

    @property
    def total_hp(self) -> float:
        return sum(u.current_hp for u in self.units)

    @property
    def total_strength(self) -> float:
        """ATK weighted by remaining health; always derived, never stored."""
        strength = 0.0
        for unit in self.units:
            if unit.quantity <= 0:
                continue
            atk = UNIT_DEFINITIONS[unit.unit_type]["atk"]
            strength += atk * unit.quantity * (unit.current_hp / unit.max_hp)
        return strength

    @property
    def total_food(self) -> int:
        return sum(UNIT_DEFINITIONS[u.unit_type]["food"] * u.quantity for u in self.units)

    def stack_for(self, unit_type: str, is_prisoner: bool = False) -> Optional[UnitStack]:
        for unit in self.units:
            if unit.unit_type == unit_type and unit.is_prisoner == is_prisoner:
                return unit
        return None

    def add_units(self, unit_type: str, quantity: int, is_prisoner: bool = False,
                  original_race: str = None):
        """Merge fresh full-health units into the matching stack."""
        if quantity <= 0:
            return
        hp = UNIT_DEFINITIONS[unit_type]["hp"]
        stack = self.stack_for(unit_type, is_prisoner)
        if stack is None:
            self.units.append(UnitStack.full(
                unit_type, quantity, is_prisoner=is_prisoner, original_race=original_race
            ))
        else:
            stack.quantity += quantity
            stack.current_hp += hp * quantity

    def prune(self):
        self.units = [u for u in self.units if u.quantity > 0]

    def copy(self) -> "Army":
        return Army(
            id=self.id,
            owner_id=self.owner_id,
            cell_id=self.cell_id,
            units=[u.copy() for u in self.units],
            has_captain=self.has_captain,
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "cell_id": self.cell_id,
            "units": [u.to_dict() for u in self.units],
            "has_captain": self.has_captain,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Army":
        return cls(
            id=d["id"],
            owner_id=d.get("owner_id"),
            cell_id=d.get("cell_id"),
            units=[UnitStack.from_dict(u) for u in d.get("units", [])],
            has_captain=bool(d.get("has_captain", False)),
        )


# =============================================================================
# WORLD
# =============================================================================

@dataclass
class Building:
    type: str
    cell_id: int
    completed: bool = False
    completion_day: int = 0

    def to_dict(self) -> Dict:
        return {
            "type": self.type,
            "cell_id": self.cell_id,
            "completed": self.completed,
            "completion_day": self.completion_day,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Building":
        return cls(
            type=d["type"],
            cell_id=int(d["cell_id"]),
            completed=bool(d.get("completed", False)),
            completion_day=int(d.get("completion_day", 0)),
        )


@dataclass
class WorldCell:
    """One grid cell; coordinates, zone and terrain are fixed at generation."""
    id: int
    x: int
    y: int
    zone: str
    terrain: str
    owner_id: Optional[str] = None
    is_forsaken: bool = False
    forsaken_strength: int = 0
    buildings: List[Building] = field(default_factory=list)
    garrison_army_id: Optional[str] = None

    def has_building(self, building_type: str, completed_only: bool = True) -> bool:
        return any(
            b.type == building_type and (b.completed or not completed_only)
            for b in self.buildings
        )

    def count_buildings(self, building_type: str, completed_only: bool = False) -> int:
        return sum(
            1 for b in self.buildings
            if b.type == building_type and (b.completed or not completed_only)
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "zone": self.zone,
            "terrain": self.terrain,
            "owner_id": self.owner_id,
            "is_forsaken": self.is_forsaken,
            "forsaken_strength": self.forsaken_strength,
            "buildings": [b.to_dict() for b in self.buildings],
            "garrison_army_id": self.garrison_army_id,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "WorldCell":
        return cls(
            id=int(d["id"]),
            x=int(d["x"]),
            y=int(d["y"]),
            zone=d["zone"],
            terrain=d["terrain"],
            owner_id=d.get("owner_id"),
            is_forsaken=bool(d.get("is_forsaken", False)),
            forsaken_strength=int(d.get("forsaken_strength", 0)),
            buildings=[Building.from_dict(b) for b in d.get("buildings", [])],
            garrison_army_id=d.get("garrison_army_id"),
        )


# =============================================================================
# PLAYERS
# =============================================================================

@dataclass
class Captain:
    captain_class: str
    skill: str
    alive: bool = True
    wounded_until_day: int = 0

    def __post_init__(self):
        validate_captain(self.captain_class, self.skill)

    def is_wounded(self, day: int) -> bool:
        return self.alive and day < self.wounded_until_day

    def to_dict(self) -> Dict:
        return {
            "captain_class": self.captain_class,
            "skill": self.skill,
            "alive": self.alive,
            "wounded_until_day": self.wounded_until_day,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Captain":
        return cls(
            captain_class=d["captain_class"],
            skill=d["skill"],
            alive=bool(d.get("alive", True)),
            wounded_until_day=int(d.get("wounded_until_day", 0)),
        )


@dataclass
class SimPlayer:
    """A simulated player driven by one agent policy."""
    id: str
    race: str
    captain: Captain
    agent_type: str = "balanced"
    resources: Dict[str, int] = field(default_factory=empty_resources)
    territories: Set[int] = field(default_factory=set)
    armies: List[Army] = field(default_factory=list)
    score: int = 0
    is_eliminated: bool = False
    eliminated_day: Optional[int] = None
    is_premium: bool = False
    morale: int = 100
    battles_won: int = 0
    battles_lost: int = 0
    total_kills: int = 0
    total_deaths: int = 0
    joined_day: int = 1

    def __post_init__(self):
        validate_race(self.race)
        if self.agent_type not in AGENT_TYPES:
            raise ConfigurationError(f"Unknown agent type: {self.agent_type!r}")

    @property
    def captain_alive(self) -> bool:
        return self.captain.alive

    @property
    def captain_class(self) -> str:
        return self.captain.captain_class

    @property
    def captain_skill(self) -> str:
        return self.captain.skill

    @property
    def main_army(self) -> Optional[Army]:
        """The army carrying the captain, else the first army."""
        for army in self.armies:
            if army.has_captain:
                return army
        return self.armies[0] if self.armies else None

    @property
    def total_units(self) -> int:
        return sum(a.total_units for a in self.armies)

    @property
    def army_strength(self) -> float:
        return sum(a.total_strength for a in self.armies)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "race": self.race,
            "captain": self.captain.to_dict(),
            "agent_type": self.agent_type,
            "resources": dict(self.resources),
            "territories": sorted(self.territories),
            "armies": [a.to_dict() for a in self.armies],
            "score": self.score,
            "is_eliminated": self.is_eliminated,
            "eliminated_day": self.eliminated_day,
            "is_premium": self.is_premium,
            "morale": self.morale,
            "battles_won": self.battles_won,
            "battles_lost": self.battles_lost,
            "total_kills": self.total_kills,
            "total_deaths": self.total_deaths,
            "joined_day": self.joined_day,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "SimPlayer":
        return cls(
            id=d["id"],
            race=d["race"],
            captain=Captain.from_dict(d["captain"]),
            agent_type=d.get("agent_type", "balanced"),
            resources={**empty_resources(), **d.get("resources", {})},
            territories=set(d.get("territories", [])),
            armies=[Army.from_dict(a) for a in d.get("armies", [])],
            score=int(d.get("score", 0)),
            is_eliminated=bool(d.get("is_eliminated", False)),
            eliminated_day=d.get("eliminated_day"),
            is_premium=bool(d.get("is_premium", False)),
            morale=int(d.get("morale", 100)),
            battles_won=int(d.get("battles_won", 0)),
            battles_lost=int(d.get("battles_lost", 0)),
            total_kills=int(d.get("total_kills", 0)),
            total_deaths=int(d.get("total_deaths", 0)),
            joined_day=int(d.get("joined_day", 1)),
        )


@dataclass(frozen=True)
class PlayerEndState:
    """Snapshot of a player when the generation finished."""
    id: str
    race: str
    captain_class: str
    captain_skill: str
    agent_type: str
    score: int
    territories_held: int
    is_eliminated: bool
    eliminated_day: Optional[int]
    captain_alive: bool
    battles_won: int
    battles_lost: int
    total_kills: int
    total_deaths: int
    morale: int
    is_premium: bool
    resources: Dict[str, int] = field(default_factory=dict)
    unit_counts: Dict[str, int] = field(default_factory=dict)
    building_counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_player(cls, player: SimPlayer, building_counts: Dict[str, int] = None) -> "PlayerEndState":
        unit_counts: Dict[str, int] = {}
        for army in player.armies:
            for unit in army.units:
                unit_counts[unit.unit_type] = unit_counts.get(unit.unit_type, 0) + unit.quantity
        return cls(
            id=player.id,
            race=player.race,
            captain_class=player.captain_class,
            captain_skill=player.captain_skill,
            agent_type=player.agent_type,
            score=player.score,
            territories_held=len(player.territories),
            is_eliminated=player.is_eliminated,
            eliminated_day=player.eliminated_day,
            captain_alive=player.captain_alive,
            battles_won=player.battles_won,
            battles_lost=player.battles_lost,
            total_kills=player.total_kills,
            total_deaths=player.total_deaths,
            morale=player.morale,
            is_premium=player.is_premium,
            resources=dict(player.resources),
            unit_counts=unit_counts,
            building_counts=dict(building_counts or {}),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "race": self.race,
            "captain_class": self.captain_class,
            "captain_skill": self.captain_skill,
            "agent_type": self.agent_type,
            "score": self.score,
            "territories_held": self.territories_held,
            "is_eliminated": self.is_eliminated,
            "eliminated_day": self.eliminated_day,
            "captain_alive": self.captain_alive,
            "battles_won": self.battles_won,
            "battles_lost": self.battles_lost,
            "total_kills": self.total_kills,
            "total_deaths": self.total_deaths,
            "morale": self.morale,
            "is_premium": self.is_premium,
            "resources": dict(self.resources),
            "unit_counts": dict(self.unit_counts),
            "building_counts": dict(self.building_counts),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "PlayerEndState":
        return cls(**{**d, "resources": dict(d.get("resources", {})),
                      "unit_counts": dict(d.get("unit_counts", {})),
                      "building_counts": dict(d.get("building_counts", {}))})


# =============================================================================
# COMBAT RECORDS
# =============================================================================

@dataclass(frozen=True)
class CombatEvent:
    type: str
    description: str
    quantity: Optional[int] = None

    def to_dict(self) -> Dict:
        d = {"type": self.type, "description": self.description}
        if self.quantity is not None:
            d["quantity"] = self.quantity
        return d

    @classmethod
    def from_dict(cls, d: Dict) -> "CombatEvent":
        return cls(type=d["type"], description=d.get("description", ""), quantity=d.get("quantity"))


@dataclass(frozen=True)
class CombatRound:
    round_number: int
    attacker_roll: int
    defender_roll: int
    attacker_damage: int
    defender_damage: int
    attacker_casualties: int
    defender_casualties: int
    attacker_remaining_hp: float
    defender_remaining_hp: float
    events: Tuple[CombatEvent, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "round_number": self.round_number,
            "attacker_roll": self.attacker_roll,
            "defender_roll": self.defender_roll,
            "attacker_damage": self.attacker_damage,
            "defender_damage": self.defender_damage,
            "attacker_casualties": self.attacker_casualties,
            "defender_casualties": self.defender_casualties,
            "attacker_remaining_hp": self.attacker_remaining_hp,
            "defender_remaining_hp": self.defender_remaining_hp,
            "events": [e.to_dict() for e in self.events],
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "CombatRound":
        return cls(
            round_number=d["round_number"],
            attacker_roll=d["attacker_roll"],
            defender_roll=d["defender_roll"],
            attacker_damage=d["attacker_damage"],
            defender_damage=d["defender_damage"],
            attacker_casualties=d.get("attacker_casualties", 0),
            defender_casualties=d.get("defender_casualties", 0),
            attacker_remaining_hp=d["attacker_remaining_hp"],
            defender_remaining_hp=d["defender_remaining_hp"],
            events=tuple(CombatEvent.from_dict(e) for e in d.get("events", [])),
        )


@dataclass(frozen=True)
class DeathSave:
    roll: int
    modifiers: Tuple[Tuple[str, int], ...]
    total_modifier: int
    final_roll: int
    survived: bool

    def to_dict(self) -> Dict:
        return {
            "roll": self.roll,
            "modifiers": [{"source": s, "value": v} for s, v in self.modifiers],
            "total_modifier": self.total_modifier,
            "final_roll": self.final_roll,
            "survived": self.survived,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "DeathSave":
        return cls(
            roll=d["roll"],
            modifiers=tuple((m["source"], m["value"]) for m in d.get("modifiers", [])),
            total_modifier=d["total_modifier"],
            final_roll=d["final_roll"],
            survived=d["survived"],
        )


RESULT_TO_WINNER = {
    "attacker_victory": "attacker",
    "defender_victory": "defender",
    "draw": "draw",
}


@dataclass(frozen=True)
class CombatRecord:
    """Outcome of one combat; never mutated after the resolver returns it."""
    id: str
    day: int
    cell_id: Optional[int]
    attacker_id: Optional[str]
    defender_id: Optional[str]
    attacker_race: Optional[str]
    defender_race: Optional[str]
    terrain: Optional[str]
    defender_has_wall: bool
    attacker_initial: Tuple[UnitStack, ...]
    defender_initial: Tuple[UnitStack, ...]
    attacker_final: Tuple[UnitStack, ...]
    defender_final: Tuple[UnitStack, ...]
    rounds: Tuple[CombatRound, ...]
    attacker_casualties: int
    defender_casualties: int
    attacker_reformed: int
    defender_reformed: int
    result: str
    attacker_death_save: Optional[DeathSave] = None
    defender_death_save: Optional[DeathSave] = None
    attacker_captain_died: bool = False
    defender_captain_died: bool = False
    attacker_captain_wounded: bool = False
    defender_captain_wounded: bool = False
    loot: Dict[str, int] = field(default_factory=dict)
    prisoners_captured: int = 0
    prisoner_unit_type: Optional[str] = None

    @property
    def winner(self) -> str:
        return RESULT_TO_WINNER[self.result]

    @property
    def rolls(self) -> List[int]:
        """Every die face rolled across all rounds, attacker then defender."""
        faces = []
        for r in self.rounds:
            faces.append(r.attacker_roll)
            faces.append(r.defender_roll)
        return faces

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "day": self.day,
            "cell_id": self.cell_id,
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "attacker_race": self.attacker_race,
            "defender_race": self.defender_race,
            "terrain": self.terrain,
            "defender_has_wall": self.defender_has_wall,
            "attacker_initial": [u.to_dict() for u in self.attacker_initial],
            "defender_initial": [u.to_dict() for u in self.defender_initial],
            "attacker_final": [u.to_dict() for u in self.attacker_final],
            "defender_final": [u.to_dict() for u in self.defender_final],
            "rounds": [r.to_dict() for r in self.rounds],
            "attacker_casualties": self.attacker_casualties,
            "defender_casualties": self.defender_casualties,
            "attacker_reformed": self.attacker_reformed,
            "defender_reformed": self.defender_reformed,
            "result": self.result,
            "winner": self.winner,
            "attacker_death_save": self.attacker_death_save.to_dict() if self.attacker_death_save else None,
            "defender_death_save": self.defender_death_save.to_dict() if self.defender_death_save else None,
            "attacker_captain_died": self.attacker_captain_died,
            "defender_captain_died": self.defender_captain_died,
            "attacker_captain_wounded": self.attacker_captain_wounded,
            "defender_captain_wounded": self.defender_captain_wounded,
            "loot": dict(self.loot),
            "prisoners_captured": self.prisoners_captured,
            "prisoner_unit_type": self.prisoner_unit_type,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "CombatRecord":
        def stacks(key):
            return tuple(UnitStack.from_dict(u) for u in d.get(key, []))

        def save(key):
            return DeathSave.from_dict(d[key]) if d.get(key) else None

        return cls(
            id=d["id"],
            day=d.get("day", 0),
            cell_id=d.get("cell_id"),
            attacker_id=d.get("attacker_id"),
            defender_id=d.get("defender_id"),
            attacker_race=d.get("attacker_race"),
            defender_race=d.get("defender_race"),
            terrain=d.get("terrain"),
            defender_has_wall=bool(d.get("defender_has_wall", False)),
            attacker_initial=stacks("attacker_initial"),
            defender_initial=stacks("defender_initial"),
            attacker_final=stacks("attacker_final"),
            defender_final=stacks("defender_final"),
            rounds=tuple(CombatRound.from_dict(r) for r in d.get("rounds", [])),
            attacker_casualties=d["attacker_casualties"],
            defender_casualties=d["defender_casualties"],
            attacker_reformed=d.get("attacker_reformed", 0),
            defender_reformed=d.get("defender_reformed", 0),
            result=d["result"],
            attacker_death_save=save("attacker_death_save"),
            defender_death_save=save("defender_death_save"),
            attacker_captain_died=d.get("attacker_captain_died", False),
            defender_captain_died=d.get("defender_captain_died", False),
            attacker_captain_wounded=d.get("attacker_captain_wounded", False),
            defender_captain_wounded=d.get("defender_captain_wounded", False),
            loot=dict(d.get("loot", {})),
            prisoners_captured=d.get("prisoners_captured", 0),
            prisoner_unit_type=d.get("prisoner_unit_type"),
        )


# =============================================================================
# GENERATIONS
# =============================================================================

@dataclass(frozen=True)
class GenerationEvent:
    day: int
    type: str
    player_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {"day": self.day, "type": self.type, "player_id": self.player_id, "data": dict(self.data)}

    @classmethod
    def from_dict(cls, d: Dict) -> "GenerationEvent":
        return cls(day=d["day"], type=d["type"], player_id=d.get("player_id"), data=dict(d.get("data", {})))


@dataclass(frozen=True)
class GenerationSummary:
    """Everything the balance analyzer needs from one finished generation."""
    generation_id: int
    seed: Optional[int]
    final_day: int
    players: Tuple[PlayerEndState, ...]
    combats: Tuple[CombatRecord, ...]
    events: Tuple[GenerationEvent, ...] = ()
    winner_id: Optional[str] = None
    eliminations_by_day: Tuple[int, ...] = ()

    @property
    def winner(self) -> Optional[PlayerEndState]:
        for p in self.players:
            if p.id == self.winner_id:
                return p
        return None

    @property
    def survivors(self) -> List[PlayerEndState]:
        return [p for p in self.players if not p.is_eliminated]

    def to_dict(self) -> Dict:
        return {
            "generation_id": self.generation_id,
            "seed": self.seed,
            "final_day": self.final_day,
            "players": [p.to_dict() for p in self.players],
            "combats": [c.to_dict() for c in self.combats],
            "events": [e.to_dict() for e in self.events],
            "winner_id": self.winner_id,
            "eliminations_by_day": list(self.eliminations_by_day),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "GenerationSummary":
        return cls(
            generation_id=d["generation_id"],
            seed=d.get("seed"),
            final_day=d["final_day"],
            players=tuple(PlayerEndState.from_dict(p) for p in d.get("players", [])),
            combats=tuple(CombatRecord.from_dict(c) for c in d.get("combats", [])),
            events=tuple(GenerationEvent.from_dict(e) for e in d.get("events", [])),
            winner_id=d.get("winner_id"),
            eliminations_by_day=tuple(d.get("eliminations_by_day", [])),
        )

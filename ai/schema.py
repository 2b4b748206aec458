"""
Agent Action Schema.

Enumerations for agent and action types, the AgentAction an agent emits and
the read-only PlayerView it decides from.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any

from sim.rules import ZONE_PRIORITY
from sim.state import SimPlayer, WorldCell
from sim.world import WorldMap


# =============================================================================
# ENUMS
# =============================================================================

class ActionType(str, Enum):
    BUILD = "build"
    TRAIN = "train"
    ATTACK = "attack"
    MOVE = "move"
    DEFEND = "defend"
    EXPAND = "expand"
    UPGRADE = "upgrade"
    WAIT = "wait"


class AgentType(str, Enum):
    RANDOM = "random"
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"
    ECONOMIC = "economic"
    BALANCED = "balanced"


PHASE_PLANNING = "planning"
PHASE_ACTIVE = "active"
PHASE_ENDGAME = "endgame"


# =============================================================================
# ACTIONS
# =============================================================================

@dataclass(frozen=True)
class AgentAction:
    """One prioritized decision; higher priority wins."""
    type: ActionType
    priority: float = 0
    cell_id: Optional[int] = None
    building_type: Optional[str] = None
    unit_type: Optional[str] = None
    quantity: int = 0

    @classmethod
    def wait(cls) -> "AgentAction":
        return cls(ActionType.WAIT, 0)

    def to_dict(self) -> Dict[str, Any]:
        d = {"type": self.type.value, "priority": self.priority}
        if self.cell_id is not None:
            d["cell_id"] = self.cell_id
        if self.building_type is not None:
            d["building_type"] = self.building_type
        if self.unit_type is not None:
            d["unit_type"] = self.unit_type
        if self.quantity:
            d["quantity"] = self.quantity
        return d

    @classmethod
    def from_dict(cls, d: Dict) -> "AgentAction":
        return cls(
            type=ActionType(d["type"]),
            priority=d.get("priority", 0),
            cell_id=d.get("cell_id"),
            building_type=d.get("building_type"),
            unit_type=d.get("unit_type"),
            quantity=d.get("quantity", 0),
        )


# =============================================================================
# VIEW
# =============================================================================

@dataclass
class PlayerView:
    """
    What an agent may look at when deciding.

    Policies only read from the view; the orchestrator owns every mutation.
    """
    player: SimPlayer
    cells: List[WorldCell]
    day: int
    phase: str
    world: WorldMap
    players: Dict[str, SimPlayer] = field(default_factory=dict)

    @property
    def army_strength(self) -> float:
        return self.player.army_strength

    def strength_of(self, player_id: str) -> float:
        other = self.players.get(player_id)
        return other.army_strength if other is not None else 0.0

    def owner(self, cell: WorldCell) -> Optional[SimPlayer]:
        if cell.owner_id is None:
            return None
        return self.players.get(cell.owner_id)

    def border_cells(self) -> List[WorldCell]:
        return [c for c in self.cells if self.world.is_border(c)]

    def expansion_targets(self) -> List[WorldCell]:
        return self.world.expansion_targets(self.player.id)

    def free_cells(self) -> List[WorldCell]:
        """Adjacent cells nobody holds and no Forsaken guard."""
        return [c for c in self.expansion_targets() if c.owner_id is None and not c.is_forsaken]

    def attack_targets(self) -> List[WorldCell]:
        """
        Attackable neighbours: Forsaken first (weakest first), then enemy
        cells by zone value.
        """
        targets = []
        for cell in self.expansion_targets():
            if cell.is_forsaken:
                targets.append(cell)
            elif cell.owner_id is not None:
                owner = self.owner(cell)
                if owner is not None and not owner.is_eliminated:
                    targets.append(cell)

        def sort_key(cell: WorldCell):
            if cell.is_forsaken:
                return (0, cell.forsaken_strength, cell.id)
            return (1, ZONE_PRIORITY[cell.zone], cell.id)

        return sorted(targets, key=sort_key)

    def threat_level(self) -> float:
        """Strongest adjacent enemy relative to our own strength, capped at 1."""
        mine = max(1.0, self.army_strength)
        worst = 0.0
        for cell in self.cells:
            for neighbor in self.world.adjacent(cell):
                if neighbor.owner_id is not None and neighbor.owner_id != self.player.id:
                    worst = max(worst, self.strength_of(neighbor.owner_id) / mine)
        return min(1.0, worst)

    def most_threatened_cell(self) -> Optional[WorldCell]:
        """Own border cell facing the strongest neighbour."""
        best = None
        best_threat = 0.0
        for cell in self.cells:
            for neighbor in self.world.adjacent(cell):
                if neighbor.owner_id is not None and neighbor.owner_id != self.player.id:
                    threat = self.strength_of(neighbor.owner_id)
                    if best is None or threat > best_threat:
                        best, best_threat = cell, threat
        return best

"""
World Generator.

Builds the square grid for one generation: concentric zones around the
center, zone-weighted terrain, Forsaken garrisons on unclaimed cells and the
clustered starting plots for each player. Cells live in a flat list indexed
by y * size + x.
"""

import math
from collections import deque
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from sim.errors import ConfigurationError, PlacementError
from sim.random_source import SeededRandom
from sim.rules import (
    MAP_SIZE, ZONES, ZONE_BOUNDARIES, TERRAIN_TYPES, TERRAIN_WEIGHTS,
    FORSAKEN_STRENGTH, HEARTBEAT_COVERAGE, HEARTBEAT_GROWTH, HEARTBEAT_CAP,
)
from sim.state import WorldCell


# 4-neighbour adjacency (N, E, S, W)
ORTHOGONAL = [(0, -1), (1, 0), (0, 1), (-1, 0)]

# Cluster growth also walks diagonals
CLUSTER_DIRECTIONS = [
    (0, -1), (1, 0), (0, 1), (-1, 0),
    (1, -1), (1, 1), (-1, 1), (-1, -1),
]

SPAWN_RING_INSET = 8
NO_SPAWN_ZONES = ("heart", "inner")


def zone_grid(size: int, boundaries: Dict[str, int] = None) -> np.ndarray:
    """
    Zone name per cell as a flat array indexed y * size + x.

    Zones come from the Chebyshev distance to the center cell (size // 2).
    """
    boundaries = boundaries or ZONE_BOUNDARIES
    center = size // 2
    coords = np.arange(size)
    xs, ys = np.meshgrid(coords, coords)
    distance = np.maximum(np.abs(xs - center), np.abs(ys - center)).ravel()

    # codes index into ZONES (outer, middle, inner, heart)
    codes = np.select(
        [
            distance <= boundaries["heart"],
            distance <= boundaries["inner"],
            distance <= boundaries["middle"],
        ],
        [3, 2, 1],
        default=0,
    )
    return np.array(ZONES)[codes]


class WorldMap:
    """Flat grid of WorldCell plus the queries agents and combat need."""

    def __init__(self, rng: SeededRandom, size: int = MAP_SIZE, zone_boundaries: Dict[str, int] = None):
        if size < 3:
            raise ConfigurationError(f"World size must be at least 3, got {size}")
        self.rng = rng
        self.size = size
        self.center = size // 2
        self.zone_boundaries = dict(zone_boundaries or ZONE_BOUNDARIES)
        self.cells: List[WorldCell] = []
        self.last_heartbeat_day: Optional[int] = None
        self._owned: Dict[str, Set[int]] = {}

    # =========================================================================
    # GENERATION
    # =========================================================================

    def generate(self) -> List[WorldCell]:
        """Fill the grid with zoned, terrain-weighted cells."""
        zones = zone_grid(self.size, self.zone_boundaries)
        self.cells = []
        self._owned = {}
        self.last_heartbeat_day = None

        for idx in range(self.size * self.size):
            y, x = divmod(idx, self.size)
            zone = str(zones[idx])
            terrain = self.rng.weighted_pick(TERRAIN_TYPES, TERRAIN_WEIGHTS[zone])
            self.cells.append(WorldCell(id=idx, x=x, y=y, zone=zone, terrain=terrain))

        return self.cells

    def spawn_forsaken(self, coverage: float) -> int:
        """
        Turn a fraction of unclaimed cells into Forsaken garrisons.

        Returns:
            Number of cells spawned
        """
        if coverage < 0 or coverage > 1:
            raise ConfigurationError(f"Forsaken coverage must be in [0, 1], got {coverage}")

        unclaimed = [c for c in self.cells if c.owner_id is None and not c.is_forsaken]
        count = math.floor(len(unclaimed) * coverage)
        chosen = self.rng.shuffle(unclaimed)[:count]

        for cell in chosen:
            low, high = FORSAKEN_STRENGTH[cell.zone]
            cell.is_forsaken = True
            cell.forsaken_strength = self.rng.int(low, high)

        return count

    def heartbeat(self, day: int = None) -> int:
        """
        Strengthen every Forsaken garrison and seed new ones.

        Strength grows by 20% up to 1.5x the zone maximum, then 10% of the
        remaining unclaimed cells turn Forsaken. Calling twice for the same
        day is a no-op.

        Returns:
            Number of newly spawned Forsaken cells
        """
        if day is not None and day == self.last_heartbeat_day:
            return 0
        self.last_heartbeat_day = day

        for cell in self.cells:
            if cell.is_forsaken:
                cap = FORSAKEN_STRENGTH[cell.zone][1] * HEARTBEAT_CAP
                cell.forsaken_strength = min(math.floor(cell.forsaken_strength * HEARTBEAT_GROWTH), int(cap))

        return self.spawn_forsaken(HEARTBEAT_COVERAGE)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def index(self, x: int, y: int) -> int:
        return y * self.size + x

    def cell(self, x: int, y: int) -> Optional[WorldCell]:
        if not self.in_bounds(x, y):
            return None
        return self.cells[self.index(x, y)]

    def get(self, cell_id: int) -> WorldCell:
        return self.cells[cell_id]

    def distance_from_center(self, x: int, y: int) -> int:
        return max(abs(x - self.center), abs(y - self.center))

    def adjacent(self, cell: WorldCell) -> List[WorldCell]:
        result = []
        for dx, dy in ORTHOGONAL:
            neighbor = self.cell(cell.x + dx, cell.y + dy)
            if neighbor is not None:
                result.append(neighbor)
        return result

    def are_adjacent(self, a: WorldCell, b: WorldCell) -> bool:
        return abs(a.x - b.x) + abs(a.y - b.y) == 1

    def cells_owned_by(self, player_id: str) -> List[WorldCell]:
        return [self.cells[i] for i in sorted(self._owned.get(player_id, ()))]

    def is_border(self, cell: WorldCell) -> bool:
        """True when a neighbour belongs to someone else or no one."""
        return any(n.owner_id != cell.owner_id for n in self.adjacent(cell))

    def expansion_targets(self, player_id: str) -> List[WorldCell]:
        """Cells next to the player's territory that the player does not own."""
        seen: Set[int] = set()
        targets = []
        for owned in self.cells_owned_by(player_id):
            for neighbor in self.adjacent(owned):
                if neighbor.owner_id != player_id and neighbor.id not in seen:
                    seen.add(neighbor.id)
                    targets.append(neighbor)
        return targets

    def cells_by_zone(self, zone: str) -> List[WorldCell]:
        return [c for c in self.cells if c.zone == zone]

    def zone_stats(self) -> Dict[str, Dict[str, int]]:
        stats = {z: {"total": 0, "claimed": 0, "forsaken": 0} for z in ZONES}
        for cell in self.cells:
            stats[cell.zone]["total"] += 1
            if cell.owner_id is not None:
                stats[cell.zone]["claimed"] += 1
            elif cell.is_forsaken:
                stats[cell.zone]["forsaken"] += 1
        return stats

    # =========================================================================
    # OWNERSHIP
    # =========================================================================

    def claim(self, cell: WorldCell, player_id: str):
        """Give a cell to a player; Forsaken on it are cleared."""
        if cell.owner_id is not None:
            self._owned.get(cell.owner_id, set()).discard(cell.id)
        cell.owner_id = player_id
        cell.is_forsaken = False
        cell.forsaken_strength = 0
        self._owned.setdefault(player_id, set()).add(cell.id)

    def release(self, cell: WorldCell):
        if cell.owner_id is not None:
            self._owned.get(cell.owner_id, set()).discard(cell.id)
        cell.owner_id = None
        cell.garrison_army_id = None

    # =========================================================================
    # SPAWN PLACEMENT
    # =========================================================================

    def spawn_anchor(self, index: int, player_count: int) -> Tuple[int, int]:
        """Base point for player `index`, evenly spaced by angle on the outer ring."""
        angle = (2 * math.pi / player_count) * index
        radius = self.size / 2 - SPAWN_RING_INSET
        x = math.floor(self.center + radius * math.cos(angle))
        y = math.floor(self.center + radius * math.sin(angle))
        return x, y

    def _cluster_from(self, start: Tuple[int, int], count: int, used: Set[int]) -> List[int]:
        """Breadth-first cluster of eligible cell ids grown from start."""
        positions: List[int] = []
        queue = deque([start])
        visited: Set[Tuple[int, int]] = set()

        while queue and len(positions) < count:
            x, y = queue.popleft()
            if (x, y) in visited or not self.in_bounds(x, y):
                continue
            visited.add((x, y))

            cell = self.cells[self.index(x, y)]
            if cell.zone in NO_SPAWN_ZONES:
                continue

            # Claimed land is a wall; the cluster never grows through it
            if cell.id in used or cell.owner_id is not None:
                continue
            positions.append(cell.id)
            used.add(cell.id)

            for dx, dy in self.rng.shuffle(CLUSTER_DIRECTIONS):
                queue.append((x + dx, y + dy))

        return positions

    def find_starting_positions(self, player_count: int, plots_per_player: int) -> List[List[int]]:
        """
        Pick a cluster of starting cells for each player.

        Players are spread evenly by angle around the outer ring. Each cluster
        takes unowned outer/middle cells not already given to an earlier
        player in this call.

        Returns:
            One list of cell ids per player, each exactly plots_per_player long

        Raises:
            PlacementError: a cluster could not be filled
        """
        if player_count <= 0 or plots_per_player <= 0:
            raise ConfigurationError("Player count and plots per player must be positive")
        if not self.cells:
            raise PlacementError("World has not been generated")

        used: Set[int] = set()
        result = []
        for i in range(player_count):
            start = self.spawn_anchor(i, player_count)
            cluster = self._cluster_from(start, plots_per_player, used)
            if len(cluster) < plots_per_player:
                raise PlacementError(
                    f"Player {i}: only {len(cluster)}/{plots_per_player} starting plots available near {start}",
                    player_index=i,
                    placed=len(cluster),
                )
            result.append(cluster)
        return result

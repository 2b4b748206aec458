import pytest

from sim.errors import ConfigurationError, PlacementError
from sim.random_source import SeededRandom
from sim.rules import FORSAKEN_STRENGTH, HEARTBEAT_CAP
from sim.world import WorldMap


def test_grid_layout(world):
    assert len(world.cells) == 100 * 100
    cell = world.cell(12, 34)
    assert cell.id == 34 * 100 + 12
    assert world.get(cell.id) is cell


@pytest.mark.parametrize("offset,zone", [
    (0, "heart"), (5, "heart"), (6, "inner"), (20, "inner"),
    (21, "middle"), (35, "middle"), (36, "outer"), (49, "outer"),
])
def test_zone_by_chebyshev_distance(world, offset, zone):
    assert world.cell(50 + offset, 50).zone == zone
    assert world.cell(50, 50 - offset).zone == zone


def test_heart_size(world):
    assert len(world.cells_by_zone("heart")) == 11 * 11


def test_generation_is_reproducible():
    a = WorldMap(SeededRandom(5), size=30)
    b = WorldMap(SeededRandom(5), size=30)
    assert [c.terrain for c in a.generate()] == [c.terrain for c in b.generate()]


def test_world_too_small():
    with pytest.raises(ConfigurationError):
        WorldMap(SeededRandom(1), size=2)


def test_spawn_forsaken_in_zone_band(world):
    spawned = world.spawn_forsaken(0.3)
    forsaken = [c for c in world.cells if c.is_forsaken]
    assert spawned == len(forsaken) == 3000
    for cell in forsaken:
        low, high = FORSAKEN_STRENGTH[cell.zone]
        assert low <= cell.forsaken_strength <= high


def test_heartbeat_leaves_capped_strength(world):
    cell = world.cell(0, 0)
    cap = int(FORSAKEN_STRENGTH[cell.zone][1] * HEARTBEAT_CAP)
    cell.is_forsaken = True
    cell.forsaken_strength = cap
    world.heartbeat(7)
    assert cell.forsaken_strength == cap


def test_heartbeat_grows_and_spawns(world):
    cell = world.cell(0, 0)
    cell.is_forsaken = True
    cell.forsaken_strength = 100
    free_before = sum(1 for c in world.cells if not c.is_forsaken and c.owner_id is None)

    spawned = world.heartbeat(7)

    assert cell.forsaken_strength == 120
    assert spawned == free_before // 10


def test_heartbeat_once_per_day(world):
    cell = world.cell(0, 0)
    cell.is_forsaken = True
    cell.forsaken_strength = 100
    world.heartbeat(14)
    forsaken_after = sum(1 for c in world.cells if c.is_forsaken)

    assert world.heartbeat(14) == 0
    assert cell.forsaken_strength == 120
    assert sum(1 for c in world.cells if c.is_forsaken) == forsaken_after


def test_claim_clears_forsaken_and_release(world):
    cell = world.cell(3, 3)
    cell.is_forsaken = True
    cell.forsaken_strength = 90
    world.claim(cell, "player-0")
    assert cell.owner_id == "player-0"
    assert not cell.is_forsaken and cell.forsaken_strength == 0
    assert world.cells_owned_by("player-0") == [cell]

    world.release(cell)
    assert cell.owner_id is None
    assert world.cells_owned_by("player-0") == []


def test_adjacency_and_expansion_targets(world):
    corner = world.cell(0, 0)
    assert {(c.x, c.y) for c in world.adjacent(corner)} == {(1, 0), (0, 1)}

    world.claim(world.cell(10, 10), "p")
    targets = {(c.x, c.y) for c in world.expansion_targets("p")}
    assert targets == {(9, 10), (11, 10), (10, 9), (10, 11)}


def test_starting_positions_are_disjoint_clusters(world):
    positions = world.find_starting_positions(20, 2)
    assert len(positions) == 20
    flat = [cell_id for cluster in positions for cell_id in cluster]
    assert len(flat) == len(set(flat)) == 40
    for cell_id in flat:
        assert world.get(cell_id).zone in ("outer", "middle")


def test_placement_failure_claims_nothing():
    # on a tiny map the spawn ring falls inside the heart
    world = WorldMap(SeededRandom(3), size=20)
    world.generate()
    with pytest.raises(PlacementError) as excinfo:
        world.find_starting_positions(4, 2)
    assert excinfo.value.player_index == 0
    assert excinfo.value.placed == 0
    assert all(c.owner_id is None for c in world.cells)


def test_cluster_does_not_grow_through_owned_land(world):
    start = world.cell(10, 10)
    assert start.zone in ("outer", "middle")
    for neighbor in world.adjacent(start):
        world.claim(neighbor, "rival")
    assert world._cluster_from((10, 10), 3, set()) == [start.id]


def test_cluster_does_not_grow_through_cells_taken_this_call(world):
    start = world.cell(10, 10)
    used = {c.id for c in world.adjacent(start)}
    assert world._cluster_from((10, 10), 3, used) == [start.id]
    world.claim(start, "rival")
    assert world._cluster_from((10, 10), 3, set()) == []


def test_heartbeat_growth_is_floored_each_day(world):
    cell = world.cell(0, 0)
    cell.is_forsaken = True
    cell.forsaken_strength = 101
    world.heartbeat(7)
    assert cell.forsaken_strength == 121
    world.heartbeat(8)
    assert cell.forsaken_strength == 145

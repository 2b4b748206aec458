import sys, os

import pytest

# Ensure the project root is on path for test imports
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from sim.random_source import SeededRandom
from sim.runner import SimulationConfig
from sim.state import UnitStack
from sim.world import WorldMap

from tests.helpers import make_player

__all__ = ["make_player"]


@pytest.fixture
def rng():
    return SeededRandom(42)


@pytest.fixture
def world():
    world = WorldMap(SeededRandom(7), size=100)
    world.generate()
    return world


@pytest.fixture
def small_config():
    return SimulationConfig(generations=2, players=4, days=12, seed=1234)


@pytest.fixture
def stacks():
    def build(**quantities):
        return [UnitStack.full(unit_type, qty) for unit_type, qty in quantities.items()]
    return build

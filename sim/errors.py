"""
Simulation Error Types.

Setup problems fail fast; nothing in the simulation core is retried.
"""


class SimulationError(Exception):
    """Base class for all simulation failures."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid seed, day count, distribution, unit definition or class/skill pairing."""


class RosterError(ConfigurationError):
    """Malformed army roster: unknown unit type, negative quantity, bad hit points."""


class PlacementError(SimulationError):
    """The world could not supply a full starting cluster for a player."""

    def __init__(self, message: str, player_index: int = None, placed: int = 0):
        super().__init__(message)
        self.player_index = player_index
        self.placed = placed

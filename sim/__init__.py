# Simulation module for headless generations
# This module provides:
# - random_source.py: seeded Mulberry32 random source
# - rules.py: game tables (races, units, buildings, zones)
# - state.py: pure Python state containers and records
# - world.py: world map generation and queries
# - combat.py: d20 combat resolver
# - economy.py: production, upkeep, costs and scoring
# - generation.py: single generation orchestrator
# - runner.py: headless multi-generation runner

__version__ = "0.1.0"

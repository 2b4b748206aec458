# AI module for simulated players
# This module provides:
# - schema.py: action and agent types, player view
# - policies.py: random/aggressive/defensive/economic/balanced agents
# - logger.py: JSONL simulation logging

__version__ = "0.1.0"

"""
JSONL Simulation Logger.

Writes generation start/end records and every combat as one JSON object per
line, so balance runs can be replayed or mined after the fact.
"""

import json
import os
from datetime import datetime
from typing import Dict, Any, Optional
import numpy as np

from sim.state import CombatRecord, GenerationSummary


def convert_numpy(obj):
    """Convert numpy types to Python native types for JSON serialization."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, dict):
        return {k: convert_numpy(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy(v) for v in obj]
    return obj


class SimulationLogger:
    """
    Logger for simulated generations in JSONL format.
    """

    def __init__(self, log_dir: str = None, enabled: bool = True):
        """
        Initialize simulation logger.

        Args:
            log_dir: Directory to write logs. Defaults to data/sim_logs/
            enabled: Whether logging is active
        """
        self.enabled = enabled

        if log_dir is None:
            base_path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
            log_dir = os.path.join(base_path, "data", "sim_logs")

        self.log_dir = log_dir
        self.current_file = None
        self.generation_id = None
        self.seed = None
        self.combat_idx = 0

        if self.enabled:
            os.makedirs(self.log_dir, exist_ok=True)

    def _write(self, entry: Dict[str, Any]):
        try:
            with open(self.current_file, "a") as f:
                f.write(json.dumps(convert_numpy(entry)) + "\n")
        except (OSError, TypeError, ValueError) as e:
            print(f"Warning: Failed to write log entry: {e}")

    def start_generation(self, generation_id: int, seed: int = None, config: Dict = None):
        """Open a session file (once) and record the generation header."""
        if not self.enabled:
            return

        self.generation_id = generation_id
        self.seed = seed
        self.combat_idx = 0

        if self.current_file is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            self.current_file = os.path.join(self.log_dir, f"simulation_{timestamp}.jsonl")

        self._write({
            "timestamp": datetime.now().isoformat(),
            "type": "generation_start",
            "generation_id": generation_id,
            "seed": seed,
            "config": config or {},
        })

    def log_combat(self, record: CombatRecord):
        if not self.enabled or self.current_file is None:
            return

        self._write({
            "timestamp": datetime.now().isoformat(),
            "type": "combat",
            "generation_id": self.generation_id,
            "combat_idx": self.combat_idx,
            "combat": record.to_dict(),
        })
        self.combat_idx += 1

    def end_generation(self, summary: GenerationSummary, include_combats: bool = False):
        """
        Record the generation outcome.

        Combats are already on their own lines, so by default only the
        player end states and winner are written here.
        """
        if not self.enabled or self.current_file is None:
            return

        data = summary.to_dict()
        if not include_combats:
            data.pop("combats", None)

        self._write({
            "timestamp": datetime.now().isoformat(),
            "type": "generation_end",
            "generation_id": summary.generation_id,
            "total_combats": self.combat_idx,
            "summary": data,
        })
        self.generation_id = None
        self.combat_idx = 0

    @property
    def path(self) -> Optional[str]:
        return self.current_file

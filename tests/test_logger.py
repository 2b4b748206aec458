import json

import numpy as np

from ai.logger import SimulationLogger, convert_numpy
from sim.runner import make_logger, run_generation


def _lines(path):
    with open(path) as f:
        return [json.loads(line) for line in f]


def test_convert_numpy():
    data = {"a": np.int64(3), "b": [np.float32(0.5), np.bool_(True)], "c": np.arange(3)}
    assert convert_numpy(data) == {"a": 3, "b": [0.5, True], "c": [0, 1, 2]}


def test_generation_is_written_as_jsonl(tmp_path, small_config):
    logger = SimulationLogger(log_dir=str(tmp_path))
    summary = run_generation(small_config, 1, seed=31, logger=logger)

    entries = _lines(logger.path)
    assert entries[0]["type"] == "generation_start"
    assert entries[0]["seed"] == 31
    assert entries[-1]["type"] == "generation_end"
    assert "combats" not in entries[-1]["summary"]
    assert entries[-1]["summary"]["winner_id"] == summary.winner_id

    combats = [e for e in entries if e["type"] == "combat"]
    assert len(combats) == len(summary.combats) == entries[-1]["total_combats"]
    assert [e["combat_idx"] for e in combats] == list(range(len(combats)))


def test_one_file_per_session(tmp_path, small_config):
    logger = SimulationLogger(log_dir=str(tmp_path))
    run_generation(small_config, 1, seed=1, logger=logger)
    run_generation(small_config, 2, seed=2, logger=logger)
    assert len(list(tmp_path.iterdir())) == 1
    starts = [e for e in _lines(logger.path) if e["type"] == "generation_start"]
    assert [e["generation_id"] for e in starts] == [1, 2]


def test_disabled_logger_writes_nothing(tmp_path, small_config):
    logger = SimulationLogger(log_dir=str(tmp_path / "logs"), enabled=False)
    run_generation(small_config, 1, seed=4, logger=logger)
    assert logger.path is None
    assert not (tmp_path / "logs").exists()


def test_make_logger_follows_config(tmp_path, small_config):
    assert make_logger(small_config) is None
    small_config.log_enabled = True
    small_config.log_dir = str(tmp_path)
    assert make_logger(small_config).log_dir == str(tmp_path)

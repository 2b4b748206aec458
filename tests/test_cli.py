import json

import pytest

from balance import balance_check, simulate
from sim.errors import ConfigurationError
from sim.runner import (
    SimulationConfig, generation_seed, run_generations, run_parallel, run_seed_sweep, summarize_runs,
)


@pytest.mark.parametrize("kwargs", [
    {"generations": 0},
    {"players": 0},
    {"days": 0},
    {"seed": -1},
    {"workers": 0},
    {"forsaken_coverage": 1.5},
    {"agent_distribution": {}},
    {"agent_distribution": {"berserk": 1.0}},
    {"agent_distribution": {"random": 0.0}},
])
def test_config_rejects_bad_values(kwargs):
    with pytest.raises(ConfigurationError):
        SimulationConfig(**kwargs).validate()


def test_config_dict_round_trip():
    config = SimulationConfig(generations=3, seed=9, agent_distribution={"random": 1.0})
    assert SimulationConfig.from_dict(config.to_dict()) == config


def test_generation_seeds_are_stable():
    assert generation_seed(42, 1) == generation_seed(42, 1)
    assert generation_seed(42, 1) != generation_seed(42, 2)
    assert generation_seed(42, 1) != generation_seed(43, 1)


def test_single_worker_parallel_matches_sequential(small_config):
    sequential = [s.to_dict() for s in run_generations(small_config)]
    parallel = [s.to_dict() for s in run_parallel(small_config)]
    assert sequential == parallel
    assert [s["generation_id"] for s in sequential] == [1, 2]


def test_summarize_runs(small_config):
    report = summarize_runs(run_generations(small_config))
    assert report["n_generations"] == 2
    assert 1 <= report["avg_length"] <= small_config.days
    assert summarize_runs([]) == {"n_generations": 0}


def test_seed_sweep_records_failures():
    config = SimulationConfig(generations=1, players=4, days=4, map_size=20)
    sweep = run_seed_sweep([1, 2], config, verbose=False)
    assert sweep["results"] == {}
    assert [f["seed"] for f in sweep["failures"]] == [1, 2]
    assert sweep["failures"][0]["error"].startswith("PlacementError")


def test_seed_sweep_collects_results():
    config = SimulationConfig(generations=1, players=2, days=6)
    sweep = run_seed_sweep([5], config, verbose=False)
    assert sweep["failures"] == []
    assert len(sweep["results"][5]) == 1


def test_simulate_writes_results(tmp_path, capsys):
    output = tmp_path / "results.json"
    code = simulate.main(["-g", "1", "-p", "2", "-d", "6", "-s", "3", "--output", str(output)])
    assert code == 0
    data = json.loads(output.read_text())
    assert data["total_generations"] == 1
    assert data["config"]["seed"] == 3
    assert "Simulation Results" in capsys.readouterr().out


def test_simulate_reports_setup_failure(capsys):
    # rejected by config validation before any generation runs
    code = simulate.main(["-g", "1", "-p", "0"])
    assert code == 1
    assert "Simulation failed" in capsys.readouterr().out


@pytest.mark.parametrize("balanced,expected", [(True, 0), (False, 1)])
def test_balance_check_exit_code(monkeypatch, balanced, expected):
    report = {"balanced": balanced, "score": 75.0, "threshold": 70, "critical": 0, "issues": []}
    monkeypatch.setattr(balance_check, "quick_balance_check", lambda **kwargs: report)
    assert balance_check.main(["--generations", "2", "--seed", "1"]) == expected


def test_balance_check_thresholds(monkeypatch):
    seen = []

    def fake_check(**kwargs):
        seen.append(kwargs["threshold"])
        return {"balanced": True, "score": 90.0, "threshold": kwargs["threshold"], "critical": 0, "issues": []}

    monkeypatch.setattr(balance_check, "quick_balance_check", fake_check)
    balance_check.main([])
    balance_check.main(["--strict"])
    balance_check.main(["--threshold", "55"])
    assert seen == [70, 80, 55.0]


def test_quick_balance_check_shape():
    report = balance_check.quick_balance_check(generations=1, seed=8, players=2, days=6)
    assert set(report) == {"balanced", "score", "threshold", "critical", "issues"}
    assert 0 <= report["score"] <= 100


def test_balance_check_passes_game_size(monkeypatch):
    seen = []

    def fake_check(**kwargs):
        seen.append((kwargs["players"], kwargs["days"]))
        return {"balanced": True, "score": 90.0, "threshold": kwargs["threshold"], "critical": 0, "issues": []}

    monkeypatch.setattr(balance_check, "quick_balance_check", fake_check)
    balance_check.main([])
    balance_check.main(["--players", "8", "--days", "30"])
    assert seen == [(20, 50), (8, 30)]

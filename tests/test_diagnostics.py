# test_diagnostics.py — Slack, engine load and blockage detection.

from ordo.data_loader import Order, ProblemSpec, Product
from ordo.diagnostics import engine_load, find_blockages, order_slack, run_diagnostics


def test_order_slack_for_reference(reference_problem):
    df = order_slack(reference_problem).set_index("order_id")
    assert df.loc["FO0", "phase1_duration"] == 50
    assert df.loc["FO0", "phase2_duration"] == 150
    assert df.loc["FO0", "slack"] == 500
    assert df.loc["FO6", "slack"] == 2500 - 180 - 420
    assert df.loc["FO3", "phase2_engines"] == "3"


def test_engine_load_for_reference(reference_problem):
    df = engine_load(reference_problem).set_index("engine_id")
    assert df.loc[0, "required"] == 650
    assert df.loc[1, "required"] == 540
    assert df.loc[2, "required"] == 630
    assert df.loc[3, "required"] == 300
    assert bool(df.loc[0, "runs_phase1"])


def test_extra_engine_splits_phase_one_load(reference_problem):
    df = engine_load(reference_problem.with_params(extra_engine=True)).set_index("engine_id")
    assert df.loc[0, "required"] == 325
    assert df.loc[4, "required"] == 325


def test_reference_has_no_blockage(reference_problem):
    assert find_blockages(reference_problem) == []


def test_tight_deadline_is_reported():
    problem = ProblemSpec(
        products=(Product(0, 10, 30),),
        orders=(Order("A", product_id=0, quantity=5, deadline=150),),
    )
    lines = find_blockages(problem)
    assert lines == ["Order A: phases need 200 but the deadline leaves 150"]


def test_overloaded_exclusive_pair_is_reported(reference_problem):
    lines = find_blockages(reference_problem.with_params(horizon=1000))
    assert any(line.startswith("Engine-1 + Engine-2 (exclusive)") for line in lines)


def test_no_orders_gives_empty_frames():
    problem = ProblemSpec(products=(Product(0, 10, 30),), orders=())
    assert order_slack(problem).empty
    assert find_blockages(problem) == []


def test_run_diagnostics_writes_files(reference_problem, tmp_path):
    run_diagnostics(reference_problem, tmp_path)
    for name in ("diag_orders.csv", "diag_engines.csv", "diag_blockages.txt"):
        assert (tmp_path / name).exists()
    assert "No order or engine overload" in (tmp_path / "diag_blockages.txt").read_text(encoding="utf-8")

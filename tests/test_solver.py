# test_solver.py — End-to-end search on the reference instance and small cases.

import pytest

from ordo.data_loader import Order, Params, Product, ProblemSpec
from ordo.model_builder import build_model
from ordo.propagation import FailureWeights
from ordo.scheduler import run_schedule
from ordo.search import make_strategy
from ordo.solver import INFEASIBLE, LIMIT_REACHED, SOLVED, Solver
from ordo.validate_schedule import problems_found, validate_all


def _assert_valid(problem, schedule):
    report = validate_all(problem, schedule)
    assert problems_found(report) == []


@pytest.mark.parametrize("policy", ["input_order", "min_dom", "dom_wdeg"])
def test_reference_instance_is_solved_by_every_policy(reference_problem, policy):
    problem = reference_problem.with_params(search=policy)
    result, schedule = run_schedule(problem)
    assert result.status == SOLVED
    assert result.has_solution
    assert len(schedule) == 16
    _assert_valid(problem, schedule)


def test_first_order_meets_its_deadline(reference_problem):
    _, schedule = run_schedule(reference_problem)
    p1, p2 = schedule.for_order("FO0")
    assert p1.engine_id == 0 and p2.engine_id == 1
    assert p1.end <= p2.start
    assert p2.end <= 700


def test_same_seed_gives_the_same_schedule(reference_problem):
    _, first = run_schedule(reference_problem)
    _, second = run_schedule(reference_problem)
    assert first == second


def test_input_order_places_phase_one_back_to_back(reference_problem):
    _, schedule = run_schedule(reference_problem.with_params(search="input_order"))
    engine0 = schedule.for_engine(0)
    assert engine0[0].start == 0
    for prev, nxt in zip(engine0, engine0[1:]):
        assert prev.end <= nxt.start


def test_single_order_schedule():
    problem = ProblemSpec(
        products=(Product(0, 10, 30),),
        orders=(Order("A", product_id=0, quantity=5, deadline=700),),
        params=Params(horizon=2500, search="input_order"),
    )
    result, schedule = run_schedule(problem)
    assert result.status == SOLVED
    p1, p2 = schedule.for_order("A")
    assert (p1.start, p1.end, p1.engine_id) == (0, 50, 0)
    assert (p2.start, p2.end, p2.engine_id) == (50, 200, 1)


def test_deadline_shorter_than_the_phases_is_infeasible():
    problem = ProblemSpec(
        products=(Product(0, 10, 30),),
        orders=(Order("A", product_id=0, quantity=5, deadline=150),),
    )
    result, schedule = run_schedule(problem)
    assert result.status == INFEASIBLE
    assert schedule is None
    assert result.stats.nodes == 0


def test_two_orders_competing_for_one_engine_are_infeasible():
    problem = ProblemSpec(
        products=(Product(0, 10, 30),),
        orders=(
            Order("A", product_id=0, quantity=1, deadline=40),
            Order("B", product_id=0, quantity=1, deadline=40),
        ),
        params=Params(horizon=100),
    )
    result, schedule = run_schedule(problem)
    assert result.status == INFEASIBLE
    assert schedule is None


def test_extra_engine_runs_phase_one_on_the_pool(reference_problem):
    problem = reference_problem.with_params(extra_engine=True)
    result, schedule = run_schedule(problem)
    assert result.status == SOLVED
    assert {e.engine_id for e in schedule if e.phase == 1} <= {0, 4}
    _assert_valid(problem, schedule)


def test_without_exclusive_pair_engines_one_and_two_may_overlap(reference_problem):
    problem = reference_problem.with_params(exclusive_engines=False)
    result, schedule = run_schedule(problem)
    assert result.status == SOLVED
    _assert_valid(problem, schedule)


def test_node_limit_stops_the_search(reference_problem):
    result, schedule = run_schedule(reference_problem.with_params(node_limit=1))
    assert result.status == LIMIT_REACHED
    assert not result.has_solution
    assert schedule is None
    assert result.stats.nodes == 1


def test_stats_are_collected(reference_problem):
    result, _ = run_schedule(reference_problem)
    s = result.stats
    assert s.nodes > 0
    assert s.propagations > 0
    assert s.max_depth > 0
    assert s.wall_time >= 0
    assert s.as_lines()[0] == f"Nodes: {s.nodes}"


def test_solver_is_single_use(reference_problem):
    model, v = build_model(reference_problem)
    strategy = make_strategy("input_order", v["start"], list(v["assign"].values()), model.store)
    solver = Solver(model, strategy, FailureWeights())
    assert solver.solve().status == SOLVED
    with pytest.raises(RuntimeError):
        solver.solve()

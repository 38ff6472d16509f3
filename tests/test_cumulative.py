# test_cumulative.py — Time-table profile, overload detection and filtering.

import pytest

from ordo.constraints import TaskLink
from ordo.cumulative import Cumulative, EngineTask, Task, build_profile
from ordo.errors import Inconsistency
from ordo.propagation import Model, PropagationEngine


def _task(m, j, s_lb, s_ub, dur, horizon=100):
    t = Task(
        index=j,
        order_index=j,
        phase=1,
        start=m.new_int_var(s_lb, s_ub, f"s{j}"),
        duration=m.new_constant(dur, f"d{j}"),
        end=m.new_int_var(0, horizon, f"e{j}"),
        demand=m.new_constant(1, f"c{j}"),
    )
    m.add(TaskLink(t.start, t.duration, t.end))
    return t


def test_build_profile_merges_overlaps():
    assert build_profile([(0, 10, 1), (5, 15, 1)]) == [(0, 5, 1), (5, 10, 2), (10, 15, 1)]
    assert build_profile([(0, 5, 1), (10, 15, 1)]) == [(0, 5, 1), (10, 15, 1)]
    assert build_profile([]) == []


def test_fixed_task_pushes_other_start_past_it():
    m = Model()
    a = _task(m, 0, 0, 0, 10)
    b = _task(m, 1, 0, 95, 5)
    m.add(Cumulative([a, b], 1, name="engine"))
    PropagationEngine(m).propagate()
    assert b.start.lb == 10


def test_latest_end_pulled_before_fixed_task():
    m = Model()
    a = _task(m, 0, 90, 90, 10)
    b = _task(m, 1, 0, 95, 5)
    m.add(Cumulative([a, b], 1))
    PropagationEngine(m).propagate()
    assert b.end.ub == 90
    assert b.start.ub == 85


def test_overload_of_mandatory_parts_fails():
    m = Model()
    a = _task(m, 0, 0, 0, 10)
    b = _task(m, 1, 5, 5, 10)
    m.add(Cumulative([a, b], 1, name="engine"))
    with pytest.raises(Inconsistency):
        PropagationEngine(m).propagate()


def test_capacity_two_allows_two_overlapping_tasks():
    m = Model()
    tasks = [_task(m, j, 0, 0, 10) for j in range(2)]
    c = _task(m, 2, 0, 90, 10)
    m.add(Cumulative(tasks + [c], 2))
    PropagationEngine(m).propagate()
    assert c.start.lb == 10


def test_optional_view_is_unassigned_when_engine_is_busy():
    m = Model()
    busy = _task(m, 0, 0, 0, 10)
    other = _task(m, 1, 0, 0, 10)
    flag_busy = m.new_bool_var("ex0,0")
    flag_other = m.new_bool_var("ex0,1")
    flag_busy.instantiate(1)
    views = [EngineTask(busy, 0, flag_busy), EngineTask(other, 0, flag_other)]
    m.add(Cumulative(views, 1))
    PropagationEngine(m).propagate()
    assert flag_other.is_instantiated_to(0)
    assert views[1].is_absent()
    assert views[1].projected("start") == 0
    assert views[0].projected("end") == 10


def test_absent_view_does_not_constrain_its_task():
    m = Model()
    a = _task(m, 0, 0, 0, 10)
    b = _task(m, 1, 0, 95, 5)
    fa = m.new_bool_var("ex0,0")
    fb = m.new_bool_var("ex0,1")
    fa.instantiate(1)
    fb.instantiate(0)
    m.add(Cumulative([EngineTask(a, 0, fa), EngineTask(b, 0, fb)], 1))
    PropagationEngine(m).propagate()
    assert b.start.lb == 0


def test_is_satisfied_counts_only_assigned_views():
    m = Model()
    a = _task(m, 0, 0, 0, 10)
    b = _task(m, 1, 0, 0, 10)
    fa = m.new_bool_var("fa")
    fb = m.new_bool_var("fb")
    fa.instantiate(1)
    fb.instantiate(0)
    PropagationEngine(m).propagate()
    assert Cumulative([EngineTask(a, 0, fa), EngineTask(b, 0, fb)], 1).is_satisfied()
    assert not Cumulative([a, b], 1).is_satisfied()

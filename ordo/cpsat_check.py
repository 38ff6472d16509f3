# cpsat_check.py — The same scheduling model in OR-Tools CP-SAT, used to
# cross-check the feasibility verdict of the backtracking solver.

from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Tuple

from ortools.sat.python import cp_model

from ordo.data_loader import ProblemSpec
from ordo.extractor import Schedule, ScheduledTask

logger = logging.getLogger(__name__)


def build_cpsat_model(problem: ProblemSpec) -> Tuple[cp_model.CpModel, Dict[str, Any]]:
    problem.validate()
    model = cp_model.CpModel()
    P = problem.params
    H = P.horizon
    engines = problem.engines

    start = {}
    end = {}
    interval = {}
    present = {}          # (engine, task) -> BoolVar
    engine_intervals = {e.engine_id: [] for e in engines}

    for o_idx, o in enumerate(problem.orders):
        for phase, dur in zip((1, 2), problem.durations(o)):
            j = 2 * o_idx + phase - 1
            start[j] = model.NewIntVar(0, H, f"s{j}")
            end[j] = model.NewIntVar(0, H, f"e{j}")
            interval[j] = model.NewIntervalVar(start[j], dur, end[j], f"I{j}")
            lits = []
            for e in engines:
                if not e.is_eligible(o.product_id, phase):
                    continue
                key = (e.engine_id, j)
                present[key] = model.NewBoolVar(f"ex{e.engine_id},{j}")
                engine_intervals[e.engine_id].append(
                    model.NewOptionalIntervalVar(start[j], dur, end[j], present[key], f"I{j}@E{e.engine_id}")
                )
                lits.append(present[key])
            model.AddExactlyOne(lits)
        # Precedence and deadline
        model.Add(end[2 * o_idx] <= start[2 * o_idx + 1])
        model.Add(end[2 * o_idx + 1] <= o.deadline)

    for e in engines:
        model.AddNoOverlap(engine_intervals[e.engine_id])
    if P.exclusive_engines:
        a, b = P.exclusive_pair
        model.AddNoOverlap(engine_intervals[a] + engine_intervals[b])
    all_intervals = [interval[j] for j in sorted(interval)]
    model.AddCumulative(all_intervals, [1] * len(all_intervals), len(engines))

    return model, {"start": start, "end": end, "present": present}


def cross_check(problem: ProblemSpec, time_limit: float = 30.0) -> Tuple[str, Optional[Schedule]]:
    """Solve with CP-SAT; returns (status name, schedule or None)."""
    model, vars_dict = build_cpsat_model(problem)
    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = float(time_limit)
    solver.parameters.num_workers = 1
    solver.parameters.random_seed = int(problem.params.seed) % (2**31)
    status = solver.Solve(model)
    status_name = solver.StatusName(status)
    logger.info("CP-SAT cross-check status=%s (%.2fs)", status_name, solver.WallTime())
    if status not in (cp_model.FEASIBLE, cp_model.OPTIMAL):
        return status_name, None

    start, end, present = vars_dict["start"], vars_dict["end"], vars_dict["present"]
    entries = []
    for j in sorted(start):
        o = problem.orders[j // 2]
        engine_id = next(i for (i, t), lit in present.items() if t == j and solver.BooleanValue(lit))
        entries.append(
            ScheduledTask(
                task_id=j,
                order_id=o.order_id,
                phase=j % 2 + 1,
                engine_id=engine_id,
                start=solver.Value(start[j]),
                end=solver.Value(end[j]),
            )
        )
    return status_name, Schedule(tuple(entries))

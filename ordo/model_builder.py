# model_builder.py — Constraint model construction for the Ordo scheduler.
# Two tasks per fabrication order, one assignment flag per (engine, task),
# one cumulative per engine plus the exclusive-pair, pool and global ones.

from __future__ import annotations
import logging
from typing import Any, Dict, List, Tuple

from ordo.constraints import ExactlyOne, LessEqual, Relation, TaskLink
from ordo.cumulative import Cumulative, EngineTask, Task
from ordo.data_loader import ProblemSpec
from ordo.errors import ConfigurationError
from ordo.propagation import Model

logger = logging.getLogger(__name__)


def build_model(problem: ProblemSpec) -> Tuple[Model, Dict[str, Any]]:
    problem.validate()
    P = problem.params
    H = P.horizon
    orders = problem.orders
    engines = problem.engines
    model = Model(f"ordo_{len(orders)}_orders")

    # ── Tasks: two per order, index 2*o (phase 1) and 2*o + 1 (phase 2) ───
    tasks: List[Task] = []
    for o_idx, o in enumerate(orders):
        for phase, dur in zip((1, 2), problem.durations(o)):
            j = len(tasks)
            task = Task(
                index=j,
                order_index=o_idx,
                phase=phase,
                start=model.new_int_var(0, H, f"s{j}"),
                duration=model.new_constant(dur, f"d{j}"),
                end=model.new_int_var(0, H, f"e{j}"),
                demand=model.new_constant(1, f"c{j}"),
            )
            model.add(TaskLink(task.start, task.duration, task.end))
            tasks.append(task)

    # ── Precedence inside each order and deadlines ────────────────────────
    for o_idx, o in enumerate(orders):
        first, second = tasks[2 * o_idx], tasks[2 * o_idx + 1]
        model.add(LessEqual(first.end, second.start, name=f"prec_{o.order_id}"))
        model.add(Relation(second.end, "<=", o.deadline, name=f"deadline_{o.order_id}"))

    # ── Assignment flags and eligibility ──────────────────────────────────
    assign: Dict[Tuple[int, int], Any] = {}
    engine_tasks: Dict[int, List[EngineTask]] = {e.engine_id: [] for e in engines}
    for e in engines:
        i = e.engine_id
        for task in tasks:
            j = task.index
            product_id = orders[task.order_index].product_id
            flag = model.new_bool_var(f"ex{i},{j}")
            assign[(i, j)] = flag
            if not e.is_eligible(product_id, task.phase):
                model.add(Relation(flag, "=", 0))
            elif task.phase == 2:
                # Phase 2 has exactly one designated engine per product
                model.add(Relation(flag, "=", 1))
            engine_tasks[i].append(EngineTask(task, i, flag))

    for task in tasks:
        eligible = [
            e.engine_id
            for e in engines
            if e.is_eligible(orders[task.order_index].product_id, task.phase)
        ]
        if not eligible:
            raise ConfigurationError(
                f"{task.name} (order {orders[task.order_index].order_id}, phase {task.phase}) has no eligible engine"
            )
        model.add(ExactlyOne([assign[(e.engine_id, task.index)] for e in engines], name=f"one_engine_{task.name}"))

    # ── Resource constraints ──────────────────────────────────────────────
    for e in engines:
        model.add(Cumulative(engine_tasks[e.engine_id], e.capacity, name=f"engine_{e.engine_id}"))

    if P.exclusive_engines:
        a, b = P.exclusive_pair
        model.add(Cumulative(engine_tasks[a] + engine_tasks[b], 1, name=f"exclusive_{a}_{b}"))

    pool = P.phase1_pool
    if len(pool) > 1:
        phase1_tasks = [t for t in tasks if t.phase == 1]
        model.add(Cumulative(phase1_tasks, len(pool), name="phase1_pool"))

    model.add(Cumulative(tasks, len(engines), name="global"))

    vars_dict = {
        "tasks": tasks,
        "start": [t.start for t in tasks],
        "end": [t.end for t in tasks],
        "duration": [t.duration for t in tasks],
        "demand": [t.demand for t in tasks],
        "assign": assign,
        "engine_tasks": engine_tasks,
    }
    logger.info(
        "Built %s: %d tasks, %d engines, %d variables, %d constraints",
        model.name, len(tasks), len(engines), len(model.store), len(model.constraints),
    )
    return model, vars_dict

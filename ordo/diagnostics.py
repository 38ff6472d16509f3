# diagnostics.py — Pre-solve diagnostic passes for the Ordo scheduler.

from __future__ import annotations
from pathlib import Path
from typing import List

import pandas as pd

from ordo.data_loader import ProblemSpec, lower_bound_makespan, total_work

ORDER_COLUMNS = [
    "order_id", "product_id", "quantity", "phase1_duration", "phase2_duration",
    "deadline", "slack", "phase1_engines", "phase2_engines",
]


def order_slack(problem: ProblemSpec) -> pd.DataFrame:
    """Per order: phase durations, deadline and slack = deadline - (phase 1 + phase 2)."""
    H = problem.params.horizon
    rows = []
    for o in problem.orders:
        d1, d2 = problem.durations(o)
        due = min(o.deadline, H)
        rows.append(
            dict(
                order_id=o.order_id,
                product_id=o.product_id,
                quantity=o.quantity,
                phase1_duration=d1,
                phase2_duration=d2,
                deadline=o.deadline,
                slack=due - d1 - d2,
                phase1_engines="|".join(str(e) for e in problem.eligible_engines(o, 1)),
                phase2_engines="|".join(str(e) for e in problem.eligible_engines(o, 2)),
            )
        )
    return pd.DataFrame(rows, columns=ORDER_COLUMNS)


def engine_load(problem: ProblemSpec) -> pd.DataFrame:
    """Per engine: work that can only run there, and the share of the horizon it takes.

    Phase-1 work is spread evenly over the phase-1 pool.
    """
    P = problem.params
    pool = P.phase1_pool
    required = {e.engine_id: 0.0 for e in problem.engines}
    for o in problem.orders:
        d1, d2 = problem.durations(o)
        for e in pool:
            required[e] += d1 / len(pool)
        for e in problem.eligible_engines(o, 2):
            required[e] += d2
    rows = []
    for e in problem.engines:
        req = required[e.engine_id]
        rows.append(
            dict(
                engine_id=e.engine_id,
                engine_name=e.name,
                runs_phase1=e.runs_phase1,
                phase2_products="|".join(str(p) for p in sorted(e.phase2_products)),
                required=round(req, 1),
                available=P.horizon,
                utilisation=round(req / P.horizon, 3) if P.horizon else 0.0,
            )
        )
    return pd.DataFrame(rows)


def find_blockages(problem: ProblemSpec) -> List[str]:
    """Obvious reasons for infeasibility; an empty list proves nothing."""
    P = problem.params
    out: List[str] = []
    slack = order_slack(problem)
    for _, r in slack[slack["slack"] < 0].iterrows():
        out.append(
            f"Order {r['order_id']}: phases need {r['phase1_duration'] + r['phase2_duration']} "
            f"but the deadline leaves {min(int(r['deadline']), P.horizon)}"
        )
    load = engine_load(problem)
    for _, r in load[load["required"] > load["available"]].iterrows():
        out.append(f"{r['engine_name']}: needs {r['required']} time units, horizon is {r['available']}")
    if P.exclusive_engines:
        a, b = P.exclusive_pair
        shared = float(load.loc[load["engine_id"].isin([a, b]), "required"].sum())
        if shared > P.horizon:
            out.append(f"Engine-{a} + Engine-{b} (exclusive): need {shared} time units, horizon is {P.horizon}")
    work = total_work(problem)
    if work > P.horizon * P.total_engines:
        out.append(f"Total work {work} exceeds {P.total_engines} engines x horizon {P.horizon}")
    if lower_bound_makespan(problem) > P.horizon:
        out.append(f"Longest order chain {lower_bound_makespan(problem)} exceeds horizon {P.horizon}")
    return out


def run_diagnostics(problem: ProblemSpec, out_dir: Path) -> List[str]:
    """Write diag_orders.csv, diag_engines.csv and diag_blockages.txt; return the blockage lines."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    order_slack(problem).to_csv(out_dir / "diag_orders.csv", index=False)
    engine_load(problem).to_csv(out_dir / "diag_engines.csv", index=False)
    blockages = find_blockages(problem)
    with open(out_dir / "diag_blockages.txt", "w", encoding="utf-8") as f:
        if blockages:
            f.write("\n".join(blockages) + "\n")
        else:
            f.write(
                "No order or engine overload found by aggregate durations.\n"
                "Infeasibility may still come from sequencing, precedence or the exclusive engines.\n"
            )
    return blockages

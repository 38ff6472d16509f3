# validate_schedule.py -- Post-solve validation for Ordo schedules.
# Checks: durations, precedence and deadlines, eligibility, engine capacity,
# exclusive engines, global capacity.  Every check returns a list of lines;
# a clean check returns a single line ending in "OK.".

from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import Dict, List, Tuple

import pandas as pd

from ordo.cumulative import build_profile
from ordo.data_loader import ProblemSpec, load_problem
from ordo.extractor import Schedule


# ---------------------------------------------------------------------------
# Check 1: every task has its duration and every order has both phases
# ---------------------------------------------------------------------------
def check_durations(problem: ProblemSpec, schedule: Schedule) -> List[str]:
    issues: List[str] = []
    by_order: Dict[str, Dict[int, object]] = {}
    for e in schedule:
        by_order.setdefault(e.order_id, {})[e.phase] = e
    for o in problem.orders:
        phases = by_order.get(o.order_id, {})
        for phase, dur in zip((1, 2), problem.durations(o)):
            e = phases.get(phase)
            if e is None:
                issues.append(f"MISSING: {o.order_id} phase {phase} not scheduled")
            elif e.end - e.start != dur:
                issues.append(
                    f"DURATION: {o.order_id} phase {phase} runs [{e.start},{e.end}) but needs {dur}"
                )
    if not issues:
        issues.append("DURATIONS: start + duration = end for every task. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 2: phase 1 before phase 2, phase 2 before the deadline
# ---------------------------------------------------------------------------
def check_precedence_and_deadlines(problem: ProblemSpec, schedule: Schedule) -> List[str]:
    issues: List[str] = []
    for o in problem.orders:
        phases = {e.phase: e for e in schedule.for_order(o.order_id)}
        if 1 not in phases or 2 not in phases:
            continue
        p1, p2 = phases[1], phases[2]
        if p1.end > p2.start:
            issues.append(f"PRECEDENCE: {o.order_id} phase 1 ends at {p1.end} after phase 2 starts at {p2.start}")
        if p2.end > o.deadline:
            issues.append(f"DEADLINE: {o.order_id} ends at {p2.end} > deadline {o.deadline}")
        if p1.start < 0 or p2.end > problem.params.horizon:
            issues.append(f"HORIZON: {o.order_id} runs outside [0,{problem.params.horizon}]")
    if not issues:
        issues.append("PRECEDENCE: Phases ordered and deadlines met. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 3: every task runs on an eligible engine
# ---------------------------------------------------------------------------
def check_eligibility(problem: ProblemSpec, schedule: Schedule) -> List[str]:
    issues: List[str] = []
    orders = {o.order_id: o for o in problem.orders}
    seen: Dict[int, int] = {}
    for e in schedule:
        seen[e.task_id] = seen.get(e.task_id, 0) + 1
        o = orders.get(e.order_id)
        if o is None:
            issues.append(f"UNKNOWN: {e.task_name} belongs to unknown order {e.order_id}")
            continue
        eligible = problem.eligible_engines(o, e.phase)
        if e.engine_id not in eligible:
            issues.append(
                f"ELIGIBILITY: {e.task_name} ({e.order_id} phase {e.phase}) on Engine-{e.engine_id}, "
                f"allowed {eligible}"
            )
    for task_id, n in sorted(seen.items()):
        if n != 1:
            issues.append(f"ASSIGNMENT: T{task_id} appears {n} times")
    if not issues:
        issues.append("ELIGIBILITY: Every task on exactly one eligible engine. OK.")
    return issues


def _overloads(intervals: List[Tuple[int, int]], capacity: int) -> List[Tuple[int, int, int]]:
    profile = build_profile([(s, e, 1) for s, e in intervals if e > s])
    return [(a, b, h) for a, b, h in profile if h > capacity]


# ---------------------------------------------------------------------------
# Check 4: unit capacity per engine
# ---------------------------------------------------------------------------
def check_engine_capacity(problem: ProblemSpec, schedule: Schedule) -> List[str]:
    issues: List[str] = []
    for engine in problem.engines:
        rows = schedule.for_engine(engine.engine_id)
        for a, b, h in _overloads([(r.start, r.end) for r in rows], engine.capacity):
            issues.append(f"OVERLAP: {engine.name} runs {h} tasks on [{a},{b})")
    if not issues:
        issues.append("CAPACITY: No engine runs two tasks at once. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 5: the exclusive engines never run together
# ---------------------------------------------------------------------------
def check_exclusive_engines(problem: ProblemSpec, schedule: Schedule) -> List[str]:
    P = problem.params
    if not P.exclusive_engines:
        return ["EXCLUSIVE: No exclusive engines configured. OK."]
    a, b = P.exclusive_pair
    rows = schedule.for_engine(a) + schedule.for_engine(b)
    issues = [
        f"EXCLUSIVE: Engine-{a} and Engine-{b} both busy on [{s},{e})"
        for s, e, _ in _overloads([(r.start, r.end) for r in rows], 1)
    ]
    if not issues:
        issues.append(f"EXCLUSIVE: Engine-{a} and Engine-{b} never run together. OK.")
    return issues


# ---------------------------------------------------------------------------
# Check 6: global capacity
# ---------------------------------------------------------------------------
def check_global_capacity(problem: ProblemSpec, schedule: Schedule) -> List[str]:
    n = problem.params.total_engines
    issues = [
        f"GLOBAL: {h} tasks running on [{a},{b}) with {n} engines"
        for a, b, h in _overloads([(r.start, r.end) for r in schedule], n)
    ]
    if not issues:
        issues.append("GLOBAL: Concurrent tasks never exceed the engine count. OK.")
    return issues


CHECKS = (
    ("Durations", check_durations),
    ("Precedence & Deadlines", check_precedence_and_deadlines),
    ("Eligibility", check_eligibility),
    ("Engine Capacity", check_engine_capacity),
    ("Exclusive Engines", check_exclusive_engines),
    ("Global Capacity", check_global_capacity),
)


def problems_found(lines: List[str]) -> List[str]:
    """Issue lines ("TAG: ...") that are not clean-check lines."""
    out = []
    for ln in lines:
        tag, sep, _ = ln.partition(":")
        if sep and tag.isupper() and not ln.endswith("OK."):
            out.append(ln)
    return out


# ---------------------------------------------------------------------------
# Summary report
# ---------------------------------------------------------------------------
def validate_all(problem: ProblemSpec, schedule: Schedule, out_dir: Path | None = None, verbose: bool = False) -> List[str]:
    """Run all validation checks and return combined report lines."""
    report: List[str] = ["=" * 60, "Ordo Schedule Validation Report", "=" * 60, ""]
    all_issues: List[str] = []
    for title, check in CHECKS:
        report.append(f"--- {title} ---")
        issues = check(problem, schedule)
        report.extend(issues)
        report.append("")
        all_issues.extend(issues)

    n_ok = sum(1 for i in all_issues if i.endswith("OK."))
    n_problems = len(problems_found(all_issues))
    report.append("=" * 60)
    report.append(f"Checks passed: {n_ok}/{len(CHECKS)}    Issues found: {n_problems}")
    report.append("=" * 60)

    if out_dir is not None:
        with open(Path(out_dir) / "validation_report.txt", "w", encoding="utf-8") as f:
            f.write("\n".join(report))

    if verbose:
        for line in report:
            print(line)

    return report


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate an Ordo schedule.csv against its problem data.")
    parser.add_argument("--data-dir", type=Path, required=True, help="Directory with products.csv, orders.csv")
    parser.add_argument("--schedule", type=Path, default=None, help="schedule.csv (default: data-dir/schedule.csv)")
    args = parser.parse_args(argv)
    problem = load_problem(args.data_dir)
    schedule_path = args.schedule or (args.data_dir / "schedule.csv")
    schedule = Schedule.from_dataframe(pd.read_csv(schedule_path))
    report = validate_all(problem, schedule, out_dir=schedule_path.parent, verbose=True)
    return 1 if problems_found(report) else 0


if __name__ == "__main__":
    sys.exit(main())

# scheduler.py — Ordo scheduler CLI and orchestration.
# Load problem -> build model -> search -> extract -> validate -> report.

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ordo.data_loader import (
    SEARCH_POLICIES,
    Files,
    ProblemSpec,
    default_problem,
    load_params,
    load_problem,
    params_to_dict,
)
from ordo.diagnostics import run_diagnostics
from ordo.errors import ConfigurationError
from ordo.extractor import Schedule, extract_schedule
from ordo.helpers.logger import LOG_FILE, configure_logging
from ordo.helpers.safe_io import safe_write_text, safe_write_toml
from ordo.model_builder import build_model
from ordo.propagation import FailureWeights
from ordo.search import make_strategy
from ordo.solver import LIMIT_REACHED, SolveResult, Solver
from ordo.validate_schedule import problems_found, validate_all

logger = logging.getLogger(__name__)

KPI_FILE = "solver_kpis.txt"
RUN_CONFIG_FILE = "run_config.toml"

EXIT_OK = 0
EXIT_LIMIT = 1
EXIT_CONFIG = 2


def run_schedule(problem: ProblemSpec) -> Tuple[SolveResult, Optional[Schedule]]:
    """Build, search and extract. The schedule is None unless the status is SOLVED."""
    P = problem.params
    model, vars_dict = build_model(problem)
    assign = vars_dict["assign"]
    engine_ids = sorted({i for i, _ in assign})
    flags = [assign[(i, t.index)] for i in engine_ids for t in vars_dict["tasks"]]
    weights = FailureWeights()
    strategy = make_strategy(P.search, vars_dict["start"], flags, model.store, seed=P.seed)
    solver = Solver(
        model,
        strategy,
        weights=weights,
        node_limit=P.node_limit,
        time_limit=P.time_limit,
    )
    result = solver.solve()
    if not result.has_solution:
        return result, None
    return result, extract_schedule(problem, vars_dict)


def write_kpi_lines(lines: List[str], out_dir: Path) -> None:
    safe_write_text("".join(ln.rstrip() + "\n" for ln in lines), Path(out_dir) / KPI_FILE)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Ordo two-phase plant scheduler (constraint propagation + backtracking search)."
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory with products.csv, orders.csv and optional ordo.toml (default: built-in reference instance)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="ordo.toml to read parameters from (default: data-dir/ordo.toml)",
    )
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=None,
        help="Directory for outputs (default: data-dir, or ./ordo_out for the reference instance)",
    )
    parser.add_argument("--search", choices=SEARCH_POLICIES, default=None, help="Search policy")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the random flag strategy of dom_wdeg")
    parser.add_argument("--node-limit", type=int, default=None, help="Stop after this many search nodes")
    parser.add_argument("--time-limit", type=float, default=None, help="Stop after this many seconds")
    parser.add_argument(
        "--no-exclusive",
        action="store_true",
        help="Let the exclusive engine pair run at the same time",
    )
    parser.add_argument(
        "--extra-engine",
        action="store_true",
        help="Add one more engine to the phase-1 pool",
    )
    parser.add_argument(
        "--diagnose",
        action="store_true",
        help="Run diagnostics only (diag_orders.csv, diag_engines.csv, diag_blockages.txt)",
    )
    parser.add_argument(
        "--cross-check",
        action="store_true",
        help="Also solve with OR-Tools CP-SAT and compare the feasibility verdict",
    )
    parser.add_argument("--no-report", action="store_true", help="Skip schedule.csv, schedule_slots.csv and gantt.html")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every backtrack")
    return parser.parse_args(argv)


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.search is not None:
        overrides["search"] = args.search
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.node_limit is not None:
        overrides["node_limit"] = args.node_limit
    if args.time_limit is not None:
        overrides["time_limit"] = args.time_limit
    if args.no_exclusive:
        overrides["exclusive_engines"] = False
    if args.extra_engine:
        overrides["extra_engine"] = True
    return overrides


def _load(args: argparse.Namespace) -> ProblemSpec:
    if args.data_dir is not None:
        config = args.config if args.config is not None else Path(Files(args.data_dir).config)
        problem = load_problem(args.data_dir, params=load_params(config))
    else:
        problem = default_problem()
        if args.config is not None:
            problem = ProblemSpec(problem.products, problem.orders, load_params(args.config))
    problem = problem.with_params(**_cli_overrides(args))
    problem.validate()
    return problem


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    if args.out_dir is not None:
        out_dir = args.out_dir
    elif args.data_dir is not None:
        out_dir = args.data_dir
    else:
        out_dir = Path("ordo_out")
    out_dir = out_dir.resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    configure_logging(out_dir / LOG_FILE, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        problem = _load(args)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        write_kpi_lines([f"Status: CONFIG_ERROR ({exc})"], out_dir)
        return EXIT_CONFIG

    P = problem.params
    safe_write_toml(params_to_dict(P), out_dir / RUN_CONFIG_FILE)
    logger.info(
        "Problem: %d products, %d orders, %d engines, horizon %d, search=%s",
        len(problem.products), len(problem.orders), P.total_engines, P.horizon, P.search,
    )

    if args.diagnose:
        blockages = run_diagnostics(problem, out_dir)
        for line in blockages:
            logger.warning(line)
        write_kpi_lines(
            ["Status: DIAG COMPLETE (see diag_orders.csv, diag_engines.csv, diag_blockages.txt)"],
            out_dir,
        )
        return EXIT_OK

    result, schedule = run_schedule(problem)
    kpis = [f"Status: {result.status}", f"Strategy: {result.strategy}"] + result.stats.as_lines()

    if schedule is not None:
        kpis.append(f"Makespan: {schedule.makespan}")
        report = validate_all(problem, schedule, out_dir=out_dir)
        issues = problems_found(report)
        kpis.append(f"Validation issues: {len(issues)}")
        for line in issues:
            logger.error(line)
        if not args.no_report:
            from ordo.gantt_viewer import write_report

            write_report(schedule, problem, out_dir)

    if args.cross_check:
        from ordo.cpsat_check import cross_check

        cp_status, _ = cross_check(problem, time_limit=P.time_limit or 30.0)
        kpis.append(f"CP-SAT: {cp_status}")
        feasible = cp_status in ("FEASIBLE", "OPTIMAL")
        if result.status != LIMIT_REACHED and cp_status != "UNKNOWN" and feasible != result.has_solution:
            logger.warning("CP-SAT says %s but the search ended %s", cp_status, result.status)

    write_kpi_lines(kpis, out_dir)
    return EXIT_LIMIT if result.status == LIMIT_REACHED else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

# gantt_viewer.py — Schedule report: per-engine summary, time-slot table and Gantt chart.
# Slot cells carry "Task j" for every slot the task covers; bars are coloured by order.

from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, List

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from ordo.data_loader import ProblemSpec, horizon_slots
from ordo.extractor import Schedule
from ordo.helpers.safe_io import safe_write_csv

logger = logging.getLogger(__name__)


def schedule_to_frame(schedule: Schedule, problem: ProblemSpec) -> pd.DataFrame:
    """Schedule rows plus display columns (engine name, product, duration), sorted by engine then start."""
    df = schedule.to_dataframe()
    products = {o.order_id: o.product_id for o in problem.orders}
    df["engine_name"] = df["engine_id"].map(lambda i: f"Engine-{i}")
    df["task_name"] = df["task_id"].map(lambda j: f"T{j}")
    df["product_id"] = df["order_id"].map(products)
    df["duration"] = df["end"] - df["start"]
    return df.sort_values(["engine_id", "start"]).reset_index(drop=True)


def engine_schedule_lines(schedule: Schedule, problem: ProblemSpec) -> List[str]:
    """One line per engine: ``Engine-i :: T0-[0,50] T3-[50,200]``."""
    lines = []
    for engine in problem.engines:
        parts = [f"{e.task_name}-[{e.start},{e.end}]" for e in schedule.for_engine(engine.engine_id)]
        lines.append(f"{engine.name} :: " + " ".join(parts))
    return lines


def slot_labels(problem: ProblemSpec) -> List[str]:
    w = problem.params.slot_width
    return [f"[{k * w},{(k + 1) * w}]" for k in range(horizon_slots(problem))]


def build_slot_table(schedule: Schedule, problem: ProblemSpec) -> pd.DataFrame:
    """Rows ``Engine-i``, columns ``[a,b]`` of width slot_width, cells ``Task j`` or empty.

    A task on [s, e) fills slots s // w up to (not including) e // w.
    """
    w = problem.params.slot_width
    labels = slot_labels(problem)
    engines = [e.name for e in problem.engines]
    table = pd.DataFrame("", index=engines, columns=labels)
    table.index.name = "Time slots"
    for entry in schedule:
        row = f"Engine-{entry.engine_id}"
        for k in range(entry.start // w, min(entry.end // w, len(labels))):
            table.loc[row, labels[k]] = f"Task {entry.task_id}"
    return table


def build_gantt_figure(schedule: Schedule, problem: ProblemSpec) -> go.Figure:
    df = schedule_to_frame(schedule, problem)
    palette = px.colors.qualitative.Plotly
    order_ids = [o.order_id for o in problem.orders]
    colour: Dict[str, str] = {oid: palette[i % len(palette)] for i, oid in enumerate(order_ids)}

    fig = go.Figure()
    for oid in order_ids:
        sub = df[df["order_id"] == oid]
        if sub.empty:
            continue
        fig.add_trace(
            go.Bar(
                name=oid,
                y=sub["engine_name"],
                x=sub["duration"],
                base=sub["start"],
                orientation="h",
                marker_color=colour[oid],
                text=sub["task_name"],
                textposition="inside",
                customdata=sub[["task_name", "phase", "start", "end"]].values,
                hovertemplate=(
                    "%{customdata[0]} (phase %{customdata[1]})<br>"
                    "[%{customdata[2]}, %{customdata[3]})<extra>" + oid + "</extra>"
                ),
            )
        )
    fig.update_layout(
        title=f"Ordo schedule (makespan {schedule.makespan})",
        barmode="overlay",
        xaxis=dict(title="Time", range=[0, problem.params.horizon]),
        yaxis=dict(
            title="Engine",
            categoryorder="array",
            categoryarray=[e.name for e in reversed(problem.engines)],
        ),
        legend_title_text="Order",
        height=120 + 60 * len(problem.engines),
    )
    return fig


def write_report(schedule: Schedule, problem: ProblemSpec, out_dir: Path) -> Dict[str, Path]:
    """Write schedule.csv, schedule_slots.csv and gantt.html into out_dir."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "schedule": out_dir / "schedule.csv",
        "slots": out_dir / "schedule_slots.csv",
        "gantt": out_dir / "gantt.html",
    }
    safe_write_csv(schedule.to_dataframe(), paths["schedule"])
    safe_write_csv(build_slot_table(schedule, problem), paths["slots"], index=True)
    build_gantt_figure(schedule, problem).write_html(str(paths["gantt"]), include_plotlyjs="cdn")
    for line in engine_schedule_lines(schedule, problem):
        logger.info(line)
    logger.info("Report written to %s", out_dir)
    return paths

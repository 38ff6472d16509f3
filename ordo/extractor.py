# extractor.py — Read a solved store into an immutable Schedule.

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Tuple

import pandas as pd

from ordo.data_loader import ProblemSpec
from ordo.errors import ExtractionError

SCHEDULE_COLUMNS = ["task_id", "order_id", "phase", "engine_id", "start", "end"]


@dataclass(frozen=True)
class ScheduledTask:
    task_id: int
    order_id: str
    phase: int
    engine_id: int
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def task_name(self) -> str:
        return f"T{self.task_id}"


@dataclass(frozen=True)
class Schedule:
    entries: Tuple[ScheduledTask, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def makespan(self) -> int:
        return max((e.end for e in self.entries), default=0)

    def for_engine(self, engine_id: int) -> List[ScheduledTask]:
        return sorted((e for e in self.entries if e.engine_id == engine_id), key=lambda e: e.start)

    def for_order(self, order_id: str) -> List[ScheduledTask]:
        return sorted((e for e in self.entries if e.order_id == order_id), key=lambda e: e.phase)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(e) for e in self.entries], columns=SCHEDULE_COLUMNS)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "Schedule":
        return cls(
            tuple(
                ScheduledTask(
                    task_id=int(r["task_id"]),
                    order_id=str(r["order_id"]),
                    phase=int(r["phase"]),
                    engine_id=int(r["engine_id"]),
                    start=int(r["start"]),
                    end=int(r["end"]),
                )
                for _, r in df.iterrows()
            )
        )


def extract_schedule(problem: ProblemSpec, vars_dict: Dict[str, Any]) -> Schedule:
    """Build the Schedule from fixed start/end variables and the true assignment flags."""
    orders = problem.orders
    assign = vars_dict["assign"]
    engine_ids = sorted({i for i, _ in assign})
    entries = []
    for task in vars_dict["tasks"]:
        for var in (task.start, task.end):
            if not var.is_fixed:
                raise ExtractionError(f"{var!r} is not fixed; extraction needs a solved store")
        chosen = []
        for i in engine_ids:
            flag = assign[(i, task.index)]
            if not flag.is_fixed:
                raise ExtractionError(f"{flag!r} is not fixed; extraction needs a solved store")
            if flag.value == 1:
                chosen.append(i)
        if len(chosen) != 1:
            raise ExtractionError(f"{task.name} is assigned to engines {chosen}, expected exactly one")
        entries.append(
            ScheduledTask(
                task_id=task.index,
                order_id=orders[task.order_index].order_id,
                phase=task.phase,
                engine_id=chosen[0],
                start=task.start.value,
                end=task.end.value,
            )
        )
    return Schedule(tuple(entries))

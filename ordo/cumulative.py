# cumulative.py — Tasks, per-engine task views and the time-table cumulative rule.
#
# The rule keeps, at every instant, the summed demand of the tasks that must
# be running at that instant within a fixed capacity.  "Must be running" is the
# mandatory part of a task: [latest start, earliest end) when non-empty.  The
# profile built from mandatory parts is then used to push each task's earliest
# start to the right and its latest end to the left, past every profile
# segment it cannot share.

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from ordo.constraints import Propagator
from ordo.errors import Inconsistency
from ordo.variables import IntVar

Segment = Tuple[int, int, int]  # (from, to, height) with from < to


@dataclass(eq=False)
class Task:
    """One phase of a fabrication order."""

    index: int
    order_index: int
    phase: int
    start: IntVar
    duration: IntVar
    end: IntVar
    demand: IntVar

    @property
    def name(self) -> str:
        return f"T{self.index}"

    # Cumulative view interface
    @property
    def base(self) -> "Task":
        return self

    def is_absent(self) -> bool:
        return False

    def is_optional(self) -> bool:
        return False

    def min_demand(self) -> int:
        return self.demand.lb

    def scope(self) -> List[IntVar]:
        return [self.start, self.duration, self.end, self.demand]


@dataclass(eq=False)
class EngineTask:
    """A task projected onto one engine.

    Every projected attribute equals the base task's attribute when
    ``assigned`` is 1 and is 0 otherwise.
    """

    task: Task
    engine: int
    assigned: IntVar

    @property
    def name(self) -> str:
        return f"{self.task.name}@E{self.engine}"

    @property
    def base(self) -> Task:
        return self.task

    def is_absent(self) -> bool:
        return self.assigned.ub == 0

    def is_optional(self) -> bool:
        return self.assigned.lb == 0 and self.assigned.ub == 1

    def min_demand(self) -> int:
        return self.task.demand.lb if self.assigned.lb == 1 else 0

    def projected(self, attribute: str) -> int:
        """Value of start/end/duration/demand on this engine; needs fixed variables."""
        if self.assigned.value == 0:
            return 0
        return getattr(self.task, attribute).value

    def scope(self) -> List[IntVar]:
        return self.task.scope() + [self.assigned]


def build_profile(parts: Sequence[Tuple[int, int, int]]) -> List[Segment]:
    """Merge (from, to, height) mandatory parts into a step profile of non-zero segments."""
    delta: Dict[int, int] = {}
    for a, b, h in parts:
        delta[a] = delta.get(a, 0) + h
        delta[b] = delta.get(b, 0) - h
    times = sorted(delta)
    segments: List[Segment] = []
    level = 0
    for i in range(len(times) - 1):
        level += delta[times[i]]
        if level > 0:
            segments.append((times[i], times[i + 1], level))
    return segments


class Cumulative(Propagator):
    """Time-table cumulative over tasks or engine views, with a fixed capacity."""

    def __init__(self, tasks: Sequence, capacity: int, name: str | None = None):
        scope: List[IntVar] = []
        for t in tasks:
            scope.extend(t.scope())
        super().__init__(scope, name or f"cumulative(cap={capacity})")
        self.tasks = list(tasks)
        self.capacity = capacity

    def mandatory_parts(self) -> List[Tuple[object, int, int, int]]:
        parts = []
        for t in self.tasks:
            h = t.min_demand()
            if h <= 0:
                continue
            b = t.base
            lst, ect = b.start.ub, b.end.lb
            if lst < ect:
                parts.append((t, lst, ect, h))
        return parts

    def propagate(self) -> None:
        parts = self.mandatory_parts()
        if not parts:
            return
        profile = build_profile([(a, b, h) for _, a, b, h in parts])
        for a, b, level in profile:
            if level > self.capacity:
                culprit = next(t for t, pa, pb, _ in parts if pa < b and a < pb)
                raise Inconsistency(
                    culprit.base.start,
                    f"{self.name}: demand {level} > capacity {self.capacity} on [{a},{b})",
                )
        for t in self.tasks:
            if t.is_absent():
                continue
            if t.is_optional():
                self._filter_optional(t, profile)
            else:
                self._filter_present(t, profile)

    def _filter_present(self, t, profile: List[Segment]) -> None:
        b = t.base
        h = t.min_demand()
        dmin = b.duration.lb
        if h <= 0 or dmin <= 0:
            return
        cap = self.capacity
        lst, ect = b.start.ub, b.end.lb

        def own(a: int, z: int) -> int:
            return h if lst <= a and z <= ect else 0

        est = b.start.lb
        for a, z, level in profile:
            if level - own(a, z) + h <= cap:
                continue
            if est < z and est + dmin > a:
                est = z
        if est > b.start.lb:
            b.start.update_lb(est)

        lct = b.end.ub
        for a, z, level in reversed(profile):
            if level - own(a, z) + h <= cap:
                continue
            if lct > a and lct - dmin < z:
                lct = a
        if lct < b.end.ub:
            b.end.update_ub(lct)

    def _filter_optional(self, t, profile: List[Segment]) -> None:
        # If running here would overflow the profile inside the task's own
        # mandatory part, the task cannot run here.
        b = t.base
        h = b.demand.lb
        if h <= 0 or b.duration.lb <= 0:
            return
        lst, ect = b.start.ub, b.end.lb
        if lst >= ect:
            return
        for a, z, level in profile:
            if a < ect and lst < z and level + h > self.capacity:
                t.assigned.instantiate(0)
                return

    def is_satisfied(self) -> bool:
        parts = []
        for t in self.tasks:
            b = t.base
            if t.min_demand() > 0 and b.start.value < b.end.value:
                parts.append((b.start.value, b.end.value, t.min_demand()))
        return all(level <= self.capacity for _, _, level in build_profile(parts))

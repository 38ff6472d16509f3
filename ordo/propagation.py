# propagation.py — Constraint model container and the fixpoint PropagationEngine.

from __future__ import annotations
import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional

from ordo.constraints import Propagator
from ordo.errors import Inconsistency
from ordo.variables import IntVar, VariableStore

logger = logging.getLogger(__name__)


class FailureWeights:
    """Per-variable count of the domain wipe-outs its constraints caused.

    Written by the PropagationEngine, read by the weighted-degree search.
    """

    def __init__(self):
        self._weights: Dict[int, int] = {}

    def bump(self, variables: Iterable[IntVar]) -> None:
        for v in variables:
            self._weights[v.index] = self._weights.get(v.index, 0) + 1

    def __getitem__(self, var: IntVar) -> int:
        return self._weights.get(var.index, 0)

    def __len__(self) -> int:
        return len(self._weights)

    def total(self) -> int:
        return sum(self._weights.values())


class Model:
    """Variables plus the constraints posted over them."""

    def __init__(self, name: str = "ordo"):
        self.name = name
        self.store = VariableStore()
        self.constraints: List[Propagator] = []

    def new_int_var(self, lb: int, ub: int, name: str) -> IntVar:
        return self.store.new_var(lb, ub, name)

    def new_enum_var(self, values: Iterable[int], name: str) -> IntVar:
        return self.store.new_var(0, 0, name, values=values)

    def new_bool_var(self, name: str) -> IntVar:
        return self.store.new_var(0, 1, name, values=(0, 1))

    def new_constant(self, value: int, name: str) -> IntVar:
        return self.store.new_var(value, value, name)

    def add(self, constraint: Propagator) -> Propagator:
        self.constraints.append(constraint)
        return constraint

    def __repr__(self) -> str:
        return f"Model({self.name}: {len(self.store)} vars, {len(self.constraints)} constraints)"


class PropagationEngine:
    """Runs narrowing rules until a fixpoint or a domain wipe-out.

    Every rule is queued once at start; afterwards a rule is queued again
    whenever a variable in its scope changes, so an empty queue means no rule
    can narrow anything further.
    """

    def __init__(self, model: Model, weights: Optional[FailureWeights] = None):
        self.model = model
        self.store = model.store
        self.weights = weights if weights is not None else FailureWeights()
        self._watchers: Dict[int, List[Propagator]] = {}
        for p in model.constraints:
            for v in p.variables:
                self._watchers.setdefault(v.index, []).append(p)
        self._queue: Deque[Propagator] = deque()
        self._queued: set = set()
        self._current: Optional[Propagator] = None
        self.calls = 0
        self.fails = 0
        self.store.subscribe(self._on_change)
        self.schedule_all()

    def _on_change(self, var: IntVar) -> None:
        for p in self._watchers.get(var.index, ()):
            if p not in self._queued:
                self._queued.add(p)
                self._queue.append(p)

    def schedule_all(self) -> None:
        for p in self.model.constraints:
            if p not in self._queued:
                self._queued.add(p)
                self._queue.append(p)

    def clear(self) -> None:
        self._queue.clear()
        self._queued.clear()

    def propagate(self) -> None:
        """Narrow to a fixpoint; raises Inconsistency on a wipe-out (queue is cleared)."""
        try:
            while self._queue:
                p = self._queue.popleft()
                self._queued.discard(p)
                self._current = p
                self.calls += 1
                p.propagate()
        except Inconsistency as exc:
            self.fails += 1
            if self._current is not None:
                exc.constraint = self._current
                self.weights.bump(self._current.variables)
            self.clear()
            logger.debug("Wipe-out: %s", exc)
            raise
        finally:
            self._current = None

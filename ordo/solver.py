# solver.py — Depth-first backtracking search driving propagation and branching.

from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from ordo.errors import Inconsistency
from ordo.propagation import FailureWeights, Model, PropagationEngine
from ordo.search import Decision, SearchContext, SearchStrategy

logger = logging.getLogger(__name__)

SOLVED = "SOLVED"
INFEASIBLE = "INFEASIBLE"
LIMIT_REACHED = "LIMIT_REACHED"


@dataclass
class SolverStats:
    nodes: int = 0
    backtracks: int = 0
    fails: int = 0
    propagations: int = 0
    max_depth: int = 0
    wall_time: float = 0.0

    def as_lines(self) -> List[str]:
        return [
            f"Nodes: {self.nodes}",
            f"Backtracks: {self.backtracks}",
            f"Fails: {self.fails}",
            f"Propagations: {self.propagations}",
            f"Max depth: {self.max_depth}",
            f"Wall time: {self.wall_time:.3f}s",
        ]


@dataclass
class SolveResult:
    status: str
    stats: SolverStats = field(default_factory=SolverStats)
    strategy: str = ""

    @property
    def has_solution(self) -> bool:
        return self.status == SOLVED


class Solver:
    """Finds the first complete assignment consistent with every constraint.

    The store is left in the solved state, ready for extraction. A solver is
    single use: call solve() once.
    """

    def __init__(
        self,
        model: Model,
        strategy: SearchStrategy,
        weights: Optional[FailureWeights] = None,
        node_limit: Optional[int] = None,
        time_limit: Optional[float] = None,
    ):
        self.model = model
        self.store = model.store
        self.weights = weights if weights is not None else FailureWeights()
        self.engine = PropagationEngine(model, self.weights)
        self.strategy = strategy
        self.context = SearchContext(self.store, self.weights)
        self.node_limit = node_limit
        self.time_limit = time_limit
        self.stats = SolverStats()
        self._stack: List[Decision] = []
        self._t0 = 0.0
        self._done = False

    def _limit_reached(self) -> bool:
        if self.node_limit is not None and self.stats.nodes >= self.node_limit:
            return True
        if self.time_limit is not None and time.monotonic() - self._t0 >= self.time_limit:
            return True
        return False

    def _apply(self, decision: Decision) -> bool:
        """Branch on decision in a new world and propagate. False on wipe-out."""
        self.store.push_world()
        self._stack.append(decision)
        try:
            if decision.refuted:
                decision.var.remove_value(decision.value)
            else:
                decision.var.instantiate(decision.value)
            self.engine.propagate()
        except Inconsistency:
            self.engine.clear()
            self.stats.fails += 1
            return False
        return True

    def _backtrack(self) -> bool:
        """Undo decisions until one can be refuted and the refutation propagates. False when exhausted."""
        while self._stack:
            decision = self._stack.pop()
            self.store.pop_world()
            self.stats.backtracks += 1
            if decision.refuted:
                continue
            decision.refuted = True
            logger.debug("Backtrack to depth %d: %s", len(self._stack), decision)
            if self._apply(decision):
                return True
        return False

    def _finish(self, status: str) -> SolveResult:
        self.stats.wall_time = time.monotonic() - self._t0
        self.stats.propagations = self.engine.calls
        logger.info(
            "Search %s after %d nodes, %d backtracks, %d fails (%.3fs, strategy=%s)",
            status, self.stats.nodes, self.stats.backtracks, self.stats.fails,
            self.stats.wall_time, self.strategy.name,
        )
        return SolveResult(status=status, stats=self.stats, strategy=self.strategy.name)

    def solve(self) -> SolveResult:
        if self._done:
            raise RuntimeError("Solver.solve() can only be called once")
        self._done = True
        self._t0 = time.monotonic()
        logger.info("Search start: %r, strategy=%s", self.model, self.strategy.name)
        try:
            self.engine.propagate()
        except Inconsistency as exc:
            self.stats.fails += 1
            logger.info("Root propagation failed: %s", exc)
            return self._finish(INFEASIBLE)

        while True:
            if self._limit_reached():
                return self._finish(LIMIT_REACHED)
            decision = self.strategy.next_decision(self.context)
            if decision is None:
                # Every constraint has run since the last change, so a fully
                # fixed store is a solution.
                if not self.store.all_fixed():
                    raise RuntimeError(f"strategy {self.strategy.name} left variables unfixed")
                return self._finish(SOLVED)
            self.stats.nodes += 1
            if self._apply(decision):
                self.stats.max_depth = max(self.stats.max_depth, len(self._stack))
                continue
            if not self._backtrack():
                return self._finish(INFEASIBLE)

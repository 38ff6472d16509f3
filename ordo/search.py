# search.py — Branching strategies: which variable to fix next and which value first.

from __future__ import annotations
from dataclasses import dataclass
from random import Random
from typing import List, Optional, Sequence

from ordo.propagation import FailureWeights
from ordo.variables import IntVar, VariableStore


@dataclass
class SearchContext:
    """What a strategy may look at: the store and the failure weights."""

    store: VariableStore
    weights: FailureWeights


@dataclass
class Decision:
    """Branch ``var = value``; once refuted, the branch taken is ``var != value``."""

    var: IntVar
    value: int
    refuted: bool = False

    def __repr__(self) -> str:
        op = "!=" if self.refuted else "="
        return f"{self.var.name}{op}{self.value}"


class SearchStrategy:
    """Selects the next variable to branch on and the value to try first."""

    name = "strategy"

    def __init__(self, variables: Sequence[IntVar]):
        self.variables = list(variables)

    def select_variable(self, context: SearchContext) -> Optional[IntVar]:
        raise NotImplementedError

    def select_value(self, var: IntVar, context: SearchContext) -> int:
        return var.lb

    def next_decision(self, context: SearchContext) -> Optional[Decision]:
        var = self.select_variable(context)
        if var is None:
            return None
        return Decision(var, self.select_value(var, context))

    def _unfixed(self) -> List[IntVar]:
        return [v for v in self.variables if not v.is_fixed]


class InputOrderLB(SearchStrategy):
    """First unfixed variable in list order, lower bound first."""

    name = "input_order"

    def select_variable(self, context: SearchContext) -> Optional[IntVar]:
        for v in self.variables:
            if not v.is_fixed:
                return v
        return None


class MinDomLB(SearchStrategy):
    """Unfixed variable with the smallest domain (list order on ties), lower bound first."""

    name = "min_dom"

    def select_variable(self, context: SearchContext) -> Optional[IntVar]:
        best = None
        for v in self.variables:
            if v.is_fixed:
                continue
            if best is None or v.size < best.size:
                best = v
        return best


class WeightedDegreeLB(SearchStrategy):
    """Unfixed variable with the highest failure weight; smallest domain, then list order, on ties."""

    name = "dom_wdeg"

    def select_variable(self, context: SearchContext) -> Optional[IntVar]:
        weights = context.weights
        best = None
        best_key = None
        for v in self.variables:
            if v.is_fixed:
                continue
            key = (-weights[v], v.size)
            if best_key is None or key < best_key:
                best, best_key = v, key
        return best


class RandomBound(SearchStrategy):
    """Random unfixed variable, random bound as value; reproducible for a given seed."""

    name = "random"

    def __init__(self, variables: Sequence[IntVar], seed: int):
        super().__init__(variables)
        self.seed = seed
        self.rng = Random(seed)

    def select_variable(self, context: SearchContext) -> Optional[IntVar]:
        free = self._unfixed()
        if not free:
            return None
        return self.rng.choice(free)

    def select_value(self, var: IntVar, context: SearchContext) -> int:
        # Bounds only, so the refutation always shrinks the domain
        return var.lb if self.rng.random() < 0.5 else var.ub


class StrategySequence(SearchStrategy):
    """Tries each strategy in turn; the next one starts when the previous has nothing left."""

    def __init__(self, strategies: Sequence[SearchStrategy]):
        super().__init__([v for s in strategies for v in s.variables])
        self.strategies = list(strategies)
        self.name = "+".join(s.name for s in strategies)

    def next_decision(self, context: SearchContext) -> Optional[Decision]:
        for s in self.strategies:
            d = s.next_decision(context)
            if d is not None:
                return d
        return None


def make_strategy(
    policy: str,
    starts: Sequence[IntVar],
    flags: Sequence[IntVar],
    store: VariableStore,
    seed: int = 0,
) -> SearchStrategy:
    """Build a policy: starts first, then assignment flags, then anything still unfixed."""
    completion = InputOrderLB(store.variables)
    if policy == "input_order":
        return StrategySequence([InputOrderLB(starts), InputOrderLB(flags), completion])
    if policy == "min_dom":
        return StrategySequence([MinDomLB(starts), InputOrderLB(flags), completion])
    if policy == "dom_wdeg":
        return StrategySequence([WeightedDegreeLB(starts), RandomBound(flags, seed), completion])
    raise ValueError(f"Unsupported search policy {policy!r}")

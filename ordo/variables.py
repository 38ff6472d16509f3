# variables.py — Integer variables and the trailed VariableStore.
#
# A domain is either a closed interval [lb, ub] or an explicit frozenset of
# values (booleans use {0, 1}).  Every narrowing is saved on the store's trail
# before it happens, so pop_world() restores the exact domains that held when
# the matching push_world() was called.

from __future__ import annotations
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from ordo.errors import Inconsistency


class IntVar:
    __slots__ = ("store", "index", "name", "lb", "ub", "values", "_stamp")

    def __init__(
        self,
        store: "VariableStore",
        index: int,
        name: str,
        lb: int,
        ub: int,
        values: Optional[FrozenSet[int]] = None,
    ):
        self.store = store
        self.index = index
        self.name = name
        self.lb = lb
        self.ub = ub
        self.values = values
        self._stamp = store.world_id

    def __repr__(self) -> str:
        if self.is_fixed:
            return f"{self.name}={self.lb}"
        if self.values is not None:
            return f"{self.name}{{{','.join(str(v) for v in sorted(self.values))}}}"
        return f"{self.name}[{self.lb},{self.ub}]"

    @property
    def size(self) -> int:
        if self.values is not None:
            return len(self.values)
        return self.ub - self.lb + 1

    @property
    def is_fixed(self) -> bool:
        return self.lb == self.ub

    @property
    def value(self) -> int:
        if self.lb != self.ub:
            raise ValueError(f"{self.name} is not instantiated: {self!r}")
        return self.lb

    def contains(self, v: int) -> bool:
        if self.values is not None:
            return v in self.values
        return self.lb <= v <= self.ub

    def is_instantiated_to(self, v: int) -> bool:
        return self.lb == self.ub == v

    # ── Narrowing ─────────────────────────────────────────────────────────

    def update_lb(self, v: int) -> bool:
        """Raise the lower bound to v. Returns True when the domain changed."""
        if v <= self.lb:
            return False
        if v > self.ub:
            raise Inconsistency(self, f"lb {v} > ub {self.ub}")
        if self.values is None:
            self._set(v, self.ub, None)
        else:
            kept = frozenset(x for x in self.values if x >= v)
            if not kept:
                raise Inconsistency(self, f"no value >= {v}")
            self._set(min(kept), self.ub, kept)
        return True

    def update_ub(self, v: int) -> bool:
        """Lower the upper bound to v. Returns True when the domain changed."""
        if v >= self.ub:
            return False
        if v < self.lb:
            raise Inconsistency(self, f"ub {v} < lb {self.lb}")
        if self.values is None:
            self._set(self.lb, v, None)
        else:
            kept = frozenset(x for x in self.values if x <= v)
            if not kept:
                raise Inconsistency(self, f"no value <= {v}")
            self._set(self.lb, max(kept), kept)
        return True

    def instantiate(self, v: int) -> bool:
        if not self.contains(v):
            raise Inconsistency(self, f"{v} not in domain")
        if self.lb == self.ub:
            return False
        self._set(v, v, frozenset((v,)) if self.values is not None else None)
        return True

    def remove_value(self, v: int) -> bool:
        """Remove v from the domain.

        Interval domains cannot hold holes: removing an interior value leaves
        them untouched and returns False.
        """
        if not self.contains(v):
            return False
        if self.lb == self.ub:
            raise Inconsistency(self, f"removing its only value {v}")
        if self.values is not None:
            kept = self.values - {v}
            self._set(min(kept), max(kept), kept)
            return True
        if v == self.lb:
            return self.update_lb(v + 1)
        if v == self.ub:
            return self.update_ub(v - 1)
        return False

    def _set(self, lb: int, ub: int, values: Optional[FrozenSet[int]]) -> None:
        self.store.save(self)
        self.lb = lb
        self.ub = ub
        self.values = values
        self.store.notify(self)


TrailEntry = Tuple[IntVar, int, int, Optional[FrozenSet[int]], int]


class VariableStore:
    """Owns every decision variable and the trail of their domain changes."""

    def __init__(self):
        self.variables: List[IntVar] = []
        self.world_id = 0
        self._next_world = 1
        self._worlds: List[Tuple[int, int]] = []  # (trail length, enclosing world id)
        self._trail: List[TrailEntry] = []
        self._listeners: List[Callable[[IntVar], None]] = []

    def __len__(self) -> int:
        return len(self.variables)

    def __iter__(self):
        return iter(self.variables)

    def new_var(self, lb: int, ub: int, name: str, values: Optional[Iterable[int]] = None) -> IntVar:
        if values is not None:
            vals = frozenset(int(v) for v in values)
            if not vals:
                raise ValueError(f"variable {name} created with an empty domain")
            var = IntVar(self, len(self.variables), name, min(vals), max(vals), vals)
        else:
            if lb > ub:
                raise ValueError(f"variable {name} created with an empty domain [{lb},{ub}]")
            var = IntVar(self, len(self.variables), name, int(lb), int(ub))
        self.variables.append(var)
        return var

    # ── Change notification ───────────────────────────────────────────────

    def subscribe(self, listener: Callable[[IntVar], None]) -> None:
        self._listeners.append(listener)

    def notify(self, var: IntVar) -> None:
        for listener in self._listeners:
            listener(var)

    # ── Trail ─────────────────────────────────────────────────────────────

    @property
    def depth(self) -> int:
        return len(self._worlds)

    def save(self, var: IntVar) -> None:
        # One entry per variable per world is enough to restore it.
        if var._stamp != self.world_id:
            self._trail.append((var, var.lb, var.ub, var.values, var._stamp))
            var._stamp = self.world_id

    def push_world(self) -> None:
        self._worlds.append((len(self._trail), self.world_id))
        self.world_id = self._next_world
        self._next_world += 1

    def pop_world(self) -> None:
        if not self._worlds:
            raise RuntimeError("pop_world() called on the root world")
        mark, enclosing = self._worlds.pop()
        trail = self._trail
        while len(trail) > mark:
            var, lb, ub, values, stamp = trail.pop()
            var.lb = lb
            var.ub = ub
            var.values = values
            var._stamp = stamp
        self.world_id = enclosing

    def all_fixed(self) -> bool:
        return all(v.lb == v.ub for v in self.variables)

    def unfixed(self) -> List[IntVar]:
        return [v for v in self.variables if v.lb != v.ub]

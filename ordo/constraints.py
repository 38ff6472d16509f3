# constraints.py — Arithmetic narrowing rules (bounds propagation).

from __future__ import annotations
from typing import Iterable, List, Sequence

from ordo.errors import Inconsistency
from ordo.variables import IntVar


class Propagator:
    """A constraint with its narrowing rule.

    ``variables`` is the scope: the engine re-runs ``propagate()`` whenever one
    of them changes. ``propagate()`` narrows domains or raises Inconsistency.
    """

    name = "propagator"

    def __init__(self, variables: Iterable[IntVar], name: str | None = None):
        seen = {}
        for v in variables:
            seen.setdefault(v.index, v)
        self.variables: List[IntVar] = list(seen.values())
        if name:
            self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"

    def propagate(self) -> None:
        raise NotImplementedError

    def is_satisfied(self) -> bool:
        """Check the constraint on fixed variables (used by tests and validation)."""
        raise NotImplementedError


class TaskLink(Propagator):
    """start + duration = end."""

    def __init__(self, start: IntVar, duration: IntVar, end: IntVar, name: str | None = None):
        super().__init__((start, duration, end), name or f"link({start.name})")
        self.start = start
        self.duration = duration
        self.end = end

    def propagate(self) -> None:
        s, d, e = self.start, self.duration, self.end
        changed = True
        while changed:
            changed = False
            changed |= e.update_lb(s.lb + d.lb)
            changed |= e.update_ub(s.ub + d.ub)
            changed |= s.update_lb(e.lb - d.ub)
            changed |= s.update_ub(e.ub - d.lb)
            changed |= d.update_lb(e.lb - s.ub)
            changed |= d.update_ub(e.ub - s.lb)

    def is_satisfied(self) -> bool:
        return self.start.value + self.duration.value == self.end.value


class LessEqual(Propagator):
    """x + offset <= y."""

    def __init__(self, x: IntVar, y: IntVar, offset: int = 0, name: str | None = None):
        super().__init__((x, y), name or f"{x.name}+{offset}<={y.name}")
        self.x = x
        self.y = y
        self.offset = offset

    def propagate(self) -> None:
        self.y.update_lb(self.x.lb + self.offset)
        self.x.update_ub(self.y.ub - self.offset)

    def is_satisfied(self) -> bool:
        return self.x.value + self.offset <= self.y.value


class Relation(Propagator):
    """var <op> constant, with op one of <=, >=, =, !=."""

    OPS = ("<=", ">=", "=", "!=")

    def __init__(self, var: IntVar, op: str, constant: int, name: str | None = None):
        if op not in self.OPS:
            raise ValueError(f"Unsupported relation {op!r}; expected one of {self.OPS}")
        super().__init__((var,), name or f"{var.name}{op}{constant}")
        self.var = var
        self.op = op
        self.constant = constant

    def propagate(self) -> None:
        if self.op == "<=":
            self.var.update_ub(self.constant)
        elif self.op == ">=":
            self.var.update_lb(self.constant)
        elif self.op == "=":
            self.var.instantiate(self.constant)
        else:
            self.var.remove_value(self.constant)

    def is_satisfied(self) -> bool:
        v = self.var.value
        return {
            "<=": v <= self.constant,
            ">=": v >= self.constant,
            "=": v == self.constant,
            "!=": v != self.constant,
        }[self.op]


class ExactlyOne(Propagator):
    """Sum of 0/1 variables equals one."""

    def __init__(self, flags: Sequence[IntVar], name: str | None = None):
        super().__init__(flags, name or "exactly_one")
        self.flags = list(flags)

    def propagate(self) -> None:
        ones = [b for b in self.flags if b.lb == 1]
        free = [b for b in self.flags if b.lb == 0 and b.ub == 1]
        if len(ones) > 1:
            raise Inconsistency(ones[1], f"{self.name}: {len(ones)} flags set")
        if ones:
            for b in free:
                b.instantiate(0)
        elif not free:
            raise Inconsistency(self.flags[0] if self.flags else None, f"{self.name}: no flag can be set")
        elif len(free) == 1:
            free[0].instantiate(1)

    def is_satisfied(self) -> bool:
        return sum(b.value for b in self.flags) == 1

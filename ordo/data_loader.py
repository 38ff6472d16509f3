# data_loader.py — Params, Files, ProblemSpec and loaders for the Ordo scheduler.

from __future__ import annotations
import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from ordo.errors import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_DATA_DIR = BASE_DIR.parent / "data"

SEARCH_POLICIES = ("input_order", "min_dom", "dom_wdeg")


def int_or_error(v, where: str) -> int:
    """int(v), or ConfigurationError naming the bad cell."""
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{where}: expected an integer, got {v!r}") from None


@dataclass(frozen=True)
class Params:
    horizon: int = 2500
    engine_count: int = 4
    # Engines allowed to run phase 1 (phase 2 is fixed per product)
    phase1_engines: Tuple[int, ...] = (0,)
    # Two engines that may never run at the same time
    exclusive_engines: bool = True
    exclusive_pair: Tuple[int, int] = (1, 2)
    # One more engine, appended to the phase-1 pool
    extra_engine: bool = False
    search: str = "dom_wdeg"
    seed: int = 18081981
    node_limit: Optional[int] = None
    time_limit: Optional[float] = None
    # Time-slot width of the tabular report
    slot_width: int = 10

    @property
    def total_engines(self) -> int:
        return self.engine_count + (1 if self.extra_engine else 0)

    @property
    def phase1_pool(self) -> Tuple[int, ...]:
        pool = list(self.phase1_engines)
        if self.extra_engine:
            pool.append(self.engine_count)
        return tuple(dict.fromkeys(pool))


@dataclass(frozen=True)
class Product:
    product_id: int
    phase1_rate: int
    phase2_rate: int
    # Engine running phase 2; None means product_id + 1
    phase2_engine: Optional[int] = None

    @property
    def phase2_target(self) -> int:
        return self.product_id + 1 if self.phase2_engine is None else self.phase2_engine


@dataclass(frozen=True)
class Order:
    order_id: str
    product_id: int
    quantity: int
    deadline: int


@dataclass(frozen=True)
class Engine:
    engine_id: int
    capacity: int = 1
    runs_phase1: bool = False
    phase2_products: frozenset = field(default_factory=frozenset)

    @property
    def name(self) -> str:
        return f"Engine-{self.engine_id}"

    def is_eligible(self, product_id: int, phase: int) -> bool:
        if phase == 1:
            return self.runs_phase1
        return product_id in self.phase2_products


@dataclass(frozen=True)
class ProblemSpec:
    products: Tuple[Product, ...]
    orders: Tuple[Order, ...]
    params: Params = field(default_factory=Params)

    def product(self, product_id: int) -> Product:
        for p in self.products:
            if p.product_id == product_id:
                return p
        raise ConfigurationError(f"Unknown product {product_id}")

    def durations(self, order: Order) -> Tuple[int, int]:
        p = self.product(order.product_id)
        return p.phase1_rate * order.quantity, p.phase2_rate * order.quantity

    @property
    def engines(self) -> Tuple[Engine, ...]:
        P = self.params
        pool = set(P.phase1_pool)
        phase2: Dict[int, set] = {}
        for p in self.products:
            phase2.setdefault(p.phase2_target, set()).add(p.product_id)
        return tuple(
            Engine(
                engine_id=i,
                runs_phase1=i in pool,
                phase2_products=frozenset(phase2.get(i, ())),
            )
            for i in range(P.total_engines)
        )

    def eligible_engines(self, order: Order, phase: int) -> List[int]:
        return [e.engine_id for e in self.engines if e.is_eligible(order.product_id, phase)]

    def with_params(self, **overrides: Any) -> "ProblemSpec":
        return replace(self, params=replace(self.params, **overrides))

    def validate(self) -> None:
        """Raise ConfigurationError for malformed data or unsatisfiable eligibility."""
        P = self.params
        if P.horizon <= 0:
            raise ConfigurationError(f"horizon must be positive, got {P.horizon}")
        if P.engine_count <= 0:
            raise ConfigurationError(f"engine_count must be positive, got {P.engine_count}")
        if P.search not in SEARCH_POLICIES:
            raise ConfigurationError(
                f"Unknown search policy {P.search!r}; expected one of {SEARCH_POLICIES}"
            )
        if P.node_limit is not None and P.node_limit <= 0:
            raise ConfigurationError(f"node_limit must be positive, got {P.node_limit}")
        if P.time_limit is not None and P.time_limit <= 0:
            raise ConfigurationError(f"time_limit must be positive, got {P.time_limit}")
        if P.slot_width <= 0:
            raise ConfigurationError(f"slot_width must be positive, got {P.slot_width}")
        n = P.total_engines
        for e in P.phase1_pool:
            if not 0 <= e < n:
                raise ConfigurationError(f"phase-1 engine {e} outside 0..{n - 1}")
        if P.exclusive_engines:
            a, b = P.exclusive_pair
            if a == b or not (0 <= a < n and 0 <= b < n):
                raise ConfigurationError(f"exclusive pair {P.exclusive_pair} is not two engines of 0..{n - 1}")
        ids = [p.product_id for p in self.products]
        if len(set(ids)) != len(ids):
            raise ConfigurationError(f"Duplicate product ids: {ids}")
        order_ids = [o.order_id for o in self.orders]
        if len(set(order_ids)) != len(order_ids):
            dupes = sorted({i for i in order_ids if order_ids.count(i) > 1})
            raise ConfigurationError(f"Duplicate order ids: {dupes}")
        for p in self.products:
            if p.phase1_rate < 0 or p.phase2_rate < 0:
                raise ConfigurationError(f"product {p.product_id} has a negative duration per unit")
        for o in self.orders:
            if o.quantity < 0:
                raise ConfigurationError(f"order {o.order_id} has negative quantity {o.quantity}")
            if o.deadline <= 0:
                raise ConfigurationError(f"order {o.order_id} has deadline {o.deadline} <= 0")
            p = self.product(o.product_id)
            for phase in (1, 2):
                if not self.eligible_engines(o, phase):
                    raise ConfigurationError(
                        f"order {o.order_id} phase {phase} (product {p.product_id}) has no eligible engine"
                    )


class Files:
    def __init__(self, data_dir: Path):
        data_dir = Path(data_dir)
        self.products = str(data_dir / "products.csv")
        self.orders = str(data_dir / "orders.csv")
        self.config = str(data_dir / "ordo.toml")


# ── Configuration ──────────────────────────────────────────────────────────

_TOML_KEYS = {
    "plant": ("horizon", "engine_count", "phase1_engines", "exclusive_engines", "exclusive_pair", "extra_engine"),
    "solver": ("search", "seed", "node_limit", "time_limit"),
    "report": ("slot_width",),
}


def _load_toml(path: Path) -> dict:
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore
    with open(path, "rb") as f:
        return tomllib.load(f)


def params_from_dict(cfg: Dict[str, Any], base: Optional[Params] = None) -> Params:
    """Build Params from a parsed ordo.toml; unknown keys are ignored, 0 limits mean none."""
    values: Dict[str, Any] = {}
    for section, keys in _TOML_KEYS.items():
        table = cfg.get(section, {}) or {}
        for k in keys:
            if k in table:
                values[k] = table[k]
    for k in ("phase1_engines", "exclusive_pair"):
        if k in values:
            values[k] = tuple(int(x) for x in values[k])
    for k in ("node_limit", "time_limit"):
        if k in values and not values[k]:
            values[k] = None
    return replace(base or Params(), **values)


def params_to_dict(P: Params) -> Dict[str, Any]:
    """Inverse of params_from_dict; None limits are written as 0."""
    flat = {f.name: getattr(P, f.name) for f in fields(P)}
    out: Dict[str, Any] = {}
    for section, keys in _TOML_KEYS.items():
        table = {}
        for k in keys:
            v = flat[k]
            if isinstance(v, tuple):
                v = list(v)
            if v is None:
                v = 0
            table[k] = v
        out[section] = table
    return out


def load_params(path: Path | str | None) -> Params:
    if path is None or not os.path.exists(path):
        return Params()
    return params_from_dict(_load_toml(Path(path)))


# ── Problem data ───────────────────────────────────────────────────────────


def _parse_products(df: pd.DataFrame) -> Tuple[Product, ...]:
    out = []
    for row_i, r in df.iterrows():
        if pd.isna(r.get("product_id")):
            raise ConfigurationError(f"products.csv row {row_i}: product_id is required")
        pid = int(r["product_id"])
        rate1 = r.get("phase1_rate")
        rate2 = r.get("phase2_rate")
        if pd.isna(rate1) or pd.isna(rate2):
            raise ConfigurationError(f"products.csv row {row_i}: phase1_rate and phase2_rate are required")
        e2 = r.get("phase2_engine")
        out.append(
            Product(
                product_id=pid,
                phase1_rate=int(rate1),
                phase2_rate=int(rate2),
                phase2_engine=None if e2 is None or pd.isna(e2) else int(e2),
            )
        )
    return tuple(out)


def _parse_orders(df: pd.DataFrame) -> Tuple[Order, ...]:
    out = []
    for row_i, r in df.iterrows():
        for col in ("product_id", "quantity", "deadline"):
            if pd.isna(r.get(col)):
                raise ConfigurationError(f"orders.csv row {row_i}: {col} is required")
        order_id = str(r.get("order_id", "") or "")
        if not order_id or order_id.lower() == "nan":
            order_id = f"FO{len(out)}"
        out.append(
            Order(
                order_id=order_id,
                product_id=int_or_error(r["product_id"], f"orders.csv row {row_i} product_id"),
                quantity=int_or_error(r["quantity"], f"orders.csv row {row_i} quantity"),
                deadline=int_or_error(r["deadline"], f"orders.csv row {row_i} deadline"),
            )
        )
    return tuple(out)


def load_problem(data_dir: Path | str, params: Optional[Params] = None) -> ProblemSpec:
    """Read products.csv, orders.csv and ordo.toml (optional) from data_dir."""
    F = Files(Path(data_dir))
    if not os.path.exists(F.products) or not os.path.exists(F.orders):
        raise ConfigurationError(f"{data_dir} needs products.csv and orders.csv")
    products = _parse_products(pd.read_csv(F.products))
    orders = _parse_orders(pd.read_csv(F.orders))
    P = params if params is not None else load_params(F.config)
    problem = ProblemSpec(products=products, orders=orders, params=P)
    problem.validate()
    return problem


# Reference instance: [phase-1 rate, phase-2 rate] per product and
# [product, quantity, deadline] per order.
REFERENCE_RATES = [(10, 30), (30, 70), (20, 30)]
REFERENCE_ORDERS = [
    (0, 5, 700),
    (1, 2, 2500),
    (0, 4, 2500),
    (2, 7, 2500),
    (2, 3, 2500),
    (1, 1, 2500),
    (1, 6, 2500),
    (0, 9, 2500),
]


def default_problem(**overrides: Any) -> ProblemSpec:
    products = tuple(Product(i, r1, r2) for i, (r1, r2) in enumerate(REFERENCE_RATES))
    orders = tuple(
        Order(order_id=f"FO{i}", product_id=p, quantity=q, deadline=d)
        for i, (p, q, d) in enumerate(REFERENCE_ORDERS)
    )
    return ProblemSpec(products=products, orders=orders, params=replace(Params(), **overrides))


def total_work(problem: ProblemSpec) -> int:
    return sum(sum(problem.durations(o)) for o in problem.orders)


def lower_bound_makespan(problem: ProblemSpec) -> int:
    """Longest single order chain; no schedule can finish earlier."""
    if not problem.orders:
        return 0
    return max(sum(problem.durations(o)) for o in problem.orders)


def horizon_slots(problem: ProblemSpec) -> int:
    return int(math.ceil(problem.params.horizon / problem.params.slot_width))

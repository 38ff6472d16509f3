# conftest.py — Shared problems and schedules for the Ordo test-suite.

from __future__ import annotations
from pathlib import Path

import pytest

from ordo.data_loader import Order, Params, ProblemSpec, Product, default_problem
from ordo.extractor import Schedule, ScheduledTask


@pytest.fixture
def reference_problem() -> ProblemSpec:
    """The eight-order reference instance, solved with the default parameters."""
    return default_problem()


@pytest.fixture
def small_problem() -> ProblemSpec:
    """Two orders: A (product 0, phase 2 on Engine-1) and B (product 1, phase 2 on Engine-2)."""
    products = (Product(0, 10, 30), Product(1, 30, 70))
    orders = (
        Order("A", product_id=0, quantity=1, deadline=100),
        Order("B", product_id=1, quantity=1, deadline=200),
    )
    return ProblemSpec(products=products, orders=orders, params=Params(horizon=200))


@pytest.fixture
def small_schedule() -> Schedule:
    """A valid schedule for small_problem."""
    return Schedule(
        (
            ScheduledTask(task_id=0, order_id="A", phase=1, engine_id=0, start=0, end=10),
            ScheduledTask(task_id=1, order_id="A", phase=2, engine_id=1, start=10, end=40),
            ScheduledTask(task_id=2, order_id="B", phase=1, engine_id=0, start=10, end=40),
            ScheduledTask(task_id=3, order_id="B", phase=2, engine_id=2, start=40, end=110),
        )
    )


def write_data_dir(path: Path, products: str, orders: str, config: str | None = None) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    (path / "products.csv").write_text(products, encoding="utf-8")
    (path / "orders.csv").write_text(orders, encoding="utf-8")
    if config is not None:
        (path / "ordo.toml").write_text(config, encoding="utf-8")
    return path


SMALL_PRODUCTS = "product_id,phase1_rate,phase2_rate\n0,10,30\n1,30,70\n"
SMALL_ORDERS = "order_id,product_id,quantity,deadline\nA,0,1,100\nB,1,1,200\n"
SMALL_CONFIG = "[plant]\nhorizon = 200\n\n[solver]\nsearch = \"input_order\"\n"


@pytest.fixture
def small_data_dir(tmp_path: Path) -> Path:
    return write_data_dir(tmp_path / "data", SMALL_PRODUCTS, SMALL_ORDERS, SMALL_CONFIG)

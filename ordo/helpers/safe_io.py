# helpers/safe_io.py — Atomic writes for report CSVs, KPI text and run_config.toml.
#
# Each write lands in a temp file in the target directory and is moved into
# place with os.replace(), so an interrupted run never leaves a half file.

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, IO

import pandas as pd
import tomli_w


def _atomic_write(path: Path | str, mode: str, writer: Callable[[IO], None], **open_kwargs) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, mode, **open_kwargs) as f:
            writer(f)
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
    return path


def safe_write_csv(df: pd.DataFrame, path: Path | str, **to_csv_kwargs) -> Path:
    """Write *df* to *path*; ``index`` defaults to False."""
    to_csv_kwargs.setdefault("index", False)
    return _atomic_write(path, "w", lambda f: df.to_csv(f, **to_csv_kwargs), encoding="utf-8", newline="")


def safe_write_text(text: str, path: Path | str) -> Path:
    return _atomic_write(path, "w", lambda f: f.write(text), encoding="utf-8")


def safe_write_toml(cfg: dict, path: Path | str) -> Path:
    """Write *cfg* to *path* as TOML."""
    return _atomic_write(path, "wb", lambda f: tomli_w.dump(cfg, f))

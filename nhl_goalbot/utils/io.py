from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = ROOT / "data"
RAW_DIR = DATA_DIR / "raw"

essential_csv_kwargs = dict(index=False)


def save_df(df: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # Atomic write: write to temp file then replace
    dirpath = str(path.parent)
    with tempfile.NamedTemporaryFile(mode="w", encoding="utf-8", delete=False, dir=dirpath, suffix=".tmp") as tmp:
        tmp_path = tmp.name
        df.to_csv(tmp, **essential_csv_kwargs)
    try:
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def load_df(path: Path) -> pd.DataFrame:
    return pd.read_csv(path)

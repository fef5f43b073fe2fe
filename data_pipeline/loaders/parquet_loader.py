"""Parquet loader for metric snapshot exports."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pandas as pd


def load_parquet_source(source_config: Dict[str, Any]) -> pd.DataFrame:
    name = source_config.get("name", "unknown")
    path_value = source_config.get("path")
    if not path_value:
        raise ValueError(f"Parquet source '{name}' missing required field: path")

    parquet_path = Path(path_value)
    if not parquet_path.exists():
        raise FileNotFoundError(f"Parquet source file not found: {parquet_path}")

    columns = source_config.get("columns")
    df = pd.read_parquet(parquet_path, columns=columns)
    if df.empty:
        raise ValueError(f"Parquet source '{name}' loaded empty data: {parquet_path}")

    return df

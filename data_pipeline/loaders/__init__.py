"""Source loader dispatch for metric snapshot exports."""

from __future__ import annotations

from typing import Any, Callable, Dict

import pandas as pd

from .csv_loader import load_csv_source
from .parquet_loader import load_parquet_source

LOADERS: Dict[str, Callable[[Dict[str, Any]], pd.DataFrame]] = {
    "csv": load_csv_source,
    "parquet": load_parquet_source,
}


def load_source_dataframe(source_config: Dict[str, Any]) -> pd.DataFrame:
    loader = str(source_config.get("loader", "")).lower().strip()
    if not loader:
        raise ValueError(f"Source '{source_config.get('name', 'unknown')}' missing required field: loader")

    if loader not in LOADERS:
        raise ValueError(
            f"Unsupported loader '{loader}' for source '{source_config.get('name', 'unknown')}'. "
            f"Supported: {sorted(LOADERS)}"
        )
    return LOADERS[loader](source_config)

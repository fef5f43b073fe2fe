"""CSV loader for metric snapshot exports."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pandas as pd

# Placeholders that market-data exports use for unavailable ratios.
DEFAULT_NA_VALUES = ["", "N/A", "n/a", "NA", "-", "--", "null", "None"]


def load_csv_source(source_config: Dict[str, Any]) -> pd.DataFrame:
    """Load one CSV export; valuation placeholders become NaN."""

    name = source_config.get("name", "unknown")
    path_value = source_config.get("path")
    if not path_value:
        raise ValueError(f"CSV source '{name}' missing required field: path")

    csv_path = Path(path_value)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV source file not found: {csv_path}")

    read_kwargs = {"na_values": DEFAULT_NA_VALUES, "skipinitialspace": True}
    read_kwargs.update(source_config.get("read_csv_kwargs", {}))
    df = pd.read_csv(csv_path, **read_kwargs)
    if df.empty:
        raise ValueError(f"CSV source '{name}' loaded empty data: {csv_path}")

    return df

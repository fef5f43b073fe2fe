"""Sector reference table (id, name, symbol)."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

SECTOR_COLUMNS: List[str] = ["sector_id", "name", "symbol"]


def load_sector_reference(path: str | Path) -> pd.DataFrame:
    """Load the sector table ordered by sector name."""

    sector_path = Path(path)
    if not sector_path.exists():
        raise FileNotFoundError(f"Sector reference file not found: {sector_path}")

    sectors = pd.read_csv(sector_path)
    missing = [col for col in SECTOR_COLUMNS if col not in sectors.columns]
    if missing:
        raise ValueError(f"Sector reference missing required columns: {missing}")

    duplicated = sectors["sector_id"].duplicated()
    if duplicated.any():
        raise ValueError(f"Sector reference has duplicate sector_id values: {sorted(sectors.loc[duplicated, 'sector_id'].tolist())}")

    sectors = sectors.loc[:, SECTOR_COLUMNS].copy()
    sectors["sector_id"] = sectors["sector_id"].astype(int)
    sectors["name"] = sectors["name"].astype(str).str.strip()
    sectors["symbol"] = sectors["symbol"].astype(str).str.strip()
    sectors.sort_values("name", inplace=True)
    sectors.reset_index(drop=True, inplace=True)
    return sectors

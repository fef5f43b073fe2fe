"""Per-sector metric coverage for standardized snapshots."""

from __future__ import annotations

from typing import List

import pandas as pd

COVERAGE_COLUMNS: List[str] = [
    "sector_id",
    "stock_count",
    "pe_available",
    "pb_available",
    "volume_ratio_available",
    "eligible",
]


def summarize_metric_coverage(df: pd.DataFrame, min_sector_size: int = 3) -> pd.DataFrame:
    """Count how many stocks per sector carry each optional metric.

    A sector is ``eligible`` for detection when it holds at least
    ``min_sector_size`` stocks.
    """

    if df.empty:
        return pd.DataFrame(columns=COVERAGE_COLUMNS)

    work = df.loc[:, ["sector_id", "stock_id", "pe_ratio", "pb_ratio", "volume", "avg_volume_10d"]].copy()
    work["has_pe"] = work["pe_ratio"].notna()
    work["has_pb"] = work["pb_ratio"].notna()
    work["has_volume_ratio"] = (
        work["volume"].notna() & work["avg_volume_10d"].notna() & (work["avg_volume_10d"].fillna(0) > 0)
    )

    coverage = (
        work.groupby("sector_id", sort=True)
        .agg(
            stock_count=("stock_id", "nunique"),
            pe_available=("has_pe", "sum"),
            pb_available=("has_pb", "sum"),
            volume_ratio_available=("has_volume_ratio", "sum"),
        )
        .reset_index()
    )
    for col in ["stock_count", "pe_available", "pb_available", "volume_ratio_available"]:
        coverage[col] = coverage[col].astype(int)
    coverage["eligible"] = coverage["stock_count"] >= int(min_sector_size)
    return coverage[COVERAGE_COLUMNS]

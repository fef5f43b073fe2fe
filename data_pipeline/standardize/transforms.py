"""Standardization transforms from export-native columns to the snapshot schema."""

from __future__ import annotations

import logging
from typing import Any, Dict

import pandas as pd

from data_pipeline.schema import ID_COLUMNS, OPTIONAL_METRIC_COLUMNS, REQUIRED_COLUMNS, VOLUME_COLUMNS

LOGGER = logging.getLogger("data_pipeline.standardize")


def _normalize_timestamp_column(series: pd.Series) -> pd.Series:
    parsed = pd.to_datetime(series, errors="coerce", utc=True)
    return parsed.dt.tz_localize(None)


def _to_nullable_int(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").round().astype("Int64")


def standardize_metric_frame(raw_df: pd.DataFrame, source_config: Dict[str, Any]) -> pd.DataFrame:
    """Transform an export-native DataFrame into the canonical snapshot schema.

    ``column_mapping`` maps canonical names to source names; unmapped columns
    are looked up under their canonical name. Optional metric columns missing
    from the source become all-null; any other missing column is an error.
    """

    source_name = source_config.get("name", "unknown")
    if raw_df.empty:
        raise ValueError(f"Source '{source_name}' produced empty raw DataFrame.")

    mapping = source_config.get("column_mapping", {})
    standardized = pd.DataFrame(index=raw_df.index)

    for canonical_col in REQUIRED_COLUMNS:
        source_col = mapping.get(canonical_col, canonical_col)
        if source_col in raw_df.columns:
            standardized[canonical_col] = raw_df[source_col]
        elif canonical_col in OPTIONAL_METRIC_COLUMNS:
            standardized[canonical_col] = pd.Series([float("nan")] * len(raw_df), index=raw_df.index)
        else:
            raise ValueError(f"Source '{source_name}' missing configured column '{source_col}' for '{canonical_col}'.")

    for col in [*ID_COLUMNS, *VOLUME_COLUMNS]:
        standardized[col] = _to_nullable_int(standardized[col])
    for col in ["price_change_percent", "pe_ratio", "pb_ratio"]:
        standardized[col] = pd.to_numeric(standardized[col], errors="coerce").astype("float64")

    standardized["timestamp"] = _normalize_timestamp_column(standardized["timestamp"])
    standardized["symbol"] = standardized["symbol"].astype("string").str.strip().str.upper()
    standardized["name"] = standardized["name"].astype("string").str.strip()

    # Negative or zero earnings make P/E economically meaningless.
    if bool(source_config.get("drop_non_positive_pe", True)):
        standardized.loc[standardized["pe_ratio"] <= 0, "pe_ratio"] = float("nan")

    unassigned = standardized["sector_id"].isna()
    if unassigned.any():
        LOGGER.warning("Source '%s': dropping %s rows without a sector", source_name, int(unassigned.sum()))
        standardized = standardized.loc[~unassigned]

    standardized = standardized[REQUIRED_COLUMNS].copy()
    standardized.sort_values(["sector_id", "symbol", "timestamp"], inplace=True)
    standardized.reset_index(drop=True, inplace=True)
    return standardized


def select_latest_snapshots(df: pd.DataFrame) -> pd.DataFrame:
    """Keep the most recent snapshot per stock."""

    if df.empty:
        return df.copy()

    latest = df.sort_values(["stock_id", "timestamp"], kind="mergesort")
    latest = latest.drop_duplicates(subset=["stock_id"], keep="last")
    latest = latest.sort_values(["sector_id", "symbol"]).reset_index(drop=True)
    return latest

"""Canonical schema contract for per-stock metric snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

import numpy as np
import pandas as pd
from pandas.api.types import is_datetime64_any_dtype, is_numeric_dtype, is_object_dtype

# Required canonical columns for standardized snapshots.
REQUIRED_COLUMNS: List[str] = [
    "stock_id",
    "symbol",
    "name",
    "sector_id",
    "timestamp",
    "price_change_percent",
    "pe_ratio",
    "pb_ratio",
    "volume",
    "avg_volume_10d",
]

ID_COLUMNS: List[str] = ["stock_id", "sector_id"]
OPTIONAL_METRIC_COLUMNS: List[str] = ["pe_ratio", "pb_ratio", "volume", "avg_volume_10d"]
VOLUME_COLUMNS: List[str] = ["volume", "avg_volume_10d"]

# Valuation and volume fields are frequently unavailable per stock; identity,
# timestamp and the day's price change are not.
NULLABLE_RULES: Dict[str, bool] = {
    "stock_id": False,
    "symbol": False,
    "name": False,
    "sector_id": False,
    "timestamp": False,
    "price_change_percent": False,
    "pe_ratio": True,
    "pb_ratio": True,
    "volume": True,
    "avg_volume_10d": True,
}


@dataclass(frozen=True)
class SchemaValidationResult:
    valid: bool
    errors: List[str]


def _is_string_like(series: pd.Series) -> bool:
    return is_object_dtype(series) or str(series.dtype).startswith("string")


def _validate_dtypes(df: pd.DataFrame) -> List[str]:
    errors: List[str] = []

    if "timestamp" in df.columns and not is_datetime64_any_dtype(df["timestamp"]):
        errors.append("Column 'timestamp' must be datetime dtype.")

    for col in [*ID_COLUMNS, "price_change_percent", *OPTIONAL_METRIC_COLUMNS]:
        if col in df.columns and not is_numeric_dtype(df[col]):
            errors.append(f"Column '{col}' must be numeric dtype.")

    for col in ["symbol", "name"]:
        if col in df.columns and not _is_string_like(df[col]):
            errors.append(f"Column '{col}' must be string/object dtype.")

    return errors


def _validate_values(df: pd.DataFrame) -> List[str]:
    errors: List[str] = []

    if "price_change_percent" in df.columns and is_numeric_dtype(df["price_change_percent"]):
        values = df["price_change_percent"].astype(float)
        infinite = int(np.isinf(values).sum())
        if infinite > 0:
            errors.append(f"Column 'price_change_percent' has {infinite} non-finite values.")

    for col in VOLUME_COLUMNS:
        if col in df.columns and is_numeric_dtype(df[col]):
            negative = int((df[col].dropna() < 0).sum())
            if negative > 0:
                errors.append(f"Column '{col}' has {negative} negative values.")

    return errors


def get_schema_validation_errors(df: pd.DataFrame, allow_extra_columns: bool = True) -> List[str]:
    """Return schema validation errors for a standardized snapshot DataFrame."""

    errors: List[str] = []
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        errors.append(f"Missing required columns: {missing}")

    if not allow_extra_columns:
        extras = [col for col in df.columns if col not in REQUIRED_COLUMNS]
        if extras:
            errors.append(f"Unexpected extra columns: {extras}")

    errors.extend(_validate_dtypes(df))

    for col, nullable in NULLABLE_RULES.items():
        if col in df.columns and not nullable:
            null_count = int(df[col].isna().sum())
            if null_count > 0:
                errors.append(f"Column '{col}' has {null_count} null values but is non-nullable.")

    errors.extend(_validate_values(df))
    return errors


def validate_metric_schema(df: pd.DataFrame, allow_extra_columns: bool = True) -> SchemaValidationResult:
    """Validate snapshot schema and raise on failure for strict pipeline behavior."""

    errors = get_schema_validation_errors(df=df, allow_extra_columns=allow_extra_columns)
    if errors:
        raise ValueError("Metric snapshot schema validation failed: " + " | ".join(errors))
    return SchemaValidationResult(valid=True, errors=[])

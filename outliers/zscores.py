"""Sector-relative z-scores for a single stock."""

from __future__ import annotations

from typing import Dict

from outliers.models import MetricRow, MetricStats, ZScores
from outliers.stats import METRICS, SectorStatistics

# Spreads at or below this are treated as degenerate (no z-score).
STD_EPSILON = 0.001


def zscore(value: float | None, stats: MetricStats | None) -> float | None:
    if value is None or stats is None or stats.std_dev <= STD_EPSILON:
        return None
    return (value - stats.mean) / stats.std_dev


def calculate_z_scores(row: MetricRow, stats: SectorStatistics) -> ZScores:
    """Convert one row's raw metrics into z-scores against its sector.

    Optional metrics stay ``None`` unless the row has the value, the sector has
    statistics for it and the sector spread is above ``STD_EPSILON``. Price
    change falls back to exactly 0.0 on a degenerate spread.
    """

    values: Dict[str, float | None] = {}
    for metric in METRICS:
        z = zscore(metric.extract(row), stats.get(metric.name))
        if z is None and metric.always_present:
            z = 0.0
        values[metric.z_field] = z
    return ZScores(**values)

"""Sector statistics: per-metric sample mean and Bessel-corrected std dev."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Sequence, Tuple

import numpy as np

from outliers.models import MetricRow, MetricStats

PRICE_METRIC = "price_change_percent"

# A single data point cannot support a meaningful spread.
MIN_METRIC_SAMPLES = 2


@dataclass(frozen=True)
class MetricSpec:
    name: str
    z_field: str
    weight: float
    extract: Callable[[MetricRow], float | None]
    always_present: bool = False


# Order matters: it is the accumulation order of the composite score.
METRICS: Tuple[MetricSpec, ...] = (
    MetricSpec(PRICE_METRIC, "price_z", 0.3, lambda row: row.price_change_percent, always_present=True),
    MetricSpec("pe_ratio", "pe_z", 0.3, lambda row: row.pe_ratio),
    MetricSpec("pb_ratio", "pb_z", 0.2, lambda row: row.pb_ratio),
    MetricSpec("volume_ratio", "volume_z", 0.2, lambda row: row.volume_ratio),
)

SectorStatistics = Dict[str, MetricStats | None]


def mean_std(values: Sequence[float]) -> Tuple[float, float]:
    """Return (mean, sample std dev) with an n-1 denominator.

    Empty input yields (0, 0); a single value yields (value, 0).
    """

    sample = np.asarray(values, dtype=float)
    if sample.size < 1:
        return 0.0, 0.0
    mean = float(sample.mean())
    if sample.size < 2:
        return mean, 0.0
    return mean, float(sample.std(ddof=1))


def compute_sector_statistics(rows: Sequence[MetricRow]) -> SectorStatistics:
    """Compute per-metric statistics across all stocks of one sector.

    Price change is computed over every row. The optional metrics only get
    statistics when at least ``MIN_METRIC_SAMPLES`` rows define them, otherwise
    the entry is ``None``.
    """

    if not rows:
        raise ValueError("Sector statistics require at least one metric row.")

    stats: SectorStatistics = {}
    for metric in METRICS:
        values = [value for value in (metric.extract(row) for row in rows) if value is not None]
        if metric.always_present or len(values) >= MIN_METRIC_SAMPLES:
            mean, std_dev = mean_std(values)
            stats[metric.name] = MetricStats(mean=mean, std_dev=std_dev, count=len(values))
        else:
            stats[metric.name] = None
    return stats


def summarize_sector_statistics(stats: SectorStatistics) -> Dict[str, Dict[str, float | int] | None]:
    summary: Dict[str, Dict[str, float | int] | None] = {}
    for name, metric_stats in stats.items():
        if metric_stats is None:
            summary[name] = None
            continue
        summary[name] = {
            "mean": metric_stats.mean,
            "std_dev": metric_stats.std_dev,
            "count": metric_stats.count,
        }
    return summary

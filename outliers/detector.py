"""Sector outlier detection: statistics -> z-scores -> composite score -> classification."""

from __future__ import annotations

import logging
import math
from functools import cmp_to_key
from typing import Callable, Dict, List, Mapping, Sequence

import numpy as np

from outliers.models import MetricRow, OutlierResult, Sector, SectorOutliers
from outliers.scoring import calculate_composite_score, classify_outlier, classify_significance
from outliers.stats import compute_sector_statistics
from outliers.zscores import calculate_z_scores

LOGGER = logging.getLogger("outliers.detector")

MIN_SECTOR_SIZE = 3
SCORE_DECIMALS = 2

DetectionCallback = Callable[[OutlierResult], None]


def _validate_threshold(threshold: float) -> float:
    value = float(threshold)
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"threshold must be a positive finite number, got {threshold!r}")
    return value


def _round_score(composite: float) -> float:
    # Composite is non-negative, so flooring after the half shift rounds halves up.
    scale = 10**SCORE_DECIMALS
    return float(np.floor(composite * scale + 0.5) / scale)


def _compare_scores(left: OutlierResult, right: OutlierResult) -> int:
    # Descending; non-comparable (NaN) scores compare as equal.
    if left.composite_score > right.composite_score:
        return -1
    if left.composite_score < right.composite_score:
        return 1
    return 0


def _notify(callback: DetectionCallback, outlier: OutlierResult) -> None:
    try:
        callback(outlier)
    except Exception as exc:  # best effort
        LOGGER.warning(
            "Failed to record detection for %s (stock_id=%s): %s",
            outlier.symbol,
            outlier.stock_id,
            exc,
        )


def detect_sector_outliers(
    rows: Sequence[MetricRow],
    threshold: float,
    on_detection: DetectionCallback | None = None,
) -> List[OutlierResult]:
    """Flag stocks whose composite score reaches ``threshold`` within one sector.

    Rows must already be filtered to a single sector and to the latest snapshot
    per stock. Sectors with fewer than ``MIN_SECTOR_SIZE`` rows return an empty
    list at any threshold. The threshold and the tier both use the unrounded
    composite; only the returned score is rounded to ``SCORE_DECIMALS``, halves
    away from zero.

    ``on_detection`` is invoked once per result after sorting. Failures there
    are logged and never drop a result.
    """

    rows = list(rows)
    if len(rows) < MIN_SECTOR_SIZE:
        LOGGER.debug("Skipping sector with %s rows (minimum %s)", len(rows), MIN_SECTOR_SIZE)
        return []
    threshold = _validate_threshold(threshold)

    stats = compute_sector_statistics(rows)
    outliers: List[OutlierResult] = []

    for row in rows:
        z_scores = calculate_z_scores(row, stats)
        composite = calculate_composite_score(z_scores)
        if not composite >= threshold:
            continue

        score = _round_score(composite)
        outliers.append(
            OutlierResult(
                stock_id=row.stock_id,
                sector_id=row.sector_id,
                symbol=row.symbol,
                display_name=row.display_name,
                z_scores=z_scores,
                composite_score=score,
                outlier_type=classify_outlier(z_scores),
                significance_level=classify_significance(composite),
            )
        )

    outliers.sort(key=cmp_to_key(_compare_scores))

    if on_detection is not None:
        for outlier in outliers:
            _notify(on_detection, outlier)

    return outliers


def detect_all_outliers(
    sector_rows: Mapping[int, Sequence[MetricRow]],
    threshold: float,
    sectors: Mapping[int, Sector] | None = None,
    on_detection: DetectionCallback | None = None,
) -> Dict[int, SectorOutliers]:
    """Run sector detection for every sector in caller order.

    ``sectors`` supplies display metadata; sectors without metadata are labelled
    by their id.
    """

    threshold = _validate_threshold(threshold)
    sectors = sectors or {}
    results: Dict[int, SectorOutliers] = {}

    for sector_id, rows in sector_rows.items():
        meta = sectors.get(sector_id)
        outliers = detect_sector_outliers(rows, threshold, on_detection=on_detection)
        results[sector_id] = SectorOutliers(
            sector_id=sector_id,
            sector_name=meta.name if meta else str(sector_id),
            sector_symbol=meta.symbol if meta else "",
            outliers=outliers,
        )
        LOGGER.debug("Sector %s: %s outliers from %s rows", sector_id, len(outliers), len(rows))

    return results

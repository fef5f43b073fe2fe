"""Composite anomaly score, outlier-type rules and significance tiers."""

from __future__ import annotations

from typing import Callable, Sequence, Tuple

import numpy as np

from outliers.models import OutlierType, SignificanceLevel, ZScores
from outliers.stats import METRICS

Z_TRIGGER = 1.0
STRONG_SCORE = 2.0
EXTREME_SCORE = 3.0

ClassificationRule = Tuple[Callable[[ZScores], bool], OutlierType]


def calculate_composite_score(z_scores: ZScores) -> float:
    """Weighted root-mean-square over whichever z-scores are defined."""

    weighted_sum = 0.0
    total_weight = 0.0
    for metric in METRICS:
        value = getattr(z_scores, metric.z_field)
        if value is None:
            continue
        weighted_sum += metric.weight * value * value
        total_weight += metric.weight

    if total_weight <= 0:
        return 0.0
    return float(np.sqrt(weighted_sum / total_weight))


def _is_low(value: float | None) -> bool:
    return value is not None and value < -Z_TRIGGER


def _is_high(value: float | None) -> bool:
    return value is not None and value > Z_TRIGGER


# Evaluated top to bottom; the first matching rule wins.
CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    (lambda z: _is_low(z.pe_z) and _is_low(z.pb_z), OutlierType.UNDERVALUED),
    (lambda z: _is_high(z.pe_z) and _is_high(z.pb_z), OutlierType.OVERVALUED),
    (lambda z: _is_high(z.price_z) and _is_high(z.volume_z), OutlierType.MOMENTUM),
    (lambda z: _is_low(z.pe_z) and _is_low(z.price_z), OutlierType.VALUE_TRAP),
    (lambda z: _is_high(z.pe_z) and _is_high(z.price_z), OutlierType.GROWTH_PREMIUM),
)


def classify_outlier(
    z_scores: ZScores,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> OutlierType:
    for predicate, label in rules:
        if predicate(z_scores):
            return label
    return OutlierType.MIXED


def classify_significance(score: float) -> SignificanceLevel:
    if score >= EXTREME_SCORE:
        return SignificanceLevel.EXTREME
    if score >= STRONG_SCORE:
        return SignificanceLevel.STRONG
    return SignificanceLevel.MODERATE

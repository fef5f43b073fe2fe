from __future__ import annotations

import numpy as np
import pytest

from outliers.models import OutlierType, SignificanceLevel, ZScores
from outliers.scoring import (
    CLASSIFICATION_RULES,
    calculate_composite_score,
    classify_outlier,
    classify_significance,
)


def test_composite_price_only() -> None:
    assert calculate_composite_score(ZScores(price_z=1.0)) == pytest.approx(1.0)
    assert calculate_composite_score(ZScores(price_z=0.0)) == 0.0


def test_composite_all_equal_z_scores() -> None:
    score = calculate_composite_score(ZScores(price_z=2.0, pe_z=2.0, pb_z=2.0, volume_z=2.0))
    assert score == pytest.approx(2.0)
    assert classify_significance(round(score, 2)) is SignificanceLevel.STRONG


def test_composite_ignores_missing_metrics() -> None:
    # Only price (0.3) and P/E (0.3) contribute: sqrt(0.3 * 4 / 0.6).
    score = calculate_composite_score(ZScores(price_z=0.0, pe_z=2.0))
    assert score == pytest.approx(np.sqrt(2.0))


def test_composite_is_sign_invariant() -> None:
    z = ZScores(price_z=1.3, pe_z=-2.1, pb_z=0.4, volume_z=-0.7)
    flipped = ZScores(price_z=-1.3, pe_z=2.1, pb_z=-0.4, volume_z=0.7)
    assert calculate_composite_score(z) == calculate_composite_score(flipped)


@pytest.mark.parametrize(
    "z_scores, expected",
    [
        (ZScores(price_z=0.0, pe_z=-2.0, pb_z=-2.0), OutlierType.UNDERVALUED),
        (ZScores(price_z=0.0, pe_z=2.0, pb_z=2.0), OutlierType.OVERVALUED),
        (ZScores(price_z=2.0, volume_z=2.0), OutlierType.MOMENTUM),
        (ZScores(price_z=-2.0, pe_z=-2.0), OutlierType.VALUE_TRAP),
        (ZScores(price_z=2.0, pe_z=2.0), OutlierType.GROWTH_PREMIUM),
        (ZScores(price_z=3.0), OutlierType.MIXED),
    ],
)
def test_classification_rules(z_scores: ZScores, expected: OutlierType) -> None:
    assert classify_outlier(z_scores) is expected


def test_earlier_rule_wins() -> None:
    # Matches both Undervalued and ValueTrap; Undervalued is evaluated first.
    z = ZScores(price_z=-2.0, pe_z=-2.0, pb_z=-2.0)
    assert classify_outlier(z) is OutlierType.UNDERVALUED

    # Matches both Overvalued and GrowthPremium.
    z = ZScores(price_z=2.0, pe_z=2.0, pb_z=2.0)
    assert classify_outlier(z) is OutlierType.OVERVALUED


def test_missing_z_scores_never_trigger() -> None:
    # P/B missing: Undervalued cannot fire, falls through to ValueTrap.
    assert classify_outlier(ZScores(price_z=-2.0, pe_z=-2.0, pb_z=None)) is OutlierType.VALUE_TRAP
    # Volume missing: Momentum cannot fire.
    assert classify_outlier(ZScores(price_z=5.0, volume_z=None)) is OutlierType.MIXED
    assert classify_outlier(ZScores(price_z=0.0)) is OutlierType.MIXED


def test_thresholds_are_strict() -> None:
    assert classify_outlier(ZScores(price_z=0.0, pe_z=-1.0, pb_z=-1.0)) is OutlierType.MIXED
    assert classify_outlier(ZScores(price_z=1.0, pe_z=1.0, pb_z=1.0, volume_z=1.0)) is OutlierType.MIXED


def test_custom_rule_sequence() -> None:
    z = ZScores(price_z=2.0, pe_z=2.0, pb_z=2.0)
    assert classify_outlier(z, rules=CLASSIFICATION_RULES[4:]) is OutlierType.GROWTH_PREMIUM
    assert classify_outlier(z, rules=()) is OutlierType.MIXED


@pytest.mark.parametrize(
    "score, expected",
    [
        (0.0, SignificanceLevel.MODERATE),
        (1.99, SignificanceLevel.MODERATE),
        (2.0, SignificanceLevel.STRONG),
        (2.99, SignificanceLevel.STRONG),
        (3.0, SignificanceLevel.EXTREME),
        (7.5, SignificanceLevel.EXTREME),
    ],
)
def test_significance_tiers(score: float, expected: SignificanceLevel) -> None:
    assert classify_significance(score) is expected

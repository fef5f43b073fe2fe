from __future__ import annotations

import logging
import math

import pytest

from outliers.detector import _compare_scores, detect_all_outliers, detect_sector_outliers
from outliers.models import (
    MetricRow,
    OutlierResult,
    OutlierType,
    Sector,
    SignificanceLevel,
    ZScores,
)


def _row(stock_id: int, price: float, pe: float, pb: float, volume: int, sector_id: int = 1) -> MetricRow:
    return MetricRow(
        stock_id=stock_id,
        symbol=f"S{stock_id}",
        display_name=f"Stock {stock_id}",
        sector_id=sector_id,
        price_change_percent=price,
        pe_ratio=pe,
        pb_ratio=pb,
        volume=volume,
        avg_volume_10d=1_000_000,
    )


def _toy_sector(sector_id: int = 1) -> list[MetricRow]:
    # Stock 5 sits far above a tight cluster on every metric.
    return [
        _row(1, 0.1, 15.0, 2.0, 1_000_000, sector_id),
        _row(2, 0.2, 15.5, 2.1, 1_010_000, sector_id),
        _row(3, 0.0, 14.5, 1.9, 990_000, sector_id),
        _row(4, -0.1, 15.2, 2.05, 1_000_000, sector_id),
        _row(5, 8.0, 45.0, 6.0, 4_000_000, sector_id),
    ]


def _price_only(stock_id: int, price: float) -> MetricRow:
    return MetricRow(
        stock_id=stock_id,
        symbol=f"S{stock_id}",
        display_name=f"Stock {stock_id}",
        sector_id=1,
        price_change_percent=price,
    )


def test_small_sector_yields_nothing_at_any_threshold() -> None:
    rows = [_price_only(1, -50.0), _price_only(2, 50.0)]
    assert detect_sector_outliers(rows, threshold=0.0) == []
    assert detect_sector_outliers(rows, threshold=0.01) == []
    assert detect_sector_outliers(rows, threshold=100.0) == []
    assert detect_sector_outliers([], threshold=1.0) == []


def test_price_only_sector_below_threshold() -> None:
    rows = [_price_only(1, 1.0), _price_only(2, 2.0), _price_only(3, 3.0)]
    assert detect_sector_outliers(rows, threshold=1.5) == []

    flagged = detect_sector_outliers(rows, threshold=1.0)
    assert [o.stock_id for o in flagged] == [1, 3]
    assert all(o.composite_score == 1.0 for o in flagged)


def test_single_outlier_flagged_and_classified() -> None:
    results = detect_sector_outliers(_toy_sector(), threshold=1.0)

    assert len(results) == 1
    outlier = results[0]
    assert outlier.stock_id == 5
    assert outlier.sector_id == 1
    assert outlier.symbol == "S5"
    assert outlier.outlier_type is OutlierType.OVERVALUED
    assert outlier.significance_level is SignificanceLevel.MODERATE
    assert 1.0 <= outlier.composite_score < 2.0
    assert outlier.composite_score == round(outlier.composite_score, 2)
    assert outlier.z_scores.price_z > 1.0
    assert outlier.z_scores.volume_z > 1.0


def test_results_sorted_by_score_descending() -> None:
    results = detect_sector_outliers(_toy_sector(), threshold=0.01)

    assert len(results) == 5
    scores = [o.composite_score for o in results]
    assert scores == sorted(scores, reverse=True)
    assert results[0].stock_id == 5


def test_detection_is_idempotent() -> None:
    rows = _toy_sector()
    assert detect_sector_outliers(rows, threshold=0.5) == detect_sector_outliers(rows, threshold=0.5)


@pytest.mark.parametrize("threshold", [0.0, -1.0, math.nan, math.inf])
def test_invalid_threshold_raises(threshold: float) -> None:
    with pytest.raises(ValueError, match="threshold must be a positive finite number"):
        detect_sector_outliers(_toy_sector(), threshold=threshold)


def test_callback_receives_results_in_order() -> None:
    seen: list[int] = []
    results = detect_sector_outliers(_toy_sector(), threshold=0.01, on_detection=lambda o: seen.append(o.stock_id))
    assert seen == [o.stock_id for o in results]


def test_callback_failure_does_not_drop_results(caplog: pytest.LogCaptureFixture) -> None:
    def _fail(outlier: OutlierResult) -> None:
        raise RuntimeError("history store unavailable")

    with caplog.at_level(logging.WARNING, logger="outliers.detector"):
        results = detect_sector_outliers(_toy_sector(), threshold=1.0, on_detection=_fail)

    assert [o.stock_id for o in results] == [5]
    assert "history store unavailable" in caplog.text


def test_nan_scores_compare_equal() -> None:
    def _result(score: float) -> OutlierResult:
        return OutlierResult(
            stock_id=1,
            sector_id=1,
            symbol="S1",
            display_name="Stock 1",
            z_scores=ZScores(price_z=0.0),
            composite_score=score,
            outlier_type=OutlierType.MIXED,
            significance_level=SignificanceLevel.MODERATE,
        )

    assert _compare_scores(_result(math.nan), _result(2.0)) == 0
    assert _compare_scores(_result(3.0), _result(2.0)) == -1
    assert _compare_scores(_result(1.0), _result(2.0)) == 1


def test_detect_all_outliers_keeps_caller_order_and_metadata() -> None:
    sector_rows = {
        8: _toy_sector(sector_id=8),
        2: [_price_only(1, 1.0)],
        1: _toy_sector(sector_id=1),
    }
    sectors = {1: Sector(sector_id=1, name="Technology", symbol="XLK")}

    results = detect_all_outliers(sector_rows, threshold=1.0, sectors=sectors)

    assert list(results) == [8, 2, 1]
    assert results[1].sector_name == "Technology"
    assert results[1].sector_symbol == "XLK"
    assert results[1].outlier_count == 1
    assert results[8].sector_name == "8"
    assert results[8].sector_symbol == ""
    assert results[2].outlier_count == 0
    assert results[8].outliers[0].sector_id == 8


def test_detect_all_outliers_validates_threshold_up_front() -> None:
    with pytest.raises(ValueError):
        detect_all_outliers({}, threshold=-0.5)


def _with_composite(monkeypatch: pytest.MonkeyPatch, value: float) -> None:
    monkeypatch.setattr("outliers.detector.calculate_composite_score", lambda z_scores: value)


def test_tier_uses_unrounded_composite(monkeypatch: pytest.MonkeyPatch) -> None:
    _with_composite(monkeypatch, 1.996)

    results = detect_sector_outliers(_toy_sector(), threshold=1.99)

    assert len(results) == 5
    assert all(o.composite_score == 2.0 for o in results)
    assert all(o.significance_level is SignificanceLevel.MODERATE for o in results)


def test_score_rounds_halves_up(monkeypatch: pytest.MonkeyPatch) -> None:
    _with_composite(monkeypatch, 1.125)

    results = detect_sector_outliers(_toy_sector(), threshold=1.0)

    assert [o.composite_score for o in results] == [1.13] * 5


def test_nan_composite_is_never_flagged(monkeypatch: pytest.MonkeyPatch) -> None:
    _with_composite(monkeypatch, math.nan)

    assert detect_sector_outliers(_toy_sector(), threshold=0.01) == []

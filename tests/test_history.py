from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from outliers.history import HISTORY_COLUMNS, DetectionHistory, load_detection_history
from outliers.models import OutlierResult, OutlierType, SignificanceLevel, ZScores


def _outlier(stock_id: int, sector_id: int, score: float) -> OutlierResult:
    return OutlierResult(
        stock_id=stock_id,
        sector_id=sector_id,
        symbol=f"S{stock_id}",
        display_name=f"Stock {stock_id}",
        z_scores=ZScores(price_z=2.1, pe_z=None, pb_z=-1.4, volume_z=None),
        composite_score=score,
        outlier_type=OutlierType.MIXED,
        significance_level=SignificanceLevel.STRONG,
    )


def test_flush_writes_records(tmp_path: Path) -> None:
    path = tmp_path / "history" / "detections.parquet"
    history = DetectionHistory(
        path,
        threshold=1.5,
        universe="sp500",
        detected_at=datetime(2024, 3, 1, 21, 0, tzinfo=timezone.utc),
    )
    history.record(_outlier(101, 1, 2.4))
    history.record(_outlier(102, 1, 2.1))
    assert history.pending_count == 2

    assert history.flush() == 2
    assert history.pending_count == 0

    stored = pd.read_parquet(path)
    assert list(stored.columns) == HISTORY_COLUMNS
    assert stored["detection_date"].tolist() == ["2024-03-01", "2024-03-01"]
    assert stored["threshold_used"].tolist() == [1.5, 1.5]
    assert stored["universe_type"].unique().tolist() == ["sp500"]
    assert stored["outlier_type"].unique().tolist() == ["Mixed"]
    assert stored["pe_z_score"].isna().all()
    assert stored["price_z_score"].tolist() == [2.1, 2.1]


def test_flush_without_records_is_noop(tmp_path: Path) -> None:
    path = tmp_path / "detections.parquet"
    assert DetectionHistory(path, threshold=2.0, universe="russell2000").flush() == 0
    assert not path.exists()


def test_history_appends_across_runs(tmp_path: Path) -> None:
    path = tmp_path / "detections.parquet"

    first = DetectionHistory(path, threshold=1.5, universe="sp500", detected_at=datetime(2024, 3, 1))
    first.record(_outlier(101, 1, 1.8))
    first.flush()

    second = DetectionHistory(path, threshold=1.5, universe="sp500", detected_at=datetime(2024, 3, 2))
    second.record(_outlier(101, 1, 2.2))
    second.record(_outlier(201, 8, 3.1))
    second.flush()

    history = load_detection_history(path)
    assert len(history) == 3
    assert history["detection_date"].tolist() == ["2024-03-01", "2024-03-02", "2024-03-02"]
    assert history["composite_score"].tolist() == [1.8, 3.1, 2.2]

    by_stock = load_detection_history(path, stock_id=101)
    assert by_stock["composite_score"].tolist() == [1.8, 2.2]

    by_sector = load_detection_history(path, sector_id=8)
    assert by_sector["stock_id"].tolist() == [201]


def test_missing_history_loads_empty(tmp_path: Path) -> None:
    history = load_detection_history(tmp_path / "absent.parquet")
    assert history.empty
    assert list(history.columns) == HISTORY_COLUMNS

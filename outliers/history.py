"""Append-only detection history written after each detection run."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd

from outliers.models import OutlierResult

HISTORY_COLUMNS: List[str] = [
    "stock_id",
    "sector_id",
    "detection_date",
    "detection_timestamp",
    "pe_z_score",
    "pb_z_score",
    "price_z_score",
    "volume_z_score",
    "composite_score",
    "outlier_type",
    "significance_level",
    "threshold_used",
    "universe_type",
]

Z_SCORE_COLUMNS: List[str] = ["pe_z_score", "pb_z_score", "price_z_score", "volume_z_score"]


def detection_record(
    outlier: OutlierResult,
    threshold: float,
    universe: str,
    detected_at: datetime,
) -> Dict[str, Any]:
    z = outlier.z_scores
    return {
        "stock_id": outlier.stock_id,
        "sector_id": outlier.sector_id,
        "detection_date": detected_at.date().isoformat(),
        "detection_timestamp": pd.Timestamp(detected_at.replace(tzinfo=None)),
        "pe_z_score": z.pe_z,
        "pb_z_score": z.pb_z,
        "price_z_score": z.price_z,
        "volume_z_score": z.volume_z,
        "composite_score": outlier.composite_score,
        "outlier_type": str(outlier.outlier_type),
        "significance_level": str(outlier.significance_level),
        "threshold_used": float(threshold),
        "universe_type": universe,
    }


class DetectionHistory:
    """Collect detection records during a run and append them to a parquet file.

    ``record`` is meant to be passed as the detector's ``on_detection``
    callback; ``flush`` writes everything collected so far in one go.
    """

    def __init__(
        self,
        path: str | Path,
        threshold: float,
        universe: str,
        detected_at: datetime | None = None,
    ) -> None:
        self.path = Path(path)
        self.threshold = float(threshold)
        self.universe = universe
        stamp = detected_at or datetime.now(timezone.utc)
        self.detected_at = stamp.astimezone(timezone.utc) if stamp.tzinfo else stamp
        self._pending: List[Dict[str, Any]] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def record(self, outlier: OutlierResult) -> None:
        self._pending.append(detection_record(outlier, self.threshold, self.universe, self.detected_at))

    def flush(self) -> int:
        if not self._pending:
            return 0

        frame = pd.DataFrame(self._pending, columns=HISTORY_COLUMNS)
        frame[Z_SCORE_COLUMNS] = frame[Z_SCORE_COLUMNS].astype(float)
        if self.path.exists():
            existing = pd.read_parquet(self.path)
            frame = pd.concat([existing, frame], axis=0, ignore_index=True)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_parquet(self.path, index=False)

        written = len(self._pending)
        self._pending.clear()
        return written


def load_detection_history(
    path: str | Path,
    stock_id: int | None = None,
    sector_id: int | None = None,
) -> pd.DataFrame:
    """Read stored detections, optionally filtered by stock and/or sector."""

    history_path = Path(path)
    if not history_path.exists():
        return pd.DataFrame(columns=HISTORY_COLUMNS)

    history = pd.read_parquet(history_path)
    if stock_id is not None:
        history = history.loc[history["stock_id"] == stock_id]
    if sector_id is not None:
        history = history.loc[history["sector_id"] == sector_id]

    history = history.sort_values(["detection_timestamp", "composite_score"], ascending=[True, False])
    return history.reset_index(drop=True)

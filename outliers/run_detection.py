"""Detection stage: group snapshots by sector, flag outliers, record history."""

from __future__ import annotations

import argparse
import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pandas as pd
import yaml

from data_pipeline.build_dataset import SNAPSHOT_FILENAME
from data_pipeline.sectors import load_sector_reference
from outliers.detector import MIN_SECTOR_SIZE, detect_all_outliers
from outliers.history import DetectionHistory
from outliers.models import MetricRow, OutlierType, Sector, SectorOutliers, SignificanceLevel
from outliers.stats import compute_sector_statistics, summarize_sector_statistics

LOGGER = logging.getLogger("outliers.run_detection")

DEFAULT_UNIVERSE = "sp500"
# Smaller, noisier universes need a wider band before a stock counts as anomalous.
DEFAULT_THRESHOLDS: Dict[str, float] = {"sp500": 1.5, "russell2000": 2.0}

OUTLIER_REPORT_COLUMNS: List[str] = [
    "sector_id",
    "sector_name",
    "sector_symbol",
    "stock_id",
    "symbol",
    "name",
    "composite_score",
    "outlier_type",
    "significance_level",
    "price_z",
    "pe_z",
    "pb_z",
    "volume_z",
]


def _load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        cfg = yaml.safe_load(handle)
    if not isinstance(cfg, dict):
        raise ValueError(f"YAML must parse to dictionary: {path}")
    return cfg


def _write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def resolve_threshold(detection_cfg: Dict[str, Any]) -> float:
    """Explicit ``threshold`` wins; otherwise the universe default applies."""

    explicit = detection_cfg.get("threshold")
    if explicit is not None:
        return float(explicit)

    universe = str(detection_cfg.get("universe", DEFAULT_UNIVERSE))
    defaults = {**DEFAULT_THRESHOLDS, **(detection_cfg.get("default_thresholds") or {})}
    if universe not in defaults:
        raise ValueError(f"No default threshold configured for universe '{universe}'. Known: {sorted(defaults)}")
    return float(defaults[universe])


def _optional_float(value: Any) -> float | None:
    return None if pd.isna(value) else float(value)


def _optional_int(value: Any) -> int | None:
    return None if pd.isna(value) else int(value)


def snapshot_to_metric_row(record: Dict[str, Any]) -> MetricRow:
    return MetricRow(
        stock_id=int(record["stock_id"]),
        symbol=str(record["symbol"]),
        display_name=str(record["name"]),
        sector_id=int(record["sector_id"]),
        price_change_percent=float(record["price_change_percent"]),
        pe_ratio=_optional_float(record["pe_ratio"]),
        pb_ratio=_optional_float(record["pb_ratio"]),
        volume=_optional_int(record["volume"]),
        avg_volume_10d=_optional_int(record["avg_volume_10d"]),
    )


def build_sector_rows(snapshots: pd.DataFrame, sector_ids: Iterable[int]) -> Dict[int, List[MetricRow]]:
    """Group snapshots into per-sector row lists.

    Known sectors come first in the given order (empty sectors included);
    sectors present only in the data follow in id order.
    """

    sector_rows: Dict[int, List[MetricRow]] = {int(sector_id): [] for sector_id in sector_ids}
    unknown = sorted(set(int(s) for s in snapshots["sector_id"].unique()) - set(sector_rows))
    if unknown:
        LOGGER.warning("Snapshots reference sectors missing from the sector reference: %s", unknown)
    for sector_id in unknown:
        sector_rows[sector_id] = []

    for record in snapshots.to_dict(orient="records"):
        row = snapshot_to_metric_row(record)
        sector_rows[row.sector_id].append(row)
    return sector_rows


def build_outlier_report(results: Iterable[SectorOutliers]) -> pd.DataFrame:
    rows = []
    for sector in results:
        for outlier in sector.outliers:
            rows.append(
                {
                    "sector_id": sector.sector_id,
                    "sector_name": sector.sector_name,
                    "sector_symbol": sector.sector_symbol,
                    "stock_id": outlier.stock_id,
                    "symbol": outlier.symbol,
                    "name": outlier.display_name,
                    "composite_score": outlier.composite_score,
                    "outlier_type": str(outlier.outlier_type),
                    "significance_level": str(outlier.significance_level),
                    **outlier.z_scores.as_dict(),
                }
            )

    report = pd.DataFrame(rows, columns=OUTLIER_REPORT_COLUMNS)
    z_cols = ["price_z", "pe_z", "pb_z", "volume_z"]
    report[z_cols] = report[z_cols].astype(float)
    return report


def _breakdown(values: Iterable[str], labels: Iterable[str]) -> Dict[str, int]:
    counts = Counter(values)
    return {label: int(counts.get(label, 0)) for label in labels}


def run_detection(detection_config_path: str, data_config_path: str) -> Dict[str, Any]:
    detection_cfg_all = _load_yaml(detection_config_path)
    data_cfg_all = _load_yaml(data_config_path)

    detection_cfg = detection_cfg_all.get("detection", {})
    data_cfg = data_cfg_all.get("data", {})

    data_output_dir = Path(data_cfg.get("output_dir", "outputs/data"))
    snapshot_path = Path(detection_cfg.get("snapshots_path", data_output_dir / "standardized" / SNAPSHOT_FILENAME))
    if not snapshot_path.exists():
        raise FileNotFoundError(
            f"Standardized snapshots not found: {snapshot_path}. Run data_pipeline.build_dataset first."
        )

    universe = str(detection_cfg.get("universe", DEFAULT_UNIVERSE))
    threshold = resolve_threshold(detection_cfg)

    output_dir = Path(detection_cfg.get("output_dir", "outputs/detection"))
    output_dir.mkdir(parents=True, exist_ok=True)
    history_path = Path(detection_cfg.get("history_path", output_dir / "history" / "outlier_detections.parquet"))

    snapshots = pd.read_parquet(snapshot_path)
    sector_table = load_sector_reference(data_cfg.get("sectors_path", "data_pipeline/samples/sectors.csv"))
    sectors = {
        int(row.sector_id): Sector(sector_id=int(row.sector_id), name=row.name, symbol=row.symbol)
        for row in sector_table.itertuples(index=False)
    }

    sector_rows = build_sector_rows(snapshots, sector_table["sector_id"].tolist())
    LOGGER.info(
        "Detecting outliers | universe=%s threshold=%.2f sectors=%s stocks=%s",
        universe,
        threshold,
        len(sector_rows),
        len(snapshots),
    )

    history = DetectionHistory(history_path, threshold=threshold, universe=universe)
    results = detect_all_outliers(sector_rows, threshold, sectors=sectors, on_detection=history.record)

    for sector_id, sector in results.items():
        stock_count = len(sector_rows[sector_id])
        if stock_count < MIN_SECTOR_SIZE:
            LOGGER.info("Sector %s skipped: %s stocks (minimum %s)", sector.sector_name, stock_count, MIN_SECTOR_SIZE)
        else:
            LOGGER.info("Sector %s: %s outliers among %s stocks", sector.sector_name, sector.outlier_count, stock_count)

    try:
        records_written = history.flush()
    except Exception as exc:  # best effort
        records_written = 0
        LOGGER.warning("Detection history not written to %s: %s", history_path, exc)

    outlier_report = build_outlier_report(results.values())
    outlier_path = output_dir / "outlier_report.parquet"
    outlier_report.to_parquet(outlier_path, index=False)

    statistics = {
        str(sector_id): summarize_sector_statistics(compute_sector_statistics(rows))
        for sector_id, rows in sector_rows.items()
        if rows
    }
    statistics_path = output_dir / "sector_statistics.json"
    _write_json(statistics_path, statistics)

    summary = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "config_path": detection_config_path,
        "universe": universe,
        "threshold": threshold,
        "totals": {
            "sectors": len(results),
            "sectors_evaluated": sum(1 for rows in sector_rows.values() if len(rows) >= MIN_SECTOR_SIZE),
            "stocks": int(len(snapshots)),
            "outliers": int(len(outlier_report)),
        },
        "by_sector": [
            {
                "sector_id": sector.sector_id,
                "sector_name": sector.sector_name,
                "sector_symbol": sector.sector_symbol,
                "stock_count": len(sector_rows[sector.sector_id]),
                "outlier_count": sector.outlier_count,
                "evaluated": len(sector_rows[sector.sector_id]) >= MIN_SECTOR_SIZE,
            }
            for sector in results.values()
        ],
        "by_significance": _breakdown(outlier_report["significance_level"], [str(s) for s in SignificanceLevel]),
        "by_type": _breakdown(outlier_report["outlier_type"], [str(t) for t in OutlierType]),
        "history": {"path": str(history_path), "records_written": records_written},
        "artifacts": {
            "outlier_report": str(outlier_path),
            "sector_statistics": str(statistics_path),
        },
    }

    summary_path = output_dir / "detection_summary.json"
    _write_json(summary_path, summary)
    LOGGER.info("Detection summary written to %s", summary_path)

    return summary


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Detect sector-relative stock outliers.")
    parser.add_argument("--detection-config", default="config/detection.yaml", help="Path to detection config YAML")
    parser.add_argument("--data-config", default="config/data.yaml", help="Path to data config YAML")
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    run_detection(args.detection_config, args.data_config)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

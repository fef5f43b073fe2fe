"""Snapshot builder: load -> standardize -> validate -> latest per stock -> coverage report."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import yaml

from data_pipeline.loaders import load_source_dataframe
from data_pipeline.qa import summarize_metric_coverage
from data_pipeline.schema import REQUIRED_COLUMNS, get_schema_validation_errors, validate_metric_schema
from data_pipeline.standardize import select_latest_snapshots, standardize_metric_frame

LOGGER = logging.getLogger("data_pipeline.build_dataset")

SNAPSHOT_FILENAME = "metric_snapshots.parquet"


def _load_config(config_path: str) -> Dict[str, Any]:
    with open(config_path, "r", encoding="utf-8") as handle:
        config = yaml.safe_load(handle)
    if not isinstance(config, dict):
        raise ValueError(f"Config must parse to a dictionary: {config_path}")
    return config


def _ensure_output_dirs(base_output_dir: Path) -> Dict[str, Path]:
    raw_dir = base_output_dir / "raw"
    standardized_dir = base_output_dir / "standardized"
    metadata_dir = base_output_dir / "metadata"

    raw_dir.mkdir(parents=True, exist_ok=True)
    standardized_dir.mkdir(parents=True, exist_ok=True)
    metadata_dir.mkdir(parents=True, exist_ok=True)

    return {"raw": raw_dir, "standardized": standardized_dir, "metadata": metadata_dir}


def _format_timestamp(value: Any) -> str | None:
    if pd.isna(value):
        return None
    return pd.Timestamp(value).isoformat()


def _summarize_source(source_name: str, standardized_df: pd.DataFrame) -> Dict[str, Any]:
    rows = int(len(standardized_df))
    return {
        "source": source_name,
        "rows": rows,
        "stocks": int(standardized_df["stock_id"].nunique()),
        "sectors": sorted(int(s) for s in standardized_df["sector_id"].dropna().unique()),
        "timestamp_start": _format_timestamp(standardized_df["timestamp"].min()) if rows else None,
        "timestamp_end": _format_timestamp(standardized_df["timestamp"].max()) if rows else None,
        "missing_counts": {col: int(standardized_df[col].isna().sum()) for col in REQUIRED_COLUMNS},
    }


def _write_json(path: Path, payload: Dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)


def _detect_duplicates(df: pd.DataFrame, duplicate_keys: List[str], metadata_dir: Path) -> Dict[str, Any]:
    duplicated = df[df.duplicated(subset=duplicate_keys, keep=False)].copy()
    duplicate_path = metadata_dir / "duplicate_report.parquet"
    duplicated.to_parquet(duplicate_path, index=False)
    return {
        "keys": duplicate_keys,
        "count": int(len(duplicated)),
        "report_path": str(duplicate_path),
    }


def _null_rate_summary(df: pd.DataFrame) -> Dict[str, float]:
    total_rows = max(len(df), 1)
    return {col: round(float(df[col].isna().sum()) / total_rows, 6) for col in REQUIRED_COLUMNS}


def run_pipeline(config_path: str) -> Dict[str, Any]:
    config = _load_config(config_path)

    data_cfg = config.get("data", {})
    qa_cfg = config.get("qa", {})

    sources = data_cfg.get("raw_sources", [])
    if not sources:
        raise ValueError("No raw_sources configured in config/data.yaml under data.raw_sources")

    output_dir = Path(data_cfg.get("output_dir", "outputs/data"))
    dirs = _ensure_output_dirs(output_dir)

    generated_at = datetime.now(timezone.utc)
    standardized_frames: List[pd.DataFrame] = []
    source_summaries: List[Dict[str, Any]] = []

    for source in sources:
        if not source.get("enabled", True):
            LOGGER.info("Skipping disabled source: %s", source.get("name", "unknown"))
            continue

        source_name = source.get("name", source.get("source", "unknown_source"))
        LOGGER.info("Loading source: %s", source_name)

        raw_df = load_source_dataframe(source)
        raw_path = dirs["raw"] / f"{source_name}.parquet"
        raw_df.to_parquet(raw_path, index=False)

        standardized_df = standardize_metric_frame(raw_df=raw_df, source_config=source)
        validate_metric_schema(standardized_df)

        standardized_frames.append(standardized_df)
        source_summaries.append(_summarize_source(source_name=source_name, standardized_df=standardized_df))

    if not standardized_frames:
        raise ValueError("No standardized outputs were generated. Ensure at least one source is enabled.")

    combined = pd.concat(standardized_frames, axis=0, ignore_index=True)

    duplicate_keys = qa_cfg.get("duplicate_key", ["stock_id", "timestamp"])
    duplicates_info = _detect_duplicates(df=combined, duplicate_keys=duplicate_keys, metadata_dir=dirs["metadata"])
    if duplicates_info["count"] > 0:
        LOGGER.warning(
            "Duplicate key rows detected for keys %s: %s",
            duplicate_keys,
            duplicates_info["count"],
        )

    snapshots = select_latest_snapshots(combined)
    validate_metric_schema(snapshots, allow_extra_columns=False)
    snapshot_path = dirs["standardized"] / SNAPSHOT_FILENAME
    snapshots.to_parquet(snapshot_path, index=False)

    min_sector_size = int(qa_cfg.get("min_sector_size", 3))
    coverage = summarize_metric_coverage(snapshots, min_sector_size=min_sector_size)
    coverage_path = dirs["metadata"] / "coverage_report.parquet"
    coverage.to_parquet(coverage_path, index=False)

    ineligible = coverage.loc[~coverage["eligible"], "sector_id"].tolist()
    if ineligible:
        LOGGER.warning(
            "Sectors below minimum size %s will produce no detections: %s",
            min_sector_size,
            [int(s) for s in ineligible],
        )

    summary = {
        "generated_at_utc": generated_at.isoformat(),
        "config_path": config_path,
        "output_dir": str(output_dir),
        "totals": {
            "rows": int(len(combined)),
            "snapshots": int(len(snapshots)),
            "sources": int(len(source_summaries)),
            "sectors": int(snapshots["sector_id"].nunique()),
            "eligible_sectors": int(coverage["eligible"].sum()),
            "timestamp_start": _format_timestamp(combined["timestamp"].min()),
            "timestamp_end": _format_timestamp(combined["timestamp"].max()),
        },
        "by_source": source_summaries,
        "duplicates": duplicates_info,
        "null_rates": _null_rate_summary(snapshots),
        "schema_errors": get_schema_validation_errors(snapshots, allow_extra_columns=False),
        "artifacts": {
            "snapshots": str(snapshot_path),
            "coverage_report": str(coverage_path),
        },
    }

    summary_path = dirs["metadata"] / "source_summary.json"
    _write_json(summary_path, summary)
    LOGGER.info("Snapshot pipeline completed. Summary written to %s", summary_path)

    return summary


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build standardized per-stock metric snapshots.")
    parser.add_argument("--config", default="config/data.yaml", help="Path to YAML config file.")
    return parser


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    run_pipeline(config_path=args.config)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

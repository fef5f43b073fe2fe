"""Data pipeline package for metric snapshot ingestion and standardization."""

from data_pipeline.schema import REQUIRED_COLUMNS, validate_metric_schema

__all__ = ["REQUIRED_COLUMNS", "validate_metric_schema"]

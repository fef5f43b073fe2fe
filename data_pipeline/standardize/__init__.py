"""Standardization exports."""

from .transforms import select_latest_snapshots, standardize_metric_frame

__all__ = ["select_latest_snapshots", "standardize_metric_frame"]

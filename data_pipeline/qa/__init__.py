"""QA helpers exports."""

from .coverage import summarize_metric_coverage

__all__ = ["summarize_metric_coverage"]

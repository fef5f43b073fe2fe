"""Sector-relative outlier detection engine."""

from outliers.detector import detect_all_outliers, detect_sector_outliers
from outliers.models import (
    MetricRow,
    OutlierResult,
    OutlierType,
    Sector,
    SectorOutliers,
    SignificanceLevel,
    ZScores,
)

__all__ = [
    "MetricRow",
    "OutlierResult",
    "OutlierType",
    "Sector",
    "SectorOutliers",
    "SignificanceLevel",
    "ZScores",
    "detect_all_outliers",
    "detect_sector_outliers",
]

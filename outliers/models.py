"""Data contracts for sector-relative outlier detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class OutlierType(str, Enum):
    UNDERVALUED = "Undervalued"
    OVERVALUED = "Overvalued"
    MOMENTUM = "Momentum"
    VALUE_TRAP = "ValueTrap"
    GROWTH_PREMIUM = "GrowthPremium"
    MIXED = "Mixed"

    def __str__(self) -> str:
        return self.value


class SignificanceLevel(str, Enum):
    MODERATE = "Moderate"
    STRONG = "Strong"
    EXTREME = "Extreme"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MetricRow:
    """Latest metric snapshot for one stock inside one sector."""

    stock_id: int
    symbol: str
    display_name: str
    sector_id: int
    price_change_percent: float
    pe_ratio: float | None = None
    pb_ratio: float | None = None
    volume: int | None = None
    avg_volume_10d: int | None = None

    @property
    def volume_ratio(self) -> float | None:
        if self.volume is None or self.avg_volume_10d is None or self.avg_volume_10d <= 0:
            return None
        return self.volume / self.avg_volume_10d


@dataclass(frozen=True)
class MetricStats:
    mean: float
    std_dev: float
    count: int


@dataclass(frozen=True)
class ZScores:
    price_z: float
    pe_z: float | None = None
    pb_z: float | None = None
    volume_z: float | None = None

    def as_dict(self) -> Dict[str, float | None]:
        return {
            "price_z": self.price_z,
            "pe_z": self.pe_z,
            "pb_z": self.pb_z,
            "volume_z": self.volume_z,
        }


@dataclass(frozen=True)
class OutlierResult:
    stock_id: int
    sector_id: int
    symbol: str
    display_name: str
    z_scores: ZScores
    composite_score: float
    outlier_type: OutlierType
    significance_level: SignificanceLevel


@dataclass(frozen=True)
class Sector:
    sector_id: int
    name: str
    symbol: str


@dataclass(frozen=True)
class SectorOutliers:
    sector_id: int
    sector_name: str
    sector_symbol: str
    outliers: List[OutlierResult] = field(default_factory=list)

    @property
    def outlier_count(self) -> int:
        return len(self.outliers)

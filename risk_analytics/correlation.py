"""
Correlation and Exposure Monitoring.

Rolling correlation between asset return pairs, detection of correlation
breakdowns against a historical baseline, regime-change checks on a
correlation history, and concentration/sector exposure analysis.
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .config import CorrelationConfig
from .exceptions import InvalidInputError, NumericDegeneracyError
from .models import Severity
from .utils.stats import as_array, as_pair, correlation, correlation_matrix, pearson

logger = logging.getLogger(__name__)


@dataclass
class AssetPair:
    """Two assets and their aligned return series."""
    asset1: str
    asset2: str
    returns1: Sequence[float]
    returns2: Sequence[float]


@dataclass
class CorrelationBreakdown:
    """Shift in correlation between a historical and a recent window."""
    asset1: str
    asset2: str
    historical_correlation: float
    current_correlation: float
    breakdown_detected: bool
    severity: Severity
    magnitude: float = 0.0


@dataclass
class CorrelationAlert:
    """Human-readable alert for a detected breakdown."""
    message: str
    action: str
    priority: int


@dataclass
class SectorPosition:
    """Position value tagged with its sector."""
    symbol: str
    value: float
    sector: str


@dataclass
class ExposureAnalysis:
    """Concentration and correlation-adjusted exposure of a portfolio."""
    total_exposure: float
    exposure_by_asset: Dict[str, float]
    exposure_by_sector: Dict[str, float]
    concentration_risk: float
    correlation_adjusted_risk: float
    warnings: List[str] = field(default_factory=list)


class CorrelationExposureMonitor:
    """
    Watches pairwise correlations and portfolio concentration.

    Attributes:
        config: Breakdown, regime and exposure thresholds
    """

    def __init__(self, config: Optional[CorrelationConfig] = None) -> None:
        self.config = config or CorrelationConfig()

    # ========== Correlation ==========

    def calculate_correlation(self, series1: Sequence[float], series2: Sequence[float]) -> float:
        """
        Pearson correlation of two aligned series.

        Returns 0 rather than NaN when either series has zero variance.

        Raises:
            InvalidInputError: On mismatched lengths or fewer than 2 points
        """
        return correlation(series1, series2)

    def calculate_rolling_correlation(
        self,
        series1: Sequence[float],
        series2: Sequence[float],
        window: int
    ) -> Iterator[float]:
        """
        Lazily yield one correlation per sliding window, oldest first.

        Inputs are validated when this is called, not when iteration starts.
        A window longer than the series yields nothing.

        Args:
            series1: First return series
            series2: Second return series
            window: Window length (>= 2)

        Returns:
            Iterator of correlation values
        """
        a, b = as_pair(series1, series2)
        if window is None or window < 2:
            raise InvalidInputError(f"window must be at least 2, got {window}", field="window")
        return self._iter_windows(a, b, window)

    @staticmethod
    def _iter_windows(a: np.ndarray, b: np.ndarray, window: int) -> Iterator[float]:
        for end in range(window, len(a) + 1):
            yield pearson(a[end - window:end], b[end - window:end])

    def track_correlation_evolution(
        self,
        series1: Sequence[float],
        series2: Sequence[float],
        window: int = 30
    ) -> pd.Series:
        """Rolling correlation as a Series indexed by period number."""
        values = list(self.calculate_rolling_correlation(series1, series2, window))
        return pd.Series(values, index=pd.RangeIndex(len(values), name="period"),
                         name="correlation", dtype=float)

    # ========== Breakdown Detection ==========

    def classify_severity(self, magnitude: float) -> Severity:
        """Map an absolute correlation change to a severity level."""
        if magnitude > self.config.high_severity_threshold:
            return Severity.HIGH
        if magnitude > self.config.breakdown_threshold:
            return Severity.MEDIUM
        return Severity.LOW

    def _breakdown(self, asset1: str, asset2: str, historical: float, current: float) -> CorrelationBreakdown:
        magnitude = abs(historical - current)
        return CorrelationBreakdown(
            asset1=asset1,
            asset2=asset2,
            historical_correlation=historical,
            current_correlation=current,
            breakdown_detected=magnitude > self.config.breakdown_threshold,
            severity=self.classify_severity(magnitude),
            magnitude=magnitude,
        )

    def detect_breakdowns(
        self,
        pairs: Sequence[AssetPair],
        historical_window: int = 60,
        recent_window: int = 20
    ) -> List[CorrelationBreakdown]:
        """
        Compare early-window and late-window correlation for each pair.

        The historical correlation uses the first ``historical_window``
        points, the current correlation the last ``recent_window`` points.

        Args:
            pairs: Asset pairs with aligned return series
            historical_window: Points in the baseline window
            recent_window: Points in the recent window

        Returns:
            One CorrelationBreakdown per pair, in input order
        """
        if historical_window < 2 or recent_window < 2:
            raise InvalidInputError("Correlation windows need at least 2 points", field="window")

        validated = []
        for pair in pairs:
            a, b = as_pair(pair.returns1, pair.returns2,
                           names=(f"returns[{pair.asset1}]", f"returns[{pair.asset2}]"))
            validated.append((pair, a, b))

        results = []
        for pair, a, b in validated:
            historical = pearson(a[:historical_window], b[:historical_window])
            current = pearson(a[-recent_window:], b[-recent_window:])
            breakdown = self._breakdown(pair.asset1, pair.asset2, historical, current)
            if breakdown.breakdown_detected:
                logger.warning(
                    f"Correlation breakdown {pair.asset1}/{pair.asset2}: "
                    f"{historical:.2f} -> {current:.2f} ({breakdown.severity.value})"
                )
            results.append(breakdown)

        return results

    def monitor_correlations(
        self,
        returns_by_asset: Mapping[str, Sequence[float]],
        window: int = 30
    ) -> List[CorrelationBreakdown]:
        """
        Scan every asset pair for breakdowns.

        The baseline is everything before the last ``window`` points, the
        current correlation is the last ``window`` points. Only detected
        breakdowns are returned, largest shift first.
        """
        if window < 2:
            raise InvalidInputError(f"window must be at least 2, got {window}", field="window")

        series = {}
        for symbol, values in returns_by_asset.items():
            series[symbol] = as_array(values, name=f"returns[{symbol}]", min_length=window + 2)
        if len({len(values) for values in series.values()}) > 1:
            raise InvalidInputError("Return series differ in length", field="returns")

        breakdowns = []
        for asset1, asset2 in combinations(series, 2):
            a, b = series[asset1], series[asset2]
            historical = pearson(a[:-window], b[:-window])
            current = pearson(a[-window:], b[-window:])
            breakdown = self._breakdown(asset1, asset2, historical, current)
            if breakdown.breakdown_detected:
                breakdowns.append(breakdown)

        return sorted(breakdowns, key=lambda item: item.magnitude, reverse=True)

    @staticmethod
    def generate_alert(breakdown: CorrelationBreakdown) -> CorrelationAlert:
        """Describe a breakdown for display."""
        direction = (
            "increased"
            if breakdown.current_correlation > breakdown.historical_correlation
            else "decreased"
        )
        priority = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}[breakdown.severity]
        return CorrelationAlert(
            message=(
                f"Correlation between {breakdown.asset1} and {breakdown.asset2} has {direction} "
                f"from {breakdown.historical_correlation:.2f} to {breakdown.current_correlation:.2f}"
            ),
            action="Review portfolio diversification and hedging strategies",
            priority=priority,
        )

    def identify_regime_change(
        self,
        correlation_history: Sequence[float],
        threshold: Optional[float] = None
    ) -> bool:
        """
        Check whether recent correlations moved away from the prior level.

        Compares the mean of the last ``regime_recent_window`` values (10)
        against the mean of the values before them, going back
        ``regime_lookback_window`` (30) points.

        Args:
            correlation_history: Correlation values, oldest first
            threshold: Minimum absolute change (default from config, 0.4)

        Returns:
            True on a regime change; False when there is too little data
        """
        if threshold is None:
            threshold = self.config.regime_threshold
        if correlation_history is None or len(correlation_history) < 2:
            return False

        history = as_array(correlation_history, "correlation_history")
        recent = history[-self.config.regime_recent_window:]
        previous = history[-self.config.regime_lookback_window:-self.config.regime_recent_window]
        if len(recent) == 0 or len(previous) == 0:
            return False

        return bool(abs(recent.mean() - previous.mean()) > threshold)

    # ========== Exposure ==========

    def analyze_exposure(
        self,
        positions: Sequence[SectorPosition],
        correlation_matrix_map: Optional[Mapping[str, Mapping[str, float]]] = None
    ) -> ExposureAnalysis:
        """
        Percent exposure by asset and sector with concentration warnings.

        Args:
            positions: Positions tagged with value and sector
            correlation_matrix_map: Nested symbol -> symbol -> correlation
                mapping or a DataFrame; missing pairs count as 0

        Returns:
            ExposureAnalysis with warnings for assets above
            ``max_single_asset_exposure`` and sectors above
            ``max_sector_exposure``
        """
        if not positions:
            raise InvalidInputError("At least one position is required", field="positions")

        symbols = [p.symbol for p in positions]
        if len(set(symbols)) != len(symbols):
            raise InvalidInputError("Duplicate symbols in positions", field="positions")
        corr = correlation_matrix(symbols, correlation_matrix_map)

        total_value = float(sum(p.value for p in positions))
        if total_value == 0:
            raise NumericDegeneracyError("Total position value is zero", field="positions")

        warnings = []
        exposure_by_asset: Dict[str, float] = {}
        for position in positions:
            exposure = position.value / total_value * 100
            exposure_by_asset[position.symbol] = exposure
            if exposure > self.config.max_single_asset_exposure:
                warnings.append(
                    f"{position.symbol} exposure ({exposure:.1f}%) exceeds recommended "
                    f"{self.config.max_single_asset_exposure:g}%"
                )

        exposure_by_sector: Dict[str, float] = {}
        for position in positions:
            exposure_by_sector[position.sector] = (
                exposure_by_sector.get(position.sector, 0.0) + exposure_by_asset[position.symbol]
            )
        for sector, exposure in exposure_by_sector.items():
            if exposure > self.config.max_sector_exposure:
                warnings.append(
                    f"{sector} sector exposure ({exposure:.1f}%) exceeds recommended "
                    f"{self.config.max_sector_exposure:g}%"
                )

        weights = np.array([exposure_by_asset[s] for s in symbols])
        concentration_risk = float(np.sqrt(np.sum(weights ** 2)))
        adjusted_variance = float(weights @ corr @ weights)
        correlation_adjusted_risk = float(np.sqrt(max(adjusted_variance, 0.0)))

        for warning in warnings:
            logger.warning(warning)

        return ExposureAnalysis(
            total_exposure=total_value,
            exposure_by_asset=exposure_by_asset,
            exposure_by_sector=exposure_by_sector,
            concentration_risk=concentration_risk,
            correlation_adjusted_risk=correlation_adjusted_risk,
            warnings=warnings,
        )

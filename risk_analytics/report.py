"""
Risk report assembly and serialisation.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple

from .exceptions import InvalidInputError
from .risk_metrics import RiskMetrics


@dataclass
class RiskReport:
    """Point-in-time summary of portfolio risk with recommendations."""
    generated_at: datetime
    portfolio_value: float
    risk_metrics: RiskMetrics
    top_positions: List[Tuple[str, float]] = field(default_factory=list)
    sector_concentration: Dict[str, float] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["generated_at"] = self.generated_at.isoformat()
        data["top_positions"] = [
            {"symbol": symbol, "exposure": exposure} for symbol, exposure in self.top_positions
        ]
        return data

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class RiskReportGenerator:
    """Builds RiskReport objects from computed metrics."""

    MAX_DRAWDOWN_WARNING: float = 20.0  # percent
    MIN_SHARPE: float = 1.0
    MAX_VOLATILITY_WARNING: float = 30.0  # percent
    TOP_POSITIONS: int = 5

    def generate_report(
        self,
        portfolio_value: float,
        metrics: RiskMetrics,
        exposure_by_asset: Optional[Mapping[str, float]] = None,
        sector_exposure: Optional[Mapping[str, float]] = None,
        generated_at: Optional[datetime] = None
    ) -> RiskReport:
        """
        Assemble a report and derive recommendations from the metrics.

        Args:
            portfolio_value: Current portfolio value
            metrics: Output of RiskMetricsCalculator.calculate_all_metrics
            exposure_by_asset: Symbol -> percent exposure
            sector_exposure: Sector -> percent exposure
            generated_at: Report timestamp (default now, UTC)

        Returns:
            RiskReport
        """
        if portfolio_value < 0:
            raise InvalidInputError("portfolio_value must be non-negative", field="portfolio_value")

        exposures = dict(exposure_by_asset or {})
        top_positions = sorted(exposures.items(), key=lambda kv: kv[1], reverse=True)

        return RiskReport(
            generated_at=generated_at or datetime.now(timezone.utc),
            portfolio_value=portfolio_value,
            risk_metrics=metrics,
            top_positions=top_positions[:self.TOP_POSITIONS],
            sector_concentration=dict(sector_exposure or {}),
            recommendations=self.generate_recommendations(metrics),
        )

    def generate_recommendations(self, metrics: RiskMetrics) -> List[str]:
        recommendations = []
        if metrics.max_drawdown > self.MAX_DRAWDOWN_WARNING:
            recommendations.append("Consider reducing position sizes to limit drawdown risk")
        if metrics.sharpe_ratio < self.MIN_SHARPE:
            recommendations.append("Risk-adjusted returns are below optimal - review strategy")
        if metrics.volatility > self.MAX_VOLATILITY_WARNING:
            recommendations.append("High volatility detected - consider diversification")
        return recommendations

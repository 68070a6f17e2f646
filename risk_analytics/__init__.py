"""
Risk analytics engine for trading portfolios.

This package computes, from caller-supplied positions and return history:
- Value at Risk, Expected Shortfall, drawdown, Sharpe and volatility
- Monte Carlo equity paths and stress scenario impacts
- Kelly and fixed-fractional position sizes
- Rolling correlation, breakdown detection and exposure warnings
- Portfolio evaluation, efficient frontier and risk parity weights
- Scenario analysis and stop-loss placement
"""

from .config import (
    CorrelationConfig,
    EngineConfig,
    FrontierConfig,
    RiskMetricsConfig,
    RiskParityConfig,
    SizingConfig,
    StopLossConfig,
    DEFAULT_CONFIG,
)
from .correlation import (
    AssetPair,
    CorrelationAlert,
    CorrelationBreakdown,
    CorrelationExposureMonitor,
    ExposureAnalysis,
    SectorPosition,
)
from .exceptions import (
    ConfigurationError,
    InvalidInputError,
    NumericDegeneracyError,
    RiskAnalyticsError,
)
from .liquidity import ExecutionWindow, LiquidityMetrics, LiquidityRiskAssessor
from .models import Position, PositionSide, RiskTolerance, Severity
from .portfolio import OptimizationConfig, OptimizedPortfolio, PortfolioOptimizer
from .position_sizing import PositionRisk, PositionSizeRecommendation, PositionSizingEngine
from .report import RiskReport, RiskReportGenerator
from .risk_metrics import RiskMetrics, RiskMetricsCalculator, StressResult
from .risk_parity import RiskParityAllocation, RiskParityAllocator
from .scenarios import Scenario, ScenarioAnalyzer, ScenarioResult
from .stop_loss import (
    StopLossEvaluation,
    StopLossOptimizer,
    StopLossRecommendation,
    SupportResistance,
)

__all__ = [
    # Components
    "RiskMetricsCalculator",
    "PositionSizingEngine",
    "CorrelationExposureMonitor",
    "PortfolioOptimizer",
    "RiskParityAllocator",
    "ScenarioAnalyzer",
    "StopLossOptimizer",
    "LiquidityRiskAssessor",
    "RiskReportGenerator",
    # Value objects
    "Position",
    "RiskMetrics",
    "StressResult",
    "PositionSizeRecommendation",
    "PositionRisk",
    "AssetPair",
    "CorrelationBreakdown",
    "CorrelationAlert",
    "SectorPosition",
    "ExposureAnalysis",
    "OptimizationConfig",
    "OptimizedPortfolio",
    "RiskParityAllocation",
    "Scenario",
    "ScenarioResult",
    "SupportResistance",
    "StopLossRecommendation",
    "StopLossEvaluation",
    "LiquidityMetrics",
    "ExecutionWindow",
    "RiskReport",
    # Enums
    "PositionSide",
    "RiskTolerance",
    "Severity",
    # Configuration
    "EngineConfig",
    "RiskMetricsConfig",
    "SizingConfig",
    "CorrelationConfig",
    "RiskParityConfig",
    "FrontierConfig",
    "StopLossConfig",
    "DEFAULT_CONFIG",
    # Errors
    "RiskAnalyticsError",
    "InvalidInputError",
    "ConfigurationError",
    "NumericDegeneracyError",
]

__version__ = "1.0.0"

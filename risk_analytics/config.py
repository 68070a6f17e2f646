"""
Configuration for the risk analytics engine.

Every threshold the calculators rely on lives here so it can be tuned and
tested instead of being buried in the logic as a literal.
"""
from dataclasses import dataclass, field
from typing import Dict

from .exceptions import ConfigurationError
from .models import RiskTolerance


def _check_fraction(name: str, value: float, inclusive: bool = False) -> None:
    low_ok = value >= 0 if inclusive else value > 0
    if not (low_ok and value <= 1):
        raise ConfigurationError(f"{name} must lie in (0, 1], got {value}", field=name)


@dataclass
class RiskMetricsConfig:
    confidence_level: float = 0.95
    # Per-period rate: must match the period of the returns it is compared with
    risk_free_rate: float = 0.02

    def __post_init__(self):
        if not 0 < self.confidence_level < 1:
            raise ConfigurationError(
                f"confidence_level must lie in (0, 1), got {self.confidence_level}",
                field="confidence_level",
            )


@dataclass
class SizingConfig:
    kelly_cap: float = 0.5           # Ceiling on the raw Kelly fraction
    kelly_fraction: float = 0.5      # Half Kelly when converting to dollars
    max_position_size_pct: float = 20.0
    max_acceptable_risk_pct: float = 2.0
    default_risk_pct: float = 2.0
    correlation_reduction: float = 0.5  # Size cut at |correlation| == 1
    leverage_caps: Dict[RiskTolerance, float] = field(default_factory=lambda: {
        RiskTolerance.CONSERVATIVE: 2.0,
        RiskTolerance.MODERATE: 5.0,
        RiskTolerance.AGGRESSIVE: 10.0,
    })

    def __post_init__(self):
        _check_fraction("kelly_cap", self.kelly_cap)
        _check_fraction("kelly_fraction", self.kelly_fraction)
        _check_fraction("correlation_reduction", self.correlation_reduction, inclusive=True)
        if not 0 < self.max_position_size_pct <= 100:
            raise ConfigurationError(
                "max_position_size_pct must lie in (0, 100]", field="max_position_size_pct"
            )
        for tolerance, cap in self.leverage_caps.items():
            if cap < 1:
                raise ConfigurationError(
                    f"Leverage cap for {tolerance} must be >= 1, got {cap}",
                    field="leverage_caps",
                )


@dataclass
class CorrelationConfig:
    # Breakdown detection
    breakdown_threshold: float = 0.3
    high_severity_threshold: float = 0.5

    # Regime change detection
    regime_threshold: float = 0.4
    regime_recent_window: int = 10
    regime_lookback_window: int = 30

    # Concentration limits (percent of portfolio value)
    max_single_asset_exposure: float = 25.0
    max_sector_exposure: float = 40.0

    def __post_init__(self):
        if self.high_severity_threshold < self.breakdown_threshold:
            raise ConfigurationError(
                "high_severity_threshold must be >= breakdown_threshold",
                field="high_severity_threshold",
            )
        if self.regime_lookback_window <= self.regime_recent_window:
            raise ConfigurationError(
                "regime_lookback_window must exceed regime_recent_window",
                field="regime_lookback_window",
            )


@dataclass
class RiskParityConfig:
    max_iterations: int = 100
    tolerance: float = 1e-4
    # Exponent on avg(RC) / RC_i per step; 1.0 cycles between two states when
    # volatilities differ
    step_exponent: float = 0.5

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be positive", field="max_iterations")
        if self.tolerance <= 0:
            raise ConfigurationError("tolerance must be positive", field="tolerance")
        if not 0 < self.step_exponent <= 1:
            raise ConfigurationError("step_exponent must lie in (0, 1]", field="step_exponent")


@dataclass
class FrontierConfig:
    points: int = 20
    max_target_return: float = 0.20
    weight_tolerance: float = 1e-6


@dataclass
class StopLossConfig:
    atr_multiplier: float = 2.0
    lookback: int = 20
    max_risk_percent: float = 2.0
    fallback_support_pct: float = 0.95
    fallback_resistance_pct: float = 1.05

    # Risk/reward grading
    optimal_rr_ratio: float = 2.0
    acceptable_rr_ratio: float = 1.5


@dataclass
class EngineConfig:
    risk_metrics: RiskMetricsConfig = field(default_factory=RiskMetricsConfig)
    sizing: SizingConfig = field(default_factory=SizingConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    risk_parity: RiskParityConfig = field(default_factory=RiskParityConfig)
    frontier: FrontierConfig = field(default_factory=FrontierConfig)
    stop_loss: StopLossConfig = field(default_factory=StopLossConfig)


# Default configuration
DEFAULT_CONFIG = EngineConfig()

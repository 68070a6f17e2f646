"""
Portfolio Risk Metrics.

This module computes portfolio-level risk figures from caller-supplied
positions and return history:
- Historical and parametric Value at Risk
- Expected Shortfall (conditional VaR)
- Maximum drawdown of an equity curve
- Sharpe ratio and volatility
- Monte Carlo equity path simulation
- Stress scenario impact
"""

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .config import RiskMetricsConfig
from .exceptions import InvalidInputError, NumericDegeneracyError
from .models import Position
from .utils.stats import as_array, box_muller, mean, std_dev

logger = logging.getLogger(__name__)


@dataclass
class RiskMetrics:
    """Container for calculated risk metrics."""
    value_at_risk: float  # currency, loss magnitude
    expected_shortfall: float  # currency, loss magnitude
    max_drawdown: float  # percent (0-100)
    sharpe_ratio: float
    volatility: float  # percent (0-100)


@dataclass
class StressResult:
    """Impact of one stress scenario on the current positions."""
    name: str
    impact: float  # percent change in portfolio value
    new_value: float


class RiskMetricsCalculator:
    """
    Computes risk metrics for a set of positions.

    All routines are pure: positions and series are read, never mutated, and
    malformed input raises instead of producing NaN.

    Example:
        >>> calc = RiskMetricsCalculator()
        >>> btc = Position("BTC", 1, 50000.0, 50000.0)
        >>> calc.calculate_var([btc], [-0.10, -0.05, -0.02, 0.01, 0.03], 0.8)
        2500.0
    """

    def __init__(self, config: Optional[RiskMetricsConfig] = None) -> None:
        """
        Initialize the calculator.

        Args:
            config: Confidence level and per-period risk-free rate defaults
        """
        self.config = config or RiskMetricsConfig()

    # ========== Portfolio Value ==========

    @staticmethod
    def calculate_portfolio_value(positions: Sequence[Position]) -> float:
        """Sum of quantity * current price over all positions."""
        if positions is None or len(positions) == 0:
            raise InvalidInputError("At least one position is required", field="positions")
        return float(sum(p.quantity * p.current_price for p in positions))

    # ========== Value at Risk ==========

    def _resolve_confidence(self, confidence_level: Optional[float]) -> float:
        level = self.config.confidence_level if confidence_level is None else confidence_level
        if not 0 < level < 1:
            raise InvalidInputError(
                f"Confidence level must lie in (0, 1), got {level}", field="confidence_level"
            )
        return level

    @staticmethod
    def _cutoff_index(n: int, confidence_level: float) -> int:
        # Rounding first keeps (1 - 0.8) * 5 at index 1 instead of 0.999... -> 0
        index = int(np.floor(round((1 - confidence_level) * n, 9)))
        return min(index, n - 1)

    def calculate_var(
        self,
        positions: Sequence[Position],
        historical_returns: Sequence[float],
        confidence_level: Optional[float] = None
    ) -> float:
        """
        Calculate historical Value at Risk.

        Sorts the returns ascending and takes the one at
        ``floor((1 - confidence) * n)``; its magnitude scaled by portfolio
        value is the VaR.

        Args:
            positions: Current positions
            historical_returns: Portfolio return history (oldest first)
            confidence_level: Confidence level (default from config, 0.95)

        Returns:
            VaR as a positive currency amount

        Raises:
            InvalidInputError: If fewer than 2 returns or confidence out of range
        """
        level = self._resolve_confidence(confidence_level)
        returns = np.sort(as_array(historical_returns, "historical_returns"))
        portfolio_value = self.calculate_portfolio_value(positions)

        index = self._cutoff_index(len(returns), level)
        var = portfolio_value * abs(returns[index])
        logger.debug(f"VaR@{level:.2%}: return {returns[index]:.4f} -> {var:.2f}")
        return float(var)

    def calculate_parametric_var(
        self,
        positions: Sequence[Position],
        historical_returns: Sequence[float],
        confidence_level: Optional[float] = None
    ) -> float:
        """
        Calculate Value at Risk assuming normally distributed returns.

        Args:
            positions: Current positions
            historical_returns: Portfolio return history
            confidence_level: Confidence level (default from config)

        Returns:
            VaR as a positive currency amount
        """
        level = self._resolve_confidence(confidence_level)
        returns = as_array(historical_returns, "historical_returns")
        portfolio_value = self.calculate_portfolio_value(positions)

        z_score = stats.norm.ppf(1 - level)
        var_return = mean(returns) + z_score * std_dev(returns, ddof=1)
        return float(portfolio_value * abs(var_return))

    def calculate_expected_shortfall(
        self,
        positions: Sequence[Position],
        historical_returns: Sequence[float],
        confidence_level: Optional[float] = None
    ) -> float:
        """
        Calculate Expected Shortfall (conditional VaR).

        Averages every sorted return at or below the VaR cutoff index, so the
        figure is never smaller in magnitude than the VaR return for a loss tail.

        Args:
            positions: Current positions
            historical_returns: Portfolio return history
            confidence_level: Confidence level (default from config)

        Returns:
            Expected shortfall as a positive currency amount

        Raises:
            InvalidInputError: If the tail is empty
        """
        level = self._resolve_confidence(confidence_level)
        returns = np.sort(as_array(historical_returns, "historical_returns"))
        portfolio_value = self.calculate_portfolio_value(positions)

        cutoff = self._cutoff_index(len(returns), level)
        tail = returns[:cutoff + 1]
        if len(tail) == 0:
            raise InvalidInputError(
                "Return series too short for the requested confidence level",
                field="historical_returns",
            )

        return float(portfolio_value * abs(tail.mean()))

    # ========== Drawdown ==========

    @staticmethod
    def calculate_drawdown_series(equity_curve: Sequence[float]) -> pd.Series:
        """
        Drawdown from the running peak at every point of an equity curve.

        Args:
            equity_curve: Portfolio values over time

        Returns:
            Series of drawdowns as fractions (0 = at peak)
        """
        equity = pd.Series(as_array(equity_curve, "equity_curve", min_length=1))
        if equity.iloc[0] <= 0:
            raise NumericDegeneracyError(
                "Equity curve must start at a positive value", field="equity_curve"
            )
        peak = equity.expanding().max()
        return (peak - equity) / peak

    def calculate_max_drawdown(self, equity_curve: Sequence[float]) -> float:
        """
        Calculate maximum drawdown of an equity curve.

        Args:
            equity_curve: Portfolio values over time

        Returns:
            Largest peak-to-trough decline as a percentage (0-100)
        """
        equity = as_array(equity_curve, "equity_curve", min_length=1)
        if equity[0] <= 0:
            raise NumericDegeneracyError(
                "Equity curve must start at a positive value", field="equity_curve"
            )

        max_drawdown = 0.0
        peak = equity[0]
        for value in equity:
            if value > peak:
                peak = value
            drawdown = (peak - value) / peak
            if drawdown > max_drawdown:
                max_drawdown = drawdown

        return float(max_drawdown * 100)

    # ========== Risk-Adjusted Returns ==========

    def calculate_sharpe_ratio(
        self,
        returns: Sequence[float],
        risk_free_rate: Optional[float] = None
    ) -> float:
        """
        Calculate the per-period Sharpe Ratio.

        Sharpe Ratio = (Mean Return - Risk Free Rate) / Std Dev

        No annualisation happens here. The risk-free rate must be expressed in
        the same period as ``returns`` (a daily series needs a daily rate).

        Args:
            returns: Periodic returns
            risk_free_rate: Per-period risk-free rate (default from config)

        Returns:
            Sharpe Ratio

        Raises:
            NumericDegeneracyError: If the returns have zero dispersion
        """
        arr = as_array(returns, "returns")
        rate = self.config.risk_free_rate if risk_free_rate is None else risk_free_rate

        std = std_dev(arr)
        if std == 0:
            raise NumericDegeneracyError(
                "Sharpe ratio undefined for zero-volatility returns", field="returns"
            )
        return float((mean(arr) - rate) / std)

    def calculate_volatility(self, returns: Sequence[float]) -> float:
        """Population standard deviation of returns, as a percentage."""
        return std_dev(as_array(returns, "returns")) * 100

    # ========== Simulation ==========

    def run_monte_carlo_simulation(
        self,
        positions: Sequence[Position],
        mean_return: float,
        volatility: float,
        days: int,
        num_simulations: int,
        seed: Optional[int] = None
    ) -> np.ndarray:
        """
        Simulate independent equity paths under normal per-period shocks.

        Each path starts at the current portfolio value and compounds
        ``1 + mean + volatility * z`` for every later day, with ``z`` drawn by
        Box-Muller. Paths do not share shocks, so they say nothing about joint
        moves across assets.

        Args:
            positions: Current positions
            mean_return: Per-period mean return
            volatility: Per-period return standard deviation
            days: Length of each path (including the starting point)
            num_simulations: Number of paths
            seed: Optional seed for reproducible paths

        Returns:
            Array of shape (num_simulations, days)
        """
        if days < 1:
            raise InvalidInputError(f"days must be positive, got {days}", field="days")
        if num_simulations < 1:
            raise InvalidInputError(
                f"num_simulations must be positive, got {num_simulations}",
                field="num_simulations",
            )
        if volatility < 0:
            raise InvalidInputError("volatility must be non-negative", field="volatility")

        start_value = self.calculate_portfolio_value(positions)
        rng = np.random.default_rng(seed)

        shocks = mean_return + volatility * box_muller(rng, (num_simulations, days - 1))
        growth = np.cumprod(1.0 + shocks, axis=1)

        paths = np.empty((num_simulations, days))
        paths[:, 0] = start_value
        paths[:, 1:] = start_value * growth

        logger.debug(
            f"Simulated {num_simulations} paths x {days} days from {start_value:.2f}"
        )
        return paths

    # ========== Stress Testing ==========

    def analyze_stress_scenarios(
        self,
        positions: Sequence[Position],
        scenarios: Sequence[Mapping]
    ) -> List[StressResult]:
        """
        Apply per-symbol return shocks to the current positions.

        Args:
            positions: Current positions
            scenarios: Items with ``name`` and ``returns`` (symbol -> return);
                symbols a scenario omits are left unchanged

        Returns:
            One StressResult per scenario
        """
        current_value = self.calculate_portfolio_value(positions)
        if current_value == 0:
            raise NumericDegeneracyError("Portfolio value is zero", field="positions")

        results = []
        for scenario in scenarios:
            try:
                name = scenario["name"]
                shocks = scenario["returns"]
            except KeyError as e:
                raise InvalidInputError(f"Scenario missing key {e}", field="scenarios") from None

            new_value = 0.0
            for position in positions:
                new_value += position.market_value * (1 + shocks.get(position.symbol, 0.0))

            impact = (new_value - current_value) / current_value * 100
            results.append(StressResult(name=name, impact=impact, new_value=new_value))

        return results

    # ========== Aggregate ==========

    def calculate_all_metrics(
        self,
        positions: Sequence[Position],
        historical_returns: Sequence[float],
        equity_curve: Sequence[float]
    ) -> RiskMetrics:
        """
        Calculate every headline metric with the configured defaults.

        Args:
            positions: Current positions
            historical_returns: Portfolio return history
            equity_curve: Portfolio values over time

        Returns:
            RiskMetrics
        """
        return RiskMetrics(
            value_at_risk=self.calculate_var(positions, historical_returns),
            expected_shortfall=self.calculate_expected_shortfall(positions, historical_returns),
            max_drawdown=self.calculate_max_drawdown(equity_curve),
            sharpe_ratio=self.calculate_sharpe_ratio(historical_returns),
            volatility=self.calculate_volatility(historical_returns),
        )

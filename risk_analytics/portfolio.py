"""
Portfolio Evaluation and Efficient Frontier.

The baseline ``optimize_portfolio`` evaluates an equal-weight portfolio: it
reports expected return, volatility, Sharpe ratio and diversification ratio
but does not search for weights. Only when a target return is given are
weights solved for, as the long-only minimum-variance portfolio that earns
that target; the efficient frontier is built that way.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from .config import FrontierConfig
from .exceptions import ConfigurationError, NumericDegeneracyError
from .utils.stats import covariance_matrix, mean

logger = logging.getLogger(__name__)


@dataclass
class OptimizationConfig:
    """Constraints for a single portfolio evaluation."""
    target_return: Optional[float] = None
    max_volatility: Optional[float] = None
    max_position_size: Optional[float] = None  # weight ceiling per asset
    min_position_size: Optional[float] = None  # weight floor per asset
    allow_short: bool = False


@dataclass
class OptimizedPortfolio:
    """Weights and their expected characteristics."""
    weights: Dict[str, float]
    expected_return: float
    expected_volatility: float
    sharpe_ratio: float
    diversification_ratio: float
    target_return: Optional[float] = None
    exceeds_max_volatility: bool = False


class PortfolioOptimizer:
    """
    Evaluates weighting schemes over per-asset return series.

    Returns are per-period fractions; expected return and volatility are
    reported in the same period. Covariances use the sample estimator
    (ddof=1), and so do the per-asset volatilities in the diversification
    ratio, which keeps that ratio >= 1.
    """

    def __init__(self, config: Optional[FrontierConfig] = None) -> None:
        self.config = config or FrontierConfig()

    def calculate_covariance_matrix(
        self,
        assets: Sequence[str],
        returns: Mapping[str, Sequence[float]]
    ) -> pd.DataFrame:
        """Sample covariance matrix of the assets' return series."""
        return covariance_matrix(assets, returns)

    # ========== Evaluation ==========

    def optimize_portfolio(
        self,
        assets: Sequence[str],
        returns: Mapping[str, Sequence[float]],
        config: Optional[OptimizationConfig] = None
    ) -> OptimizedPortfolio:
        """
        Evaluate a portfolio over the given assets.

        With no target return the weights are equal (1/N). With a target,
        weights minimise variance subject to earning the target, clipped to
        the range the position bounds can reach.

        Args:
            assets: Asset symbols, each with a series in ``returns``
            returns: Symbol -> return series (equal lengths)
            config: Target and position constraints

        Returns:
            OptimizedPortfolio

        Raises:
            ConfigurationError: If short selling is requested or bounds are
                infeasible
            NumericDegeneracyError: If the portfolio has zero volatility
        """
        config = config or OptimizationConfig()
        if config.allow_short:
            raise ConfigurationError("Short selling is not supported", field="allow_short")

        cov = covariance_matrix(assets, returns).values
        lower, upper = self._weight_bounds(len(assets), config)
        means = np.array([mean(returns[asset]) for asset in assets])

        if config.target_return is None:
            weights = np.full(len(assets), 1.0 / len(assets))
            target = None
        else:
            target = self._clip_target(config.target_return, means, lower, upper)
            weights = self._min_variance_for_target(means, cov, target, lower, upper)

        return self._evaluate(list(assets), weights, means, cov, target, config.max_volatility)

    def _evaluate(
        self,
        assets: List[str],
        weights: np.ndarray,
        means: np.ndarray,
        cov: np.ndarray,
        target: Optional[float],
        max_volatility: Optional[float]
    ) -> OptimizedPortfolio:
        expected_return = float(weights @ means)
        variance = float(weights @ cov @ weights)
        volatility = float(np.sqrt(max(variance, 0.0)))
        if volatility == 0:
            raise NumericDegeneracyError(
                "Portfolio volatility is zero; Sharpe and diversification ratios are undefined",
                field="returns",
            )

        asset_vols = np.sqrt(np.diag(cov))
        diversification_ratio = float(weights @ asset_vols / volatility)

        exceeds = max_volatility is not None and volatility > max_volatility
        if exceeds:
            logger.warning(
                f"Portfolio volatility {volatility:.4f} exceeds limit {max_volatility:.4f}"
            )

        return OptimizedPortfolio(
            weights=dict(zip(assets, weights.tolist())),
            expected_return=expected_return,
            expected_volatility=volatility,
            sharpe_ratio=expected_return / volatility,
            diversification_ratio=diversification_ratio,
            target_return=target,
            exceeds_max_volatility=exceeds,
        )

    # ========== Constraints ==========

    @staticmethod
    def _weight_bounds(n: int, config: OptimizationConfig) -> Tuple[float, float]:
        lower = 0.0 if config.min_position_size is None else config.min_position_size
        upper = 1.0 if config.max_position_size is None else config.max_position_size
        if lower < 0 or upper > 1 or lower > upper:
            raise ConfigurationError(
                f"Position bounds must satisfy 0 <= min <= max <= 1, got [{lower}, {upper}]",
                field="max_position_size",
            )
        if lower * n > 1 + 1e-12 or upper * n < 1 - 1e-12:
            raise ConfigurationError(
                f"Position bounds [{lower}, {upper}] cannot sum to 1 across {n} assets",
                field="max_position_size",
            )
        return lower, upper

    @staticmethod
    def _attainable_returns(means: np.ndarray, lower: float, upper: float) -> Tuple[float, float]:
        """Lowest and highest expected return reachable under the bounds."""
        def greedy(order: np.ndarray) -> float:
            weights = np.full(len(means), lower)
            remaining = 1.0 - weights.sum()
            for i in order:
                add = min(upper - lower, remaining)
                weights[i] += add
                remaining -= add
            return float(weights @ means)

        ranked = np.argsort(means)
        return greedy(ranked), greedy(ranked[::-1])

    def _clip_target(self, target: float, means: np.ndarray, lower: float, upper: float) -> float:
        low, high = self._attainable_returns(means, lower, upper)
        clipped = float(np.clip(target, low, high))
        if clipped != target:
            logger.warning(
                f"Target return {target:.4f} outside attainable range "
                f"[{low:.4f}, {high:.4f}]; using {clipped:.4f}"
            )
        return clipped

    def _min_variance_for_target(
        self,
        means: np.ndarray,
        cov: np.ndarray,
        target: float,
        lower: float,
        upper: float
    ) -> np.ndarray:
        n = len(means)

        def objective(w: np.ndarray) -> float:
            return float(w @ cov @ w)

        def grad_objective(w: np.ndarray) -> np.ndarray:
            return 2.0 * cov @ w

        constraints = [{"type": "eq", "fun": lambda w: np.sum(w) - 1.0}]
        # With equal means every fully invested portfolio earns the (clipped)
        # target, and a second equality would duplicate the first
        if np.ptp(means) > 1e-9 * max(1.0, float(np.abs(means).max())):
            constraints.append({"type": "eq", "fun": lambda w: w @ means - target})

        result = minimize(
            fun=objective,
            x0=np.full(n, 1.0 / n),
            jac=grad_objective,
            method="SLSQP",
            bounds=[(lower, upper)] * n,
            constraints=constraints,
            options={"maxiter": 1000, "ftol": 1e-12, "disp": False},
        )

        if not result.success:
            raise NumericDegeneracyError(
                f"Minimum-variance solve failed for target {target:.4f}: {result.message}",
                field="target_return",
            )

        weights = np.clip(result.x, lower, upper)
        weights[weights < self.config.weight_tolerance] = 0.0
        return weights / weights.sum()

    # ========== Efficient Frontier ==========

    def calculate_efficient_frontier(
        self,
        assets: Sequence[str],
        returns: Mapping[str, Sequence[float]],
        points: Optional[int] = None,
        config: Optional[OptimizationConfig] = None
    ) -> List[OptimizedPortfolio]:
        """
        Sweep target returns from 0 to ``max_target_return`` (20%).

        Each point is the minimum-variance portfolio for its target. Targets
        beyond what the assets can earn are clipped, so the ends of the sweep
        may repeat the same portfolio.

        Args:
            assets: Asset symbols
            returns: Symbol -> return series
            points: Number of frontier points (default from config, 20)
            config: Position constraints shared by every point

        Returns:
            Frontier portfolios in ascending target order
        """
        points = self.config.points if points is None else points
        if points < 1:
            raise ConfigurationError(f"points must be positive, got {points}", field="points")
        base = config or OptimizationConfig()

        if points == 1:
            targets = [0.0]
        else:
            targets = np.linspace(0.0, self.config.max_target_return, points).tolist()

        frontier = []
        for target in targets:
            point_config = OptimizationConfig(
                target_return=target,
                max_volatility=base.max_volatility,
                max_position_size=base.max_position_size,
                min_position_size=base.min_position_size,
                allow_short=base.allow_short,
            )
            frontier.append(self.optimize_portfolio(assets, returns, point_config))

        return frontier

"""
Risk Parity Allocation.

Iteratively rescales weights until every asset contributes the same share of
total portfolio volatility.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

import numpy as np

from .config import RiskParityConfig
from .exceptions import ConfigurationError, InvalidInputError, NumericDegeneracyError
from .utils.stats import correlation_matrix

logger = logging.getLogger(__name__)


@dataclass
class RiskParityAllocation:
    """Converged weights and the risk each asset contributes."""
    allocations: Dict[str, float]
    risk_contributions: Dict[str, float]
    total_risk: float
    iterations: int
    converged: bool
    target_leverage: float  # Gross exposure that would bring total_risk to target_risk


class RiskParityAllocator:
    """
    Equal-risk-contribution allocator.

    Risk contribution of asset i:
        RC_i = w_i * (sum_j w_j * sigma_i * sigma_j * rho_ij) / sigma_p

    Each iteration multiplies w_i by (avg(RC) / RC_i) ** step_exponent and
    renormalises, stopping once every weight moves by less than ``tolerance``.
    The square-root step (default) reaches the inverse-volatility solution for
    uncorrelated assets in one move.
    """

    def __init__(self, config: Optional[RiskParityConfig] = None) -> None:
        self.config = config or RiskParityConfig()

    @staticmethod
    def _covariance(vols: np.ndarray, corr: np.ndarray) -> np.ndarray:
        return np.outer(vols, vols) * corr

    @staticmethod
    def _risk_contributions(weights: np.ndarray, cov: np.ndarray):
        marginal = cov @ weights
        variance = float(weights @ marginal)
        if not variance > 0:
            raise NumericDegeneracyError(
                "Portfolio volatility is zero; correlations cancel all risk",
                field="correlations",
            )
        portfolio_vol = float(np.sqrt(variance))
        return weights * marginal / portfolio_vol, portfolio_vol

    def calculate_risk_parity(
        self,
        assets: Sequence[str],
        volatilities: Mapping[str, float],
        correlations: Optional[Mapping[str, Mapping[str, float]]] = None,
        target_risk: float = 10.0
    ) -> RiskParityAllocation:
        """
        Solve for equal-risk-contribution weights.

        Args:
            assets: Asset symbols
            volatilities: Symbol -> volatility (positive)
            correlations: Nested symbol mapping; missing pairs count as 0
            target_risk: Desired portfolio volatility, in the units of
                ``volatilities``; used only for ``target_leverage``

        Returns:
            RiskParityAllocation with weights summing to 1

        Raises:
            ConfigurationError: On missing, zero or negative volatilities,
                correlations outside [-1, 1], or a non-positive target
            NumericDegeneracyError: If the correlations leave the portfolio
                with zero volatility
        """
        if not assets:
            raise InvalidInputError("At least one asset is required", field="assets")
        if len(set(assets)) != len(assets):
            raise InvalidInputError("Duplicate assets", field="assets")
        if target_risk <= 0:
            raise ConfigurationError("target_risk must be positive", field="target_risk")

        for asset in assets:
            vol = volatilities.get(asset)
            if vol is None or not np.isfinite(vol) or vol <= 0:
                raise ConfigurationError(
                    f"Volatility for {asset} must be positive, got {vol}", field="volatilities"
                )

        vols = np.array([volatilities[a] for a in assets], dtype=float)
        corr = correlation_matrix(list(assets), correlations)
        cov = self._covariance(vols, corr)

        n = len(assets)
        weights = np.full(n, 1.0 / n)
        converged = False
        iterations = 0

        for iterations in range(1, self.config.max_iterations + 1):
            contributions, _ = self._risk_contributions(weights, cov)
            if not np.all(contributions > 0):
                raise ConfigurationError(
                    "Non-positive risk contribution; correlations make equal risk unreachable",
                    field="correlations",
                )

            updated = weights * (contributions.mean() / contributions) ** self.config.step_exponent
            delta = np.abs(updated - weights)
            weights = updated / updated.sum()

            if np.all(delta < self.config.tolerance):
                converged = True
                break

        if not converged:
            logger.warning(f"Risk parity did not converge in {self.config.max_iterations} iterations")

        contributions, total_risk = self._risk_contributions(weights, cov)
        logger.debug(f"Risk parity solved in {iterations} iterations, risk {total_risk:.4f}")

        return RiskParityAllocation(
            allocations=dict(zip(assets, weights.tolist())),
            risk_contributions=dict(zip(assets, contributions.tolist())),
            total_risk=total_risk,
            iterations=iterations,
            converged=converged,
            target_leverage=target_risk / total_risk,
        )

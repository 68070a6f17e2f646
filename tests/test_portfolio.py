"""Unit tests for portfolio evaluation and the efficient frontier."""
import numpy as np
import pandas as pd
import pytest

from risk_analytics.config import FrontierConfig
from risk_analytics.exceptions import ConfigurationError, InvalidInputError, NumericDegeneracyError
from risk_analytics.portfolio import OptimizationConfig, OptimizedPortfolio, PortfolioOptimizer
from risk_analytics.utils.stats import covariance_matrix

ASSETS = ["BONDS", "STOCKS", "CRYPTO"]


@pytest.fixture
def optimizer():
    return PortfolioOptimizer()


@pytest.fixture
def returns():
    """Three assets whose mean returns straddle 0 to 20%."""
    rng = np.random.default_rng(7)
    return {
        "BONDS": (-0.02 + rng.normal(0, 0.02, 250)).tolist(),
        "STOCKS": (0.10 + rng.normal(0, 0.05, 250)).tolist(),
        "CRYPTO": (0.30 + rng.normal(0, 0.10, 250)).tolist(),
    }


class TestCovariance:
    """Tests for the covariance matrix."""

    def test_shape_and_symmetry(self, optimizer, returns):
        cov = optimizer.calculate_covariance_matrix(ASSETS, returns)
        assert isinstance(cov, pd.DataFrame)
        assert cov.shape == (3, 3)
        assert np.allclose(cov.values, cov.values.T)
        assert cov.loc["BONDS", "BONDS"] == pytest.approx(np.var(returns["BONDS"], ddof=1))

    def test_missing_asset(self, optimizer, returns):
        with pytest.raises(InvalidInputError):
            optimizer.calculate_covariance_matrix(ASSETS + ["GOLD"], returns)

    def test_matches_shared_helper(self, optimizer, returns):
        pd.testing.assert_frame_equal(
            optimizer.calculate_covariance_matrix(ASSETS, returns),
            covariance_matrix(ASSETS, returns),
        )


class TestEqualWeight:
    """Tests for the baseline evaluation."""

    def test_equal_weights(self, optimizer, returns):
        result = optimizer.optimize_portfolio(ASSETS, returns)
        assert isinstance(result, OptimizedPortfolio)
        assert list(result.weights) == ASSETS
        for weight in result.weights.values():
            assert weight == pytest.approx(1 / 3)
        assert sum(result.weights.values()) == pytest.approx(1.0)
        assert result.target_return is None

    def test_expected_return_is_mean(self, optimizer, returns):
        result = optimizer.optimize_portfolio(ASSETS, returns)
        expected = np.mean([np.mean(returns[a]) for a in ASSETS])
        assert result.expected_return == pytest.approx(expected)

    def test_sharpe_ratio(self, optimizer, returns):
        result = optimizer.optimize_portfolio(ASSETS, returns)
        assert result.sharpe_ratio == pytest.approx(result.expected_return / result.expected_volatility)

    def test_diversification_ratio_at_least_one(self, optimizer, returns):
        result = optimizer.optimize_portfolio(ASSETS, returns)
        assert result.diversification_ratio >= 1.0 - 1e-12

    def test_single_asset(self, optimizer, returns):
        result = optimizer.optimize_portfolio(["STOCKS"], returns)
        assert result.weights == {"STOCKS": 1.0}
        assert result.diversification_ratio == pytest.approx(1.0)

    def test_zero_volatility(self, optimizer):
        flat = {"A": [0.25] * 8, "B": [0.5] * 8}
        with pytest.raises(NumericDegeneracyError):
            optimizer.optimize_portfolio(["A", "B"], flat)

    def test_max_volatility_flag(self, optimizer, returns):
        result = optimizer.optimize_portfolio(ASSETS, returns, OptimizationConfig(max_volatility=1e-6))
        assert result.exceeds_max_volatility


class TestConstraints:
    """Tests for constraint validation."""

    def test_short_selling_rejected(self, optimizer, returns):
        with pytest.raises(ConfigurationError):
            optimizer.optimize_portfolio(ASSETS, returns, OptimizationConfig(allow_short=True))

    def test_infeasible_bounds(self, optimizer, returns):
        """Three assets capped at 20% each cannot sum to 1."""
        with pytest.raises(ConfigurationError):
            optimizer.optimize_portfolio(ASSETS, returns, OptimizationConfig(max_position_size=0.2))

    def test_inverted_bounds(self, optimizer, returns):
        config = OptimizationConfig(min_position_size=0.5, max_position_size=0.4)
        with pytest.raises(ConfigurationError):
            optimizer.optimize_portfolio(ASSETS, returns, config)


class TestTargetReturn:
    """Tests for minimum-variance solves."""

    def test_meets_target(self, optimizer, returns):
        result = optimizer.optimize_portfolio(ASSETS, returns, OptimizationConfig(target_return=0.1))
        assert result.expected_return == pytest.approx(0.1, abs=1e-6)
        assert sum(result.weights.values()) == pytest.approx(1.0)
        assert all(w >= 0 for w in result.weights.values())

    def test_respects_position_cap(self, optimizer, returns):
        config = OptimizationConfig(target_return=0.1, max_position_size=0.6)
        result = optimizer.optimize_portfolio(ASSETS, returns, config)
        assert all(w <= 0.6 + 1e-6 for w in result.weights.values())

    def test_equal_means_still_minimise_variance(self, optimizer):
        """Uncorrelated assets with the same mean weigh in by inverse variance."""
        returns = {
            "A": [0.03, -0.01, 0.03, -0.01] * 5,
            "B": [0.04, 0.04, -0.02, -0.02] * 5,
        }
        result = optimizer.optimize_portfolio(["A", "B"], returns, OptimizationConfig(target_return=0.01))
        assert result.weights["A"] == pytest.approx(9 / 13, abs=1e-4)
        assert result.weights["B"] == pytest.approx(4 / 13, abs=1e-4)

    def test_equal_means_frontier(self, optimizer):
        returns = {
            "A": [0.03, -0.01, 0.03, -0.01] * 5,
            "B": [0.04, 0.04, -0.02, -0.02] * 5,
        }
        for point in optimizer.calculate_efficient_frontier(["A", "B"], returns, points=3):
            assert point.weights["A"] == pytest.approx(9 / 13, abs=1e-4)

    def test_attainable_range(self, optimizer):
        means = np.array([0.01, 0.05, 0.10])
        low, high = optimizer._attainable_returns(means, 0.0, 0.5)
        assert low == pytest.approx(0.03)
        assert high == pytest.approx(0.075)

    def test_target_clipped(self, optimizer):
        means = np.array([0.01, 0.05, 0.10])
        assert optimizer._clip_target(5.0, means, 0.0, 1.0) == pytest.approx(0.10)
        assert optimizer._clip_target(-1.0, means, 0.0, 1.0) == pytest.approx(0.01)


class TestEfficientFrontier:
    """Tests for the efficient frontier sweep."""

    def test_point_count(self, optimizer, returns):
        frontier = optimizer.calculate_efficient_frontier(ASSETS, returns, points=5)
        assert len(frontier) == 5

    def test_targets_ascending(self, optimizer, returns):
        frontier = optimizer.calculate_efficient_frontier(ASSETS, returns, points=5)
        targets = [p.target_return for p in frontier]
        assert targets == pytest.approx([0.0, 0.05, 0.10, 0.15, 0.20])
        for point in frontier:
            assert point.expected_return == pytest.approx(point.target_return, abs=1e-6)

    def test_weights_sum_to_one(self, optimizer, returns):
        for point in optimizer.calculate_efficient_frontier(ASSETS, returns, points=5):
            assert sum(point.weights.values()) == pytest.approx(1.0)

    def test_default_points(self, returns):
        optimizer = PortfolioOptimizer(FrontierConfig(points=4))
        assert len(optimizer.calculate_efficient_frontier(ASSETS, returns)) == 4

    def test_invalid_points(self, optimizer, returns):
        with pytest.raises(ConfigurationError):
            optimizer.calculate_efficient_frontier(ASSETS, returns, points=0)

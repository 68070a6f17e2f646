"""Unit tests for portfolio risk metrics."""
import numpy as np
import pandas as pd
import pytest

from risk_analytics.config import RiskMetricsConfig
from risk_analytics.exceptions import InvalidInputError, NumericDegeneracyError
from risk_analytics.models import Position
from risk_analytics.risk_metrics import RiskMetrics, RiskMetricsCalculator, StressResult
from risk_analytics.utils.stats import mean, std_dev


@pytest.fixture
def calculator():
    """Create a calculator with default configuration."""
    return RiskMetricsCalculator()


@pytest.fixture
def btc_position():
    return [Position(symbol="BTC", quantity=1, entry_price=50000.0, current_price=50000.0)]


@pytest.fixture
def portfolio():
    """Two-asset portfolio worth 100,000."""
    return [
        Position(symbol="BTC", quantity=1, entry_price=40000.0, current_price=60000.0),
        Position(symbol="ETH", quantity=20, entry_price=1500.0, current_price=2000.0),
    ]


@pytest.fixture
def sample_returns():
    return [-0.10, -0.05, -0.02, 0.01, 0.03]


class TestPortfolioValue:
    """Tests for portfolio valuation."""

    def test_sums_market_values(self, calculator, portfolio):
        assert calculator.calculate_portfolio_value(portfolio) == pytest.approx(100000.0)

    def test_empty_positions_raise(self, calculator):
        with pytest.raises(InvalidInputError):
            calculator.calculate_portfolio_value([])

    def test_positions_not_mutated(self, calculator, portfolio, sample_returns):
        """Calculations must leave caller positions untouched."""
        before = list(portfolio)
        calculator.calculate_var(portfolio, sample_returns)
        assert portfolio == before


class TestValueAtRisk:
    """Tests for VaR calculations."""

    def test_reference_example(self, calculator, btc_position, sample_returns):
        """At 80% the return at index floor(0.2 * 5) = 1 is -0.05."""
        var = calculator.calculate_var(btc_position, sample_returns, confidence_level=0.8)
        assert var == pytest.approx(2500.0)

    def test_input_order_irrelevant(self, calculator, btc_position, sample_returns):
        shuffled = [0.03, -0.02, -0.10, 0.01, -0.05]
        assert calculator.calculate_var(btc_position, shuffled, 0.8) == pytest.approx(
            calculator.calculate_var(btc_position, sample_returns, 0.8)
        )

    def test_default_confidence(self, calculator, btc_position):
        """Default confidence comes from config (95%)."""
        returns = np.linspace(-0.10, 0.09, 20)
        var = calculator.calculate_var(btc_position, returns)
        assert var == pytest.approx(50000 * 0.09)

    def test_short_series_raises(self, calculator, btc_position):
        with pytest.raises(InvalidInputError):
            calculator.calculate_var(btc_position, [])
        with pytest.raises(InvalidInputError):
            calculator.calculate_var(btc_position, [-0.01])

    def test_invalid_confidence_raises(self, calculator, btc_position, sample_returns):
        with pytest.raises(InvalidInputError):
            calculator.calculate_var(btc_position, sample_returns, confidence_level=1.0)

    def test_tiny_confidence_uses_last_return(self, calculator, btc_position, sample_returns):
        """The cutoff index never runs past the end of the series."""
        var = calculator.calculate_var(btc_position, sample_returns, confidence_level=1e-12)
        assert var == pytest.approx(50000 * 0.03)

    def test_parametric_var_positive(self, calculator, btc_position):
        np.random.seed(1)
        returns = np.random.randn(500) * 0.02
        var = calculator.calculate_parametric_var(btc_position, returns, 0.95)
        assert var > 0
        # Roughly 1.645 standard deviations
        assert var == pytest.approx(50000 * 1.645 * 0.02, rel=0.2)


class TestExpectedShortfall:
    """Tests for Expected Shortfall."""

    def test_reference_example(self, calculator, btc_position, sample_returns):
        """Tail at 80% holds the two worst returns."""
        es = calculator.calculate_expected_shortfall(btc_position, sample_returns, 0.8)
        assert es == pytest.approx(50000 * 0.075)

    def test_tiny_confidence_averages_everything(self, calculator, btc_position, sample_returns):
        es = calculator.calculate_expected_shortfall(btc_position, sample_returns, 1e-12)
        assert es == pytest.approx(50000 * 0.026)

    def test_not_below_var(self, calculator, btc_position):
        np.random.seed(11)
        returns = np.random.randn(250) * 0.02
        var = calculator.calculate_var(btc_position, returns, 0.95)
        es = calculator.calculate_expected_shortfall(btc_position, returns, 0.95)
        assert es >= var

    def test_short_series_raises(self, calculator, btc_position):
        with pytest.raises(InvalidInputError):
            calculator.calculate_expected_shortfall(btc_position, [0.01])


class TestMaxDrawdown:
    """Tests for drawdown calculations."""

    def test_strictly_increasing_is_zero(self, calculator):
        assert calculator.calculate_max_drawdown([100, 101, 105, 110, 120]) == 0.0

    def test_peak_to_trough(self, calculator):
        """Max drawdown from 115 to 100 is 15/115."""
        equity = [100, 110, 105, 115, 100, 120]
        assert calculator.calculate_max_drawdown(equity) == pytest.approx(15 / 115 * 100)

    def test_non_positive_start_raises(self, calculator):
        with pytest.raises(NumericDegeneracyError):
            calculator.calculate_max_drawdown([0, 10, 5])

    def test_drawdown_series(self, calculator):
        series = calculator.calculate_drawdown_series([100, 120, 90, 120])
        assert isinstance(series, pd.Series)
        assert series.iloc[2] == pytest.approx(0.25)
        assert series.max() * 100 == pytest.approx(
            calculator.calculate_max_drawdown([100, 120, 90, 120])
        )


class TestSharpeAndVolatility:
    """Tests for Sharpe ratio and volatility."""

    def test_sharpe_formula(self, calculator):
        returns = np.array([0.02, -0.01, 0.03, 0.01, -0.02, 0.02, 0.01])
        expected = (returns.mean() - 0.02) / returns.std()
        assert calculator.calculate_sharpe_ratio(returns) == pytest.approx(expected)

    def test_sharpe_caller_rate(self, calculator):
        """A per-period rate supplied by the caller overrides the default."""
        returns = np.array([0.02, -0.01, 0.03, 0.01, -0.02])
        expected = (returns.mean() - 0.0001) / returns.std()
        assert calculator.calculate_sharpe_ratio(returns, risk_free_rate=0.0001) == pytest.approx(expected)

    def test_sharpe_configured_rate(self):
        calc = RiskMetricsCalculator(RiskMetricsConfig(risk_free_rate=0.0))
        returns = np.array([0.02, 0.04])
        assert calc.calculate_sharpe_ratio(returns) == pytest.approx(0.03 / 0.01)

    def test_sharpe_zero_volatility_raises(self, calculator):
        with pytest.raises(NumericDegeneracyError):
            calculator.calculate_sharpe_ratio([0.5, 0.5, 0.5])

    def test_volatility_is_population_percent(self, calculator):
        returns = [0.01, 0.03]
        assert calculator.calculate_volatility(returns) == pytest.approx(1.0)

    def test_volatility_matches_shared_std(self, calculator):
        np.random.seed(5)
        returns = np.random.randn(50) * 0.02
        assert calculator.calculate_volatility(returns) == pytest.approx(std_dev(returns) * 100)

    def test_parametric_var_uses_sample_std(self, calculator, btc_position, sample_returns):
        expected = abs(mean(sample_returns) - 1.6448536269514722 * std_dev(sample_returns, ddof=1))
        var = calculator.calculate_parametric_var(btc_position, sample_returns, 0.95)
        assert var == pytest.approx(50000 * expected)


class TestMonteCarlo:
    """Tests for Monte Carlo simulation."""

    def test_shape(self, calculator, portfolio):
        paths = calculator.run_monte_carlo_simulation(portfolio, 0.001, 0.02, 30, 50, seed=1)
        assert paths.shape == (50, 30)

    def test_paths_start_at_portfolio_value(self, calculator, portfolio):
        paths = calculator.run_monte_carlo_simulation(portfolio, 0.0, 0.02, 10, 20, seed=1)
        assert np.allclose(paths[:, 0], 100000.0)

    def test_zero_volatility_is_deterministic(self, calculator, portfolio):
        """Without shocks every path compounds the mean return."""
        paths = calculator.run_monte_carlo_simulation(portfolio, 0.01, 0.0, 4, 3, seed=1)
        expected = 100000.0 * 1.01 ** np.arange(4)
        for path in paths:
            assert np.allclose(path, expected)

    def test_seed_reproducible(self, calculator, portfolio):
        first = calculator.run_monte_carlo_simulation(portfolio, 0.0, 0.02, 10, 5, seed=9)
        second = calculator.run_monte_carlo_simulation(portfolio, 0.0, 0.02, 10, 5, seed=9)
        assert np.array_equal(first, second)

    def test_paths_independent(self, calculator, portfolio):
        paths = calculator.run_monte_carlo_simulation(portfolio, 0.0, 0.02, 10, 5, seed=9)
        assert not np.allclose(paths[0], paths[1])

    def test_invalid_arguments(self, calculator, portfolio):
        with pytest.raises(InvalidInputError):
            calculator.run_monte_carlo_simulation(portfolio, 0.0, 0.02, 0, 5)
        with pytest.raises(InvalidInputError):
            calculator.run_monte_carlo_simulation(portfolio, 0.0, 0.02, 5, 0)
        with pytest.raises(InvalidInputError):
            calculator.run_monte_carlo_simulation(portfolio, 0.0, -0.02, 5, 5)


class TestStressScenarios:
    """Tests for stress scenario analysis."""

    def test_impact(self, calculator, portfolio):
        scenarios = [{"name": "Crypto crash", "returns": {"BTC": -0.5, "ETH": -0.5}}]
        result = calculator.analyze_stress_scenarios(portfolio, scenarios)[0]
        assert isinstance(result, StressResult)
        assert result.impact == pytest.approx(-50.0)
        assert result.new_value == pytest.approx(50000.0)

    def test_missing_symbol_defaults_to_zero(self, calculator, portfolio):
        scenarios = [{"name": "BTC only", "returns": {"BTC": -0.5}}]
        result = calculator.analyze_stress_scenarios(portfolio, scenarios)[0]
        assert result.new_value == pytest.approx(30000.0 + 40000.0)

    def test_malformed_scenario(self, calculator, portfolio):
        with pytest.raises(InvalidInputError):
            calculator.analyze_stress_scenarios(portfolio, [{"name": "broken"}])


class TestAllMetrics:
    """Tests for the aggregate metrics."""

    def test_returns_risk_metrics(self, calculator, portfolio):
        np.random.seed(5)
        returns = np.random.randn(100) * 0.02
        equity = 100000 * np.cumprod(1 + returns)
        metrics = calculator.calculate_all_metrics(portfolio, returns, equity)
        assert isinstance(metrics, RiskMetrics)
        assert metrics.value_at_risk > 0
        assert metrics.expected_shortfall >= metrics.value_at_risk
        assert 0 <= metrics.max_drawdown <= 100
        assert metrics.volatility > 0
        assert not np.isnan(metrics.sharpe_ratio)

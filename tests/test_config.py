"""Unit tests for configuration, errors and logging setup."""
import logging

import pytest

from risk_analytics.config import (
    DEFAULT_CONFIG, CorrelationConfig, EngineConfig, RiskMetricsConfig, RiskParityConfig,
    SizingConfig
)
from risk_analytics.exceptions import (
    ConfigurationError, InvalidInputError, NumericDegeneracyError, RiskAnalyticsError
)
from risk_analytics.models import Position, RiskTolerance
from risk_analytics.utils.logger import setup_logger


class TestConfig:
    """Tests for configuration defaults and validation."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.risk_metrics.confidence_level == 0.95
        assert config.sizing.kelly_cap == 0.5
        assert config.sizing.leverage_caps[RiskTolerance.MODERATE] == 5.0
        assert config.correlation.max_sector_exposure == 40.0
        assert config.risk_parity.max_iterations == 100
        assert config.frontier.points == 20
        assert DEFAULT_CONFIG.stop_loss.atr_multiplier == 2.0

    def test_invalid_confidence(self):
        with pytest.raises(ConfigurationError):
            RiskMetricsConfig(confidence_level=1.0)

    def test_invalid_kelly_cap(self):
        with pytest.raises(ConfigurationError):
            SizingConfig(kelly_cap=0)

    def test_invalid_leverage_cap(self):
        with pytest.raises(ConfigurationError):
            SizingConfig(leverage_caps={RiskTolerance.CONSERVATIVE: 0.5})

    def test_invalid_regime_windows(self):
        with pytest.raises(ConfigurationError):
            CorrelationConfig(regime_recent_window=30, regime_lookback_window=30)

    def test_invalid_step_exponent(self):
        with pytest.raises(ConfigurationError):
            RiskParityConfig(step_exponent=0)


class TestErrors:
    """Tests for the error taxonomy."""

    def test_hierarchy(self):
        assert issubclass(InvalidInputError, RiskAnalyticsError)
        assert issubclass(InvalidInputError, ValueError)
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(NumericDegeneracyError, ArithmeticError)

    def test_field_in_message(self):
        error = InvalidInputError("bad", field="returns")
        assert error.field == "returns"
        assert str(error) == "bad (field: returns)"

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidInputError):
            Position(symbol="BTC", quantity=1, entry_price=-1.0, current_price=100.0)


class TestLogger:
    """Tests for logger setup."""

    def test_console_handler(self):
        logger = setup_logger("risk_analytics.test_console", level=logging.DEBUG)
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_handlers_not_duplicated(self):
        setup_logger("risk_analytics.test_repeat")
        logger = setup_logger("risk_analytics.test_repeat")
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        logger = setup_logger("risk_analytics.test_file", log_file=str(log_file))
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()
        assert log_file.exists()
        assert "hello" in log_file.read_text()

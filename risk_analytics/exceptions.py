"""
Error taxonomy for the risk analytics engine.

Every public routine validates its inputs at the boundary and raises one of
these instead of returning NaN or a silently wrong number.
"""

from typing import Optional


class RiskAnalyticsError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field

    def __str__(self) -> str:
        message = super().__str__()
        if self.field:
            return f"{message} (field: {self.field})"
        return message


class InvalidInputError(RiskAnalyticsError, ValueError):
    """Malformed caller data: empty or mismatched series, zero stop distance, unknown symbols."""


class ConfigurationError(RiskAnalyticsError, ValueError):
    """Leverage, weights or thresholds outside their valid bounds."""


class NumericDegeneracyError(RiskAnalyticsError, ArithmeticError):
    """Zero variance, volatility or value feeding a division."""

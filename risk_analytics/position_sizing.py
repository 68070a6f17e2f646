"""
Position Sizing.

Kelly Criterion and fixed-fractional sizing, blended into a capped
recommendation, plus per-position risk checks and leverage bounds.
All sizes are in units of the asset, never currency.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from .config import SizingConfig
from .exceptions import ConfigurationError, InvalidInputError
from .models import RiskTolerance

logger = logging.getLogger(__name__)


@dataclass
class PositionSizeRecommendation:
    """Result of position sizing calculation."""
    kelly_size: float
    fractional_size: float
    recommended_size: float
    max_size: float
    risk_reward_ratio: float


@dataclass
class PositionRisk:
    """Dollar and percentage risk of a position to its stop."""
    dollar_risk: float
    percent_risk: float
    is_acceptable: bool


def _require_positive(name: str, value: float) -> None:
    if value is None or value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}", field=name)


def _coerce_tolerance(risk_tolerance: Union[RiskTolerance, str]) -> RiskTolerance:
    if isinstance(risk_tolerance, RiskTolerance):
        return risk_tolerance
    try:
        return RiskTolerance(str(risk_tolerance).lower())
    except ValueError:
        raise ConfigurationError(
            f"Unknown risk tolerance: {risk_tolerance!r}", field="risk_tolerance"
        ) from None


class PositionSizingEngine:
    """
    Sizes positions from edge statistics and stop distance.

    Example:
        >>> engine = PositionSizingEngine()
        >>> round(engine.calculate_kelly_criterion(0.6, 2.0, 1.0), 6)
        0.4
    """

    def __init__(self, config: Optional[SizingConfig] = None) -> None:
        self.config = config or SizingConfig()

    # ========== Position Sizing Methods ==========

    def calculate_kelly_criterion(
        self,
        win_rate: float,
        avg_win: float,
        avg_loss: float
    ) -> float:
        """
        Calculate the Kelly fraction of capital to risk.

        Formula: f* = (p * b - q) / b
        Where:
            p = probability of winning
            q = probability of losing (1 - p)
            b = average win / average loss

        The result is clamped to [0, kelly_cap]. The cap is a safety limit
        against over-leveraged sizing, not part of Kelly itself.

        Args:
            win_rate: Historical win rate (0.0 to 1.0)
            avg_win: Average winning trade (positive)
            avg_loss: Average losing trade magnitude (positive)

        Returns:
            Kelly fraction in [0, kelly_cap]

        Raises:
            InvalidInputError: If win_rate is outside [0, 1] or avg_win/avg_loss
                are not positive
        """
        if win_rate is None or not 0.0 <= win_rate <= 1.0:
            raise InvalidInputError(
                f"Win rate must be between 0 and 1, got {win_rate}", field="win_rate"
            )
        _require_positive("avg_win", avg_win)
        _require_positive("avg_loss", avg_loss)

        p = win_rate
        q = 1 - p
        b = avg_win / avg_loss

        kelly = (p * b - q) / b
        return max(0.0, min(kelly, self.config.kelly_cap))

    def calculate_fixed_fractional(
        self,
        balance: float,
        risk_percent: float,
        stop_distance: float,
        entry_price: float
    ) -> float:
        """
        Calculate quantity that risks a fixed percentage of the balance.

        Args:
            balance: Account balance
            risk_percent: Percent of balance to risk (2 = 2%)
            stop_distance: Price distance from entry to stop
            entry_price: Entry price

        Returns:
            Quantity in units of the asset

        Raises:
            InvalidInputError: If stop_distance is zero or negative
        """
        _require_positive("balance", balance)
        _require_positive("entry_price", entry_price)
        if risk_percent is None or not 0 < risk_percent <= 100:
            raise InvalidInputError(
                f"risk_percent must lie in (0, 100], got {risk_percent}", field="risk_percent"
            )
        if stop_distance is None or stop_distance <= 0:
            raise InvalidInputError(
                f"Stop distance must be positive, got {stop_distance}", field="stop_distance"
            )

        risk_amount = balance * (risk_percent / 100)
        return risk_amount / stop_distance

    @staticmethod
    def calculate_risk_reward_ratio(
        entry_price: float,
        target_price: float,
        stop_loss: float
    ) -> float:
        """Potential profit to target divided by potential loss to stop."""
        potential_loss = abs(entry_price - stop_loss)
        if potential_loss == 0:
            raise InvalidInputError("Stop loss equals entry price", field="stop_loss")
        return abs(target_price - entry_price) / potential_loss

    def get_position_size_recommendation(
        self,
        balance: float,
        entry_price: float,
        stop_loss: float,
        target_price: float,
        win_rate: float,
        avg_win: float,
        avg_loss: float,
        risk_percent: Optional[float] = None
    ) -> PositionSizeRecommendation:
        """
        Blend Kelly and fixed-fractional sizing into one recommendation.

        The Kelly dollar size is scaled by ``kelly_fraction`` (half Kelly by
        default); the two dollar sizes are averaged, converted to quantity at
        the entry price and capped at ``max_position_size_pct`` of the balance.

        Args:
            balance: Account balance
            entry_price: Planned entry price
            stop_loss: Planned stop price
            target_price: Planned profit target
            win_rate: Historical win rate
            avg_win: Average winning trade
            avg_loss: Average losing trade magnitude
            risk_percent: Percent of balance to risk (default from config)

        Returns:
            PositionSizeRecommendation with sizes in asset units
        """
        _require_positive("balance", balance)
        _require_positive("entry_price", entry_price)
        if risk_percent is None:
            risk_percent = self.config.default_risk_pct

        risk_reward_ratio = self.calculate_risk_reward_ratio(entry_price, target_price, stop_loss)

        kelly = self.calculate_kelly_criterion(win_rate, avg_win, avg_loss)
        kelly_dollars = balance * kelly * self.config.kelly_fraction

        stop_distance = abs(entry_price - stop_loss)
        fractional_size = self.calculate_fixed_fractional(
            balance, risk_percent, stop_distance, entry_price
        )
        fractional_dollars = fractional_size * entry_price

        max_size = balance * (self.config.max_position_size_pct / 100) / entry_price
        blended = (kelly_dollars + fractional_dollars) / 2 / entry_price
        recommended_size = min(blended, max_size)

        if blended > max_size:
            logger.debug(f"Blended size {blended:.6f} capped at {max_size:.6f}")

        return PositionSizeRecommendation(
            kelly_size=kelly_dollars / entry_price,
            fractional_size=fractional_size,
            recommended_size=recommended_size,
            max_size=max_size,
            risk_reward_ratio=risk_reward_ratio,
        )

    # ========== Risk Checks ==========

    def calculate_position_risk(
        self,
        quantity: float,
        entry_price: float,
        stop_loss: float,
        balance: float
    ) -> PositionRisk:
        """
        Risk carried by a position if its stop is hit.

        Args:
            quantity: Position quantity
            entry_price: Entry price
            stop_loss: Stop price
            balance: Account balance

        Returns:
            PositionRisk; acceptable when percent risk is within the limit
        """
        _require_positive("balance", balance)
        if quantity < 0:
            raise InvalidInputError("quantity must be non-negative", field="quantity")

        dollar_risk = quantity * abs(entry_price - stop_loss)
        percent_risk = dollar_risk / balance * 100

        return PositionRisk(
            dollar_risk=dollar_risk,
            percent_risk=percent_risk,
            is_acceptable=percent_risk <= self.config.max_acceptable_risk_pct,
        )

    def adjust_size_for_correlation(
        self,
        base_size: float,
        correlation_factor: float
    ) -> float:
        """
        Shrink a size for correlation with existing holdings.

        The reduction grows linearly with |correlation| up to
        ``correlation_reduction`` (50%) at perfect correlation.
        """
        if correlation_factor is None or abs(correlation_factor) > 1:
            raise InvalidInputError(
                f"Correlation factor must lie in [-1, 1], got {correlation_factor}",
                field="correlation_factor",
            )
        return base_size * (1 - abs(correlation_factor) * self.config.correlation_reduction)

    # ========== Leverage ==========

    def _leverage_cap(self, tolerance: RiskTolerance) -> float:
        if tolerance not in self.config.leverage_caps:
            raise ConfigurationError(
                f"No leverage cap configured for {tolerance.value}", field="leverage_caps"
            )
        return self.config.leverage_caps[tolerance]

    def calculate_max_leverage(
        self,
        balance: float,
        position_value: float,
        risk_tolerance: Union[RiskTolerance, str]
    ) -> float:
        """
        Leverage implied by a position, capped by risk tolerance.

        Args:
            balance: Account balance
            position_value: Notional value of the position
            risk_tolerance: conservative, moderate or aggressive

        Returns:
            min(position_value / balance, cap for tolerance)
        """
        _require_positive("balance", balance)
        tolerance = _coerce_tolerance(risk_tolerance)
        cap = self._leverage_cap(tolerance)
        return min(position_value / balance, cap)

    def validate_leverage(
        self,
        leverage: float,
        risk_tolerance: Union[RiskTolerance, str]
    ) -> float:
        """
        Check a requested leverage against the tolerance cap.

        Returns:
            The leverage unchanged when valid

        Raises:
            ConfigurationError: If leverage is below 1 or above the cap
        """
        tolerance = _coerce_tolerance(risk_tolerance)
        cap = self._leverage_cap(tolerance)
        if leverage is None or leverage < 1 or leverage > cap:
            raise ConfigurationError(
                f"Leverage must be between 1 and {cap} for {tolerance.value}, got {leverage}",
                field="leverage",
            )
        return leverage

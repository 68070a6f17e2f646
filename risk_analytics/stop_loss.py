"""
Stop-Loss Optimization.

ATR-based, support/resistance-based and fixed-percentage stop levels, the
choice of the tightest valid one, trailing stops, and risk/reward grading of
a planned stop.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import StopLossConfig
from .exceptions import InvalidInputError
from .models import PositionSide, coerce_side
from .utils.stats import as_array

logger = logging.getLogger(__name__)

Side = Union[PositionSide, str]


@dataclass
class SupportResistance:
    """Local price extremes around the current price, nearest first."""
    support: List[float] = field(default_factory=list)
    resistance: List[float] = field(default_factory=list)


@dataclass
class StopLossRecommendation:
    """Candidate stops and the one chosen."""
    atr_based: float
    support_based: float
    percentage_based: float
    recommended: float
    risk_amount: float


@dataclass
class StopLossEvaluation:
    """Risk/reward grade of a planned stop."""
    risk_reward_ratio: float
    is_optimal: bool
    rating: str  # "optimal", "acceptable" or "too_wide"
    recommendation: str


def _require_positive(name: str, value: float) -> None:
    if value is None or value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}", field=name)


class StopLossOptimizer:
    """
    Places stops from volatility and recent price structure.

    Example:
        >>> optimizer = StopLossOptimizer()
        >>> optimizer.calculate_atr_stop_loss(100.0, 2.5, side="long")
        95.0
    """

    def __init__(self, config: Optional[StopLossConfig] = None) -> None:
        self.config = config or StopLossConfig()

    # ========== Volatility Stops ==========

    @staticmethod
    def calculate_atr(
        high: pd.Series,
        low: pd.Series,
        close: pd.Series,
        period: int = 14
    ) -> pd.Series:
        """
        Calculate Average True Range (ATR).

        Args:
            high: Series of high prices
            low: Series of low prices
            close: Series of close prices
            period: ATR lookback period

        Returns:
            Series of ATR values (exponentially smoothed true range)
        """
        if not (len(high) == len(low) == len(close)):
            raise InvalidInputError("high, low and close differ in length", field="close")
        if len(high) < period + 1:
            raise InvalidInputError(
                f"Need at least {period + 1} periods for ATR calculation", field="close"
            )

        high, low, close = pd.Series(high), pd.Series(low), pd.Series(close)

        # True Range is the largest of the three ranges
        tr1 = high - low
        tr2 = np.abs(high - close.shift(1))
        tr3 = np.abs(low - close.shift(1))
        true_range = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)

        return true_range.ewm(span=period, adjust=False).mean()

    def calculate_atr_stop_loss(
        self,
        price: float,
        atr: float,
        multiplier: Optional[float] = None,
        side: Side = PositionSide.LONG
    ) -> float:
        """Stop ``atr * multiplier`` below (long) or above (short) the price."""
        _require_positive("price", price)
        if atr is None or atr < 0:
            raise InvalidInputError(f"atr must be non-negative, got {atr}", field="atr")
        multiplier = self.config.atr_multiplier if multiplier is None else multiplier

        distance = atr * multiplier
        if coerce_side(side) == PositionSide.LONG:
            return price - distance
        return price + distance

    # ========== Price Structure ==========

    def find_support_resistance_levels(
        self,
        price_history: Sequence[float],
        current_price: float,
        lookback: Optional[int] = None
    ) -> SupportResistance:
        """
        Local minima below and local maxima above the current price.

        A point is support when it is lower than both neighbours and below
        the current price; resistance is the mirror case. Only the last
        ``lookback`` prices are scanned.

        Returns:
            Support sorted high to low, resistance sorted low to high, so the
            first entry of each is nearest to the current price
        """
        lookback = self.config.lookback if lookback is None else lookback
        if lookback < 3:
            raise InvalidInputError(f"lookback must be at least 3, got {lookback}", field="lookback")
        prices = as_array(price_history, "price_history", min_length=1)[-lookback:]

        support, resistance = [], []
        for i in range(1, len(prices) - 1):
            prev, curr, nxt = prices[i - 1], prices[i], prices[i + 1]
            if curr < prev and curr < nxt and curr < current_price:
                support.append(float(curr))
            if curr > prev and curr > nxt and curr > current_price:
                resistance.append(float(curr))

        return SupportResistance(
            support=sorted(support, reverse=True),
            resistance=sorted(resistance),
        )

    # ========== Stop Selection ==========

    def get_optimal_stop_loss(
        self,
        entry_price: float,
        current_price: float,
        atr: float,
        price_history: Sequence[float],
        side: Side = PositionSide.LONG,
        max_risk_percent: Optional[float] = None
    ) -> StopLossRecommendation:
        """
        Choose the tightest valid stop among three candidates.

        Candidates are the ATR stop, the nearest support (long) or resistance
        (short) with a 5% fallback when none exists, and a fixed percentage
        stop. A long takes the highest candidate below the current price; a
        short takes the lowest candidate above it.

        Args:
            entry_price: Position entry price
            current_price: Current market price
            atr: Current ATR value
            price_history: Recent prices, oldest first
            side: Position direction
            max_risk_percent: Percentage stop distance (default from config, 2)

        Returns:
            StopLossRecommendation
        """
        _require_positive("entry_price", entry_price)
        _require_positive("current_price", current_price)
        side = coerce_side(side)
        max_risk_percent = (
            self.config.max_risk_percent if max_risk_percent is None else max_risk_percent
        )
        if not 0 < max_risk_percent < 100:
            raise InvalidInputError(
                f"max_risk_percent must lie in (0, 100), got {max_risk_percent}",
                field="max_risk_percent",
            )

        atr_based = self.calculate_atr_stop_loss(current_price, atr, self.config.atr_multiplier, side)
        levels = self.find_support_resistance_levels(price_history, current_price)

        if side == PositionSide.LONG:
            support_based = (
                levels.support[0] if levels.support
                else current_price * self.config.fallback_support_pct
            )
            percentage_based = current_price * (1 - max_risk_percent / 100)
        else:
            support_based = (
                levels.resistance[0] if levels.resistance
                else current_price * self.config.fallback_resistance_pct
            )
            percentage_based = current_price * (1 + max_risk_percent / 100)

        candidates = [atr_based, support_based, percentage_based]
        if side == PositionSide.LONG:
            recommended = max(c for c in candidates if c < current_price)
        else:
            recommended = min(c for c in candidates if c > current_price)
        logger.debug(
            f"{side.value} stop candidates atr={atr_based:.4f} structure={support_based:.4f} "
            f"pct={percentage_based:.4f} -> {recommended:.4f}"
        )

        return StopLossRecommendation(
            atr_based=atr_based,
            support_based=support_based,
            percentage_based=percentage_based,
            recommended=recommended,
            risk_amount=abs(current_price - recommended),
        )

    # ========== Trailing Stops ==========

    @staticmethod
    def calculate_trailing_stop(
        entry_price: float,
        current_price: float,
        highest_price: float,
        lowest_price: float,
        trailing_percent: float,
        side: Side = PositionSide.LONG
    ) -> float:
        """
        Trailing stop a fixed percentage off the best price seen.

        For LONG positions: below the highest price since entry
        For SHORT positions: above the lowest price since entry
        """
        if trailing_percent is None or not 0 < trailing_percent < 100:
            raise InvalidInputError(
                f"trailing_percent must lie in (0, 100), got {trailing_percent}",
                field="trailing_percent",
            )
        if coerce_side(side) == PositionSide.LONG:
            _require_positive("highest_price", highest_price)
            return highest_price * (1 - trailing_percent / 100)
        _require_positive("lowest_price", lowest_price)
        return lowest_price * (1 + trailing_percent / 100)

    # ========== Evaluation ==========

    def evaluate_stop_loss_placement(
        self,
        stop_loss: float,
        entry_price: float,
        target_price: float,
        side: Side = PositionSide.LONG
    ) -> StopLossEvaluation:
        """
        Grade a stop by the risk/reward ratio it implies.

        Ratios of at least ``optimal_rr_ratio`` (2) are optimal, at least
        ``acceptable_rr_ratio`` (1.5) acceptable, anything lower too wide.
        """
        side = coerce_side(side)
        risk = abs(entry_price - stop_loss)
        if risk == 0:
            raise InvalidInputError("Stop loss equals entry price", field="stop_loss")
        wrong_side = stop_loss > entry_price if side == PositionSide.LONG else stop_loss < entry_price
        if wrong_side:
            raise InvalidInputError(
                f"Stop loss {stop_loss} is on the wrong side of entry for a {side.value} position",
                field="stop_loss",
            )

        ratio = abs(target_price - entry_price) / risk

        if ratio >= self.config.optimal_rr_ratio:
            rating, recommendation = "optimal", "Good risk/reward ratio"
        elif ratio >= self.config.acceptable_rr_ratio:
            rating, recommendation = "acceptable", "Acceptable but could be optimized"
        else:
            rating = "too_wide"
            recommendation = "Stop loss too wide - reduce risk or increase target"

        return StopLossEvaluation(
            risk_reward_ratio=ratio,
            is_optimal=ratio >= self.config.optimal_rr_ratio,
            rating=rating,
            recommendation=recommendation,
        )

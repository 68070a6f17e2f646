"""
Liquidity Risk Assessment.

Order-book depth and spread scoring, slippage estimates, execution-hour
suggestions and position-to-volume risk classification.
"""

from dataclasses import dataclass
from typing import Mapping

from .exceptions import InvalidInputError
from .models import Severity


@dataclass
class LiquidityMetrics:
    """Snapshot of book liquidity for a planned order."""
    market_depth: float
    bid_ask_spread: float
    spread_percent: float
    liquidity_score: float  # 0-100, higher is more liquid
    expected_slippage: float  # percent


@dataclass
class ExecutionWindow:
    """Suggested hour to execute and why."""
    optimal_hour: int
    reason: str


class LiquidityRiskAssessor:
    """Scores how easily an order can be filled near the quoted price."""

    # Depth counts fully once the book holds this many times the order size
    DEPTH_SATURATION: float = 10.0
    DEPTH_WEIGHT: float = 0.6
    SPREAD_WEIGHT: float = 0.4
    HIGH_VOLUME_FRACTION: float = 0.8

    # Position size as a fraction of average daily volume
    LOW_RISK_VOLUME_RATIO: float = 0.01
    MEDIUM_RISK_VOLUME_RATIO: float = 0.05

    def assess_liquidity(
        self,
        order_size: float,
        bid_volume: float,
        ask_volume: float,
        bid_price: float,
        ask_price: float
    ) -> LiquidityMetrics:
        """
        Assess book liquidity for an order.

        Args:
            order_size: Order quantity; positive buys (hits asks), negative sells
            bid_volume: Quantity resting on the bid side
            ask_volume: Quantity resting on the ask side
            bid_price: Best bid
            ask_price: Best ask

        Returns:
            LiquidityMetrics
        """
        if bid_price <= 0 or ask_price <= 0:
            raise InvalidInputError("Quotes must be positive", field="bid_price")
        if ask_price < bid_price:
            raise InvalidInputError("Crossed book: ask below bid", field="ask_price")
        if bid_volume < 0 or ask_volume < 0:
            raise InvalidInputError("Book volumes must be non-negative", field="bid_volume")

        market_depth = bid_volume + ask_volume
        bid_ask_spread = ask_price - bid_price
        mid_price = (bid_price + ask_price) / 2
        spread_percent = bid_ask_spread / mid_price * 100

        return LiquidityMetrics(
            market_depth=market_depth,
            bid_ask_spread=bid_ask_spread,
            spread_percent=spread_percent,
            liquidity_score=self._liquidity_score(market_depth, spread_percent, order_size),
            expected_slippage=self._estimate_slippage(order_size, bid_volume, ask_volume,
                                                      spread_percent),
        )

    def _liquidity_score(self, depth: float, spread_percent: float, order_size: float) -> float:
        if order_size == 0:
            depth_ratio = 1.0
        else:
            depth_ratio = min(depth / abs(order_size), self.DEPTH_SATURATION) / self.DEPTH_SATURATION
        spread_score = max(0.0, 1 - spread_percent / 2)
        return (depth_ratio * self.DEPTH_WEIGHT + spread_score * self.SPREAD_WEIGHT) * 100

    @staticmethod
    def _estimate_slippage(order_size: float, bid_volume: float, ask_volume: float,
                           spread_percent: float) -> float:
        if order_size == 0:
            return 0.0
        relevant_volume = ask_volume if order_size > 0 else bid_volume
        if relevant_volume == 0:
            raise InvalidInputError("No resting volume on the side the order takes",
                                    field="ask_volume" if order_size > 0 else "bid_volume")

        volume_ratio = abs(order_size) / relevant_volume
        return spread_percent / 2 + volume_ratio * spread_percent * 2

    def recommend_execution_hour(
        self,
        hourly_volumes: Mapping[int, float],
        current_hour: int
    ) -> ExecutionWindow:
        """
        Next hour (from ``current_hour``) whose volume is near the daily peak.

        Args:
            hourly_volumes: Hour of day -> typical traded volume
            current_hour: Current hour of day

        Returns:
            ExecutionWindow; wraps to the earliest high-volume hour when none
            remain today
        """
        if not hourly_volumes:
            raise InvalidInputError("No hourly volume data", field="hourly_volumes")

        max_volume = max(hourly_volumes.values())
        threshold = max_volume * self.HIGH_VOLUME_FRACTION
        optimal_hours = sorted(h for h, v in hourly_volumes.items() if v >= threshold)

        next_hour = next((h for h in optimal_hours if h >= current_hour), optimal_hours[0])
        return ExecutionWindow(
            optimal_hour=next_hour,
            reason=f"High liquidity period with volume above {threshold:.0f}",
        )

    def classify_liquidity_risk(self, position_size: float, average_daily_volume: float) -> Severity:
        """Risk of exiting a position given typical daily volume."""
        if average_daily_volume <= 0:
            raise InvalidInputError("average_daily_volume must be positive",
                                    field="average_daily_volume")

        ratio = abs(position_size) / average_daily_volume
        if ratio < self.LOW_RISK_VOLUME_RATIO:
            return Severity.LOW
        if ratio < self.MEDIUM_RISK_VOLUME_RATIO:
            return Severity.MEDIUM
        return Severity.HIGH

"""
Value objects shared by the engine components.
"""

from dataclasses import dataclass
from enum import Enum

from .exceptions import InvalidInputError


class PositionSide(Enum):
    """Position direction."""
    LONG = "long"
    SHORT = "short"


class Severity(Enum):
    """Three-level severity used by breakdowns and liquidity risk."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskTolerance(Enum):
    """Caller risk appetite, used to cap leverage."""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


@dataclass(frozen=True)
class Position:
    """Immutable snapshot of a held position."""
    symbol: str
    quantity: float
    entry_price: float
    current_price: float

    def __post_init__(self) -> None:
        if self.current_price < 0 or self.entry_price < 0:
            raise InvalidInputError(
                f"Prices must be non-negative for {self.symbol}", field="current_price"
            )

    @property
    def market_value(self) -> float:
        """Current value of the position."""
        return self.quantity * self.current_price


def coerce_side(side) -> PositionSide:
    """Accept a PositionSide or its string value ("long"/"short")."""
    if isinstance(side, PositionSide):
        return side
    try:
        return PositionSide(str(side).lower())
    except ValueError:
        raise InvalidInputError(f"Unknown position side: {side!r}", field="side") from None

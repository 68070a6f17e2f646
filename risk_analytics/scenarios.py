"""
Scenario Analysis.

Applies named return shocks to an allocation and reduces a set of scenario
results to expected, worst and best outcomes.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .exceptions import ConfigurationError, InvalidInputError


WEIGHT_TOLERANCE = 1e-6


@dataclass
class Scenario:
    """Named set of per-asset fractional returns."""
    name: str
    description: str
    asset_returns: Dict[str, float] = field(default_factory=dict)
    probability: Optional[float] = None

    def __post_init__(self):
        if self.probability is not None and not 0.0 <= self.probability <= 1.0:
            raise InvalidInputError(
                f"Scenario probability must lie in [0, 1], got {self.probability}",
                field="probability",
            )


@dataclass
class ScenarioResult:
    """Outcome of one scenario."""
    scenario: str
    portfolio_return: float  # percent
    portfolio_value: float
    impact: float  # percent, same as portfolio_return


HISTORICAL_SCENARIOS = [
    Scenario(
        name="Market Crash 2008",
        description="Global financial crisis scenario",
        asset_returns={"BTC": -0.8, "ETH": -0.85, "stocks": -0.45, "bonds": 0.05},
        probability=0.02,
    ),
    Scenario(
        name="Bull Market",
        description="Strong upward market movement",
        asset_returns={"BTC": 1.5, "ETH": 2.0, "stocks": 0.25, "bonds": 0.03},
        probability=0.15,
    ),
    Scenario(
        name="High Inflation",
        description="Elevated inflation environment",
        asset_returns={"BTC": 0.5, "ETH": 0.3, "stocks": -0.1, "bonds": -0.15},
        probability=0.2,
    ),
]


def validate_allocation(allocation: Mapping[str, float]) -> None:
    """Weights must be non-negative and sum to 1."""
    if not allocation:
        raise ConfigurationError("Allocation is empty", field="allocation")
    for asset, weight in allocation.items():
        if weight < 0:
            raise ConfigurationError(
                f"Negative weight for {asset}: {weight}", field="allocation"
            )
    total = sum(allocation.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ConfigurationError(f"Allocation sums to {total}, not 1", field="allocation")


class ScenarioAnalyzer:
    """Runs historical or custom scenarios against an allocation."""

    def analyze_scenario(
        self,
        allocation: Mapping[str, float],
        scenario: Scenario,
        current_value: float
    ) -> ScenarioResult:
        """
        Value of the portfolio after the scenario's returns.

        Assets the scenario does not mention keep their value.

        Args:
            allocation: Symbol -> weight (sums to 1)
            scenario: Scenario to apply
            current_value: Current portfolio value

        Returns:
            ScenarioResult with the return in percent
        """
        validate_allocation(allocation)
        if current_value <= 0:
            raise InvalidInputError("current_value must be positive", field="current_value")

        # Summing weighted returns keeps an all-zero scenario exactly at current_value
        fractional_return = sum(
            weight * scenario.asset_returns.get(asset, 0.0)
            for asset, weight in allocation.items()
        )
        new_value = current_value * (1 + fractional_return)
        portfolio_return = fractional_return * 100

        return ScenarioResult(
            scenario=scenario.name,
            portfolio_return=portfolio_return,
            portfolio_value=new_value,
            impact=portfolio_return,
        )

    def run_multiple_scenarios(
        self,
        allocation: Mapping[str, float],
        scenarios: Sequence[Scenario],
        current_value: float
    ) -> List[ScenarioResult]:
        """Analyze each scenario in order."""
        return [self.analyze_scenario(allocation, s, current_value) for s in scenarios]

    @staticmethod
    def get_historical_scenarios() -> List[Scenario]:
        """Copies of the built-in illustrative scenarios."""
        return copy.deepcopy(HISTORICAL_SCENARIOS)

    @staticmethod
    def create_custom_scenario(
        name: str,
        description: str,
        asset_returns: Mapping[str, float],
        probability: Optional[float] = None
    ) -> Scenario:
        return Scenario(name=name, description=description,
                        asset_returns=dict(asset_returns), probability=probability)

    @staticmethod
    def calculate_expected_value(
        results: Sequence[ScenarioResult],
        scenarios: Sequence[Scenario]
    ) -> float:
        """
        Probability-weighted portfolio return, in percent.

        Scenarios without a probability get 1/N. Probabilities are not
        required to sum to 1.
        """
        if len(results) != len(scenarios):
            raise InvalidInputError(
                f"{len(results)} results for {len(scenarios)} scenarios", field="results"
            )
        if not results:
            raise InvalidInputError("No scenario results", field="results")

        default = 1.0 / len(scenarios)
        expected = 0.0
        for result, scenario in zip(results, scenarios):
            probability = default if scenario.probability is None else scenario.probability
            expected += result.portfolio_return * probability
        return expected

    @staticmethod
    def identify_worst_case(results: Sequence[ScenarioResult]) -> ScenarioResult:
        if not results:
            raise InvalidInputError("No scenario results", field="results")
        return min(results, key=lambda r: r.portfolio_return)

    @staticmethod
    def identify_best_case(results: Sequence[ScenarioResult]) -> ScenarioResult:
        if not results:
            raise InvalidInputError("No scenario results", field="results")
        return max(results, key=lambda r: r.portfolio_return)

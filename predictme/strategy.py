"""
Outcome Selector — Grid selection strategies.

Each built-in strategy reduces the grids from ``GET /odds/{asset}`` to the
single grid to bet on. The reduction is seeded with the first grid and only
replaces the current pick on a strict improvement, so on ties the grid that
appears first wins. Callers depending on a particular pick among tied grids
must keep the input order stable.

Strategies are referenced explicitly:
    select(grids, price, Named("value"))
    select(grids, price, Custom(my_picker))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence, Union

import structlog

from predictme.errors import EmptyInputError, UnknownStrategyError
from predictme.models import PricedBucket

logger = structlog.get_logger(__name__)

StrategyFn = Callable[[Sequence[PricedBucket], float], PricedBucket]


# ── Built-in Strategies ──────────────────────────────────────────────


def balanced(grids: Sequence[PricedBucket], current_price: float) -> PricedBucket:
    """Implied probability closest to 0.5 — moderate risk, moderate reward."""
    return min(grids, key=lambda g: abs(g.probability - 0.5))


def underdog(grids: Sequence[PricedBucket], current_price: float) -> PricedBucket:
    """Highest odds (market thinks unlikely). High payout, high risk."""
    return max(grids, key=lambda g: g.odds_value)


def favorite(grids: Sequence[PricedBucket], current_price: float) -> PricedBucket:
    """Grid whose midpoint is nearest the current price. Conservative."""
    price = float(current_price)
    return min(grids, key=lambda g: abs(g.midpoint - price))


def value(grids: Sequence[PricedBucket], current_price: float) -> PricedBucket:
    """Best odds × implied probability — looks for mispriced grids."""
    return max(grids, key=lambda g: g.expected_value)


# min()/max() keep the first extreme element, which is the tie rule above.
STRATEGIES: dict[str, StrategyFn] = {
    "balanced": balanced,
    "underdog": underdog,
    "favorite": favorite,
    "value": value,
}


# ── Strategy Reference ───────────────────────────────────────────────


@dataclass(frozen=True)
class Named:
    """A registered strategy, looked up by name at selection time."""

    name: str = "balanced"

    @property
    def tag(self) -> str | None:
        """Value sent as the bet's ``strategy`` field."""
        return self.name

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class Custom:
    """A caller-supplied picker. Its result is trusted as-is."""

    fn: StrategyFn

    @property
    def tag(self) -> str | None:
        return None

    @property
    def label(self) -> str:
        return "custom"


StrategyRef = Union[Named, Custom]


def available_strategies() -> list[str]:
    return list(STRATEGIES)


def select(
    grids: Sequence[PricedBucket],
    current_price: float | str,
    strategy: StrategyRef = Named(),
) -> PricedBucket:
    """Pick one grid.

    Raises:
        EmptyInputError: ``grids`` is empty.
        UnknownStrategyError: ``strategy`` names an unregistered strategy.
    """
    if not grids:
        raise EmptyInputError("No grids available")

    if isinstance(strategy, Custom):
        return strategy.fn(grids, current_price)

    fn = STRATEGIES.get(strategy.name)
    if fn is None:
        names = available_strategies()
        raise UnknownStrategyError(
            f"Unknown strategy: {strategy.name}. Available: {', '.join(names)}",
            available=names,
        )

    chosen = fn(grids, current_price)
    logger.debug(
        "grid_selected",
        strategy=strategy.name,
        grid_id=chosen.identifier,
        odds=chosen.odds,
        candidates=len(grids),
    )
    return chosen

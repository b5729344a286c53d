"""
Agent Models — Pydantic models for the wager flow.

Defines the data exchanged with the Agent API:
  - PricedBucket: One strike-price grid with odds and implied probability
  - OddsSnapshot: Current reference price plus the grids for one asset
  - BalanceType: Balance pools an agent may draw from
  - WagerRequest: Body of a single bet submission (single-use nonce)
  - WagerResult: Parsed response of an accepted bet
  - ValidationResult: Outcome of a local rationale check
  - SubmissionAccepted / SubmissionConflict: Discriminated submit outcome
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

COMMENTARY_MAX_LENGTH = 500


def _as_decimal_string(value: Any) -> Any:
    """Numbers on the wire are kept as their decimal text."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# ── Market Data ──────────────────────────────────────────────────────


class PricedBucket(BaseModel):
    """A strike interval with its payout multiplier, valid until expiry.

    Immutable snapshot; the decimal strings are kept verbatim for
    submission and parsed as floats only for comparisons.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    grid_id_str: str = Field(default="", alias="gridIdStr")
    grid_id: str | int | None = Field(default=None, alias="gridId")
    strike_price_min: str = Field(alias="strikePriceMin")
    strike_price_max: str = Field(alias="strikePriceMax")
    odds: str
    implied_probability: str = Field(alias="impliedProbability")
    expiry_at: int = Field(default=0, alias="expiryAt")

    @field_validator(
        "strike_price_min",
        "strike_price_max",
        "odds",
        "implied_probability",
        mode="before",
    )
    @classmethod
    def coerce_decimals(cls, value: Any) -> Any:
        return _as_decimal_string(value)

    @property
    def identifier(self) -> str:
        """Identifier sent back as ``gridId`` when betting."""
        if self.grid_id_str:
            return self.grid_id_str
        return "" if self.grid_id is None else str(self.grid_id)

    @property
    def lower(self) -> float:
        return float(self.strike_price_min)

    @property
    def upper(self) -> float:
        return float(self.strike_price_max)

    @property
    def midpoint(self) -> float:
        return (self.lower + self.upper) / 2

    @property
    def odds_value(self) -> float:
        return float(self.odds)

    @property
    def probability(self) -> float:
        return float(self.implied_probability)

    @property
    def expected_value(self) -> float:
        """Payout multiplier weighted by implied probability."""
        return self.odds_value * self.probability

    @property
    def level(self) -> str:
        """Grid offset from the current price, e.g. ``BTC_1718_-2`` → ``-2``."""
        parts = (self.grid_id_str or "").split("_")
        return parts[2] if len(parts) >= 3 else "0"


class OddsSnapshot(BaseModel):
    """Response of ``GET /odds/{asset}``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    asset: str = ""
    current_price: str = Field(default="", alias="currentPrice")
    grids: list[PricedBucket] = Field(default_factory=list)

    @field_validator("current_price", mode="before")
    @classmethod
    def coerce_price(cls, value: Any) -> Any:
        return _as_decimal_string(value)

    @classmethod
    def from_response(cls, body: dict[str, Any], asset: str = "") -> "OddsSnapshot":
        data = body.get("data") or {}
        snapshot = cls.model_validate(data)
        if not snapshot.asset and asset:
            snapshot = snapshot.model_copy(update={"asset": asset})
        return snapshot


# ── Wagers ───────────────────────────────────────────────────────────


class BalanceType(str, enum.Enum):
    """Balance pools available to agents. Real funds are not representable."""

    TEST = "TEST"
    BONUS = "BONUS"


class WagerRequest(BaseModel):
    """A single bet submission. Built fresh per attempt; its nonce is single-use."""

    model_config = ConfigDict(frozen=True)

    grid_id: str
    amount: str
    balance_type: BalanceType = BalanceType.TEST
    nonce: int = Field(ge=0)
    commentary: str
    strategy: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> Any:
        return _as_decimal_string(value)

    @field_validator("commentary")
    @classmethod
    def truncate_commentary(cls, value: str) -> str:
        return value[:COMMENTARY_MAX_LENGTH]

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the ``POST /bet`` body."""
        body: dict[str, Any] = {
            "gridId": self.grid_id,
            "amount": self.amount,
            "balanceType": self.balance_type.value,
            "nonce": self.nonce,
            "commentary": self.commentary,
        }
        if self.strategy:
            body["strategy"] = self.strategy
        return body


class WagerResult(BaseModel):
    """Accepted bet, as reported by the API."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    order_id: str
    grid_id: str | None = None
    odds: str = ""
    new_balance: str = ""
    quality_score: int = 0

    @classmethod
    def from_response(cls, body: dict[str, Any], *, fallback_score: int = 0) -> "WagerResult":
        """Parse ``{success, data: {orderId, odds, newBalance, qualityScore?}}``."""
        data = body.get("data") or {}
        score = data.get("qualityScore")
        grid_id = data.get("gridId")
        return cls(
            success=bool(body.get("success", True)),
            order_id=str(data.get("orderId", "")),
            grid_id=None if grid_id is None else str(grid_id),
            odds=str(data.get("odds", "")),
            new_balance=str(data.get("newBalance", "")),
            quality_score=fallback_score if score is None else int(score),
        )


class ValidationResult(BaseModel):
    """Outcome of a local rationale check."""

    valid: bool
    error: str | None = None


# ── Submission Outcome ───────────────────────────────────────────────


@dataclass(frozen=True)
class SubmissionAccepted:
    """The API accepted the wager."""

    result: WagerResult


@dataclass(frozen=True)
class SubmissionConflict:
    """The API rejected the nonce and declared the one it expects next."""

    expected_nonce: int
    message: str = ""
    body: dict[str, Any] = field(default_factory=dict)


SubmissionOutcome = Union[SubmissionAccepted, SubmissionConflict]

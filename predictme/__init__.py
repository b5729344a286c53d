"""
PredictMe Agent — Client-side trading core for the PredictMe Agent API.

Picks a priced grid with a named or custom strategy, renders and scores
the commentary attached to each bet, and submits it with a replay-safe
nonce that recovers once from a server-declared conflict.
"""

from predictme.client import AsyncPredictMeClient
from predictme.config import AgentSettings, get_settings
from predictme.models import (
    BalanceType,
    OddsSnapshot,
    PricedBucket,
    WagerRequest,
    WagerResult,
)
from predictme.rationale import render, score, tier, validate
from predictme.sequence import SequenceStore
from predictme.strategy import Custom, Named, select
from predictme.trader import TradingOrchestrator
from predictme.version import VERSION

__all__ = [
    # Orchestration
    "TradingOrchestrator",
    "AsyncPredictMeClient",
    "SequenceStore",
    # Selection
    "select",
    "Named",
    "Custom",
    # Commentary
    "validate",
    "render",
    "score",
    "tier",
    # Models
    "PricedBucket",
    "OddsSnapshot",
    "BalanceType",
    "WagerRequest",
    "WagerResult",
    # Settings
    "AgentSettings",
    "get_settings",
    "VERSION",
]

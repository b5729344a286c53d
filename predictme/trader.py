"""
Trading Orchestrator — fetch → select → compose → submit → recover.

Composes the API client, the grid selector, the commentary engine and the
sequence store into the two betting entry points:

    place_bet()     validate commentary and pool, take a nonce, submit
    pick_and_bet()  fetch odds, pick a grid, render commentary, place_bet

A nonce conflict that carries the server's expected value is recovered
exactly once: the store is reset to that value, a new nonce is issued and
the bet is resubmitted. A second conflict is raised as
``SequenceConflictError``. Every other failure propagates unchanged.

All cycles of one orchestrator run under a single ``asyncio.Lock`` so
concurrent callers in one process never read the same nonce.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import structlog

from predictme import rationale
from predictme.client import AsyncPredictMeClient
from predictme.config import AgentSettings, get_settings
from predictme.errors import (
    BalancePoolError,
    EmptyInputError,
    RationaleValidationError,
    RemoteRejection,
    SequenceConflictError,
)
from predictme.models import BalanceType, OddsSnapshot, SubmissionConflict, WagerRequest, WagerResult
from predictme.sequence import SequenceStore
from predictme.strategy import Named, StrategyRef, select

logger = structlog.get_logger(__name__)

REAL_BALANCE = "REAL"


def resolve_balance_type(value: str | BalanceType) -> BalanceType:
    """Accept TEST/BONUS (any case); reject REAL and anything unknown."""
    if isinstance(value, BalanceType):
        return value
    name = str(value).strip().upper()
    if name == REAL_BALANCE:
        raise BalancePoolError(
            "Agents cannot use REAL balance. Use TEST or BONUS.",
            balance_type=str(value),
        )
    try:
        return BalanceType(name)
    except ValueError:
        raise BalancePoolError(
            f"Unknown balance type: {value}. Use TEST or BONUS.",
            balance_type=str(value),
        ) from None


def check_commentary(commentary: str | None) -> str:
    """Return the commentary if valid, else raise with length and minimum."""
    result = rationale.validate(commentary)
    if not result.valid:
        raise RationaleValidationError(
            result.error or "Invalid commentary",
            length=len((commentary or "").strip()),
            minimum=rationale.MIN_LENGTH,
        )
    return commentary


def check_reference_price(snapshot: OddsSnapshot) -> float:
    """Parse the snapshot's reference price; strategies compare against it."""
    try:
        return float(snapshot.current_price)
    except ValueError:
        raise RemoteRejection(
            f"Odds for {snapshot.asset or 'asset'} have no usable currentPrice: {snapshot.current_price!r}",
            detail="MISSING_CURRENT_PRICE",
        ) from None


class TradingOrchestrator:
    """
    Betting flow for one agent credential.

    Args:
        client: API boundary. Built from settings when omitted.
        sequencer: Nonce store. Built on ``settings.nonce_path`` when omitted.
        settings: Overrides ``get_settings()``.
    """

    def __init__(
        self,
        client: AsyncPredictMeClient | None = None,
        sequencer: SequenceStore | None = None,
        *,
        settings: AgentSettings | None = None,
    ):
        settings = settings or get_settings()
        self.client = client or AsyncPredictMeClient(settings.api_key, settings.api_url)
        self.sequencer = sequencer or SequenceStore(settings.nonce_path)
        self._lock = asyncio.Lock()

    # ── Entry Points ─────────────────────────────────────────────────

    async def place_bet(
        self,
        *,
        grid_id: str,
        amount: str | float,
        commentary: str,
        balance_type: str | BalanceType = BalanceType.TEST,
        strategy: str | None = None,
    ) -> WagerResult:
        """Bet on a known grid."""
        async with self._lock:
            return await self._submit(
                grid_id=grid_id,
                amount=amount,
                commentary=commentary,
                balance_type=balance_type,
                strategy=strategy,
            )

    async def pick_and_bet(
        self,
        *,
        commentary: str,
        asset: str = "BTC",
        amount: str | float = "1.00",
        balance_type: str | BalanceType = BalanceType.TEST,
        strategy: StrategyRef = Named(),
        template_context: Mapping[str, Any] | None = None,
    ) -> WagerResult:
        """Fetch the current grids, pick one with ``strategy`` and bet on it.

        ``commentary`` may be a template; the chosen grid's odds and level,
        the reference price, asset and strategy label are injected on top
        of ``template_context``.
        """
        pool = resolve_balance_type(balance_type)

        async with self._lock:
            snapshot = await self.client.fetch_snapshot(asset)
            if not snapshot.grids:
                raise EmptyInputError(f"No grids available for {asset}")
            check_reference_price(snapshot)

            chosen = select(snapshot.grids, snapshot.current_price, strategy)
            context = {
                **(template_context or {}),
                "price": snapshot.current_price,
                "asset": asset,
                "odds": chosen.odds,
                "gridLevel": chosen.level,
                "strategy": strategy.label,
            }
            rendered = rationale.render(commentary, context)

            logger.info(
                "grid_chosen",
                asset=asset,
                strategy=strategy.label,
                grid_id=chosen.identifier,
                odds=chosen.odds,
                level=chosen.level,
                current_price=snapshot.current_price,
            )
            return await self._submit(
                grid_id=chosen.identifier,
                amount=amount,
                commentary=rendered,
                balance_type=pool,
                strategy=strategy.tag,
            )

    # ── Submission ───────────────────────────────────────────────────

    def _build_request(
        self,
        *,
        grid_id: str,
        amount: str | float,
        commentary: str,
        balance_type: BalanceType,
        strategy: str | None,
    ) -> WagerRequest:
        return WagerRequest(
            grid_id=grid_id,
            amount=amount,
            balance_type=balance_type,
            nonce=self.sequencer.advance(),
            commentary=commentary,
            strategy=strategy,
        )

    async def _submit(
        self,
        *,
        grid_id: str,
        amount: str | float,
        commentary: str,
        balance_type: str | BalanceType,
        strategy: str | None,
    ) -> WagerResult:
        check_commentary(commentary)
        fields = dict(
            grid_id=grid_id,
            amount=amount,
            commentary=commentary,
            balance_type=resolve_balance_type(balance_type),
            strategy=strategy,
        )

        request = self._build_request(**fields)
        outcome = await self.client.submit_wager(request)

        if isinstance(outcome, SubmissionConflict):
            if outcome.expected_nonce < 0:
                raise SequenceConflictError(
                    f"Nonce {request.nonce} rejected; server declared an invalid "
                    f"expected nonce {outcome.expected_nonce}",
                    expected_nonce=outcome.expected_nonce,
                    attempted_nonce=request.nonce,
                )
            self.sequencer.reset(outcome.expected_nonce)
            request = self._build_request(**fields)
            logger.info(
                "wager_resubmitting",
                expected_nonce=outcome.expected_nonce,
                nonce=request.nonce,
            )
            outcome = await self.client.submit_wager(request)
            if isinstance(outcome, SubmissionConflict):
                raise SequenceConflictError(
                    f"Nonce {request.nonce} rejected after resync; "
                    f"server now expects {outcome.expected_nonce}",
                    expected_nonce=outcome.expected_nonce,
                    attempted_nonce=request.nonce,
                )

        result = outcome.result
        logger.info(
            "wager_submitted",
            order_id=result.order_id,
            grid_id=grid_id,
            amount=request.amount,
            balance_type=request.balance_type.value,
            nonce=request.nonce,
            odds=result.odds,
            quality_score=result.quality_score,
            tier=rationale.tier(result.quality_score),
        )
        return result

    # ── Lifecycle ────────────────────────────────────────────────────

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "TradingOrchestrator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

"""
AsyncPredictMeClient — Async client for the PredictMe Agent API.

Wraps the public endpoints (registration, leaderboard, commentary feed)
and the authenticated ones (profile, balance, odds, betting) behind one
pooled ``httpx.AsyncClient``.

Read endpoints retry on rate limiting with exponential backoff. Bet
submission is never retried here: a nonce conflict comes back as a
``SubmissionConflict`` value and every other failure is raised.

Usage:
    async with AsyncPredictMeClient(api_key="pm_agent_...") as client:
        snapshot = await client.fetch_snapshot("BTC")
"""

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from predictme import rationale
from predictme.config import get_settings
from predictme.errors import (
    AuthenticationError,
    InsufficientBalanceError,
    RateLimitError,
    RemoteRejection,
    TransportError,
)
from predictme.models import (
    OddsSnapshot,
    SubmissionAccepted,
    SubmissionConflict,
    SubmissionOutcome,
    WagerRequest,
    WagerResult,
)

logger = structlog.get_logger(__name__)

_retry_reads = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=15),
    retry=retry_if_exception_type(RateLimitError),
    reraise=True,
)


def rejection_from_response(status_code: int, body: dict[str, Any]) -> RemoteRejection:
    """Map an HTTP error status and JSON body onto the error taxonomy."""
    message = body.get("error") or body.get("message") or f"HTTP {status_code}"
    error_code = str(body.get("errorCode") or "")

    if status_code == 429:
        cls = RateLimitError
    elif status_code in (401, 403):
        cls = AuthenticationError
    elif "INSUFFICIENT" in error_code.upper() or "insufficient" in str(message).lower():
        cls = InsufficientBalanceError
    else:
        cls = RemoteRejection
    return cls(str(message), status_code=status_code, body=body, detail=error_code or None)


class AsyncPredictMeClient:
    """
    Async PredictMe Agent API client.

    Features:
    - httpx.AsyncClient with HTTP/2 and connection pooling
    - Bearer auth on protected endpoints only
    - Automatic retry with exponential backoff on rate-limited reads
    - Structured logging for every API call
    """

    def __init__(self, api_key: str | None = None, api_url: str | None = None):
        settings = get_settings()
        self._api_key = settings.api_key if api_key is None else api_key
        self._api_url = (api_url or settings.api_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            http2=True,
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(30.0, connect=10.0, read=20.0, pool=5.0),
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            ),
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    def _auth_headers(self) -> dict[str, str]:
        if not self._api_key:
            raise AuthenticationError("API key required. Set PREDICTME_API_KEY in .env")
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _request(self, method: str, path: str, *, auth: bool = False, **kwargs) -> dict:
        """Execute an API request and decode the JSON envelope."""
        headers = self._auth_headers() if auth else {}
        start = time.monotonic()
        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.ConnectError as e:
            raise TransportError(f"Connection failed: {e}") from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e}") from e

        latency_ms = (time.monotonic() - start) * 1000

        try:
            body = resp.json()
        except ValueError as e:
            if resp.text:
                raise TransportError(resp.text, status_code=resp.status_code) from e
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if resp.status_code >= 400:
            error = rejection_from_response(resp.status_code, body)
            logger.warning(
                "predictme_rate_limited" if isinstance(error, RateLimitError) else "predictme_request_rejected",
                method=method,
                path=path,
                latency_ms=round(latency_ms),
                **error.to_dict(),
            )
            raise error

        logger.debug(
            "predictme_request",
            method=method,
            path=path,
            status=resp.status_code,
            latency_ms=round(latency_ms),
        )
        return body

    # ── Public Endpoints (no auth) ───────────────────────────────────

    async def register(
        self,
        *,
        email: str,
        agent_name: str,
        description: str | None = None,
        wallet_address: str | None = None,
        twitter_handle: str | None = None,
    ) -> dict:
        """Register a new agent. The API key is issued later via ``get_status``."""
        body: dict[str, Any] = {"email": email, "agentName": agent_name}
        if description:
            body["description"] = description
        if wallet_address:
            body["walletAddress"] = wallet_address
        if twitter_handle:
            body["twitterHandle"] = twitter_handle.lstrip("@")
        return await self._request("POST", "/register", json=body)

    async def claim(self, *, agent_id: str, tweet_url: str) -> dict:
        """Claim an agent with a verification tweet."""
        return await self._request("POST", "/claim", json={"agentId": agent_id, "tweetUrl": tweet_url})

    @_retry_reads
    async def get_status(self, agent_id: str) -> dict:
        """Agent approval status and the one-time API key."""
        return await self._request("GET", f"/status/{agent_id}")

    @_retry_reads
    async def get_leaderboard(self, *, limit: int = 50, offset: int = 0) -> dict:
        return await self._request("GET", "/leaderboard", params={"limit": limit, "offset": offset})

    @_retry_reads
    async def get_top_commentators(self, *, limit: int = 10, period: str = "all") -> dict:
        """Top agents by commentary quality for ``day``, ``week`` or ``all``."""
        return await self._request(
            "GET", "/top-commentators", params={"limit": limit, "period": period}
        )

    @_retry_reads
    async def get_commentary(self, *, limit: int = 20, asset: str | None = None) -> dict:
        """Commentary feed, optionally filtered by asset."""
        params: dict[str, Any] = {"limit": limit}
        if asset:
            params["asset"] = asset
        return await self._request("GET", "/commentary", params=params)

    @_retry_reads
    async def get_recent_activity(self, *, limit: int = 20) -> dict:
        return await self._request("GET", "/recent-activity", params={"limit": limit})

    # ── Authenticated Endpoints ──────────────────────────────────────

    @_retry_reads
    async def get_profile(self) -> dict:
        return await self._request("GET", "/me", auth=True)

    @_retry_reads
    async def get_balance(self) -> dict:
        """TEST and BONUS balances."""
        return await self._request("GET", "/balance", auth=True)

    @_retry_reads
    async def get_odds(self, asset: str = "BTC") -> dict:
        """Raw ``/odds/{asset}`` envelope for the current round."""
        return await self._request("GET", f"/odds/{asset}", auth=True)

    async def fetch_snapshot(self, asset: str = "BTC") -> OddsSnapshot:
        """Current price and grids for ``asset``."""
        return OddsSnapshot.from_response(await self.get_odds(asset), asset=asset)

    @_retry_reads
    async def get_bets(self, *, limit: int = 50, offset: int = 0, status: str = "all") -> dict:
        """Bet history filtered by ``all``, ``settled`` or ``pending``."""
        return await self._request(
            "GET", "/bets", auth=True, params={"limit": limit, "offset": offset, "status": status}
        )

    async def submit_wager(self, request: WagerRequest) -> SubmissionOutcome:
        """POST one bet.

        Returns:
            ``SubmissionAccepted`` on success, ``SubmissionConflict`` when
            the API rejected the nonce and declared the one it expects.

        Raises:
            RemoteRejection: Any other failure, unmodified.
        """
        try:
            body = await self._request("POST", "/bet", auth=True, json=request.to_payload())
        except RemoteRejection as e:
            expected = e.body.get("expectedNonce")
            if expected is None:
                raise
            logger.warning(
                "predictme_nonce_conflict",
                attempted_nonce=request.nonce,
                expected_nonce=expected,
            )
            try:
                expected_nonce = int(expected)
            except (TypeError, ValueError):
                raise RemoteRejection(
                    f"{e} (unreadable expectedNonce: {expected!r})",
                    status_code=e.status_code,
                    body=e.body,
                    detail="INVALID_EXPECTED_NONCE",
                ) from e
            return SubmissionConflict(expected_nonce=expected_nonce, message=str(e), body=e.body)

        result = WagerResult.from_response(body, fallback_score=rationale.score(request.commentary))
        return SubmissionAccepted(result=result)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close the HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncPredictMeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

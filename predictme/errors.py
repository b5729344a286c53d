"""
Structured Error Taxonomy — Typed exceptions for the PredictMe agent core.

Design principles:
  - Every error carries `retryable` + `error_code` for automated decisions
  - Hierarchy mirrors the wager flow: Validation → Sequence → Remote
  - HTTP-aware: remote errors keep the status code and decoded body
  - Structured logging friendly: all errors serialize cleanly to JSON
"""

from __future__ import annotations

from typing import Any

__all__ = [
    # Base
    "PredictMeError",
    # Local validation
    "ValidationError",
    "RationaleValidationError",
    "BalancePoolError",
    "EmptyInputError",
    "UnknownStrategyError",
    # Sequencing
    "SequenceConflictError",
    "DurabilityWarning",
    # Remote
    "RemoteRejection",
    "RateLimitError",
    "AuthenticationError",
    "InsufficientBalanceError",
    "TransportError",
]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Base
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class PredictMeError(Exception):
    """Root exception for the agent core.

    Attributes:
        retryable: If True, the caller may retry the operation.
        error_code: Machine-readable code for logs and alerting.
        http_status: Closest HTTP status code for the condition.
    """

    retryable: bool = False
    error_code: str = "PREDICTME_ERROR"
    http_status: int = 500

    def __init__(self, message: str, *, detail: str | None = None):
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize for structured logging."""
        return {
            "error_code": self.error_code,
            "message": str(self),
            "detail": self.detail,
            "retryable": self.retryable,
            "http_status": self.http_status,
        }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Validation Layer — Local checks, never sent over the network
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ValidationError(PredictMeError):
    """Base for every locally detected input problem."""

    error_code = "VALIDATION_ERROR"
    http_status = 422


class RationaleValidationError(ValidationError):
    """Rationale text is empty or shorter than the minimum length."""

    error_code = "RATIONALE_INVALID"

    def __init__(self, message: str, *, length: int = 0, minimum: int = 0, **kwargs):
        self.length = length
        self.minimum = minimum
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["length"] = self.length
        d["minimum"] = self.minimum
        return d


class BalancePoolError(ValidationError):
    """Wager requested a balance pool agents may not draw from."""

    error_code = "BALANCE_POOL_REJECTED"

    def __init__(self, message: str, *, balance_type: str = "", **kwargs):
        self.balance_type = balance_type
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["balance_type"] = self.balance_type
        return d


class EmptyInputError(ValidationError):
    """No priced buckets were available to choose from."""

    error_code = "EMPTY_INPUT"


class UnknownStrategyError(ValidationError):
    """Named strategy is not registered."""

    error_code = "UNKNOWN_STRATEGY"

    def __init__(self, message: str, *, available: list[str] | None = None, **kwargs):
        self.available = available or []
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["available"] = self.available
        return d


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Sequence Layer — Nonce ordering and durability
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class SequenceConflictError(PredictMeError):
    """Server rejected the nonce and declared the value it expected.

    Recovered automatically once by the orchestrator; raised to callers
    only when the resubmission conflicts again.
    """

    retryable = True
    error_code = "INVALID_NONCE"
    http_status = 409

    def __init__(self, message: str, *, expected_nonce: int, attempted_nonce: int | None = None, **kwargs):
        self.expected_nonce = expected_nonce
        self.attempted_nonce = attempted_nonce
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["expected_nonce"] = self.expected_nonce
        d["attempted_nonce"] = self.attempted_nonce
        return d


class DurabilityWarning(PredictMeError):
    """The sequence file could not be written.

    Never raised: the store keeps its in-memory value and records this
    as its last persistence error.
    """

    error_code = "SEQUENCE_NOT_DURABLE"

    def __init__(self, message: str, *, path: str = "", **kwargs):
        self.path = path
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["path"] = self.path
        return d


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Remote Layer — Errors returned by (or on the way to) the Agent API
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class RemoteRejection(PredictMeError):
    """Base for every failure reported by the remote API."""

    error_code = "REMOTE_REJECTION"
    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: dict[str, Any] | None = None,
        **kwargs,
    ):
        self.status_code = status_code
        self.body = body or {}
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["status_code"] = self.status_code
        d["remote_error_code"] = self.body.get("errorCode")
        return d


class RateLimitError(RemoteRejection):
    """API returned 429."""

    retryable = True
    error_code = "RATE_LIMITED"
    http_status = 429


class AuthenticationError(RemoteRejection):
    """Missing or rejected API key."""

    error_code = "AUTHENTICATION_FAILED"
    http_status = 401


class InsufficientBalanceError(RemoteRejection):
    """Selected balance pool cannot cover the wager amount."""

    error_code = "INSUFFICIENT_BALANCE"
    http_status = 400


class TransportError(RemoteRejection):
    """Connection failure, timeout, or an unreadable response body."""

    retryable = True
    error_code = "TRANSPORT_ERROR"
    http_status = 503

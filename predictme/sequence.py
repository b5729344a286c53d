"""
Sequence Store — File-backed nonce for replay-safe bet submission.

The Agent API requires every bet to carry a nonce strictly greater than
the last one it accepted for the same API key. The store keeps the last
issued value in memory and mirrors it to a small text file so a restarted
agent continues past it.

Guarantees:
  - ``advance()`` is atomic within one store instance (single lock)
  - A missing file seeds from the wall clock in milliseconds, so a fresh
    store never reuses small values an earlier run already consumed
  - Write failures never raise: the in-memory value stays authoritative
    and the store is flagged as not durable

Two processes sharing one file are not coordinated.

Usage:
    store = SequenceStore(".predictme-nonce")
    nonce = store.advance()
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import structlog

from predictme.errors import DurabilityWarning

logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class SequenceStore:
    """Persisted, monotonically increasing nonce.

    Args:
        path: File holding the last value as plain decimal text.
        clock: Millisecond clock used to seed a store with no prior value.
    """

    def __init__(self, path: str | Path, *, clock=_now_ms) -> None:
        self._path = Path(path)
        self._clock = clock
        self._value: int | None = None
        self._lock = threading.Lock()
        self.last_persist_error: DurabilityWarning | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def durable(self) -> bool:
        """False once a write has failed and not been followed by a good one."""
        return self.last_persist_error is None

    # ── Public API ───────────────────────────────────────────────────

    def current_or_init(self) -> int:
        """Last persisted value, or a clock seed when there is none."""
        with self._lock:
            return self._load()

    def advance(self) -> int:
        """Issue the next nonce: current + 1, persisted before returning."""
        with self._lock:
            self._value = self._load() + 1
            self._save()
            return self._value

    def reset(self, value: int) -> None:
        """Overwrite the stored value with one the server declared.

        Only for recovering from a nonce conflict; the next ``advance()``
        returns ``value + 1``.
        """
        if value < 0:
            raise ValueError(f"Sequence value must be non-negative, got {value}")
        with self._lock:
            previous = self._value
            self._value = int(value)
            self._save()
        logger.info("sequence_reset", previous=previous, value=value, path=str(self._path))

    # ── Internals ────────────────────────────────────────────────────

    def _load(self) -> int:
        if self._value is not None:
            return self._value

        try:
            raw = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            raw = ""
        except OSError as e:
            logger.warning("sequence_read_failed", path=str(self._path), error=str(e))
            raw = ""

        try:
            stored = int(raw)
        except ValueError:
            stored = 0

        if stored > 0:
            self._value = stored
            logger.debug("sequence_loaded", value=stored, path=str(self._path))
        else:
            self._value = self._clock()
            logger.info("sequence_seeded", value=self._value, path=str(self._path))
        return self._value

    def _save(self) -> None:
        try:
            self._path.write_text(str(self._value), encoding="utf-8")
        except OSError as e:
            self.last_persist_error = DurabilityWarning(
                f"Could not persist nonce {self._value} to {self._path}: {e}",
                path=str(self._path),
                detail=type(e).__name__,
            )
            logger.warning(
                "sequence_persist_failed",
                value=self._value,
                **self.last_persist_error.to_dict(),
            )
            return
        self.last_persist_error = None

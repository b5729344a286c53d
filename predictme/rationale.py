"""
Rationale Engine — Commentary validation, templates, and quality scoring.

Every bet carries free-text commentary explaining the call. The API
rejects commentary shorter than 20 characters and keeps at most 500.
Quality scoring mirrors the server-side heuristic so an agent can
check its text before betting:

    length      10 / 20 / 30 / 40 / 50   at 0 / 40 / 60 / 100 / 200+ chars
    diversity    0 / 10 / 20 / 25        at 0 / 10 / 15 / 25+ unique words
    vocabulary   0 /  5 / 15 / 25        at 0 / 1 / 2 / 4+ technical terms

Template variables: {round}, {price}, {asset}, {odds}, {gridLevel}, {strategy}
"""

from __future__ import annotations

from typing import Any, Mapping

from predictme.models import COMMENTARY_MAX_LENGTH, ValidationResult

MIN_LENGTH = 20
MAX_LENGTH = COMMENTARY_MAX_LENGTH

TEMPLATE_VARIABLES = ("round", "price", "asset", "odds", "gridLevel", "strategy")
MISSING_VALUE = "?"

TECHNICAL_TERMS = frozenset(
    {
        "rsi", "macd", "ema", "sma", "bollinger", "fibonacci", "fib",
        "support", "resistance", "breakout", "breakdown", "divergence",
        "oversold", "overbought", "volume", "momentum", "trend",
        "bullish", "bearish", "consolidation", "reversal", "wedge",
        "channel", "moving average", "funding rate", "open interest",
        "liquidation", "whale", "accumulation", "distribution",
    }
)

_EXAMPLES = (
    "Good examples:\n"
    '  "BTC testing $95k support with RSI at 28, expecting bounce to $97k"\n'
    '  "ETH breaking out of consolidation, volume spike confirms momentum"\n\n'
    "Bad examples (rejected):\n"
    '  "bullish" — too short/vague\n'
    '  "going up" — no reasoning'
)

# (threshold, points), highest threshold first
_LENGTH_POINTS = ((200, 50), (100, 40), (60, 30), (40, 20), (0, 10))
_DIVERSITY_POINTS = ((25, 25), (15, 20), (10, 10))
_VOCABULARY_POINTS = ((4, 25), (2, 15), (1, 5))
_TIERS = ((90, "Diamond"), (75, "Gold"), (60, "Silver"), (40, "Bronze"))


def _points(count: int, table: tuple[tuple[int, int], ...]) -> int:
    for threshold, points in table:
        if count >= threshold:
            return points
    return 0


# ── Validation ───────────────────────────────────────────────────────


def validate(commentary: str | None) -> ValidationResult:
    """Check commentary meets the API minimum. Over-long text is not an error."""
    length = len((commentary or "").strip())
    if length == 0:
        return ValidationResult(
            valid=False,
            error=f"Commentary is required (0 chars, min {MIN_LENGTH}).\n\n{_EXAMPLES}",
        )

    if length < MIN_LENGTH:
        return ValidationResult(
            valid=False,
            error=f"Commentary too short ({length} chars, min {MIN_LENGTH}). Add more detail about WHY.",
        )
    return ValidationResult(valid=True)


# ── Templates ────────────────────────────────────────────────────────


def render(template: str | None, context: Mapping[str, Any] | None = None) -> str:
    """Substitute the template variables, then cap at 500 characters.

    Missing or empty values render as ``?``. Braced names outside the
    fixed variable set are left untouched.
    """
    if not template:
        return ""
    context = context or {}
    text = template
    for name in TEMPLATE_VARIABLES:
        value = context.get(name)
        replacement = MISSING_VALUE if value is None or value == "" else str(value)
        text = text.replace("{" + name + "}", replacement)
    return text[:MAX_LENGTH]


# ── Scoring ──────────────────────────────────────────────────────────


def count_terms(commentary: str) -> int:
    """Distinct technical terms present, case-insensitive substring match."""
    lower = commentary.lower()
    return sum(1 for term in TECHNICAL_TERMS if term in lower)


def score(commentary: str | None) -> int:
    """Local quality score, 0–100."""
    if not commentary:
        return 0
    text = commentary.strip()

    total = _points(len(text), _LENGTH_POINTS)
    total += _points(len(set(text.lower().split())), _DIVERSITY_POINTS)
    total += _points(count_terms(text), _VOCABULARY_POINTS)
    return min(100, total)


def tier(quality_score: int) -> str | None:
    """Badge tier for a quality score, or None below Bronze."""
    for threshold, name in _TIERS:
        if quality_score >= threshold:
            return name
    return None

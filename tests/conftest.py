import sys

import pytest
import structlog

from predictme.config import get_settings
from predictme.models import PricedBucket


def make_bucket(
    grid_id: str = "BTC_1718000000_0",
    *,
    low: str = "95000",
    high: str = "95100",
    odds: str = "2.00",
    probability: str = "0.50",
    expiry_at: int = 1718000300000,
) -> PricedBucket:
    """Build a grid the way the API returns it (wire field names)."""
    return PricedBucket.model_validate(
        {
            "gridIdStr": grid_id,
            "strikePriceMin": low,
            "strikePriceMax": high,
            "odds": odds,
            "impliedProbability": probability,
            "expiryAt": expiry_at,
        }
    )


@pytest.fixture
def grids() -> list[PricedBucket]:
    """Five grids around a 95,050 reference price."""
    return [
        make_bucket("BTC_1718000000_-2", low="94800", high="94900", odds="8.50", probability="0.10"),
        make_bucket("BTC_1718000000_-1", low="94900", high="95000", odds="3.20", probability="0.28"),
        make_bucket("BTC_1718000000_0", low="95000", high="95100", odds="1.90", probability="0.47"),
        make_bucket("BTC_1718000000_1", low="95100", high="95200", odds="3.60", probability="0.25"),
        make_bucket("BTC_1718000000_2", low="95200", high="95300", odds="9.00", probability="0.09"),
    ]


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep developer .env files and PREDICTME_* variables out of the tests."""
    for name in (
        "PREDICTME_API_KEY",
        "PREDICTME_AGENT_API_KEY",
        "PREDICTME_API_URL",
        "PREDICTME_AGENT_API_URL",
        "PREDICTME_NONCE_PATH",
        "PREDICTME_LOG_LEVEL",
        "PREDICTME_LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_structlog():
    """Drop any logger configuration a test installed (e.g. via ``cli.main``).

    ``setup_logging`` binds the current ``sys.stderr``, which under capsys is
    a capture stream closed at the end of that test. Before each test, point
    structlog's default logger at stderr so log lines stay out of stdout.
    """
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(file=sys.stderr))
    yield
    structlog.reset_defaults()

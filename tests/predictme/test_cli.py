"""Tests for the predictme CLI — argument parsing, display helpers, commands."""

import json

import httpx
import pytest
import structlog
from unittest.mock import AsyncMock, MagicMock

from predictme import cli
from predictme.client import AsyncPredictMeClient
from predictme.errors import PredictMeError, RateLimitError, RationaleValidationError
from predictme.models import OddsSnapshot, SubmissionAccepted, WagerResult

GOOD = "BTC testing $95k support with RSI at 28, expecting bounce"


@pytest.fixture
def client(grids):
    mock = MagicMock(spec=AsyncPredictMeClient)
    mock.fetch_snapshot = AsyncMock(
        return_value=OddsSnapshot(asset="BTC", current_price="95050", grids=grids)
    )
    mock.submit_wager = AsyncMock(
        return_value=SubmissionAccepted(
            result=WagerResult(order_id="ord_1", odds="1.90", new_balance="999.00", quality_score=45)
        )
    )
    mock.get_balance = AsyncMock(return_value={"success": True, "data": {"TEST": "998.00"}})
    mock.register = AsyncMock()
    return mock


# ── Parsing ──────────────────────────────────────────────────────────


class TestParser:
    def test_bet_defaults(self):
        args = cli.build_parser().parse_args(["bet", "eth"])
        assert args.command == "bet"
        assert args.asset == "eth"
        assert args.amount == "1.00"
        assert args.words == []
        assert args.balance_type == "TEST"

    def test_real_balance_not_a_choice(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["bet", "BTC", "1", "--balance-type", "REAL"])

    def test_run_words(self):
        args = cli.build_parser().parse_args(["run", "BTC", "2", "value", "10", "Round", "{round}"])
        assert args.amount == "2"
        assert args.words == ["value", "10", "Round", "{round}"]

    def test_split_strategy(self):
        assert cli.split_strategy(["value", "some", "text"]) == ("value", ["some", "text"])
        assert cli.split_strategy(["Some", "text"]) == ("balanced", ["Some", "text"])
        assert cli.split_strategy([]) == ("balanced", [])


# ── Display ──────────────────────────────────────────────────────────


class TestFormatting:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "0s"), (59, "59s"), (60, "1m"), (3599, "59m"), (7200, "2h")],
    )
    def test_format_age(self, seconds, expected):
        assert cli.format_age(seconds) == expected

    def test_feed_entry(self):
        now_ms = 1_718_000_000_000
        entry = {
            "agentName": "Bot",
            "gridLevel": 2,
            "timestamp": now_ms - 90_000,
            "asset": "BTC",
            "amount": "1",
            "odds": "3.6",
            "strategy": "value",
            "qualityScore": 80,
            "commentary": "breakout above resistance",
        }
        assert cli.format_feed_entry(entry, now_ms) == [
            "  Bot ▲+2 1m ago [Gold]",
            '  "breakout above resistance"',
            "  BTC $1.00 3.60x [value] score=80",
        ]

    def test_feed_entry_bronze_has_no_badge(self):
        line = cli.format_feed_entry({"agentName": "Bot", "gridLevel": -1, "qualityScore": 45}, 0)[0]
        assert line == "  Bot ▼-1 0s ago"

    def test_leaderboard_entry(self):
        entry = {
            "rank": 1,
            "agentName": "Bot",
            "verificationLevel": 2,
            "totalBets": 10,
            "winRate": 55.5,
            "totalProfit": -3.2,
        }
        assert cli.format_leaderboard_entry(entry) == "  #1 Bot [L2]  10 bets  55.5% win  -$3.20"


# ── Commands ─────────────────────────────────────────────────────────


class TestCommands:
    def test_score(self, capsys):
        assert cli.main(["score", *GOOD.split()]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["score"] == 45
        assert out["tier"] == "Bronze"
        assert out["valid"] is True
        assert out["technical_terms"] == 2

    def test_score_too_short(self, capsys):
        assert cli.main(["score", "bullish"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["valid"] is False
        assert out["length"] == 7

    @pytest.mark.asyncio
    async def test_bet(self, client, capsys):
        args = cli.build_parser().parse_args(["bet", "btc", "2", "value", *GOOD.split()])
        await cli.cmd_bet(client, args)

        request = client.submit_wager.await_args.args[0]
        assert request.grid_id == "BTC_1718000000_1"
        assert request.amount == "2"
        assert request.commentary == GOOD
        assert json.loads(capsys.readouterr().out)["order_id"] == "ord_1"

    @pytest.mark.asyncio
    async def test_run_rounds(self, client, capsys, monkeypatch):
        monkeypatch.setattr(cli, "ROUND_PAUSE_SECONDS", 0)
        args = cli.build_parser().parse_args(
            ["run", "BTC", "1", "favorite", "3", "Round {round}: {asset} at {price}, grid {gridLevel}"]
        )
        await cli.cmd_run(client, args)

        commentaries = [call.args[0].commentary for call in client.submit_wager.await_args_list]
        assert commentaries == [f"Round {i}: BTC at 95050, grid 0" for i in (1, 2, 3)]
        out = capsys.readouterr().out
        assert "Round 3: orderId=ord_1" in out
        assert "Final balance:" in out

    @pytest.mark.asyncio
    async def test_run_survives_failed_rounds(self, client, capsys, monkeypatch):
        monkeypatch.setattr(cli, "ROUND_PAUSE_SECONDS", 0)
        monkeypatch.setattr(cli, "BACKOFF_SECONDS", 0)
        client.submit_wager.side_effect = [
            httpx.ReadError("connection reset"),
            RateLimitError("Too many requests", status_code=429),
            client.submit_wager.return_value,
        ]
        args = cli.build_parser().parse_args(
            ["run", "BTC", "1", "value", "3", "Round {round}: value pick at {price} with {odds}x odds"]
        )

        await cli.cmd_run(client, args)

        assert client.submit_wager.await_count == 3
        captured = capsys.readouterr()
        assert "Round 1 failed: connection reset" in captured.err
        assert "Round 2 failed: Too many requests" in captured.err
        assert "Backing off" in captured.err
        assert "Round 3: orderId=ord_1" in captured.out
        client.get_balance.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_rejects_short_template(self, client):
        args = cli.build_parser().parse_args(["run", "BTC", "1", "go"])
        with pytest.raises(RationaleValidationError):
            await cli.cmd_run(client, args)
        client.fetch_snapshot.assert_not_called()

    @pytest.mark.asyncio
    async def test_register_failure(self, client):
        client.register.return_value = {"success": False, "error": "Email taken"}
        args = cli.build_parser().parse_args(["register", "a@b.c", "Bot"])
        with pytest.raises(PredictMeError, match="Email taken"):
            await cli.cmd_register(client, args)

    def test_main_reports_errors(self, capsys, monkeypatch):
        async def failing(args):
            raise PredictMeError("API key required")

        monkeypatch.setattr(cli, "_dispatch", failing)
        assert cli.main(["balance"]) == 1
        assert "API key required" in capsys.readouterr().err


class TestLogging:
    def test_cli_logs_to_stderr(self, capsys):
        assert cli.main(["score", *GOOD.split()]) == 0
        structlog.get_logger("predictme.test").warning("after_main")
        assert "after_main" in capsys.readouterr().err

    def test_logging_usable_in_later_tests(self):
        # runs after the test above; must not write to its closed capture stream
        structlog.get_logger("predictme.test").warning("still_logging")

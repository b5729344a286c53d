#!/usr/bin/env python3
"""
PredictMe CLI — Bet, browse, and score commentary from the terminal.

Usage:
    predictme balance
    predictme odds BTC
    predictme bet BTC 1.00 value "BTC testing $95k support with RSI at 28"
    predictme run BTC 1 balanced 10 "Round {round}: {asset} at {price}, grid {gridLevel}"
    predictme feed ETH 10
    predictme register you@example.com MyBot "Momentum bot" @mybot
    predictme score "ETH breaking out of consolidation, volume confirms momentum"

Commentary (required, 20-500 chars):
    GOOD: "BTC testing $95k support with RSI at 28, expecting bounce"
    BAD:  "bullish" — too short

Template vars: {round}, {price}, {asset}, {odds}, {gridLevel}, {strategy}
Env: PREDICTME_API_KEY=pm_agent_...
"""

import argparse
import asyncio
import json
import sys
import time

from predictme import rationale
from predictme.client import AsyncPredictMeClient
from predictme.config import get_settings
from predictme.errors import (
    InsufficientBalanceError,
    PredictMeError,
    RateLimitError,
    RationaleValidationError,
)
from predictme.logging import level_from_name, setup_logging
from predictme.strategy import STRATEGIES, Named
from predictme.trader import TradingOrchestrator
from predictme.version import VERSION

MAX_ROUNDS = 50
ROUND_PAUSE_SECONDS = 11.0
BACKOFF_SECONDS = 30.0


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def split_strategy(words: list[str]) -> tuple[str, list[str]]:
    """Leading word is the strategy when it names one; else ``balanced``."""
    if words and words[0] in STRATEGIES:
        return words[0], words[1:]
    return "balanced", words


def format_age(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    return f"{seconds // 3600}h"


def format_feed_entry(entry: dict, now_ms: int) -> list[str]:
    """Three display lines for one commentary feed entry."""
    age = format_age(max(0, (now_ms - int(entry.get("timestamp", now_ms))) // 1000))
    level = int(entry.get("gridLevel", 0))
    direction = f"▲+{level}" if level > 0 else f"▼{level}" if level < 0 else "●0"
    quality = entry.get("qualityScore")
    tier = rationale.tier(quality) if quality is not None else None
    badge = f" [{tier}]" if tier and tier != "Bronze" else ""

    stats = f"  {entry.get('asset', '?')} ${float(entry.get('amount', 0)):.2f} {float(entry.get('odds', 0)):.2f}x"
    if entry.get("strategy"):
        stats += f" [{entry['strategy']}]"
    if quality is not None:
        stats += f" score={quality}"

    return [
        f"  {entry.get('agentName', '?')} {direction} {age} ago{badge}",
        f"  \"{entry.get('commentary', '')}\"",
        stats,
    ]


def format_leaderboard_entry(entry: dict) -> str:
    pnl = float(entry.get("totalProfit", 0))
    pnl_str = f"+${pnl:.2f}" if pnl >= 0 else f"-${abs(pnl):.2f}"
    return (
        f"  #{entry.get('rank')} {entry.get('agentName')} [L{entry.get('verificationLevel', 0)}]"
        f"  {entry.get('totalBets', 0)} bets  {float(entry.get('winRate', 0)):.1f}% win  {pnl_str}"
    )


# ── Commands ─────────────────────────────────────────────────────────


async def cmd_status(client: AsyncPredictMeClient, args) -> None:
    _print_json(await client.get_status(args.agent_id))


async def cmd_feed(client: AsyncPredictMeClient, args) -> None:
    asset = args.asset.upper() if args.asset and args.asset.lower() != "all" else None
    res = await client.get_commentary(limit=args.limit, asset=asset)
    entries = res.get("data") or []
    if not entries:
        print("No commentary yet.")
        return
    print(f"\n  Feeds{f' ({asset})' if asset else ''} — {len(entries)} entries\n")
    now_ms = time.time_ns() // 1_000_000
    for entry in entries:
        print("\n".join(format_feed_entry(entry, now_ms)))
        print()


async def cmd_leaderboard(client: AsyncPredictMeClient, args) -> None:
    res = await client.get_leaderboard(limit=args.limit)
    entries = res.get("data") or []
    if not entries:
        print("No agents on leaderboard yet.")
        return
    print(f"\n  Agent Leaderboard — Top {len(entries)}\n")
    for entry in entries:
        print(format_leaderboard_entry(entry))
    print()


async def cmd_balance(client: AsyncPredictMeClient, args) -> None:
    _print_json(await client.get_balance())


async def cmd_me(client: AsyncPredictMeClient, args) -> None:
    _print_json(await client.get_profile())


async def cmd_odds(client: AsyncPredictMeClient, args) -> None:
    _print_json(await client.get_odds(args.asset.upper()))


async def cmd_bets(client: AsyncPredictMeClient, args) -> None:
    _print_json(await client.get_bets(limit=args.limit))


async def cmd_register(client: AsyncPredictMeClient, args) -> None:
    print(f'Registering agent "{args.agent_name}"...')
    res = await client.register(
        email=args.email,
        agent_name=args.agent_name,
        description=args.description,
        twitter_handle=args.twitter_handle,
    )
    data = res.get("data")
    if not (res.get("success") and data):
        raise PredictMeError(f"Registration failed: {res.get('error') or res.get('message') or 'Unknown error'}")

    agent_id = data.get("agentId")
    print("\n  Agent registered!")
    print(f"  Agent ID: {agent_id}")
    print("\n  Next steps:")
    print("  1. (Optional) Tweet about your agent for verification")
    print("  2. Wait for admin approval")
    print(f"  3. Poll for API key: predictme status {agent_id}")
    print("  4. Save your API key to .env immediately (shown once!)")


async def cmd_bet(client: AsyncPredictMeClient, args) -> None:
    strategy, words = split_strategy(args.words)
    trader = TradingOrchestrator(client)
    result = await trader.pick_and_bet(
        asset=args.asset.upper(),
        amount=args.amount,
        balance_type=args.balance_type,
        strategy=Named(strategy),
        commentary=" ".join(words),
    )
    _print_json(result.model_dump())


async def cmd_run(client: AsyncPredictMeClient, args) -> None:
    strategy, words = split_strategy(args.words)
    rounds = 5
    if words and words[0].isdigit():
        rounds = int(words[0]) or 5
        words = words[1:]
    rounds = min(rounds, MAX_ROUNDS)
    template = " ".join(words)

    check = rationale.validate(template)
    if not check.valid:
        raise RationaleValidationError(
            check.error, length=len(template.strip()), minimum=rationale.MIN_LENGTH
        )

    asset = args.asset.upper()
    print(f"Running {rounds} rounds: {asset} ${args.amount} strategy={strategy}")
    print(f'Commentary template: "{template}"\n')

    trader = TradingOrchestrator(client)
    for i in range(rounds):
        try:
            result = await trader.pick_and_bet(
                asset=asset,
                amount=args.amount,
                balance_type=args.balance_type,
                strategy=Named(strategy),
                commentary=template,
                template_context={"round": str(i + 1)},
            )
            line = (
                f"Round {i + 1}: orderId={result.order_id} grid={result.grid_id} "
                f"odds={result.odds} balance={result.new_balance} quality={result.quality_score}"
            )
            print(line)
        except Exception as e:
            print(f"Round {i + 1} failed: {e}", file=sys.stderr)
            if isinstance(e, (RateLimitError, InsufficientBalanceError)):
                print(f"  Backing off {BACKOFF_SECONDS:g}s...", file=sys.stderr)
                await asyncio.sleep(BACKOFF_SECONDS)
                continue
        if i < rounds - 1:
            await asyncio.sleep(ROUND_PAUSE_SECONDS)

    balance = await client.get_balance()
    print("\nFinal balance:", json.dumps(balance.get("data"), default=str))


def cmd_score(args) -> None:
    text = " ".join(args.words)
    score = rationale.score(text)
    check = rationale.validate(text)
    _print_json(
        {
            "length": len(text.strip()),
            "valid": check.valid,
            "error": check.error,
            "score": score,
            "tier": rationale.tier(score),
            "technical_terms": rationale.count_terms(text),
        }
    )


COMMANDS = {
    "status": cmd_status,
    "feed": cmd_feed,
    "leaderboard": cmd_leaderboard,
    "balance": cmd_balance,
    "me": cmd_me,
    "odds": cmd_odds,
    "bets": cmd_bets,
    "register": cmd_register,
    "bet": cmd_bet,
    "run": cmd_run,
}


# ── Parser ───────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="predictme",
        description="PredictMe Agent CLI",
        epilog="Env: PREDICTME_API_KEY=pm_agent_...   "
        "Template vars: {round}, {price}, {asset}, {odds}, {gridLevel}, {strategy}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("balance", help="Show TEST/BONUS balances")
    subparsers.add_parser("me", help="Agent profile & stats")

    odds = subparsers.add_parser("odds", help="Current grids & odds")
    odds.add_argument("asset", nargs="?", default="BTC")

    bets = subparsers.add_parser("bets", help="Bet history")
    bets.add_argument("limit", nargs="?", type=int, default=20)

    status = subparsers.add_parser("status", help="Check agent status (no key needed)")
    status.add_argument("agent_id")

    feed = subparsers.add_parser("feed", help="Browse agent reasoning feed (no key needed)")
    feed.add_argument("asset", nargs="?", default=None)
    feed.add_argument("limit", nargs="?", type=int, default=20)

    leaderboard = subparsers.add_parser("leaderboard", help="Agent rankings (no key needed)")
    leaderboard.add_argument("--limit", type=int, default=20)

    register = subparsers.add_parser("register", help="One-time agent registration")
    register.add_argument("email")
    register.add_argument("agent_name")
    register.add_argument("description", nargs="?", default="")
    register.add_argument("twitter_handle", nargs="?", default="")

    bet = subparsers.add_parser("bet", help="Place a bet with reasoning")
    bet.add_argument("asset")
    bet.add_argument("amount", nargs="?", default="1.00")
    bet.add_argument("words", nargs="*", metavar="[strategy] commentary")
    bet.add_argument("--balance-type", default="TEST", choices=["TEST", "BONUS"])

    run = subparsers.add_parser("run", help="Continuous trading loop")
    run.add_argument("asset", nargs="?", default="BTC")
    run.add_argument("amount", nargs="?", default="1")
    run.add_argument("words", nargs="*", metavar="[strategy] [rounds] commentary")
    run.add_argument("--balance-type", default="TEST", choices=["TEST", "BONUS"])

    score = subparsers.add_parser("score", help="Score commentary locally")
    score.add_argument("words", nargs="+")

    return parser


async def _dispatch(args) -> None:
    settings = get_settings()
    async with AsyncPredictMeClient(settings.api_key, settings.api_url) as client:
        await COMMANDS[args.command](client, args)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(level=level_from_name(settings.log_level), json_output=settings.log_json)

    try:
        if args.command == "score":
            cmd_score(args)
        else:
            asyncio.run(_dispatch(args))
    except PredictMeError as e:
        print(str(e), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

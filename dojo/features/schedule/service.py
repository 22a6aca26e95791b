from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dojo.core.errors import ValidationError
from dojo.models.challenge import Category, DayAssignment, Difficulty


EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)
ONE_DAY = timedelta(days=1)

# Rotation order matters: category = day_index mod len(CATEGORIES)
CATEGORIES = (
    Category(
        "btc",
        "BTC Fundamentals",
        "HODL waves, UTXO age bands, exchange reserves, miner behavior, SOPR, realized price, MVRV",
    ),
    Category(
        "eth",
        "ETH Fundamentals",
        "staking flows, validator queue, EIP-1559 burn, blob fees, LST dominance, restaking risks",
    ),
    Category(
        "whale",
        "Whale Tracking",
        "wallet clustering, exchange inflows/outflows, OTC desk signals, accumulation patterns, insider timing",
    ),
    Category(
        "defi",
        "DeFi Analytics",
        "TVL flows, liquidation cascades, yield farming incentives, protocol revenue, ve-token governance, bad debt",
    ),
    Category(
        "nft",
        "NFT Markets",
        "wash trading patterns, floor price manipulation, royalty evasion, collection lifecycle, blue-chip divergence",
    ),
    Category(
        "l2",
        "L2 & Mempool",
        "bridge flows, MEV extraction, sequencer centralization, gas arbitrage, rollup proof delays",
    ),
    Category(
        "macro",
        "Cross-Chain Macro",
        "stablecoin dominance, BTC correlation with TradFi, regulatory flow impact, stablecoin depegs, cross-chain contagion",
    ),
)

DIFFICULTIES = (Difficulty.BEGINNER, Difficulty.INTERMEDIATE, Difficulty.ADVANCED)

DEFAULT_ANGLES = "general onchain patterns"


def category_angles(category_id: str) -> str:
    for category in CATEGORIES:
        if category.id == category_id:
            return category.angles
    return DEFAULT_ANGLES


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(now: Optional[datetime]) -> datetime:
    moment = now or utc_now()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def base_day_index(now: Optional[datetime] = None) -> int:
    """1-based count of UTC days since the epoch, today included."""
    return (_as_utc(now) - EPOCH) // ONE_DAY + 1


def assign(offset_days: int = 0, now: Optional[datetime] = None) -> DayAssignment:
    """Deterministic (category, difficulty, day_index) for a day offset.

    Every client computing the same offset on the same UTC day gets the same
    triple without coordination.
    """
    day_index = base_day_index(now) + offset_days
    category = CATEGORIES[day_index % len(CATEGORIES)]
    difficulty = DIFFICULTIES[(day_index // len(CATEGORIES)) % len(DIFFICULTIES)]
    return DayAssignment(category=category, difficulty=difficulty, day_index=day_index)


def require_scheduled(assignment: DayAssignment) -> DayAssignment:
    """Reject slots before the first challenge day (day_index < 1)."""
    if assignment.day_index < 1:
        raise ValidationError(f"offset lands before the first challenge day (day {assignment.day_index})")
    return assignment


def utc_today(now: Optional[datetime] = None) -> date:
    return _as_utc(now).date()


def today_key(now: Optional[datetime] = None) -> str:
    return utc_today(now).isoformat()


def cache_key(offset_days: int = 0, now: Optional[datetime] = None) -> str:
    """Stable slot key: the ISO date for today, offset_<day_index> otherwise."""
    if offset_days == 0:
        return today_key(now)
    return f"offset_{base_day_index(now) + offset_days}"

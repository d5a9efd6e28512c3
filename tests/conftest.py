"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from market_mirror.processor.constants import ReportingState
from market_mirror.storage.database import MirrorStore
from market_mirror.storage.models import Base
from market_mirror.storage.repos import FeeWindowDTO, FeeWindowRepository, MarketDTO, MarketRepository

UNIVERSE = "0x" + "1" * 40
MARKET = "0x" + "a" * 40
OTHER_MARKET = "0x" + "b" * 40
FEE_WINDOW = "0x" + "f" * 40
REPORTER_A = "0x" + "2" * 40
REPORTER_B = "0x" + "3" * 40
TOKEN = "0x" + "4" * 40

YES = (0, 10000)
NO = (10000, 0)


# ============================================================================
# Store
# ============================================================================


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:
    """Create an async session for testing."""
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded_session(async_session: AsyncSession) -> AsyncSession:
    """Session with one market in dispute and an active fee window."""
    await MarketRepository(async_session).insert(
        MarketDTO(
            market_id=MARKET,
            universe=UNIVERSE,
            reporting_state=ReportingState.CROWDSOURCING_DISPUTE.value,
        )
    )
    await FeeWindowRepository(async_session).insert(
        FeeWindowDTO(fee_window=FEE_WINDOW, universe=UNIVERSE, is_active=True)
    )
    await async_session.commit()
    return async_session


@pytest.fixture
async def store(tmp_path: Path):
    """File-backed store whose units of work really commit."""
    mirror = MirrorStore(f"sqlite+aiosqlite:///{tmp_path / 'mirror.db'}")
    await mirror.create_schema()
    yield mirror
    await mirror.dispose()


async def _snapshot(session: AsyncSession) -> dict[str, list[tuple[str, ...]]]:
    state: dict[str, list[tuple[str, ...]]] = {}
    for table in Base.metadata.sorted_tables:
        columns = [c for c in table.columns if c.name not in ("id", "created_at")]
        rows = (await session.execute(sa.select(*columns))).all()
        state[table.name] = sorted(tuple(str(v) for v in row) for row in rows)
    return state


@pytest.fixture
def snapshot() -> Callable[[AsyncSession], Awaitable[dict[str, list[tuple[str, ...]]]]]:
    """Comparable dump of every table, ignoring surrogate keys and timestamps."""
    return _snapshot


# ============================================================================
# Decoded logs
# ============================================================================


class LogFactory:
    """Builds decoded logs with unique (transactionHash, logIndex) positions."""

    def __init__(self) -> None:
        self._counter = 0

    def _meta(self, block_number: int) -> dict[str, Any]:
        self._counter += 1
        return {
            "blockNumber": block_number,
            "transactionHash": "0x" + format(self._counter, "064x"),
            "logIndex": self._counter % 7,
        }

    def created(
        self,
        crowdsourcer: str,
        numerators: Sequence[int] = YES,
        *,
        market: str = MARKET,
        invalid: bool = False,
        size: int = 1000,
        block_number: int = 100,
    ) -> dict[str, Any]:
        return {
            **self._meta(block_number),
            "universe": UNIVERSE,
            "market": market,
            "disputeCrowdsourcer": crowdsourcer,
            "payoutNumerators": list(numerators),
            "size": str(size),
            "invalid": invalid,
        }

    def contribution(
        self,
        crowdsourcer: str,
        reporter: str,
        amount: int,
        *,
        market: str = MARKET,
        block_number: int = 101,
    ) -> dict[str, Any]:
        return {
            **self._meta(block_number),
            "universe": UNIVERSE,
            "market": market,
            "disputeCrowdsourcer": crowdsourcer,
            "reporter": reporter,
            "amountStaked": str(amount),
        }

    def completed(self, crowdsourcer: str, *, market: str = MARKET, block_number: int = 102) -> dict[str, Any]:
        return {
            **self._meta(block_number),
            "universe": UNIVERSE,
            "market": market,
            "disputeCrowdsourcer": crowdsourcer,
        }

    def redeemed(
        self,
        crowdsourcer: str,
        reporter: str,
        amount: int,
        *,
        market: str = MARKET,
        block_number: int = 300,
    ) -> dict[str, Any]:
        return {
            **self._meta(block_number),
            "universe": UNIVERSE,
            "market": market,
            "disputeCrowdsourcer": crowdsourcer,
            "reporter": reporter,
            "amountRedeemed": str(amount),
            "repReceived": str(amount * 2),
            "reportingFeesReceived": "7",
        }

    def transfer(
        self,
        sender: str,
        recipient: str,
        value: int,
        *,
        token: str = TOKEN,
        token_type: str | None = None,
        market: str | None = None,
        block_number: int = 200,
    ) -> dict[str, Any]:
        log: dict[str, Any] = {
            **self._meta(block_number),
            "token": token,
            "from": sender,
            "to": recipient,
            "value": str(value),
        }
        if token_type is not None:
            log["tokenType"] = token_type
        if market is not None:
            log["market"] = market
        return log


@pytest.fixture
def logs() -> LogFactory:
    return LogFactory()

"""Tests for database connection management."""

from decimal import Decimal

import pytest
import sqlalchemy as sa

from market_mirror.config import DatabaseSettings
from market_mirror.storage.database import MirrorStore, normalize_async_database_url
from market_mirror.storage.repos import BalanceRepository

TOKEN = "0x" + "4" * 40
OWNER = "0x" + "5" * 40


def test_sync_postgres_url_is_upgraded() -> None:
    assert normalize_async_database_url("postgresql://u:p@db/mirror") == "postgresql+asyncpg://u:p@db/mirror"


def test_async_url_is_unchanged() -> None:
    url = "sqlite+aiosqlite:///mirror.db"

    assert normalize_async_database_url(url) == url


@pytest.mark.asyncio
async def test_session_commits_on_success(store: MirrorStore) -> None:
    async with store.unit_of_work() as session:
        await BalanceRepository(session).set_balance(TOKEN, OWNER, Decimal(3))

    async with store.unit_of_work() as session:
        assert await BalanceRepository(session).get_balance(TOKEN, OWNER) == Decimal(3)


@pytest.mark.asyncio
async def test_session_rolls_back_on_error(store: MirrorStore) -> None:
    with pytest.raises(RuntimeError):
        async with store.unit_of_work() as session:
            await BalanceRepository(session).set_balance(TOKEN, OWNER, Decimal(3))
            raise RuntimeError("processing failed")

    async with store.unit_of_work() as session:
        assert await BalanceRepository(session).get_balance(TOKEN, OWNER) == Decimal(0)


@pytest.mark.asyncio
async def test_schema_has_all_tables(store: MirrorStore) -> None:
    async with store.unit_of_work() as session:
        rows = await session.execute(sa.text("SELECT name FROM sqlite_master WHERE type = 'table'"))
        tables = {row[0] for row in rows}

    assert {
        "markets",
        "payouts",
        "fee_windows",
        "initial_reports",
        "crowdsourcers",
        "disputes",
        "crowdsourcer_redeemed",
        "transfers",
        "balances",
    } <= tables


def test_from_settings_uses_async_driver() -> None:
    settings = DatabaseSettings(DATABASE_URL="postgresql://mirror@localhost/mirror")

    store = MirrorStore.from_settings(settings)

    assert store.database_url == "postgresql+asyncpg://mirror@localhost/mirror"


@pytest.mark.asyncio
async def test_dispose_is_idempotent(store: MirrorStore) -> None:
    await store.dispose()
    await store.dispose()

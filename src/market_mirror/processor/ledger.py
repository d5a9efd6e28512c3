"""Token balance ledger.

Balances are never checked for sign here. A transiently negative balance
means logs arrived out of order, which is the caller's concern.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from market_mirror.storage.repos import BalanceRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def apply_delta(balance: Decimal, delta: Decimal) -> Decimal:
    return balance + delta


def credit(balance: Decimal, amount: Decimal) -> Decimal:
    return apply_delta(balance, amount)


def debit(balance: Decimal, amount: Decimal) -> Decimal:
    return apply_delta(balance, -amount)


async def increase_token_balance(session: AsyncSession, token: str, owner: str, amount: Decimal) -> Decimal:
    repo = BalanceRepository(session)
    balance = credit(await repo.get_balance(token, owner), amount)
    await repo.set_balance(token, owner, balance)
    logger.debug("Balance of %s in %s increased by %s to %s", owner, token, amount, balance)
    return balance


async def decrease_token_balance(session: AsyncSession, token: str, owner: str, amount: Decimal) -> Decimal:
    repo = BalanceRepository(session)
    balance = debit(await repo.get_balance(token, owner), amount)
    await repo.set_balance(token, owner, balance)
    logger.debug("Balance of %s in %s decreased by %s to %s", owner, token, amount, balance)
    return balance

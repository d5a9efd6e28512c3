"""Tentative winning payout aggregation.

The payout with the most stake behind it, summed over the market's
completed dispute rounds and its initial report, is the tentative winner.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import select, union_all

from market_mirror.processor.context import TieBreak
from market_mirror.storage.models import CrowdsourcerModel, InitialReportModel
from market_mirror.storage.repos import PayoutRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def most_staked_payout(
    session: AsyncSession, market_id: str, *, tie_break: TieBreak = TieBreak.PAYOUT_ID
) -> tuple[int, Decimal] | None:
    """Return (payout_id, total stake) of the leading payout, or None."""
    market_id = market_id.lower()
    completed_rounds = select(
        CrowdsourcerModel.payout_id.label("payout_id"),
        CrowdsourcerModel.amount_staked.label("amount_staked"),
    ).where(
        CrowdsourcerModel.market_id == market_id,
        CrowdsourcerModel.completed.is_(True),
    )
    initial_report = select(
        InitialReportModel.payout_id.label("payout_id"),
        InitialReportModel.amount_staked.label("amount_staked"),
    ).where(InitialReportModel.market_id == market_id)
    # UNION ALL: two rounds with the same payout and the same stake both count.
    staked = union_all(completed_rounds, initial_report).subquery()

    total = sa.func.sum(staked.c.amount_staked).label("total_staked")
    stmt = select(staked.c.payout_id, total).group_by(staked.c.payout_id)
    if tie_break is TieBreak.PAYOUT_ID:
        stmt = stmt.order_by(total.desc(), staked.c.payout_id.asc())
    else:
        stmt = stmt.order_by(total.desc())

    result = await session.execute(stmt.limit(1))
    row = result.first()
    if row is None:
        return None
    return int(row.payout_id), Decimal(row.total_staked)


async def update_tentative_winning_payout(
    session: AsyncSession, market_id: str, *, tie_break: TieBreak = TieBreak.PAYOUT_ID
) -> int | None:
    """Recompute which payout of ``market_id`` is tentatively winning.

    Idempotent: it only reads stake and overwrites flags, so it is used
    unchanged when a completion is applied and when it is retracted.

    Returns:
        The winning payout id, or None when nothing is staked yet.
    """
    leader = await most_staked_payout(session, market_id, tie_break=tie_break)
    payouts = PayoutRepository(session)
    if leader is None:
        await payouts.clear_tentative_winning(market_id)
        logger.debug("No stake in market %s; cleared tentative winner", market_id)
        return None

    payout_id, total = leader
    await payouts.clear_tentative_winning(market_id, except_payout_id=payout_id)
    await payouts.mark_tentative_winning(market_id, payout_id)
    logger.debug("Market %s tentative winner is payout %s with %s staked", market_id, payout_id, total)
    return payout_id

"""Dispute round redemption records.

Append-only: applying inserts one row, retracting deletes the row with the
same (transaction hash, log index).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from market_mirror.errors import NotFoundError
from market_mirror.storage.repos import RedemptionDTO, RedemptionRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from market_mirror.processor.context import LogContext
    from market_mirror.processor.events import DisputeCrowdsourcerRedeemedLog

logger = logging.getLogger(__name__)


async def record_redemption(session: AsyncSession, dto: RedemptionDTO) -> RedemptionDTO:
    """Insert a redemption.

    Raises:
        DuplicateKeyError: The log position was already recorded.
    """
    return await RedemptionRepository(session).insert(dto)


async def unrecord_redemption(session: AsyncSession, transaction_hash: str, log_index: int) -> None:
    """Delete the redemption recorded at a log position.

    Raises:
        NotFoundError: Nothing was recorded at that position.
    """
    if not await RedemptionRepository(session).delete(transaction_hash, log_index):
        raise NotFoundError("crowdsourcer_redeemed", transaction_hash, log_index)


async def process_dispute_crowdsourcer_redeemed(
    ctx: LogContext, log: DisputeCrowdsourcerRedeemedLog
) -> dict[str, Any]:
    await record_redemption(
        ctx.session,
        RedemptionDTO(
            crowdsourcer_id=log.dispute_crowdsourcer,
            reporter=log.reporter,
            amount_redeemed=log.amount_redeemed,
            rep_received=log.rep_received,
            reporting_fees_received=log.reporting_fees_received,
            block_number=log.meta.block_number,
            transaction_hash=log.meta.transaction_hash,
            log_index=log.meta.log_index,
        ),
    )
    return {}


async def process_dispute_crowdsourcer_redeemed_removal(
    ctx: LogContext, log: DisputeCrowdsourcerRedeemedLog
) -> dict[str, Any]:
    # A missing record is not fatal: no other row depends on it.
    try:
        await unrecord_redemption(ctx.session, log.meta.transaction_hash, log.meta.log_index)
    except NotFoundError as e:
        logger.warning("Ignoring redemption removal: %s", e)
        return {"removed": False}
    return {"removed": True}

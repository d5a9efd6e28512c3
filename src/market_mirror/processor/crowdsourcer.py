"""Dispute round (crowdsourcer) log processors.

A round moves none -> created -> (contributions) -> completed, and
retractions walk the same path backwards. Each handler returns the fields
it assigned so they can be merged into the published notification.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from market_mirror.errors import MissingDependencyError, NotFoundError
from market_mirror.processor.market_state import rollback_market_state, update_market_state
from market_mirror.processor.payouts import update_tentative_winning_payout
from market_mirror.processor.subtasks import run_subtasks
from market_mirror.storage.repos import (
    CrowdsourcerDTO,
    CrowdsourcerRepository,
    DisputeDTO,
    DisputeRepository,
    FeeWindowRepository,
    MarketRepository,
    PayoutRepository,
)

if TYPE_CHECKING:
    from market_mirror.processor.context import LogContext
    from market_mirror.processor.events import (
        DisputeCrowdsourcerCompletedLog,
        DisputeCrowdsourcerContributionLog,
        DisputeCrowdsourcerCreatedLog,
    )

logger = logging.getLogger(__name__)


async def process_dispute_crowdsourcer_created(
    ctx: LogContext, log: DisputeCrowdsourcerCreatedLog
) -> dict[str, Any]:
    payout = await PayoutRepository(ctx.session).get_or_insert(
        log.market, log.payout_numerators, log.invalid
    )
    fee_window = await FeeWindowRepository(ctx.session).get_active(log.universe)
    if fee_window is None:
        raise MissingDependencyError(
            f"could not retrieve feeWindow for crowdsourcer: {log.dispute_crowdsourcer}"
        )

    crowdsourcer = await CrowdsourcerRepository(ctx.session).insert(
        CrowdsourcerDTO(
            crowdsourcer_id=log.dispute_crowdsourcer,
            market_id=log.market,
            fee_window=fee_window.fee_window,
            payout_id=payout.payout_id,
            size=log.size,
            block_number=log.meta.block_number,
            transaction_hash=log.meta.transaction_hash,
            log_index=log.meta.log_index,
            amount_staked=Decimal(0),
            completed=None,
        )
    )
    logger.debug(
        "Crowdsourcer %s created for market %s (payout %s)",
        crowdsourcer.crowdsourcer_id,
        crowdsourcer.market_id,
        payout.payout_id,
    )
    return {
        "crowdsourcerId": crowdsourcer.crowdsourcer_id,
        "marketId": crowdsourcer.market_id,
        "feeWindow": crowdsourcer.fee_window,
        "payoutId": payout.payout_id,
        "completed": None,
    }


async def process_dispute_crowdsourcer_created_removal(
    ctx: LogContext, log: DisputeCrowdsourcerCreatedLog
) -> dict[str, Any]:
    # The payout stays: it is not reference counted and other rounds may use it.
    deleted = await CrowdsourcerRepository(ctx.session).delete(log.dispute_crowdsourcer)
    if not deleted:
        logger.warning("Crowdsourcer %s was already absent", log.dispute_crowdsourcer)
    return {"marketId": log.market}


async def process_dispute_crowdsourcer_contribution(
    ctx: LogContext, log: DisputeCrowdsourcerContributionLog
) -> dict[str, Any]:
    dispute = await DisputeRepository(ctx.session).insert(
        DisputeDTO(
            crowdsourcer_id=log.dispute_crowdsourcer,
            reporter=log.reporter,
            amount_staked=log.amount_staked,
            block_number=log.meta.block_number,
            transaction_hash=log.meta.transaction_hash,
            log_index=log.meta.log_index,
        )
    )
    if not await CrowdsourcerRepository(ctx.session).add_stake(log.dispute_crowdsourcer, log.amount_staked):
        raise MissingDependencyError(f"contribution to unknown crowdsourcer: {log.dispute_crowdsourcer}")
    return {
        "crowdsourcerId": dispute.crowdsourcer_id,
        "reporter": dispute.reporter,
        "amountStaked": dispute.amount_staked,
        "marketId": log.market,
    }


async def process_dispute_crowdsourcer_contribution_removal(
    ctx: LogContext, log: DisputeCrowdsourcerContributionLog
) -> dict[str, Any]:
    # Match on the log position: two contributions may carry the same amount.
    if not await DisputeRepository(ctx.session).delete(log.meta.transaction_hash, log.meta.log_index):
        raise NotFoundError("disputes", log.meta.transaction_hash, log.meta.log_index)
    if not await CrowdsourcerRepository(ctx.session).add_stake(log.dispute_crowdsourcer, -log.amount_staked):
        raise MissingDependencyError(f"contribution removal for unknown crowdsourcer: {log.dispute_crowdsourcer}")
    return {"marketId": log.market}


async def update_market_reporting_rounds_completed(ctx: LogContext, market_id: str) -> int:
    return await MarketRepository(ctx.session).recompute_reporting_rounds_completed(market_id)


async def process_dispute_crowdsourcer_completed(
    ctx: LogContext, log: DisputeCrowdsourcerCompletedLog
) -> dict[str, Any]:
    await CrowdsourcerRepository(ctx.session).set_completed(log.dispute_crowdsourcer, True)
    await run_subtasks(
        f"crowdsourcer {log.dispute_crowdsourcer} completed",
        [
            lambda: update_market_state(
                ctx.session, log.market, log.meta.block_number, ctx.constants.awaiting_next_window
            ),
            lambda: update_tentative_winning_payout(
                ctx.session, log.market, tie_break=ctx.policies.tie_break
            ),
            lambda: update_market_reporting_rounds_completed(ctx, log.market),
        ],
        ctx.policies.completion,
        session=ctx.session,
    )
    return {"marketId": log.market}


async def process_dispute_crowdsourcer_completed_removal(
    ctx: LogContext, log: DisputeCrowdsourcerCompletedLog
) -> dict[str, Any]:
    await CrowdsourcerRepository(ctx.session).set_completed(log.dispute_crowdsourcer, None)
    await run_subtasks(
        f"crowdsourcer {log.dispute_crowdsourcer} completion removed",
        [
            lambda: rollback_market_state(ctx.session, log.market, ctx.constants.dispute_in_progress),
            lambda: update_tentative_winning_payout(
                ctx.session, log.market, tie_break=ctx.policies.tie_break
            ),
            lambda: update_market_reporting_rounds_completed(ctx, log.market),
        ],
        ctx.policies.completion,
        session=ctx.session,
    )
    return {"marketId": log.market}

"""Market reporting state transitions.

No transition table is enforced and no history is kept. Which state is
valid is decided by the handler that calls in, and a rollback restores
whatever prior state the caller passes. That is only correct while
retractions arrive in exact reverse order of their applies.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from market_mirror.errors import MissingDependencyError
from market_mirror.processor.constants import ReportingState
from market_mirror.storage.repos import MarketRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def update_market_state(
    session: AsyncSession, market_id: str, block_number: int, reporting_state: ReportingState
) -> None:
    if not await MarketRepository(session).set_reporting_state(market_id, reporting_state.value):
        raise MissingDependencyError(f"market {market_id} does not exist")
    logger.debug("Market %s entered %s at block %d", market_id, reporting_state.value, block_number)


async def rollback_market_state(session: AsyncSession, market_id: str, prior_state: ReportingState) -> None:
    if not await MarketRepository(session).set_reporting_state(market_id, prior_state.value):
        raise MissingDependencyError(f"market {market_id} does not exist")
    logger.debug("Market %s rolled back to %s", market_id, prior_state.value)

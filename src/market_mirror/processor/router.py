"""Event router: dispatches decoded logs to their processors.

The router keeps no queue. Callers invoke it once per log, in the
block / log-index order the chain delivered them, and only retract a log
they previously applied.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from market_mirror.errors import StoreError, UnknownEventError
from market_mirror.processor.constants import DEFAULT_CONSTANTS, ProtocolConstants
from market_mirror.processor.context import LogContext, ProcessorPolicies, ShareTokenSettlement, TieBreak
from market_mirror.processor.crowdsourcer import (
    process_dispute_crowdsourcer_completed,
    process_dispute_crowdsourcer_completed_removal,
    process_dispute_crowdsourcer_contribution,
    process_dispute_crowdsourcer_contribution_removal,
    process_dispute_crowdsourcer_created,
    process_dispute_crowdsourcer_created_removal,
)
from market_mirror.processor.events import (
    DisputeCrowdsourcerCompletedLog,
    DisputeCrowdsourcerContributionLog,
    DisputeCrowdsourcerCreatedLog,
    DisputeCrowdsourcerRedeemedLog,
    TokensTransferredLog,
)
from market_mirror.processor.notifications import NullPublisher, Publisher, RedisPublisher
from market_mirror.processor.redemption import (
    process_dispute_crowdsourcer_redeemed,
    process_dispute_crowdsourcer_redeemed_removal,
)
from market_mirror.processor.subtasks import ErrorPolicy
from market_mirror.processor.transfers import process_tokens_transferred, process_tokens_transferred_removal

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from market_mirror.config import Settings
    from market_mirror.storage.database import MirrorStore

logger = logging.getLogger(__name__)

Handler = Callable[[LogContext, Any], Awaitable[dict[str, Any]]]


class Direction(str, Enum):
    APPLY = "apply"
    RETRACT = "retract"


@dataclass(frozen=True)
class LogProcessor:
    """Apply/retract handler pair for one event name."""

    parse: Callable[[Mapping[str, Any]], Any]
    add: Handler
    remove: Handler
    add_notification: str
    remove_notification: str


@dataclass(frozen=True)
class RouteResult:
    notification: str
    payload: dict[str, Any]


LOG_PROCESSORS: dict[str, LogProcessor] = {
    "DisputeCrowdsourcerCreated": LogProcessor(
        parse=DisputeCrowdsourcerCreatedLog.from_dict,
        add=process_dispute_crowdsourcer_created,
        remove=process_dispute_crowdsourcer_created_removal,
        add_notification="DisputeCrowdsourcerCreated",
        remove_notification="DisputeCrowdsourcerCreated",
    ),
    "DisputeCrowdsourcerContribution": LogProcessor(
        parse=DisputeCrowdsourcerContributionLog.from_dict,
        add=process_dispute_crowdsourcer_contribution,
        remove=process_dispute_crowdsourcer_contribution_removal,
        add_notification="DisputeCrowdsourcerContribution",
        remove_notification="DisputeCrowdsourcerContribution",
    ),
    "DisputeCrowdsourcerCompleted": LogProcessor(
        parse=DisputeCrowdsourcerCompletedLog.from_dict,
        add=process_dispute_crowdsourcer_completed,
        remove=process_dispute_crowdsourcer_completed_removal,
        add_notification="DisputeCrowdsourcerCompleted",
        remove_notification="DisputeCrowdsourcerCompleted",
    ),
    "DisputeCrowdsourcerRedeemed": LogProcessor(
        parse=DisputeCrowdsourcerRedeemedLog.from_dict,
        add=process_dispute_crowdsourcer_redeemed,
        remove=process_dispute_crowdsourcer_redeemed_removal,
        add_notification="DisputeCrowdsourcerRedeemedLog",
        remove_notification="FeeWindowRedeemed",
    ),
    "TokensTransferred": LogProcessor(
        parse=TokensTransferredLog.from_dict,
        add=process_tokens_transferred,
        remove=process_tokens_transferred_removal,
        add_notification="TokensTransferred",
        remove_notification="TokensTransferred",
    ),
}


class EventRouter:
    """Routes (direction, event name, log) to a processor and publishes the outcome.

    Example:
        ```python
        router = EventRouter(RedisPublisher(redis))
        await router.dispatch(store, Direction.APPLY, "TokensTransferred", log)
        ```
    """

    def __init__(
        self,
        publisher: Publisher | None = None,
        *,
        constants: ProtocolConstants = DEFAULT_CONSTANTS,
        policies: ProcessorPolicies | None = None,
        share_settlement: ShareTokenSettlement | None = None,
        normalize_notification_names: bool = False,
        processors: Mapping[str, LogProcessor] | None = None,
    ) -> None:
        self._publisher: Publisher = publisher or NullPublisher()
        self._constants = constants
        self._policies = policies or ProcessorPolicies()
        self._share_settlement = share_settlement
        self._normalize_notification_names = normalize_notification_names
        self._processors = dict(processors if processors is not None else LOG_PROCESSORS)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        publisher: Publisher | None = None,
        *,
        share_settlement: ShareTokenSettlement | None = None,
    ) -> EventRouter:
        """Router configured from settings.

        Without an explicit ``publisher`` notifications go to Redis at
        ``REDIS_URL`` under ``REDIS_CHANNEL_PREFIX``.
        """
        processor = settings.processor
        return cls(
            publisher or RedisPublisher.from_settings(settings.redis),
            policies=ProcessorPolicies(
                transfer_apply_balances=ErrorPolicy(processor.transfer_apply_balance_policy),
                transfer_retract_balances=ErrorPolicy(processor.transfer_retract_balance_policy),
                completion=ErrorPolicy(processor.completion_policy),
                tie_break=TieBreak(processor.payout_tie_break),
            ),
            share_settlement=share_settlement,
            normalize_notification_names=processor.notification_names == "normalized",
        )

    @property
    def event_names(self) -> list[str]:
        return sorted(self._processors)

    def notification_name(self, direction: Direction, event_name: str) -> str:
        processor = self._get_processor(event_name)
        if direction is Direction.APPLY or self._normalize_notification_names:
            return processor.add_notification
        return processor.remove_notification

    def _get_processor(self, event_name: str) -> LogProcessor:
        processor = self._processors.get(event_name)
        if processor is None:
            raise UnknownEventError(f"no log processor registered for {event_name}")
        return processor

    async def process(
        self,
        session: AsyncSession,
        direction: Direction,
        event_name: str,
        log: Mapping[str, Any],
    ) -> RouteResult:
        """Process one decoded log without publishing its notification.

        Args:
            session: Store handle; the caller owns commit and rollback.
            direction: Whether the log was confirmed or undone by a reorg.
            event_name: Name of the decoded event.
            log: Decoded log fields (camelCase, as emitted by the decoder).

        Returns:
            The notification name and payload to publish once committed.

        Raises:
            UnknownEventError: No processor is registered for ``event_name``.
            StoreError: A store query failed.
            LogProcessingError: Any other processor failure, unchanged.
        """
        direction = Direction(direction)
        processor = self._get_processor(event_name)
        parsed = processor.parse(log)
        ctx = LogContext(
            session=session,
            constants=self._constants,
            policies=self._policies,
            share_settlement=self._share_settlement,
        )
        handler = processor.add if direction is Direction.APPLY else processor.remove

        try:
            fields = await handler(ctx, parsed)
        except SQLAlchemyError as e:
            raise StoreError(f"{event_name} ({direction.value}) failed: {e}") from e

        logger.debug(
            "Processed %s (%s) at block %s",
            event_name,
            direction.value,
            log.get("blockNumber"),
        )
        return RouteResult(
            notification=self.notification_name(direction, event_name),
            payload={**dict(log), **fields},
        )

    async def route(
        self,
        session: AsyncSession,
        direction: Direction,
        event_name: str,
        log: Mapping[str, Any],
    ) -> RouteResult:
        """Process one decoded log on ``session`` and publish its notification.

        The notification goes out before the caller commits, so a failed
        commit leaves subscribers told about a change that never landed.
        Use ``dispatch`` when the router owns the unit of work.
        """
        result = await self.process(session, direction, event_name, log)
        await self._publisher.publish(result.notification, result.payload)
        return result

    async def dispatch(
        self,
        store: MirrorStore,
        direction: Direction,
        event_name: str,
        log: Mapping[str, Any],
    ) -> RouteResult:
        """Process one decoded log in its own unit of work, then publish.

        Nothing is published if processing or the commit fails.
        """
        async with store.unit_of_work() as session:
            result = await self.process(session, direction, event_name, log)
        await self._publisher.publish(result.notification, result.payload)
        return result

"""Per-log handler context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from market_mirror.processor.constants import DEFAULT_CONSTANTS, ProtocolConstants
from market_mirror.processor.subtasks import ErrorPolicy

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class ShareTokenSettlement(Protocol):
    """Settles share-token positions after a share transfer."""

    async def __call__(self, session: AsyncSession, market_id: str, sender: str, recipient: str) -> None: ...


class TieBreak(str, Enum):
    """Ordering among payouts whose summed stake is equal."""

    PAYOUT_ID = "payout_id"  # lowest payout id wins
    STORAGE = "storage"  # whatever order the database returns


@dataclass(frozen=True)
class ProcessorPolicies:
    transfer_apply_balances: ErrorPolicy = ErrorPolicy.LOG_AND_CONTINUE
    transfer_retract_balances: ErrorPolicy = ErrorPolicy.FAIL_FAST
    completion: ErrorPolicy = ErrorPolicy.FAIL_FAST
    tie_break: TieBreak = TieBreak.PAYOUT_ID


@dataclass
class LogContext:
    """Everything a handler may touch while processing one log."""

    session: AsyncSession
    constants: ProtocolConstants = DEFAULT_CONSTANTS
    policies: ProcessorPolicies = field(default_factory=ProcessorPolicies)
    share_settlement: ShareTokenSettlement | None = None

"""Protocol constants consumed by the log processors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReportingState(str, Enum):
    """Reporting lifecycle of a market."""

    PRE_REPORTING = "PRE_REPORTING"
    DESIGNATED_REPORTING = "DESIGNATED_REPORTING"
    OPEN_REPORTING = "OPEN_REPORTING"
    CROWDSOURCING_DISPUTE = "CROWDSOURCING_DISPUTE"
    AWAITING_NEXT_WINDOW = "AWAITING_NEXT_WINDOW"
    AWAITING_FINALIZATION = "AWAITING_FINALIZATION"
    FINALIZED = "FINALIZED"
    FORKING = "FORKING"
    AWAITING_NO_REPORT_MIGRATION = "AWAITING_NO_REPORT_MIGRATION"
    AWAITING_FORK_MIGRATION = "AWAITING_FORK_MIGRATION"


class TokenType(str, Enum):
    """Kind of token that emitted a transfer."""

    REPUTATION_TOKEN = "ReputationToken"
    SHARE_TOKEN = "ShareToken"
    FEE_WINDOW = "FeeWindow"
    FEE_TOKEN = "FeeToken"
    DISPUTE_CROWDSOURCER = "DisputeCrowdsourcer"


@dataclass(frozen=True)
class ProtocolConstants:
    """Read-only accessor for the reporting states the processors write.

    Attributes:
        awaiting_next_window: State a market enters when a dispute round completes.
        dispute_in_progress: State restored when that completion is retracted.
    """

    awaiting_next_window: ReportingState = ReportingState.AWAITING_NEXT_WINDOW
    dispute_in_progress: ReportingState = ReportingState.CROWDSOURCING_DISPUTE


DEFAULT_CONSTANTS = ProtocolConstants()

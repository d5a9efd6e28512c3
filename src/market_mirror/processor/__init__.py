"""Log processors - apply and retract handlers for mirrored chain events."""

from market_mirror.processor.constants import ProtocolConstants, ReportingState, TokenType
from market_mirror.processor.context import LogContext, ProcessorPolicies, TieBreak
from market_mirror.processor.notifications import NullPublisher, Publisher, RedisPublisher
from market_mirror.processor.router import LOG_PROCESSORS, Direction, EventRouter, RouteResult
from market_mirror.processor.subtasks import ErrorPolicy

__all__ = [
    "Direction",
    "ErrorPolicy",
    "EventRouter",
    "LOG_PROCESSORS",
    "LogContext",
    "NullPublisher",
    "ProcessorPolicies",
    "ProtocolConstants",
    "Publisher",
    "RedisPublisher",
    "ReportingState",
    "RouteResult",
    "TieBreak",
    "TokenType",
]

"""Groups of independent sub-operations run for a single log.

A handler often needs several updates that touch disjoint rows, such as
crediting one balance and debiting another. They all run on the log's
``AsyncSession``, which does not allow concurrent statements, so a group
is awaited member by member. What a failure does to the group depends on
the call site and is chosen explicitly with an ``ErrorPolicy``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

Subtask = Callable[[], Awaitable[object]]


class ErrorPolicy(str, Enum):
    """How a group reacts when one of its sub-operations fails.

    FAIL_FAST re-raises the first error. Sub-operations that already
    finished are not undone.
    LOG_AND_CONTINUE logs every error and reports success for the group.
    Each sub-operation runs in its own SAVEPOINT, so a failed statement
    is rolled back alone and the log's transaction can still commit.
    """

    FAIL_FAST = "fail_fast"
    LOG_AND_CONTINUE = "log_and_continue"


async def _run_isolated(session: AsyncSession | None, subtask: Subtask) -> None:
    if session is None:
        await subtask()
        return
    async with session.begin_nested():
        await subtask()


async def run_subtasks(
    label: str,
    subtasks: Sequence[Subtask],
    policy: ErrorPolicy,
    *,
    session: AsyncSession | None = None,
) -> list[BaseException]:
    """Run a group of sub-operations under ``policy``.

    Args:
        label: Name of the group, used in log messages.
        subtasks: Zero-argument coroutine factories.
        policy: Failure policy for the group.
        session: Session the sub-operations write through. Under
            LOG_AND_CONTINUE each one gets a savepoint on it; without a
            session a swallowed store error can leave the transaction
            unable to commit.

    Returns:
        The errors that were logged and swallowed (LOG_AND_CONTINUE only).

    Raises:
        Exception: The first failure, under FAIL_FAST.
    """
    if policy is ErrorPolicy.FAIL_FAST:
        for subtask in subtasks:
            await subtask()
        return []

    swallowed: list[BaseException] = []
    for subtask in subtasks:
        try:
            await _run_isolated(session, subtask)
        except Exception as e:
            logger.error("%s: sub-operation failed, continuing: %s", label, e, exc_info=True)
            swallowed.append(e)
    return swallowed

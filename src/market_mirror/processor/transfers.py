"""Token transfer log processors.

Applying a transfer records it and moves ``value`` from sender to
recipient in the balance ledger; retracting deletes it and moves the value
back. Balance failures follow a per-direction ``ErrorPolicy``: by default
an apply logs them and still settles and succeeds, while a retraction
fails. Running with the logging policy can leave balances out of step
with the transfers table.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from market_mirror.errors import NotFoundError
from market_mirror.processor.constants import TokenType
from market_mirror.processor.ledger import decrease_token_balance, increase_token_balance
from market_mirror.processor.subtasks import run_subtasks
from market_mirror.storage.repos import TransferDTO, TransferRepository

if TYPE_CHECKING:
    from market_mirror.processor.context import LogContext
    from market_mirror.processor.events import TokensTransferredLog

logger = logging.getLogger(__name__)


def _is_share_token_transfer(log: TokensTransferredLog) -> bool:
    return log.token_type == TokenType.SHARE_TOKEN.value and log.recipient != log.market


async def handle_share_token_transfer(ctx: LogContext, log: TokensTransferredLog) -> bool:
    """Invoke share settlement when a share token moves to anyone but its market.

    Returns:
        True if settlement was invoked.
    """
    if not _is_share_token_transfer(log) or log.market is None:
        return False
    if ctx.share_settlement is None:
        logger.debug("No share settlement configured; skipping market %s", log.market)
        return False
    await ctx.share_settlement(ctx.session, log.market, log.sender, log.recipient)
    return True


async def process_tokens_transferred(ctx: LogContext, log: TokensTransferredLog) -> dict[str, Any]:
    transfer = await TransferRepository(ctx.session).insert(
        TransferDTO(
            token=log.token,
            sender=log.sender,
            recipient=log.recipient,
            value=log.value,
            block_number=log.meta.block_number,
            transaction_hash=log.meta.transaction_hash,
            log_index=log.meta.log_index,
        )
    )
    failures = await run_subtasks(
        f"transfer {log.meta.transaction_hash}:{log.meta.log_index} balances",
        [
            lambda: increase_token_balance(ctx.session, log.token, log.recipient, log.value),
            lambda: decrease_token_balance(ctx.session, log.token, log.sender, log.value),
        ],
        ctx.policies.transfer_apply_balances,
        session=ctx.session,
    )
    settled = await handle_share_token_transfer(ctx, log)
    return {
        "token": transfer.token,
        "sender": transfer.sender,
        "recipient": transfer.recipient,
        "value": transfer.value,
        "balanceErrors": len(failures),
        "settled": settled,
    }


async def process_tokens_transferred_removal(ctx: LogContext, log: TokensTransferredLog) -> dict[str, Any]:
    if not await TransferRepository(ctx.session).delete(log.meta.transaction_hash, log.meta.log_index):
        raise NotFoundError("transfers", log.meta.transaction_hash, log.meta.log_index)
    failures = await run_subtasks(
        f"transfer {log.meta.transaction_hash}:{log.meta.log_index} balance removal",
        [
            lambda: increase_token_balance(ctx.session, log.token, log.sender, log.value),
            lambda: decrease_token_balance(ctx.session, log.token, log.recipient, log.value),
        ],
        ctx.policies.transfer_retract_balances,
        session=ctx.session,
    )
    settled = await handle_share_token_transfer(ctx, log)
    return {"balanceErrors": len(failures), "settled": settled}

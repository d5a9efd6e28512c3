"""Repository pattern implementations for data access.

Repositories wrap an ``AsyncSession`` and never commit; the caller owns
the transaction. Writes are flushed so later reads in the same unit of
work observe them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy import delete, select, update

from market_mirror.errors import DuplicateKeyError
from market_mirror.storage.models import (
    BalanceModel,
    CrowdsourcerModel,
    CrowdsourcerRedeemedModel,
    DisputeModel,
    FeeWindowModel,
    InitialReportModel,
    MarketModel,
    PayoutModel,
    TransferModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def encode_payout_numerators(numerators: Sequence[int]) -> str:
    """Canonical text form of a payout numerator vector."""
    return json.dumps([str(int(n)) for n in numerators])


def decode_payout_numerators(raw: str) -> tuple[int, ...]:
    return tuple(int(n) for n in json.loads(raw))


def _rowcount(result: object) -> int:
    # SQLAlchemy Result does have rowcount but typing doesn't reflect it
    return result.rowcount or 0  # type: ignore[attr-defined]


# ============================================================================
# Markets
# ============================================================================


@dataclass
class MarketDTO:
    """Data transfer object for markets."""

    market_id: str
    universe: str
    reporting_state: str
    reporting_rounds_completed: int = 0

    @classmethod
    def from_model(cls, model: MarketModel) -> MarketDTO:
        return cls(
            market_id=model.market_id,
            universe=model.universe,
            reporting_state=model.reporting_state,
            reporting_rounds_completed=model.reporting_rounds_completed,
        )


class MarketRepository:
    """Repository for markets and their derived round counter."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, market_id: str) -> MarketDTO | None:
        result = await self.session.execute(
            select(MarketModel).where(MarketModel.market_id == market_id.lower())
        )
        model = result.scalar_one_or_none()
        return MarketDTO.from_model(model) if model else None

    async def insert(self, dto: MarketDTO) -> MarketDTO:
        """Insert a market row. Markets are normally created by other processors."""
        model = MarketModel(
            market_id=dto.market_id.lower(),
            universe=dto.universe.lower(),
            reporting_state=dto.reporting_state,
            reporting_rounds_completed=dto.reporting_rounds_completed,
        )
        self.session.add(model)
        await self.session.flush()
        return MarketDTO.from_model(model)

    async def set_reporting_state(self, market_id: str, reporting_state: str) -> bool:
        """Overwrite the reporting state of a market.

        Returns:
            True if a market row was updated.
        """
        result = await self.session.execute(
            update(MarketModel)
            .where(MarketModel.market_id == market_id.lower())
            .values(reporting_state=reporting_state)
        )
        await self.session.flush()
        return _rowcount(result) > 0

    async def recompute_reporting_rounds_completed(self, market_id: str) -> int:
        """Set ``reporting_rounds_completed`` to the number of completed rounds.

        This is a recomputation, not an increment, so calling it again
        without intervening changes leaves the row unchanged.
        """
        market_id = market_id.lower()
        completed_rounds = (
            select(sa.func.count())
            .select_from(CrowdsourcerModel)
            .where(
                CrowdsourcerModel.market_id == market_id,
                CrowdsourcerModel.completed.is_(True),
            )
            .scalar_subquery()
        )
        await self.session.execute(
            update(MarketModel)
            .where(MarketModel.market_id == market_id)
            .values(reporting_rounds_completed=completed_rounds)
        )
        await self.session.flush()
        result = await self.session.execute(
            select(MarketModel.reporting_rounds_completed).where(MarketModel.market_id == market_id)
        )
        return result.scalar_one_or_none() or 0


# ============================================================================
# Payouts
# ============================================================================


@dataclass
class PayoutDTO:
    """Data transfer object for payouts."""

    payout_id: int
    market_id: str
    payout_numerators: tuple[int, ...]
    is_invalid: bool
    tentative_winning: bool

    @classmethod
    def from_model(cls, model: PayoutModel) -> PayoutDTO:
        return cls(
            payout_id=model.payout_id,
            market_id=model.market_id,
            payout_numerators=decode_payout_numerators(model.payout_numerators_json),
            is_invalid=model.is_invalid,
            tentative_winning=model.tentative_winning,
        )


class PayoutRepository:
    """Repository for market payouts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, payout_id: int) -> PayoutDTO | None:
        result = await self.session.execute(select(PayoutModel).where(PayoutModel.payout_id == payout_id))
        model = result.scalar_one_or_none()
        return PayoutDTO.from_model(model) if model else None

    async def find(self, market_id: str, numerators: Sequence[int], is_invalid: bool) -> PayoutDTO | None:
        result = await self.session.execute(
            select(PayoutModel).where(
                PayoutModel.market_id == market_id.lower(),
                PayoutModel.payout_numerators_json == encode_payout_numerators(numerators),
                PayoutModel.is_invalid == is_invalid,
            )
        )
        model = result.scalar_one_or_none()
        return PayoutDTO.from_model(model) if model else None

    async def get_or_insert(
        self,
        market_id: str,
        numerators: Sequence[int],
        is_invalid: bool,
        *,
        tentative_winning: bool = False,
    ) -> PayoutDTO:
        """Return the payout for (market, numerators, invalid), inserting it if new."""
        existing = await self.find(market_id, numerators, is_invalid)
        if existing is not None:
            return existing

        model = PayoutModel(
            market_id=market_id.lower(),
            payout_numerators_json=encode_payout_numerators(numerators),
            is_invalid=is_invalid,
            tentative_winning=tentative_winning,
        )
        self.session.add(model)
        await self.session.flush()
        logger.debug("Inserted payout %s for market %s", model.payout_id, model.market_id)
        return PayoutDTO.from_model(model)

    async def list_for_market(self, market_id: str) -> list[PayoutDTO]:
        result = await self.session.execute(
            select(PayoutModel)
            .where(PayoutModel.market_id == market_id.lower())
            .order_by(PayoutModel.payout_id.asc())
        )
        return [PayoutDTO.from_model(m) for m in result.scalars().all()]

    async def clear_tentative_winning(self, market_id: str, *, except_payout_id: int | None = None) -> None:
        stmt = update(PayoutModel).where(PayoutModel.market_id == market_id.lower())
        if except_payout_id is not None:
            stmt = stmt.where(PayoutModel.payout_id != except_payout_id)
        await self.session.execute(stmt.values(tentative_winning=False))
        await self.session.flush()

    async def mark_tentative_winning(self, market_id: str, payout_id: int) -> None:
        await self.session.execute(
            update(PayoutModel)
            .where(PayoutModel.market_id == market_id.lower(), PayoutModel.payout_id == payout_id)
            .values(tentative_winning=True)
        )
        await self.session.flush()


# ============================================================================
# Fee windows and initial reports
# ============================================================================


@dataclass
class FeeWindowDTO:
    fee_window: str
    universe: str
    is_active: bool

    @classmethod
    def from_model(cls, model: FeeWindowModel) -> FeeWindowDTO:
        return cls(fee_window=model.fee_window, universe=model.universe, is_active=model.is_active)


class FeeWindowRepository:
    """Lookup of fee windows by universe."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_active(self, universe: str) -> FeeWindowDTO | None:
        result = await self.session.execute(
            select(FeeWindowModel)
            .where(FeeWindowModel.universe == universe.lower(), FeeWindowModel.is_active.is_(True))
            .limit(1)
        )
        model = result.scalars().first()
        return FeeWindowDTO.from_model(model) if model else None

    async def insert(self, dto: FeeWindowDTO) -> FeeWindowDTO:
        model = FeeWindowModel(
            fee_window=dto.fee_window.lower(),
            universe=dto.universe.lower(),
            is_active=dto.is_active,
        )
        self.session.add(model)
        await self.session.flush()
        return FeeWindowDTO.from_model(model)


@dataclass
class InitialReportDTO:
    market_id: str
    payout_id: int
    reporter: str
    amount_staked: Decimal
    block_number: int
    transaction_hash: str
    log_index: int

    @classmethod
    def from_model(cls, model: InitialReportModel) -> InitialReportDTO:
        return cls(
            market_id=model.market_id,
            payout_id=model.payout_id,
            reporter=model.reporter,
            amount_staked=model.amount_staked,
            block_number=model.block_number,
            transaction_hash=model.transaction_hash,
            log_index=model.log_index,
        )


class InitialReportRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, market_id: str) -> InitialReportDTO | None:
        result = await self.session.execute(
            select(InitialReportModel).where(InitialReportModel.market_id == market_id.lower())
        )
        model = result.scalar_one_or_none()
        return InitialReportDTO.from_model(model) if model else None

    async def insert(self, dto: InitialReportDTO) -> InitialReportDTO:
        model = InitialReportModel(
            market_id=dto.market_id.lower(),
            payout_id=dto.payout_id,
            reporter=dto.reporter.lower(),
            amount_staked=dto.amount_staked,
            block_number=dto.block_number,
            transaction_hash=dto.transaction_hash,
            log_index=dto.log_index,
        )
        self.session.add(model)
        await self.session.flush()
        return InitialReportDTO.from_model(model)


# ============================================================================
# Crowdsourcers (dispute rounds)
# ============================================================================


@dataclass
class CrowdsourcerDTO:
    """Data transfer object for dispute rounds."""

    crowdsourcer_id: str
    market_id: str
    fee_window: str
    payout_id: int
    size: Decimal
    block_number: int
    transaction_hash: str
    log_index: int
    amount_staked: Decimal = Decimal(0)
    completed: bool | None = None

    @classmethod
    def from_model(cls, model: CrowdsourcerModel) -> CrowdsourcerDTO:
        return cls(
            crowdsourcer_id=model.crowdsourcer_id,
            market_id=model.market_id,
            fee_window=model.fee_window,
            payout_id=model.payout_id,
            size=model.size,
            block_number=model.block_number,
            transaction_hash=model.transaction_hash,
            log_index=model.log_index,
            amount_staked=model.amount_staked,
            completed=model.completed,
        )


class CrowdsourcerRepository:
    """Repository for dispute rounds."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, crowdsourcer_id: str) -> CrowdsourcerDTO | None:
        result = await self.session.execute(
            select(CrowdsourcerModel).where(CrowdsourcerModel.crowdsourcer_id == crowdsourcer_id.lower())
        )
        model = result.scalar_one_or_none()
        return CrowdsourcerDTO.from_model(model) if model else None

    async def insert(self, dto: CrowdsourcerDTO) -> CrowdsourcerDTO:
        model = CrowdsourcerModel(
            crowdsourcer_id=dto.crowdsourcer_id.lower(),
            market_id=dto.market_id.lower(),
            fee_window=dto.fee_window.lower(),
            payout_id=dto.payout_id,
            size=dto.size,
            amount_staked=dto.amount_staked,
            completed=dto.completed,
            block_number=dto.block_number,
            transaction_hash=dto.transaction_hash,
            log_index=dto.log_index,
        )
        self.session.add(model)
        await self.session.flush()
        return CrowdsourcerDTO.from_model(model)

    async def delete(self, crowdsourcer_id: str) -> bool:
        result = await self.session.execute(
            delete(CrowdsourcerModel).where(CrowdsourcerModel.crowdsourcer_id == crowdsourcer_id.lower())
        )
        await self.session.flush()
        return _rowcount(result) > 0

    async def add_stake(self, crowdsourcer_id: str, delta: Decimal) -> bool:
        """Add a signed amount to ``amount_staked``.

        Returns:
            True if the round exists.
        """
        result = await self.session.execute(
            update(CrowdsourcerModel)
            .where(CrowdsourcerModel.crowdsourcer_id == crowdsourcer_id.lower())
            .values(amount_staked=CrowdsourcerModel.amount_staked + delta)
        )
        await self.session.flush()
        return _rowcount(result) > 0

    async def set_completed(self, crowdsourcer_id: str, completed: bool | None) -> bool:
        result = await self.session.execute(
            update(CrowdsourcerModel)
            .where(CrowdsourcerModel.crowdsourcer_id == crowdsourcer_id.lower())
            .values(completed=completed)
        )
        await self.session.flush()
        return _rowcount(result) > 0

    async def list_for_market(self, market_id: str) -> list[CrowdsourcerDTO]:
        result = await self.session.execute(
            select(CrowdsourcerModel)
            .where(CrowdsourcerModel.market_id == market_id.lower())
            .order_by(CrowdsourcerModel.block_number.asc(), CrowdsourcerModel.log_index.asc())
        )
        return [CrowdsourcerDTO.from_model(m) for m in result.scalars().all()]


# ============================================================================
# Event-keyed rows: contributions, redemptions, transfers
# ============================================================================


@dataclass
class DisputeDTO:
    """Data transfer object for dispute round contributions."""

    crowdsourcer_id: str
    reporter: str
    amount_staked: Decimal
    block_number: int
    transaction_hash: str
    log_index: int

    @classmethod
    def from_model(cls, model: DisputeModel) -> DisputeDTO:
        return cls(
            crowdsourcer_id=model.crowdsourcer_id,
            reporter=model.reporter,
            amount_staked=model.amount_staked,
            block_number=model.block_number,
            transaction_hash=model.transaction_hash,
            log_index=model.log_index,
        )


class DisputeRepository:
    """Repository for contributions, keyed by (transaction hash, log index)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, transaction_hash: str, log_index: int) -> DisputeDTO | None:
        result = await self.session.execute(
            select(DisputeModel).where(
                DisputeModel.transaction_hash == transaction_hash,
                DisputeModel.log_index == log_index,
            )
        )
        model = result.scalar_one_or_none()
        return DisputeDTO.from_model(model) if model else None

    async def insert(self, dto: DisputeDTO) -> DisputeDTO:
        if await self.get(dto.transaction_hash, dto.log_index) is not None:
            raise DuplicateKeyError("disputes", dto.transaction_hash, dto.log_index)
        model = DisputeModel(
            crowdsourcer_id=dto.crowdsourcer_id.lower(),
            reporter=dto.reporter.lower(),
            amount_staked=dto.amount_staked,
            block_number=dto.block_number,
            transaction_hash=dto.transaction_hash,
            log_index=dto.log_index,
        )
        self.session.add(model)
        await self.session.flush()
        return DisputeDTO.from_model(model)

    async def delete(self, transaction_hash: str, log_index: int) -> bool:
        result = await self.session.execute(
            delete(DisputeModel).where(
                DisputeModel.transaction_hash == transaction_hash,
                DisputeModel.log_index == log_index,
            )
        )
        await self.session.flush()
        return _rowcount(result) > 0

    async def list_for_crowdsourcer(self, crowdsourcer_id: str) -> list[DisputeDTO]:
        result = await self.session.execute(
            select(DisputeModel)
            .where(DisputeModel.crowdsourcer_id == crowdsourcer_id.lower())
            .order_by(DisputeModel.block_number.asc(), DisputeModel.log_index.asc())
        )
        return [DisputeDTO.from_model(m) for m in result.scalars().all()]


@dataclass
class RedemptionDTO:
    """Data transfer object for dispute round redemptions."""

    crowdsourcer_id: str
    reporter: str
    amount_redeemed: Decimal
    rep_received: Decimal
    reporting_fees_received: Decimal
    block_number: int
    transaction_hash: str
    log_index: int

    @classmethod
    def from_model(cls, model: CrowdsourcerRedeemedModel) -> RedemptionDTO:
        return cls(
            crowdsourcer_id=model.crowdsourcer_id,
            reporter=model.reporter,
            amount_redeemed=model.amount_redeemed,
            rep_received=model.rep_received,
            reporting_fees_received=model.reporting_fees_received,
            block_number=model.block_number,
            transaction_hash=model.transaction_hash,
            log_index=model.log_index,
        )


class RedemptionRepository:
    """Append-only redemption records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, transaction_hash: str, log_index: int) -> RedemptionDTO | None:
        result = await self.session.execute(
            select(CrowdsourcerRedeemedModel).where(
                CrowdsourcerRedeemedModel.transaction_hash == transaction_hash,
                CrowdsourcerRedeemedModel.log_index == log_index,
            )
        )
        model = result.scalar_one_or_none()
        return RedemptionDTO.from_model(model) if model else None

    async def insert(self, dto: RedemptionDTO) -> RedemptionDTO:
        if await self.get(dto.transaction_hash, dto.log_index) is not None:
            raise DuplicateKeyError("crowdsourcer_redeemed", dto.transaction_hash, dto.log_index)
        model = CrowdsourcerRedeemedModel(
            crowdsourcer_id=dto.crowdsourcer_id.lower(),
            reporter=dto.reporter.lower(),
            amount_redeemed=dto.amount_redeemed,
            rep_received=dto.rep_received,
            reporting_fees_received=dto.reporting_fees_received,
            block_number=dto.block_number,
            transaction_hash=dto.transaction_hash,
            log_index=dto.log_index,
        )
        self.session.add(model)
        await self.session.flush()
        return RedemptionDTO.from_model(model)

    async def delete(self, transaction_hash: str, log_index: int) -> bool:
        result = await self.session.execute(
            delete(CrowdsourcerRedeemedModel).where(
                CrowdsourcerRedeemedModel.transaction_hash == transaction_hash,
                CrowdsourcerRedeemedModel.log_index == log_index,
            )
        )
        await self.session.flush()
        return _rowcount(result) > 0


@dataclass
class TransferDTO:
    """Data transfer object for token transfers."""

    token: str
    sender: str
    recipient: str
    value: Decimal
    block_number: int
    transaction_hash: str
    log_index: int

    @classmethod
    def from_model(cls, model: TransferModel) -> TransferDTO:
        return cls(
            token=model.token,
            sender=model.sender,
            recipient=model.recipient,
            value=model.value,
            block_number=model.block_number,
            transaction_hash=model.transaction_hash,
            log_index=model.log_index,
        )


class TransferRepository:
    """Repository for token transfers."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, transaction_hash: str, log_index: int) -> TransferDTO | None:
        result = await self.session.execute(
            select(TransferModel).where(
                TransferModel.transaction_hash == transaction_hash,
                TransferModel.log_index == log_index,
            )
        )
        model = result.scalar_one_or_none()
        return TransferDTO.from_model(model) if model else None

    async def insert(self, dto: TransferDTO) -> TransferDTO:
        if await self.get(dto.transaction_hash, dto.log_index) is not None:
            raise DuplicateKeyError("transfers", dto.transaction_hash, dto.log_index)
        model = TransferModel(
            token=dto.token.lower(),
            sender=dto.sender.lower(),
            recipient=dto.recipient.lower(),
            value=dto.value,
            block_number=dto.block_number,
            transaction_hash=dto.transaction_hash,
            log_index=dto.log_index,
        )
        self.session.add(model)
        await self.session.flush()
        return TransferDTO.from_model(model)

    async def delete(self, transaction_hash: str, log_index: int) -> bool:
        result = await self.session.execute(
            delete(TransferModel).where(
                TransferModel.transaction_hash == transaction_hash,
                TransferModel.log_index == log_index,
            )
        )
        await self.session.flush()
        return _rowcount(result) > 0

    async def list_for_token(self, token: str) -> list[TransferDTO]:
        result = await self.session.execute(
            select(TransferModel)
            .where(TransferModel.token == token.lower())
            .order_by(TransferModel.block_number.asc(), TransferModel.log_index.asc())
        )
        return [TransferDTO.from_model(m) for m in result.scalars().all()]


# ============================================================================
# Balances
# ============================================================================


class BalanceRepository:
    """Per (token, owner) balances. A missing row reads as zero."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_balance(self, token: str, owner: str) -> Decimal:
        result = await self.session.execute(
            select(BalanceModel.balance).where(
                BalanceModel.token == token.lower(),
                BalanceModel.owner == owner.lower(),
            )
        )
        balance = result.scalar_one_or_none()
        return Decimal(balance) if balance is not None else Decimal(0)

    async def set_balance(self, token: str, owner: str, balance: Decimal) -> None:
        """Store a balance; a zero balance removes the row."""
        token = token.lower()
        owner = owner.lower()
        if balance == 0:
            await self.session.execute(
                delete(BalanceModel).where(BalanceModel.token == token, BalanceModel.owner == owner)
            )
            await self.session.flush()
            return

        result = await self.session.execute(
            update(BalanceModel)
            .where(BalanceModel.token == token, BalanceModel.owner == owner)
            .values(balance=balance)
        )
        if _rowcount(result) == 0:
            self.session.add(BalanceModel(token=token, owner=owner, balance=balance))
        await self.session.flush()

    async def list_for_token(self, token: str) -> dict[str, Decimal]:
        result = await self.session.execute(
            select(BalanceModel.owner, BalanceModel.balance).where(BalanceModel.token == token.lower())
        )
        return {owner: Decimal(balance) for owner, balance in result.all()}

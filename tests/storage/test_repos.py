"""Tests for storage repositories."""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import FEE_WINDOW, MARKET, REPORTER_A, TOKEN, UNIVERSE
from market_mirror.errors import DuplicateKeyError
from market_mirror.processor.constants import ReportingState
from market_mirror.storage.repos import (
    BalanceRepository,
    CrowdsourcerDTO,
    CrowdsourcerRepository,
    DisputeDTO,
    DisputeRepository,
    FeeWindowDTO,
    FeeWindowRepository,
    MarketRepository,
    PayoutRepository,
    TransferDTO,
    TransferRepository,
    decode_payout_numerators,
    encode_payout_numerators,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sample_round() -> CrowdsourcerDTO:
    """Create a sample dispute round DTO."""
    return CrowdsourcerDTO(
        crowdsourcer_id="0x" + "C" * 40,
        market_id=MARKET,
        fee_window=FEE_WINDOW,
        payout_id=1,
        size=Decimal("1000000000000000000000"),
        block_number=100,
        transaction_hash="0x" + "a" * 64,
        log_index=0,
    )


@pytest.fixture
def sample_dispute() -> DisputeDTO:
    """Create a sample contribution DTO."""
    return DisputeDTO(
        crowdsourcer_id="0x" + "c" * 40,
        reporter=REPORTER_A,
        amount_staked=Decimal(300),
        block_number=101,
        transaction_hash="0x" + "b" * 64,
        log_index=2,
    )


# ============================================================================
# Payout numerators
# ============================================================================


class TestPayoutNumeratorEncoding:
    def test_encoding_is_canonical(self) -> None:
        assert encode_payout_numerators([0, 10000]) == encode_payout_numerators((0, 10000))
        assert encode_payout_numerators([0, 10000]) != encode_payout_numerators([10000, 0])

    def test_large_values_survive(self) -> None:
        numerators = (10**40, 0)

        assert decode_payout_numerators(encode_payout_numerators(numerators)) == numerators


# ============================================================================
# Markets and payouts
# ============================================================================


class TestMarketRepository:
    @pytest.mark.asyncio
    async def test_set_reporting_state(self, seeded_session: AsyncSession) -> None:
        repo = MarketRepository(seeded_session)

        assert await repo.set_reporting_state(MARKET, ReportingState.AWAITING_NEXT_WINDOW.value) is True
        market = await repo.get(MARKET)
        assert market is not None
        assert market.reporting_state == ReportingState.AWAITING_NEXT_WINDOW.value

    @pytest.mark.asyncio
    async def test_set_reporting_state_missing_market(self, async_session: AsyncSession) -> None:
        assert await MarketRepository(async_session).set_reporting_state(MARKET, "FINALIZED") is False

    @pytest.mark.asyncio
    async def test_recompute_counts_only_completed_rounds(
        self, seeded_session: AsyncSession, sample_round: CrowdsourcerDTO
    ) -> None:
        rounds = CrowdsourcerRepository(seeded_session)
        await rounds.insert(sample_round)
        sample_round.crowdsourcer_id = "0x" + "d" * 40
        sample_round.completed = True
        await rounds.insert(sample_round)

        repo = MarketRepository(seeded_session)
        assert await repo.recompute_reporting_rounds_completed(MARKET) == 1
        assert await repo.recompute_reporting_rounds_completed(MARKET) == 1
        market = await repo.get(MARKET)
        assert market is not None
        assert market.reporting_rounds_completed == 1


class TestPayoutRepository:
    @pytest.mark.asyncio
    async def test_get_or_insert_is_idempotent(self, async_session: AsyncSession) -> None:
        repo = PayoutRepository(async_session)

        first = await repo.get_or_insert(MARKET.upper().replace("0X", "0x"), (0, 10000), False)
        second = await repo.get_or_insert(MARKET, [0, 10000], False)

        assert first.payout_id == second.payout_id
        assert first.market_id == MARKET
        assert len(await repo.list_for_market(MARKET)) == 1

    @pytest.mark.asyncio
    async def test_clear_all_but_one(self, async_session: AsyncSession) -> None:
        repo = PayoutRepository(async_session)
        keep = await repo.get_or_insert(MARKET, (0, 10000), False, tentative_winning=True)
        drop = await repo.get_or_insert(MARKET, (10000, 0), False, tentative_winning=True)

        await repo.clear_tentative_winning(MARKET, except_payout_id=keep.payout_id)

        flags = {p.payout_id: p.tentative_winning for p in await repo.list_for_market(MARKET)}
        assert flags == {keep.payout_id: True, drop.payout_id: False}


class TestFeeWindowRepository:
    @pytest.mark.asyncio
    async def test_get_active_ignores_inactive(self, async_session: AsyncSession) -> None:
        repo = FeeWindowRepository(async_session)
        await repo.insert(FeeWindowDTO(fee_window="0x" + "e" * 40, universe=UNIVERSE, is_active=False))

        assert await repo.get_active(UNIVERSE) is None

        await repo.insert(FeeWindowDTO(fee_window=FEE_WINDOW, universe=UNIVERSE, is_active=True))
        active = await repo.get_active(UNIVERSE)
        assert active is not None
        assert active.fee_window == FEE_WINDOW


# ============================================================================
# Dispute rounds and contributions
# ============================================================================


class TestCrowdsourcerRepository:
    @pytest.mark.asyncio
    async def test_insert_lowercases_and_defaults(
        self, async_session: AsyncSession, sample_round: CrowdsourcerDTO
    ) -> None:
        repo = CrowdsourcerRepository(async_session)

        stored = await repo.insert(sample_round)

        assert stored.crowdsourcer_id == "0x" + "c" * 40
        assert stored.amount_staked == Decimal(0)
        assert stored.completed is None

    @pytest.mark.asyncio
    async def test_add_stake_is_signed(self, async_session: AsyncSession, sample_round: CrowdsourcerDTO) -> None:
        repo = CrowdsourcerRepository(async_session)
        await repo.insert(sample_round)

        assert await repo.add_stake(sample_round.crowdsourcer_id, Decimal(500)) is True
        assert await repo.add_stake(sample_round.crowdsourcer_id, Decimal(-200)) is True

        stored = await repo.get(sample_round.crowdsourcer_id)
        assert stored is not None
        assert stored.amount_staked == Decimal(300)

    @pytest.mark.asyncio
    async def test_add_stake_unknown_round(self, async_session: AsyncSession) -> None:
        assert await CrowdsourcerRepository(async_session).add_stake("0x" + "9" * 40, Decimal(1)) is False

    @pytest.mark.asyncio
    async def test_set_completed_tristate(
        self, async_session: AsyncSession, sample_round: CrowdsourcerDTO
    ) -> None:
        repo = CrowdsourcerRepository(async_session)
        await repo.insert(sample_round)

        await repo.set_completed(sample_round.crowdsourcer_id, True)
        assert (await repo.get(sample_round.crowdsourcer_id)).completed is True
        await repo.set_completed(sample_round.crowdsourcer_id, None)
        assert (await repo.get(sample_round.crowdsourcer_id)).completed is None


class TestDisputeRepository:
    @pytest.mark.asyncio
    async def test_insert_and_get(self, async_session: AsyncSession, sample_dispute: DisputeDTO) -> None:
        repo = DisputeRepository(async_session)

        await repo.insert(sample_dispute)

        stored = await repo.get(sample_dispute.transaction_hash, sample_dispute.log_index)
        assert stored == sample_dispute

    @pytest.mark.asyncio
    async def test_duplicate_position_rejected(
        self, async_session: AsyncSession, sample_dispute: DisputeDTO
    ) -> None:
        repo = DisputeRepository(async_session)
        await repo.insert(sample_dispute)

        with pytest.raises(DuplicateKeyError):
            await repo.insert(sample_dispute)

    @pytest.mark.asyncio
    async def test_delete_by_position(self, async_session: AsyncSession, sample_dispute: DisputeDTO) -> None:
        repo = DisputeRepository(async_session)
        await repo.insert(sample_dispute)

        assert await repo.delete(sample_dispute.transaction_hash, sample_dispute.log_index) is True
        assert await repo.delete(sample_dispute.transaction_hash, sample_dispute.log_index) is False
        assert await repo.list_for_crowdsourcer(sample_dispute.crowdsourcer_id) == []


# ============================================================================
# Transfers and balances
# ============================================================================


class TestTransferRepository:
    @pytest.mark.asyncio
    async def test_list_for_token_in_chain_order(self, async_session: AsyncSession) -> None:
        repo = TransferRepository(async_session)
        for block_number, log_index in ((5, 1), (3, 9), (5, 0)):
            await repo.insert(
                TransferDTO(
                    token=TOKEN,
                    sender=REPORTER_A,
                    recipient=MARKET,
                    value=Decimal(1),
                    block_number=block_number,
                    transaction_hash=f"0x{block_number:064x}",
                    log_index=log_index,
                )
            )

        positions = [(t.block_number, t.log_index) for t in await repo.list_for_token(TOKEN)]

        assert positions == [(3, 9), (5, 0), (5, 1)]


class TestBalanceRepository:
    @pytest.mark.asyncio
    async def test_missing_balance_reads_zero(self, async_session: AsyncSession) -> None:
        assert await BalanceRepository(async_session).get_balance(TOKEN, REPORTER_A) == Decimal(0)

    @pytest.mark.asyncio
    async def test_set_then_update(self, async_session: AsyncSession) -> None:
        repo = BalanceRepository(async_session)

        await repo.set_balance(TOKEN, "0x" + "ab" * 20, Decimal(10))
        await repo.set_balance(TOKEN, "0x" + "AB" * 20, Decimal(-4))

        assert await repo.list_for_token(TOKEN) == {"0x" + "ab" * 20: Decimal(-4)}

    @pytest.mark.asyncio
    async def test_zero_balance_removes_row(self, async_session: AsyncSession) -> None:
        repo = BalanceRepository(async_session)
        await repo.set_balance(TOKEN, REPORTER_A, Decimal(10))

        await repo.set_balance(TOKEN, REPORTER_A, Decimal(0))

        assert await repo.list_for_token(TOKEN) == {}

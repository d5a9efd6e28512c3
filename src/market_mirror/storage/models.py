"""SQLAlchemy models for persistent storage.

This module defines the database schema for mirrored market state:
markets, payouts, dispute rounds (crowdsourcers) and their contributions
and redemptions, token transfers, and the balances derived from them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MarketModel(Base):
    """Markets, created outside the log processors before any dispute activity."""

    __tablename__ = "markets"

    market_id: Mapped[str] = mapped_column(String(42), primary_key=True)
    universe: Mapped[str] = mapped_column(String(42), nullable=False)
    reporting_state: Mapped[str] = mapped_column(String(40), nullable=False)
    reporting_rounds_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("idx_markets_universe", "universe"),)


class PayoutModel(Base):
    """Candidate outcomes of a market (numerator vector plus invalid flag)."""

    __tablename__ = "payouts"

    payout_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_id: Mapped[str] = mapped_column(String(42), nullable=False)
    # JSON array of decimal strings, canonical form used for lookups.
    payout_numerators_json: Mapped[str] = mapped_column(Text, nullable=False)
    is_invalid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tentative_winning: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint(
            "market_id", "payout_numerators_json", "is_invalid", name="uq_payouts_market_numerators"
        ),
        Index("idx_payouts_market", "market_id"),
    )


class FeeWindowModel(Base):
    """Fee windows; read-only from the log processors' perspective."""

    __tablename__ = "fee_windows"

    fee_window: Mapped[str] = mapped_column(String(42), primary_key=True)
    universe: Mapped[str] = mapped_column(String(42), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("idx_fee_windows_universe_active", "universe", "is_active"),)


class InitialReportModel(Base):
    """Initial report stake of a market, counted by the payout aggregator."""

    __tablename__ = "initial_reports"

    market_id: Mapped[str] = mapped_column(String(42), primary_key=True)
    payout_id: Mapped[int] = mapped_column(Integer, nullable=False)
    reporter: Mapped[str] = mapped_column(String(42), nullable=False)
    amount_staked: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)

    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)


class CrowdsourcerModel(Base):
    """Dispute rounds (crowdsourcers)."""

    __tablename__ = "crowdsourcers"

    crowdsourcer_id: Mapped[str] = mapped_column(String(42), primary_key=True)
    market_id: Mapped[str] = mapped_column(String(42), nullable=False)
    fee_window: Mapped[str] = mapped_column(String(42), nullable=False)
    payout_id: Mapped[int] = mapped_column(Integer, nullable=False)
    size: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)
    amount_staked: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False, default=Decimal(0))
    # True once completed, NULL otherwise.
    completed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_crowdsourcers_market_completed", "market_id", "completed"),
        Index("idx_crowdsourcers_payout", "payout_id"),
    )


class DisputeModel(Base):
    """Stake contributions to a dispute round."""

    __tablename__ = "disputes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    crowdsourcer_id: Mapped[str] = mapped_column(String(42), nullable=False)
    reporter: Mapped[str] = mapped_column(String(42), nullable=False)
    amount_staked: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)

    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("transaction_hash", "log_index", name="uq_disputes_event"),
        Index("idx_disputes_crowdsourcer", "crowdsourcer_id"),
        Index("idx_disputes_reporter", "reporter"),
    )


class CrowdsourcerRedeemedModel(Base):
    """Stake redemptions from resolved dispute rounds."""

    __tablename__ = "crowdsourcer_redeemed"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    crowdsourcer_id: Mapped[str] = mapped_column(String(42), nullable=False)
    reporter: Mapped[str] = mapped_column(String(42), nullable=False)
    amount_redeemed: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)  # attoRep
    rep_received: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)
    reporting_fees_received: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)  # attoEth

    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("transaction_hash", "log_index", name="uq_crowdsourcer_redeemed_event"),
        Index("idx_crowdsourcer_redeemed_reporter", "reporter"),
    )


class TransferModel(Base):
    """Token transfer events."""

    __tablename__ = "transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(42), nullable=False)
    sender: Mapped[str] = mapped_column(String(42), nullable=False)
    recipient: Mapped[str] = mapped_column(String(42), nullable=False)

    # Raw token units as emitted by the Transfer event (uint256).
    value: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)

    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("transaction_hash", "log_index", name="uq_transfers_event"),
        Index("idx_transfers_token_sender", "token", "sender"),
        Index("idx_transfers_token_recipient", "token", "recipient"),
    )


class BalanceModel(Base):
    """Per (token, owner) running balance derived from applied transfers.

    A missing row means a zero balance.
    """

    __tablename__ = "balances"

    token: Mapped[str] = mapped_column(String(42), primary_key=True)
    owner: Mapped[str] = mapped_column(String(42), primary_key=True)
    balance: Mapped[Decimal] = mapped_column(Numeric(40, 0), nullable=False)

    __table_args__ = (Index("idx_balances_owner", "owner"),)

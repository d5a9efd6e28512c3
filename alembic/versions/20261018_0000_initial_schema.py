"""Initial market mirror schema.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _log_position() -> list[sa.Column]:
    return [
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("transaction_hash", sa.String(66), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "markets",
        sa.Column("market_id", sa.String(42), nullable=False),
        sa.Column("universe", sa.String(42), nullable=False),
        sa.Column("reporting_state", sa.String(40), nullable=False),
        sa.Column("reporting_rounds_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("market_id"),
    )
    op.create_index("idx_markets_universe", "markets", ["universe"])

    op.create_table(
        "payouts",
        sa.Column("payout_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("market_id", sa.String(42), nullable=False),
        sa.Column("payout_numerators_json", sa.Text(), nullable=False),
        sa.Column("is_invalid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tentative_winning", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("payout_id"),
        sa.UniqueConstraint(
            "market_id", "payout_numerators_json", "is_invalid", name="uq_payouts_market_numerators"
        ),
    )
    op.create_index("idx_payouts_market", "payouts", ["market_id"])

    op.create_table(
        "fee_windows",
        sa.Column("fee_window", sa.String(42), nullable=False),
        sa.Column("universe", sa.String(42), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("fee_window"),
    )
    op.create_index("idx_fee_windows_universe_active", "fee_windows", ["universe", "is_active"])

    op.create_table(
        "initial_reports",
        sa.Column("market_id", sa.String(42), nullable=False),
        sa.Column("payout_id", sa.Integer(), nullable=False),
        sa.Column("reporter", sa.String(42), nullable=False),
        sa.Column("amount_staked", sa.Numeric(40, 0), nullable=False),
        *_log_position(),
        sa.PrimaryKeyConstraint("market_id"),
    )

    op.create_table(
        "crowdsourcers",
        sa.Column("crowdsourcer_id", sa.String(42), nullable=False),
        sa.Column("market_id", sa.String(42), nullable=False),
        sa.Column("fee_window", sa.String(42), nullable=False),
        sa.Column("payout_id", sa.Integer(), nullable=False),
        sa.Column("size", sa.Numeric(40, 0), nullable=False),
        sa.Column("amount_staked", sa.Numeric(40, 0), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=True),
        *_log_position(),
        sa.PrimaryKeyConstraint("crowdsourcer_id"),
    )
    op.create_index("idx_crowdsourcers_market_completed", "crowdsourcers", ["market_id", "completed"])
    op.create_index("idx_crowdsourcers_payout", "crowdsourcers", ["payout_id"])

    op.create_table(
        "disputes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("crowdsourcer_id", sa.String(42), nullable=False),
        sa.Column("reporter", sa.String(42), nullable=False),
        sa.Column("amount_staked", sa.Numeric(40, 0), nullable=False),
        *_log_position(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_hash", "log_index", name="uq_disputes_event"),
    )
    op.create_index("idx_disputes_crowdsourcer", "disputes", ["crowdsourcer_id"])
    op.create_index("idx_disputes_reporter", "disputes", ["reporter"])

    op.create_table(
        "crowdsourcer_redeemed",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("crowdsourcer_id", sa.String(42), nullable=False),
        sa.Column("reporter", sa.String(42), nullable=False),
        sa.Column("amount_redeemed", sa.Numeric(40, 0), nullable=False),
        sa.Column("rep_received", sa.Numeric(40, 0), nullable=False),
        sa.Column("reporting_fees_received", sa.Numeric(40, 0), nullable=False),
        *_log_position(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_hash", "log_index", name="uq_crowdsourcer_redeemed_event"),
    )
    op.create_index("idx_crowdsourcer_redeemed_reporter", "crowdsourcer_redeemed", ["reporter"])

    op.create_table(
        "transfers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token", sa.String(42), nullable=False),
        sa.Column("sender", sa.String(42), nullable=False),
        sa.Column("recipient", sa.String(42), nullable=False),
        sa.Column("value", sa.Numeric(40, 0), nullable=False),
        *_log_position(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_hash", "log_index", name="uq_transfers_event"),
    )
    op.create_index("idx_transfers_token_sender", "transfers", ["token", "sender"])
    op.create_index("idx_transfers_token_recipient", "transfers", ["token", "recipient"])

    op.create_table(
        "balances",
        sa.Column("token", sa.String(42), nullable=False),
        sa.Column("owner", sa.String(42), nullable=False),
        sa.Column("balance", sa.Numeric(40, 0), nullable=False),
        sa.PrimaryKeyConstraint("token", "owner"),
    )
    op.create_index("idx_balances_owner", "balances", ["owner"])


def downgrade() -> None:
    op.drop_index("idx_balances_owner", table_name="balances")
    op.drop_table("balances")
    op.drop_index("idx_transfers_token_recipient", table_name="transfers")
    op.drop_index("idx_transfers_token_sender", table_name="transfers")
    op.drop_table("transfers")
    op.drop_index("idx_crowdsourcer_redeemed_reporter", table_name="crowdsourcer_redeemed")
    op.drop_table("crowdsourcer_redeemed")
    op.drop_index("idx_disputes_reporter", table_name="disputes")
    op.drop_index("idx_disputes_crowdsourcer", table_name="disputes")
    op.drop_table("disputes")
    op.drop_index("idx_crowdsourcers_payout", table_name="crowdsourcers")
    op.drop_index("idx_crowdsourcers_market_completed", table_name="crowdsourcers")
    op.drop_table("crowdsourcers")
    op.drop_table("initial_reports")
    op.drop_index("idx_fee_windows_universe_active", table_name="fee_windows")
    op.drop_table("fee_windows")
    op.drop_index("idx_payouts_market", table_name="payouts")
    op.drop_table("payouts")
    op.drop_index("idx_markets_universe", table_name="markets")
    op.drop_table("markets")

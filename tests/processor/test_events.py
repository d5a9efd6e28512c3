"""Tests for decoded log parsing."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import MARKET, TOKEN, LogFactory
from market_mirror.processor.events import (
    DisputeCrowdsourcerCreatedLog,
    DisputeCrowdsourcerRedeemedLog,
    LogMeta,
    TokensTransferredLog,
)


class TestLogMeta:
    def test_from_dict(self) -> None:
        meta = LogMeta.from_dict({"blockNumber": "12", "transactionHash": "0xabc", "logIndex": "3"})

        assert meta == LogMeta(block_number=12, transaction_hash="0xabc", log_index=3)

    def test_missing_position_rejected(self) -> None:
        with pytest.raises(KeyError):
            LogMeta.from_dict({"blockNumber": 1, "transactionHash": "0xabc"})


class TestCreatedLog:
    def test_addresses_are_lowercased(self, logs: LogFactory) -> None:
        raw = logs.created("0x" + "C" * 40, (1, 2), market=MARKET.upper().replace("0X", "0x"))

        parsed = DisputeCrowdsourcerCreatedLog.from_dict(raw)

        assert parsed.dispute_crowdsourcer == "0x" + "c" * 40
        assert parsed.market == MARKET
        assert parsed.payout_numerators == (1, 2)
        assert parsed.size == Decimal(1000)
        assert parsed.invalid is False

    def test_large_amounts_are_exact(self, logs: LogFactory) -> None:
        raw = logs.created("0x" + "c" * 40)
        raw["size"] = str(10**30 + 1)

        assert DisputeCrowdsourcerCreatedLog.from_dict(raw).size == Decimal(10**30 + 1)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, True), (False, False), ("true", True), ("False", False), ("0", False), (1, True), (0, False)],
    )
    def test_invalid_flag_parsing(self, logs: LogFactory, value: object, expected: bool) -> None:
        raw = logs.created("0x" + "c" * 40)
        raw["invalid"] = value

        assert DisputeCrowdsourcerCreatedLog.from_dict(raw).invalid is expected

    @pytest.mark.parametrize("value", ["yes", "", 2, None])
    def test_unrecognized_invalid_flag_rejected(self, logs: LogFactory, value: object) -> None:
        raw = logs.created("0x" + "c" * 40)
        raw["invalid"] = value

        with pytest.raises(ValueError, match="not a boolean flag"):
            DisputeCrowdsourcerCreatedLog.from_dict(raw)


class TestRedeemedLog:
    def test_fee_fields_default_to_zero(self, logs: LogFactory) -> None:
        raw = logs.redeemed("0x" + "c" * 40, "0x" + "2" * 40, 9)
        del raw["repReceived"]
        del raw["reportingFeesReceived"]

        parsed = DisputeCrowdsourcerRedeemedLog.from_dict(raw)

        assert parsed.amount_redeemed == Decimal(9)
        assert parsed.rep_received == Decimal(0)
        assert parsed.reporting_fees_received == Decimal(0)


class TestTokensTransferredLog:
    def test_contract_address_stands_in_for_token(self, logs: LogFactory) -> None:
        raw = logs.transfer("0x" + "5" * 40, "0x" + "6" * 40, 3)
        raw["address"] = raw.pop("token")

        assert TokensTransferredLog.from_dict(raw).token == TOKEN

    def test_amount_alias(self, logs: LogFactory) -> None:
        raw = logs.transfer("0x" + "5" * 40, "0x" + "6" * 40, 3)
        raw["amount"] = raw.pop("value")

        assert TokensTransferredLog.from_dict(raw).value == Decimal(3)

    def test_share_token_fields(self, logs: LogFactory) -> None:
        raw = logs.transfer("0x" + "5" * 40, "0x" + "6" * 40, 3, token_type="ShareToken", market=MARKET)

        parsed = TokensTransferredLog.from_dict(raw)

        assert parsed.token_type == "ShareToken"
        assert parsed.market == MARKET

    def test_missing_token_rejected(self, logs: LogFactory) -> None:
        raw = logs.transfer("0x" + "5" * 40, "0x" + "6" * 40, 3)
        del raw["token"]

        with pytest.raises(KeyError):
            TokensTransferredLog.from_dict(raw)

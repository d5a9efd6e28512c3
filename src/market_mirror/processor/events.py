"""Decoded log records handed to the processors by the chain client."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    raise KeyError(keys[0])


def _address(value: Any) -> str:
    return str(value).lower()


def _amount(value: Any) -> Decimal:
    return Decimal(str(value))


_TRUE = frozenset({"true", "1"})
_FALSE = frozenset({"false", "0"})


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise ValueError(f"not a boolean flag: {value!r}")


@dataclass(frozen=True)
class LogMeta:
    """Position of a log on the chain; (transaction_hash, log_index) is unique."""

    block_number: int
    transaction_hash: str
    log_index: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LogMeta:
        return cls(
            block_number=int(data["blockNumber"]),
            transaction_hash=str(data["transactionHash"]),
            log_index=int(data["logIndex"]),
        )


@dataclass(frozen=True)
class DisputeCrowdsourcerCreatedLog:
    meta: LogMeta
    universe: str
    market: str
    dispute_crowdsourcer: str
    payout_numerators: tuple[int, ...]
    size: Decimal
    invalid: bool

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DisputeCrowdsourcerCreatedLog:
        return cls(
            meta=LogMeta.from_dict(data),
            universe=_address(data["universe"]),
            market=_address(data["market"]),
            dispute_crowdsourcer=_address(data["disputeCrowdsourcer"]),
            payout_numerators=tuple(int(n) for n in data["payoutNumerators"]),
            size=_amount(data["size"]),
            invalid=_flag(data.get("invalid", False)),
        )


@dataclass(frozen=True)
class DisputeCrowdsourcerContributionLog:
    meta: LogMeta
    universe: str
    market: str
    dispute_crowdsourcer: str
    reporter: str
    amount_staked: Decimal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DisputeCrowdsourcerContributionLog:
        return cls(
            meta=LogMeta.from_dict(data),
            universe=_address(data.get("universe", "")),
            market=_address(data["market"]),
            dispute_crowdsourcer=_address(data["disputeCrowdsourcer"]),
            reporter=_address(data["reporter"]),
            amount_staked=_amount(data["amountStaked"]),
        )


@dataclass(frozen=True)
class DisputeCrowdsourcerCompletedLog:
    meta: LogMeta
    universe: str
    market: str
    dispute_crowdsourcer: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DisputeCrowdsourcerCompletedLog:
        return cls(
            meta=LogMeta.from_dict(data),
            universe=_address(data.get("universe", "")),
            market=_address(data["market"]),
            dispute_crowdsourcer=_address(data["disputeCrowdsourcer"]),
        )


@dataclass(frozen=True)
class DisputeCrowdsourcerRedeemedLog:
    meta: LogMeta
    universe: str
    market: str
    dispute_crowdsourcer: str
    reporter: str
    amount_redeemed: Decimal
    rep_received: Decimal
    reporting_fees_received: Decimal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DisputeCrowdsourcerRedeemedLog:
        return cls(
            meta=LogMeta.from_dict(data),
            universe=_address(data.get("universe", "")),
            market=_address(data["market"]),
            dispute_crowdsourcer=_address(data["disputeCrowdsourcer"]),
            reporter=_address(data["reporter"]),
            amount_redeemed=_amount(data["amountRedeemed"]),
            rep_received=_amount(data.get("repReceived", 0)),
            reporting_fees_received=_amount(data.get("reportingFeesReceived", 0)),
        )


@dataclass(frozen=True)
class TokensTransferredLog:
    """Transfer emitted by any tracked token.

    ``token_type`` and ``market`` are filled in by the decoder for share
    tokens so settlement can be triggered.
    """

    meta: LogMeta
    token: str
    sender: str
    recipient: str
    value: Decimal
    token_type: str | None = None
    market: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TokensTransferredLog:
        market = data.get("market")
        return cls(
            meta=LogMeta.from_dict(data),
            # The emitting contract address stands in when the decoder omits the token.
            token=_address(_first(data, "token", "address")),
            sender=_address(data["from"]),
            recipient=_address(data["to"]),
            value=_amount(_first(data, "value", "amount")),
            token_type=data.get("tokenType"),
            market=_address(market) if market is not None else None,
        )


EventLog = (
    DisputeCrowdsourcerCreatedLog
    | DisputeCrowdsourcerContributionLog
    | DisputeCrowdsourcerCompletedLog
    | DisputeCrowdsourcerRedeemedLog
    | TokensTransferredLog
)

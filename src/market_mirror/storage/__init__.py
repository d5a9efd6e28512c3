"""Storage layer - Database schemas and repositories."""

from market_mirror.storage.database import MirrorStore, normalize_async_database_url
from market_mirror.storage.models import (
    BalanceModel,
    Base,
    CrowdsourcerModel,
    CrowdsourcerRedeemedModel,
    DisputeModel,
    FeeWindowModel,
    InitialReportModel,
    MarketModel,
    PayoutModel,
    TransferModel,
)
from market_mirror.storage.repos import (
    BalanceRepository,
    CrowdsourcerDTO,
    CrowdsourcerRepository,
    DisputeDTO,
    DisputeRepository,
    FeeWindowDTO,
    FeeWindowRepository,
    InitialReportDTO,
    InitialReportRepository,
    MarketDTO,
    MarketRepository,
    PayoutDTO,
    PayoutRepository,
    RedemptionDTO,
    RedemptionRepository,
    TransferDTO,
    TransferRepository,
)

__all__ = [
    "BalanceModel",
    "BalanceRepository",
    "Base",
    "CrowdsourcerDTO",
    "CrowdsourcerModel",
    "CrowdsourcerRedeemedModel",
    "CrowdsourcerRepository",
    "DisputeDTO",
    "DisputeModel",
    "DisputeRepository",
    "FeeWindowDTO",
    "FeeWindowModel",
    "FeeWindowRepository",
    "InitialReportDTO",
    "InitialReportModel",
    "InitialReportRepository",
    "MarketDTO",
    "MarketModel",
    "MarketRepository",
    "MirrorStore",
    "PayoutDTO",
    "PayoutModel",
    "PayoutRepository",
    "RedemptionDTO",
    "RedemptionRepository",
    "TransferDTO",
    "TransferModel",
    "TransferRepository",
    "normalize_async_database_url",
]

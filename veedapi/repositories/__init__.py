# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .account_repository import AccountRepository
from .catalog_repository import PlanRepository, VideoRepository
from .ledger_repository import LedgerRepository
from .watch_repository import WatchRecordRepository
from .payment_repository import DepositRepository, WithdrawalRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "PlanRepository",
    "VideoRepository",
    "LedgerRepository",
    "WatchRecordRepository",
    "DepositRepository",
    "WithdrawalRepository",
]

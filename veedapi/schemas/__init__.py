from .account import Account, AccountCreate, DailyWatchStatus, ReferralSummary
from .catalog import Plan, PlanCreate, PurchaseResult, Video, VideoCreate
from .ledger import LedgerEntry, LedgerHistoryResponse, BalanceResponse
from .watch import WatchResult, WatchHistoryResponse
from .payment import DepositRequest, WithdrawalRequest, PaymentDecision

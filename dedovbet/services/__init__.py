from .accounts import AccountService
from .history import ReplayMismatch, filter_transactions, replay_transactions
from .remote import StoreClient
from .repository import UserRepository
from .roulette import RouletteTable, Settlement, settle
from .session import (
    BalanceChanged,
    BalanceState,
    GameResult,
    LedgerSession,
    OperationResult,
    SessionCache,
)

__all__ = [
    "AccountService",
    "BalanceChanged",
    "BalanceState",
    "GameResult",
    "LedgerSession",
    "OperationResult",
    "ReplayMismatch",
    "RouletteTable",
    "SessionCache",
    "Settlement",
    "StoreClient",
    "UserRepository",
    "filter_transactions",
    "replay_transactions",
    "settle",
]

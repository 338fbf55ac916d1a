from .schemas import (
    AccountRecord,
    BalanceResponse,
    ErrorResponse,
    LoginRequest,
    LogMismatch,
    MoneyMovementRequest,
    MoneyMovementResponse,
    RegisterRequest,
    SaveTransactionRequest,
    SuccessResponse,
    Transaction,
    TransactionCategory,
    TransactionType,
    TransactionsResponse,
    UpdateBalanceRequest,
    UserPublic,
    UserResponse,
    VerificationResponse,
)

__all__ = [
    "AccountRecord",
    "BalanceResponse",
    "ErrorResponse",
    "LoginRequest",
    "LogMismatch",
    "MoneyMovementRequest",
    "MoneyMovementResponse",
    "RegisterRequest",
    "SaveTransactionRequest",
    "SuccessResponse",
    "Transaction",
    "TransactionCategory",
    "TransactionType",
    "TransactionsResponse",
    "UpdateBalanceRequest",
    "UserPublic",
    "UserResponse",
    "VerificationResponse",
]

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..core.dependencies import get_account_service
from ..models import (
    BalanceResponse,
    LoginRequest,
    LogMismatch,
    MoneyMovementRequest,
    MoneyMovementResponse,
    RegisterRequest,
    SaveTransactionRequest,
    SuccessResponse,
    TransactionsResponse,
    UpdateBalanceRequest,
    UserResponse,
    VerificationResponse,
)
from ..services import AccountService


router = APIRouter(prefix="/api", tags=["accounts"])

@router.post("/register", response_model=UserResponse)
def register(
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> UserResponse:
    return UserResponse(user=service.register(payload))

@router.post("/login", response_model=UserResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service),
) -> UserResponse:
    return UserResponse(user=service.login(payload))

@router.get("/getBalance", response_model=BalanceResponse)
def get_balance(
    username: Optional[str] = None,
    service: AccountService = Depends(get_account_service),
) -> BalanceResponse:
    return BalanceResponse(balance=service.get_balance(username))

@router.post("/deposit", response_model=MoneyMovementResponse)
def deposit(
    payload: MoneyMovementRequest,
    service: AccountService = Depends(get_account_service),
) -> MoneyMovementResponse:
    transaction = service.deposit(payload)
    return MoneyMovementResponse(
        balance=transaction.balance_after,
        transaction_id=transaction.transaction_id,
    )

@router.post("/withdraw", response_model=MoneyMovementResponse)
def withdraw(
    payload: MoneyMovementRequest,
    service: AccountService = Depends(get_account_service),
) -> MoneyMovementResponse:
    transaction = service.withdraw(payload)
    return MoneyMovementResponse(
        balance=transaction.balance_after,
        transaction_id=transaction.transaction_id,
    )

@router.get(
    "/transactions",
    response_model=TransactionsResponse,
    response_model_exclude_none=True,
)
def list_transactions(
    username: Optional[str] = None,
    category: Optional[str] = None,
    tx_type: Optional[str] = Query(default=None, alias="type"),
    date_from: Optional[str] = Query(default=None, alias="dateFrom"),
    date_to: Optional[str] = Query(default=None, alias="dateTo"),
    service: AccountService = Depends(get_account_service),
) -> TransactionsResponse:
    transactions = service.list_transactions(
        username,
        category=category,
        tx_type=tx_type,
        date_from=date_from,
        date_to=date_to,
    )
    return TransactionsResponse(transactions=transactions)

@router.post("/saveTransaction", response_model=SuccessResponse)
def save_transaction(
    payload: SaveTransactionRequest,
    service: AccountService = Depends(get_account_service),
) -> SuccessResponse:
    service.save_transaction(payload.username, payload.transaction)
    return SuccessResponse()

@router.post("/updateBalance", response_model=BalanceResponse)
def update_balance(
    payload: UpdateBalanceRequest,
    service: AccountService = Depends(get_account_service),
) -> BalanceResponse:
    return BalanceResponse(balance=service.update_balance(payload.username, payload.balance))

@router.get("/verifyTransactions", response_model=VerificationResponse)
def verify_transactions(
    username: Optional[str] = None,
    service: AccountService = Depends(get_account_service),
) -> VerificationResponse:
    mismatches = service.verify_transactions(username)
    return VerificationResponse(
        consistent=not mismatches,
        mismatches=[
            LogMismatch(
                index=m.index,
                expected=m.expected,
                recorded=m.recorded,
                transaction=m.transaction,
            )
            for m in mismatches
        ],
    )

__all__ = ["router"]

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Optional
from uuid import uuid4

from ..core.config import Settings
from ..core.errors import (
    AboveMaximumError,
    BelowMinimumError,
    InsufficientBalanceError,
    MissingFieldError,
)
from ..models import (
    AccountRecord,
    LoginRequest,
    MoneyMovementRequest,
    RegisterRequest,
    Transaction,
    UserPublic,
)
from .history import ReplayMismatch, filter_transactions, replay_transactions
from .repository import UserRepository


logger = logging.getLogger(__name__)


def check_bounds(amount: int, minimum: int, maximum: int, action: str) -> None:
    if amount < minimum:
        raise BelowMinimumError(f"Minimum {action} amount is ${minimum}")
    if amount > maximum:
        raise AboveMaximumError(f"Maximum {action} amount is ${maximum}")


class AccountService:
    def __init__(self, repository: UserRepository, settings: Settings) -> None:
        self.repository = repository
        self.settings = settings

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _to_public(self, account: AccountRecord) -> UserPublic:
        return UserPublic(
            username=account.username,
            email=account.email,
            name=account.name,
            surname=account.surname,
            date_of_birth=account.date_of_birth,
            nationality=account.nationality,
            balance=account.balance,
            joined_date=account.joined_date,
        )

    @staticmethod
    def _require_username(username: Optional[str]) -> str:
        if not username or not username.strip():
            raise MissingFieldError("Username is required")
        return username

    def _movement(
        self,
        tx_type: str,
        amount: int,
        method: str,
        new_balance: int,
    ) -> Transaction:
        return Transaction(
            type=tx_type,
            category="account",
            amount=amount,
            method=method,
            timestamp=datetime.now(UTC),
            balance_after=new_balance,
            transaction_id=uuid4().hex,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def register(self, payload: RegisterRequest) -> UserPublic:
        account = self.repository.create_account(payload)
        logger.info("account.registered", extra={"username": account.username})
        return self._to_public(account)

    def login(self, payload: LoginRequest) -> UserPublic:
        account = self.repository.authenticate(payload.login_input, payload.password)
        logger.info("account.login", extra={"username": account.username})
        return self._to_public(account)

    def get_balance(self, username: Optional[str]) -> int:
        return self.repository.get_balance(self._require_username(username))

    def deposit(self, payload: MoneyMovementRequest) -> Transaction:
        self._require_username(payload.username)
        check_bounds(
            payload.amount, self.settings.deposit_min, self.settings.deposit_max, "deposit"
        )

        account = self.repository.get_account(payload.username)
        new_balance = account.balance + payload.amount
        transaction = self._movement("deposit", payload.amount, payload.method, new_balance)
        self.repository.apply_balance(account.username, new_balance, transaction)
        logger.info(
            "account.deposit",
            extra={
                "username": account.username,
                "amount": payload.amount,
                "balance": new_balance,
            },
        )
        return transaction

    def withdraw(self, payload: MoneyMovementRequest) -> Transaction:
        self._require_username(payload.username)
        check_bounds(
            payload.amount, self.settings.withdraw_min, self.settings.withdraw_max, "withdrawal"
        )

        account = self.repository.get_account(payload.username)
        if account.balance < payload.amount:
            raise InsufficientBalanceError("Insufficient balance")

        new_balance = account.balance - payload.amount
        transaction = self._movement("withdrawal", -payload.amount, payload.method, new_balance)
        self.repository.apply_balance(account.username, new_balance, transaction)
        logger.info(
            "account.withdraw",
            extra={
                "username": account.username,
                "amount": payload.amount,
                "balance": new_balance,
            },
        )
        return transaction

    def list_transactions(
        self,
        username: Optional[str],
        *,
        category: Optional[str] = None,
        tx_type: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> list[Transaction]:
        transactions = self.repository.list_transactions(self._require_username(username))
        return filter_transactions(
            transactions,
            category=category,
            type=tx_type,
            date_from=date_from,
            date_to=date_to,
        )

    def save_transaction(self, username: str, transaction: Transaction) -> None:
        self.repository.append_transaction(self._require_username(username), transaction)
        logger.info(
            "account.transaction_saved",
            extra={
                "username": username,
                "type": transaction.type,
                "amount": transaction.amount,
            },
        )

    def update_balance(self, username: str, balance: int) -> int:
        committed = self.repository.apply_balance(self._require_username(username), balance)
        logger.info(
            "account.balance_overwritten",
            extra={"username": username, "balance": committed},
        )
        return committed

    def verify_transactions(self, username: Optional[str]) -> list[ReplayMismatch]:
        transactions = self.repository.list_transactions(self._require_username(username))
        mismatches = replay_transactions(transactions, self.settings.starting_balance)
        if mismatches:
            logger.warning(
                "account.log_inconsistent",
                extra={"username": username, "mismatches": len(mismatches)},
            )
        return mismatches

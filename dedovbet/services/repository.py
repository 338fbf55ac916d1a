from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from ..core.errors import (
    AccountNotFoundError,
    BadPasswordError,
    DuplicateEmailError,
    DuplicateUsernameError,
    InputTooShortError,
    InvalidAmountError,
    MissingFieldError,
    UnknownLoginError,
)
from ..core.security import (
    DEFAULT_ARGON2_PARAMS,
    Argon2Params,
    hash_password,
    verify_password,
)
from ..core.store import UserFile
from ..models import AccountRecord, RegisterRequest, Transaction

MIN_LOGIN_INPUT = 3


class UserRepository:
    """The store of record: accounts and their transaction logs.

    Every mutating call reads the whole file, changes one account and
    rewrites the whole file before returning.
    """

    def __init__(
        self,
        user_file: UserFile,
        starting_balance: int = 1000,
        hash_params: Argon2Params = DEFAULT_ARGON2_PARAMS,
    ) -> None:
        self.user_file = user_file
        self.starting_balance = starting_balance
        self.hash_params = hash_params

    # Raw access ---------------------------------------------------------
    def load_all(self) -> list[AccountRecord]:
        return [AccountRecord.model_validate(item) for item in self.user_file.read()]

    def save_all(self, accounts: list[AccountRecord]) -> None:
        self.user_file.write(
            [account.model_dump(by_alias=True, mode="json") for account in accounts]
        )

    @staticmethod
    def _find(accounts: list[AccountRecord], username: str) -> AccountRecord:
        wanted = username.strip().lower()
        for account in accounts:
            if account.username.lower() == wanted:
                return account
        raise AccountNotFoundError("User not found")

    def get_account(self, username: str) -> AccountRecord:
        return self._find(self.load_all(), username)

    # Accounts -----------------------------------------------------------
    def create_account(self, payload: RegisterRequest) -> AccountRecord:
        username = payload.username.strip()
        email = payload.email.strip()
        if not username or not email or not payload.password:
            raise MissingFieldError("Username, email and password are required")

        accounts = self.load_all()
        if any(a.email.lower() == email.lower() for a in accounts):
            raise DuplicateEmailError("Email already registered!")
        if any(a.username.lower() == username.lower() for a in accounts):
            raise DuplicateUsernameError("Username already taken!")

        password_hash = hash_password(payload.password, self.hash_params)

        account = AccountRecord(
            username=username,
            email=email,
            password_hash=password_hash,
            balance=self.starting_balance,
            joined_date=datetime.now(UTC).isoformat(),
            name=payload.name,
            surname=payload.surname,
            date_of_birth=payload.date_of_birth,
            nationality=payload.nationality,
        )
        accounts.append(account)
        self.save_all(accounts)
        return account

    def authenticate(self, login_input: str, password: str) -> AccountRecord:
        if not login_input:
            raise MissingFieldError("Username or email is required")
        if not password:
            raise MissingFieldError("Password is required")

        wanted = login_input.strip().lower()
        if len(wanted) < MIN_LOGIN_INPUT:
            raise InputTooShortError(
                f"Username must be at least {MIN_LOGIN_INPUT} characters long"
            )

        for account in self.load_all():
            if wanted in (account.username.lower(), account.email.lower()):
                if not verify_password(password, account.password_hash):
                    raise BadPasswordError("Incorrect password")
                return account
        raise UnknownLoginError("Email or username not found")

    # Balance ------------------------------------------------------------
    def get_balance(self, username: str) -> int:
        return self.get_account(username).balance

    def apply_balance(
        self,
        username: str,
        new_balance: int,
        transaction: Optional[Transaction] = None,
    ) -> int:
        """Overwrite the balance, optionally logging ``transaction`` in the same write.

        This is not a delta: the caller computes the new value. Two callers
        racing on one account lose one of the updates.
        """
        if new_balance < 0:
            raise InvalidAmountError("Balance cannot be negative")

        accounts = self.load_all()
        account = self._find(accounts, username)
        account.balance = new_balance
        if transaction is not None:
            account.transactions.insert(0, transaction)
        self.save_all(accounts)
        return account.balance

    # Transactions -------------------------------------------------------
    def append_transaction(self, username: str, transaction: Transaction) -> None:
        accounts = self.load_all()
        account = self._find(accounts, username)
        account.transactions.insert(0, transaction)
        self.save_all(accounts)

    def list_transactions(self, username: str) -> list[Transaction]:
        return list(self.get_account(username).transactions)

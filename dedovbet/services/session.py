"""
Client-side ledger for one logged-in account.

A ``LedgerSession`` keeps two balances. The committed balance mirrors the
store of record. The virtual balance moves immediately with every bet, win
and refund so a game round never waits on the network. The round is
committed when its result is processed: the virtual balance is pushed to the
store (overwrite), the round's game transactions are saved oldest first and
both balances are reconciled to the store's answer.

Every public operation returns an ``OperationResult``; ledger errors never
escape the session. Nothing is retried here, callers decide.
"""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, MutableMapping, Optional

from ..core.config import Settings, get_settings
from pydantic import ValidationError as SchemaError

from ..core.errors import (
    InsufficientBalanceError,
    InvalidAmountError,
    LedgerError,
    NotLoggedInError,
    ValidationError,
)
from ..models import Transaction
from .accounts import check_bounds
from .history import DateLike, filter_transactions
from .remote import StoreClient


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BetIntent:
    amount: int
    game_type: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class BalanceState:
    committed: int
    virtual: int
    pending_bets: list[BetIntent] = field(default_factory=list)

    @classmethod
    def opened_at(cls, balance: int) -> "BalanceState":
        return cls(committed=balance, virtual=balance)

    @property
    def diverged(self) -> bool:
        return self.virtual != self.committed or bool(self.pending_bets)

    def reconcile(self, authoritative: int) -> None:
        self.committed = authoritative
        self.virtual = authoritative
        self.pending_bets.clear()


@dataclass(frozen=True)
class GameResult:
    is_win: bool
    win_amount: int = 0
    game_type: str = ""
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BalanceChanged:
    committed: int
    virtual: int
    reason: str


@dataclass
class OperationResult:
    success: bool
    balance: Optional[int] = None
    transaction: Optional[Transaction] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def failure(
        cls,
        exc: LedgerError,
        balance: Optional[int] = None,
        transaction: Optional[Transaction] = None,
    ) -> "OperationResult":
        return cls(
            success=False,
            balance=balance,
            transaction=transaction,
            error=exc.message,
            error_kind=exc.kind,
        )


Listener = Callable[[BalanceChanged], None]


def _require_whole(amount: Any, message: str) -> int:
    # bool is an int subclass; True is not a stake.
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(message)
    return amount


class SessionCache:
    """Client-local snapshot of the logged-in account, stored as JSON text."""

    KEY = "current_user"

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None) -> None:
        self.storage = storage if storage is not None else {}

    def get_user(self) -> Optional[dict[str, Any]]:
        raw = self.storage.get(self.KEY)
        return json.loads(raw) if raw else None

    def set_user(self, user: dict[str, Any]) -> None:
        snapshot = dict(user)
        snapshot["password"] = "!"  # never cache the real password
        self.storage[self.KEY] = json.dumps(snapshot)

    def update_balance(self, balance: int) -> None:
        user = self.get_user()
        if user is not None:
            user["balance"] = balance
            self.storage[self.KEY] = json.dumps(user)

    def clear(self) -> None:
        self.storage.pop(self.KEY, None)


def _ledger_boundary(method):
    @functools.wraps(method)
    def wrapper(self: "LedgerSession", *args, **kwargs) -> OperationResult:
        try:
            return method(self, *args, **kwargs)
        except LedgerError as exc:
            logger.warning(
                "ledger.operation_failed",
                extra={
                    "operation": method.__name__,
                    "kind": exc.kind,
                    "error": exc.message,
                },
            )
            balance = self.state.virtual if self.state is not None else None
            return OperationResult.failure(exc, balance=balance)

    return wrapper


class LedgerSession:
    def __init__(
        self,
        store: StoreClient,
        cache: Optional[SessionCache] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.cache = cache or SessionCache()
        self.settings = settings or get_settings()
        self.clock = clock or (lambda: datetime.now(UTC))

        self.username: Optional[str] = None
        self.state: Optional[BalanceState] = None
        # Most recent first, including transactions the store has not seen yet.
        self.transactions: list[Transaction] = []
        # Oldest first, waiting for the next commit.
        self._unsaved: list[Transaction] = []
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    @property
    def is_logged_in(self) -> bool:
        return self.username is not None and self.state is not None

    @property
    def balance(self) -> int:
        return self.state.virtual if self.state is not None else 0

    @property
    def committed_balance(self) -> int:
        return self.state.committed if self.state is not None else 0

    @property
    def needs_commit(self) -> bool:
        return self.state is not None and (self.state.diverged or bool(self._unsaved))

    def _require_login(self) -> BalanceState:
        if not self.is_logged_in:
            raise NotLoggedInError("User not logged in")
        return self.state

    def _build(self, tx_type: str, amount: int, balance_after: int, **fields: Any) -> Transaction:
        try:
            return Transaction(
                type=tx_type,
                amount=amount,
                timestamp=self.clock(),
                balance_after=balance_after,
                **fields,
            )
        except SchemaError as exc:
            raise ValidationError(f"Invalid {tx_type} transaction") from exc

    def _record(self, transaction: Transaction) -> Transaction:
        self.transactions.insert(0, transaction)
        if transaction.category == "game":
            self._unsaved.append(transaction)
        return transaction

    def _notify(self, reason: str) -> None:
        event = BalanceChanged(self.committed_balance, self.balance, reason)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("ledger.listener_failed", extra={"reason": reason})

    def _open(self, user: dict[str, Any]) -> None:
        self.username = user["username"]
        self.state = BalanceState.opened_at(int(user.get("balance", 0)))
        self.transactions = []
        self._unsaved = []
        self.cache.set_user(user)
        try:
            self.transactions = self.store.list_transactions(self.username)
        except LedgerError as exc:
            logger.warning(
                "ledger.history_unavailable",
                extra={"username": self.username, "error": exc.message},
            )
        self._notify("login")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for balance changes; returns the unsubscribe call."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    @_ledger_boundary
    def register(self, username: str, email: str, password: str, **profile: str) -> OperationResult:
        user = self.store.register(username=username, email=email, password=password, **profile)
        self._open(user)
        logger.info("ledger.registered", extra={"username": self.username})
        return OperationResult(success=True, balance=self.balance)

    @_ledger_boundary
    def login(self, login_input: str, password: str) -> OperationResult:
        user = self.store.login(login_input, password)
        self._open(user)
        logger.info("ledger.login", extra={"username": self.username})
        return OperationResult(success=True, balance=self.balance)

    def logout(self) -> None:
        """Discard the session. Uncommitted round state is not persisted."""
        if self.needs_commit:
            logger.warning(
                "ledger.logout_discarding",
                extra={"username": self.username, "virtual": self.balance},
            )
        self.username = None
        self.state = None
        self.transactions = []
        self._unsaved = []
        self.cache.clear()
        self._notify("logout")

    @_ledger_boundary
    def close(self) -> OperationResult:
        """Best-effort reconciliation when the page or table goes away."""
        if not self.is_logged_in or not self.needs_commit:
            return OperationResult(success=True, balance=self.balance)
        result = self.persist_balance()
        if not result.success:
            logger.warning(
                "ledger.close_unreconciled",
                extra={"username": self.username, "error": result.error},
            )
        return result

    # ------------------------------------------------------------------
    # Game operations
    # ------------------------------------------------------------------
    @_ledger_boundary
    def place_bet(
        self,
        amount: int,
        game_type: str,
        details: Optional[dict[str, Any]] = None,
    ) -> OperationResult:
        state = self._require_login()
        amount = _require_whole(amount, "Invalid bet amount")
        if amount <= 0:
            raise InvalidAmountError("Invalid bet amount")
        if amount > state.virtual:
            raise InsufficientBalanceError("Insufficient balance")

        transaction = self._build(
            "bet",
            -amount,
            state.virtual - amount,
            game_type=game_type,
            details=details or {},
        )
        state.virtual -= amount
        state.pending_bets.append(BetIntent(amount, game_type, dict(transaction.details)))
        self._record(transaction)
        logger.debug(
            "ledger.bet",
            extra={"username": self.username, "amount": amount, "virtual": state.virtual},
        )
        self._notify("bet")
        return OperationResult(success=True, balance=state.virtual, transaction=transaction)

    @_ledger_boundary
    def refund_bet(self, amount: int, game_type: str) -> OperationResult:
        state = self._require_login()
        amount = _require_whole(amount, "Invalid refund amount")
        if amount <= 0:
            raise InvalidAmountError("Invalid refund amount")

        transaction = self._build(
            "refund", amount, state.virtual + amount, game_type=game_type
        )
        state.virtual += amount
        staked = sum(b.amount for b in state.pending_bets if b.game_type == game_type)
        if staked == amount:
            state.pending_bets[:] = [b for b in state.pending_bets if b.game_type != game_type]
        self._record(transaction)
        self._notify("refund")
        return OperationResult(success=True, balance=state.virtual, transaction=transaction)

    @_ledger_boundary
    def process_game_result(self, result: GameResult) -> OperationResult:
        """Settle a round and commit it to the store.

        A failed commit comes back as a failure that still carries the local
        balance and win transaction; ``needs_commit`` stays true until a
        later ``persist_balance`` succeeds.
        """
        state = self._require_login()
        win_amount = _require_whole(result.win_amount, "Invalid win amount")
        transaction = None
        if result.is_win and win_amount > 0:
            transaction = self._build(
                "win",
                win_amount,
                state.virtual + win_amount,
                game_type=result.game_type,
                details=result.details,
            )
            state.virtual += win_amount
            self._record(transaction)
            self._notify("win")

        commit = self.persist_balance()
        if not commit.success:
            return OperationResult(
                success=False,
                balance=state.virtual,
                transaction=transaction,
                error=f"Balance not saved: {commit.error}",
                error_kind=commit.error_kind,
            )
        return OperationResult(success=True, balance=state.virtual, transaction=transaction)

    # ------------------------------------------------------------------
    # Account operations
    # ------------------------------------------------------------------
    def _flush_round(self) -> Optional[OperationResult]:
        if self.needs_commit:
            commit = self.persist_balance()
            if not commit.success:
                return commit
        return None

    @_ledger_boundary
    def deposit(self, amount: int, method: str = "credit_card") -> OperationResult:
        self._require_login()
        amount = _require_whole(amount, "Invalid deposit amount")
        check_bounds(amount, self.settings.deposit_min, self.settings.deposit_max, "deposit")
        failed = self._flush_round()
        if failed is not None:
            return failed

        data = self.store.deposit(self.username, amount, method)
        return self._mirror_movement("deposit", amount, method, data)

    @_ledger_boundary
    def withdraw(self, amount: int, method: str = "credit_card") -> OperationResult:
        state = self._require_login()
        amount = _require_whole(amount, "Invalid withdrawal amount")
        check_bounds(
            amount, self.settings.withdraw_min, self.settings.withdraw_max, "withdrawal"
        )
        # An open round commits at the virtual balance.
        if amount > state.virtual:
            raise InsufficientBalanceError("Insufficient balance")
        failed = self._flush_round()
        if failed is not None:
            return failed
        if amount > state.committed:
            raise InsufficientBalanceError("Insufficient balance")

        data = self.store.withdraw(self.username, amount, method)
        return self._mirror_movement("withdrawal", -amount, method, data)

    def _mirror_movement(
        self, tx_type: str, amount: int, method: str, data: dict[str, Any]
    ) -> OperationResult:
        self.state.reconcile(int(data["balance"]))
        # The store already logged this one; keep a local copy only.
        transaction = Transaction(
            type=tx_type,
            amount=amount,
            method=method,
            timestamp=self.clock(),
            balance_after=self.state.committed,
            transaction_id=data.get("transactionId"),
        )
        self.transactions.insert(0, transaction)
        self.cache.update_balance(self.state.committed)
        logger.info(
            "ledger.account_movement",
            extra={
                "username": self.username,
                "type": tx_type,
                "amount": amount,
                "balance": self.balance,
            },
        )
        self._notify(tx_type)
        return OperationResult(success=True, balance=self.balance, transaction=transaction)

    # ------------------------------------------------------------------
    # Synchronisation with the store
    # ------------------------------------------------------------------
    @_ledger_boundary
    def persist_balance(self) -> OperationResult:
        state = self._require_login()
        committed = self.store.update_balance(self.username, state.virtual)
        state.committed = committed

        while self._unsaved:
            self.store.save_transaction(self.username, self._unsaved[0])
            self._unsaved.pop(0)

        state.reconcile(committed)
        self.cache.update_balance(committed)
        logger.info(
            "ledger.committed",
            extra={"username": self.username, "balance": committed},
        )
        self._notify("commit")
        return OperationResult(success=True, balance=committed)

    @_ledger_boundary
    def refresh_balance(self) -> OperationResult:
        state = self._require_login()
        balance = self.store.get_balance(self.username)
        if self.needs_commit:
            # A round is in flight; keep its provisional balance.
            state.committed = balance
        else:
            state.reconcile(balance)
        self.cache.update_balance(balance)
        self._notify("refresh")
        return OperationResult(success=True, balance=self.balance)

    @_ledger_boundary
    def load_transaction_history(self) -> OperationResult:
        self._require_login()
        stored = self.store.list_transactions(self.username)
        self.transactions = list(reversed(self._unsaved)) + stored
        return OperationResult(success=True, balance=self.balance)

    def get_transaction_history(
        self,
        category: Optional[str] = None,
        type: Optional[str] = None,
        date_from: DateLike = None,
        date_to: DateLike = None,
    ) -> list[Transaction]:
        if not self.is_logged_in:
            return []
        return filter_transactions(
            self.transactions,
            category=category,
            type=type,
            date_from=date_from,
            date_to=date_to,
        )

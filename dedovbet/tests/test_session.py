from datetime import UTC, datetime

import httpx
import pytest
from fastapi.testclient import TestClient

from ..core.errors import StateError
from ..models import Transaction
from ..services import (
    GameResult,
    LedgerSession,
    SessionCache,
    StoreClient,
    replay_transactions,
)


def _stored_balance(client: TestClient, username: str = "alice") -> int:
    return client.get("/api/getBalance", params={"username": username}).json()["balance"]


def _stored_log(client: TestClient, username: str = "alice") -> list[Transaction]:
    data = client.get("/api/transactions", params={"username": username}).json()
    return [Transaction.model_validate(item) for item in data["transactions"]]


def test_logged_out_operations_fail_without_network(session: LedgerSession) -> None:
    for result in (
        session.place_bet(10, "roulette"),
        session.deposit(100),
        session.withdraw(100),
        session.refund_bet(10, "roulette"),
        session.persist_balance(),
        session.process_game_result(GameResult(is_win=True, win_amount=5)),
    ):
        assert result.success is False
        assert result.error == "User not logged in"
        assert result.error_kind == "state"
    assert session.get_transaction_history() == []


def test_register_opens_session_and_caches_snapshot(
    player: LedgerSession, cache: SessionCache
) -> None:
    assert player.is_logged_in
    assert player.balance == 1000
    assert player.committed_balance == 1000
    snapshot = cache.get_user()
    assert snapshot["username"] == "alice"
    assert snapshot["balance"] == 1000
    assert snapshot["password"] == "!"


def test_login_failure_keeps_its_kind(client: TestClient, session: LedgerSession) -> None:
    session.register("alice", "alice@example.com", "secret123")
    session.logout()

    bad = session.login("alice", "wrong")
    assert bad.success is False
    assert bad.error == "Incorrect password"
    assert bad.error_kind == "auth"
    assert not session.is_logged_in

    good = session.login("ALICE@example.com", "secret123")
    assert good.success is True
    assert good.balance == 1000


def test_server_rejections_map_to_error_families(client: TestClient, session: LedgerSession) -> None:
    session.register("alice", "alice@example.com", "secret123")
    session.logout()

    unknown = session.login("nobody", "secret123")
    assert (unknown.error, unknown.error_kind) == ("Email or username not found", "auth")

    duplicate = session.register("alice2", "ALICE@example.com", "secret123")
    assert (duplicate.error, duplicate.error_kind) == ("Email already registered!", "validation")

    store = StoreClient(client)
    with pytest.raises(StateError, match="Insufficient balance"):
        store.withdraw("alice", 2000, "credit_card")


def test_place_bet_debits_virtual_only(client: TestClient, player: LedgerSession) -> None:
    result = player.place_bet(50, "roulette", {"bet": "red"})

    assert result.success is True
    assert result.balance == 950
    assert result.transaction.type == "bet"
    assert result.transaction.amount == -50
    assert result.transaction.balance_after == 950
    assert player.committed_balance == 1000
    assert player.needs_commit
    assert _stored_balance(client) == 1000


def test_place_bet_validation(player: LedgerSession) -> None:
    zero = player.place_bet(0, "roulette")
    assert zero.success is False
    assert zero.error == "Invalid bet amount"

    assert player.place_bet(600, "roulette").success
    over = player.place_bet(401, "roulette")
    assert over.success is False
    assert over.error == "Insufficient balance"
    assert player.balance == 400


def test_loss_leaves_balance_minus_stake(client: TestClient, player: LedgerSession) -> None:
    player.place_bet(40, "roulette")
    result = player.process_game_result(GameResult(is_win=False, game_type="roulette"))

    assert result.success is True
    assert result.balance == 960
    assert result.transaction is None
    assert not player.needs_commit
    assert _stored_balance(client) == 960
    assert [t.type for t in _stored_log(client)] == ["bet"]


def test_win_leaves_balance_minus_stake_plus_win(client: TestClient, player: LedgerSession) -> None:
    player.place_bet(10, "roulette")
    result = player.process_game_result(
        GameResult(is_win=True, win_amount=20, game_type="roulette", details={"winNumber": 32})
    )

    assert result.success is True
    assert result.balance == 1010
    assert result.transaction.type == "win"
    assert result.transaction.balance_after == 1010
    assert player.committed_balance == 1010
    assert _stored_balance(client) == 1010

    log = _stored_log(client)
    assert [t.type for t in log] == ["win", "bet"]
    assert log[0].details == {"winNumber": 32}
    assert replay_transactions(log) == []


def test_deposit_updates_balance_and_history(client: TestClient, player: LedgerSession) -> None:
    result = player.deposit(100, "demo")

    assert result.success is True
    assert result.balance == 1100
    assert result.transaction.type == "deposit"
    assert result.transaction.method == "demo"
    assert result.transaction.transaction_id
    assert player.committed_balance == 1100
    assert player.get_transaction_history()[0] == result.transaction
    assert _stored_balance(client) == 1100
    # The store logged it; the session must not save it a second time.
    assert len(_stored_log(client)) == 1


@pytest.mark.parametrize(
    "amount, message",
    [
        (9, "Minimum deposit amount is $10"),
        (10000, "Maximum deposit amount is $9999"),
    ],
)
def test_deposit_bounds_checked_before_network(
    client: TestClient, player: LedgerSession, amount: int, message: str
) -> None:
    result = player.deposit(amount)
    assert result.success is False
    assert result.error == message
    assert result.error_kind == "validation"
    assert player.balance == 1000
    assert _stored_log(client) == []


@pytest.mark.parametrize(
    "amount, message",
    [
        (24, "Minimum withdrawal amount is $25"),
        (5001, "Maximum withdrawal amount is $5000"),
        (1001, "Insufficient balance"),
    ],
)
def test_withdraw_failures(player: LedgerSession, amount: int, message: str) -> None:
    result = player.withdraw(amount)
    assert result.success is False
    assert result.error == message
    assert player.balance == 1000


def test_withdraw_succeeds(client: TestClient, player: LedgerSession) -> None:
    result = player.withdraw(1000)
    assert result.success is True
    assert result.balance == 0
    assert result.transaction.amount == -1000
    assert _stored_balance(client) == 0


def test_withdraw_over_open_round_is_refused_before_commit(
    client: TestClient, player: LedgerSession
) -> None:
    player.place_bet(100, "roulette")
    refused = player.withdraw(901)
    assert refused.error == "Insufficient balance"
    assert refused.error_kind == "state"
    # Nothing reached the store: the round is still open.
    assert _stored_balance(client) == 1000
    assert player.needs_commit

    result = player.withdraw(900)
    assert result.success is True
    assert result.balance == 0
    assert replay_transactions(_stored_log(client)) == []


def test_non_integer_amounts_leave_session_untouched(player: LedgerSession) -> None:
    for amount in (10.5, True, "10"):
        result = player.place_bet(amount, "roulette")
        assert result.success is False
        assert result.error == "Invalid bet amount"
        assert result.error_kind == "validation"
        assert player.refund_bet(amount, "roulette").error_kind == "validation"

    assert player.balance == 1000
    assert player.state.pending_bets == []
    assert player.transactions == []
    assert not player.needs_commit

    assert player.deposit(50.5).error == "Invalid deposit amount"
    assert player.withdraw(30.0).error == "Invalid withdrawal amount"


def test_bad_win_amount_is_rejected_before_crediting(player: LedgerSession) -> None:
    player.place_bet(10, "roulette")
    result = player.process_game_result(GameResult(is_win=True, win_amount=20.5))

    assert result.success is False
    assert result.error == "Invalid win amount"
    assert player.balance == 990
    assert [t.type for t in player.transactions] == ["bet"]


def test_unrecordable_transaction_is_a_failure(player: LedgerSession) -> None:
    for result in (
        player.place_bet(10, 123),
        player.place_bet(10, "roulette", details=["not", "a", "map"]),
    ):
        assert result.success is False
        assert result.error == "Invalid bet transaction"
        assert result.error_kind == "validation"
    assert player.balance == 1000
    assert player.state.pending_bets == []


def test_refund_bet(client: TestClient, player: LedgerSession) -> None:
    player.place_bet(30, "roulette")
    result = player.refund_bet(30, "roulette")

    assert result.success is True
    assert result.balance == 1000
    assert result.transaction.type == "refund"
    assert player.state.pending_bets == []
    assert player.refund_bet(0, "roulette").success is False


def test_history_filters(player: LedgerSession) -> None:
    def at(day: int, hour: int) -> Transaction:
        return Transaction(
            type="bet",
            amount=-1,
            game_type="roulette",
            timestamp=datetime(2024, 1, day, hour, tzinfo=UTC),
            balance_after=999,
        )

    deposit = Transaction(
        type="deposit",
        amount=10,
        timestamp=datetime(2024, 1, 1, 12, tzinfo=UTC),
        balance_after=1010,
    )
    late_game, early_game, next_day = at(1, 23), at(1, 0), at(2, 0)
    player.transactions = [next_day, late_game, deposit, early_game]

    same_day_games = player.get_transaction_history(
        category="game", date_from="2024-01-01", date_to="2024-01-01"
    )
    assert same_day_games == [late_game, early_game]
    assert player.get_transaction_history(type="deposit") == [deposit]
    assert player.get_transaction_history(date_from="2024-01-02") == [next_day]
    assert len(player.get_transaction_history()) == 4


def test_listeners_receive_balance_changes(player: LedgerSession) -> None:
    events = []
    unsubscribe = player.subscribe(events.append)

    player.place_bet(10, "roulette")
    player.process_game_result(GameResult(is_win=False))
    unsubscribe()
    player.place_bet(10, "roulette")

    assert [e.reason for e in events] == ["bet", "commit"]
    assert (events[0].committed, events[0].virtual) == (1000, 990)
    assert (events[1].committed, events[1].virtual) == (990, 990)


def test_failing_listener_does_not_break_ledger(player: LedgerSession) -> None:
    def explode(event):
        raise RuntimeError("ui gone")

    player.subscribe(explode)
    assert player.place_bet(10, "roulette").success is True


def test_refresh_balance_picks_up_store_changes(client: TestClient, player: LedgerSession) -> None:
    client.post("/api/updateBalance", json={"username": "alice", "balance": 1234})
    result = player.refresh_balance()
    assert result.balance == 1234
    assert player.committed_balance == 1234


def test_refresh_during_round_keeps_virtual(client: TestClient, player: LedgerSession) -> None:
    player.place_bet(100, "roulette")
    player.refresh_balance()
    assert player.balance == 900
    assert player.committed_balance == 1000


def test_logout_discards_uncommitted_state(
    client: TestClient, player: LedgerSession, cache: SessionCache
) -> None:
    player.place_bet(100, "roulette")
    player.logout()

    assert not player.is_logged_in
    assert cache.get_user() is None
    assert _stored_balance(client) == 1000


def test_close_reconciles_open_round(client: TestClient, player: LedgerSession) -> None:
    player.place_bet(100, "roulette")
    result = player.close()
    assert result.success is True
    assert _stored_balance(client) == 900
    assert not player.needs_commit


def test_load_transaction_history_keeps_unsaved(client: TestClient, player: LedgerSession) -> None:
    player.deposit(50)
    bet = player.place_bet(5, "roulette").transaction

    assert player.load_transaction_history().success is True
    assert player.transactions[0] == bet
    assert [t.type for t in player.transactions] == ["bet", "deposit"]


class _FlakyTransport(httpx.BaseTransport):
    """Forwards to the app until told to fail."""

    def __init__(self, client: TestClient) -> None:
        self.client = client
        self.fail = False

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        response = self.client.request(
            request.method,
            request.url.path,
            params=request.url.params,
            content=request.content,
            headers={"content-type": request.headers.get("content-type", "application/json")},
        )
        return httpx.Response(response.status_code, content=response.content)


@pytest.fixture
def flaky(client: TestClient):
    transport = _FlakyTransport(client)
    session = LedgerSession(
        StoreClient(httpx.Client(transport=transport, base_url="http://store"))
    )
    assert session.register("bob", "bob@example.com", "secret123").success
    return transport, session


def test_network_failure_on_deposit_leaves_state(flaky) -> None:
    transport, session = flaky
    transport.fail = True

    result = session.deposit(100)
    assert result.success is False
    assert result.error_kind == "network"
    assert session.balance == 1000
    assert session.committed_balance == 1000
    assert [t.type for t in session.transactions] == []


def test_failed_commit_after_win_is_visible_and_retryable(client: TestClient, flaky) -> None:
    transport, session = flaky
    session.place_bet(10, "roulette")
    transport.fail = True

    result = session.process_game_result(GameResult(is_win=True, win_amount=360))
    assert result.success is False
    assert result.error.startswith("Balance not saved")
    assert result.balance == 1350
    assert result.transaction.type == "win"
    assert session.needs_commit
    assert session.committed_balance == 1000
    assert _stored_balance(client, "bob") == 1000

    transport.fail = False
    retry = session.persist_balance()
    assert retry.success is True
    assert not session.needs_commit
    assert _stored_balance(client, "bob") == 1350
    log = _stored_log(client, "bob")
    assert [t.type for t in log] == ["win", "bet"]
    assert replay_transactions(log) == []

"""
European single-zero roulette: outcome table, bet catalog and settlement.

Stakes are debited through the ledger session when a bet is placed, so a
settlement only ever adds winnings; a round that wins nothing has lost its
staked total already.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Union

from ..core.errors import NoActiveBetsError, ValidationError
from .session import GameResult, LedgerSession, OperationResult


logger = logging.getLogger(__name__)

GAME_TYPE = "roulette"

WHEEL_ORDER = (
    0, 32, 15, 19, 4, 21, 2, 25, 17, 34, 6, 27, 13, 36, 11, 30, 8, 23, 10,
    5, 24, 16, 33, 1, 20, 14, 31, 9, 22, 18, 29, 7, 28, 12, 35, 3, 26,
)

RED_NUMBERS = frozenset({1, 3, 5, 7, 9, 12, 14, 16, 18, 19, 21, 23, 25, 27, 30, 32, 34, 36})

NUMBER_COLORS = {
    number: "green" if number == 0 else ("red" if number in RED_NUMBERS else "black")
    for number in range(37)
}

STRAIGHT_PAYOUT = 36
HISTORY_SIZE = 10

BetKey = Union[int, str]


@dataclass(frozen=True)
class BetType:
    description: str
    payout: int
    wins: Callable[[int], bool]


BET_TYPES: Mapping[str, BetType] = {
    "red": BetType("Red", 2, lambda n: NUMBER_COLORS[n] == "red"),
    "black": BetType("Black", 2, lambda n: NUMBER_COLORS[n] == "black"),
    "even": BetType("Even", 2, lambda n: n != 0 and n % 2 == 0),
    "odd": BetType("Odd", 2, lambda n: n % 2 == 1),
    "low": BetType("1-18", 2, lambda n: 1 <= n <= 18),
    "high": BetType("19-36", 2, lambda n: 19 <= n <= 36),
    "first-dozen": BetType("1-12", 3, lambda n: 1 <= n <= 12),
    "second-dozen": BetType("13-24", 3, lambda n: 13 <= n <= 24),
    "third-dozen": BetType("25-36", 3, lambda n: 25 <= n <= 36),
}


@dataclass(frozen=True)
class Settlement:
    outcome: int
    color: str
    total_win: int
    winning_bets: dict[str, int] = field(default_factory=dict)
    staked: int = 0

    @property
    def is_win(self) -> bool:
        return self.total_win > 0

    @property
    def net(self) -> int:
        return self.total_win - self.staked


def normalize_key(key: BetKey) -> BetKey:
    """Map a table key to a straight number (0-36) or a catalog bet name."""
    if isinstance(key, bool):
        raise ValidationError(f"Unknown bet: {key!r}")
    if isinstance(key, int):
        number = key
    elif isinstance(key, str) and key.strip().isdigit():
        number = int(key.strip())
    elif isinstance(key, str) and key in BET_TYPES:
        return key
    else:
        raise ValidationError(f"Unknown bet: {key!r}")
    if not 0 <= number <= 36:
        raise ValidationError(f"Unknown bet: {key!r}")
    return number


def draw_outcome(rng: Optional[random.Random] = None) -> int:
    return (rng or random).choice(WHEEL_ORDER)


def settle(bets: Mapping[BetKey, int], outcome: int) -> Settlement:
    """Pay every bet on the table against ``outcome``.

    Each bet is evaluated on its own, so "red" and "even" can both pay on
    the same number. Keys go through ``normalize_key``, so "32" and 32 are
    the same straight bet and an unknown key raises ``ValidationError``.
    """
    if outcome not in NUMBER_COLORS:
        raise ValidationError(f"Outcome must be between 0 and 36, got {outcome}")

    total_win = 0
    winning: dict[str, int] = {}
    for key, stake in bets.items():
        key = normalize_key(key)
        if stake <= 0:
            continue
        if isinstance(key, int):
            if key == outcome:
                win = stake * STRAIGHT_PAYOUT
                winning[str(key)] = winning.get(str(key), 0) + win
                total_win += win
            continue
        bet_type = BET_TYPES[key]
        if bet_type.wins(outcome):
            win = stake * bet_type.payout
            winning[bet_type.description] = win
            total_win += win

    return Settlement(
        outcome=outcome,
        color=NUMBER_COLORS[outcome],
        total_win=total_win,
        winning_bets=winning,
        staked=sum(stake for stake in bets.values() if stake > 0),
    )


@dataclass(frozen=True)
class SpinResult:
    settlement: Settlement
    ledger: OperationResult


class RouletteTable:
    """One player's roulette table, driving a ``LedgerSession``.

    Bets are debited from the session's virtual balance as they are placed.
    ``spin`` settles the round and hands the result to the session, which
    commits it to the store.
    """

    def __init__(self, session: LedgerSession, rng: Optional[random.Random] = None) -> None:
        self.session = session
        self.rng = rng or random.Random()
        self.bets: dict[BetKey, int] = {}
        self.history: list[tuple[int, str]] = []

    @property
    def total_staked(self) -> int:
        return sum(self.bets.values())

    def place_bet(self, key: BetKey, amount: int) -> OperationResult:
        try:
            normalized = normalize_key(key)
        except ValidationError as exc:
            return OperationResult.failure(exc, balance=self.session.balance)

        result = self.session.place_bet(amount, GAME_TYPE, {"bet": str(normalized)})
        if result.success:
            self.bets[normalized] = self.bets.get(normalized, 0) + amount
        return result

    def clear_bets(self) -> OperationResult:
        staked = self.total_staked
        if staked == 0:
            return OperationResult(success=True, balance=self.session.balance)
        result = self.session.refund_bet(staked, GAME_TYPE)
        if result.success:
            self.bets.clear()
        return result

    def spin(self, outcome: Optional[int] = None) -> SpinResult:
        if not any(stake > 0 for stake in self.bets.values()):
            raise NoActiveBetsError("Please place a bet first!")

        if outcome is None:
            outcome = draw_outcome(self.rng)
        settlement = settle(self.bets, outcome)

        ledger = self.session.process_game_result(
            GameResult(
                is_win=settlement.is_win,
                win_amount=settlement.total_win,
                game_type=GAME_TYPE,
                details={
                    "winNumber": settlement.outcome,
                    "winColor": settlement.color,
                    "bets": {str(k): v for k, v in self.bets.items()},
                },
            )
        )
        logger.info(
            "roulette.spin",
            extra={
                "outcome": settlement.outcome,
                "staked": settlement.staked,
                "win": settlement.total_win,
                "committed": ledger.success,
            },
        )

        self.bets.clear()
        self.history.insert(0, (settlement.outcome, settlement.color))
        del self.history[HISTORY_SIZE:]
        return SpinResult(settlement=settlement, ledger=ledger)

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence, Union

from ..core.errors import ValidationError
from ..models import Transaction

DateLike = Union[str, date, datetime, None]


@dataclass(frozen=True)
class ReplayMismatch:
    index: int
    expected: int
    recorded: int
    transaction: Transaction


def _as_date(value: DateLike, field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # Only the day matters; "2024-01-01T10:00:00Z" is accepted too.
        return date.fromisoformat(value[:10])
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)") from exc


def filter_transactions(
    transactions: Iterable[Transaction],
    *,
    category: Optional[str] = None,
    type: Optional[str] = None,
    date_from: DateLike = None,
    date_to: DateLike = None,
) -> list[Transaction]:
    """Return the transactions matching every given filter, order preserved.

    Date bounds are inclusive and compare the day of the timestamp only.
    """
    start = _as_date(date_from, "dateFrom")
    end = _as_date(date_to, "dateTo")

    result = []
    for tx in transactions:
        if category and tx.category != category:
            continue
        if type and tx.type != type:
            continue
        day = tx.timestamp.date()
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        result.append(tx)
    return result


def replay_transactions(
    transactions: Sequence[Transaction],
    initial_balance: int = 1000,
) -> list[ReplayMismatch]:
    """Replay a most-recent-first log from the opening balance.

    Returns every entry whose recorded ``balance_after`` differs from the
    replayed running balance. An empty list means the log is consistent.
    """
    mismatches = []
    running = initial_balance
    for index, tx in enumerate(reversed(transactions)):
        running += tx.amount
        if running != tx.balance_after:
            mismatches.append(
                ReplayMismatch(
                    index=index,
                    expected=running,
                    recorded=tx.balance_after,
                    transaction=tx,
                )
            )
            # Keep going from what was recorded so one bad entry is reported once.
            running = tx.balance_after
    return mismatches

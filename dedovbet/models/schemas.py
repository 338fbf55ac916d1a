from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

TransactionType = Literal["deposit", "withdrawal", "bet", "win", "refund"]
TransactionCategory = Literal["account", "game"]

ACCOUNT_TYPES = frozenset({"deposit", "withdrawal"})


class CamelModel(BaseModel):
    """Python attributes in snake_case, JSON keys in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Transaction(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: TransactionType
    category: TransactionCategory
    amount: int = Field(..., description="Signed amount, negative for debits")
    method: Optional[str] = None
    game_type: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    timestamp: datetime
    balance_after: int = Field(..., ge=0)
    transaction_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _default_category(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("category"):
            data = dict(data)
            data["category"] = "account" if data.get("type") in ACCOUNT_TYPES else "game"
        return data

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class AccountRecord(CamelModel):
    """An account exactly as it is persisted in the users file."""

    username: str
    email: str
    password_hash: str
    balance: int = Field(..., ge=0)
    joined_date: str
    name: str = ""
    surname: str = ""
    date_of_birth: str = ""
    nationality: str = ""
    transactions: list[Transaction] = Field(default_factory=list)


class UserPublic(CamelModel):
    username: str
    email: str
    name: str = ""
    surname: str = ""
    date_of_birth: str = ""
    nationality: str = ""
    balance: int
    joined_date: str = ""


class RegisterRequest(CamelModel):
    username: str = ""
    email: str = ""
    password: str = ""
    name: str = ""
    surname: str = ""
    date_of_birth: str = ""
    nationality: str = ""


class LoginRequest(CamelModel):
    login_input: str = ""
    password: str = ""


class MoneyMovementRequest(CamelModel):
    username: str
    amount: int
    method: str = "credit_card"


class SaveTransactionRequest(CamelModel):
    username: str
    transaction: Transaction


class UpdateBalanceRequest(CamelModel):
    username: str
    balance: int


class UserResponse(CamelModel):
    success: bool = True
    user: UserPublic


class BalanceResponse(CamelModel):
    success: bool = True
    balance: int


class MoneyMovementResponse(CamelModel):
    success: bool = True
    balance: int
    transaction_id: str


class TransactionsResponse(CamelModel):
    success: bool = True
    transactions: list[Transaction]


class SuccessResponse(CamelModel):
    success: bool = True


class LogMismatch(CamelModel):
    index: int = Field(..., description="Position in chronological order, oldest first")
    expected: int
    recorded: int
    transaction: Transaction


class VerificationResponse(CamelModel):
    success: bool = True
    consistent: bool
    mismatches: list[LogMismatch]


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    kind: str = "ledger"

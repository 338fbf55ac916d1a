from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..core.config import Settings, get_settings
from ..core.errors import (
    AuthError,
    LedgerError,
    NetworkError,
    StateError,
    StoreRejectedError,
    ValidationError,
)
from ..models import Transaction


logger = logging.getLogger(__name__)

# Failure kinds the server reports that map back onto a client-side family.
REMOTE_ERRORS: dict[str, type[LedgerError]] = {
    AuthError.kind: AuthError,
    StateError.kind: StateError,
    ValidationError.kind: ValidationError,
}


class StoreClient:
    """Client for the store of record's REST surface.

    Never retries. Transport failures raise ``NetworkError``. An answer with
    ``success: false`` raises the error family named by its ``kind``
    (``AuthError``, ``StateError``, ``ValidationError``) with the server's
    message; any other refusal, or a non-JSON answer, raises
    ``StoreRejectedError``.
    """

    def __init__(self, http: httpx.Client) -> None:
        self.http = http

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "StoreClient":
        settings = settings or get_settings()
        return cls(httpx.Client(base_url=settings.api_base_url, timeout=settings.request_timeout))

    def close(self) -> None:
        self.http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("store.unreachable", extra={"path": path, "error": str(exc)})
            raise NetworkError("Network error - please check your connection") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise StoreRejectedError(
                "Server error - invalid response format", response.status_code
            ) from exc

        if not isinstance(data, dict):
            raise StoreRejectedError("Request failed", response.status_code)
        if not data.get("success"):
            message = data.get("message") or "Request failed"
            family = REMOTE_ERRORS.get(data.get("kind"))
            if family is not None:
                raise family(message)
            raise StoreRejectedError(message, response.status_code)
        return data

    # Accounts -----------------------------------------------------------
    def register(self, **fields: str) -> dict[str, Any]:
        body = {key: value for key, value in fields.items() if value}
        return self._request("POST", "/api/register", json=body)["user"]

    def login(self, login_input: str, password: str) -> dict[str, Any]:
        body = {"loginInput": login_input, "password": password}
        return self._request("POST", "/api/login", json=body)["user"]

    # Balance ------------------------------------------------------------
    def get_balance(self, username: str) -> int:
        return self._request("GET", "/api/getBalance", params={"username": username})["balance"]

    def update_balance(self, username: str, balance: int) -> int:
        body = {"username": username, "balance": balance}
        return self._request("POST", "/api/updateBalance", json=body)["balance"]

    def deposit(self, username: str, amount: int, method: str) -> dict[str, Any]:
        body = {"username": username, "amount": amount, "method": method}
        return self._request("POST", "/api/deposit", json=body)

    def withdraw(self, username: str, amount: int, method: str) -> dict[str, Any]:
        body = {"username": username, "amount": amount, "method": method}
        return self._request("POST", "/api/withdraw", json=body)

    # Transactions -------------------------------------------------------
    def list_transactions(self, username: str) -> list[Transaction]:
        data = self._request("GET", "/api/transactions", params={"username": username})
        return [Transaction.model_validate(item) for item in data.get("transactions", [])]

    def save_transaction(self, username: str, transaction: Transaction) -> None:
        body = {"username": username, "transaction": transaction.to_json()}
        self._request("POST", "/api/saveTransaction", json=body)

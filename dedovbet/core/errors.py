class LedgerError(Exception):
    """Base class for every failure the ledger reports to its callers."""

    kind = "ledger"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Bad or missing fields, out-of-range amounts."""

    kind = "validation"


class AuthError(LedgerError):
    """Unknown account or wrong credentials."""

    kind = "auth"


class StateError(LedgerError):
    """The session is not in a state that allows the operation."""

    kind = "state"


class StoreError(LedgerError):
    """The store of record failed to read, write or accept a change."""

    kind = "store"
    status_code = 500


class NetworkError(LedgerError):
    """The store could not be reached."""

    kind = "network"
    status_code = 502


class MissingFieldError(ValidationError):
    pass


class InvalidAmountError(ValidationError):
    pass


class BelowMinimumError(ValidationError):
    pass


class AboveMaximumError(ValidationError):
    pass


class InputTooShortError(ValidationError):
    pass


class DuplicateEmailError(ValidationError):
    pass


class DuplicateUsernameError(ValidationError):
    pass


class AccountNotFoundError(AuthError):
    """Raised when no account matches the given username or email."""

    status_code = 404


class UnknownLoginError(AccountNotFoundError):
    """A login attempt named no known username or email."""

    status_code = 400


class BadPasswordError(AuthError):
    pass


class NotLoggedInError(StateError):
    pass


class InsufficientBalanceError(StateError):
    """Raised when a bet or withdrawal would drop the balance below zero."""


class NoActiveBetsError(StateError):
    """Raised when a roulette round is spun without any stake on the table."""


class StoreRejectedError(StoreError):
    """The store answered but refused the change; carries its message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

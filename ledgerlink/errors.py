"""
Error taxonomy for ledgerlink.

Every failure surfaced to a caller is a LedgerError carrying a `kind`
(what failed), an HTTP-ish `status_code` and the underlying `cause`
(decoded response body, exception text, or a list of input problems).

  InputValidationError        missing/invalid configuration, never retried (400)
  TransportError              network or HTTP failure talking to a peer
  RegistrationExhaustedError  registration retry budget consumed
  MalformedResponseError      peer answered with an unexpected shape (502)
"""
from typing import Any


class LedgerError(Exception):
    default_kind = "LedgerError"
    default_status = 500

    def __init__(self, message: str, status_code: int | None = None,
                 cause: Any = None, kind: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = self.default_status if status_code is None else status_code
        self.cause = cause
        self.kind = kind or self.default_kind

    def to_dict(self) -> dict:
        return {
            "name": self.message,
            "kind": self.kind,
            "code": self.status_code,
            "details": self.cause if _jsonable(self.cause) else str(self.cause),
        }

    def __str__(self):
        return f"{self.message} ({self.kind}, {self.status_code})"


class InputValidationError(LedgerError):
    default_kind = "InputValidation"
    default_status = 400


class TransportError(LedgerError):
    default_kind = "Transport"


class RegistrationExhaustedError(TransportError):
    default_kind = "RegistrationFailed"


class MalformedResponseError(LedgerError):
    default_kind = "MalformedResponse"
    default_status = 502


def _jsonable(value) -> bool:
    return value is None or isinstance(value, (str, int, float, bool, list, dict))

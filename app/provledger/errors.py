"""
Ledger error taxonomy.

Every error rejects a single operation before any state changes; none of them
are retryable by the ledger itself.
"""
from __future__ import annotations


class LedgerError(Exception):
    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class Unauthorized(LedgerError):
    code = "unauthorized"
    status_code = 403


class NotFound(LedgerError):
    code = "not_found"
    status_code = 404


class InvalidArgument(LedgerError):
    code = "invalid_argument"
    status_code = 400


class AlreadyAuthorized(LedgerError):
    code = "already_authorized"
    status_code = 409


class LedgerNotInitialized(LedgerError):
    code = "ledger_not_initialized"
    status_code = 503

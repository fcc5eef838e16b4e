"""
Error taxonomy for the transfer engine.

Every error is surfaced to the caller as-is; nothing inside the engine retries.
"""

from __future__ import annotations


class TransferError(Exception):
    """Base class for all transfer engine failures."""


class InvalidAddressError(TransferError, ValueError):
    pass


class InvalidRequestError(TransferError, ValueError):
    pass


class NoFundsError(TransferError):
    pass


class InsufficientFundsError(TransferError):
    pass


class NetworkError(TransferError):
    """Indexer unreachable or answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SigningError(TransferError):
    pass


class BroadcastError(TransferError):
    """Indexer rejected the raw transaction."""

    def __init__(self, reason: str, status_code: int | None = None):
        prefix = f"Broadcast failed ({status_code})" if status_code else "Broadcast failed"
        super().__init__(f"{prefix}: {reason}")
        self.reason = reason
        self.status_code = status_code


class KeyReconstructionError(TransferError):
    pass

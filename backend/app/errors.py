"""Exception taxonomy shared by the ledger client, repositories and the sync loop."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.domain import RawEvent


class TrunksError(Exception):
    """Base class for every error raised by the indexer."""


class ConfigurationError(TrunksError):
    """Raised at startup when required configuration is missing or invalid."""


class TransientIoError(TrunksError):
    """The ledger or the database is temporarily unreachable; retry with backoff."""


class LedgerRpcError(TransientIoError):
    """Raised when a JSON-RPC call fails at the transport, HTTP or protocol level."""

    def __init__(self, message: str, *, method: str | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.code = code


class PersistenceError(TransientIoError):
    """Raised when a read or a transaction against the store fails."""


class DecodeError(TrunksError):
    """A raw event carries the finality selector but its payload has the wrong shape."""

    def __init__(self, message: str, raw_event: RawEvent | None = None) -> None:
        super().__init__(message)
        self.raw_event = raw_event


class ReferentialInconsistency(TrunksError):
    """A finality event references a contract address with no matching event row."""

    def __init__(self, address: str) -> None:
        super().__init__(f"No event record found for address {address}")
        self.address = address


__all__ = [
    "ConfigurationError",
    "DecodeError",
    "LedgerRpcError",
    "PersistenceError",
    "ReferentialInconsistency",
    "TransientIoError",
    "TrunksError",
]

"""Domain records produced by the ledger side of the indexer."""

from .models import DecodedFinalityEvent, RawEvent

__all__ = [
    "DecodedFinalityEvent",
    "RawEvent",
]

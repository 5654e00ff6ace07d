from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BlockRange:
    """Inclusive block interval ``[start, end]``."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid block range {self.start}..{self.end}")

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


def next_range(last_processed_block: int, latest_block: int) -> BlockRange | None:
    """Return the unprocessed blocks up to the chain tip, or None when caught up."""

    start = last_processed_block + 1
    if start > latest_block:
        return None
    return BlockRange(start, latest_block)


def chunk_range(block_range: BlockRange, size: int) -> Iterator[BlockRange]:
    """Split a range into ascending, contiguous sub-ranges of at most ``size`` blocks."""

    if size < 1:
        raise ValueError("chunk size must be at least 1")
    start = block_range.start
    while start <= block_range.end:
        end = min(start + size - 1, block_range.end)
        yield BlockRange(start, end)
        start = end + 1

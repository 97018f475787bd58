"""
Chunking of large item lists into pool-sized work units
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, List, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class Chunk(Generic[T]):
    """A contiguous slice of the original item list"""
    index: int
    start: int
    end: int
    items: List[T]


def chunk_items(items: Sequence[T], chunk_size: int) -> List[Chunk[T]]:
    """Split items into chunks of at most chunk_size"""
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    chunks: List[Chunk[T]] = []
    for start in range(0, len(items), chunk_size):
        end = min(start + chunk_size, len(items))
        chunks.append(Chunk(index=len(chunks), start=start, end=end, items=list(items[start:end])))
    return chunks


def chunk_id(prefix: str, index: int) -> str:
    """Work item ID of chunk ``index``, e.g. ``orders-chunk-2``"""
    return f"{prefix}-chunk-{index}"

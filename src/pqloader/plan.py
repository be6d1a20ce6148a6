"""
pqloader plan — partition a file's row range into contiguous chunks.

A chunk is the unit of one decoder call.  Chunks are read sequentially
from disk; only their *order* is shuffled, which keeps memory bounded by
one chunk and I/O sequential within each chunk.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Sequence, Tuple

from pqloader.shuffle import RandomSource, fisher_yates

# Rows per chunk when the caller does not say otherwise.
DEFAULT_CHUNK_SIZE: int = 128


class ChunkPlan:
    """Exact partition of ``[0, row_count)`` into ``[start, end)`` ranges.

    Every chunk holds ``chunk_size`` rows except possibly the last, which
    holds the remainder.

    Parameters
    ----------
    row_count : int
        Total rows to cover (``>= 0``).
    chunk_size : int
        Rows per chunk (``>= 1``).

    Examples
    --------
    >>> plan = ChunkPlan(1000, chunk_size=128)
    >>> plan.num_chunks, plan.last_chunk_size
    (8, 104)
    >>> plan.get_chunk_range(7)
    (896, 1000)
    """

    __slots__ = ("row_count", "chunk_size", "num_chunks", "last_chunk_size")

    def __init__(self, row_count: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if row_count < 0:
            raise ValueError(f"row_count must be >= 0, got {row_count}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

        self.row_count = row_count
        self.chunk_size = chunk_size
        self.num_chunks = (row_count + chunk_size - 1) // chunk_size
        self.last_chunk_size = row_count % chunk_size
        if self.last_chunk_size == 0 and row_count > 0:
            self.last_chunk_size = chunk_size

    # -- single chunk -------------------------------------------------------

    def _check_index(self, chunk_id: int) -> None:
        if not 0 <= chunk_id < self.num_chunks:
            raise IndexError(
                f"chunk {chunk_id} out of range for a plan of {self.num_chunks} chunks"
            )

    def get_chunk_start(self, chunk_id: int) -> int:
        """Return the first row index of *chunk_id*."""
        self._check_index(chunk_id)
        return chunk_id * self.chunk_size

    def get_chunk_size(self, chunk_id: int) -> int:
        """Return the number of rows in *chunk_id*."""
        self._check_index(chunk_id)
        if chunk_id == self.num_chunks - 1:
            return self.last_chunk_size
        return self.chunk_size

    def get_chunk_range(self, chunk_id: int) -> Tuple[int, int]:
        """Return ``(start, end)`` of *chunk_id*, end exclusive."""
        start = self.get_chunk_start(chunk_id)
        return start, min(start + self.chunk_size, self.row_count)

    # -- whole plan ---------------------------------------------------------

    def starts(self) -> List[int]:
        """Return chunk start offsets in ascending order."""
        return list(range(0, self.row_count, self.chunk_size))

    def get_chunk_order(self, rng: Optional[RandomSource] = None) -> List[int]:
        """Return chunk IDs in reading order, Fisher-Yates shuffled if *rng* is given."""
        order = list(range(self.num_chunks))
        if rng is not None:
            fisher_yates(order, rng)
        return order

    def ranges(self, order: Optional[Sequence[int]] = None) -> List[Tuple[int, int]]:
        """Return ``(start, end)`` pairs, in *order* if given else ascending."""
        if order is None:
            order = range(self.num_chunks)
        return [self.get_chunk_range(chunk_id) for chunk_id in order]

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        for chunk_id in range(self.num_chunks):
            yield self.get_chunk_range(chunk_id)

    def __len__(self) -> int:
        return self.num_chunks

    def __repr__(self) -> str:
        return f"ChunkPlan(row_count={self.row_count}, chunk_size={self.chunk_size})"


def plan_chunks(row_count: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[int]:
    """Return the ordered chunk start offsets covering ``[0, row_count)``."""
    return ChunkPlan(row_count, chunk_size).starts()

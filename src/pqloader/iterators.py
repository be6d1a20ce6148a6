"""
pqloader iterators — pull-based row sequences.

Each class is an explicit state machine rather than a generator, so the
pending work (chunk ranges, member iterators) and the buffered rows are
visible and the sequence can be abandoned deterministically with
``close()``.

- :class:`ChunkedRowIterator` — one file, one decoder call per chunk.
- :class:`ConcatRowIterator` — members drained one after another.
- :class:`InterleavedRowIterator` — members picked at random per row.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from pqloader.shuffle import RandomSource

ReadChunk = Callable[[int, int], List[Any]]


class ChunkedRowIterator:
    """Rows of one file, read one chunk at a time.

    Parameters
    ----------
    ranges : sequence of (start, end)
        Chunk row ranges in reading order.
    read_chunk : callable
        ``read_chunk(start, end) -> rows``; called exactly once per chunk,
        only when the previous chunk's rows have all been pulled.
    check : callable or None
        Called before every pull; raising from it fails the pull and ends
        the sequence.  Readers pass their closed-state check.

    Notes
    -----
    At most one chunk of rows is held in memory.  Iteration is not
    restartable.  A failing ``read_chunk`` ends the sequence after the
    exception has been raised.
    """

    def __init__(
        self,
        ranges: Sequence[Tuple[int, int]],
        read_chunk: ReadChunk,
        check: Optional[Callable[[], None]] = None,
    ) -> None:
        self._pending = deque(ranges)
        self._read_chunk = read_chunk
        self._check = check
        self._buffer: List[Any] = []
        self._cursor = 0
        self._done = False
        self.chunks_read = 0
        self.rows_yielded = 0

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        if self._done:
            raise StopIteration
        if self._check is not None:
            try:
                self._check()
            except Exception:
                self.close()
                raise
        while self._cursor >= len(self._buffer):
            if self._done or not self._pending:
                self.close()
                raise StopIteration
            start, end = self._pending.popleft()
            try:
                rows = self._read_chunk(start, end)
            except Exception:
                self.close()
                raise
            self.chunks_read += 1
            self._buffer = rows
            self._cursor = 0

        row = self._buffer[self._cursor]
        self._cursor += 1
        self.rows_yielded += 1
        return row

    @property
    def remaining_chunks(self) -> int:
        """Chunks not yet read."""
        return len(self._pending)

    @property
    def exhausted(self) -> bool:
        return self._done

    def close(self) -> None:
        """Abandon the sequence; no further chunks are read."""
        self._done = True
        self._pending.clear()
        self._buffer = []
        self._cursor = 0


class ConcatRowIterator:
    """Drain each member fully, in order."""

    def __init__(self, iterators: Sequence[Iterator[Any]]) -> None:
        self._iterators = list(iterators)
        self._index = 0

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        while self._index < len(self._iterators):
            try:
                return next(self._iterators[self._index])
            except StopIteration:
                self._index += 1
            except Exception:
                self.close()
                raise
        raise StopIteration

    def close(self) -> None:
        """Abandon every member that has not finished."""
        for iterator in self._iterators[self._index:]:
            _close(iterator)
        self._index = len(self._iterators)


class InterleavedRowIterator:
    """Pick a live member uniformly at random for every row.

    Members that report exhaustion are dropped from the active set without
    yielding; the sequence ends when the set is empty.  Each row of each
    member is produced exactly once.

    Selection is uniform over *active members*, not proportional to their
    remaining rows, so a small file tends to be drained early.
    """

    def __init__(self, iterators: Sequence[Iterator[Any]], rng: RandomSource) -> None:
        self._active: List[Iterator[Any]] = list(iterators)
        self._rng = rng

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        while self._active:
            index = self._rng.randbelow(len(self._active))
            try:
                return next(self._active[index])
            except StopIteration:
                del self._active[index]
            except Exception:
                self.close()
                raise
        raise StopIteration

    @property
    def active_count(self) -> int:
        """Members not yet exhausted."""
        return len(self._active)

    def close(self) -> None:
        """Abandon every member that has not finished."""
        for iterator in self._active:
            _close(iterator)
        self._active = []


def _close(iterator: Any) -> None:
    close = getattr(iterator, "close", None)
    if close is not None:
        close()

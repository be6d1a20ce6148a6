"""
pqloader readers — chunked, optionally shuffled row iteration over Parquet files.

:class:`ParquetReader` owns one file.  It opens lazily, caches the footer
metadata, and hands out :class:`~pqloader.iterators.ChunkedRowIterator`
objects that decode one chunk per pull.

:class:`ParquetGroupReader` owns an ordered list of ``ParquetReader``
members and merges their iterators, either back to back or interleaved at
random.

Both readers move through ``unopened -> open -> closed``; ``closed`` is
terminal and every operation but ``close()`` then raises
:class:`~pqloader.errors.ReaderClosedError`.
"""

from __future__ import annotations

import functools
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, List, Optional, Sequence, Tuple, TypeVar, Union

import pyarrow.parquet as pq

from pqloader import decoder
from pqloader.decoder import Row
from pqloader.errors import CloseError, ReaderClosedError, ReaderIOError
from pqloader.iterators import ChunkedRowIterator, ConcatRowIterator, InterleavedRowIterator
from pqloader.options import IteratorOptions, resolve_options
from pqloader.plan import ChunkPlan
from pqloader.shuffle import RandomSource, SplitMix64
from pqloader.source import ByteSource

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
T = TypeVar("T")

# Threads used to fetch member metadata concurrently.
DEFAULT_MAX_WORKERS: int = 8


# ---------------------------------------------------------------------------
# Single file
# ---------------------------------------------------------------------------

class ParquetReader:
    """Reader for a single Parquet file.

    Parameters
    ----------
    path : str or os.PathLike
        File to read.  Nothing is opened until the first request.

    Examples
    --------
    >>> with ParquetReader("train-00000.parquet") as reader:
    ...     for row in reader.get_iterator(shuffle=True, seed=42):
    ...         train(row)
    """

    def __init__(self, path: PathLike) -> None:
        self.path: str = os.fspath(path)
        self._source: Optional[ByteSource] = None
        self._metadata: Optional[pq.FileMetaData] = None
        self._closed = False

    # -- state --------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def state(self) -> str:
        """One of ``"unopened"``, ``"open"`` or ``"closed"``."""
        if self._closed:
            return "closed"
        return "open" if self._source is not None else "unopened"

    def _check_open(self) -> None:
        if self._closed:
            raise ReaderClosedError(f"reader for '{self.path}' is closed")

    def _get_source(self) -> ByteSource:
        self._check_open()
        if self._source is None:
            self._source = ByteSource.open(self.path)
        return self._source

    # -- metadata -----------------------------------------------------------

    def get_metadata(self) -> pq.FileMetaData:
        """Return the file's footer metadata, reading it on first use."""
        self._check_open()
        if self._metadata is None:
            self._metadata = decoder.read_metadata(self._get_source())
        return self._metadata

    def get_rows_count(self) -> int:
        """Total number of rows in the file."""
        return int(self.get_metadata().num_rows)

    def __len__(self) -> int:
        return self.get_rows_count()

    # -- iteration ----------------------------------------------------------

    def get_chunk_plan(self, chunk_size: Optional[int] = None) -> ChunkPlan:
        """Return the chunk plan for *chunk_size* (``None`` → row-group aligned)."""
        if chunk_size is None:
            chunk_size = decoder.infer_chunk_size(self.get_metadata())
        return ChunkPlan(self.get_rows_count(), chunk_size)

    def get_iterator(
        self, options: Optional[IteratorOptions] = None, **overrides: Any,
    ) -> ChunkedRowIterator:
        """Return a lazy iterator over every row of the file.

        Keyword arguments override fields of *options*
        (``reader.get_iterator(shuffle=True, chunk_size=512)``).
        """
        options = resolve_options(options, overrides)
        plan = self.get_chunk_plan(options.chunk_size)
        order = plan.get_chunk_order(options.make_rng() if options.shuffle else None)
        logger.debug(
            "iterating %s: %d rows in %d chunks of %d (shuffle=%s)",
            self.path, plan.row_count, plan.num_chunks, plan.chunk_size, options.shuffle,
        )
        range_reader = decoder.RowRangeReader(
            self._get_source(), self.get_metadata(), options.decoder_options,
            batch_size=plan.chunk_size,
        )
        read_chunk = functools.partial(self._read_rows, range_reader)
        return ChunkedRowIterator(plan.ranges(order), read_chunk, check=self._check_open)

    def _read_rows(
        self, range_reader: decoder.RowRangeReader, row_start: int, row_end: int,
    ) -> List[Row]:
        self._check_open()
        return range_reader.read(row_start, row_end)

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Release the file handle and cached metadata.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        source, self._source = self._source, None
        self._metadata = None
        if source is not None:
            try:
                source.close()
            except OSError as exc:
                raise ReaderIOError(f"cannot close '{self.path}': {exc}") from exc
        logger.debug("closed reader for %s", self.path)

    def __enter__(self) -> ParquetReader:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ParquetReader({self.path!r}, state={self.state!r})"


# ---------------------------------------------------------------------------
# Group of files
# ---------------------------------------------------------------------------

class ParquetGroupReader:
    """Reader presenting several Parquet files as one row sequence.

    Parameters
    ----------
    paths : sequence of str or os.PathLike
        Member files, in order.
    max_workers : int
        Threads used to fetch member metadata concurrently.

    Examples
    --------
    >>> reader = ParquetGroupReader(sorted(glob.glob("shards/*.parquet")))
    >>> for epoch in range(10):
    ...     for row in reader.get_iterator(shuffle=True, seed=42, epoch=epoch):
    ...         train(row)
    >>> reader.close()
    """

    def __init__(self, paths: Sequence[PathLike], max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.readers: List[ParquetReader] = [ParquetReader(path) for path in paths]
        self.max_workers = max_workers
        self._rows_count: Optional[int] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise ReaderClosedError("group reader is closed")

    def _map_readers(self, fn: Callable[[ParquetReader], T]) -> List[T]:
        """Apply *fn* to every member on a thread pool; results keep member order."""
        if len(self.readers) <= 1:
            return [fn(reader) for reader in self.readers]
        workers = min(self.max_workers, len(self.readers))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(fn, self.readers))

    # -- metadata -----------------------------------------------------------

    def get_rows_count(self) -> int:
        """Total rows over all members.  Computed once, then memoized."""
        self._check_open()
        if self._rows_count is None:
            self._rows_count = sum(self._map_readers(ParquetReader.get_rows_count))
        return self._rows_count

    def __len__(self) -> int:
        return self.get_rows_count()

    # -- iteration ----------------------------------------------------------

    def get_iterator(
        self, options: Optional[IteratorOptions] = None, **overrides: Any,
    ) -> Union[ConcatRowIterator, InterleavedRowIterator]:
        """Return a lazy iterator over every row of every member.

        Without shuffling, members are drained in order.  With shuffling,
        each member's chunks are shuffled and a member is picked at random
        for every row.  The same options (and decoder options) apply to
        each member.
        """
        self._check_open()
        options = resolve_options(options, overrides)
        self._map_readers(ParquetReader.get_metadata)

        if not options.shuffle:
            return ConcatRowIterator([reader.get_iterator(options) for reader in self.readers])

        rng = options.make_rng()
        iterators = [
            reader.get_iterator(replace(options, rng=_child_rng(rng)))
            for reader in self.readers
        ]
        return InterleavedRowIterator(iterators, rng)

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Close every member, then raise :class:`CloseError` if any failed."""
        if self._closed:
            return
        self._closed = True
        self._rows_count = None
        errors: List[Tuple[str, BaseException]] = []
        for reader in self.readers:
            try:
                reader.close()
            except Exception as exc:
                logger.warning("failed to close %s: %s", reader.path, exc)
                errors.append((reader.path, exc))
        if errors:
            raise CloseError(errors)

    def __enter__(self) -> ParquetGroupReader:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ParquetGroupReader({len(self.readers)} files)"


def _child_rng(rng: RandomSource) -> SplitMix64:
    """Derive an independent generator for one member's chunk shuffle."""
    if isinstance(rng, SplitMix64):
        return rng.spawn()
    return SplitMix64(rng.randbelow(1 << 64))

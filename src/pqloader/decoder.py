"""
pqloader decoder — the boundary to pyarrow's Parquet implementation.

Entry points used by the readers:

- :func:`read_metadata` parses the footer once per reader.
- :class:`RowRangeReader` decodes ``[row_start, row_end)`` ranges by
  streaming record batches, keeping its position between calls so that
  consecutive ranges never decode the same rows twice.
- :func:`read_rows` is the one-shot form of ``RowRangeReader.read``.

Arrow exceptions are translated into the :mod:`pqloader.errors`
hierarchy here and nowhere else.
"""

from __future__ import annotations

import bisect
import itertools
import logging
import warnings
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import pyarrow as pa
import pyarrow.parquet as pq

from pqloader.errors import DecodeError, FormatError, ReaderError, ReaderIOError
from pqloader.plan import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

Row = Union[List[Any], Dict[str, Any]]


@dataclass(frozen=True)
class DecoderOptions:
    """Decoder settings, forwarded unmodified from iteration options.

    Parameters
    ----------
    columns : sequence of str or None
        Column subset to decode, in the given order.  ``None`` reads all.
        Stored as a tuple.
    as_dict : bool
        Yield ``{column: value}`` dicts instead of value lists.
    use_threads : bool
        Let pyarrow decode columns in parallel.
    """

    columns: Optional[Tuple[str, ...]] = None
    as_dict: bool = False
    use_threads: bool = False

    def __post_init__(self) -> None:
        if self.columns is not None and not isinstance(self.columns, tuple):
            object.__setattr__(self, "columns", tuple(self.columns))


def _name(source: Any) -> str:
    return str(getattr(source, "name", source))


def read_metadata(source: Any) -> pq.FileMetaData:
    """Parse the Parquet footer of *source*."""
    try:
        metadata = pq.ParquetFile(source).metadata
    except ReaderError:
        raise
    except OSError as exc:
        raise ReaderIOError(f"cannot read metadata of '{_name(source)}': {exc}") from exc
    except pa.ArrowException as exc:
        raise FormatError(f"'{_name(source)}' is not a valid Parquet file: {exc}") from exc
    logger.debug(
        "read metadata of %s: %d rows in %d row groups",
        _name(source), metadata.num_rows, metadata.num_row_groups,
    )
    return metadata


@contextmanager
def _translate_errors(source: Any, row_start: int, row_end: int) -> Iterator[None]:
    where = f"rows [{row_start}, {row_end}) of '{_name(source)}'"
    try:
        yield
    except ReaderError:
        raise
    except OSError as exc:
        raise ReaderIOError(f"cannot read {where}: {exc}") from exc
    except pa.ArrowNotImplementedError as exc:
        raise DecodeError(f"cannot decode {where}: {exc}") from exc
    except pa.ArrowInvalid as exc:
        raise FormatError(f"malformed row data in {where}: {exc}") from exc
    except pa.ArrowException as exc:
        raise DecodeError(f"cannot decode {where}: {exc}") from exc


def _batch_to_rows(batch: pa.RecordBatch, as_dict: bool) -> List[Row]:
    if as_dict:
        return batch.to_pylist()
    columns = [column.to_pylist() for column in batch.columns]
    if not columns:
        return [[] for _ in range(batch.num_rows)]
    return [list(values) for values in zip(*columns)]


class RowRangeReader:
    """Decode row ranges of one file by streaming record batches.

    Batches of at most *batch_size* rows are pulled from
    ``ParquetFile.iter_batches``; rows before the requested start are
    skipped a batch at a time and decoding stops at the requested end.
    The batch stream and the unconsumed tail of the last batch are kept,
    so a range that starts at or after the previous one continues where
    it left off.  A range before the current position restarts the
    stream at the row group holding its first row.

    Peak memory is one batch plus the rows returned.

    Parameters
    ----------
    source : file-like
        Seekable source of the Parquet file.
    metadata : FileMetaData
        The file's footer, as returned by :func:`read_metadata`.
    options : DecoderOptions or None
        Column subset and row format.
    batch_size : int
        Rows per decoded batch; readers use their chunk size.
    """

    def __init__(
        self,
        source: Any,
        metadata: pq.FileMetaData,
        options: Optional[DecoderOptions] = None,
        batch_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.source = source
        self.metadata = metadata
        self.options = options if options is not None else DecoderOptions()
        self.batch_size = batch_size
        self.rows_decoded = 0

        self._group_starts = [0] + list(itertools.accumulate(
            metadata.row_group(i).num_rows for i in range(metadata.num_row_groups)
        ))
        self._parquet_file: Optional[pq.ParquetFile] = None
        self._batches: Optional[Iterator[pa.RecordBatch]] = None
        self._batch: Optional[pa.RecordBatch] = None
        self._batch_offset = 0
        # Absolute index of the next row the stream will produce.
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    def read(self, row_start: int, row_end: int) -> List[Row]:
        """Decode rows ``[row_start, row_end)`` in file order.

        Raises
        ------
        ValueError
            If the range is not inside ``[0, metadata.num_rows]``.
        FormatError
            If the data does not match the footer.
        DecodeError
            If a page cannot be decoded (e.g. an unsupported codec).
        """
        num_rows = self.metadata.num_rows
        if not 0 <= row_start <= row_end <= num_rows:
            raise ValueError(f"row range [{row_start}, {row_end}) outside [0, {num_rows})")
        if row_start == row_end:
            return []

        try:
            with _translate_errors(self.source, row_start, row_end):
                if self._batches is None or row_start < self._position:
                    self._restart(row_start)
                while self._position < row_start:
                    self._consume(row_start - self._position)
                pieces = []
                while self._position < row_end:
                    pieces.append(self._consume(row_end - self._position))
        except Exception:
            # The stream position is unknown after a failure.
            self._batches = None
            self._batch = None
            raise

        rows: List[Row] = []
        for piece in pieces:
            rows.extend(_batch_to_rows(piece, self.options.as_dict))
        return rows

    def _restart(self, row_start: int) -> None:
        group = bisect.bisect_right(self._group_starts, row_start) - 1
        if self._parquet_file is None:
            self._parquet_file = pq.ParquetFile(self.source, metadata=self.metadata)
        columns = list(self.options.columns) if self.options.columns is not None else None
        self._batches = self._parquet_file.iter_batches(
            batch_size=self.batch_size,
            row_groups=list(range(group, self.metadata.num_row_groups)),
            columns=columns,
            use_threads=self.options.use_threads,
        )
        self._batch = None
        self._batch_offset = 0
        self._position = self._group_starts[group]
        logger.debug("decoding %s from row group %d (row %d)", _name(self.source), group, self._position)

    def _consume(self, limit: int) -> pa.RecordBatch:
        """Take up to *limit* rows from the current batch, decoding the next one if needed."""
        while self._batch is None or self._batch_offset >= self._batch.num_rows:
            batch = next(self._batches, None)
            if batch is None:
                raise FormatError(
                    f"'{_name(self.source)}' ended at row {self._position}, "
                    f"footer declares {self.metadata.num_rows} rows"
                )
            self.rows_decoded += batch.num_rows
            self._batch = batch
            self._batch_offset = 0
        take = min(limit, self._batch.num_rows - self._batch_offset)
        piece = self._batch.slice(self._batch_offset, take)
        self._batch_offset += take
        self._position += take
        return piece


def read_rows(
    source: Any,
    metadata: pq.FileMetaData,
    row_start: int,
    row_end: int,
    options: Optional[DecoderOptions] = None,
) -> List[Row]:
    """Decode rows ``[row_start, row_end)`` of *source* in one call."""
    batch_size = max(1, row_end - row_start)
    return RowRangeReader(source, metadata, options, batch_size=batch_size).read(row_start, row_end)


def infer_chunk_size(metadata: pq.FileMetaData) -> int:
    """Return the row count of the first row group, for row-group-aligned chunks.

    Falls back to :data:`DEFAULT_CHUNK_SIZE` with a warning when the file
    has no non-empty first row group.
    """
    if metadata.num_row_groups > 0:
        group_rows = metadata.row_group(0).num_rows
        if group_rows > 0:
            return group_rows
    warnings.warn(
        f"Could not infer chunk size from Parquet metadata "
        f"({metadata.num_row_groups} row groups). "
        f"Using default chunk_size={DEFAULT_CHUNK_SIZE}.",
        UserWarning,
        stacklevel=2,
    )
    return DEFAULT_CHUNK_SIZE

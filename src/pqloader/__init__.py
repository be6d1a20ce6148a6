"""
pqloader — bounded-memory, shuffled row iteration over Parquet files.

pqloader reads rows from one or many Parquet files without materialising
them.  Each file is read in contiguous chunks (one decoder call per chunk);
shuffling permutes the *order* of chunks and, across files, interleaves
rows at random.  Memory stays at one chunk per file and disk access stays
sequential inside each chunk.

Quick Start
-----------
One file:

    >>> from pqloader import ParquetReader
    >>> with ParquetReader("train.parquet") as reader:
    ...     print(reader.get_rows_count())
    ...     for row in reader.get_iterator(shuffle=True, chunk_size=256, seed=42):
    ...         train(row)

Many files, a reproducible new order each epoch:

    >>> from pqloader import ParquetGroupReader, BatchIterator
    >>> reader = ParquetGroupReader(shard_paths)
    >>> for epoch in range(100):
    ...     rows = reader.get_iterator(shuffle=True, seed=42, epoch=epoch)
    ...     for batch in BatchIterator(rows, batch_size=64):
    ...         train(batch)
    >>> reader.close()
"""

__version__ = "0.1.0"

# Chunk planning and randomness -----------------------------------------
from pqloader.plan import DEFAULT_CHUNK_SIZE, ChunkPlan, plan_chunks
from pqloader.shuffle import RandomSource, SplitMix64, fisher_yates

# Readers ---------------------------------------------------------------
from pqloader.decoder import DecoderOptions, RowRangeReader, infer_chunk_size
from pqloader.options import IteratorOptions
from pqloader.reader import ParquetGroupReader, ParquetReader
from pqloader.source import ByteSource
from pqloader.iterators import ChunkedRowIterator, ConcatRowIterator, InterleavedRowIterator
from pqloader.batching import BatchIterator, default_collate

# Errors ----------------------------------------------------------------
from pqloader.errors import (
    CloseError,
    DecodeError,
    FormatError,
    ReaderClosedError,
    ReaderError,
    ReaderIOError,
)

__all__ = [
    # Planning
    "DEFAULT_CHUNK_SIZE",
    "ChunkPlan",
    "plan_chunks",
    "RandomSource",
    "SplitMix64",
    "fisher_yates",
    # Readers
    "ParquetReader",
    "ParquetGroupReader",
    "IteratorOptions",
    "DecoderOptions",
    "RowRangeReader",
    "infer_chunk_size",
    "ByteSource",
    "ChunkedRowIterator",
    "ConcatRowIterator",
    "InterleavedRowIterator",
    "BatchIterator",
    "default_collate",
    # Errors
    "ReaderError",
    "ReaderIOError",
    "FormatError",
    "DecodeError",
    "ReaderClosedError",
    "CloseError",
]

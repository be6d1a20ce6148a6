"""
pqloader Quick Start Example

Demonstrates the three main usage patterns:
1. ChunkPlan          — how a file is split into chunks (lowest level)
2. ParquetReader      — one file, shuffled chunk order
3. ParquetGroupReader — many files interleaved at random, batched
"""

import tempfile
from pathlib import Path

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq

from pqloader import BatchIterator, ChunkPlan, ParquetGroupReader, ParquetReader, SplitMix64


def write_shards(directory: Path, sizes) -> list:
    paths, offset = [], 0
    for i, size in enumerate(sizes):
        ids = np.arange(offset, offset + size)
        table = pa.table({"id": ids, "value": np.sqrt(ids)})
        path = directory / f"shard-{i:03d}.parquet"
        pq.write_table(table, path, row_group_size=500)
        paths.append(str(path))
        offset += size
    return paths


def demo_plan():
    """Low-level: the chunk plan and a shuffled reading order."""
    print("=" * 60)
    print("1. ChunkPlan — contiguous chunks, shuffled order")
    print("=" * 60)

    plan = ChunkPlan(1000, chunk_size=128)
    print(f"  Rows / chunk size : {plan.row_count} / {plan.chunk_size}")
    print(f"  Chunks            : {plan.num_chunks} (last holds {plan.last_chunk_size})")
    print(f"  Ranges            : {plan.ranges()}")
    print(f"  Shuffled order    : {plan.get_chunk_order(SplitMix64(42))}")
    print()


def demo_reader(path: str):
    """One file: count, then iterate in shuffled chunk order."""
    print("=" * 60)
    print("2. ParquetReader — one file")
    print("=" * 60)

    with ParquetReader(path) as reader:
        print(f"  Rows              : {reader.get_rows_count():,}")
        iterator = reader.get_iterator(shuffle=True, chunk_size=256, seed=42)
        first = [next(iterator) for _ in range(5)]
        print(f"  First rows        : {first}")
        print(f"  Chunks read       : {iterator.chunks_read}")
    print()


def demo_group(paths: list):
    """Many files: interleave, batch, repeat per epoch."""
    print("=" * 60)
    print("3. ParquetGroupReader — many files, batched")
    print("=" * 60)

    with ParquetGroupReader(paths) as reader:
        print(f"  Files / rows      : {len(paths)} / {reader.get_rows_count():,}")
        for epoch in range(2):
            rows = reader.get_iterator(shuffle=True, seed=42, epoch=epoch)
            batches = BatchIterator(rows, batch_size=1024)
            ids, _ = next(batches)
            total = len(ids) + sum(len(batch_ids) for batch_ids, _ in batches)
            print(f"  Epoch {epoch}: first ids {ids[:6].tolist()} ... {total:,} rows")
    print()


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        shard_paths = write_shards(Path(tmp), [3000, 1200, 4500, 10])
        demo_plan()
        demo_reader(shard_paths[0])
        demo_group(shard_paths)

"""Shared fixtures: small Parquet files written with pyarrow."""

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq
import pytest


def make_rows(n, offset=0):
    """Ground-truth rows as the reader yields them: ``[id, name]``."""
    return [[offset + i, f"row-{offset + i}"] for i in range(n)]


def write_parquet(path, n, offset=0, row_group_size=None):
    ids = np.arange(offset, offset + n, dtype=np.int64)
    table = pa.table({
        "id": ids,
        "name": [f"row-{i}" for i in ids.tolist()],
    })
    pq.write_table(table, str(path), row_group_size=row_group_size)
    return str(path)


@pytest.fixture
def parquet_file(tmp_path):
    """1000 rows in row groups of 300 (the last holds 100)."""
    return write_parquet(tmp_path / "data.parquet", 1000, row_group_size=300)


@pytest.fixture
def small_files(tmp_path):
    """Two files with 3 and 5 rows; ids do not overlap."""
    return [
        write_parquet(tmp_path / "a.parquet", 3, offset=0),
        write_parquet(tmp_path / "b.parquet", 5, offset=100),
    ]


@pytest.fixture
def shard_files(tmp_path):
    """Four shards of uneven size with contiguous ids, plus their rows."""
    sizes = [37, 0, 120, 64]
    paths, rows, offset = [], [], 0
    for i, size in enumerate(sizes):
        paths.append(write_parquet(tmp_path / f"shard-{i}.parquet", size, offset=offset,
                                   row_group_size=25))
        rows.extend(make_rows(size, offset))
        offset += size
    return paths, rows

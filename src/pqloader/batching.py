"""
pqloader batching — group a row sequence into training batches.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np


def default_collate(batch: List[Any]) -> Union[Tuple[np.ndarray, ...], dict]:
    """Stack rows column-wise into NumPy arrays.

    List rows become a tuple with one array per column; dict rows become a
    dict of arrays keyed by column name.
    """
    if not batch:
        return ()
    if isinstance(batch[0], dict):
        return {key: np.asarray([row[key] for row in batch]) for key in batch[0]}
    return tuple(np.asarray(column) for column in zip(*batch))


class BatchIterator:
    """Yield lists of ``batch_size`` rows, collated.

    Parameters
    ----------
    rows : iterable
        Any row sequence, typically a reader's iterator.
    batch_size : int
        Rows per batch.
    drop_last : bool
        Drop the final incomplete batch.
    collate_fn : callable or None
        Applied to each list of rows; defaults to :func:`default_collate`.
        Pass ``list`` to keep plain lists.

    Examples
    --------
    >>> batches = BatchIterator(reader.get_iterator(shuffle=True), batch_size=64)
    >>> for ids, texts in batches:
    ...     train(ids, texts)
    """

    def __init__(
        self,
        rows: Iterable[Any],
        batch_size: int = 32,
        drop_last: bool = False,
        collate_fn: Optional[Callable[[List[Any]], Any]] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._rows = iter(rows)
        self.batch_size = batch_size
        self.drop_last = drop_last
        self.collate_fn: Callable = collate_fn or default_collate

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        batch: List[Any] = []
        for row in self._rows:
            batch.append(row)
            if len(batch) >= self.batch_size:
                return self.collate_fn(batch)
        if batch and not self.drop_last:
            return self.collate_fn(batch)
        raise StopIteration

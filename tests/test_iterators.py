"""Tests for the row iterators, driven by in-memory chunk readers."""

import itertools

import pytest

from pqloader.iterators import ChunkedRowIterator, ConcatRowIterator, InterleavedRowIterator
from pqloader.plan import ChunkPlan
from pqloader.shuffle import SplitMix64


class FakeFile:
    """Rows ``offset .. offset + n - 1`` with a call log and optional failure."""

    def __init__(self, n, offset=0, fail_at=None):
        self.rows = list(range(offset, offset + n))
        self.calls = []
        self.fail_at = fail_at

    def read_chunk(self, start, end):
        self.calls.append((start, end))
        if self.fail_at is not None and start <= self.fail_at < end:
            raise RuntimeError(f"bad chunk [{start}, {end})")
        return self.rows[start:end]

    def iterator(self, chunk_size, rng=None):
        plan = ChunkPlan(len(self.rows), chunk_size)
        return ChunkedRowIterator(plan.ranges(plan.get_chunk_order(rng)), self.read_chunk)


class TestChunkedRowIterator:
    def test_yields_rows_in_chunk_order(self):
        fake = FakeFile(10)
        iterator = ChunkedRowIterator([(4, 8), (0, 4), (8, 10)], fake.read_chunk)
        assert list(iterator) == [4, 5, 6, 7, 0, 1, 2, 3, 8, 9]
        assert iterator.chunks_read == 3
        assert iterator.rows_yielded == 10
        assert iterator.exhausted

    def test_lazy_one_chunk_at_a_time(self):
        fake = FakeFile(10)
        iterator = fake.iterator(4)
        assert fake.calls == []
        assert next(iterator) == 0
        assert fake.calls == [(0, 4)]
        list(itertools.islice(iterator, 3))
        assert fake.calls == [(0, 4)]
        next(iterator)
        assert fake.calls == [(0, 4), (4, 8)]

    def test_failure_ends_sequence(self):
        fake = FakeFile(10, fail_at=5)
        iterator = fake.iterator(4)
        assert list(itertools.islice(iterator, 4)) == [0, 1, 2, 3]
        with pytest.raises(RuntimeError):
            next(iterator)
        assert list(iterator) == []
        assert fake.calls == [(0, 4), (4, 8)]

    def test_close_stops_reads(self):
        fake = FakeFile(10)
        iterator = fake.iterator(4)
        next(iterator)
        iterator.close()
        assert list(iterator) == []
        assert fake.calls == [(0, 4)]
        assert iterator.remaining_chunks == 0

    def test_check_runs_before_every_pull(self):
        fake = FakeFile(10)
        state = {"open": True, "checks": 0}

        def check():
            state["checks"] += 1
            if not state["open"]:
                raise ValueError("closed")

        iterator = ChunkedRowIterator([(0, 4), (4, 8)], fake.read_chunk, check=check)
        assert next(iterator) == 0
        assert next(iterator) == 1
        assert state["checks"] == 2
        state["open"] = False
        with pytest.raises(ValueError):
            next(iterator)
        assert iterator.exhausted
        assert list(iterator) == []
        assert state["checks"] == 3
        assert fake.calls == [(0, 4)]

    def test_empty(self):
        fake = FakeFile(0)
        assert list(fake.iterator(4)) == []
        assert fake.calls == []


class TestConcatRowIterator:
    def test_drains_members_in_order(self):
        files = [FakeFile(3), FakeFile(0, offset=50), FakeFile(4, offset=100)]
        iterator = ConcatRowIterator([f.iterator(2) for f in files])
        assert list(iterator) == [0, 1, 2, 100, 101, 102, 103]

    def test_later_members_untouched_until_needed(self):
        a, b = FakeFile(5), FakeFile(5, offset=10)
        iterator = ConcatRowIterator([a.iterator(5), b.iterator(5)])
        list(itertools.islice(iterator, 5))
        assert b.calls == []

    def test_failure_aborts_all(self):
        a, b = FakeFile(4, fail_at=2), FakeFile(4, offset=10)
        iterator = ConcatRowIterator([a.iterator(2), b.iterator(2)])
        with pytest.raises(RuntimeError):
            list(iterator)
        assert list(iterator) == []
        assert b.calls == []


class TestInterleavedRowIterator:
    @pytest.mark.parametrize("seed", range(20))
    def test_every_row_exactly_once(self, seed):
        rng = SplitMix64(seed)
        files = [FakeFile(13), FakeFile(0, offset=100), FakeFile(1, offset=200), FakeFile(40, offset=300)]
        iterators = [f.iterator(4, rng=SplitMix64(seed + i)) for i, f in enumerate(files)]
        rows = list(InterleavedRowIterator(iterators, rng))
        expected = sorted(row for f in files for row in f.rows)
        assert sorted(rows) == expected
        assert len(rows) == len(set(rows))

    def test_three_and_five(self):
        a, b = FakeFile(3), FakeFile(5, offset=100)
        rows = list(InterleavedRowIterator([a.iterator(128), b.iterator(128)], SplitMix64(42)))
        assert len(rows) == 8
        assert sorted(r for r in rows if r < 100) == [0, 1, 2]
        assert sorted(r for r in rows if r >= 100) == [100, 101, 102, 103, 104]

    def test_exhausted_members_are_dropped(self):
        a, b = FakeFile(1), FakeFile(50, offset=100)
        iterator = InterleavedRowIterator([a.iterator(10), b.iterator(10)], SplitMix64(0))
        list(iterator)
        assert iterator.active_count == 0

    def test_within_member_order_kept_without_chunk_shuffle(self):
        a, b = FakeFile(20), FakeFile(20, offset=100)
        rows = list(InterleavedRowIterator([a.iterator(3), b.iterator(3)], SplitMix64(5)))
        assert [r for r in rows if r < 100] == list(range(20))
        assert [r for r in rows if r >= 100] == list(range(100, 120))

    def test_failure_aborts_all(self):
        a, b = FakeFile(10, fail_at=0), FakeFile(10, offset=100)
        iterator = InterleavedRowIterator([a.iterator(5), b.iterator(5)], SplitMix64(1))
        with pytest.raises(RuntimeError):
            list(iterator)
        assert iterator.active_count == 0
        assert list(iterator) == []

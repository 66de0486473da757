"""
Integration tests for viewkit.

End-to-end scenarios combining views, combinators, arenas and the
parallel map engine.
"""

import math

import numpy as np
import pytest
import viewkit
from viewkit import OutOfBounds, View, ViewArena, parallel_map


# ---------- Realistic Workloads ----------

def count(n):
    return View.arange(n)


def expensive_calculation(i):
    if i == 0:
        return 0
    return int(math.sqrt(i * i + i) / i)


def is_odd(x):
    return x % 2 == 1


def mean(view):
    return view.fold(lambda acc, x: acc + x, 0.0) / len(view)


def median(view):
    ordered = View.from_sequence(view)
    ordered.sort()
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


# ---------- Scenarios ----------

class TestScenarios:
    def test_map_square(self):
        assert count(5).map(lambda v: v * v) == View([0, 1, 4, 9, 16])

    def test_filter_odd(self):
        assert View([0, 1, 2, 3, 4]).filter(is_odd) == View([1, 3])

    def test_predicates(self):
        v = View([1, 3, 5, 7])
        assert v.conjunction(is_odd) is True
        assert v.disjunction(lambda x: x == 2) is False

    def test_out_of_bounds(self):
        v = count(5)
        with pytest.raises(OutOfBounds):
            v.index(5)
        with pytest.raises(OutOfBounds):
            v.slice(3, 2)

    def test_parallel_map_expensive(self):
        v = count(100_000)
        expected = v.map(expensive_calculation, dtype=np.int64)
        result = parallel_map(v, expensive_calculation, dtype=np.int64)
        assert result == expected

    @pytest.mark.slow
    def test_parallel_map_ten_million(self):
        v = count(10_000_000)
        expected = v.map(expensive_calculation, dtype=np.int64)
        result = parallel_map(v, expensive_calculation, workers=8, min_length=16, dtype=np.int64)
        assert result == expected


# ---------- Properties ----------

class TestProperties:
    def setup_method(self):
        rng = np.random.default_rng(2024)
        self.views = [
            View([]),
            View([3]),
            View.from_sequence(rng.integers(0, 100, size=17)),
            View.from_sequence(rng.integers(-50, 50, size=200).tolist()),
        ]

    def test_take_drop_reconstruct(self):
        for v in self.views:
            for k in range(len(v) + 1):
                assert len(v.take(k)) + len(v.drop(k)) == len(v)
                assert v.take(k).to_list() + v.drop(k).to_list() == v.to_list()

    def test_head_tail(self):
        for v in self.views:
            if len(v) == 0:
                continue
            assert v.head() == v.index(0)
            tail = v.tail()
            for i in range(len(tail)):
                assert tail.index(i) == v.index(i + 1)

    def test_filter_idempotent(self):
        for v in self.views:
            once = v.filter(is_odd)
            assert once.filter(is_odd) == once

    def test_map_fusion(self):
        f = lambda x: x * 2
        g = lambda x: x - 3
        for v in self.views:
            assert v.map(f).map(g) == v.map(lambda i: g(f(i)))

    def test_parallel_equals_sequential(self):
        f = lambda x: x * x - 1
        for v in self.views:
            expected = v.map(f)
            for workers in (1, 4, 8, 32):
                for min_length in (0, 16):
                    assert parallel_map(v, f, workers=workers, min_length=min_length) == expected


# ---------- Consumers of the public surface ----------

class TestStatisticsConsumer:
    """A statistics layer only needs index, length, fold and sort."""

    def test_mean(self):
        assert mean(View([1, 2, 3, 4])) == 2.5

    def test_median_does_not_reorder_input(self):
        v = View.from_sequence([5, 1, 4, 2, 3])
        assert median(v) == 3
        assert v.to_list() == [5, 1, 4, 2, 3]

    def test_median_even(self):
        assert median(View([4, 1, 3, 2])) == 2.5


class TestPipeline:
    def test_arena_pipeline(self):
        arena = ViewArena()
        source = count(1000)
        with arena.scope() as a:
            squares = a.adopt(source.parallel_map(lambda x: x * x, workers=4, dtype=np.int64))
            evens = a.adopt(squares.filter(lambda x: x % 2 == 0))
            total = evens.fold(lambda acc, x: acc + int(x), 0)
        assert total == sum(x * x for x in range(0, 1000, 2))
        assert not squares.is_alive
        assert not evens.is_alive
        assert arena.stats.release_count == 2

    def test_shuffle_then_sort_roundtrip(self):
        v = count(500)
        v.shuffle(np.random.default_rng(11))
        v.sort()
        assert v == count(500)

    def test_package_exports(self):
        assert viewkit.__version__ == "1.0.0"
        assert viewkit.ParallelMapEngine.DEFAULT_WORKERS == 8
        assert issubclass(viewkit.OutOfBounds, viewkit.ViewError)

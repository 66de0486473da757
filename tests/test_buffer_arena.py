"""
Tests for backing buffers and the view arena.

Validates:
  - Buffer allocates, wraps and releases correctly
  - Release bumps the generation and invalidates storage access
  - ViewArena releases every adopted view at scope exit
"""

import numpy as np
import pytest
from viewkit.core.arena import ViewArena
from viewkit.core.buffer import Buffer
from viewkit.core.errors import OwnershipError, StaleView
from viewkit.core.view import View


class TestBuffer:
    def test_allocate_generic(self):
        buf = Buffer.allocate(3)
        assert len(buf) == 3
        assert buf.data == [None, None, None]
        assert not buf.is_numpy

    def test_allocate_numpy(self):
        buf = Buffer.allocate(3, dtype=np.int32)
        assert buf.is_numpy
        assert buf.data.dtype == np.int32
        assert buf.data.shape == (3,)

    def test_allocate_negative(self):
        with pytest.raises(ValueError):
            Buffer.allocate(-1)

    def test_wrap(self):
        storage = [1, 2]
        buf = Buffer.wrap(storage)
        assert buf.data is storage
        assert buf.is_adopted

    def test_wrap_rejects_2d(self):
        with pytest.raises(ValueError):
            Buffer.wrap(np.zeros((2, 2)))

    def test_release(self):
        buf = Buffer.allocate(2)
        assert buf.generation == 0
        buf.release()
        assert buf.is_released
        assert buf.generation == 1
        with pytest.raises(StaleView):
            buf.data

    def test_double_release(self):
        buf = Buffer.allocate(2)
        buf.release()
        with pytest.raises(OwnershipError):
            buf.release()

    def test_repr(self):
        buf = Buffer.allocate(2)
        assert repr(buf) == 'Buffer(length=2, list, generation=0)'
        buf.release()
        assert repr(buf) == 'Buffer(length=2, released, generation=1)'


class TestViewArena:
    def test_scope_releases(self):
        arena = ViewArena()
        with arena.scope() as a:
            v = a.allocate(8)
            assert v.is_alive
        assert not v.is_alive

    def test_adopt(self):
        arena = ViewArena()
        source = View.from_sequence([1, 2, 3])
        with arena.scope() as a:
            squares = a.adopt(source.map(lambda x: x * x))
            alias = squares.tail()
            assert alias.to_list() == [4, 9]
        with pytest.raises(StaleView):
            alias.head()
        assert source.is_alive

    def test_release_on_error(self):
        arena = ViewArena()
        with pytest.raises(RuntimeError):
            with arena.scope() as a:
                v = a.allocate(4, dtype=np.float64)
                raise RuntimeError("fail")
        assert not v.is_alive

    def test_adopt_outside_scope(self):
        arena = ViewArena()
        with pytest.raises(OwnershipError):
            arena.allocate(2)

    def test_adopt_structural_view(self):
        arena = ViewArena()
        owner = View.from_sequence([1, 2])
        with arena.scope() as a:
            with pytest.raises(OwnershipError):
                a.adopt(owner.take(1))

    def test_manual_release_inside_scope(self):
        arena = ViewArena()
        with arena.scope() as a:
            v = a.allocate(2)
            v.release()
            a.allocate(3)
        assert arena.stats.release_count == 1
        assert arena.stats.allocation_count == 2

    def test_nested_scopes(self):
        arena = ViewArena()
        with arena.scope() as outer:
            kept = outer.allocate(2)
            with arena.scope() as inner:
                temp = inner.allocate(2)
                assert arena.depth == 2
            assert not temp.is_alive
            assert kept.is_alive
        assert not kept.is_alive
        assert arena.depth == 0

    def test_stats(self):
        arena = ViewArena()
        with arena.scope() as a:
            a.allocate(1)
            a.allocate(1)
            a.allocate(1)
            assert arena.stats.live_views == 3
        assert arena.stats.live_views == 0
        assert arena.stats.peak_live_views == 3
        assert arena.stats.scope_count == 1

    def test_adopt_same_view_twice(self):
        arena = ViewArena()
        with arena.scope() as a:
            v = a.allocate(2)
            assert a.adopt(v) is v
            assert arena.stats.live_views == 1
        assert arena.stats.allocation_count == 1
        assert arena.stats.peak_live_views == 1
        assert arena.stats.release_count == 1
        assert arena.stats.live_views == 0

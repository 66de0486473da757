"""
Array View
==========

A fixed-length, bounds-checked handle over a contiguous run of elements,
with a library of higher-order combinators.

Two kinds of views exist:

1. Structural views (slice, take, drop, tail) alias their parent's buffer.
   They are weak references: no ownership stake, no allocation, and they
   must not outlive the owner. Use after the owner releases the buffer is
   detected through the buffer generation and raises StaleView.
2. Transformed views (map, filter, zip, and the fresh-allocation
   constructors) compute into a newly allocated buffer and own it. The
   owner releases it with ``release()`` or by using the view as a context
   manager.

Bounds checks are unconditional: there is no build mode that skips them.

Usage:
    >>> v = View.from_sequence([0, 1, 2, 3, 4])
    >>> v.map(lambda x: x * x).to_list()
    [0, 1, 4, 9, 16]
    >>> v.filter(lambda x: x % 2 == 1).to_list()
    [1, 3]
    >>> v.take(2).to_list(), v.drop(2).to_list()
    ([0, 1], [2, 3, 4])
"""

import operator
from typing import Any, Callable, Generic, Iterable, Iterator, List, MutableSequence, Optional, TypeVar, Union

import numpy as np

from viewkit.core.buffer import Buffer
from viewkit.core.errors import (
    EmptyView,
    LengthMismatch,
    NotCommutative,
    OutOfBounds,
    OwnershipError,
    StaleView,
)

T = TypeVar('T')
U = TypeVar('U')


def _write_run(data: MutableSequence, start: int, values) -> None:
    """Write ``values`` into ``data`` starting at ``start``."""
    if isinstance(data, (list, np.ndarray)):
        data[start:start + len(values)] = values
    else:
        for k, value in enumerate(values):
            data[start + k] = value


class View(Generic[T]):
    """
    Bounds-checked view over a contiguous run of elements.

    Constructing a View directly wraps caller-supplied storage (a list,
    ``array.array`` or 1-D ndarray) without taking ownership:

        >>> storage = [5, 3, 1]
        >>> v = View(storage)
        >>> v.sort()
        >>> storage
        [1, 3, 5]
    """

    REPR_HEAD_ITEMS = 5
    REPR_TAIL_ITEMS = 3
    REPR_MAX_ITEMS = 10

    __slots__ = ('_buffer', '_offset', '_length', '_generation', '_owned')

    def __init__(self, storage: MutableSequence, length: Optional[int] = None, offset: int = 0):
        buffer = Buffer.wrap(storage)
        if length is None:
            length = len(buffer) - offset
        if offset < 0 or length < 0 or offset + length > len(buffer):
            raise OutOfBounds(
                f"range [{offset}, {offset + length}) exceeds storage of {len(buffer)} elements",
                offset + length,
                len(buffer),
            )
        self._buffer = buffer
        self._offset = offset
        self._length = length
        self._generation = buffer.generation
        self._owned = False

    @classmethod
    def _derive(cls, buffer: Buffer, offset: int, length: int, owned: bool) -> 'View':
        view = cls.__new__(cls)
        view._buffer = buffer
        view._offset = offset
        view._length = length
        view._generation = buffer.generation
        view._owned = owned
        return view

    # ---- Fresh-allocation constructors (the result owns its buffer) ----

    @classmethod
    def allocate(cls, length: int, dtype: Any = None) -> 'View':
        """
        Allocate an owned view of ``length`` elements.

        Contents are uninitialised: ``None`` placeholders without a dtype,
        undefined values of an ``numpy.empty`` array with one.
        """
        return cls._derive(Buffer.allocate(length, dtype), 0, length, owned=True)

    @classmethod
    def from_sequence(cls, values: Iterable, dtype: Any = None) -> 'View':
        """Copy ``values`` into a freshly allocated, owned view."""
        if dtype is not None:
            data = np.array(values if isinstance(values, np.ndarray) else list(values), dtype=dtype)
        elif isinstance(values, np.ndarray):
            data = values.copy()
        else:
            data = list(values)
        if isinstance(data, np.ndarray) and data.ndim != 1:
            raise ValueError(f"values must be one-dimensional, got ndim={data.ndim}")
        return cls._derive(Buffer(data), 0, len(data), owned=True)

    @classmethod
    def arange(cls, count: int, dtype: Any = np.int64) -> 'View':
        """Owned view of ``0, 1, ..., count - 1``."""
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        return cls._derive(Buffer(np.arange(count, dtype=dtype)), 0, count, owned=True)

    # ---- Attributes ----

    @property
    def length(self) -> int:
        return self._length

    @property
    def offset(self) -> int:
        """Position of the first element within the backing buffer."""
        return self._offset

    @property
    def owned(self) -> bool:
        return self._owned

    @property
    def buffer(self) -> Buffer:
        return self._buffer

    @property
    def dtype(self) -> Optional[np.dtype]:
        """numpy dtype of the backing storage, or None for generic storage."""
        data = self._storage()
        return data.dtype if isinstance(data, np.ndarray) else None

    @property
    def is_alive(self) -> bool:
        return not self._buffer.is_released and self._buffer.generation == self._generation

    def _storage(self) -> MutableSequence:
        if self._buffer.generation != self._generation or self._buffer.is_released:
            raise StaleView(
                f"view of {self._length} elements outlived its buffer "
                f"(generation {self._generation}, buffer at {self._buffer.generation})"
            )
        return self._buffer.data

    def _check_index(self, i: int) -> int:
        i = operator.index(i)
        if not 0 <= i < self._length:
            raise OutOfBounds(f"index {i} out of range [0, {self._length})", i, self._length)
        return self._offset + i

    # ---- Element access ----

    def index(self, i: int) -> T:
        """Return the element at ``i``; raises OutOfBounds when ``i >= length``."""
        pos = self._check_index(i)
        return self._storage()[pos]

    def set(self, i: int, value: T) -> None:
        pos = self._check_index(i)
        self._storage()[pos] = value

    def __getitem__(self, key: Union[int, slice]):
        if isinstance(key, slice):
            if key.step not in (None, 1):
                raise ValueError(f"views are contiguous; step {key.step} is not supported")
            first = 0 if key.start is None else key.start
            last = self._length if key.stop is None else key.stop
            return self.slice(first, last)
        return self.index(key)

    def __setitem__(self, i: int, value: T):
        if isinstance(i, slice):
            raise TypeError("slice assignment is not supported; use slice(...).map_to(...)")
        self.set(i, value)

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[T]:
        data = self._storage()
        for pos in range(self._offset, self._offset + self._length):
            yield data[pos]

    # ---- Structural views (weak references, no allocation) ----

    def slice(self, first: int, last: int) -> 'View[T]':
        """
        Weak sub-view of ``[first, last)``.

        Raises OutOfBounds when ``first > length``, ``last > length`` or
        ``last < first``.
        """
        first = operator.index(first)
        last = operator.index(last)
        if first < 0 or first > self._length:
            raise OutOfBounds(f"slice start {first} out of range [0, {self._length}]", first, self._length)
        if last > self._length:
            raise OutOfBounds(f"slice end {last} out of range [0, {self._length}]", last, self._length)
        if last < first:
            raise OutOfBounds(f"slice end {last} precedes start {first}", last, self._length)
        self._storage()
        return View._derive(self._buffer, self._offset + first, last - first, owned=False)

    def take(self, n: int) -> 'View[T]':
        """First ``n`` elements."""
        return self.slice(0, n)

    def drop(self, n: int) -> 'View[T]':
        """All but the first ``n`` elements."""
        if n > self._length:
            raise OutOfBounds(f"cannot drop {n} of {self._length} elements", n, self._length)
        return self.slice(n, self._length)

    def head(self) -> T:
        if self._length == 0:
            raise EmptyView("head of an empty view")
        return self.index(0)

    def tail(self) -> 'View[T]':
        if self._length == 0:
            raise EmptyView("tail of an empty view")
        return self.slice(1, self._length)

    # ---- Equality ----

    def equals(self, other: 'View') -> bool:
        """Same length and element-wise equal, in order."""
        if not isinstance(other, View):
            return False
        if self._length != other._length:
            return False
        a = self._storage()
        b = other._storage()
        n = self._length
        if isinstance(a, np.ndarray) and isinstance(b, np.ndarray):
            return bool(np.array_equal(
                a[self._offset:self._offset + n],
                b[other._offset:other._offset + n],
            ))
        ao, bo = self._offset, other._offset
        for i in range(n):
            if not a[ao + i] == b[bo + i]:
                return False
        return True

    def __eq__(self, other):
        if not isinstance(other, View):
            return NotImplemented
        return self.equals(other)

    __hash__ = None

    # ---- In-place mutation of the aliased storage ----

    def sort(self) -> None:
        """
        Sort the aliased elements in ascending order, in place.

        Every view sharing this storage observes the new order.
        """
        data = self._storage()
        start, stop = self._offset, self._offset + self._length
        if isinstance(data, np.ndarray):
            data[start:stop].sort()
        else:
            _write_run(data, start, sorted(data[start:stop]))

    def shuffle(self, rng) -> None:
        """
        Randomly permute the aliased elements in place.

        Args:
            rng: a ``numpy.random.Generator`` or an integer seed. The same
                seed always produces the same permutation.
        """
        if rng is None:
            raise ValueError("shuffle needs a random generator or seed, got None")
        generator = np.random.default_rng(rng)
        data = self._storage()
        if self._length < 2:
            return
        start, stop = self._offset, self._offset + self._length
        perm = generator.permutation(self._length)
        if isinstance(data, np.ndarray):
            data[start:stop] = data[start:stop][perm]
        else:
            segment = data[start:stop]
            _write_run(data, start, [segment[int(p)] for p in perm])

    # ---- Map family ----

    def map(self, func: Callable[..., U], *args, dtype: Any = None) -> 'View[U]':
        """
        Apply ``func(x, *args)`` to every element into a new owned view.

        ``dtype`` selects numpy storage for the result; by default results
        are kept as Python objects.
        """
        out = View.allocate(self._length, dtype)
        try:
            self.map_to(func, out, *args)
        except BaseException:
            out.release()
            raise
        return out

    def map_to(self, func: Callable[..., U], out: 'View[U]', *args) -> 'View[U]':
        """
        Apply ``func`` into the caller-supplied ``out`` view.

        Raises LengthMismatch before writing anything when the lengths
        differ. If ``func`` raises, ``out`` keeps the elements written so
        far.
        """
        if out._length != self._length:
            raise LengthMismatch(self._length, out._length)
        src = self._storage()
        dst = out._storage()
        src_offset, dst_offset = self._offset, out._offset
        for i in range(self._length):
            dst[dst_offset + i] = func(src[src_offset + i], *args)
        return out

    def map_in_place(self, func: Callable[..., T], *args) -> 'View[T]':
        """Overwrite every element with ``func(x, *args)``."""
        return self.map_to(func, self, *args)

    def parallel_map(
        self,
        func: Callable[..., U],
        *args,
        workers: Optional[int] = None,
        min_length: Optional[int] = None,
        dtype: Any = None,
    ) -> 'View[U]':
        """Map across a per-call worker pool; see ParallelMapEngine."""
        from viewkit.parallel.engine import parallel_map
        return parallel_map(self, func, *args, workers=workers, min_length=min_length, dtype=dtype)

    # ---- Other functional operators ----

    def filter(self, predicate: Callable[..., bool], *args) -> 'View[T]':
        """
        Owned view of the elements satisfying ``predicate``, in order.

        The result's buffer keeps the full source capacity; only the first
        ``count`` slots are addressable.
        """
        data = self._storage()
        dtype = data.dtype if isinstance(data, np.ndarray) else None
        buffer = Buffer.allocate(self._length, dtype)
        try:
            dst = buffer.data
            count = 0
            for pos in range(self._offset, self._offset + self._length):
                value = data[pos]
                if predicate(value, *args):
                    dst[count] = value
                    count += 1
        except BaseException:
            buffer.release()
            raise
        return View._derive(buffer, 0, count, owned=True)

    def fold(self, func: Callable[..., U], seed: U, *args) -> U:
        """Strict left-to-right reduction ``func(acc, x, *args)``."""
        acc = seed
        for value in self:
            acc = func(acc, value, *args)
        return acc

    def fold_unordered(self, func: Callable[[T, T], T]) -> T:
        """
        Reduce with a function the caller asserts is commutative.

        Only the first adjacent pair is checked: ``func(v[0], v[1])`` must
        equal ``func(v[1], v[0])`` or NotCommutative is raised. Passing the
        check does not prove commutativity or associativity.
        """
        if self._length == 0:
            raise EmptyView("fold_unordered of an empty view")
        data = self._storage()
        first = data[self._offset]
        if self._length >= 2:
            second = data[self._offset + 1]
            if not func(first, second) == func(second, first):
                raise NotCommutative(
                    f"{getattr(func, '__qualname__', func)!s} gave different results "
                    f"for ({first!r}, {second!r}) and ({second!r}, {first!r})"
                )
        acc = first
        for pos in range(self._offset + 1, self._offset + self._length):
            acc = func(acc, data[pos])
        return acc

    def zip(self, other: 'View', func: Callable[[T, Any], U], dtype: Any = None) -> 'View[U]':
        """Owned view of ``func(self[i], other[i])``."""
        if other._length != self._length:
            raise LengthMismatch(self._length, other._length)
        a = self._storage()
        b = other._storage()
        out = View.allocate(self._length, dtype)
        try:
            dst = out._storage()
            ao, bo = self._offset, other._offset
            for i in range(self._length):
                dst[i] = func(a[ao + i], b[bo + i])
        except BaseException:
            out.release()
            raise
        return out

    def conjunction(self, predicate: Callable[[T], bool]) -> bool:
        """True iff every element satisfies ``predicate``; True when empty."""
        return all(predicate(value) for value in self)

    def disjunction(self, predicate: Callable[[T], bool]) -> bool:
        """True iff some element satisfies ``predicate``; False when empty."""
        return any(predicate(value) for value in self)

    # ---- Conversion ----

    def to_list(self) -> List[T]:
        data = self._storage()
        segment = data[self._offset:self._offset + self._length]
        if isinstance(segment, np.ndarray):
            return segment.tolist()
        return list(segment)

    def to_numpy(self, dtype: Any = None) -> np.ndarray:
        """Copy the elements into a new ndarray."""
        data = self._storage()
        segment = data[self._offset:self._offset + self._length]
        return np.array(segment, dtype=dtype)

    # ---- Ownership ----

    def release(self) -> None:
        """
        Release the backing buffer. Only the owning view may do this;
        every view derived from it becomes stale.
        """
        if not self._owned:
            raise OwnershipError("cannot release through a view that does not own its buffer")
        if self._buffer.generation != self._generation:
            raise OwnershipError("buffer already released")
        self._buffer.release()

    def __enter__(self) -> 'View[T]':
        return self

    def __exit__(self, *exc):
        if self._owned and self.is_alive:
            self.release()

    def __repr__(self):
        if not self.is_alive:
            return f'View(<released>, length={self._length})'
        n = self._length
        if n <= self.REPR_MAX_ITEMS:
            vals = ', '.join(repr(v) for v in self.to_list())
        else:
            first = ', '.join(repr(v) for v in self.take(self.REPR_HEAD_ITEMS).to_list())
            last = ', '.join(repr(v) for v in self.drop(n - self.REPR_TAIL_ITEMS).to_list())
            vals = f'{first}, ..., {last}'
        return f'View([{vals}], length={n})'

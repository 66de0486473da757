"""
Backing Buffers
===============

Storage that views alias. A Buffer wraps any one-dimensional mutable
sequence that supports integer indexing and slice assignment:

- ``list``: generic Python objects (default for fresh allocation)
- ``array.array``: compact typed storage
- ``numpy.ndarray``: typed, contiguous storage (fresh allocation with a dtype)

Every buffer carries a *generation*. Releasing a buffer drops its storage
and bumps the generation, so views that captured the old generation can
detect that they outlived their owner and fail with StaleView instead of
reading freed data.
"""

import logging
from typing import Any, MutableSequence

import numpy as np

from viewkit.core.errors import OwnershipError, StaleView

logger = logging.getLogger(__name__)


class Buffer:
    """
    A contiguous run of elements with an explicit release point.

    Usage:
        >>> buf = Buffer.allocate(4, dtype=np.float64)
        >>> len(buf)
        4
        >>> buf.release()
        >>> buf.is_released
        True
    """

    __slots__ = ('_data', '_length', '_generation', '_adopted')

    def __init__(self, data: MutableSequence, adopted: bool = False):
        self._data = data
        self._length = len(data)
        self._generation = 0
        self._adopted = adopted

    @classmethod
    def allocate(cls, length: int, dtype: Any = None) -> 'Buffer':
        """
        Allocate fresh storage of ``length`` elements.

        Without a dtype the storage is a list of ``None`` placeholders.
        With a dtype it is an uninitialised ``numpy.empty`` array: contents
        are undefined until written.
        """
        if length < 0:
            raise ValueError(f"buffer length must be non-negative, got {length}")
        if dtype is None:
            data = [None] * length
        else:
            data = np.empty(length, dtype=dtype)
        return cls(data)

    @classmethod
    def wrap(cls, storage: MutableSequence) -> 'Buffer':
        """Adopt caller-supplied storage without taking ownership of it."""
        if isinstance(storage, np.ndarray) and storage.ndim != 1:
            raise ValueError(f"storage must be one-dimensional, got ndim={storage.ndim}")
        return cls(storage, adopted=True)

    @property
    def data(self) -> MutableSequence:
        if self._data is None:
            raise StaleView("buffer has been released")
        return self._data

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_released(self) -> bool:
        return self._data is None

    @property
    def is_adopted(self) -> bool:
        """True when the storage belongs to the caller, not to a view."""
        return self._adopted

    @property
    def is_numpy(self) -> bool:
        return isinstance(self._data, np.ndarray)

    def release(self):
        """Drop the storage and invalidate every view derived from it."""
        if self._data is None:
            raise OwnershipError("buffer already released")
        logger.debug(f"Releasing buffer of {self._length} elements (generation {self._generation})")
        self._data = None
        self._generation += 1

    def __len__(self) -> int:
        return self._length

    def __repr__(self):
        state = 'released' if self._data is None else type(self._data).__name__
        return f'Buffer(length={self._length}, {state}, generation={self._generation})'

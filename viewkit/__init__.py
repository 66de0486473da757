"""
viewkit: Bounds-Checked Array Views with Parallel Map
=====================================================

A fixed-length, bounds-checked view over contiguous storage, a library of
higher-order combinators (map, filter, fold, zip, predicates), and a
parallel map that partitions work across a per-call pool of threads.

Core Components:
    - core: View, backing buffers, scoped ownership and the error taxonomy
    - parallel: partitioned, order-preserving parallel map

Usage:
    >>> import viewkit
    >>> v = viewkit.View.from_sequence([0, 1, 2, 3, 4])
    >>> v.map(lambda x: x * x).to_list()
    [0, 1, 4, 9, 16]

    >>> big = viewkit.View.arange(10_000_000)
    >>> squares = viewkit.parallel_map(big, lambda x: x * x, dtype='int64')
    >>> squares == big.map(lambda x: x * x, dtype='int64')
    True
"""

__version__ = "1.0.0"
__author__ = "viewkit developers"

from viewkit.core.buffer import Buffer
from viewkit.core.view import View
from viewkit.core.arena import ViewArena, ArenaStats
from viewkit.core.errors import (
    ViewError,
    OutOfBounds,
    EmptyView,
    LengthMismatch,
    NotCommutative,
    StaleView,
    OwnershipError,
)
from viewkit.parallel.engine import ParallelMapEngine, ParallelStats, parallel_map, partition

"""Partitioned, order-preserving parallel map over views."""

from viewkit.parallel.engine import (
    ParallelMapEngine,
    ParallelStats,
    parallel_map,
    partition,
)

__all__ = [
    'ParallelMapEngine',
    'ParallelStats',
    'parallel_map',
    'partition',
]

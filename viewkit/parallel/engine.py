"""
Parallel Map Engine
===================

Data-parallel map over a View using a per-call pool of worker threads.

The input range ``[0, length)`` is split into ``workers`` contiguous,
non-overlapping chunks:

    start_k = floor(k * length / workers)
    end_k   = floor((k + 1) * length / workers)

These ranges tile ``[0, length)`` exactly, with no gaps or overlaps, even
when ``length`` is not divisible by ``workers``. When ``workers > length``
some chunks are empty and are skipped.

One output view is allocated up front. Each worker reads only its own
input sub-range and writes only its own output sub-range, so the compute
phase needs no locks: the half-open partition is the only thing keeping
workers apart.

Threads rather than processes are used because every worker writes into
the same output buffer in place. The call blocks until every worker has
finished; a failure in any chunk is re-raised only after the join.
"""

import ast
import functools
import inspect
import logging
import textwrap
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from viewkit.core.view import View
from viewkit.utils.helpers import Timer, format_ns

logger = logging.getLogger(__name__)


def partition(length: int, workers: int) -> List[Tuple[int, int]]:
    """
    Split ``[0, length)`` into ``workers`` half-open ranges.

    Returns exactly ``workers`` ranges in order; some may be empty.

        >>> partition(10, 3)
        [(0, 3), (3, 6), (6, 10)]
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    return [((k * length) // workers, ((k + 1) * length) // workers) for k in range(workers)]


def _map_chunk(view: View, out: View, start: int, stop: int, func: Callable, args: tuple):
    """Worker body: map one input chunk into the matching output chunk."""
    view.slice(start, stop).map_to(func, out.slice(start, stop), *args)


@dataclass
class ParallelStats:
    """Statistics for parallel map calls."""
    parallelized_calls: int = 0
    fallback_calls: int = 0
    chunks_submitted: int = 0
    chunks_skipped: int = 0
    failed_calls: int = 0


class ParallelMapEngine:
    """
    Partitioned, order-preserving parallel map.

    For any pure ``func`` the result is structurally equal to
    ``view.map(func)``; partitioning only affects performance.

    Usage:
        >>> engine = ParallelMapEngine(workers=4)
        >>> squares = engine.map(View.arange(1_000_000), lambda x: x * x)

        >>> # Or as a decorator:
        >>> @engine.parallel_mapper
        ... def normalise(x):
        ...     return x / 255.0
        >>> result = normalise(pixels)
    """

    DEFAULT_WORKERS = 8
    DEFAULT_MIN_LENGTH = 16

    def __init__(
        self,
        workers: Optional[int] = None,
        min_length: Optional[int] = None,
        verify_purity: bool = False,
    ):
        self.workers = self.DEFAULT_WORKERS if workers is None else workers
        self.min_length = self.DEFAULT_MIN_LENGTH if min_length is None else min_length
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.min_length < 0:
            raise ValueError(f"min_length must be non-negative, got {self.min_length}")
        self.verify_purity = verify_purity
        self.stats = ParallelStats()
        self._purity_cache: Dict[Any, bool] = {}

    def map(self, view: View, func: Callable, *args, dtype: Any = None) -> View:
        """
        Map ``func(x, *args)`` over ``view`` into a new owned view.

        Below ``min_length`` elements, or when purity verification is on
        and rejects ``func``, the sequential ``view.map`` is used instead.
        """
        length = len(view)

        if length < self.min_length:
            self.stats.fallback_calls += 1
            logger.debug(f"Sequential map: length {length} below threshold {self.min_length}")
            return view.map(func, *args, dtype=dtype)

        if self.verify_purity and not self._check_purity(func):
            self.stats.fallback_calls += 1
            logger.debug(f"Sequential map: {getattr(func, '__qualname__', func)!s} failed the purity check")
            return view.map(func, *args, dtype=dtype)

        self.stats.parallelized_calls += 1
        return self._parallel_map(view, func, args, dtype)

    def parallel_mapper(self, func: Callable) -> Callable:
        """
        Decorator turning an element function into a view-to-view
        parallel map.
        """
        @functools.wraps(func)
        def wrapper(view: View, *args, dtype: Any = None) -> View:
            return self.map(view, func, *args, dtype=dtype)

        wrapper.__viewkit_parallel__ = True
        return wrapper

    def _parallel_map(self, view: View, func: Callable, args: tuple, dtype: Any) -> View:
        """Internal parallel map implementation."""
        length = len(view)
        chunks = [(start, stop) for start, stop in partition(length, self.workers) if stop > start]
        self.stats.chunks_submitted += len(chunks)
        self.stats.chunks_skipped += self.workers - len(chunks)

        out = View.allocate(length, dtype)
        if not chunks:
            return out

        logger.debug(f"Parallel map of {length} elements over {len(chunks)} chunks: {chunks}")

        try:
            with Timer() as timer:
                # Leaving the executor joins every worker.
                with ThreadPoolExecutor(
                    max_workers=len(chunks), thread_name_prefix='viewkit-map'
                ) as pool:
                    futures = [
                        pool.submit(_map_chunk, view, out, start, stop, func, args)
                        for start, stop in chunks
                    ]

            failures = [
                (chunk, future.exception())
                for chunk, future in zip(chunks, futures)
                if future.exception() is not None
            ]
            if failures:
                self.stats.failed_calls += 1
                for (start, stop), exc in failures[1:]:
                    logger.debug(f"Chunk [{start}, {stop}) also failed: {exc!r}")
                raise failures[0][1]
        except BaseException:
            out.release()
            raise

        logger.debug(f"Parallel map of {length} elements finished in {format_ns(timer.elapsed_ns)}")
        return out

    def _check_purity(self, func: Callable) -> bool:
        """
        Conservative AST check for side effects.

        A function is rejected if it declares globals or nonlocals, calls
        I/O builtins, or assigns to attributes or subscripts. Functions
        whose source is unavailable (builtins, C extensions) are rejected
        too, so some pure functions are classified as impure but no impure
        function that the check can see is classified as pure.
        """
        key = getattr(func, '__code__', func)

        if key in self._purity_cache:
            return self._purity_cache[key]

        try:
            source = textwrap.dedent(inspect.getsource(func))
            tree = ast.parse(source)
        except (TypeError, OSError, SyntaxError):
            self._purity_cache[key] = False
            return False

        is_pure = True
        for node in ast.walk(tree):
            if isinstance(node, (ast.Global, ast.Nonlocal)):
                is_pure = False
                break

            if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
                if node.func.id in ('print', 'open', 'input', 'exec', 'eval'):
                    is_pure = False
                    break

            if isinstance(node, (ast.Attribute, ast.Subscript)) and isinstance(node.ctx, ast.Store):
                is_pure = False
                break

        self._purity_cache[key] = is_pure
        return is_pure


def parallel_map(
    view: View,
    func: Callable,
    *args,
    workers: Optional[int] = None,
    min_length: Optional[int] = None,
    dtype: Any = None,
) -> View:
    """
    Map ``func`` over ``view`` with a per-call worker pool.

    Defaults: 8 workers, parallelise only views of at least 16 elements.

        >>> result = parallel_map(View.arange(10_000), lambda x: x + 1, workers=4)
    """
    engine = ParallelMapEngine(workers=workers, min_length=min_length)
    return engine.map(view, func, *args, dtype=dtype)

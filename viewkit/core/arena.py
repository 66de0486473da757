"""
View Arena
==========

Scoped ownership for transformed views.

Views returned by ``map``, ``filter``, ``zip`` and the allocation
constructors own their buffers and must be released by their creator.
A ViewArena collects owned views inside a ``scope()`` and releases all of
them when the scope exits, regardless of exceptions:

    >>> arena = ViewArena()
    >>> with arena.scope() as a:
    ...     squares = a.adopt(source.map(lambda x: x * x))
    ...     scratch = a.allocate(1000, dtype='float64')
    ...     # ... compute with squares, scratch ...
    ...     # Both released automatically at scope exit

Scopes nest; a view belongs to the innermost scope active when it was
adopted. Structural views derived from an arena view become stale once the
scope exits.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, List

from viewkit.core.errors import OwnershipError
from viewkit.core.view import View

logger = logging.getLogger(__name__)


@dataclass
class ArenaStats:
    """Statistics for arena-owned views."""
    allocation_count: int = 0
    release_count: int = 0
    live_views: int = 0
    peak_live_views: int = 0
    scope_count: int = 0


class ViewArena:
    """Releases every view adopted within a scope when the scope exits."""

    def __init__(self):
        self._scopes: List[List[View]] = []
        self.stats = ArenaStats()

    @contextmanager
    def scope(self):
        views: List[View] = []
        self._scopes.append(views)
        self.stats.scope_count += 1
        try:
            yield self
        finally:
            self._scopes.pop()
            self._release_all(views)

    @property
    def depth(self) -> int:
        """Number of currently open scopes."""
        return len(self._scopes)

    def allocate(self, length: int, dtype: Any = None) -> View:
        """Allocate an owned view released at scope exit."""
        return self.adopt(View.allocate(length, dtype))

    def adopt(self, view: View) -> View:
        """Hand an owned view to the innermost open scope."""
        if not self._scopes:
            raise OwnershipError("no open arena scope to adopt the view")
        if not view.owned:
            raise OwnershipError("only a view that owns its buffer can be adopted")
        if any(adopted is view for adopted in self._scopes[-1]):
            return view
        self._scopes[-1].append(view)
        self.stats.allocation_count += 1
        self.stats.live_views += 1
        self.stats.peak_live_views = max(self.stats.peak_live_views, self.stats.live_views)
        return view

    def _release_all(self, views: List[View]):
        released = 0
        for view in reversed(views):
            # Skip views the caller already released by hand.
            if view.is_alive:
                view.release()
                released += 1
        self.stats.release_count += released
        self.stats.live_views -= len(views)
        logger.debug(f"Arena scope closed: released {released} of {len(views)} views")

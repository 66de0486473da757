"""
Core view types: backing buffers, the View itself, scoped ownership and
the error taxonomy.
"""

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

__all__ = [
    'Buffer',
    'View',
    'ViewArena',
    'ArenaStats',
    'ViewError',
    'OutOfBounds',
    'EmptyView',
    'LengthMismatch',
    'NotCommutative',
    'StaleView',
    'OwnershipError',
]

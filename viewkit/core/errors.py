"""
View Errors
===========

Error taxonomy for views and the parallel map engine.

Every error derives from ViewError and from the built-in exception a
caller would naturally expect, so ``except IndexError`` keeps working
around an out-of-range ``view[i]``.
"""


class ViewError(Exception):
    """Base class for all viewkit errors."""


class OutOfBounds(ViewError, IndexError):
    """Index or range outside ``[0, length)``."""

    def __init__(self, message: str, index=None, length=None):
        super().__init__(message)
        self.index = index
        self.length = length


class EmptyView(ViewError, ValueError):
    """Operation undefined on a zero-length view."""


class LengthMismatch(ViewError, ValueError):
    """Two views that must correspond element-wise differ in length."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"length mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class NotCommutative(ViewError, ValueError):
    """Commutativity spot check failed in fold_unordered."""


class StaleView(ViewError, RuntimeError):
    """The view's backing buffer has been released by its owner."""


class OwnershipError(ViewError, RuntimeError):
    """Release attempted through a view that does not own its buffer."""

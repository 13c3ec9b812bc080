"""
Custom exceptions for the incgp package.

This module defines the exception classes raised by the sample set, the
kernels and the regression engine.
"""


class IncGPException(Exception):
    """Base exception class for all incgp-related errors."""

    pass


class KernelError(IncGPException):
    """Raised when a kernel is misconfigured or cannot be evaluated."""

    pass


class ShapeMismatchError(IncGPException):
    """Raised when inputs and targets (or point dimensions) don't line up."""

    def __init__(self, expected: str, got: str):
        """
        Initialize shape mismatch error.

        Args:
            expected: Description of expected shape
            got: Description of actual shape
        """
        super().__init__(f"Shape mismatch: expected {expected}, got {got}")


class IndexOutOfRangeError(IncGPException, IndexError):
    """Raised when a sample accessor is called with an invalid index."""

    def __init__(self, index: int, size: int):
        """
        Initialize index error.

        Args:
            index: The offending index
            size: Number of observations in the sample set
        """
        self.index = index
        self.size = size
        super().__init__(f"Index {index} out of range for sample set of size {size}")


class NumericalInstabilityError(IncGPException):
    """
    Raised when a Cholesky factorization or extension hits a non-positive pivot.

    This usually means duplicate or nearly duplicate input points with too
    little noise. The engine does not perturb data on the caller's behalf.
    """

    pass

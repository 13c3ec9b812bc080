"""
Growable storage for a lower-triangular Cholesky factor.

The factor L of the regularized kernel matrix lives in the top-left
``rows x rows`` block of a square buffer allocated with spare capacity.
Rows are written one at a time by the incremental extension and become
visible only when committed, so a failed extension never corrupts the
committed block. Growing past capacity reallocates to at least twice the
previous size and copies the committed block.

Every entry of the buffer outside the committed lower triangle that a solve
can read is kept at zero.
"""

import logging

import torch

from .config import DTYPE

logger = logging.getLogger(__name__)


class TriangularFactor:
    """
    Capacity-doubling arena holding a lower-triangular matrix.

    Attributes:
        rows: Size of the committed factor
        version: Counter bumped whenever the committed factor changes
    """

    def __init__(self, capacity: int, dtype: torch.dtype = DTYPE) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._data = torch.zeros(capacity, capacity, dtype=dtype)
        self.rows = 0
        self.version = 0

    @property
    def capacity(self) -> int:
        return self._data.shape[0]

    @property
    def dtype(self) -> torch.dtype:
        return self._data.dtype

    def reserve(self, n: int) -> None:
        """Make room for at least ``n`` rows, keeping the committed block."""
        if n <= self.capacity:
            return
        new_capacity = max(n, 2 * self.capacity)
        data = torch.zeros(new_capacity, new_capacity, dtype=self._data.dtype)
        data[:self.rows, :self.rows] = self._data[:self.rows, :self.rows]
        logger.debug(f"Factor storage grown from {self.capacity} to {new_capacity} rows")
        self._data = data

    def block(self, n: int | None = None) -> torch.Tensor:
        """View of the leading ``n x n`` block (committed block by default)."""
        n = self.rows if n is None else n
        return self._data[:n, :n]

    def load(self, L: torch.Tensor) -> None:
        """Replace the committed factor with a full lower-triangular matrix."""
        n = L.shape[0]
        self.reserve(n)
        self._data.zero_()
        self._data[:n, :n] = torch.tril(L)
        self.rows = n
        self.version += 1

    def set_row(self, j: int, r: torch.Tensor, diagonal: float) -> None:
        """
        Write row ``j`` of the factor without committing it.

        Args:
            j: Row index, at least ``rows``
            r: Off-diagonal entries L[j, :j]
            diagonal: L[j, j]
        """
        self._data[j, :j] = r
        self._data[j, j] = diagonal
        self._data[j, j + 1:] = 0.0

    def commit(self, rows: int) -> None:
        """Make rows written by ``set_row`` part of the factor."""
        self.rows = rows
        self.version += 1

    def reset(self) -> None:
        self._data.zero_()
        self.rows = 0
        self.version += 1

    def solve_lower(self, b: torch.Tensor, n: int | None = None) -> torch.Tensor:
        """Solve L[:n, :n] x = b by forward substitution; b is (n,) or (n, M)."""
        n = self.rows if n is None else n
        if n == 0:
            return b.clone()
        vector = b.dim() == 1
        B = b.unsqueeze(-1) if vector else b
        x = torch.linalg.solve_triangular(self.block(n), B, upper=False)
        return x.squeeze(-1) if vector else x

    def solve_lower_transposed(self, b: torch.Tensor, n: int | None = None) -> torch.Tensor:
        """Solve L[:n, :n]^T x = b by back substitution; b is (n,) or (n, M)."""
        n = self.rows if n is None else n
        if n == 0:
            return b.clone()
        vector = b.dim() == 1
        B = b.unsqueeze(-1) if vector else b
        x = torch.linalg.solve_triangular(self.block(n).T, B, upper=True)
        return x.squeeze(-1) if vector else x

    def log_diagonal_sum(self, n: int | None = None) -> float:
        """Sum of log L[i, i] over the leading ``n`` rows (half the log-determinant)."""
        n = self.rows if n is None else n
        return torch.log(torch.diagonal(self.block(n))).sum().item()

    def __repr__(self) -> str:
        return f"TriangularFactor(rows={self.rows}, capacity={self.capacity})"

"""
Tests for the TriangularFactor storage arena.
"""

import pytest
import torch

from incgp.factor import TriangularFactor


def random_spd(n, seed=0):
    g = torch.Generator().manual_seed(seed)
    A = torch.randn(n, n, generator=g, dtype=torch.float64)
    return A @ A.T + n * torch.eye(n, dtype=torch.float64)


class TestTriangularFactor:
    """Storage, growth and solves."""

    def test_initial_state(self):
        factor = TriangularFactor(4)
        assert factor.rows == 0
        assert factor.capacity == 4
        assert factor.block().shape == (0, 0)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            TriangularFactor(0)

    def test_load(self):
        """load() stores the lower triangle and bumps the version."""
        L = torch.linalg.cholesky(random_spd(5))
        factor = TriangularFactor(8)
        factor.load(L)
        assert factor.rows == 5
        assert factor.version == 1
        assert torch.equal(factor.block(), L)

    def test_reserve_doubles_and_preserves(self):
        """Growing past capacity at least doubles it and keeps the committed block."""
        L = torch.linalg.cholesky(random_spd(3))
        factor = TriangularFactor(3)
        factor.load(L)
        factor.reserve(4)
        assert factor.capacity == 6
        assert torch.equal(factor.block(), L)
        factor.reserve(20)
        assert factor.capacity == 20
        assert torch.equal(factor.block(), L)

    def test_load_beyond_capacity(self):
        L = torch.linalg.cholesky(random_spd(10))
        factor = TriangularFactor(2)
        factor.load(L)
        assert factor.capacity >= 10
        assert torch.equal(factor.block(), L)

    def test_rows_hidden_until_commit(self):
        """Rows written with set_row become part of the factor only on commit."""
        L = torch.linalg.cholesky(random_spd(4))
        factor = TriangularFactor(8)
        factor.load(L[:3, :3])
        version = factor.version

        factor.set_row(3, L[3, :3], L[3, 3].item())
        assert factor.rows == 3
        assert factor.version == version

        factor.commit(4)
        assert factor.version == version + 1
        assert torch.allclose(factor.block(), L)

    def test_solves(self):
        """Forward and transposed solves agree with a dense solve."""
        K = random_spd(6, seed=3)
        L = torch.linalg.cholesky(K)
        factor = TriangularFactor(6)
        factor.load(L)

        b = torch.arange(6, dtype=torch.float64)
        v = factor.solve_lower(b)
        assert torch.allclose(L @ v, b)
        x = factor.solve_lower_transposed(v)
        assert torch.allclose(K @ x, b)

        B = torch.randn(6, 4, dtype=torch.float64)
        assert torch.allclose(L @ factor.solve_lower(B), B)

    def test_solve_on_leading_block(self):
        """solve_lower(b, n) only uses the leading n x n block."""
        L = torch.linalg.cholesky(random_spd(5))
        factor = TriangularFactor(5)
        factor.load(L)
        b = torch.ones(3, dtype=torch.float64)
        assert torch.allclose(L[:3, :3] @ factor.solve_lower(b, 3), b)

    def test_log_diagonal_sum(self):
        """Sum of log diagonal equals half the log-determinant."""
        K = random_spd(5, seed=7)
        factor = TriangularFactor(5)
        factor.load(torch.linalg.cholesky(K))
        assert factor.log_diagonal_sum() == pytest.approx(0.5 * torch.logdet(K).item())

    def test_reset(self):
        factor = TriangularFactor(4)
        factor.load(torch.eye(3, dtype=torch.float64))
        factor.reset()
        assert factor.rows == 0
        assert factor.block(3).abs().sum().item() == 0.0

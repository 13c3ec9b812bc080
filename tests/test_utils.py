"""
Tests for confidence bounds and slice plotting.
"""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402
import torch  # noqa: E402

from incgp.models import GaussianProcessEngine  # noqa: E402
from incgp.utils import confidence_bounds, plot_prediction_slice, slice_grid  # noqa: E402


class TestConfidenceBounds:
    """Gaussian confidence intervals."""

    def test_95_percent(self):
        lower, upper = confidence_bounds(torch.tensor([1.0]), torch.tensor([4.0]))
        assert lower.item() == pytest.approx(1.0 - 1.959964 * 2.0, abs=1e-5)
        assert upper.item() == pytest.approx(1.0 + 1.959964 * 2.0, abs=1e-5)

    def test_negative_variance_clamped(self):
        lower, upper = confidence_bounds(torch.tensor([0.5]), torch.tensor([-1e-12]))
        assert lower.item() == upper.item() == 0.5

    @pytest.mark.parametrize("level", [0.0, 1.0, 1.5])
    def test_invalid_level(self, level):
        with pytest.raises(ValueError):
            confidence_bounds(torch.zeros(1), torch.ones(1), confidence_level=level)


class TestSlices:
    """Planar evaluation grids and plots."""

    def test_slice_grid(self):
        U, V, points = slice_grid(axis="y", value=0.25, extent=(-1.0, 1.0), resolution=5)
        assert U.shape == V.shape == (5, 5)
        assert points.shape == (25, 3)
        assert torch.all(points[:, 1] == 0.25)
        assert points[:, 0].min().item() == -1.0
        assert points[:, 2].max().item() == 1.0

    def test_invalid_axis(self):
        with pytest.raises(ValueError):
            slice_grid(axis="w")

    def test_plot_prediction_slice(self, tmp_path):
        """The plot renders and saves for both quantities."""
        gp = GaussianProcessEngine(noise=1e-4)
        gp.add_observations([[1, 0, 0], [0, 1, 0], [-1, 0, 0], [0, 0, 0]], [0, 0, 0, -1])

        path = tmp_path / "slice.png"
        fig = plot_prediction_slice(gp, quantity="mean", resolution=10,
                                    save_path=str(path), show=False)
        assert path.exists()
        plt.close(fig)

        fig = plot_prediction_slice(gp, quantity="variance", resolution=10, show=False)
        assert fig.axes
        plt.close(fig)

    def test_plot_invalid_quantity(self):
        with pytest.raises(ValueError):
            plot_prediction_slice(GaussianProcessEngine(), quantity="gradient", show=False)

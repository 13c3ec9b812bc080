"""
Tests for the SampleSet container.
"""

import numpy as np
import pytest
import torch

from incgp.exceptions import IndexOutOfRangeError, ShapeMismatchError
from incgp.samples import SampleSet, to_points, to_targets


class TestSampleSetCore:
    """Core storage behaviour."""

    def test_empty_construction(self):
        """A default sample set holds nothing."""
        samples = SampleSet()
        assert samples.size() == 0
        assert len(samples) == 0
        assert samples.empty
        assert samples.targets().shape == (0,)
        assert samples.inputs().shape == (0, 3)

    def test_seeded_construction(self):
        """Inputs and targets passed at construction are stored in order."""
        samples = SampleSet([[1, 0, 0], [0, 1, 0]], [0.5, -0.5])
        assert samples.size() == 2
        assert torch.equal(samples.input(1), torch.tensor([0.0, 1.0, 0.0], dtype=torch.float64))
        assert samples.target(0) == 0.5

    def test_append_preserves_indices(self):
        """Appending twice adds both batches and keeps earlier inputs in place."""
        samples = SampleSet([[0.1, 0.2, 0.3]], [1.0])
        before = samples.input(0)

        a = torch.randn(5, 3, dtype=torch.float64)
        b = torch.randn(40, 3, dtype=torch.float64)
        samples.append(a, torch.zeros(5))
        samples.append(b, torch.ones(40))

        assert samples.size() == 1 + 5 + 40
        assert torch.equal(samples.input(0), before)
        assert torch.equal(samples.input(3), a[2])
        assert torch.equal(samples.input(45), b[39])
        assert samples.target(45) == 1.0

    def test_targets_in_index_order(self):
        """targets() returns every target in insertion order."""
        samples = SampleSet()
        samples.append(np.eye(3), [1.0, 2.0, 3.0])
        samples.append([[1.0, 1.0, 1.0]], [4.0])
        assert samples.targets().tolist() == [1.0, 2.0, 3.0, 4.0]

    def test_returned_tensors_are_copies(self):
        """Mutating a returned tensor does not touch stored data."""
        samples = SampleSet([[1, 2, 3]], [7.0])
        samples.inputs()[0, 0] = 100.0
        samples.targets()[0] = 100.0
        samples.input(0)[1] = 100.0
        assert samples.input(0).tolist() == [1.0, 2.0, 3.0]
        assert samples.target(0) == 7.0

    def test_clear(self):
        """clear() resets to the empty state and the set stays usable."""
        samples = SampleSet(np.eye(3), [1.0, 2.0, 3.0])
        samples.clear()
        assert samples.size() == 0
        samples.append([[0, 0, 1]], [5.0])
        assert samples.size() == 1
        assert samples.target(0) == 5.0

    def test_zero_length_append_is_noop(self):
        """An empty batch changes neither the size nor the revision."""
        samples = SampleSet([[1, 2, 3]], [1.0])
        revision = samples.revision
        samples.append([], [])
        assert samples.size() == 1
        assert samples.revision == revision


class TestSampleSetErrors:
    """Shape and index validation."""

    def test_construction_length_mismatch(self):
        with pytest.raises(ShapeMismatchError):
            SampleSet([[1, 0, 0], [0, 1, 0]], [1.0])

    def test_append_length_mismatch(self):
        """A mismatched batch is rejected and leaves the set unchanged."""
        samples = SampleSet([[1, 0, 0]], [1.0])
        with pytest.raises(ShapeMismatchError):
            samples.append([[0, 1, 0], [0, 0, 1]], [1.0, 2.0, 3.0])
        assert samples.size() == 1

    def test_wrong_point_dimension(self):
        with pytest.raises(ShapeMismatchError):
            SampleSet([[1.0, 2.0]], [1.0])

    @pytest.mark.parametrize("k", [1, 5, -1])
    def test_accessors_out_of_range(self, k):
        """input() and target() reject indices outside [0, size())."""
        samples = SampleSet([[1, 0, 0]], [1.0])
        with pytest.raises(IndexOutOfRangeError):
            samples.input(k)
        with pytest.raises(IndexOutOfRangeError):
            samples.target(k)

    def test_index_error_is_index_error(self):
        """IndexOutOfRangeError can be caught as a builtin IndexError."""
        with pytest.raises(IndexError):
            SampleSet().target(0)


class TestSetTarget:
    """Single-target replacement."""

    def test_set_target_valid(self):
        samples = SampleSet(np.eye(3), [1.0, 2.0, 3.0])
        revision = samples.revision
        assert samples.set_target(1, -2.0) is True
        assert samples.target(1) == -2.0
        assert samples.revision > revision

    def test_set_target_out_of_range_returns_false(self):
        """Out-of-range replacement reports failure without raising."""
        samples = SampleSet(np.eye(3), [1.0, 2.0, 3.0])
        revision = samples.revision
        assert samples.set_target(3, 0.0) is False
        assert samples.set_target(-1, 0.0) is False
        assert samples.targets().tolist() == [1.0, 2.0, 3.0]
        assert samples.revision == revision


class TestCoercion:
    """Point and target conversion helpers."""

    def test_single_point_becomes_batch(self):
        assert to_points([1.0, 2.0, 3.0]).shape == (1, 3)

    def test_tensor_input_cast_to_float64(self):
        X = to_points(torch.ones(4, 3, dtype=torch.float32))
        assert X.dtype == torch.float64

    def test_column_targets_flattened(self):
        assert to_targets(torch.ones(4, 1)).shape == (4,)

    def test_scalar_target(self):
        assert to_targets(2.5).tolist() == [2.5]

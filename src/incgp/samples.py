"""
Training sample storage.

A :class:`SampleSet` is an ordered, append-only collection of
``(point, target)`` observations with stable indices. The only allowed
mutation of existing data is replacing a single target value.

Example:
    >>> from incgp import SampleSet
    >>> samples = SampleSet([[1.0, 0.0, 0.0]], [0.0])
    >>> samples.append([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0]], [0.0, 0.0])
    >>> len(samples)
    3
    >>> samples.input(1)
    tensor([0., 1., 0.], dtype=torch.float64)
"""

import numpy as np
import torch

from .config import DTYPE, INPUT_DIM
from .exceptions import IndexOutOfRangeError, ShapeMismatchError

MIN_STORAGE = 8


def to_points(points) -> torch.Tensor:
    """
    Convert one point or a batch of points to a float64 tensor of shape (N, 3).

    Args:
        points: Sequence, numpy array or tensor of shape (3,) or (N, 3)

    Returns:
        Tensor of shape (N, 3)

    Raises:
        ShapeMismatchError: If the trailing dimension is not 3
    """
    if torch.is_tensor(points):
        X = points.detach().to(dtype=DTYPE)
    else:
        X = torch.as_tensor(np.asarray(points, dtype=np.float64))
    if X.dim() == 1 and X.shape[0] == INPUT_DIM:
        X = X.unsqueeze(0)
    elif X.dim() == 1 and X.shape[0] == 0:
        X = X.reshape(0, INPUT_DIM)
    if X.dim() != 2 or X.shape[1] != INPUT_DIM:
        raise ShapeMismatchError(
            expected=f"points of shape (N, {INPUT_DIM})",
            got=f"shape {tuple(X.shape)}"
        )
    return X


def to_targets(targets) -> torch.Tensor:
    """Convert scalar targets to a flat float64 tensor of shape (N,)."""
    if torch.is_tensor(targets):
        y = targets.detach().to(dtype=DTYPE)
    else:
        y = torch.as_tensor(np.asarray(targets, dtype=np.float64))
    if y.dim() == 0:
        y = y.unsqueeze(0)
    if y.dim() == 2 and y.shape[1] == 1:
        y = y.squeeze(1)
    if y.dim() != 1:
        raise ShapeMismatchError(
            expected="targets of shape (N,) or (N, 1)",
            got=f"shape {tuple(y.shape)}"
        )
    return y


class SampleSet:
    """
    Ordered collection of 3-D input points and scalar targets.

    Storage grows by doubling so that appending a batch costs time
    proportional to the batch. Indices never move: appending keeps every
    existing observation at its index.

    Attributes:
        revision: Counter bumped by every mutation. Consumers caching values
            derived from the targets compare against it.
    """

    def __init__(self, inputs=None, targets=None) -> None:
        """
        Create a sample set, optionally seeded with observations.

        Args:
            inputs: Points of shape (N, 3), or None for an empty set
            targets: Targets of shape (N,), or None for an empty set

        Raises:
            ShapeMismatchError: If the numbers of inputs and targets differ
        """
        self._inputs = torch.zeros(MIN_STORAGE, INPUT_DIM, dtype=DTYPE)
        self._targets = torch.zeros(MIN_STORAGE, dtype=DTYPE)
        self._n = 0
        self.revision = 0

        if inputs is not None or targets is not None:
            self.append(
                inputs if inputs is not None else [],
                targets if targets is not None else [],
            )

    def size(self) -> int:
        """Number of stored observations."""
        return self._n

    def __len__(self) -> int:
        return self._n

    @property
    def empty(self) -> bool:
        return self._n == 0

    def _grow(self, needed: int) -> None:
        capacity = self._inputs.shape[0]
        if needed <= capacity:
            return
        new_capacity = max(needed, 2 * capacity)
        inputs = torch.zeros(new_capacity, INPUT_DIM, dtype=DTYPE)
        targets = torch.zeros(new_capacity, dtype=DTYPE)
        inputs[:self._n] = self._inputs[:self._n]
        targets[:self._n] = self._targets[:self._n]
        self._inputs = inputs
        self._targets = targets

    def append(self, new_inputs, new_targets) -> None:
        """
        Append a batch of observations after the existing ones.

        Args:
            new_inputs: Points of shape (M, 3) or a single point of shape (3,)
            new_targets: Targets of shape (M,)

        Raises:
            ShapeMismatchError: If the batch lengths differ or points are not 3-D
        """
        X = to_points(new_inputs)
        y = to_targets(new_targets)
        if X.shape[0] != y.shape[0]:
            raise ShapeMismatchError(
                expected=f"{X.shape[0]} targets to match inputs",
                got=f"{y.shape[0]} targets"
            )
        m = X.shape[0]
        if m == 0:
            return

        self._grow(self._n + m)
        self._inputs[self._n:self._n + m] = X
        self._targets[self._n:self._n + m] = y
        self._n += m
        self.revision += 1

    def _check_index(self, k: int) -> None:
        if not 0 <= k < self._n:
            raise IndexOutOfRangeError(k, self._n)

    def input(self, k: int) -> torch.Tensor:
        """
        Get the input point at index k.

        Raises:
            IndexOutOfRangeError: If k is not in [0, size())
        """
        self._check_index(k)
        return self._inputs[k].clone()

    def target(self, k: int) -> float:
        """
        Get the target at index k.

        Raises:
            IndexOutOfRangeError: If k is not in [0, size())
        """
        self._check_index(k)
        return self._targets[k].item()

    def inputs(self) -> torch.Tensor:
        """All input points in index order, shape (N, 3)."""
        return self._inputs[:self._n].clone()

    def targets(self) -> torch.Tensor:
        """All targets in index order, shape (N,)."""
        return self._targets[:self._n].clone()

    def set_target(self, k: int, y: float) -> bool:
        """
        Replace the target at index k.

        Returns:
            True if the target was replaced, False if k is out of range
        """
        if not 0 <= k < self._n:
            return False
        self._targets[k] = float(y)
        self.revision += 1
        return True

    def clear(self) -> None:
        """Remove every observation."""
        self._inputs = torch.zeros(MIN_STORAGE, INPUT_DIM, dtype=DTYPE)
        self._targets = torch.zeros(MIN_STORAGE, dtype=DTYPE)
        self._n = 0
        self.revision += 1

    def __repr__(self) -> str:
        return f"SampleSet(size={self._n})"

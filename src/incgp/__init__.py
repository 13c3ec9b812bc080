"""
incgp - Incremental Gaussian Process regression over 3-D points

A Python package for Gaussian Process regression whose Cholesky factor is
extended one row per new observation instead of being refactorized, so a
model can keep absorbing samples while it is queried for predicted values
and uncertainty (e.g. when choosing where to sample an implicit surface next).

Main Components:
    - SampleSet: append-only store of (point, target) observations
    - Kernels: LaplaceKernel, ThinPlateKernel, RBFKernel, MaternKernel
    - Models: GaussianProcessEngine with incremental updates
    - Utilities: Confidence bounds and slice plotting
    - Configuration: Centralized constants and defaults
    - Exceptions: Custom error classes for better debugging

Quick Start:
    >>> from incgp import GaussianProcessEngine, ThinPlateKernel
    >>>
    >>> gp = GaussianProcessEngine(kernel=ThinPlateKernel(radius=2.0), noise=1e-4)
    >>> gp.add_observations([[1, 0, 0], [0, 1, 0], [0, 0, 1]], [0.0, 0.0, 0.0])
    >>> gp.add_observations([[0, 0, 0]], [-1.0])   # extends the factor by one row
    >>>
    >>> gp.predict_mean([0.5, 0.5, 0.5])
    >>> gp.predict_variance([0.5, 0.5, 0.5])
"""

from .config import (
    DEFAULT_INITIAL_CAPACITY,
    DEFAULT_NOISE,
    get_default_config,
    get_kernel_defaults,
    validate_config,
)
from .exceptions import (
    IncGPException,
    IndexOutOfRangeError,
    KernelError,
    NumericalInstabilityError,
    ShapeMismatchError,
)
from .factor import TriangularFactor
from .kernels import (
    Kernel,
    LaplaceKernel,
    MaternKernel,
    RBFKernel,
    StationaryKernel,
    ThinPlateKernel,
    create_kernel,
)
from .models import EngineState, GaussianProcessEngine
from .samples import SampleSet
from .utils import confidence_bounds, plot_prediction_slice, slice_grid

__version__ = "0.1.0"

__all__ = [
    # Samples
    "SampleSet",
    # Kernels
    "Kernel",
    "StationaryKernel",
    "LaplaceKernel",
    "ThinPlateKernel",
    "RBFKernel",
    "MaternKernel",
    "create_kernel",
    # Models
    "GaussianProcessEngine",
    "EngineState",
    "TriangularFactor",
    # Utilities
    "confidence_bounds",
    "plot_prediction_slice",
    "slice_grid",
    # Configuration
    "get_default_config",
    "get_kernel_defaults",
    "validate_config",
    "DEFAULT_NOISE",
    "DEFAULT_INITIAL_CAPACITY",
    # Exceptions
    "IncGPException",
    "KernelError",
    "ShapeMismatchError",
    "IndexOutOfRangeError",
    "NumericalInstabilityError",
]

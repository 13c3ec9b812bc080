"""
Incremental Gaussian Process regression engine.

This module contains :class:`GaussianProcessEngine`, which keeps the Cholesky
factor of the regularized kernel matrix up to date as observations arrive.

Mathematical Background:
    With training points X, targets y, kernel k and noise variance σ², let

        K = k(X, X) + σ²I = LLᵀ,    α = K⁻¹y

    The posterior at a query point x* has

        μ(x*)  = k*ᵀα
        σ²(x*) = k(x*, x*) - vᵀv,   Lv = k*

    and the marginal log-likelihood is

        log p(y|X) = -½yᵀα - Σ log Lᵢᵢ - (n/2)log(2π)

    When a point x_j is appended, L grows by one row without refactorizing:

        r      = L⁻¹ k(X, x_j)
        L[j,:j] = rᵀ,   L[j,j] = sqrt(k(x_j, x_j) + σ² - rᵀr)

    which costs O(j²) for the triangular solve instead of O(n³).

Caching:
    The factor is rebuilt from scratch only when it is stale: the kernel
    reports changed hyperparameters, the noise was changed, or the sample set
    was replaced. α is cached together with the (sample revision, factor
    version) pair it was solved for and recomputed lazily on the next
    prediction when either moves.

Example:
    >>> from incgp import GaussianProcessEngine, LaplaceKernel
    >>>
    >>> gp = GaussianProcessEngine(kernel=LaplaceKernel(), noise=1e-3)
    >>> gp.add_observations([[1, 0, 0], [0, 1, 0], [0, 0, 1]], [0.0, 0.0, 0.0])
    >>> gp.add_observations([[0, 0, 0]], [-1.0])
    >>> mean = gp.predict_mean([0.5, 0.5, 0.0])
    >>> var = gp.predict_variance([0.5, 0.5, 0.0])
"""

import enum
import logging
import math
import threading
import time
from typing import Any, Optional, Tuple

import torch

from .config import (
    DEFAULT_INITIAL_CAPACITY,
    DEFAULT_NOISE,
    DTYPE,
    VARIANCE_TOLERANCE,
    validate_config,
)
from .exceptions import NumericalInstabilityError, ShapeMismatchError
from .factor import TriangularFactor
from .kernels import Kernel, LaplaceKernel, create_kernel
from .samples import SampleSet, to_points, to_targets

logger = logging.getLogger(__name__)

LOG_2PI = math.log(2.0 * math.pi)


def _single_point(x) -> torch.Tensor:
    x_star = to_points(x)
    if x_star.shape[0] != 1:
        raise ShapeMismatchError(
            expected="a single point of shape (3,)",
            got=f"{x_star.shape[0]} points"
        )
    return x_star


class EngineState(enum.Enum):
    """Freshness of the engine's cached factor and coefficient vector."""

    EMPTY = "empty"
    FACTOR_STALE = "factor_stale"
    ALPHA_STALE = "alpha_stale"
    READY = "ready"


class GaussianProcessEngine:
    """
    Gaussian Process regressor over 3-D points with an incrementally grown
    Cholesky factor.

    The engine owns its sample set and factor storage. Collaborators may read
    ``samples`` but must mutate data only through the engine.

    Thread safety: every public method runs under ``lock`` (a re-entrant
    lock), so calls on one instance are serialized. Callers that need several
    calls to observe the same model, such as a candidate search scoring many
    points, should hold ``engine.lock`` around the whole sequence.

    Attributes:
        input_dim: Dimensionality of input points (always 3)
        lock: Re-entrant lock serializing access to this instance

    Example:
        >>> gp = GaussianProcessEngine.from_config({"noise": 1e-4, "kernel": "thin_plate"})
        >>> gp.add_observations(points, targets)
        >>> gp.predict_mean([0.0, 0.0, 1.0])
    """

    input_dim = 3

    def __init__(
        self,
        kernel: Optional[Kernel] = None,
        noise: float = DEFAULT_NOISE,
        initial_capacity: int = DEFAULT_INITIAL_CAPACITY,
        samples: Optional[SampleSet] = None
    ) -> None:
        """
        Initialize the engine with a kernel and noise level.

        Args:
            kernel: Covariance function. Defaults to LaplaceKernel().
            noise: Non-negative variance added to the kernel diagonal. Default: 0.0
            initial_capacity: Number of factor rows to pre-allocate. Default: 256
            samples: Optional pre-seeded sample set; its factor is built lazily
                on first use

        Raises:
            ValueError: If noise is negative/non-finite or initial_capacity
                is not a positive integer
        """
        config = validate_config({"noise": noise, "initial_capacity": initial_capacity})

        self._kernel = kernel if kernel is not None else LaplaceKernel()
        self._noise = float(config["noise"])
        self._samples = samples if samples is not None else SampleSet()
        self._factor = TriangularFactor(config["initial_capacity"])

        self._factor_stale = True
        self._kernel_revision = self._kernel.revision
        self._alpha: Optional[torch.Tensor] = None
        self._alpha_token: Optional[Tuple[int, int]] = None

        self.lock = threading.RLock()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "GaussianProcessEngine":
        """
        Create an engine from a configuration dictionary.

        Recognized keys: ``noise``, ``initial_capacity``, ``kernel`` (a Kernel
        instance or a kernel name) and ``kernel_params`` (hyperparameters used
        when ``kernel`` is a name). Missing keys take the values of
        :func:`incgp.config.get_default_config`.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        config = validate_config(config)
        kernel = config["kernel"]
        if isinstance(kernel, str):
            kernel = create_kernel(kernel, **config["kernel_params"])
        elif config["kernel_params"]:
            kernel.set_hyperparameters(**config["kernel_params"])
        return cls(
            kernel=kernel,
            noise=config["noise"],
            initial_capacity=config["initial_capacity"],
        )

    # ------------------------------------------------------------------
    # Introspection

    @property
    def kernel(self) -> Kernel:
        return self._kernel

    @property
    def samples(self) -> SampleSet:
        return self._samples

    @property
    def noise(self) -> float:
        return self._noise

    @noise.setter
    def noise(self, value: float) -> None:
        with self.lock:
            self._noise = float(validate_config({"noise": value})["noise"])
            self._factor_stale = True

    @property
    def capacity(self) -> int:
        """Number of factor rows that fit without reallocation."""
        return self._factor.capacity

    def size(self) -> int:
        return len(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def is_empty(self) -> bool:
        return self._samples.empty

    @property
    def factor_stale(self) -> bool:
        """Whether the next use must rebuild the factor from scratch."""
        return (
            self._factor_stale
            or self._kernel.hyperparameters_changed()
            or self._kernel.revision != self._kernel_revision
            or self._factor.rows != len(self._samples)
        )

    @property
    def alpha_stale(self) -> bool:
        return self._alpha is None or self._alpha_token != self._current_alpha_token()

    @property
    def state(self) -> EngineState:
        if self._samples.empty:
            return EngineState.EMPTY
        if self.factor_stale:
            return EngineState.FACTOR_STALE
        if self.alpha_stale:
            return EngineState.ALPHA_STALE
        return EngineState.READY

    def _current_alpha_token(self) -> Tuple[int, int]:
        return (self._samples.revision, self._factor.version)

    # ------------------------------------------------------------------
    # Factorization

    def _build_factor(self, X: torch.Tensor) -> torch.Tensor:
        """Factorize k(X, X) + noise·I from scratch and return L."""
        n = X.shape[0]
        K = self._kernel(X, X)
        K = K + self._noise * torch.eye(n, dtype=K.dtype)

        L, info = torch.linalg.cholesky_ex(K)
        if info.item() != 0:
            raise NumericalInstabilityError(
                f"Cholesky factorization of the {n}x{n} kernel matrix failed at "
                f"leading minor {info.item()}. The kernel matrix is not positive "
                f"definite: check for duplicate input points or increase noise."
            )
        return L

    def full_recompute(self) -> None:
        """
        Rebuild the factor from every stored observation.

        Evaluates the kernel over all pairs (O(n²) evaluations), factorizes
        (O(n³)), clears factor staleness and the kernel's changed flag, and
        leaves α stale.

        Raises:
            NumericalInstabilityError: If the kernel matrix is not positive definite
        """
        with self.lock:
            start = time.perf_counter()
            n = len(self._samples)
            if n == 0:
                self._factor.reset()
            else:
                self._factor.load(self._build_factor(self._samples.inputs()))
            self._mark_factor_fresh()
            logger.debug(
                f"Full factorization of {n} samples took {time.perf_counter() - start:.4f}s"
            )

    def _mark_factor_fresh(self) -> None:
        self._factor_stale = False
        self._kernel.clear_changed_flag()
        self._kernel_revision = self._kernel.revision
        self._alpha = None
        self._alpha_token = None

    def _ensure_factor(self) -> None:
        if self.factor_stale:
            self.full_recompute()

    def _ensure_alpha(self) -> torch.Tensor:
        if self.alpha_stale:
            y = self._samples.targets()
            v = self._factor.solve_lower(y)
            self._alpha = self._factor.solve_lower_transposed(v)
            self._alpha_token = self._current_alpha_token()
        return self._alpha

    def refresh(self) -> None:
        """
        Resolve any pending staleness (factor first, then α).

        After this returns, and until the next mutation, predictions do not
        write to the engine's caches.
        """
        with self.lock:
            if self._samples.empty:
                return
            self._ensure_factor()
            self._ensure_alpha()

    # ------------------------------------------------------------------
    # Updates

    def add_observations(self, points, targets) -> None:
        """
        Add a batch of observations and extend the factor row by row.

        For an empty engine this is a full build over exactly the new data.
        Otherwise a stale factor is rebuilt first, then for each new index j:

            r = L[:j, :j]⁻¹ k(X[:j], x_j)
            L[j, :j] = r,  L[j, j] = sqrt(k(x_j, x_j) + noise - r·r)

        Either every new observation is added or, on error, nothing changes.

        Args:
            points: Points of shape (M, 3) or a single point of shape (3,)
            targets: Targets of shape (M,)

        Raises:
            ShapeMismatchError: If the numbers of points and targets differ
            NumericalInstabilityError: If a new diagonal entry would be
                non-positive (duplicate or near-duplicate input)
        """
        X_new = to_points(points)
        y_new = to_targets(targets)
        if X_new.shape[0] != y_new.shape[0]:
            raise ShapeMismatchError(
                expected=f"{X_new.shape[0]} targets to match points",
                got=f"{y_new.shape[0]} targets"
            )
        m = X_new.shape[0]
        if m == 0:
            return

        with self.lock:
            if self._samples.empty:
                L = self._build_factor(X_new)
                self._factor.load(L)
                self._samples.append(X_new, y_new)
                self._mark_factor_fresh()
                logger.debug(f"Built factor for {m} initial samples")
                return

            self._ensure_factor()
            start = time.perf_counter()
            n = self._factor.rows
            self._factor.reserve(n + m)
            X = torch.cat([self._samples.inputs(), X_new])
            kappas = self._kernel.diag(X_new) + self._noise

            for j in range(n, n + m):
                k = self._kernel(X[:j], X[j:j + 1]).squeeze(-1)
                r = self._factor.solve_lower(k, j)
                kappa = kappas[j - n].item()
                pivot = kappa - torch.dot(r, r).item()
                if not pivot > 0:
                    raise NumericalInstabilityError(
                        f"Non-positive pivot {pivot:.3e} while adding sample {j}. "
                        f"The point duplicates existing data for noise={self._noise}."
                    )
                self._factor.set_row(j, r, math.sqrt(pivot))

            self._factor.commit(n + m)
            self._samples.append(X_new, y_new)
            logger.debug(
                f"Extended factor from {n} to {n + m} rows in "
                f"{time.perf_counter() - start:.4f}s"
            )

    def set_target(self, k: int, y: float) -> bool:
        """
        Replace the target of observation k.

        The factor does not depend on targets and stays valid; α is
        recomputed on the next prediction.

        Returns:
            True on success, False if k is out of range
        """
        with self.lock:
            return self._samples.set_target(k, y)

    def set_samples(self, samples: SampleSet) -> None:
        """Replace the training data. The factor is rebuilt on next use."""
        with self.lock:
            self._samples = samples
            self._factor_stale = True
            self._alpha = None
            self._alpha_token = None

    def clear(self) -> None:
        """Remove every observation and release the factor contents."""
        with self.lock:
            self._samples.clear()
            self._factor.reset()
            self._alpha = None
            self._alpha_token = None

    # ------------------------------------------------------------------
    # Predictions

    def predict_mean(self, x) -> float:
        """
        Posterior mean at a single point.

        Returns 0.0 when the engine holds no observations.
        """
        x_star = _single_point(x)
        with self.lock:
            if self._samples.empty:
                return 0.0
            self._ensure_factor()
            alpha = self._ensure_alpha()
            k_star = self._kernel(self._samples.inputs(), x_star).squeeze(-1)
            return torch.dot(k_star, alpha).item()

    def predict_variance(self, x) -> float:
        """
        Posterior variance of the latent function at a single point.

        Computed as k(x, x) - v·v with Lv = k*, clamped at zero. Returns 0.0
        when the engine holds no observations.
        """
        x_star = _single_point(x)
        with self.lock:
            if self._samples.empty:
                return 0.0
            self._ensure_factor()
            k_star = self._kernel(self._samples.inputs(), x_star).squeeze(-1)
            v = self._factor.solve_lower(k_star)
            prior = self._kernel.diag(x_star)[0].item()
            return self._clamp_variance(prior - torch.dot(v, v).item())

    @staticmethod
    def _clamp_variance(var: float) -> float:
        if var < -VARIANCE_TOLERANCE:
            logger.warning(f"Predicted variance {var:.3e} is below -{VARIANCE_TOLERANCE:g}; clamping to 0")
        return max(var, 0.0)

    def predict(self, X_test) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Posterior mean and variance at many points.

        Args:
            X_test: Points of shape (M, 3)

        Returns:
            Tuple (mean, var), both of shape (M,). Zeros when empty.
        """
        X_star = to_points(X_test)
        with self.lock:
            if self._samples.empty:
                zeros = torch.zeros(X_star.shape[0], dtype=DTYPE)
                return zeros, zeros.clone()
            self._ensure_factor()
            alpha = self._ensure_alpha()
            k_star = self._kernel(self._samples.inputs(), X_star)  # (N, M)
            mean = k_star.T.mv(alpha)
            v = self._factor.solve_lower(k_star)
            var = self._kernel.diag(X_star) - (v ** 2).sum(dim=0)
            if var.numel() and var.min().item() < -VARIANCE_TOLERANCE:
                logger.warning(
                    f"Predicted variance {var.min().item():.3e} is below "
                    f"-{VARIANCE_TOLERANCE:g}; clamping to 0"
                )
            return mean, torch.clamp(var, min=0.0)

    def log_likelihood(self) -> float:
        """
        Marginal log-likelihood of the stored targets.

            -½yᵀα - Σ log Lᵢᵢ - (n/2)log(2π)

        For an empty engine all three terms vanish and 0.0 is returned.
        """
        with self.lock:
            n = len(self._samples)
            if n == 0:
                return 0.0
            self._ensure_factor()
            alpha = self._ensure_alpha()
            y = self._samples.targets()
            data_fit = -0.5 * torch.dot(y, alpha).item()
            complexity_penalty = -self._factor.log_diagonal_sum()
            constant = -0.5 * n * LOG_2PI
            return data_fit + complexity_penalty + constant

    # ------------------------------------------------------------------
    # Accessors

    def cholesky_factor(self) -> torch.Tensor:
        """Copy of the current factor L, shape (n, n)."""
        with self.lock:
            if self._samples.empty:
                return torch.zeros(0, 0, dtype=DTYPE)
            self._ensure_factor()
            return self._factor.block().clone()

    def coefficients(self) -> torch.Tensor:
        """Copy of α = K⁻¹y, shape (n,)."""
        with self.lock:
            if self._samples.empty:
                return torch.zeros(0, dtype=DTYPE)
            self._ensure_factor()
            return self._ensure_alpha().clone()

    def get_hyperparameters(self) -> dict:
        """
        Get current hyperparameter values.

        Example:
            >>> GaussianProcessEngine(noise=0.01).get_hyperparameters()
            {'noise': 0.01, 'kernel_type': 'LaplaceKernel', 'length_scale': 1.0, 'amplitude': 1.0}
        """
        params = {
            'noise': self._noise,
            'kernel_type': type(self._kernel).__name__,
        }
        params.update(self._kernel.get_hyperparameters())
        return params

    def __repr__(self) -> str:
        return (f"GaussianProcessEngine(kernel={type(self._kernel).__name__}, "
                f"noise={self._noise:.4g}, size={len(self._samples)}, "
                f"state={self.state.value})")

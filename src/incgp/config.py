"""
Configuration constants and default settings for incgp.

This module centralizes configuration parameters and constants used throughout
the package, and validates the configuration dictionaries accepted by
:meth:`incgp.models.GaussianProcessEngine.from_config`.
"""

import math
import numbers
from typing import Any

import torch

# Numerics
DTYPE = torch.float64
INPUT_DIM = 3
VARIANCE_TOLERANCE = 1e-9  # Round-off allowed below zero before warning

# Engine defaults
DEFAULT_NOISE = 0.0
DEFAULT_INITIAL_CAPACITY = 256
DEFAULT_KERNEL = "laplace"

# Kernel hyperparameter defaults
DEFAULT_LENGTH_SCALE = 1.0
DEFAULT_AMPLITUDE = 1.0
DEFAULT_THIN_PLATE_RADIUS = 2.0

# Visualization defaults
DEFAULT_FIGSIZE = (8, 6)
DEFAULT_CONFIDENCE_LEVEL = 0.95
DEFAULT_SLICE_RESOLUTION = 60
DEFAULT_DPI = 100

CONFIG_KEYS = ("noise", "initial_capacity", "kernel", "kernel_params")


def get_default_config() -> dict[str, Any]:
    """
    Get default engine configuration dictionary.

    Returns:
        Dictionary with ``noise``, ``initial_capacity``, ``kernel`` and
        ``kernel_params`` entries
    """
    return {
        "noise": DEFAULT_NOISE,
        "initial_capacity": DEFAULT_INITIAL_CAPACITY,
        "kernel": DEFAULT_KERNEL,
        "kernel_params": {},
    }


def get_kernel_defaults(kernel_type: str) -> dict[str, Any]:
    """
    Get default hyperparameters for a specific kernel type.

    Args:
        kernel_type: Type of kernel ("laplace", "thin_plate", "rbf", "matern")

    Returns:
        Dictionary containing default parameters for the specified kernel

    Raises:
        ValueError: If kernel_type is not recognized
    """
    defaults = {
        "laplace": {
            "length_scale": DEFAULT_LENGTH_SCALE,
            "amplitude": DEFAULT_AMPLITUDE,
        },
        "thin_plate": {
            "radius": DEFAULT_THIN_PLATE_RADIUS,
        },
        "rbf": {
            "length_scale": DEFAULT_LENGTH_SCALE,
            "amplitude": DEFAULT_AMPLITUDE,
        },
        "matern": {
            "length_scale": DEFAULT_LENGTH_SCALE,
            "amplitude": DEFAULT_AMPLITUDE,
        },
    }

    if kernel_type.lower() not in defaults:
        raise ValueError(
            f"Unknown kernel type '{kernel_type}'. "
            f"Available types: {', '.join(defaults.keys())}"
        )

    return dict(defaults[kernel_type.lower()])


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Check an engine configuration and fill in missing entries with defaults.

    Args:
        config: Partial or complete configuration dictionary

    Returns:
        A new dictionary with every key of :func:`get_default_config`

    Raises:
        ValueError: On unknown keys, negative or non-finite noise, or a
            non-positive initial capacity
    """
    unknown = set(config) - set(CONFIG_KEYS)
    if unknown:
        raise ValueError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}. "
            f"Recognized keys: {', '.join(CONFIG_KEYS)}"
        )

    merged = get_default_config()
    merged.update(config)

    noise = merged["noise"]
    if isinstance(noise, bool) or not isinstance(noise, numbers.Real):
        raise ValueError(f"noise must be a real number, got {noise!r}")
    if not math.isfinite(noise) or noise < 0:
        raise ValueError(f"noise must be a finite non-negative number, got {noise}")

    capacity = merged["initial_capacity"]
    if isinstance(capacity, bool) or int(capacity) != capacity or capacity <= 0:
        raise ValueError(f"initial_capacity must be a positive integer, got {capacity}")
    merged["initial_capacity"] = int(capacity)

    if merged["kernel_params"] is None:
        merged["kernel_params"] = {}

    return merged

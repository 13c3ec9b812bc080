"""
Tests for configuration defaults and validation.
"""

import math

import pytest

from incgp.config import (
    DEFAULT_INITIAL_CAPACITY,
    DEFAULT_NOISE,
    get_default_config,
    get_kernel_defaults,
    validate_config,
)


class TestConfig:
    """Default values and validation."""

    def test_default_config(self):
        config = get_default_config()
        assert config["noise"] == DEFAULT_NOISE
        assert config["initial_capacity"] == DEFAULT_INITIAL_CAPACITY
        assert config["kernel"] == "laplace"
        assert config["kernel_params"] == {}

    def test_kernel_defaults(self):
        assert set(get_kernel_defaults("laplace")) == {"length_scale", "amplitude"}
        assert set(get_kernel_defaults("THIN_PLATE")) == {"radius"}

    def test_kernel_defaults_are_copies(self):
        get_kernel_defaults("rbf")["length_scale"] = 10.0
        assert get_kernel_defaults("rbf")["length_scale"] != 10.0

    def test_unknown_kernel_defaults(self):
        with pytest.raises(ValueError):
            get_kernel_defaults("polynomial")

    def test_validate_fills_defaults(self):
        config = validate_config({"noise": 0.5})
        assert config["noise"] == 0.5
        assert config["initial_capacity"] == DEFAULT_INITIAL_CAPACITY

    def test_validate_integral_capacity(self):
        assert validate_config({"initial_capacity": 32.0})["initial_capacity"] == 32

    @pytest.mark.parametrize("config", [
        {"noise": -1.0},
        {"noise": math.inf},
        {"noise": math.nan},
        {"noise": "0.1"},
        {"noise": False},
        {"initial_capacity": 0},
        {"initial_capacity": 2.5},
        {"initial_capacity": True},
        {"jitter": 1e-6},
    ])
    def test_validate_rejects(self, config):
        with pytest.raises(ValueError):
            validate_config(config)

#!/usr/bin/env python3
"""
Example usage of the incgp package on an implicit surface.

Points are sampled near the unit sphere with targets |x|² - 1, so the zero
level set of the posterior mean approximates the sphere. The model is
built once from a point cloud and then grown incrementally with new
observations, the way an exploration loop would feed it.
"""

import logging
import math
import time

import torch

from incgp import GaussianProcessEngine, LaplaceKernel, plot_prediction_slice


def sample_shell(n: int, radius: float, noise: float, generator: torch.Generator) -> torch.Tensor:
    """Uniform points on a sphere of the given radius, jittered by ±noise."""
    theta = 2 * math.pi * torch.rand(n, generator=generator, dtype=torch.float64) - math.pi
    z = 2 * torch.rand(n, generator=generator, dtype=torch.float64) - 1
    ring = torch.sqrt(radius ** 2 - z ** 2)
    points = torch.stack([torch.sin(theta) * ring, torch.cos(theta) * ring, z], dim=1)
    jitter = 2 * noise * torch.rand(n, 3, generator=generator, dtype=torch.float64) - noise
    return points + jitter


def main():
    """Main example function."""
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    # Seeded generator for reproducibility
    seed = 42
    generator = torch.Generator().manual_seed(seed)

    noise = 1e-3

    # Surface points, points outside the surface and the centre
    print("Generating input data...")
    surface = sample_shell(1000, 1.0, noise, generator)
    outside = sample_shell(50, math.sqrt(2.0), noise, generator)
    cloud = torch.cat([surface, outside, torch.zeros(1, 3, dtype=torch.float64)])
    targets = (cloud ** 2).sum(dim=1) - 1.0
    print(f"Training samples: {len(cloud)}")

    # Build the model
    gp = GaussianProcessEngine(kernel=LaplaceKernel(length_scale=1.0), noise=noise)
    start = time.perf_counter()
    gp.add_observations(cloud, targets)
    print(f"Built {gp} in {time.perf_counter() - start:.3f}s")

    q = cloud[0]
    print(f"y = {targets[0].item():.5f} -> f = {gp.predict_mean(q):.5f} "
          f"var = {gp.predict_variance(q):.2e}")

    # Query new points on the surface
    x_star = sample_shell(100, 1.0, noise, generator)
    y_star = (x_star ** 2).sum(dim=1) - 1.0
    mean, var = gp.predict(x_star)
    rmse = torch.sqrt(((mean - y_star) ** 2).mean()).item()
    print(f"Held-out RMSE: {rmse:.5f}, mean variance: {var.mean().item():.2e}")

    # Add them incrementally and query again
    start = time.perf_counter()
    gp.add_observations(x_star, y_star)
    print(f"Added {len(x_star)} samples in {time.perf_counter() - start:.3f}s "
          f"(n = {len(gp)})")
    print(f"y = {y_star[0].item():.5f} -> f = {gp.predict_mean(x_star[0]):.5f} "
          f"var = {gp.predict_variance(x_star[0]):.2e}")
    print(f"Log-likelihood: {gp.log_likelihood():.3f}")

    plot_prediction_slice(gp, axis="z", value=0.0, quantity="variance",
                          save_path="sphere_variance.png")


if __name__ == "__main__":
    main()

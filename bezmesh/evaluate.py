"""Evaluation metrics for surface tessellation.

This module implements quality checks for Bezier surfaces and their
tessellated meshes, including basis consistency, finite-difference tangent
checks, surface area comparison, and timing utilities.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Union

import numpy as np
from scipy import integrate

from bezmesh import mesh
from bezmesh.surface import BezierSurface

logger = logging.getLogger(__name__)


def partition_of_unity_error(surface: BezierSurface, n_samples: int = 101) -> float:
    """Maximum deviation of sum_i B_i(t) from 1 over [0, 1].

    Args:
        surface: Surface whose basis is checked
        n_samples: Number of evenly spaced samples of t

    Returns:
        Maximum absolute deviation
    """
    t = np.linspace(0.0, 1.0, n_samples)
    sums = surface.basis(t).sum(axis=-1)

    return float(np.max(np.abs(sums - 1.0)))


def tangent_error(
    surface: BezierSurface,
    n_samples: int = 9,
    step: float = 1e-5,
    margin: float = 0.05
) -> float:
    """Compare analytic tangents with central finite differences.

    Samples an n_samples x n_samples lattice of interior parameters and
    estimates dz/du and dz/dv from surface heights.

    Args:
        surface: Surface to check
        n_samples: Samples per parametric axis
        step: Finite difference step
        margin: Distance kept from the boundary of the parameter square

    Returns:
        Maximum absolute difference between analytic and numeric slopes
    """
    params = np.linspace(margin, 1.0 - margin, n_samples)

    _, normals = surface.evaluate_lattice(params, params)
    # Normal is (-dz/du, -dz/dv, 1)
    dz_du = -normals[..., 0]
    dz_dv = -normals[..., 1]

    h_u_plus, _ = surface.evaluate_lattice(params + step, params)
    h_u_minus, _ = surface.evaluate_lattice(params - step, params)
    h_v_plus, _ = surface.evaluate_lattice(params, params + step)
    h_v_minus, _ = surface.evaluate_lattice(params, params - step)

    fd_du = (h_u_plus - h_u_minus) / (2 * step)
    fd_dv = (h_v_plus - h_v_minus) / (2 * step)

    error = max(np.max(np.abs(fd_du - dz_du)), np.max(np.abs(fd_dv - dz_dv)))
    logger.debug(f"Tangent finite-difference error: {error:.3e} ({n_samples}x{n_samples} samples)")

    return float(error)


def mesh_surface_area(buffer: np.ndarray) -> float:
    """Total area of the triangles in a vertex buffer.

    Args:
        buffer: Flat interleaved vertex buffer

    Returns:
        Sum of triangle areas
    """
    triangles = mesh.triangle_vertices(buffer).astype(np.float64)
    if triangles.shape[0] == 0:
        logger.warning("Empty vertex buffer provided for area calculation")
        return 0.0

    edges_1 = triangles[:, 1] - triangles[:, 0]
    edges_2 = triangles[:, 2] - triangles[:, 0]
    areas = 0.5 * np.linalg.norm(np.cross(edges_1, edges_2), axis=1)

    return float(np.sum(areas))


def surface_area(surface: BezierSurface) -> float:
    """Analytic area of the surface over the unit parameter square.

    Integrates the length of the (unnormalized) normal dS/du x dS/dv.

    Args:
        surface: Surface to measure

    Returns:
        Surface area
    """
    area, abs_error = integrate.dblquad(
        lambda v, u: float(np.linalg.norm(surface.evaluate_normal(u, v))),
        0.0, 1.0,
        0.0, 1.0
    )
    logger.debug(f"Analytic surface area: {area:.6f} (estimated error {abs_error:.1e})")

    return area


class Timer:
    """Utility class for timing operations with context manager support."""

    def __init__(self, name: str = "Timer", logger: Optional[logging.Logger] = None):
        """Initialize timer.

        Args:
            name: Timer name for logging
            logger: Logger to use (if None, uses module logger)
        """
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = None
        self.end_time = None

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.end_time = None

    def stop(self) -> float:
        """Stop the timer and return elapsed time.

        Returns:
            Elapsed time in seconds
        """
        if self.start_time is None:
            self.logger.warning(f"{self.name}: Timer stopped without being started")
            return 0.0

        self.end_time = time.perf_counter()
        elapsed = self.end_time - self.start_time
        self.logger.debug(f"{self.name}: {elapsed:.4f}s")
        return elapsed

    def __enter__(self) -> "Timer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def timeit(self, func: Callable) -> Callable:
        """Decorator to time a function."""
        def wrapper(*args, **kwargs):
            with self:
                result = func(*args, **kwargs)
            return result

        return wrapper

    @property
    def elapsed(self) -> float:
        """Elapsed time, up to stop() if the timer has been stopped."""
        if self.start_time is None:
            return 0.0

        end_time = self.end_time if self.end_time is not None else time.perf_counter()
        return end_time - self.start_time


class TessellationMetrics:
    """Class for calculating and storing tessellation metrics."""

    def __init__(self):
        self.metrics = {
            "degree": None,
            "accuracy": None,
            "n_triangles": 0,
            "n_vertices": 0,
            "n_floats": 0,
            "partition_error": None,
            "tangent_error": None,
            "mesh_area": None,
            "surface_area": None,
            "runtime_s": 0.0,
            "stage_timings": {},
        }

    def update(self, metric_name: str, value: Union[int, float, Dict]) -> None:
        self.metrics[metric_name] = value

    def update_stage_timing(self, stage_name: str, time_s: float) -> None:
        self.metrics["stage_timings"][stage_name] = time_s

    def compute_surface_metrics(
        self,
        surface: BezierSurface,
        n_samples: int = 9,
        step: float = 1e-5
    ) -> None:
        """Compute metrics of the continuous surface.

        Args:
            surface: Evaluated surface
            n_samples: Samples per axis for the tangent check
            step: Finite difference step for the tangent check
        """
        self.metrics["degree"] = surface.degree
        self.metrics["partition_error"] = partition_of_unity_error(surface)
        self.metrics["tangent_error"] = tangent_error(surface, n_samples=n_samples, step=step)
        self.metrics["surface_area"] = surface_area(surface)

    def compute_mesh_metrics(self, buffer: np.ndarray, accuracy: int) -> None:
        """Compute metrics of a tessellated vertex buffer.

        Args:
            buffer: Vertex buffer produced by mesh.tessellate
            accuracy: Accuracy the buffer was tessellated at
        """
        n_floats = mesh.required_capacity(accuracy)
        used = buffer[:n_floats]

        self.metrics["accuracy"] = accuracy
        self.metrics["n_floats"] = n_floats
        self.metrics["n_vertices"] = n_floats // mesh.FLOATS_PER_VERTEX
        self.metrics["n_triangles"] = mesh.triangle_count(accuracy)
        self.metrics["mesh_area"] = mesh_surface_area(used)

    @property
    def area_error(self) -> Optional[float]:
        """Relative difference between mesh area and analytic area."""
        mesh_area = self.metrics["mesh_area"]
        analytic_area = self.metrics["surface_area"]
        if mesh_area is None or not analytic_area:
            return None

        return abs(mesh_area - analytic_area) / analytic_area

    def to_dict(self) -> Dict:
        metrics = self.metrics.copy()
        metrics["stage_timings"] = dict(self.metrics["stage_timings"])
        metrics["area_error"] = self.area_error
        return metrics

    def summary(self) -> str:
        """Generate a human-readable summary of metrics.

        Returns:
            Summary string
        """
        lines = [
            "Tessellation Metrics:",
            f"  Degree: {self.metrics['degree']}",
            f"  Accuracy: {self.metrics['accuracy']}",
            f"  Triangles: {self.metrics['n_triangles']}",
            f"  Vertices: {self.metrics['n_vertices']}",
            f"  Buffer floats: {self.metrics['n_floats']}",
        ]

        if self.metrics["partition_error"] is not None:
            lines.append(f"  Partition of unity error: {self.metrics['partition_error']:.2e}")

        if self.metrics["tangent_error"] is not None:
            lines.append(f"  Tangent error: {self.metrics['tangent_error']:.2e}")

        if self.metrics["mesh_area"] is not None:
            lines.append(f"  Mesh area: {self.metrics['mesh_area']:.6f}")

        if self.metrics["surface_area"] is not None:
            lines.append(f"  Surface area: {self.metrics['surface_area']:.6f}")

        if self.area_error is not None:
            lines.append(f"  Relative area error: {self.area_error:.2e}")

        lines.append(f"  Total runtime: {self.metrics['runtime_s']:.2f}s")

        if self.metrics["stage_timings"]:
            lines.append("  Stage timings:")
            for stage, time_s in self.metrics["stage_timings"].items():
                lines.append(f"    {stage}: {time_s:.2f}s")

        return "\n".join(lines)

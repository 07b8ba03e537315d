"""Tensor-product Bezier height surfaces.

This module implements evaluation of a height field defined by an
(N+1)x(N+1) grid of control heights over the unit parameter square,
including the Bernstein basis, its derivative, surface heights,
tangent vectors and analytic normals.

Parameters outside [0, 1] are not rejected: the Bernstein polynomials are
defined for all reals, so such inputs return the (finite) polynomial
extrapolation of the patch.
"""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Default basis degree (bicubic patch, 4x4 control grid)
DEGREE = 3


class SurfacePoint(NamedTuple):
    """Position and unnormalized normal of a surface sample."""

    position: np.ndarray
    normal: np.ndarray


def binomial_coefficient(n: int, k: int) -> int:
    """Compute the binomial coefficient C(n, k).

    Uses the multiplicative recurrence over the smaller of k and n-k.

    Args:
        n: Number of elements
        k: Number of chosen elements

    Returns:
        C(n, k), or 0 when k > n
    """
    if n < 0 or k < 0:
        raise ValueError(f"Binomial coefficient requires n, k >= 0, got n={n}, k={k}")
    if k > n:
        return 0
    if k == n:
        return 1

    k = min(k, n - k)
    c = 1
    for i in range(1, k + 1):
        # Exact at every step: c * n is divisible by i
        c = c * n // i
        n -= 1

    return c


def binomial_table(n: int) -> Tuple[int, ...]:
    """Return the binomial coefficients C(n, 0..n)."""
    return tuple(binomial_coefficient(n, k) for k in range(n + 1))


class BezierSurface:
    """Height surface z(u, v) over a tensor-product Bezier control grid.

    The grid has a fixed shape (degree+1, degree+1) and starts out as all
    zeros. Position at (u, v) is (u, v, z(u, v)).
    """

    def __init__(
        self,
        control_heights: Optional[Sequence[float]] = None,
        degree: int = DEGREE
    ):
        """Initialize surface.

        Args:
            control_heights: Optional (degree+1)^2 heights in row-major order
            degree: Basis degree in both parametric directions
        """
        if degree < 1:
            raise ValueError(f"Surface degree must be at least 1, got {degree}")

        self._degree = int(degree)
        self._binomials = binomial_table(self._degree)
        self._coeffs = np.array(self._binomials, dtype=np.float64)
        self._grid = np.zeros((self._degree + 1, self._degree + 1), dtype=np.float64)

        logger.debug(f"Bezier surface degree={self._degree}, binomials={list(self._binomials)}")

        if control_heights is not None:
            self.set_control_heights(control_heights)

    @property
    def degree(self) -> int:
        return self._degree

    @property
    def binomials(self) -> Tuple[int, ...]:
        return self._binomials

    @property
    def control_grid(self) -> np.ndarray:
        """Copy of the (degree+1)x(degree+1) control height grid."""
        return self._grid.copy()

    @property
    def n_control_points(self) -> int:
        return self._grid.size

    def set_control_heights(self, heights: Sequence[float]) -> None:
        """Store control heights in row-major (i then j) order.

        Exactly (degree+1)^2 values are expected. Extra values are ignored;
        if fewer are given, the remaining grid entries keep their previous
        values.

        Args:
            heights: Flat sequence of control heights
        """
        values = np.asarray(heights, dtype=np.float64).ravel()
        expected = self._grid.size

        if values.size != expected:
            logger.warning(
                f"Expected {expected} control heights, got {values.size}; "
                f"{'ignoring extra values' if values.size > expected else 'grid is partially filled'}"
            )

        n = min(values.size, expected)
        self._grid.flat[:n] = values[:n]

    def basis(self, t) -> np.ndarray:
        """Evaluate all Bernstein basis polynomials B_0..B_N at t.

        Args:
            t: Parameter value or array of values

        Returns:
            Array of shape t.shape + (degree+1,)
        """
        t = np.asarray(t, dtype=np.float64)[..., np.newaxis]
        i = np.arange(self._degree + 1)
        return self._coeffs * t ** i * (1.0 - t) ** (self._degree - i)

    def basis_derivative(self, t) -> np.ndarray:
        """Evaluate the derivatives B_0'..B_N' at t.

        The end terms are handled separately so that no negative powers of
        t or (1 - t) appear at the boundary of the parameter square.

        Args:
            t: Parameter value or array of values

        Returns:
            Array of shape t.shape + (degree+1,)
        """
        t = np.asarray(t, dtype=np.float64)[..., np.newaxis]
        n = self._degree
        c = self._coeffs

        d = np.empty(t.shape[:-1] + (n + 1,), dtype=np.float64)
        d[..., 0] = -n * c[0] * (1.0 - t[..., 0]) ** (n - 1)
        d[..., n] = n * c[n] * t[..., 0] ** (n - 1)

        if n > 1:
            i = np.arange(1, n)
            d[..., 1:n] = -c[1:n] * t ** (i - 1) * (1.0 - t) ** (n - i - 1) * (n * t - i)

        return d

    def evaluate_height(self, u: float, v: float) -> float:
        """Evaluate the surface height sum_ij grid[i][j] * B_i(u) * B_j(v).

        Args:
            u: First parameter
            v: Second parameter

        Returns:
            Height at (u, v)
        """
        return float(self.basis(u) @ self._grid @ self.basis(v))

    def partial_derivatives(self, u: float, v: float) -> tuple[np.ndarray, np.ndarray]:
        """Compute the tangent vectors dS/du and dS/dv.

        Args:
            u: First parameter
            v: Second parameter

        Returns:
            Tuple of (dS/du, dS/dv), each of the form (1, 0, dz/du) and (0, 1, dz/dv)
        """
        bu, bv = self.basis(u), self.basis(v)
        dz_du = float(self.basis_derivative(u) @ self._grid @ bv)
        dz_dv = float(bu @ self._grid @ self.basis_derivative(v))

        return np.array([1.0, 0.0, dz_du]), np.array([0.0, 1.0, dz_dv])

    def evaluate_normal(self, u: float, v: float) -> np.ndarray:
        """Compute the surface normal dS/du x dS/dv.

        The normal is not normalized; consumers that need unit normals
        should normalize it themselves.

        Args:
            u: First parameter
            v: Second parameter

        Returns:
            Length-3 normal vector
        """
        tangent_u, tangent_v = self.partial_derivatives(u, v)
        return np.cross(tangent_u, tangent_v)

    def evaluate(self, u: float, v: float) -> SurfacePoint:
        """Evaluate position and normal at (u, v)."""
        position = np.array([u, v, self.evaluate_height(u, v)], dtype=np.float64)
        return SurfacePoint(position, self.evaluate_normal(u, v))

    def evaluate_lattice(self, us, vs) -> tuple[np.ndarray, np.ndarray]:
        """Evaluate heights and normals on the lattice us x vs.

        Args:
            us: 1-D array of M values of u
            vs: 1-D array of K values of v

        Returns:
            Tuple of (heights, normals) with shapes (M, K) and (M, K, 3)
        """
        us = np.asarray(us, dtype=np.float64)
        vs = np.asarray(vs, dtype=np.float64)

        bu, bv = self.basis(us), self.basis(vs)
        heights = bu @ self._grid @ bv.T
        dz_du = self.basis_derivative(us) @ self._grid @ bv.T
        dz_dv = bu @ self._grid @ self.basis_derivative(vs).T

        # Tangents (1, 0, dz/du) and (0, 1, dz/dv) at every lattice point
        tangent_u = np.zeros(heights.shape + (3,))
        tangent_u[..., 0] = 1.0
        tangent_u[..., 2] = dz_du
        tangent_v = np.zeros(heights.shape + (3,))
        tangent_v[..., 1] = 1.0
        tangent_v[..., 2] = dz_dv

        normals = np.cross(tangent_u, tangent_v)

        logger.debug(f"Evaluated surface on {us.size}x{vs.size} lattice")
        return heights, normals

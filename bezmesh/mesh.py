"""Surface tessellation module.

This module converts a Bezier height surface into a fully expanded triangle
list, written as interleaved vertex attributes into a flat buffer that a
renderer can upload directly.

Each vertex occupies FLOATS_PER_VERTEX consecutive values:
position (x, y, z), normal (nx, ny, nz) and a texture coordinate pair whose
values are fixed placeholders.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

import numpy as np
from tqdm import tqdm

from bezmesh.surface import BezierSurface

logger = logging.getLogger(__name__)

FLOATS_PER_VERTEX = 8
VERTICES_PER_CELL = 6
TEXCOORD_PLACEHOLDER = 1.0

# Lattice offsets of the emitted vertices of a cell: (P1, P2, P3), (P3, P2, P4).
# Both triangles share the P2-P3 edge.
CELL_CORNERS = ((0, 0), (1, 0), (0, 1), (0, 1), (1, 0), (1, 1))


class CapacityError(ValueError):
    """Raised when an output buffer cannot hold the tessellated mesh."""


def _validate_accuracy(accuracy: int) -> None:
    if isinstance(accuracy, bool) or not isinstance(accuracy, (int, np.integer)):
        raise ValueError(f"Accuracy must be an integer, got {type(accuracy).__name__}")
    if accuracy < 1:
        raise ValueError(f"Accuracy must be at least 1, got {accuracy}")


def required_capacity(accuracy: int) -> int:
    """Number of floats produced by tessellating at the given accuracy.

    Args:
        accuracy: Number of subdivisions per parametric axis

    Returns:
        accuracy^2 * VERTICES_PER_CELL * FLOATS_PER_VERTEX
    """
    _validate_accuracy(accuracy)
    return int(accuracy) ** 2 * VERTICES_PER_CELL * FLOATS_PER_VERTEX


def triangle_count(accuracy: int) -> int:
    """Number of triangles produced at the given accuracy."""
    _validate_accuracy(accuracy)
    return 2 * int(accuracy) ** 2


def cell_corners(i: int, j: int, accuracy: int) -> Tuple[Tuple[float, float], ...]:
    """Compute the parametric corners of cell (i, j).

    Args:
        i: Cell index along u
        j: Cell index along v
        accuracy: Number of subdivisions per parametric axis

    Returns:
        Corners (P1, P2, P3, P4) as (u, v) pairs
    """
    _validate_accuracy(accuracy)
    d = 1.0 / accuracy

    return (
        (i * d, j * d),
        ((i + 1) * d, j * d),
        (i * d, (j + 1) * d),
        ((i + 1) * d, (j + 1) * d),
    )


def _check_buffer(out: np.ndarray, n_floats: int) -> None:
    if not isinstance(out, np.ndarray) or out.ndim != 1:
        raise CapacityError("Output buffer must be a 1-D numpy array")
    if out.size < n_floats:
        raise CapacityError(
            f"Output buffer holds {out.size} floats, tessellation requires {n_floats}"
        )


def tessellate(
    surface: BezierSurface,
    accuracy: int,
    out: Optional[np.ndarray] = None,
    dtype: np.dtype = np.float32,
    progress: bool = False
) -> np.ndarray:
    """Tessellate the unit parameter square into a triangle list.

    The square is split into accuracy x accuracy equal cells, visited with
    i (along u) as the outer index and j (along v) as the inner one. Every
    cell emits two triangles (P1, P2, P3) and (P3, P2, P4), six vertices in
    total, with no vertex sharing between triangles.

    Parameter coordinates are computed as k / accuracy from the integer
    lattice index k, so neighbouring cells share bit-identical boundary
    coordinates.

    Args:
        surface: Surface to sample
        accuracy: Number of subdivisions per parametric axis
        out: Optional caller-owned 1-D buffer of at least
            required_capacity(accuracy) floats; written from offset 0
        dtype: Element type of the buffer allocated when out is None
        progress: Show a progress bar over rows of cells

    Returns:
        The filled vertex buffer (out itself when provided)
    """
    n_floats = required_capacity(accuracy)

    if out is None:
        out = np.empty(n_floats, dtype=dtype)
    else:
        _check_buffer(out, n_floats)

    start_time = time.perf_counter()

    # Sample positions and normals once per lattice point
    d = 1.0 / accuracy
    params = np.arange(accuracy + 1) * d
    heights, normals = surface.evaluate_lattice(params, params)

    lattice = np.empty((accuracy + 1, accuracy + 1, FLOATS_PER_VERTEX), dtype=np.float64)
    lattice[..., 0] = params[:, np.newaxis]
    lattice[..., 1] = params[np.newaxis, :]
    lattice[..., 2] = heights
    lattice[..., 3:6] = normals
    lattice[..., 6:8] = TEXCOORD_PLACEHOLDER

    j = np.arange(accuracy)
    row_size = accuracy * VERTICES_PER_CELL * FLOATS_PER_VERTEX

    for i in tqdm(range(accuracy), desc="Tessellating", disable=not progress):
        # Row of cells (i, 0..accuracy-1) as an (accuracy, 6, 8) block
        block = np.stack([lattice[i + di, j + dj] for di, dj in CELL_CORNERS], axis=1)
        out[i * row_size:(i + 1) * row_size] = block.ravel()

    elapsed_time = time.perf_counter() - start_time
    logger.info(
        f"Tessellated surface at accuracy={accuracy}: {triangle_count(accuracy)} triangles, "
        f"{n_floats} floats (elapsed time: {elapsed_time:.3f}s)"
    )

    return out


def split_attributes(buffer: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split an interleaved vertex buffer into attribute views.

    Args:
        buffer: Flat buffer of interleaved vertices

    Returns:
        Tuple of (positions Mx3, normals Mx3, texcoords Mx2) views into buffer
    """
    if buffer.size % FLOATS_PER_VERTEX != 0:
        raise ValueError(
            f"Buffer length {buffer.size} is not a multiple of {FLOATS_PER_VERTEX}"
        )

    vertices = buffer.reshape(-1, FLOATS_PER_VERTEX)
    return vertices[:, 0:3], vertices[:, 3:6], vertices[:, 6:8]


def triangle_vertices(buffer: np.ndarray) -> np.ndarray:
    """Return vertex positions grouped per triangle as a Tx3x3 array."""
    positions, _, _ = split_attributes(buffer)
    return positions.reshape(-1, 3, 3)


def normalize_normals(buffer: np.ndarray) -> np.ndarray:
    """Scale the normal of every vertex in buffer to unit length, in place.

    Zero-length normals are left unchanged.

    Args:
        buffer: Flat buffer of interleaved vertices

    Returns:
        The same buffer
    """
    _, normals, _ = split_attributes(buffer)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    np.divide(normals, lengths, out=normals, where=lengths > 0)

    return buffer

"""Visualization utilities for tessellated surfaces.

This module renders vertex buffers and control grids to image files with
matplotlib, for offline inspection of tessellation results.
"""

from __future__ import annotations

import logging
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from bezmesh import mesh
from bezmesh.surface import BezierSurface

logger = logging.getLogger(__name__)


def control_points(surface: BezierSurface) -> np.ndarray:
    """Place control heights at their parametric grid positions.

    Args:
        surface: Surface providing the control grid

    Returns:
        (degree+1)^2 x 3 array of points (i/N, j/N, grid[i][j])
    """
    n = surface.degree
    ii, jj = np.meshgrid(np.arange(n + 1), np.arange(n + 1), indexing="ij")

    return np.column_stack((ii.ravel() / n, jj.ravel() / n, surface.control_grid.ravel()))


def plot_mesh(
    ax,
    buffer: np.ndarray,
    colormap: str = "viridis",
    normal_scale: float = 0.0
) -> None:
    """Draw a vertex buffer on a 3D axis.

    Args:
        ax: Matplotlib 3D axis
        buffer: Flat interleaved vertex buffer
        colormap: Colormap applied to heights
        normal_scale: Length factor for drawn normals (0 disables them)
    """
    positions, normals, _ = mesh.split_attributes(buffer)
    triangles = np.arange(positions.shape[0]).reshape(-1, 3)

    ax.plot_trisurf(
        positions[:, 0], positions[:, 1], positions[:, 2],
        triangles=triangles, cmap=plt.get_cmap(colormap),
        linewidth=0.2, edgecolor=(0, 0, 0, 0.3), alpha=0.9
    )

    if normal_scale > 0:
        ax.quiver(
            positions[:, 0], positions[:, 1], positions[:, 2],
            normals[:, 0], normals[:, 1], normals[:, 2],
            length=normal_scale, normalize=True, color="tab:red", linewidth=0.5
        )


def save_surface_visualization(
    surface: BezierSurface,
    buffer: np.ndarray,
    output_path: str,
    title: Optional[str] = None,
    normal_scale: float = 0.0
) -> None:
    """Save an image of the tessellated surface with its control net.

    Args:
        surface: Surface the buffer was tessellated from
        buffer: Vertex buffer produced by mesh.tessellate
        output_path: Path to save the visualization
        title: Optional figure title
        normal_scale: Length factor for drawn normals (0 disables them)
    """
    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection="3d")

    plot_mesh(ax, buffer, normal_scale=normal_scale)

    # Control net
    points = control_points(surface)
    n = surface.degree + 1
    grid = points.reshape(n, n, 3)
    for k in range(n):
        ax.plot(grid[k, :, 0], grid[k, :, 1], grid[k, :, 2], color="tab:orange", linewidth=0.8)
        ax.plot(grid[:, k, 0], grid[:, k, 1], grid[:, k, 2], color="tab:orange", linewidth=0.8)
    ax.scatter(points[:, 0], points[:, 1], points[:, 2], color="tab:orange", s=15)

    ax.set_xlabel("u")
    ax.set_ylabel("v")
    ax.set_zlabel("height")
    if title:
        ax.set_title(title)

    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Surface visualization saved to {output_path}")

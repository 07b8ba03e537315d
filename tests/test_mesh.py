"""Tests for mesh module.

This module tests tessellation of Bezier surfaces into interleaved
vertex buffers: buffer size, vertex layout, cell order and winding.
"""

import sys
import unittest
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from bezmesh import mesh
from bezmesh.surface import BezierSurface


class TestCapacity(unittest.TestCase):
    """Test buffer size queries and argument validation."""

    def test_required_capacity(self):
        self.assertEqual(mesh.required_capacity(1), 48)
        self.assertEqual(mesh.required_capacity(10), 4800)

    def test_triangle_count(self):
        self.assertEqual(mesh.triangle_count(10), 200)

    def test_invalid_accuracy(self):
        for accuracy in (0, -3):
            with pytest.raises(ValueError):
                mesh.required_capacity(accuracy)

    def test_non_integer_accuracy(self):
        for accuracy in (2.5, "4", True):
            with pytest.raises(ValueError):
                mesh.required_capacity(accuracy)

    def test_numpy_integer_accuracy(self):
        self.assertEqual(mesh.required_capacity(np.int64(2)), 192)


class TestTessellate(unittest.TestCase):
    """Test tessellation output."""

    def setUp(self):
        """Set up a non-trivial bicubic surface."""
        self.surface = BezierSurface([
            0.0, 0.2, 0.2, 0.0,
            0.2, 0.8, 0.6, 0.1,
            0.1, 0.7, 0.9, 0.2,
            0.0, 0.1, 0.3, 0.0,
        ])

    def test_buffer_size(self):
        """Accuracy 10 produces 10 * 10 * 6 * 8 floats."""
        buffer = mesh.tessellate(self.surface, 10)
        self.assertEqual(buffer.shape, (4800,))
        self.assertEqual(buffer.dtype, np.float32)

    def test_dtype(self):
        buffer = mesh.tessellate(self.surface, 3, dtype=np.float64)
        self.assertEqual(buffer.dtype, np.float64)

    def test_invalid_accuracy(self):
        with pytest.raises(ValueError):
            mesh.tessellate(self.surface, 0)

    def test_writes_into_caller_buffer(self):
        """Caller storage is filled from offset 0; trailing entries are untouched."""
        n_floats = mesh.required_capacity(4)
        out = np.full(n_floats + 10, -99.0, dtype=np.float64)

        result = mesh.tessellate(self.surface, 4, out=out)

        self.assertIs(result, out)
        np.testing.assert_array_equal(out[n_floats:], -99.0)
        np.testing.assert_allclose(
            out[:n_floats], mesh.tessellate(self.surface, 4, dtype=np.float64)
        )

    def test_undersized_buffer(self):
        """Too small buffers are rejected before anything is written."""
        out = np.zeros(mesh.required_capacity(4) - 1, dtype=np.float32)
        with pytest.raises(mesh.CapacityError):
            mesh.tessellate(self.surface, 4, out=out)
        np.testing.assert_array_equal(out, 0.0)

    def test_non_flat_buffer(self):
        out = np.zeros((16, 6, 8), dtype=np.float32)
        with pytest.raises(mesh.CapacityError):
            mesh.tessellate(self.surface, 4, out=out)

    def test_capacity_error_is_value_error(self):
        self.assertTrue(issubclass(mesh.CapacityError, ValueError))

    def test_vertex_layout(self):
        """Each vertex holds position, normal and placeholder texcoords."""
        buffer = mesh.tessellate(self.surface, 5, dtype=np.float64)
        positions, normals, texcoords = mesh.split_attributes(buffer)

        self.assertEqual(positions.shape, (5 * 5 * 6, 3))
        np.testing.assert_array_equal(texcoords, 1.0)

        for position, normal in zip(positions, normals):
            u, v, z = position
            self.assertAlmostEqual(z, self.surface.evaluate_height(u, v), delta=1e-12)
            np.testing.assert_allclose(normal, self.surface.evaluate_normal(u, v), atol=1e-12)

    def test_cell_order_and_split(self):
        """Cells are emitted i-major as (P1, P2, P3), (P3, P2, P4)."""
        accuracy = 3
        buffer = mesh.tessellate(self.surface, accuracy, dtype=np.float64)
        vertices = buffer.reshape(accuracy, accuracy, 6, 8)

        for i in range(accuracy):
            for j in range(accuracy):
                p1, p2, p3, p4 = mesh.cell_corners(i, j, accuracy)
                expected = [p1, p2, p3, p3, p2, p4]
                np.testing.assert_array_equal(vertices[i, j, :, :2], expected)

    def test_cell_corners(self):
        p1, p2, p3, p4 = mesh.cell_corners(1, 2, 4)
        self.assertEqual(p1, (0.25, 0.5))
        self.assertEqual(p2, (0.5, 0.5))
        self.assertEqual(p3, (0.25, 0.75))
        self.assertEqual(p4, (0.5, 0.75))

    def test_coverage(self):
        """Cells tile the unit square with bit-identical shared boundaries."""
        accuracy = 7
        buffer = mesh.tessellate(self.surface, accuracy, dtype=np.float64)
        vertices = buffer.reshape(accuracy, accuracy, 6, 8)
        d = 1.0 / accuracy

        for i in range(accuracy):
            for j in range(accuracy):
                x1, y1 = vertices[i, j, 0, :2]
                x2 = vertices[i, j, 1, 0]
                y3 = vertices[i, j, 2, 1]
                self.assertAlmostEqual(x2, x1 + d, delta=1e-15)
                self.assertAlmostEqual(y3, y1 + d, delta=1e-15)

                if i + 1 < accuracy:
                    # P2 of this cell is P1 of the next cell along u
                    np.testing.assert_array_equal(vertices[i, j, 1], vertices[i + 1, j, 0])
                if j + 1 < accuracy:
                    # P3 of this cell is P1 of the next cell along v
                    np.testing.assert_array_equal(vertices[i, j, 2], vertices[i, j + 1, 0])

        self.assertEqual(vertices[0, 0, 0, 0], 0.0)
        self.assertEqual(vertices[0, 0, 0, 1], 0.0)
        self.assertAlmostEqual(vertices[-1, -1, 5, 0], 1.0, delta=1e-15)
        self.assertAlmostEqual(vertices[-1, -1, 5, 1], 1.0, delta=1e-15)

    def test_consistent_winding(self):
        """All triangles are counter-clockwise in the parameter plane."""
        triangles = mesh.triangle_vertices(mesh.tessellate(self.surface, 6))
        e1 = triangles[:, 1, :2] - triangles[:, 0, :2]
        e2 = triangles[:, 2, :2] - triangles[:, 0, :2]
        signed_area = e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0]

        self.assertTrue(np.all(signed_area > 0))

    def test_flat_surface_normals(self):
        surface = BezierSurface(np.full(16, -1.0))
        buffer = mesh.tessellate(surface, 4)
        positions, normals, _ = mesh.split_attributes(buffer)

        np.testing.assert_allclose(positions[:, 2], -1.0, atol=1e-6)
        np.testing.assert_allclose(normals, np.tile([0.0, 0.0, 1.0], (len(normals), 1)), atol=1e-6)

    def test_progress(self):
        buffer = mesh.tessellate(self.surface, 2, progress=True)
        self.assertEqual(buffer.size, mesh.required_capacity(2))


class TestBufferHelpers(unittest.TestCase):
    """Test consumer-side buffer helpers."""

    def setUp(self):
        self.surface = BezierSurface(np.linspace(0.0, 3.0, 16))
        self.buffer = mesh.tessellate(self.surface, 4, dtype=np.float64)

    def test_split_attributes_are_views(self):
        positions, _, _ = mesh.split_attributes(self.buffer)
        positions[0, 0] = 42.0
        self.assertEqual(self.buffer[0], 42.0)

    def test_split_attributes_bad_length(self):
        with pytest.raises(ValueError):
            mesh.split_attributes(np.zeros(13))

    def test_triangle_vertices(self):
        triangles = mesh.triangle_vertices(self.buffer)
        self.assertEqual(triangles.shape, (mesh.triangle_count(4), 3, 3))

    def test_normalize_normals(self):
        """Normals become unit length; positions are unchanged."""
        positions_before = mesh.split_attributes(self.buffer)[0].copy()
        normals_before = mesh.split_attributes(self.buffer)[1].copy()

        result = mesh.normalize_normals(self.buffer)

        self.assertIs(result, self.buffer)
        positions, normals, texcoords = mesh.split_attributes(self.buffer)
        np.testing.assert_allclose(np.linalg.norm(normals, axis=1), 1.0)
        np.testing.assert_array_equal(positions, positions_before)
        np.testing.assert_array_equal(texcoords, 1.0)

        # Direction is preserved
        cosines = np.sum(normals * normals_before, axis=1) / np.linalg.norm(normals_before, axis=1)
        np.testing.assert_allclose(cosines, 1.0)

    def test_normalize_zero_normals(self):
        buffer = np.zeros(16)
        mesh.normalize_normals(buffer)
        np.testing.assert_array_equal(buffer, 0.0)


if __name__ == "__main__":
    unittest.main()

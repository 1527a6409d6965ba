import unittest

import numpy as np

import samples
from geometry import accumulate_vertices, mesh_geometry, triangle_normals, triangle_tangents
from reader import parse_md5mesh
from skinning import skin_model

# Flat quad at z=0, UV (u, v) == (x, y); clockwise seen from +z.
QUAD_POSITIONS = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])
QUAD_UVS = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
QUAD_TRIANGLES = np.array([[0, 3, 2], [0, 2, 1]])


class TriangleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.warnings = []

    def test_clockwise_normal_faces_viewer(self) -> None:
        normals = triangle_normals(QUAD_TRIANGLES, QUAD_POSITIONS)
        np.testing.assert_allclose(normals, [[0, 0, 1], [0, 0, 1]], atol=1e-12)

    def test_reversed_winding_flips_normal(self) -> None:
        normals = triangle_normals(QUAD_TRIANGLES[:, ::-1], QUAD_POSITIONS)
        np.testing.assert_allclose(normals, [[0, 0, -1], [0, 0, -1]], atol=1e-12)

    def test_tangents_follow_uv_axes(self) -> None:
        tangents, bitangents, valid = triangle_tangents(
            QUAD_TRIANGLES, QUAD_POSITIONS, QUAD_UVS, warn=self.warnings.append)
        np.testing.assert_allclose(tangents, [[1, 0, 0], [1, 0, 0]], atol=1e-12)
        np.testing.assert_allclose(bitangents, [[0, 1, 0], [0, 1, 0]], atol=1e-12)
        self.assertTrue(valid.all())
        self.assertEqual(self.warnings, [])
        normals = triangle_normals(QUAD_TRIANGLES, QUAD_POSITIONS)
        np.testing.assert_allclose(np.sum(tangents * bitangents, axis=1), 0.0, atol=1e-9)
        np.testing.assert_allclose(np.sum(tangents * normals, axis=1), 0.0, atol=1e-9)

    def test_stretched_uvs_keep_direction(self) -> None:
        tangents, bitangents, _ = triangle_tangents(
            QUAD_TRIANGLES, QUAD_POSITIONS * [4.0, 0.5, 1.0], QUAD_UVS, warn=self.warnings.append)
        np.testing.assert_allclose(tangents[0], [1, 0, 0], atol=1e-12)
        np.testing.assert_allclose(bitangents[1], [0, 1, 0], atol=1e-12)

    def test_degenerate_uvs_warn_and_stay_finite(self) -> None:
        uvs = QUAD_UVS.copy()
        uvs[3] = uvs[0]
        uvs[2] = uvs[0]
        tangents, bitangents, valid = triangle_tangents(
            QUAD_TRIANGLES, QUAD_POSITIONS, uvs, mesh_index=3, warn=self.warnings.append)
        self.assertFalse(valid[0])
        self.assertTrue(np.isfinite(tangents).all())
        self.assertTrue(np.isfinite(bitangents).all())
        np.testing.assert_array_equal(tangents[0], [0, 0, 0])
        self.assertEqual(len(self.warnings), 2)
        self.assertEqual((self.warnings[0].mesh, self.warnings[0].element), (3, 0))

    def test_collapsed_triangle_has_zero_normal(self) -> None:
        positions = np.zeros((3, 3))
        normals = triangle_normals(np.array([[0, 1, 2]]), positions)
        np.testing.assert_array_equal(normals, [[0, 0, 0]])


class VertexTests(unittest.TestCase):
    def test_unweighted_sum_ignores_triangle_area(self) -> None:
        positions = np.array([[0.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 50.0]])
        triangles = np.array([[0, 1, 2], [0, 3, 1]])
        normals = triangle_normals(triangles, positions)
        np.testing.assert_allclose(normals, [[0, 0, 1], [1, 0, 0]], atol=1e-12)

        vertex_normals = accumulate_vertices(triangles, normals, 4)
        np.testing.assert_allclose(vertex_normals[0], [np.sqrt(0.5), 0, np.sqrt(0.5)], atol=1e-12)
        np.testing.assert_allclose(vertex_normals[2], [0, 0, 1], atol=1e-12)
        np.testing.assert_allclose(vertex_normals[3], [1, 0, 0], atol=1e-12)

    def test_unused_vertex_stays_zero(self) -> None:
        vertex_normals = accumulate_vertices(QUAD_TRIANGLES[:1], np.array([[0.0, 0.0, 1.0]]), 4)
        np.testing.assert_array_equal(vertex_normals[1], [0, 0, 0])

    def test_mesh_geometry_of_sample_quad(self) -> None:
        model = parse_md5mesh(samples.MESH)
        (positions,) = skin_model(model)
        geometry = mesh_geometry(model.meshes[0], positions)
        np.testing.assert_allclose(geometry.vertex_normals, np.tile([0, 0, 1], (4, 1)), atol=1e-9)
        np.testing.assert_allclose(geometry.vertex_tangents, np.tile([1, 0, 0], (4, 1)), atol=1e-9)
        np.testing.assert_allclose(geometry.vertex_bitangents, np.tile([0, 1, 0], (4, 1)), atol=1e-9)
        self.assertEqual(geometry.triangle_normals.shape, (2, 3))
        with self.assertRaises(ValueError):
            geometry.vertex_normals[0, 0] = 0.0


if __name__ == "__main__":
    unittest.main()

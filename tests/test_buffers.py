import os
import tempfile
import unittest

import numpy as np

import samples
from buffers import joint_lines, model_buffers, texture_names, vector_lines
from export import export_buffers
from reader import parse_md5anim, parse_md5mesh
from skeleton import bind_pose, resolve_frame


class BufferTests(unittest.TestCase):
    def setUp(self) -> None:
        self.model = parse_md5mesh(samples.MESH)
        self.anim = parse_md5anim(samples.ANIM)

    def test_texture_names(self) -> None:
        names = texture_names("models/monsters/zombie/fat/fat")
        self.assertEqual(names["d"], "models/monsters/zombie/fat/fat_d.tga")
        self.assertEqual(names["n"], "models/monsters/zombie/fat/fat_local.tga")
        self.assertEqual(sorted(names), ["d", "h", "n", "s"])

    def test_joint_lines_link_parent_to_child(self) -> None:
        lines = joint_lines(self.model.joints, bind_pose(self.model))
        self.assertEqual(lines.dtype, np.float32)
        np.testing.assert_array_equal(lines, [0, 0, 0, 0, 0, 10])

    def test_vector_lines(self) -> None:
        lines = vector_lines(np.array([[1.0, 1.0, 1.0]]), np.array([[0.0, 0.0, 1.0]]), scale=3.0)
        np.testing.assert_array_equal(lines, [1, 1, 1, 1, 1, 4])

    def test_model_buffers_bind_pose(self) -> None:
        buffers = model_buffers(self.model, scale=1.0)
        mesh = buffers.meshes[0]
        self.assertEqual(mesh.positions.shape, (12,))
        self.assertEqual(mesh.uvs.shape, (8,))
        self.assertEqual(mesh.indices.dtype, np.uint16)
        np.testing.assert_array_equal(mesh.indices, [0, 3, 2, 0, 2, 1])
        np.testing.assert_allclose(mesh.normals.reshape(-1, 3), np.tile([0, 0, 1], (4, 1)), atol=1e-6)
        self.assertEqual(mesh.textures["d"], "models/test/quad_d.tga")

        flat = buffers.flat_triangles[0]
        self.assertEqual(flat["positions"].shape, (18,))
        np.testing.assert_allclose(flat["normals"].reshape(-1, 3), np.tile([0, 0, 1], (6, 1)), atol=1e-6)

        # Segment from the first triangle's centroid along its normal.
        tri = buffers.triangle_normals[0].reshape(-1, 2, 3)
        np.testing.assert_allclose(tri[0, 0], [1 / 3, 2 / 3, 0], atol=1e-6)
        np.testing.assert_allclose(tri[0, 1] - tri[0, 0], [0, 0, 1], atol=1e-6)
        self.assertEqual(buffers.vertex_normals[0].shape, (24,))

    def test_model_buffers_animated_pose(self) -> None:
        buffers = model_buffers(self.model, resolve_frame(self.anim, 1))
        np.testing.assert_allclose(buffers.joints, [0, 0, 5, 2, 0, 15], atol=1e-6)
        np.testing.assert_allclose(buffers.meshes[0].positions[6:9], [2.0, 5.5, 10.5], atol=1e-5)


class ExportTests(unittest.TestCase):
    def test_export_writes_all_arrays(self) -> None:
        model = parse_md5mesh(samples.MESH)
        buffers = model_buffers(model)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "out", "quad.npz")
            export_buffers(path, buffers)
            data = np.load(path)
            self.assertIn("joints", data.files)
            self.assertIn("mesh0_tangents", data.files)
            self.assertIn("mesh0_flat_positions", data.files)
            np.testing.assert_array_equal(data["mesh0_indices"], buffers.meshes[0].indices)
            self.assertEqual(str(data["mesh0_texture_s"]), "models/test/quad_s.tga")
            data.close()


if __name__ == "__main__":
    unittest.main()

"""
Flat numeric buffers for a renderer, one group per kind of draw call:

- joints:                 GL_LINES, parent -> child segments
- triangle normals etc.:  GL_LINES from each triangle centroid
- vertex normals:         GL_LINES from each vertex
- flat triangles:         GL_TRIANGLES, unindexed, face normal per corner
- mesh:                   indexed GL_TRIANGLES with position/uv/normal/tangent/bitangent
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List

import numpy as np

import config
from errors import GeometryWarning, log_warning
from geometry import MeshGeometry, mesh_geometry
from skeleton import Pose, bind_pose
from skinning import skin_mesh


@dataclass(frozen=True, eq=False)
class MeshBuffers:
    positions: np.ndarray       # float32 (V*3,)
    uvs: np.ndarray             # float32 (V*2,)
    normals: np.ndarray
    tangents: np.ndarray
    bitangents: np.ndarray
    indices: np.ndarray         # uint16 or uint32 (T*3,)
    textures: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, eq=False)
class ModelBuffers:
    joints: np.ndarray
    meshes: List[MeshBuffers]
    flat_triangles: List[Dict[str, np.ndarray]]
    triangle_normals: List[np.ndarray]
    triangle_tangents: List[np.ndarray]
    triangle_bitangents: List[np.ndarray]
    vertex_normals: List[np.ndarray]


def _flat(a, dtype=np.float32) -> np.ndarray:
    return np.ascontiguousarray(a, dtype=dtype).reshape(-1)


def texture_names(shader: str) -> Dict[str, str]:
    """Texture file per texture unit ('d', 's', 'n', 'h') for a mesh shader name."""
    return {unit: shader + suffix for unit, suffix in config.TEXTURE_SUFFIXES.items()}


def joint_lines(joints, pose: Pose) -> np.ndarray:
    """Segment from every non-root joint's parent to the joint, as float32 (S*2*3,)."""
    segments = [(pose.positions[j.parent], pose.positions[i])
                for i, j in enumerate(joints) if j.parent >= 0]
    return _flat(np.array(segments).reshape(-1, 3))


def vector_lines(origins: np.ndarray, vectors: np.ndarray, scale: float = config.VECTOR_LINE_SCALE) -> np.ndarray:
    """Segments origin -> origin + scale * vector, as float32 (N*2*3,)."""
    lines = np.stack([origins, origins + scale * vectors], axis=1)
    return _flat(lines)


def triangle_centroids(triangles: np.ndarray, positions: np.ndarray) -> np.ndarray:
    return positions[triangles].mean(axis=1)


def flat_triangles(mesh, positions: np.ndarray, geometry: MeshGeometry) -> Dict[str, np.ndarray]:
    """Unindexed triangles, every corner carrying its face normal."""
    return {
        'positions': _flat(positions[mesh.triangles]),
        'normals': _flat(np.repeat(geometry.triangle_normals, 3, axis=0)),
    }


def mesh_buffers(mesh, positions: np.ndarray, geometry: MeshGeometry) -> MeshBuffers:
    index_type = np.uint16 if mesh.num_vertices <= 0xFFFF else np.uint32
    return MeshBuffers(
        positions=_flat(positions),
        uvs=_flat(mesh.uvs),
        normals=_flat(geometry.vertex_normals),
        tangents=_flat(geometry.vertex_tangents),
        bitangents=_flat(geometry.vertex_bitangents),
        indices=_flat(mesh.triangles, index_type),
        textures=texture_names(mesh.shader),
    )


def model_buffers(model, pose: Pose = None, scale: float = config.VECTOR_LINE_SCALE,
                  warn: Callable[[GeometryWarning], None] = log_warning) -> ModelBuffers:
    """
    Skin every sub-mesh with `pose` (bind pose by default) and build all
    renderer buffers for it.
    """
    if pose is None:
        pose = bind_pose(model)

    meshes, flats, tri_n, tri_t, tri_b, vert_n = [], [], [], [], [], []
    for i, mesh in enumerate(model.meshes):
        positions = skin_mesh(mesh, pose, i, warn)
        geometry = mesh_geometry(mesh, positions, i, warn)
        centroids = triangle_centroids(mesh.triangles, positions)

        meshes.append(mesh_buffers(mesh, positions, geometry))
        flats.append(flat_triangles(mesh, positions, geometry))
        tri_n.append(vector_lines(centroids, geometry.triangle_normals, scale))
        tri_t.append(vector_lines(centroids, geometry.triangle_tangents, scale))
        tri_b.append(vector_lines(centroids, geometry.triangle_bitangents, scale))
        vert_n.append(vector_lines(positions, geometry.vertex_normals, scale))

    return ModelBuffers(
        joints=joint_lines(model.joints, pose),
        meshes=meshes,
        flat_triangles=flats,
        triangle_normals=tri_n,
        triangle_tangents=tri_t,
        triangle_bitangents=tri_b,
        vertex_normals=vert_n,
    )

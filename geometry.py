from dataclasses import dataclass
from typing import Callable, Tuple

import numpy as np

import config
from errors import GeometryWarning, log_warning
from skeleton import readonly


@dataclass(frozen=True, eq=False)
class MeshGeometry:
    """Per-triangle (T, 3) and per-vertex (V, 3) shading vectors of one skinned sub-mesh."""
    triangle_normals: np.ndarray
    triangle_tangents: np.ndarray
    triangle_bitangents: np.ndarray
    tangent_valid: np.ndarray   # (T,) bool, False where the UV mapping is degenerate
    vertex_normals: np.ndarray
    vertex_tangents: np.ndarray
    vertex_bitangents: np.ndarray


def _normalize(v: np.ndarray) -> np.ndarray:
    """Row-wise unit vectors; zero rows stay zero."""
    length = np.linalg.norm(v, axis=1, keepdims=True)
    out = np.zeros_like(v)
    np.divide(v, length, out=out, where=length > 0)
    return out


def _corners(triangles: np.ndarray, values: np.ndarray):
    return values[triangles[:, 0]], values[triangles[:, 1]], values[triangles[:, 2]]


def triangle_normals(triangles: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """
    Unit face normals for clockwise front faces.

    Parameters:
    - triangles: (T, 3) vertex indices
    - positions: (V, 3) vertex positions

    Returns:
    - (T, 3) normals pointing away from the front face, zero for collapsed triangles.
    """
    p0, p1, p2 = _corners(triangles, positions)
    # (p2 - p0) x (p1 - p0) faces the viewer when p0 -> p1 -> p2 runs clockwise.
    return _normalize(np.cross(p2 - p0, p1 - p0))


def triangle_tangents(triangles: np.ndarray, positions: np.ndarray, uvs: np.ndarray,
                      mesh_index: int = None,
                      warn: Callable[[GeometryWarning], None] = log_warning
                      ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Per-triangle tangent (+U) and bitangent (+V) directions.

    Solves
        e1 = du1 * T + dv1 * B
        e2 = du2 * T + dv2 * B
    for every triangle, where e1, e2 are the object space edges from corner 0
    and (du, dv) the matching UV edges.

    Returns:
        tangents   : (T, 3) unit vectors
        bitangents : (T, 3) unit vectors
        valid      : (T,) bool, False where the UV area is ~0 (both vectors left zero)
    """
    p0, p1, p2 = _corners(triangles, positions)
    t0, t1, t2 = _corners(triangles, uvs)
    e1, e2 = p1 - p0, p2 - p0
    d1, d2 = t1 - t0, t2 - t0

    det = d1[:, 0] * d2[:, 1] - d2[:, 0] * d1[:, 1]
    valid = np.abs(det) > config.UV_DETERMINANT_EPSILON
    for t in np.flatnonzero(~valid):
        warn(GeometryWarning(f"triangle {t} has degenerate UV area {det[t]:.3g}", mesh=mesh_index, element=int(t)))

    r = np.zeros_like(det)
    r[valid] = 1.0 / det[valid]
    tangents = (e1 * d2[:, 1:2] - e2 * d1[:, 1:2]) * r[:, None]
    bitangents = (e2 * d1[:, 0:1] - e1 * d2[:, 0:1]) * r[:, None]
    return _normalize(tangents), _normalize(bitangents), valid


def accumulate_vertices(triangles: np.ndarray, vectors: np.ndarray, num_vertices: int) -> np.ndarray:
    """
    Unweighted per-vertex sum of per-triangle vectors, then normalized.
    """
    acc = np.zeros((num_vertices, 3))
    for corner in range(3):
        np.add.at(acc, triangles[:, corner], vectors)
    return _normalize(acc)


def vertex_basis(triangles: np.ndarray, normals: np.ndarray, tangents: np.ndarray,
                 bitangents: np.ndarray, num_vertices: int):
    return (accumulate_vertices(triangles, normals, num_vertices),
            accumulate_vertices(triangles, tangents, num_vertices),
            accumulate_vertices(triangles, bitangents, num_vertices))


def mesh_geometry(mesh, positions: np.ndarray, mesh_index: int = None,
                  warn: Callable[[GeometryWarning], None] = log_warning) -> MeshGeometry:
    """
    All shading vectors of a skinned sub-mesh.

    Parameters:
    - mesh:      reader.Md5Mesh (triangles and UVs)
    - positions: (V, 3) skinned vertex positions of that mesh
    """
    normals = triangle_normals(mesh.triangles, positions)
    tangents, bitangents, valid = triangle_tangents(mesh.triangles, positions, mesh.uvs, mesh_index, warn)
    vn, vt, vb = vertex_basis(mesh.triangles, normals, tangents, bitangents, mesh.num_vertices)
    return MeshGeometry(
        triangle_normals=readonly(normals),
        triangle_tangents=readonly(tangents),
        triangle_bitangents=readonly(bitangents),
        tangent_valid=readonly(valid),
        vertex_normals=readonly(vn),
        vertex_tangents=readonly(vt),
        vertex_bitangents=readonly(vb),
    )

from typing import Callable, List, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

import config
from errors import GeometryWarning, log_warning
from skeleton import Pose, bind_pose, check_hierarchy, readonly, resolve_frame


def _bindings(mesh):
    """
    Gather the weights each vertex uses.

    Returns:
        vertices: (B,) owning vertex of every binding
        joints  : (B,) joint index
        biases  : (B,) weight value
        offsets : (B, 3) joint space offset (a fresh, writable array)
    """
    idx = mesh.binding_weights
    return (mesh.binding_vertices, mesh.weight_joints[idx],
            mesh.weight_biases[idx], mesh.weight_offsets[idx])


def check_weights(mesh, mesh_index: int = None,
                  warn: Callable[[GeometryWarning], None] = log_warning) -> int:
    """
    Report every vertex whose weight biases do not sum to 1.0.
    The weights are left untouched. Returns the number of offending vertices.
    """
    vertices, _, biases, _ = _bindings(mesh)
    sums = np.zeros(mesh.num_vertices)
    np.add.at(sums, vertices, biases)
    bad = np.flatnonzero(np.abs(sums - 1.0) > config.WEIGHT_SUM_TOLERANCE)
    for v in bad:
        warn(GeometryWarning(f"vertex {v} weights sum to {sums[v]:.6f}", mesh=mesh_index, element=int(v)))
    return len(bad)


def _skin(mesh, pose: Pose) -> np.ndarray:
    vertices, joints, biases, offsets = _bindings(mesh)
    positions = np.zeros((mesh.num_vertices, 3))
    if joints.size == 0:
        return positions

    rotated = Rotation.from_quat(pose.orientations[joints]).apply(offsets)
    weighted = biases[:, None] * (pose.positions[joints] + rotated)
    np.add.at(positions, vertices, weighted)
    return positions


def skin_mesh(mesh, pose: Pose, mesh_index: int = None,
              warn: Callable[[GeometryWarning], None] = log_warning) -> np.ndarray:
    """
    Linear blend skinning of one sub-mesh.

        p_v = sum_i w_i * (joint_pos_i + joint_rot_i * offset_i)

    Parameters:
    - mesh:  reader.Md5Mesh
    - pose:  resolved joint transforms (bind pose or an animation frame)
    - warn:  diagnostic sink for weight sums off 1.0

    Returns:
    - (V, 3) read-only array of vertex positions.
    """
    check_weights(mesh, mesh_index, warn)
    return readonly(_skin(mesh, pose))


def skin_model(model, pose: Pose = None,
               warn: Callable[[GeometryWarning], None] = log_warning) -> List[np.ndarray]:
    """Skin every sub-mesh; the bind pose is used when no pose is given."""
    if pose is None:
        pose = bind_pose(model)
    return [skin_mesh(mesh, pose, i, warn) for i, mesh in enumerate(model.meshes)]


def compute_skinning(model, anim,
                     warn: Callable[[GeometryWarning], None] = log_warning) -> Tuple[List[np.ndarray], np.ndarray]:
    """
    Compute skinned vertex positions and joint positions for every frame of a clip.
    Weights are checked once, not per frame.

    Returns:
        V_hat: list with one (F, V, 3) array per sub-mesh
        J    : (F, J, 3) joint positions
    """
    check_hierarchy(model, anim)
    for i, mesh in enumerate(model.meshes):
        check_weights(mesh, i, warn)

    F = anim.num_frames
    V_hat = [np.zeros((F, mesh.num_vertices, 3)) for mesh in model.meshes]
    J = np.zeros((F, len(model.joints), 3))
    for f in range(F):
        pose = resolve_frame(anim, f)
        J[f] = pose.positions
        for i, mesh in enumerate(model.meshes):
            V_hat[i][f] = _skin(mesh, pose)

    return [readonly(v) for v in V_hat], readonly(J)


def compute_bounds(positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Axis aligned (min, max) of a (..., 3) position array."""
    points = np.asarray(positions).reshape(-1, 3)
    return points.min(axis=0), points.max(axis=0)

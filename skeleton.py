import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from errors import ConsistencyError

# Channel bits of a hierarchy entry, in the order the frame stream stores them.
TX, TY, TZ, QX, QY, QZ = (1 << i for i in range(6))
CHANNELS = (TX, TY, TZ, QX, QY, QZ)
ALL_CHANNELS = 0x3F
ORIENTATION_CHANNELS = QX | QY | QZ


@dataclass(frozen=True, eq=False)
class Pose:
    """
    One transform per joint, in hierarchy order.

    positions:    (J, 3) array
    orientations: (J, 4) array of unit quaternions stored as (x, y, z, w)
    """
    positions: np.ndarray
    orientations: np.ndarray

    def __len__(self):
        return self.positions.shape[0]


def readonly(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


def quaternion_w(x: float, y: float, z: float) -> float:
    """Non-negative W completing (x, y, z) to a unit quaternion."""
    return float(np.sqrt(max(0.0, 1.0 - x * x - y * y - z * z)))


def complete_quaternions(xyz: np.ndarray) -> np.ndarray:
    """
    Rebuild unit quaternions from their stored vector part.

    Parameters:
    - xyz: (N, 3) array of quaternion x, y, z components.

    Returns:
    - (N, 4) array of (x, y, z, w) with w >= 0.
    """
    xyz = np.asarray(xyz, dtype=np.float64).reshape(-1, 3)
    w = np.sqrt(np.maximum(0.0, 1.0 - np.sum(xyz * xyz, axis=1)))
    return np.concatenate([xyz, w[:, None]], axis=1)


def popcount(flags: int) -> int:
    return bin(flags & ALL_CHANNELS).count('1')


def bind_pose(model) -> Pose:
    """
    Bind pose of a parsed mesh. The mesh file stores absolute joint
    transforms, so this is a copy of them with nothing to resolve.
    """
    pose = model.bind_pose
    return Pose(readonly(pose.positions.copy()), readonly(pose.orientations.copy()))


def _apply_channels(flags: int, position: List[float], orientation: List[float],
                    components: Sequence[float], start: int) -> bool:
    """Overwrite the flagged channels in place, returns True if any orientation channel changed."""
    k = start
    for axis, bit in enumerate(CHANNELS[:3]):
        if flags & bit:
            position[axis] = components[k]
            k += 1
    for axis, bit in enumerate(CHANNELS[3:]):
        if flags & bit:
            orientation[axis] = components[k]
            k += 1
    return bool(flags & ORIENTATION_CHANNELS)


def _check_frame(anim, frame_index: int) -> None:
    if not 0 <= frame_index < len(anim.frames):
        raise IndexError(f"frame {frame_index} out of range (0..{len(anim.frames) - 1})")


def local_pose(anim, frame_index: int) -> Pose:
    """
    Parent-relative joint transforms of one frame: base frame values with
    the flagged channels taken from the frame's component stream. A joint
    whose flags are 0 keeps its base frame entry exactly.
    """
    _check_frame(anim, frame_index)
    components = anim.frames[frame_index].components
    base = anim.base_frame

    positions = np.array(base.positions, dtype=np.float64)
    orientations = np.array(base.orientations, dtype=np.float64)
    for j, joint in enumerate(anim.hierarchy):
        if not joint.flags:
            continue
        position = positions[j].tolist()
        orientation = orientations[j].tolist()
        if _apply_channels(joint.flags, position, orientation, components, joint.start_index):
            orientation[3] = quaternion_w(*orientation[:3])
        positions[j] = position
        orientations[j] = orientation

    return Pose(readonly(positions), readonly(orientations))


def to_absolute(hierarchy, local: Pose) -> Pose:
    """
    Move parent-relative transforms into model space. Joints are visited in
    ascending index order, so every parent is already absolute when its
    children need it. Root joints are copied unchanged.
    """
    positions = np.array(local.positions, dtype=np.float64)
    orientations = np.array(local.orientations, dtype=np.float64)
    for j, joint in enumerate(hierarchy):
        if joint.parent < 0:
            continue
        parent = Rotation.from_quat(orientations[joint.parent])
        positions[j] = positions[joint.parent] + parent.apply(positions[j])
        orientations[j] = (parent * Rotation.from_quat(orientations[j])).as_quat()

    return Pose(readonly(positions), readonly(orientations))


def base_pose(anim) -> Pose:
    """Model space transforms of the base frame with no channel applied."""
    return to_absolute(anim.hierarchy, anim.base_frame)


def resolve_frame(anim, frame_index: int) -> Pose:
    """
    Absolute joint transforms of one animation frame.

    Each joint starts from its base frame values, takes the channels its
    flags mark as stored from the frame's component stream, and is then
    moved into its parent's space.

    Parameters:
    - anim:        Parsed animation (see reader.Md5Anim).
    - frame_index: 0-based frame number.

    Returns:
    - Pose with (J,3) positions and (J,4) orientations.
    """
    return to_absolute(anim.hierarchy, local_pose(anim, frame_index))


def pose_resolver(anim) -> Callable[[int], Pose]:
    """Stateless resolvePose(frame_index) for one clip."""
    def resolve_pose(frame_index: int) -> Pose:
        return resolve_frame(anim, frame_index)
    return resolve_pose


def resolve_all_frames(anim) -> List[Pose]:
    return [resolve_frame(anim, f) for f in range(len(anim.frames))]


def frame_at_time(anim, seconds: float, loop: bool = True) -> int:
    """Frame index shown at `seconds` into the clip, played at its own frame rate."""
    num_frames = len(anim.frames)
    if num_frames == 0:
        raise IndexError("animation has no frames")
    index = int(np.floor(seconds * anim.frame_rate))
    if loop:
        return index % num_frames
    return min(max(index, 0), num_frames - 1)


def playback_interval(anim, fps: float = None) -> Optional[float]:
    """
    Seconds between displayed frames, or None when the clip cannot be played
    (no frames, or a rate that is not positive). fps defaults to the clip's frameRate.
    """
    if fps is None:
        fps = anim.frame_rate
    if len(anim.frames) == 0:
        logging.error("Animation has no frames to play")
        return None
    if not fps > 0:
        logging.error("Playback rate must be positive, got %g fps", fps)
        return None
    return 1.0 / fps


def check_hierarchy(model, anim) -> None:
    """
    Make sure an animation can drive a mesh: same joint count, and the same
    name and parent for every joint index.
    """
    mesh_joints, anim_joints = model.joints, anim.hierarchy
    if len(mesh_joints) != len(anim_joints):
        raise ConsistencyError(
            f"mesh has {len(mesh_joints)} joints, animation has {len(anim_joints)}")
    for j, (a, b) in enumerate(zip(mesh_joints, anim_joints)):
        if a.name != b.name:
            raise ConsistencyError(f"joint {j} is '{a.name}' in the mesh but '{b.name}' in the animation")
        if a.parent != b.parent:
            raise ConsistencyError(
                f"joint {j} '{a.name}' has parent {a.parent} in the mesh but {b.parent} in the animation")

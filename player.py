import time

import numpy as np
import open3d as o3d

import config
from skeleton import playback_interval
from skinning import compute_skinning


def wireframe_edges(faces):
    """Unique undirected edges of a triangle list, as an (E, 2) int32 array."""
    edges = set()
    for a, b, c in faces:
        edges |= {(min(a, b), max(a, b)),
                  (min(b, c), max(b, c)),
                  (min(c, a), max(c, a))}
    return np.array(sorted(edges), dtype=np.int32).reshape(-1, 2)


def skeleton_edges(joints):
    """(parent, child) index pairs of every non-root joint."""
    return np.array([(j.parent, i) for i, j in enumerate(joints) if j.parent >= 0],
                    dtype=np.int32).reshape(-1, 2)


def play_md5_animation(model, anim, fps=None, cam_offset=config.CAM_OFFSET, skeleton=True):
    """
    Play a skinned MD5 animation plus its skeleton in Open3D.
    Loops until the user closes the window. Returns without opening one when
    the clip has no frames or the rate is not positive.

    Parameters:
      model     : reader.Md5Model
      anim      : reader.Md5Anim driving the model
      fps       : playback rate, the clip's own frameRate by default
      cam_offset: camera up-vector offset
      skeleton  : draw joints as red lines on top of the mesh
    """
    interval = playback_interval(anim, fps)
    if interval is None:
        return
    V_hat, J = compute_skinning(model, anim)
    F = anim.num_frames

    vis = o3d.visualization.Visualizer()
    vis.create_window('MD5 Animation')

    geometries = []
    for mesh, frames in zip(model.meshes, V_hat):
        # Triangle mesh (light gray)
        tri_mesh = o3d.geometry.TriangleMesh(
            vertices=o3d.utility.Vector3dVector(frames[0]),
            # Open3D front faces are counter-clockwise
            triangles=o3d.utility.Vector3iVector(np.ascontiguousarray(mesh.triangles[:, ::-1], dtype=np.int32))
        )
        tri_mesh.compute_vertex_normals()
        tri_mesh.paint_uniform_color(config.MESH_COLOR)
        vis.add_geometry(tri_mesh)

        # Wireframe edges (dark gray)
        lines = wireframe_edges(mesh.triangles)
        wire = o3d.geometry.LineSet(
            points=o3d.utility.Vector3dVector(frames[0]),
            lines=o3d.utility.Vector2iVector(lines)
        )
        wire.colors = o3d.utility.Vector3dVector([config.WIRE_COLOR] * len(lines))
        vis.add_geometry(wire)
        geometries.append((tri_mesh, wire, frames))

    bones = None
    if skeleton:
        bone_lines = skeleton_edges(model.joints)
        bones = o3d.geometry.LineSet(
            points=o3d.utility.Vector3dVector(J[0]),
            lines=o3d.utility.Vector2iVector(bone_lines)
        )
        bones.colors = o3d.utility.Vector3dVector([config.JOINT_COLOR] * len(bone_lines))
        vis.add_geometry(bones)

    # Camera setup
    opt = vis.get_render_option()
    opt.mesh_show_back_face = True
    opt.light_on = False
    ctr = vis.get_view_control()
    params = ctr.convert_to_pinhole_camera_parameters()
    extr = params.extrinsic.copy()
    up = extr[:3, 1]
    extr[:3, 3] -= up * cam_offset
    params.extrinsic = extr
    ctr.convert_from_pinhole_camera_parameters(params)

    frame = 0
    while vis.poll_events():  # returns False once window is closed
        for tri_mesh, wire, frames in geometries:
            pts = o3d.utility.Vector3dVector(frames[frame])
            tri_mesh.vertices = pts
            wire.points = pts
            tri_mesh.compute_vertex_normals()
            vis.update_geometry(tri_mesh)
            vis.update_geometry(wire)
        if bones is not None:
            bones.points = o3d.utility.Vector3dVector(J[frame])
            vis.update_geometry(bones)
        vis.update_renderer()

        frame = (frame + 1) % F
        time.sleep(interval)

    vis.destroy_window()

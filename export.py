import logging
import os

import numpy as np

from buffers import ModelBuffers


def export_buffers(export_path: str, buffers: ModelBuffers) -> None:
    """
    Save renderer buffers to a .npz file.

    Parameters:
    - export_path: Path to output .npz file. Directory will be created if needed.
    - buffers:     ModelBuffers from buffers.model_buffers.

    Array names are 'joints' plus, for mesh i, 'mesh{i}_<name>' with
    positions, uvs, normals, tangents, bitangents, indices, flat_positions,
    flat_normals, triangle_normals, triangle_tangents, triangle_bitangents,
    vertex_normals. Texture names are stored as 'mesh{i}_texture_<unit>'.
    """
    arrays = {'joints': buffers.joints}
    for i, mesh in enumerate(buffers.meshes):
        prefix = f"mesh{i}_"
        arrays[prefix + 'positions'] = mesh.positions
        arrays[prefix + 'uvs'] = mesh.uvs
        arrays[prefix + 'normals'] = mesh.normals
        arrays[prefix + 'tangents'] = mesh.tangents
        arrays[prefix + 'bitangents'] = mesh.bitangents
        arrays[prefix + 'indices'] = mesh.indices
        arrays[prefix + 'flat_positions'] = buffers.flat_triangles[i]['positions']
        arrays[prefix + 'flat_normals'] = buffers.flat_triangles[i]['normals']
        arrays[prefix + 'triangle_normals'] = buffers.triangle_normals[i]
        arrays[prefix + 'triangle_tangents'] = buffers.triangle_tangents[i]
        arrays[prefix + 'triangle_bitangents'] = buffers.triangle_bitangents[i]
        arrays[prefix + 'vertex_normals'] = buffers.vertex_normals[i]
        for unit, name in mesh.textures.items():
            arrays[prefix + 'texture_' + unit] = np.array(name)

    # Ensure directory exists
    directory = os.path.dirname(export_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    np.savez_compressed(export_path, **arrays)

    logging.info("Buffers exported to %s", export_path)

# Only version 10 files (Doom 3 / Quake 4) have been checked against this reader.
MD5_VERSION = 10

# Allowed deviation of a vertex's weight biases from 1.0 before a warning is raised.
WEIGHT_SUM_TOLERANCE = 1e-3

# UV-space area below which a triangle has no usable tangent basis.
UV_DETERMINANT_EPSILON = 1e-12

# Texture unit -> filename suffix appended to a mesh shader name.
# 'n' follows the Doom 3 convention of calling normal maps "local".
TEXTURE_SUFFIXES = {
    'd': '_d.tga',
    's': '_s.tga',
    'n': '_local.tga',
    'h': '_h.tga',
}

# Length of the normal/tangent/bitangent line segments, in model units.
VECTOR_LINE_SCALE = 2.0

# Playback
DEFAULT_FPS = 24
CAM_OFFSET = -2
MESH_COLOR = [0.8, 0.8, 0.8]
WIRE_COLOR = [0.2, 0.2, 0.2]
JOINT_COLOR = [1.0, 0.0, 0.0]

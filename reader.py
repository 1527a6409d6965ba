"""
MD5 mesh / animation text reader.

Both formats are whitespace separated token streams with brace delimited
blocks, quoted strings and parenthesised vectors:

    MD5Version 10
    commandline "..."
    numJoints 33
    joints {
        "origin" -1 ( 0 0 0 ) ( -0.5 -0.5 -0.5 )     // comment
        ...
    }
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import numpy as np

import config
from errors import FormatError
from skeleton import ALL_CHANNELS, Pose, complete_quaternions, popcount, readonly

TOKEN_PATTERN = re.compile(r'"([^"]*)"|(//.*)|([(){}])|((?:(?!//)[^\s(){}"])+)')


@dataclass(frozen=True)
class Joint:
    name: str
    parent: int
    flags: int = 0
    start_index: int = 0


@dataclass(frozen=True, eq=False)
class Md5Mesh:
    """
    One sub-mesh. Per-vertex weight bindings are ranges into the weight arrays:
    vertex v uses weights weight_start[v] .. weight_start[v] + weight_count[v] - 1.
    """
    shader: str
    uvs: np.ndarray             # (V, 2)
    weight_start: np.ndarray    # (V,)
    weight_count: np.ndarray    # (V,)
    triangles: np.ndarray       # (T, 3), clockwise front faces
    weight_joints: np.ndarray   # (W,)
    weight_biases: np.ndarray   # (W,)
    weight_offsets: np.ndarray  # (W, 3), joint space

    @property
    def num_vertices(self):
        return self.uvs.shape[0]

    @property
    def num_triangles(self):
        return self.triangles.shape[0]

    @property
    def binding_vertices(self) -> np.ndarray:
        """Owning vertex of every (vertex, weight) binding, in vertex order."""
        return np.repeat(np.arange(self.num_vertices), self.weight_count)

    @property
    def binding_weights(self) -> np.ndarray:
        """Weight index of every binding. Ranges may overlap, leave gaps or come in any order."""
        if self.num_vertices == 0:
            return np.zeros(0, dtype=np.int64)
        return np.concatenate([np.arange(s, s + c) for s, c in zip(self.weight_start, self.weight_count)])


@dataclass(frozen=True, eq=False)
class Md5Model:
    version: int
    commandline: str
    joints: Tuple[Joint, ...]
    bind_pose: Pose
    meshes: Tuple[Md5Mesh, ...]


@dataclass(frozen=True, eq=False)
class Frame:
    index: int
    components: np.ndarray


@dataclass(frozen=True, eq=False)
class Md5Anim:
    version: int
    commandline: str
    frame_rate: float
    num_animated_components: int
    hierarchy: Tuple[Joint, ...]
    bounds: np.ndarray          # (F, 2, 3) min/max per frame
    base_frame: Pose            # parent relative
    frames: Tuple[Frame, ...]

    @property
    def num_frames(self):
        return len(self.frames)

    @property
    def num_joints(self):
        return len(self.hierarchy)


class _Tokens:
    """Cursor over (value, line, quoted) tokens."""

    def __init__(self, text: str):
        self.tokens = []
        for lineno, line in enumerate(text.splitlines(), 1):
            for quoted, comment, punct, word in TOKEN_PATTERN.findall(line):
                if comment:
                    break
                if punct or word:
                    self.tokens.append((punct or word, lineno, False))
                else:
                    self.tokens.append((quoted, lineno, True))
        self.pos = 0

    @property
    def line(self):
        if self.pos < len(self.tokens):
            return self.tokens[self.pos][1]
        return self.tokens[-1][1] if self.tokens else 0

    def at_end(self):
        return self.pos >= len(self.tokens)

    def peek(self):
        if self.at_end():
            return None
        return self.tokens[self.pos][0]

    def _take(self):
        if self.at_end():
            raise FormatError("unexpected end of input", self.line)
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def word(self) -> str:
        value, line, quoted = self._take()
        if quoted:
            raise FormatError(f'expected a keyword, found string "{value}"', line)
        return value

    def expect(self, value: str) -> None:
        found, line, quoted = self._take()
        if quoted or found != value:
            raise FormatError(f"expected '{value}', found '{found}'", line)

    def string(self) -> str:
        value, line, quoted = self._take()
        if not quoted:
            raise FormatError(f"expected a quoted string, found '{value}'", line)
        return value

    def int(self) -> int:
        value, line, quoted = self._take()
        try:
            if quoted:
                raise ValueError(value)
            return int(value)
        except ValueError:
            raise FormatError(f"expected an integer, found '{value}'", line) from None

    def float(self) -> float:
        value, line, quoted = self._take()
        try:
            if quoted:
                raise ValueError(value)
            return float(value)
        except ValueError:
            raise FormatError(f"expected a number, found '{value}'", line) from None

    def vector(self, n: int) -> List[float]:
        self.expect('(')
        values = [self.float() for _ in range(n)]
        self.expect(')')
        return values


def _check_count(what: str, declared: int, found: int, line: int) -> None:
    if declared is not None and declared != found:
        raise FormatError(f"{what}: declared {declared}, found {found}", line)


def _check_parent(j: int, parent: int, line: int) -> None:
    # Parents must be declared before their children.
    if parent != -1 and not 0 <= parent < j:
        raise FormatError(f"joint {j} has parent index {parent}, which is not an earlier joint", line)


def _read_header(tokens: _Tokens, key: str, header: dict) -> bool:
    if key == 'MD5Version':
        header['version'] = tokens.int()
        if header['version'] != config.MD5_VERSION:
            logging.warning("MD5Version %d, expected %d", header['version'], config.MD5_VERSION)
    elif key == 'commandline':
        header['commandline'] = tokens.string()
    else:
        return False
    return True


def _read_indexed(tokens: _Tokens, keyword: str, expected: int) -> None:
    line = tokens.line
    tokens.expect(keyword)
    index = tokens.int()
    if index != expected:
        raise FormatError(f"{keyword} {index} out of order, expected {expected}", line)


def _parse_mesh_joints(tokens: _Tokens) -> Tuple[List[Joint], Pose]:
    joints, positions, orientations = [], [], []
    tokens.expect('{')
    while tokens.peek() != '}':
        line = tokens.line
        name = tokens.string()
        parent = tokens.int()
        _check_parent(len(joints), parent, line)
        positions.append(tokens.vector(3))
        orientations.append(tokens.vector(3))
        joints.append(Joint(name, parent))
    tokens.expect('}')
    pose = Pose(readonly(np.array(positions, dtype=np.float64).reshape(-1, 3)),
                readonly(complete_quaternions(orientations)))
    return joints, pose


def _parse_mesh_block(tokens: _Tokens, num_joints: int) -> Md5Mesh:
    start_line = tokens.line
    tokens.expect('{')
    shader = ''
    uvs, starts, counts, triangles = [], [], [], []
    weight_joints, biases, offsets = [], [], []

    while tokens.peek() != '}':
        line = tokens.line
        key = tokens.word()
        if key == 'shader':
            shader = tokens.string()
        elif key == 'numverts':
            num_verts = tokens.int()
            for v in range(num_verts):
                _read_indexed(tokens, 'vert', v)
                uvs.append(tokens.vector(2))
                starts.append(tokens.int())
                counts.append(tokens.int())
        elif key == 'numtris':
            num_tris = tokens.int()
            for t in range(num_tris):
                _read_indexed(tokens, 'tri', t)
                triangles.append([tokens.int(), tokens.int(), tokens.int()])
        elif key == 'numweights':
            num_weights = tokens.int()
            for w in range(num_weights):
                _read_indexed(tokens, 'weight', w)
                wline = tokens.line
                joint = tokens.int()
                if not 0 <= joint < num_joints:
                    raise FormatError(f"weight {w} references joint {joint}, model has {num_joints}", wline)
                weight_joints.append(joint)
                biases.append(tokens.float())
                offsets.append(tokens.vector(3))
        else:
            raise FormatError(f"unknown mesh keyword '{key}'", line)
    tokens.expect('}')

    num_weights = len(weight_joints)
    for v, (start, count) in enumerate(zip(starts, counts)):
        if count < 1 or start < 0 or start + count > num_weights:
            raise FormatError(
                f"vertex {v} uses weights {start}..{start + count - 1}, mesh has {num_weights}", start_line)
    triangles = np.array(triangles, dtype=np.int64).reshape(-1, 3)
    if triangles.size and (triangles.min() < 0 or triangles.max() >= len(uvs)):
        raise FormatError(f"triangle vertex index outside 0..{len(uvs) - 1}", start_line)

    return Md5Mesh(
        shader=shader,
        uvs=readonly(np.array(uvs, dtype=np.float64).reshape(-1, 2)),
        weight_start=readonly(np.array(starts, dtype=np.int64)),
        weight_count=readonly(np.array(counts, dtype=np.int64)),
        triangles=readonly(triangles),
        weight_joints=readonly(np.array(weight_joints, dtype=np.int64)),
        weight_biases=readonly(np.array(biases, dtype=np.float64)),
        weight_offsets=readonly(np.array(offsets, dtype=np.float64).reshape(-1, 3)),
    )


def parse_md5mesh(text: str) -> Md5Model:
    """
    Parse the text of an .md5mesh file.

    Parameters:
    - text (str): File contents.

    Returns:
    - Md5Model with the joint list, absolute bind pose and sub-meshes.

    Raises FormatError on malformed input.
    """
    tokens = _Tokens(text)
    header = {'version': config.MD5_VERSION, 'commandline': ''}
    declared = {}
    joints, pose, meshes = None, None, []

    while not tokens.at_end():
        line = tokens.line
        key = tokens.word()
        if _read_header(tokens, key, header):
            continue
        if key in ('numJoints', 'numMeshes'):
            declared[key] = tokens.int()
        elif key == 'joints':
            joints, pose = _parse_mesh_joints(tokens)
        elif key == 'mesh':
            if joints is None:
                raise FormatError("mesh block before joints block", line)
            meshes.append(_parse_mesh_block(tokens, len(joints)))
        else:
            raise FormatError(f"unknown keyword '{key}'", line)

    if joints is None:
        raise FormatError("missing joints block", tokens.line)
    _check_count('numJoints', declared.get('numJoints'), len(joints), tokens.line)
    _check_count('numMeshes', declared.get('numMeshes'), len(meshes), tokens.line)
    logging.debug("md5mesh: %d joints, %d meshes", len(joints), len(meshes))

    return Md5Model(header['version'], header['commandline'], tuple(joints), pose, tuple(meshes))


def _parse_hierarchy(tokens: _Tokens) -> List[Joint]:
    joints = []
    total = 0
    tokens.expect('{')
    while tokens.peek() != '}':
        line = tokens.line
        name = tokens.string()
        parent = tokens.int()
        flags = tokens.int()
        start_index = tokens.int()
        _check_parent(len(joints), parent, line)
        if flags & ~ALL_CHANNELS or flags < 0:
            raise FormatError(f"joint '{name}' has invalid flags {flags}", line)
        if flags and start_index != total:
            raise FormatError(
                f"joint '{name}' starts at component {start_index}, expected {total}", line)
        total += popcount(flags)
        joints.append(Joint(name, parent, flags, start_index))
    tokens.expect('}')
    return joints


def _parse_vectors(tokens: _Tokens, sizes: Tuple[int, ...]) -> List[List[List[float]]]:
    rows = []
    tokens.expect('{')
    while tokens.peek() != '}':
        rows.append([tokens.vector(n) for n in sizes])
    tokens.expect('}')
    return rows


def _parse_frame(tokens: _Tokens) -> List[float]:
    values = []
    tokens.expect('{')
    while tokens.peek() != '}':
        values.append(tokens.float())
    tokens.expect('}')
    return values


def parse_md5anim(text: str) -> Md5Anim:
    """
    Parse the text of an .md5anim file.

    Parameters:
    - text (str): File contents.

    Returns:
    - Md5Anim with hierarchy, per-frame bounds, parent-relative base frame
      and the flat component stream of every frame.

    Raises FormatError on malformed input.
    """
    tokens = _Tokens(text)
    header = {'version': config.MD5_VERSION, 'commandline': ''}
    declared = {}
    hierarchy, bounds, base = None, None, None
    frames = {}

    while not tokens.at_end():
        line = tokens.line
        key = tokens.word()
        if _read_header(tokens, key, header):
            continue
        if key in ('numFrames', 'numJoints', 'numAnimatedComponents'):
            declared[key] = tokens.int()
        elif key == 'frameRate':
            declared[key] = tokens.float()
        elif key == 'hierarchy':
            hierarchy = _parse_hierarchy(tokens)
        elif key == 'bounds':
            bounds = _parse_vectors(tokens, (3, 3))
        elif key == 'baseframe':
            base = _parse_vectors(tokens, (3, 3))
        elif key == 'frame':
            index = tokens.int()
            if index in frames:
                raise FormatError(f"frame {index} defined twice", line)
            frames[index] = (_parse_frame(tokens), line)
        else:
            raise FormatError(f"unknown keyword '{key}'", line)

    line = tokens.line
    for name, block in (('hierarchy', hierarchy), ('bounds', bounds), ('baseframe', base)):
        if block is None:
            raise FormatError(f"missing {name} block", line)
    _check_count('numJoints', declared.get('numJoints'), len(hierarchy), line)
    _check_count('baseframe joints', len(hierarchy), len(base), line)
    num_frames = declared.get('numFrames', len(frames))
    _check_count('numFrames', num_frames, len(frames), line)
    _check_count('bounds', num_frames, len(bounds), line)

    num_components = sum(popcount(j.flags) for j in hierarchy)
    _check_count('numAnimatedComponents', declared.get('numAnimatedComponents'), num_components, line)

    frame_list = []
    for f in range(num_frames):
        if f not in frames:
            raise FormatError(f"frame {f} missing", line)
        values, frame_line = frames[f]
        _check_count(f"frame {f} components", num_components, len(values), frame_line)
        frame_list.append(Frame(f, readonly(np.array(values, dtype=np.float64))))

    base = np.array(base, dtype=np.float64).reshape(-1, 2, 3)
    base_frame = Pose(readonly(base[:, 0].copy()), readonly(complete_quaternions(base[:, 1])))
    logging.debug("md5anim: %d joints, %d frames, %d components",
                  len(hierarchy), num_frames, num_components)

    return Md5Anim(
        version=header['version'],
        commandline=header['commandline'],
        frame_rate=declared.get('frameRate', float(config.DEFAULT_FPS)),
        num_animated_components=num_components,
        hierarchy=tuple(hierarchy),
        bounds=readonly(np.array(bounds, dtype=np.float64).reshape(-1, 2, 3)),
        base_frame=base_frame,
        frames=tuple(frame_list),
    )


def read_md5mesh(path) -> Md5Model:
    """
    Load an .md5mesh file.

    Parameters:
    - path (str or Path): Path to the file.
    """
    return parse_md5mesh(Path(path).read_text(encoding='utf-8'))


def read_md5anim(path) -> Md5Anim:
    """
    Load an .md5anim file.

    Parameters:
    - path (str or Path): Path to the file.
    """
    return parse_md5anim(Path(path).read_text(encoding='utf-8'))

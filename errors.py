import logging


class FormatError(ValueError):
    """Malformed MD5 text: bad grammar, out-of-range index or count mismatch."""

    def __init__(self, message: str, line: int = None):
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class ConsistencyError(ValueError):
    """Mesh and animation joint hierarchies disagree."""


class GeometryWarning(UserWarning):
    """
    Non-fatal data-quality problem found while skinning or deriving geometry.

    Parameters:
    - message: Human readable description.
    - mesh:    Index of the mesh the problem belongs to (None when unknown).
    - element: Index of the offending vertex or triangle.
    """

    def __init__(self, message: str, mesh: int = None, element: int = None):
        super().__init__(message)
        self.mesh = mesh
        self.element = element


def log_warning(warning: GeometryWarning) -> None:
    logging.warning("%s", warning)

class MeshError(Exception):
    """Base class for every error raised by the mesh compiler."""


class ObjParseError(MeshError, ValueError):
    """Malformed or empty text mesh input."""

    def __init__(self, message: str, line: int | None = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class IntegrityError(MeshError, RuntimeError):
    """
    Two different vertex tuples produced the same packed key.

    This is an internal fault, not bad input. It is never caught inside the
    package.
    """


class ChunkFormatError(MeshError, ValueError):
    """Binary mesh data that cannot be decoded."""

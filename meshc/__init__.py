__version__ = "1.0.0"

from meshc.compiler import CompileStats, compile_file, compile_mesh, compile_text
from meshc.errors import ChunkFormatError, IntegrityError, MeshError, ObjParseError
from meshc.format.chunks import ChunkReader, ChunkTag, ChunkWriter, MeshChunk, read_mesh
from meshc.importers.obj import ObjImporter
from meshc.settings import CompilerSettings, PackMode

__all__ = [
    "ChunkFormatError",
    "ChunkReader",
    "ChunkTag",
    "ChunkWriter",
    "CompileStats",
    "CompilerSettings",
    "IntegrityError",
    "MeshChunk",
    "MeshError",
    "ObjImporter",
    "ObjParseError",
    "PackMode",
    "compile_file",
    "compile_mesh",
    "compile_text",
    "read_mesh",
]

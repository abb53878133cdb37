# meshc/compiler.py
from __future__ import annotations

import io
import time
from dataclasses import dataclass
from pathlib import Path

from meshc.builder import BuildResult, PrimitiveBuilder
from meshc.format.chunks import ChunkWriter
from meshc.importers.obj import ObjImporter
from meshc.settings import CompilerSettings
from meshc.types import ParsedMesh


@dataclass(slots=True)
class CompileStats:
    records: int = 0
    groups: int = 0
    triangles: int = 0
    batches: int = 0
    primitives: int = 0
    vertices: int = 0
    indices: int = 0
    size: int = 0
    parse_seconds: float = 0.0
    convert_seconds: float = 0.0

    def summary(self) -> str:
        return (
            f"parse {self.parse_seconds:f} [s]\n"
            f"convert {self.convert_seconds:f} [s]\n"
            f"# {self.records}, g {self.groups}, b {self.batches}, "
            f"p {self.primitives}, v {self.vertices}, i {self.indices}\n"
            f"size: {self.size}"
        )


def compile_mesh(
    mesh: ParsedMesh, settings: CompilerSettings | None = None
) -> tuple[bytes, BuildResult]:
    """Run the builder over an already parsed mesh and return the asset bytes."""
    settings = settings or CompilerSettings()
    buffer = io.BytesIO()
    result = PrimitiveBuilder(mesh, ChunkWriter(buffer), settings).build()
    return buffer.getvalue(), result


def compile_text(text: str, settings: CompilerSettings | None = None) -> bytes:
    settings = settings or CompilerSettings()
    mesh = ObjImporter(settings).parse(text)
    data, _ = compile_mesh(mesh, settings)
    return data


def compile_file(
    src: Path, dst: Path, settings: CompilerSettings | None = None
) -> CompileStats:
    """
    Compile an OBJ file to the chunked binary format.

    The output file is only written once compilation has succeeded.
    """
    settings = settings or CompilerSettings()
    stats = CompileStats()

    start = time.perf_counter()
    mesh = ObjImporter(settings).import_file(src)
    parsed = time.perf_counter()

    data, result = compile_mesh(mesh, settings)
    converted = time.perf_counter()

    Path(dst).write_bytes(data)

    stats.records = mesh.num_records
    stats.groups = len(mesh.groups)
    stats.triangles = mesh.num_triangles
    stats.batches = result.num_batches
    stats.primitives = result.num_primitives
    stats.vertices = result.num_vertices
    stats.indices = result.num_indices
    stats.size = len(data)
    stats.parse_seconds = parsed - start
    stats.convert_seconds = converted - parsed
    return stats

# meshc/importers/obj.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Set, Tuple

from meshc.errors import ObjParseError
from meshc.geometry.dedup import VertexTable
from meshc.importers.base import MeshImporter
from meshc.settings import CompilerSettings
from meshc.types import (
    MAX_NAME_BYTES,
    Group,
    ParsedMesh,
    Triangle,
    Vec3,
    VertexKey,
)


class ObjImporter(MeshImporter):
    """
    Wavefront OBJ reader.

    Supported:
      - v (optional w), vn, vt (1-3 components)
      - f with 3 or more corners, fan-triangulated
      - g, usemtl
      - negative (relative) indices

    Everything else is skipped; each unsupported keyword is reported once
    per importer.
    """

    def __init__(self, settings: CompilerSettings | None = None) -> None:
        self.settings = settings or CompilerSettings()
        self._warned: Set[str] = set()

    def import_file(self, path: Path) -> ParsedMesh:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return self._parse_lines(f, str(path))

    def parse(self, text: str, source: str = "<string>") -> ParsedMesh:
        return self._parse_lines(text.splitlines(), source)

    def _parse_lines(self, lines: Iterable[str], source: str) -> ParsedMesh:
        positions: List[Vec3] = []
        normals: List[Vec3] = []
        texcoords: List[Vec3] = []
        table = VertexTable()
        triangles: List[Triangle] = []
        groups: List[Group] = []

        group = Group(name="", material="", start_triangle=0, num_triangles=0)

        def flush_group() -> None:
            group.num_triangles = len(triangles) - group.start_triangle
            if group.num_triangles > 0:
                groups.append(
                    Group(
                        group.name,
                        group.material,
                        group.start_triangle,
                        group.num_triangles,
                    )
                )
                group.start_triangle = len(triangles)
                group.num_triangles = 0

        num_records = 0
        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            num_records += 1
            parts = line.split()
            tag = parts[0]

            if tag == "f":
                self._parse_face(
                    parts[1:],
                    lineno,
                    table,
                    triangles,
                    (len(positions), len(texcoords), len(normals)),
                )

            elif tag == "g":
                group.name = self._parse_name(parts, lineno)

            elif tag in ("v", "vn", "vt", "vp"):
                flush_group()

                if tag == "v":
                    positions.append(self._parse_position(parts, lineno))
                elif tag == "vn":
                    nx, ny, nz = self._parse_floats(parts[1:4], 3, lineno)
                    normals.append((nx, ny, nz))
                elif tag == "vt":
                    texcoords.append(self._parse_texcoord(parts, lineno))
                else:
                    self._warn_once(
                        tag, "'parameter space vertices' are unsupported."
                    )

            elif tag == "usemtl":
                material = self._parse_name(parts, lineno)
                if material != group.material:
                    flush_group()
                group.material = material

            else:
                self._warn_once(tag, f"'{tag}' records are unsupported.")

        flush_group()

        if not triangles:
            raise ObjParseError(f"No geometry found in OBJ: {source}")

        return ParsedMesh(
            positions=positions,
            normals=normals,
            texcoords=texcoords,
            table=table,
            triangles=triangles,
            groups=groups,
            num_records=num_records,
        )

    def _parse_face(
        self,
        corners: List[str],
        lineno: int,
        table: VertexTable,
        triangles: List[Triangle],
        counts: Tuple[int, int, int],
    ) -> None:
        # Degenerate faces produce no triangles and no vertices.
        if len(corners) < 3:
            return

        keys: List[VertexKey] = []
        for edge, token in enumerate(corners):
            v_idx, vt_idx, vn_idx = self._parse_face_vertex(
                token, lineno, counts
            )
            try:
                key = table.insert(v_idx, vt_idx, vn_idx, self._corner_tag(edge))
            except ValueError as e:
                raise ObjParseError(str(e), lineno) from None
            keys.append(key)

        for k in range(2, len(keys)):
            triangles.append(Triangle((keys[0], keys[k - 1], keys[k])))

    def _corner_tag(self, edge: int) -> int:
        if not self.settings.barycentric:
            return 0
        if edge < 3:
            return edge
        # Fan corners after the first triangle pair with corner 0 (tag 0)
        # and the previous corner, so alternate between 1 and 2.
        return 1 if edge % 2 == 1 else 2

    def _parse_name(self, parts: List[str], lineno: int) -> str:
        name = parts[1] if len(parts) > 1 else ""
        size = len(name.encode("utf-8"))
        if size > MAX_NAME_BYTES:
            raise ObjParseError(
                f"name is {size} bytes, limit is {MAX_NAME_BYTES}", lineno
            )
        return name

    def _parse_position(self, parts: List[str], lineno: int) -> Vec3:
        px, py, pz = self._parse_floats(parts[1:4], 3, lineno)
        pw = self._parse_floats(parts[4:5], 1, lineno)[0] if len(parts) > 4 else 1.0
        if pw == 0.0:
            raise ObjParseError("vertex w component is zero", lineno)

        inv_w = self.settings.scale / pw
        return (px * inv_w, py * inv_w, pz * inv_w)

    def _parse_texcoord(self, parts: List[str], lineno: int) -> Vec3:
        values = self._parse_floats(parts[1:4], 1, lineno)
        values += [0.0] * (3 - len(values))
        return (values[0], values[1], values[2])

    def _parse_floats(
        self, tokens: List[str], required: int, lineno: int
    ) -> List[float]:
        if len(tokens) < required:
            raise ObjParseError(
                f"expected {required} components, got {len(tokens)}", lineno
            )
        try:
            return [float(t) for t in tokens]
        except ValueError:
            raise ObjParseError(
                f"malformed number in {' '.join(tokens)!r}", lineno
            ) from None

    def _parse_index(self, val: str, count: int, what: str, lineno: int) -> int:
        """1-based; negative values are relative to the current count."""
        try:
            idx = int(val)
        except ValueError:
            raise ObjParseError(f"malformed {what} index {val!r}", lineno) from None

        idx = idx + count if idx < 0 else idx - 1
        if idx < 0 or idx >= count:
            raise ObjParseError(
                f"{what} index {val} out of range ({count} defined)", lineno
            )
        return idx

    def _parse_face_vertex(
        self, token: str, lineno: int, counts: Tuple[int, int, int]
    ) -> Tuple[int, int, int]:
        """
        Parse a face corner: v, v/vt, v//vn or v/vt/vn.
        Missing texcoord / normal come back as -1.
        """
        num_positions, num_texcoords, num_normals = counts
        parts = token.split("/")

        v = self._parse_index(parts[0], num_positions, "position", lineno)
        vt = (
            self._parse_index(parts[1], num_texcoords, "texcoord", lineno)
            if len(parts) > 1 and parts[1]
            else -1
        )
        vn = (
            self._parse_index(parts[2], num_normals, "normal", lineno)
            if len(parts) > 2 and parts[2]
            else -1
        )
        return v, vt, vn

    def _warn_once(self, kind: str, message: str) -> None:
        if kind in self._warned:
            return
        self._warned.add(kind)
        print(f"[obj] warning: {message}")

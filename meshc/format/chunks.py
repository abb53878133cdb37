# meshc/format/chunks.py
from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, List, Tuple

import numpy as np

from meshc.codec.index_codec import decode_indices
from meshc.errors import ChunkFormatError
from meshc.geometry.layout import Attrib, AttribType, VertexAttribute, VertexLayout
from meshc.types import MAX_NAME_BYTES, Aabb, Bounds, Obb, Primitive, Sphere


class ChunkTag(bytes, Enum):
    VERTEX_BUFFER = b"VB \x01"
    INDEX_BUFFER = b"IB \x00"
    INDEX_BUFFER_COMPRESSED = b"IBC\x00"
    PRIMITIVES = b"PRI\x00"


class ChunkWriter:
    """
    Serializes batches to the chunked mesh format.

    Format per batch:
        VB 1  [Bounds] [Layout] [u16 count] [vertices]
        IB 0  [u32 count] [u16 indices]       or
        IBC0  [u32 count] [u32 size] [bitstream]
        PRI0  [str material] [u16 count] per primitive:
              [str name] [u32 start index] [u32 index count]
              [u32 start vertex] [u32 vertex count] [Bounds]
    Strings are u16 length + UTF-8 bytes. Everything little-endian.
    """

    _sphere_struct = struct.Struct("<4f")
    _aabb_struct = struct.Struct("<6f")
    _obb_struct = struct.Struct("<16f")
    _layout_header = struct.Struct("<BH")
    _layout_attr = struct.Struct("<HHBHBB")
    _prim_struct = struct.Struct("<4I")

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def _write(self, data: bytes) -> None:
        self.stream.write(data)

    def write_string(self, text: str) -> None:
        raw = text.encode("utf-8")
        if len(raw) > MAX_NAME_BYTES:
            raise ValueError(f"name too long for u16 length: {len(raw)} bytes")
        self._write(struct.pack("<H", len(raw)) + raw)

    def write_bounds(self, bounds: Bounds) -> None:
        s = bounds.sphere
        self._write(self._sphere_struct.pack(*s.center, s.radius))
        self._write(self._aabb_struct.pack(*bounds.aabb.min, *bounds.aabb.max))
        # Column-major, translation in elements 12..14.
        self._write(
            self._obb_struct.pack(*np.asarray(bounds.obb.mtx, np.float32).T.reshape(-1))
        )

    def write_layout(self, layout: VertexLayout) -> None:
        attrs = sorted(layout.attributes, key=lambda a: a.attrib)
        self._write(self._layout_header.pack(len(attrs), layout.stride))
        for a in attrs:
            self._write(
                self._layout_attr.pack(
                    a.offset, a.attrib, a.num, a.type, a.normalized, a.as_int
                )
            )
        self._write(struct.pack("<I", layout.hash))

    def write_vertex_buffer(
        self, layout: VertexLayout, vertices: np.ndarray, bounds: Bounds
    ) -> None:
        if len(vertices) > 0xFFFF:
            raise ValueError(f"{len(vertices)} vertices exceed the u16 count")
        self._write(ChunkTag.VERTEX_BUFFER.value)
        self.write_bounds(bounds)
        self.write_layout(layout)
        self._write(struct.pack("<H", len(vertices)))
        self._write(np.ascontiguousarray(vertices).tobytes())

    def write_index_buffer(self, indices: np.ndarray) -> None:
        self._write(ChunkTag.INDEX_BUFFER.value)
        self._write(struct.pack("<I", len(indices)))
        self._write(np.asarray(indices, dtype="<u2").tobytes())

    def write_compressed_index_buffer(self, num_indices: int, data: bytes) -> None:
        self._write(ChunkTag.INDEX_BUFFER_COMPRESSED.value)
        self._write(struct.pack("<II", num_indices, len(data)))
        self._write(data)

    def write_primitives(self, material: str, primitives: List[Primitive]) -> None:
        self._write(ChunkTag.PRIMITIVES.value)
        self.write_string(material)
        self._write(struct.pack("<H", len(primitives)))
        for prim in primitives:
            if prim.bounds is None:
                raise ValueError(f"primitive {prim.name!r} has no bounds")
            self.write_string(prim.name)
            self._write(
                self._prim_struct.pack(
                    prim.start_index,
                    prim.num_indices,
                    prim.start_vertex,
                    prim.num_vertices,
                )
            )
            self.write_bounds(prim.bounds)


@dataclass
class MeshChunk:
    """One decoded VB / IB / PRI unit."""

    layout: VertexLayout
    vertices: np.ndarray
    bounds: Bounds
    indices: np.ndarray = field(default_factory=lambda: np.zeros(0, np.uint16))
    compressed: bool = False
    material: str = ""
    primitives: List[Primitive] = field(default_factory=list)


class ChunkReader:
    """Reads what ChunkWriter wrote."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def _take(self, size: int) -> bytes:
        if self.pos + size > len(self.data):
            raise ChunkFormatError(
                f"Unexpected end of data at offset {self.pos} (need {size} bytes)"
            )
        chunk = self.data[self.pos : self.pos + size]
        self.pos += size
        return chunk

    def _unpack(self, st: struct.Struct) -> Tuple:
        return st.unpack(self._take(st.size))

    def read_tag(self) -> ChunkTag:
        raw = self._take(4)
        try:
            return ChunkTag(raw)
        except ValueError:
            raise ChunkFormatError(f"Unknown chunk tag {raw!r}") from None

    def read_string(self) -> str:
        (length,) = struct.unpack("<H", self._take(2))
        return self._take(length).decode("utf-8")

    def read_bounds(self) -> Bounds:
        cx, cy, cz, r = self._unpack(ChunkWriter._sphere_struct)
        aabb = self._unpack(ChunkWriter._aabb_struct)
        obb = np.asarray(self._unpack(ChunkWriter._obb_struct), np.float32)
        return Bounds(
            sphere=Sphere((cx, cy, cz), r),
            aabb=Aabb(aabb[0:3], aabb[3:6]),
            obb=Obb(obb.reshape(4, 4).T.copy()),
        )

    def read_layout(self) -> VertexLayout:
        num, stride = self._unpack(ChunkWriter._layout_header)
        attrs = []
        for _ in range(num):
            offset, attrib, count, type_id, normalized, as_int = self._unpack(
                ChunkWriter._layout_attr
            )
            try:
                attrs.append(
                    VertexAttribute(
                        Attrib(attrib),
                        count,
                        AttribType(type_id),
                        bool(normalized),
                        bool(as_int),
                        offset,
                    )
                )
            except ValueError as e:
                raise ChunkFormatError(f"Unsupported vertex attribute: {e}") from None
        (layout_hash,) = struct.unpack("<I", self._take(4))

        layout = VertexLayout(tuple(sorted(attrs, key=lambda a: a.offset)))
        if layout.stride != stride:
            raise ChunkFormatError(
                f"Layout stride {stride} does not match attributes ({layout.stride})"
            )
        if layout.hash != layout_hash:
            raise ChunkFormatError("Layout hash mismatch")
        return layout

    def read_vertex_buffer(self) -> MeshChunk:
        bounds = self.read_bounds()
        layout = self.read_layout()
        (count,) = struct.unpack("<H", self._take(2))
        raw = self._take(count * layout.stride)
        vertices = np.frombuffer(raw, dtype=layout.dtype, count=count).copy()
        return MeshChunk(layout=layout, vertices=vertices, bounds=bounds)

    def read_index_buffer(self) -> np.ndarray:
        (count,) = struct.unpack("<I", self._take(4))
        return np.frombuffer(self._take(count * 2), dtype="<u2").astype(np.uint16)

    def read_compressed_index_buffer(self) -> np.ndarray:
        count, size = struct.unpack("<II", self._take(8))
        return decode_indices(self._take(size), count)

    def read_primitives(self) -> Tuple[str, List[Primitive]]:
        material = self.read_string()
        (count,) = struct.unpack("<H", self._take(2))
        primitives = []
        for _ in range(count):
            name = self.read_string()
            start_index, num_indices, start_vertex, num_vertices = self._unpack(
                ChunkWriter._prim_struct
            )
            primitives.append(
                Primitive(
                    name,
                    start_index,
                    num_indices,
                    start_vertex,
                    num_vertices,
                    self.read_bounds(),
                )
            )
        return material, primitives


def read_mesh(data: bytes) -> List[MeshChunk]:
    """Decode a whole compiled mesh into its batches."""
    reader = ChunkReader(data)
    chunks: List[MeshChunk] = []
    current: MeshChunk | None = None

    while not reader.at_end():
        tag = reader.read_tag()

        if tag == ChunkTag.VERTEX_BUFFER:
            current = reader.read_vertex_buffer()
            chunks.append(current)
            continue

        if current is None:
            raise ChunkFormatError(f"{tag.name} chunk before any vertex buffer")

        if tag == ChunkTag.INDEX_BUFFER:
            current.indices = reader.read_index_buffer()
        elif tag == ChunkTag.INDEX_BUFFER_COMPRESSED:
            current.indices = reader.read_compressed_index_buffer()
            current.compressed = True
        else:
            current.material, current.primitives = reader.read_primitives()

    return chunks

# meshc/builder.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

from meshc.codec.index_codec import compress_index_buffer
from meshc.format.chunks import ChunkWriter
from meshc.geometry.bounds import calc_bounds
from meshc.geometry.cache import optimize_triangle_order
from meshc.geometry.layout import Attrib, VertexLayout, derive_layout
from meshc.geometry.tangents import calc_tangents
from meshc.settings import CompilerSettings
from meshc.types import (
    MAX_BATCH_VERTICES,
    UNASSIGNED,
    Group,
    ParsedMesh,
    Primitive,
    VertexKey,
)


@dataclass(slots=True)
class BuildResult:
    layout: VertexLayout
    num_batches: int = 0
    num_primitives: int = 0
    num_vertices: int = 0
    num_indices: int = 0
    compressed_bytes: int = 0


class PrimitiveBuilder:
    """
    Turns a parsed mesh into VB / IB / PRI chunk batches.

    A batch collects consecutive groups that share a material until the
    vertex budget is spent. Each group contributes one Primitive. Vertex
    and index scratch buffers are sized once for the worst case and
    rewound at every flush.
    """

    def __init__(
        self,
        mesh: ParsedMesh,
        writer: ChunkWriter,
        settings: CompilerSettings | None = None,
    ) -> None:
        self.mesh = mesh
        self.writer = writer
        self.settings = settings or CompilerSettings()

        has_texcoord, has_normal = mesh.table.apply_mixed_defaults()
        self.layout = derive_layout(has_texcoord, has_normal, self.settings)
        self.tangents = self.layout.has(Attrib.TANGENT)

        self._positions = np.asarray(mesh.positions, np.float32).reshape(-1, 3)
        self._texcoords = np.asarray(
            [(u, v) for u, v, _ in mesh.texcoords], np.float32
        ).reshape(-1, 2)
        self._normals = _normalized(
            np.asarray(mesh.normals, np.float32).reshape(-1, 3)
        )

        capacity = mesh.num_triangles * 3
        self._vertices = self.layout.allocate(capacity)
        self._indices = np.zeros(capacity, dtype=np.uint16)

        # Attribute indices of each emitted slot; filled into the vertex
        # buffer in one pass at flush time.
        self._slot_position = np.zeros(capacity, np.int64)
        self._slot_texcoord = np.zeros(capacity, np.int64)
        self._slot_normal = np.zeros(capacity, np.int64)
        self._slot_tag = np.zeros(capacity, np.int64)

        self._num_vertices = 0
        self._num_indices = 0
        self._prim_start_vertex = 0
        self._prim_start_index = 0
        self._primitives: List[Primitive] = []
        self._material = ""

        self.result = BuildResult(layout=self.layout)

    def build(self) -> BuildResult:
        groups = sorted(self.mesh.groups, key=lambda g: g.material)
        if not groups:
            return self.result

        self._material = groups[0].material
        for group in groups:
            self._emit_group(group)
            self._close_primitive(group.name)

        if self._primitives:
            self._flush()

        return self.result

    def _emit_group(self, group: Group) -> None:
        start = group.start_triangle
        for tri in self.mesh.triangles[start : start + group.num_triangles]:
            if (
                group.material != self._material
                or self._num_vertices + 3 > MAX_BATCH_VERTICES
            ):
                self._close_primitive(group.name)
                self._flush()
                self._material = group.material

            a, b, c = (self._emit_corner(key) for key in tri.keys)
            if self.settings.ccw:
                b, c = c, b
            self._indices[self._num_indices : self._num_indices + 3] = (a, b, c)
            self._num_indices += 3

    def _emit_corner(self, key: VertexKey) -> int:
        vertex = self.mesh.table[key]
        if vertex.emit_index == UNASSIGNED:
            slot = self._num_vertices
            vertex.emit_index = slot
            self._slot_position[slot] = vertex.position
            self._slot_texcoord[slot] = max(vertex.texcoord, 0)
            self._slot_normal[slot] = max(vertex.normal, 0)
            self._slot_tag[slot] = vertex.tag
            self._num_vertices += 1
        return vertex.emit_index

    def _close_primitive(self, name: str) -> None:
        num_indices = self._num_indices - self._prim_start_index
        if num_indices == 0:
            return

        self._primitives.append(
            Primitive(
                name=name,
                start_index=self._prim_start_index,
                num_indices=num_indices,
                start_vertex=self._prim_start_vertex,
                num_vertices=self._num_vertices - self._prim_start_vertex,
            )
        )
        self._prim_start_vertex = self._num_vertices
        self._prim_start_index = self._num_indices

    def _fill_vertices(self, vertices: np.ndarray) -> None:
        n = len(vertices)
        layout = self.layout

        layout.pack(vertices, Attrib.POSITION, self._positions[self._slot_position[:n]])

        if layout.has(Attrib.COLOR1):
            colors = np.zeros((n, 4), np.float32)
            colors[np.arange(n), self._slot_tag[:n]] = 1.0
            layout.pack(vertices, Attrib.COLOR1, colors)

        if layout.has(Attrib.TEXCOORD0):
            uv = self._texcoords[self._slot_texcoord[:n]].copy()
            if self.settings.flip_v:
                uv[:, 1] = -uv[:, 1]
            layout.pack(vertices, Attrib.TEXCOORD0, uv)

        if layout.has(Attrib.NORMAL):
            layout.pack(vertices, Attrib.NORMAL, self._normals[self._slot_normal[:n]])

    def _flush(self) -> None:
        if not self._primitives:
            self._reset()
            return

        vertices = self._vertices[: self._num_vertices]
        indices = self._indices[: self._num_indices]
        self._fill_vertices(vertices)

        if self.tangents:
            calc_tangents(vertices, self.layout, indices)

        for prim in self._primitives:
            span = slice(prim.start_index, prim.start_index + prim.num_indices)
            indices[span] = optimize_triangle_order(
                indices[span], len(vertices), self.settings.cache_size
            )

        compressed = None
        if self.settings.compress:
            compressed, remap = compress_index_buffer(indices, vertices)
            indices[:] = remap[indices]

        positions = self.layout.unpack(vertices, Attrib.POSITION)
        steps = self.settings.obb_steps
        for prim in self._primitives:
            if prim.num_vertices:
                points = positions[
                    prim.start_vertex : prim.start_vertex + prim.num_vertices
                ]
            else:
                # Every vertex was already emitted by an earlier primitive.
                points = positions[
                    indices[prim.start_index : prim.start_index + prim.num_indices]
                ]
            prim.bounds = calc_bounds(points, steps)

        self.writer.write_vertex_buffer(
            self.layout, vertices, calc_bounds(positions, steps)
        )
        if compressed is None:
            self.writer.write_index_buffer(indices)
        else:
            self.writer.write_compressed_index_buffer(len(indices), compressed)
            self.result.compressed_bytes += len(compressed)
        self.writer.write_primitives(self._material, self._primitives)

        self.result.num_batches += 1
        self.result.num_primitives += len(self._primitives)
        self.result.num_vertices += len(vertices)
        self.result.num_indices += len(indices)

        self._reset()

    def _reset(self) -> None:
        self._primitives = []
        self.mesh.table.reset_emission()
        self._num_vertices = 0
        self._num_indices = 0
        self._prim_start_vertex = 0
        self._prim_start_index = 0


def _normalized(v: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(v, axis=1, keepdims=True)
    return np.divide(v, length, out=np.zeros_like(v), where=length > 0)

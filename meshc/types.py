# meshc/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, NewType, Tuple

import numpy as np

if TYPE_CHECKING:
    from meshc.geometry.dedup import VertexTable

VertexKey = NewType("VertexKey", int)  # 64-bit packed vertex identity

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

UNASSIGNED = -1  # CanonicalVertex.emit_index before the vertex joins a batch

MAX_BATCH_VERTICES = 65533  # keeps every u16 index below 65534

MAX_NAME_BYTES = 0xFFFF  # group / material names carry a u16 length prefix


@dataclass(slots=True)
class CanonicalVertex:
    """One distinct (position, texcoord, normal, corner tag) tuple."""

    position: int
    texcoord: int
    normal: int
    tag: int
    emit_index: int = UNASSIGNED


@dataclass(frozen=True, slots=True)
class Triangle:
    """
    Three vertex keys in fan order.

    Winding is not baked in: the builder swaps corners 1 and 2 when
    emitting indices for counter-clockwise output.
    """

    keys: Tuple[VertexKey, VertexKey, VertexKey]


@dataclass(slots=True)
class Group:
    """A contiguous run of triangles sharing a group name and material."""

    name: str
    material: str
    start_triangle: int
    num_triangles: int


@dataclass(frozen=True, slots=True)
class Sphere:
    center: Vec3
    radius: float


@dataclass(frozen=True, slots=True)
class Aabb:
    min: Vec3
    max: Vec3


@dataclass(frozen=True, slots=True)
class Obb:
    """Box as a 4x4 matrix: rotation columns scaled by half-extents, translation = center."""

    mtx: np.ndarray = field(compare=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Obb):
            return NotImplemented
        return bool(np.array_equal(self.mtx, other.mtx))

    @property
    def center(self) -> Vec3:
        x, y, z = (float(v) for v in self.mtx[:3, 3])
        return (x, y, z)

    @property
    def half_extents(self) -> Vec3:
        x, y, z = (float(v) for v in np.linalg.norm(self.mtx[:3, :3], axis=0))
        return (x, y, z)

    @property
    def volume(self) -> float:
        hx, hy, hz = self.half_extents
        return 8.0 * hx * hy * hz


@dataclass(frozen=True, slots=True)
class Bounds:
    sphere: Sphere
    aabb: Aabb
    obb: Obb


@dataclass(slots=True)
class Primitive:
    """One draw-call range inside a batch's vertex and index buffers."""

    name: str
    start_index: int
    num_indices: int
    start_vertex: int
    num_vertices: int
    bounds: Bounds | None = None


@dataclass(slots=True)
class ParsedMesh:
    """Everything the importer produces; input to the builder."""

    positions: List[Vec3]
    normals: List[Vec3]
    texcoords: List[Vec3]
    table: VertexTable
    triangles: List[Triangle]
    groups: List[Group]
    num_records: int = 0

    @property
    def num_triangles(self) -> int:
        return len(self.triangles)

# meshc/geometry/dedup.py
from __future__ import annotations

from typing import Dict, Iterator, Tuple

from meshc.errors import IntegrityError
from meshc.types import UNASSIGNED, CanonicalVertex, VertexKey

INDEX_BITS = 20
TAG_BITS = 4

_INDEX_MASK = (1 << INDEX_BITS) - 1
_TAG_MASK = (1 << TAG_BITS) - 1

# Field value reserved for "attribute not referenced" (-1).
_ABSENT = _INDEX_MASK
MAX_ATTRIBUTE_INDEX = _ABSENT - 1


def _pack_field(value: int, name: str) -> int:
    if value == -1:
        return _ABSENT
    if value < 0 or value > MAX_ATTRIBUTE_INDEX:
        raise ValueError(
            f"{name} index {value} does not fit in {INDEX_BITS} bits"
        )
    return value


def pack_vertex_key(
    position: int, texcoord: int, normal: int, tag: int = 0
) -> VertexKey:
    """
    Pack one vertex identity into 64 bits.

    Layout: position bits 0-19, texcoord 20-39, normal 40-59, tag 60-63.
    Absent texcoord / normal (-1) pack as all-ones.
    """
    if tag < 0 or tag > _TAG_MASK:
        raise ValueError(f"corner tag {tag} does not fit in {TAG_BITS} bits")

    key = _pack_field(position, "position")
    key |= _pack_field(texcoord, "texcoord") << INDEX_BITS
    key |= _pack_field(normal, "normal") << (2 * INDEX_BITS)
    key |= tag << (3 * INDEX_BITS)
    return VertexKey(key)


def unpack_vertex_key(key: VertexKey) -> Tuple[int, int, int, int]:
    def field(shift: int) -> int:
        value = (key >> shift) & _INDEX_MASK
        return -1 if value == _ABSENT else value

    tag = (key >> (3 * INDEX_BITS)) & _TAG_MASK
    return field(0), field(INDEX_BITS), field(2 * INDEX_BITS), tag


class VertexTable:
    """
    Canonical vertex per packed key.

    Keys are fixed at insert time. apply_mixed_defaults() may later fill
    absent texcoord / normal indices in place, so a vertex can stop
    matching its key's -1 fields. The per-vertex emit_index is batch-local
    scratch, cleared by reset_emission() at every flush.
    """

    def __init__(self) -> None:
        self._vertices: Dict[VertexKey, CanonicalVertex] = {}

    def __len__(self) -> int:
        return len(self._vertices)

    def __contains__(self, key: object) -> bool:
        return key in self._vertices

    def __getitem__(self, key: VertexKey) -> CanonicalVertex:
        return self._vertices[key]

    def __iter__(self) -> Iterator[CanonicalVertex]:
        return iter(self._vertices.values())

    def insert(
        self, position: int, texcoord: int, normal: int, tag: int = 0
    ) -> VertexKey:
        key = pack_vertex_key(position, texcoord, normal, tag)

        existing = self._vertices.get(key)
        if existing is None:
            self._vertices[key] = CanonicalVertex(
                position, texcoord, normal, tag
            )
            return key

        if (
            existing.position != position
            or existing.texcoord != texcoord
            or existing.normal != normal
            or existing.tag != tag
        ):
            raise IntegrityError(
                f"Hash collision on key {key:#018x}: "
                f"({existing.position}, {existing.texcoord}, "
                f"{existing.normal}, {existing.tag}) vs "
                f"({position}, {texcoord}, {normal}, {tag})"
            )

        return key

    def reset_emission(self) -> None:
        for vertex in self._vertices.values():
            vertex.emit_index = UNASSIGNED

    def apply_mixed_defaults(self) -> Tuple[bool, bool]:
        """
        Decide texcoord / normal presence for the whole file.

        An attribute is present if any vertex references it. Vertices that
        lack a present attribute fall back to element 0 of that array.
        Returns (has_texcoord, has_normal).
        """
        has_texcoord = any(v.texcoord != -1 for v in self._vertices.values())
        has_normal = any(v.normal != -1 for v in self._vertices.values())

        for vertex in self._vertices.values():
            if has_texcoord and vertex.texcoord == -1:
                vertex.texcoord = 0
            if has_normal and vertex.normal == -1:
                vertex.normal = 0

        return has_texcoord, has_normal

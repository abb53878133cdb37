# meshc/geometry/layout.py
from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence, Tuple

import numpy as np

from meshc.settings import CompilerSettings, PackMode


class Attrib(IntEnum):
    """Vertex attribute ids as written into the layout descriptor."""

    POSITION = 0x0001
    NORMAL = 0x0002
    TANGENT = 0x0003
    COLOR1 = 0x0006
    TEXCOORD0 = 0x0010


class AttribType(IntEnum):
    UINT8 = 0x0001
    HALF = 0x0004
    FLOAT = 0x0005


_NUMPY_TYPES = {
    AttribType.UINT8: "u1",
    AttribType.HALF: "<f2",
    AttribType.FLOAT: "<f4",
}

_TYPE_SIZES = {
    AttribType.UINT8: 1,
    AttribType.HALF: 2,
    AttribType.FLOAT: 4,
}


@dataclass(frozen=True, slots=True)
class VertexAttribute:
    attrib: Attrib
    num: int
    type: AttribType
    normalized: bool = False
    as_int: bool = False
    offset: int = 0

    @property
    def field(self) -> str:
        return self.attrib.name.lower()

    @property
    def size(self) -> int:
        return self.num * _TYPE_SIZES[self.type]


@dataclass(frozen=True, slots=True)
class VertexLayout:
    """
    Fixed vertex format for one output file.

    Attributes are interleaved in declaration order with no padding.
    """

    attributes: Tuple[VertexAttribute, ...]

    @classmethod
    def build(cls, attributes: Sequence[VertexAttribute]) -> VertexLayout:
        placed = []
        offset = 0
        for attr in attributes:
            placed.append(
                VertexAttribute(
                    attr.attrib,
                    attr.num,
                    attr.type,
                    attr.normalized,
                    attr.as_int,
                    offset,
                )
            )
            offset += attr.size
        return cls(tuple(placed))

    @property
    def stride(self) -> int:
        return sum(a.size for a in self.attributes)

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(
            {
                "names": [a.field for a in self.attributes],
                "formats": [(_NUMPY_TYPES[a.type], (a.num,)) for a in self.attributes],
                "offsets": [a.offset for a in self.attributes],
                "itemsize": self.stride,
            }
        )

    @property
    def hash(self) -> int:
        """32-bit id of the attribute set; identical layouts hash equal."""
        h = hashlib.sha256()
        for a in self.attributes:
            h.update(
                struct.pack(
                    "<HHBHBB",
                    a.offset,
                    a.attrib,
                    a.num,
                    a.type,
                    a.normalized,
                    a.as_int,
                )
            )
        return int.from_bytes(h.digest()[:4], "little")

    def has(self, attrib: Attrib) -> bool:
        return any(a.attrib == attrib for a in self.attributes)

    def get(self, attrib: Attrib) -> VertexAttribute:
        for a in self.attributes:
            if a.attrib == attrib:
                return a
        raise KeyError(f"Layout has no {attrib.name} attribute")

    def allocate(self, count: int) -> np.ndarray:
        return np.zeros(count, dtype=self.dtype)

    def pack(self, vertices: np.ndarray, attrib: Attrib, values: np.ndarray) -> None:
        """Write float values (N, <=num) into one attribute, converting to its storage type."""
        attr = self.get(attrib)
        values = np.asarray(values, dtype=np.float32)
        if values.shape[1] < attr.num:
            pad = np.zeros((len(values), attr.num - values.shape[1]), np.float32)
            values = np.hstack([values, pad])
        else:
            values = values[:, : attr.num]

        vertices[attr.field] = _encode(attr, values)

    def unpack(self, vertices: np.ndarray, attrib: Attrib) -> np.ndarray:
        """Read one attribute back as float32 (N, num)."""
        attr = self.get(attrib)
        return _decode(attr, vertices[attr.field])


def _encode(attr: VertexAttribute, values: np.ndarray) -> np.ndarray:
    if attr.type != AttribType.UINT8:
        return values.astype(_NUMPY_TYPES[attr.type])

    if attr.normalized and attr.as_int:
        scaled = values * 127.0 + 128.0
    elif attr.normalized:
        scaled = values * 255.0
    else:
        scaled = values
    return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)


def _decode(attr: VertexAttribute, stored: np.ndarray) -> np.ndarray:
    values = stored.astype(np.float32)
    if attr.type != AttribType.UINT8:
        return values
    if attr.normalized and attr.as_int:
        return (values - 128.0) / 127.0
    if attr.normalized:
        return values / 255.0
    return values


def derive_layout(
    has_texcoord: bool, has_normal: bool, settings: CompilerSettings
) -> VertexLayout:
    """
    Pick the attribute set once for the whole file.

    Tangents need both texcoords and normals; without them the request is
    dropped silently.
    """
    attributes = [VertexAttribute(Attrib.POSITION, 3, AttribType.FLOAT)]

    if settings.barycentric:
        attributes.append(
            VertexAttribute(Attrib.COLOR1, 4, AttribType.UINT8, normalized=True)
        )

    if has_texcoord:
        if settings.pack_uv == PackMode.PACKED:
            attributes.append(VertexAttribute(Attrib.TEXCOORD0, 2, AttribType.HALF))
        else:
            attributes.append(VertexAttribute(Attrib.TEXCOORD0, 2, AttribType.FLOAT))

    if has_normal:
        tangents = settings.tangents and has_texcoord
        if settings.pack_normal == PackMode.PACKED:
            attributes.append(
                VertexAttribute(
                    Attrib.NORMAL, 4, AttribType.UINT8, normalized=True, as_int=True
                )
            )
            if tangents:
                attributes.append(
                    VertexAttribute(
                        Attrib.TANGENT, 4, AttribType.UINT8, normalized=True, as_int=True
                    )
                )
        else:
            attributes.append(VertexAttribute(Attrib.NORMAL, 3, AttribType.FLOAT))
            if tangents:
                attributes.append(VertexAttribute(Attrib.TANGENT, 4, AttribType.FLOAT))

    return VertexLayout.build(attributes)

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

OBB_STEPS_MIN = 1
OBB_STEPS_MAX = 90


class PackMode(IntEnum):
    """Storage precision of normals / texcoords in the vertex buffer."""

    UNPACKED = 0
    PACKED = 1


@dataclass(frozen=True, slots=True)
class CompilerSettings:
    """Options for one compile run. Passed explicitly to every stage."""

    scale: float = 1.0
    ccw: bool = False
    flip_v: bool = False
    obb_steps: int = 17
    pack_normal: PackMode = PackMode.UNPACKED
    pack_uv: PackMode = PackMode.UNPACKED
    tangents: bool = False
    barycentric: bool = False
    compress: bool = False
    cache_size: int = 32

    def __post_init__(self) -> None:
        steps = min(max(int(self.obb_steps), OBB_STEPS_MIN), OBB_STEPS_MAX)
        object.__setattr__(self, "obb_steps", steps)
        object.__setattr__(self, "pack_normal", PackMode(self.pack_normal))
        object.__setattr__(self, "pack_uv", PackMode(self.pack_uv))
        if self.cache_size < 4:
            raise ValueError(f"cache_size must be >= 4, got {self.cache_size}")

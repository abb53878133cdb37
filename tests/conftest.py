import numpy as np
import pytest

from meshc.importers.obj import ObjImporter
from meshc.settings import CompilerSettings

TRIANGLE_OBJ = """
v 0.0 0.0 0.0
v 1.0 0.0 0.0
v 0.0 1.0 0.0
f 1 2 3
"""

QUAD_OBJ = """
v 0.0 0.0 0.0
v 1.0 0.0 0.0
v 1.0 1.0 0.0
v 0.0 1.0 0.0
f 1 2 3 4
"""

# Two materials declared out of order, with texcoords and normals.
TWO_MATERIALS_OBJ = """
# two quads
v 0.0 0.0 0.0
v 1.0 0.0 0.0
v 1.0 1.0 0.0
v 0.0 1.0 0.0
v 2.0 0.0 0.0
v 2.0 1.0 0.0
vt 0.0 0.0
vt 1.0 0.0
vt 1.0 1.0
vt 0.0 1.0
vn 0.0 0.0 1.0
g left
usemtl B
f 1/1/1 2/2/1 3/3/1 4/4/1
g right
usemtl A
f 2/1/1 5/2/1 6/3/1 3/4/1
"""


@pytest.fixture
def settings():
    return CompilerSettings()


@pytest.fixture
def parse():
    """Parse OBJ text with optional CompilerSettings overrides."""

    def _parse(text, **overrides):
        return ObjImporter(CompilerSettings(**overrides)).parse(text)

    return _parse


@pytest.fixture
def grid_obj():
    """OBJ text for an n x n quad grid with per-vertex UVs and one normal."""

    def _grid(n=8, material="grid"):
        lines = []
        for y in range(n + 1):
            for x in range(n + 1):
                lines.append(f"v {x} {y} 0")
                lines.append(f"vt {x / n} {y / n}")
        lines.append("vn 0 0 1")
        lines.append(f"usemtl {material}")
        for y in range(n):
            for x in range(n):
                a = y * (n + 1) + x + 1
                b, c, d = a + 1, a + n + 2, a + n + 1
                lines.append(f"f {a}/{a}/1 {b}/{b}/1 {c}/{c}/1 {d}/{d}/1")
        return "\n".join(lines)

    return _grid


@pytest.fixture
def grid_indices():
    """Triangle list of an n x n grid, optionally shuffled."""

    def _indices(n=8, shuffle_seed=None):
        tris = []
        for y in range(n):
            for x in range(n):
                a = y * (n + 1) + x
                b, c, d = a + 1, a + n + 2, a + n + 1
                tris.append((a, b, c))
                tris.append((a, c, d))
        tris = np.asarray(tris, dtype=np.uint16)
        if shuffle_seed is not None:
            tris = tris[np.random.default_rng(shuffle_seed).permutation(len(tris))]
        return tris.reshape(-1), (n + 1) * (n + 1)

    return _indices


@pytest.fixture
def triangle_obj():
    return TRIANGLE_OBJ


@pytest.fixture
def quad_obj():
    return QUAD_OBJ


@pytest.fixture
def two_materials_obj():
    return TWO_MATERIALS_OBJ

# meshc/geometry/tangents.py
from __future__ import annotations

import numpy as np

from meshc.geometry.layout import Attrib, VertexLayout

# UV-space determinant below which a triangle contributes no tangent.
DET_EPSILON = 1e-12


def _fallback_tangents(normals: np.ndarray) -> np.ndarray:
    """Any unit vector perpendicular to each normal."""
    axis = np.zeros_like(normals)
    use_x = np.abs(normals[:, 0]) < 0.9
    axis[use_x, 0] = 1.0
    axis[~use_x, 1] = 1.0

    t = axis - normals * np.sum(axis * normals, axis=1, keepdims=True)
    length = np.linalg.norm(t, axis=1, keepdims=True)
    return np.divide(t, length, out=np.zeros_like(t), where=length > 0)


def calc_tangents(
    vertices: np.ndarray, layout: VertexLayout, indices: np.ndarray
) -> None:
    """
    Compute per-vertex tangents in place.

    Per triangle the UV/position deltas give tangent and bitangent, summed
    into every corner. Per vertex the sum is orthogonalized against the
    normal and normalized; w holds the handedness sign of
    (normal x tangent) . bitangent.
    """
    count = len(vertices)
    if count == 0:
        return

    pos = layout.unpack(vertices, Attrib.POSITION).astype(np.float64)
    uv = layout.unpack(vertices, Attrib.TEXCOORD0).astype(np.float64)
    normal = layout.unpack(vertices, Attrib.NORMAL)[:, :3].astype(np.float64)

    tris = np.asarray(indices, dtype=np.int64).reshape(-1, 3)
    i0, i1, i2 = tris[:, 0], tris[:, 1], tris[:, 2]

    ba = pos[i1] - pos[i0]
    ca = pos[i2] - pos[i0]
    ba_uv = uv[i1] - uv[i0]
    ca_uv = uv[i2] - uv[i0]

    det = ba_uv[:, 0] * ca_uv[:, 1] - ba_uv[:, 1] * ca_uv[:, 0]
    valid = np.abs(det) > DET_EPSILON
    inv_det = np.divide(1.0, det, out=np.zeros_like(det), where=valid)[:, None]

    tan_u = (ba * ca_uv[:, 1:2] - ca * ba_uv[:, 1:2]) * inv_det
    tan_v = (ca * ba_uv[:, 0:1] - ba * ca_uv[:, 0:1]) * inv_det

    tangent_sum = np.zeros((count, 3))
    bitangent_sum = np.zeros((count, 3))
    for corner in (i0, i1, i2):
        np.add.at(tangent_sum, corner, tan_u)
        np.add.at(bitangent_sum, corner, tan_v)

    # Gram-Schmidt against the normal.
    ndt = np.sum(normal * tangent_sum, axis=1, keepdims=True)
    ortho = tangent_sum - normal * ndt
    length = np.linalg.norm(ortho, axis=1, keepdims=True)
    good = (length[:, 0] > 0) & np.all(np.isfinite(ortho), axis=1)

    tangent = np.divide(ortho, length, out=np.zeros_like(ortho), where=length > 0)
    tangent[~good] = _fallback_tangents(normal[~good])

    nxt = np.cross(normal, tangent_sum)
    handedness = np.where(np.sum(nxt * bitangent_sum, axis=1) < 0.0, -1.0, 1.0)
    handedness[~good] = 1.0

    layout.pack(
        vertices,
        Attrib.TANGENT,
        np.hstack([tangent, handedness[:, None]]).astype(np.float32),
    )

# meshc/geometry/bounds.py
import math

import numpy as np

from meshc.settings import OBB_STEPS_MAX, OBB_STEPS_MIN
from meshc.types import Aabb, Bounds, Obb, Sphere


def _as_points(points: np.ndarray) -> np.ndarray:
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(pts) == 0:
        return np.zeros((1, 3))
    return pts


def _vec3(v: np.ndarray):
    return (float(v[0]), float(v[1]), float(v[2]))


def calc_aabb(points: np.ndarray) -> Aabb:
    pts = _as_points(points)
    return Aabb(_vec3(pts.min(axis=0)), _vec3(pts.max(axis=0)))


def calc_max_sphere(points: np.ndarray) -> Sphere:
    """Sphere around the AABB center reaching the farthest point."""
    pts = _as_points(points)
    center = (pts.min(axis=0) + pts.max(axis=0)) * 0.5
    radius = float(np.sqrt(np.max(np.sum((pts - center) ** 2, axis=1))))
    return Sphere(_vec3(center), radius)


def calc_min_sphere(points: np.ndarray) -> Sphere:
    """
    Ritter's bounding sphere.

    Seed with the two mutually far points found from point 0, then grow
    toward the first point still outside until none remain.
    """
    pts = _as_points(points)

    far_a = pts[np.argmax(np.sum((pts - pts[0]) ** 2, axis=1))]
    far_b = pts[np.argmax(np.sum((pts - far_a) ** 2, axis=1))]

    center = (far_a + far_b) * 0.5
    radius = float(np.linalg.norm(far_b - far_a)) * 0.5

    while True:
        dist = np.linalg.norm(pts - center, axis=1)
        eps = 1e-6 * max(radius, 1.0)
        outside = np.nonzero(dist > radius + eps)[0]
        if len(outside) == 0:
            break

        p = pts[outside[0]]
        d = float(dist[outside[0]])
        new_radius = (radius + d) * 0.5
        center = center + (p - center) * ((new_radius - radius) / d)
        radius = new_radius

    return Sphere(_vec3(center), radius)


def calc_bounding_sphere(points: np.ndarray) -> Sphere:
    max_sphere = calc_max_sphere(points)
    min_sphere = calc_min_sphere(points)
    if min_sphere.radius > max_sphere.radius:
        return max_sphere
    return min_sphere


def _principal_axis(pts: np.ndarray) -> np.ndarray:
    centered = pts - pts.mean(axis=0)
    cov = centered.T @ centered
    _, vecs = np.linalg.eigh(cov)
    axis = vecs[:, -1]
    # eigh sign is arbitrary; pin it so results are reproducible.
    if axis[np.argmax(np.abs(axis))] < 0:
        axis = -axis
    return axis


def _orthonormal_basis(axis: np.ndarray):
    helper = np.array([1.0, 0.0, 0.0])
    if abs(axis[0]) > 0.9:
        helper = np.array([0.0, 1.0, 0.0])
    b = np.cross(axis, helper)
    b /= np.linalg.norm(b)
    c = np.cross(axis, b)
    return b, c


def _box_to_obb(rot: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> Obb:
    """rot columns are the box axes; lo/hi are extents in that frame."""
    half = (hi - lo) * 0.5
    center_local = (hi + lo) * 0.5

    mtx = np.eye(4)
    mtx[:3, :3] = rot * half
    mtx[:3, 3] = rot @ center_local
    return Obb(mtx.astype(np.float32))


def _measure(size: np.ndarray):
    """Volume, then surface area so flat meshes still pick a tight box."""
    sx, sy, sz = (float(v) for v in size)
    return (sx * sy * sz, sx * sy + sy * sz + sz * sx)


def calc_obb(points: np.ndarray, steps: int = 17) -> Obb:
    """
    Oriented box by angle sampling.

    The axis-aligned box is the starting candidate. The points are then
    measured in `steps` frames rotated about their principal axis over
    [0, pi/2); the smallest-volume box wins.
    """
    steps = min(max(int(steps), OBB_STEPS_MIN), OBB_STEPS_MAX)
    pts = _as_points(points)

    best_rot = np.eye(3)
    best_lo = pts.min(axis=0)
    best_hi = pts.max(axis=0)
    best_measure = _measure(best_hi - best_lo)

    axis = _principal_axis(pts)
    b, c = _orthonormal_basis(axis)
    angle_step = (math.pi * 0.5) / steps

    for ii in range(steps):
        angle = ii * angle_step
        cos_a, sin_a = math.cos(angle), math.sin(angle)
        rot = np.column_stack(
            [axis, b * cos_a + c * sin_a, c * cos_a - b * sin_a]
        )

        local = pts @ rot
        lo = local.min(axis=0)
        hi = local.max(axis=0)
        measure = _measure(hi - lo)
        if measure < best_measure:
            best_measure = measure
            best_rot, best_lo, best_hi = rot, lo, hi

    return _box_to_obb(best_rot, best_lo, best_hi)


def calc_bounds(points: np.ndarray, obb_steps: int = 17) -> Bounds:
    return Bounds(
        sphere=calc_bounding_sphere(points),
        aabb=calc_aabb(points),
        obb=calc_obb(points, obb_steps),
    )

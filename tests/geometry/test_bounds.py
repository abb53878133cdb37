import math

import numpy as np
import pytest

from meshc.geometry.bounds import (
    calc_aabb,
    calc_bounding_sphere,
    calc_bounds,
    calc_max_sphere,
    calc_min_sphere,
    calc_obb,
)


@pytest.fixture
def cloud():
    return np.random.default_rng(42).normal(size=(200, 3)) * [3.0, 1.0, 0.5]


def _rotated_box(angle_deg=30.0, half=(4.0, 1.0, 0.5)):
    corners = np.array(
        [[sx * half[0], sy * half[1], sz * half[2]]
         for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)]
    )
    a = math.radians(angle_deg)
    rot_x = np.array(
        [[1, 0, 0], [0, math.cos(a), -math.sin(a)], [0, math.sin(a), math.cos(a)]]
    )
    return corners @ rot_x.T + [10.0, -2.0, 3.0]


def _contains_sphere(sphere, points):
    dist = np.linalg.norm(points - np.asarray(sphere.center), axis=1)
    return np.all(dist <= sphere.radius * (1 + 1e-5) + 1e-6)


def test_aabb():
    aabb = calc_aabb(np.array([[0, 0, 0], [1, -2, 3], [-1, 5, 0]]))

    assert aabb.min == (-1.0, -2.0, 0.0)
    assert aabb.max == (1.0, 5.0, 3.0)


def test_spheres_contain_all_points(cloud):
    for sphere in (calc_max_sphere(cloud), calc_min_sphere(cloud)):
        assert _contains_sphere(sphere, cloud)


def test_bounding_sphere_keeps_smaller_candidate(cloud):
    chosen = calc_bounding_sphere(cloud)

    assert chosen.radius == min(
        calc_max_sphere(cloud).radius, calc_min_sphere(cloud).radius
    )


def test_single_point_bounds():
    bounds = calc_bounds(np.array([[1.0, 2.0, 3.0]]))

    assert bounds.sphere.radius == 0.0
    assert bounds.aabb.min == bounds.aabb.max == (1.0, 2.0, 3.0)


def test_obb_contains_points(cloud):
    obb = calc_obb(cloud, 17)
    local = (np.linalg.inv(obb.mtx.astype(np.float64)) @ np.c_[cloud, np.ones(len(cloud))].T).T

    assert np.all(np.abs(local[:, :3]) <= 1.0 + 1e-4)


def test_obb_finds_rotated_box():
    points = _rotated_box()
    aabb = calc_aabb(points)
    aabb_volume = float(np.prod(np.subtract(aabb.max, aabb.min)))

    obb = calc_obb(points, 90)

    assert obb.volume < aabb_volume
    assert obb.volume == pytest.approx(8 * 4.0 * 1.0 * 0.5, rel=0.05)
    np.testing.assert_allclose(obb.center, (10.0, -2.0, 3.0), atol=1e-4)


def test_obb_never_worse_than_aabb(cloud):
    aabb = calc_aabb(cloud)
    aabb_volume = float(np.prod(np.subtract(aabb.max, aabb.min)))

    for steps in (0, 1, 17, 500):
        assert calc_obb(cloud, steps).volume <= aabb_volume * (1 + 1e-5)

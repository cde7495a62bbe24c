"""Tests for tabletop -> scene coordinate mapping."""
import numpy as np
import pytest

from udonbridge.mapping import (
    SCALE_FACTOR,
    edge_to_center,
    euler_to_matrix,
    is_identity_rotation,
    offset,
    to_center_position,
    to_local,
    to_uniform_scale,
)


class TestPositions:
    def test_one_grid_cell_is_one_metre(self):
        assert SCALE_FACTOR * 50 == pytest.approx(1.0)

    def test_tabletop_y_runs_along_negative_z(self):
        assert to_center_position(50, 100) == pytest.approx((1.0, 0.0, -2.0))

    def test_origin_maps_to_origin(self):
        assert to_center_position(0, 0) == (0.0, 0.0, 0.0)

    def test_uniform_scale_is_identity_factor(self):
        assert to_uniform_scale(3) == 3.0

    def test_edge_to_center_shifts_half_footprint(self):
        assert edge_to_center((1.0, 0.0, -2.0), 2.0, 4.0, lift=0.5) == pytest.approx((2.0, 0.5, -4.0))

    def test_offset_returns_floats(self):
        assert offset((1, 2, 3), 1, 1, 1) == (2.0, 3.0, 4.0)


class TestRotations:
    def test_identity_detection(self):
        assert is_identity_rotation((0.0, 0.0, 0.0))
        assert is_identity_rotation((0.0, -0.0, 1e-12))
        assert not is_identity_rotation((0.0, 90.0, 0.0))

    def test_yaw_turns_x_toward_negative_z(self):
        rotated = euler_to_matrix((0.0, 90.0, 0.0)) @ np.array([1.0, 0.0, 0.0])
        assert np.allclose(rotated, [0.0, 0.0, -1.0])

    def test_to_local_inverts_rotation(self):
        euler = (30.0, 45.0, 10.0)
        local = np.array([1.0, 2.0, 3.0])
        parent = euler_to_matrix(euler) @ local
        assert np.allclose(to_local([parent], euler)[0], local)

    def test_to_local_has_no_negative_zero(self):
        points = to_local([(0.0, -0.5, 2.0)], (0.0, 90.0, 0.0))
        assert points == [(-2.0, -0.5, 0.0)]
        assert str(points[0][2]) == "0.0"

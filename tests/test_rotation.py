"""
Tests for rotations, quarter-turn stepping and the piece shape transform.

Run with:
    python -m pytest tests/test_rotation.py -v

Tests cover:
- Quaternion composition order and inverse
- yaw / pitch / roll quarter-turns on basis vectors
- The 24 axis-aligned orientations
- Shape transform: pivot handling, rounding, exact cell counts
"""

import sys
import os

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from truckpacker.config import PieceTemplate
from truckpacker.simulator.rotation import Pose, Rotation, pitch, quarter_turns, roll, yaw
from truckpacker.simulator.shape_transform import (
    bounding_box,
    compute_world_cells,
    footprint,
    round_half_away,
    top_cells,
)


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def bar():
    """Three cells along x, pivot on the middle cell."""
    return PieceTemplate(name="bar", cells=((0, 0, 0), (1, 0, 0), (2, 0, 0)), pivot=(1, 0, 0))


@pytest.fixture
def ell():
    """L-shaped piece with pivot at the origin."""
    return PieceTemplate(name="ell", cells=((0, 0, 0), (1, 0, 0), (0, 1, 0)))


# ---------------------------------------------------------------------------
# 1. Rotation algebra
# ---------------------------------------------------------------------------

class TestRotation:
    def test_identity_leaves_vectors(self):
        np.testing.assert_allclose(Rotation.identity().apply((1, 2, 3)), [1, 2, 3])

    @pytest.mark.parametrize("axis,vec,expected", [
        ("y", (1, 0, 0), (0, 0, -1)),
        ("x", (0, 1, 0), (0, 0, 1)),
        ("z", (1, 0, 0), (0, 1, 0)),
    ])
    def test_quarter_turn_about_axis(self, axis, vec, expected):
        np.testing.assert_allclose(Rotation.about_axis(axis, 90).apply(vec), expected, atol=1e-9)

    def test_unknown_axis(self):
        with pytest.raises(ValueError):
            Rotation.about_axis("w", 90)

    def test_zero_axis_vector(self):
        with pytest.raises(ValueError):
            Rotation.about_axis((0, 0, 0), 90)

    def test_product_applies_right_operand_first(self):
        a = Rotation.about_axis("z", 90)
        b = Rotation.about_axis("y", 90)
        v = (1.0, 0.0, 0.0)
        np.testing.assert_allclose((a * b).apply(v), a.apply(b.apply(v)), atol=1e-9)

    def test_inverse(self):
        r = Rotation.from_euler(x=90, y=180, z=-90)
        assert (r * r.inverse()).is_close(Rotation.identity())

    def test_q_and_minus_q_are_the_same_orientation(self):
        r = Rotation.about_axis("x", 90)
        assert r.is_close(Rotation(-r.w, -r.x, -r.y, -r.z))

    def test_from_list_normalizes(self):
        r = Rotation.from_list([2.0, 0.0, 0.0, 0.0])
        assert r.is_close(Rotation.identity())
        assert r.w == pytest.approx(1.0)

    def test_from_list_wrong_length(self):
        with pytest.raises(ValueError):
            Rotation.from_list([1.0, 0.0, 0.0])

    def test_four_yaws_return_to_identity(self):
        r = Rotation.identity()
        for _ in range(4):
            r = yaw(r)
        assert r.is_close(Rotation.identity())

    def test_steps_pre_multiply_in_world_frame(self):
        # pitch then yaw: yaw is applied last, about world Y
        r = yaw(pitch(Rotation.identity()))
        expected = Rotation.about_axis("y", 90) * Rotation.about_axis("x", 90)
        assert r.is_close(expected)

    def test_roll_sends_up_sideways(self):
        up = roll(Rotation.identity()).up()
        np.testing.assert_allclose(up, [-1.0, 0.0, 0.0], atol=1e-9)

    def test_quarter_turns_are_24_distinct(self):
        turns = quarter_turns()
        assert len(turns) == 24
        assert turns[0].is_close(Rotation.identity())
        for i, a in enumerate(turns):
            for b in turns[i + 1:]:
                assert not a.is_close(b)

    def test_pose_round_trip(self):
        pose = Pose(Rotation.about_axis("y", 90), (1.0, 2.0, 3.0))
        world = pose.transform_point((0.5, 0.5, 0.5))
        np.testing.assert_allclose(pose.inverse_transform_point(world), [0.5, 0.5, 0.5], atol=1e-9)
        again = Pose.from_dict(pose.to_dict())
        assert again.rotation.is_close(pose.rotation)
        assert again.translation == pose.translation


# ---------------------------------------------------------------------------
# 2. Shape transform
# ---------------------------------------------------------------------------

class TestShapeTransform:
    def test_round_half_away_from_zero(self):
        np.testing.assert_array_equal(
            round_half_away(np.array([0.5, -0.5, 1.5, -2.5, 0.49])),
            [1.0, -1.0, 2.0, -3.0, 0.0],
        )

    def test_identity_is_translation_by_anchor_minus_pivot(self, bar):
        cells = compute_world_cells(bar, (3, 0, 4), Rotation.identity())
        assert cells == [(2, 0, 4), (3, 0, 4), (4, 0, 4)]

    def test_pivot_stays_put_under_rotation(self, bar):
        cells = compute_world_cells(bar, (3, 0, 4), Rotation.about_axis("y", 90))
        assert (3, 0, 4) in cells
        assert sorted(cells) == [(3, 0, 3), (3, 0, 4), (3, 0, 5)]

    def test_no_renormalization(self, ell):
        # rotating about z sends +x to +y and +y to -x: a negative offset survives
        cells = compute_world_cells(ell, (2, 0, 0), Rotation.about_axis("z", 90))
        assert sorted(cells) == [(1, 0, 0), (2, 0, 0), (2, 1, 0)]

    @pytest.mark.parametrize("index", range(24))
    def test_every_orientation_keeps_cell_count(self, ell, index):
        rotation = quarter_turns()[index]
        cells = compute_world_cells(ell, (2, 2, 2), rotation)
        assert len(cells) == len(ell.cells)
        assert len(set(cells)) == len(ell.cells)

    @pytest.mark.parametrize("axis", ["x", "y", "z"])
    @pytest.mark.parametrize("degrees", [0, 90, 180, 270])
    def test_rotate_and_back_is_exact(self, ell, axis, degrees):
        r = Rotation.about_axis(axis, degrees)
        turned = compute_world_cells(ell, (0, 0, 0), r)
        back = PieceTemplate(name="back", cells=tuple(turned))
        assert compute_world_cells(back, (0, 0, 0), r.inverse()) == list(ell.cells)

    def test_many_composed_quarter_turns_stay_exact(self, ell):
        r = Rotation.identity()
        for _ in range(101):
            r = roll(pitch(yaw(r)))
        cells = compute_world_cells(ell, (0, 0, 0), r)
        assert len(set(cells)) == 3

    def test_no_template_or_empty_shape(self):
        assert compute_world_cells(None, (0, 0, 0), Rotation.identity()) == []
        empty = PieceTemplate(name="ghost", cells=())
        assert compute_world_cells(empty, (0, 0, 0), Rotation.identity()) == []

    def test_bounding_box_and_footprint(self, ell):
        assert bounding_box(ell.cells) == ((0, 0, 0), (1, 1, 0))
        assert footprint(ell.cells) == (2, 2, 1)

    def test_bounding_box_empty(self):
        with pytest.raises(ValueError):
            bounding_box([])

    def test_top_cells(self):
        cells = [(0, 0, 0), (0, 1, 0), (1, 0, 0)]
        assert top_cells(cells) == [(0, 1, 0), (1, 0, 0)]

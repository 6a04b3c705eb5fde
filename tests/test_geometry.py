"""
Tests for the vector geometry helpers.

These tests cover:
- Distances and polyline length
- Clamped projection onto a segment
- Run pair selection by most opposite directions
"""

import itertools
import math

import numpy as np
import pytest

from pipetakeoff.geometry import (
    as_vector,
    centroid,
    distance,
    distance_to_segment,
    most_opposite_pair,
    path_length,
    project_point_to_segment,
    unit_vector,
)


class TestBasics:
    """Tests for distance, centroid and unit vectors."""

    def test_distance_345(self):
        assert distance((0, 0, 0), (3, 4, 0)) == pytest.approx(5.0)

    def test_distance_accepts_numpy(self):
        assert distance(np.array([1.0, 1.0, 1.0]), [1.0, 1.0, 3.0]) == pytest.approx(2.0)

    def test_as_vector_rejects_2d(self):
        with pytest.raises(ValueError):
            as_vector((1.0, 2.0))

    def test_path_length_through_vertex(self):
        """Elbow path S1 -> vertex -> S2 is longer than the chord."""
        pts = [(100, 0, 0), (0, 0, 0), (0, 100, 0)]
        assert path_length(pts) == pytest.approx(200.0)
        assert distance(pts[0], pts[2]) == pytest.approx(100 * math.sqrt(2))

    def test_centroid(self):
        c = centroid([(0, 0, 0), (2, 0, 0), (1, 3, 0)])
        assert np.allclose(c, (1.0, 1.0, 0.0))

    def test_centroid_of_nothing(self):
        with pytest.raises(ValueError):
            centroid([])

    def test_unit_vector_of_zero_is_none(self):
        assert unit_vector((0, 0, 0)) is None
        assert np.allclose(unit_vector((0, 0, 5)), (0, 0, 1))


class TestSegmentProjection:
    """Tests for the clamped projection used for branch lengths."""

    def test_projection_inside_segment(self):
        p = project_point_to_segment((5, 7, 0), (0, 0, 0), (10, 0, 0))
        assert np.allclose(p, (5, 0, 0))

    @pytest.mark.parametrize(
        "point,expected",
        [
            ((-5, 1, 0), (0, 0, 0)),
            ((15, 1, 0), (10, 0, 0)),
        ],
    )
    def test_projection_clamped_to_ends(self, point, expected):
        p = project_point_to_segment(point, (0, 0, 0), (10, 0, 0))
        assert np.allclose(p, expected)

    def test_distance_beyond_end(self):
        assert distance_to_segment((13, 4, 0), (0, 0, 0), (10, 0, 0)) == pytest.approx(5.0)

    def test_degenerate_segment_returns_start(self):
        p = project_point_to_segment((3, 4, 0), (1, 1, 1), (1, 1, 1))
        assert np.allclose(p, (1, 1, 1))


class TestMostOppositePair:
    """Tests for run pair detection."""

    TEE = [(-100.0, 0.0, 0.0), (100.0, 0.0, 0.0), (0.0, 80.0, 0.0)]

    def test_tee_run_pair(self):
        assert most_opposite_pair(self.TEE) == (0, 1)

    @pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
    def test_run_pair_independent_of_order(self, order):
        points = [self.TEE[i] for i in order]
        i, j = most_opposite_pair(points)
        assert {order[i], order[j]} == {0, 1}

    def test_fewer_than_three_points(self):
        assert most_opposite_pair(self.TEE[:2]) is None

    def test_point_at_centroid(self):
        """A port on the centroid has no direction, so the method is inapplicable."""
        assert most_opposite_pair([(-1, 0, 0), (1, 0, 0), (0, 0, 0)]) is None

    def test_symmetric_cross_keeps_first_pair(self):
        points = [(-100, 0, 0), (100, 0, 0), (0, 60, 0), (0, -60, 0)]
        assert most_opposite_pair(points) == (0, 1)

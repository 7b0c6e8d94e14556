"""
Tests for control-point sets, drag constraints and the cached resampler.
"""

import logging
import math

import numpy as np
import pytest

from biorisk.errors import ValidationError
from biorisk.resampler import ControlPoint, ControlPointSet, CurveResampler, build_resampler
from conftest import INVERSE_TOL, MONOTONE_SLACK, NORMAL_ATOL


BOUNDS = dict(x_bounds=(0.0, 45.0), y_bounds=(0.0, 45.0))


class TestControlPointSet:
    """Sorting, versioning and protected points."""

    def test_sorted_on_construction(self):
        points = ControlPointSet([(45, 45), (0, 0, True), {"x": 22.5, "y": 10}])
        assert [p.x for p in points] == [0.0, 22.5, 45.0]
        assert points[0].fixed

    def test_add_resorts_and_bumps_version(self, queries_points):
        queries_points.add(ControlPoint(10.0, 3.0))
        assert queries_points.version == 1
        assert [p.x for p in queries_points] == [0.0, 10.0, 22.5, 45.0]

    def test_fixed_point_cannot_be_removed(self, queries_points):
        assert queries_points.remove(0) is False
        assert len(queries_points) == 3
        assert queries_points.version == 0

    def test_remove_interior(self, queries_points):
        assert queries_points.remove(1) is True
        assert len(queries_points) == 2
        assert queries_points.version == 1

    def test_points_copied_in(self):
        source = [ControlPoint(0, 0), ControlPoint(5, 5)]
        points = ControlPointSet(source)
        source.append(ControlPoint(10, 10))
        assert len(points) == 2

    def test_to_list(self, queries_points):
        assert queries_points.to_list()[1] == {"x": 22.5, "y": 10.0, "fixed": False}

    def test_replace(self, queries_points):
        queries_points.replace([(30, 20), (0, 0, True)])
        assert [p.x for p in queries_points] == [0.0, 30.0]
        assert queries_points.version == 1


class TestDrag:
    """Interactive moves keep the curve monotone."""

    def test_move_applied(self, queries_points):
        assert queries_points.drag(1, 25.0, 20.0, **BOUNDS) is True
        assert queries_points[1] == ControlPoint(25.0, 20.0)
        assert queries_points.version == 1

    def test_rounded_to_two_decimals(self, queries_points):
        queries_points.drag(1, 25.1234, 20.4567, **BOUNDS)
        assert queries_points[1] == ControlPoint(25.12, 20.46)

    def test_fixed_point_never_moves(self, queries_points):
        assert queries_points.drag(0, 5.0, 5.0, **BOUNDS) is False
        assert queries_points[0] == ControlPoint(0.0, 0.0, True)

    def test_small_move_ignored(self, queries_points):
        assert queries_points.drag(1, 22.8, 10.3, **BOUNDS) is False
        assert queries_points.version == 0

    def test_x_keeps_log_gap_from_neighbour(self, queries_points):
        queries_points.drag(1, 44.0, 20.0, **BOUNDS)
        assert abs(queries_points[1].x - 45.0 * math.exp(-0.1)) < NORMAL_ATOL

    def test_y_stays_between_neighbours(self, queries_points):
        queries_points.drag(1, 20.0, 60.0, x_bounds=(0.0, 45.0), y_bounds=(0.0, 100.0))
        assert queries_points[1].y == 45.0

    def test_bounds_clamp(self):
        points = ControlPointSet([(0, 0, True), (10, 5)])
        points.drag(1, 80.0, -3.0, **BOUNDS)
        assert points[1] == ControlPoint(45.0, 0.0)

    def test_non_finite_rejected(self, queries_points):
        assert queries_points.drag(1, float("nan"), 3.0, **BOUNDS) is False


class TestForwardAndInverse:
    """value_at / inverse_at over the default query curve."""

    def test_passes_through_points(self, queries_points):
        r = CurveResampler(queries_points)
        for p in queries_points:
            assert abs(r.value_at(p.x) - p.y) < NORMAL_ATOL

    def test_monotone_between_points(self, queries_points):
        r = CurveResampler(queries_points)
        values = r.value_at(np.linspace(0, 45, 500))
        assert np.all(np.diff(values) >= -MONOTONE_SLACK)
        assert values.max() <= 45.0 + NORMAL_ATOL

    def test_clamps_outside_domain(self, queries_points):
        r = CurveResampler(queries_points)
        assert r.value_at(-10.0) == r.value_at(0.0)
        assert r.value_at(100.0) == r.value_at(45.0)

    def test_round_trip(self, queries_points):
        r = CurveResampler(queries_points)
        for x in np.linspace(0, 45, 91):
            result = r.inverse_at(r.value_at(x))
            assert abs(result - x) < INVERSE_TOL, f"Expected {x}, got {result}"

    def test_inverse_clamps(self, queries_points):
        r = CurveResampler(queries_points)
        assert r.inverse_at(-5.0) == 0.0
        assert abs(r.inverse_at(100.0) - 45.0) < NORMAL_ATOL

    def test_inverse_on_plateau_stays_inside_plateau(self):
        r = CurveResampler([(0, 0), (10, 5), (20, 5), (30, 10)])
        x = r.inverse_at(5.0)
        assert 10.0 - INVERSE_TOL <= x <= 20.0 + INVERSE_TOL

    def test_array_lookup(self, queries_points):
        r = CurveResampler(queries_points)
        assert r.inverse_at(np.array([1.0, 2.0])).shape == (2,)
        assert isinstance(r.inverse_at(1.0), float)

    def test_too_few_points(self):
        with pytest.raises(ValidationError):
            CurveResampler([(0, 0)]).value_at(1.0)

    def test_duplicate_x(self):
        with pytest.raises(ValidationError):
            CurveResampler([(0, 0), (5, 1), (5, 2)]).value_at(1.0)


class TestCaching:
    """Rebuilds happen once per point-set version."""

    def test_lookups_share_one_build(self, queries_points):
        r = CurveResampler(queries_points)
        r.value_at(1.0)
        r.value_at(2.0)
        r.inverse_at(3.0)
        r.inverse_at(4.0)
        assert r.build_count == 1
        assert r.inverse_build_count == 1

    def test_drag_invalidates_once(self, queries_points):
        r = CurveResampler(queries_points)
        before = r.value_at(30.0)
        queries_points.drag(1, 30.0, 30.0, **BOUNDS)
        after = r.value_at(30.0)
        r.value_at(31.0)
        assert r.build_count == 2
        assert abs(after - 30.0) < NORMAL_ATOL
        assert after != before

    def test_new_point_set_rebuilds(self, queries_points):
        r = CurveResampler(queries_points)
        r.value_at(1.0)
        r.set_points(ControlPointSet([(0, 0), (45, 45)]))
        assert abs(r.value_at(10.0) - 10.0) < NORMAL_ATOL
        assert r.build_count == 2

    def test_swapped_sets_never_serve_a_stale_curve(self):
        """Fresh version-0 sets replacing freed ones each get their own curve."""
        r = CurveResampler([(0, 0), (45, 45)])
        for round_ in range(200):
            if round_ % 2:
                r.set_points([(0, 0), (45, 90)])
                expected = 20.0
            else:
                r.set_points([(0, 0), (45, 45)])
                expected = 10.0
            result = r.value_at(10.0)
            assert abs(result - expected) < NORMAL_ATOL, f"Round {round_}: expected {expected}, got {result}"
            assert abs(r.inverse_at(expected) - 10.0) < INVERSE_TOL
        assert r.build_count == 200

    def test_build_resampler_copies(self, queries_points):
        r = build_resampler(queries_points)
        queries_points.drag(1, 30.0, 30.0, **BOUNDS)
        assert abs(r.value_at(22.5) - 10.0) < NORMAL_ATOL


class TestTangent:
    """Straight extension past the last control point."""

    def _slope(self, r):
        return (45.0 - r.value_at(40.0)) / 5.0

    def test_degenerate(self):
        assert CurveResampler([(0, 0)]).tangent() == []

    def test_extends_to_x_max(self, queries_points):
        r = CurveResampler(queries_points, x_max=60.0, y_max=200.0)
        last, end = r.tangent()
        assert last == ControlPoint(45.0, 45.0)
        assert end.x == 60.0
        assert abs(end.y - (45.0 + self._slope(r) * 15.0)) < NORMAL_ATOL

    def test_cut_at_y_max(self, queries_points):
        r = CurveResampler(queries_points, x_max=60.0, y_max=50.0)
        _, end = r.tangent()
        assert end.y == 50.0
        assert abs(end.x - (45.0 + 5.0 / self._slope(r))) < NORMAL_ATOL

    def test_cut_at_y_min(self):
        r = CurveResampler([(0, 10), (10, 5)], x_max=60.0, y_min=0.0)
        _, end = r.tangent()
        assert end.y == 0.0
        assert 10.0 < end.x < 60.0

    def test_last_point_at_x_max(self, queries_points):
        last, end = CurveResampler(queries_points).tangent()
        assert last == end

    def test_zero_width_secant(self, queries_points):
        last, end = CurveResampler(queries_points, x_max=60.0, tangent_offset=0.0).tangent()
        assert last == end

    def test_extrapolated_value(self, queries_points):
        r = CurveResampler(queries_points)
        assert abs(r.extrapolated_value_at(55.0) - (45.0 + self._slope(r) * 10.0)) < NORMAL_ATOL
        assert abs(r.extrapolated_value_at(22.5) - 10.0) < NORMAL_ATOL

    def test_extrapolated_inverse(self, queries_points):
        r = CurveResampler(queries_points)
        assert abs(r.extrapolated_inverse_at(65.0) - (45.0 + 20.0 / self._slope(r))) < NORMAL_ATOL
        assert abs(r.extrapolated_inverse_at(10.0) - 22.5) < INVERSE_TOL

    def test_flat_end_does_not_extend_inverse(self, caplog):
        r = CurveResampler([(0, 0), (10, 5), (20, 5)])
        with caplog.at_level(logging.WARNING, logger="biorisk.resampler"):
            assert r.extrapolated_inverse_at(8.0) == 20.0
        assert "flat end slope" in caplog.text

"""
Konvergenz-Gesetze je Constraint-Art: nach solve() gilt die analytische Bedingung.
"""

import math

import pytest

from parasketch.constraints import (
    ConstraintStatus, ConstraintType,
    make_angle, make_coincident, make_distance, make_equal_length, make_fixed,
    make_horizontal, make_length, make_midpoint, make_parallel, make_perpendicular,
    make_point_on_circle, make_point_on_line, make_radius, make_tangent, make_vertical,
    is_constraint_satisfied,
)
from parasketch.errors import PrimitiveNotInSceneError
from parasketch.geometry import Point2D, project_on_line
from parasketch.scene import Scene

TOL = 1e-6


def _unit(seg):
    return seg.dx / seg.length, seg.dy / seg.length


def _line_distance(p, seg):
    _, fx, fy = project_on_line(p.x, p.y, seg.x1, seg.y1, seg.x2, seg.y2)
    return math.hypot(p.x - fx, p.y - fy)


def test_coincident(scene):
    a = scene.add_segment(0, 0, 10, 0)
    b = scene.add_segment(10.5, 0.5, 20, 0)
    c = scene.add_constraint(make_coincident(a.p2, b.p1))
    assert scene.last_solve_result.converged
    assert a.p2.distance_to_point(b.p1) < TOL
    assert c.status() is ConstraintStatus.SATISFIED


def test_distance(scene):
    a = scene.add_point(0, 0)
    b = scene.add_point(3, 4)
    scene.add_constraint(make_distance(a, b, 10))
    assert scene.last_solve_result.converged
    assert abs(a.distance_to_point(b) - 10) < TOL


def test_horizontal_and_vertical(scene):
    h = scene.add_segment(0, 0, 10, 2)
    v = scene.add_segment(20, 0, 21, 8)
    scene.add_constraint(make_horizontal(h))
    scene.add_constraint(make_vertical(v))
    assert abs(h.dy) < TOL
    assert abs(v.dx) < TOL
    assert h.p1.y == pytest.approx(1.0)
    assert v.p1.x == pytest.approx(20.5)


def test_parallel(scene):
    a = scene.add_segment(0, 0, 10, 1)
    b = scene.add_segment(0, 5, 3, 9)
    scene.add_constraint(make_parallel(a, b))
    (ax, ay), (bx, by) = _unit(a), _unit(b)
    assert abs(ax * by - ay * bx) < TOL


def test_perpendicular(scene):
    a = scene.add_segment(0, 0, 10, 0)
    b = scene.add_segment(0, 5, 3, 9)
    length_before = b.length
    scene.add_constraint(make_perpendicular(a, b))
    (ax, ay), (bx, by) = _unit(a), _unit(b)
    assert abs(ax * bx + ay * by) < TOL
    assert b.length == pytest.approx(length_before)


def test_angle_is_directed_in_radians(scene):
    a = scene.add_segment(0, 0, 10, 0)
    b = scene.add_segment(0, 5, 10, 6)
    scene.add_constraint(make_angle(a, b, math.pi / 4))
    assert scene.last_solve_result.converged
    assert b.angle - a.angle == pytest.approx(math.pi / 4, abs=TOL)


def test_equal_length(scene):
    a = scene.add_segment(0, 0, 10, 0)
    b = scene.add_segment(0, 5, 4, 5)
    scene.add_constraint(make_equal_length(a, b))
    assert abs(a.length - b.length) < TOL
    assert a.length == pytest.approx(7.0)


def test_equal_length_keeps_locked_segment(scene):
    a = scene.add_segment(0, 0, 10, 0)
    b = scene.add_segment(0, 5, 4, 5)
    scene.add_constraint(make_fixed(a.p1), solve=False)
    scene.add_constraint(make_fixed(a.p2), solve=False)
    scene.add_constraint(make_equal_length(a, b))
    assert a.length == pytest.approx(10.0)
    assert b.length == pytest.approx(10.0, abs=TOL)


def test_length(scene):
    seg = scene.add_segment(0, 0, 3, 4)
    scene.add_constraint(make_length(seg, 10))
    assert abs(seg.length - 10) < TOL
    # Um den Mittelpunkt skaliert
    assert seg.midpoint == pytest.approx((1.5, 2.0))


def test_radius(scene):
    circle = scene.add_circle(0, 0, 3)
    scene.add_constraint(make_radius(circle, 7.5))
    assert circle.radius == pytest.approx(7.5)


def test_point_on_line_moves_point(scene):
    seg = scene.add_segment(0, 0, 10, 0)
    p = scene.add_point(3, 4)
    scene.add_constraint(make_point_on_line(p, seg))
    assert _line_distance(p, seg) < TOL
    assert (p.x, p.y) == pytest.approx((3.0, 0.0))


def test_point_on_line_moves_line_when_point_fixed(scene):
    seg = scene.add_segment(0, 0, 10, 0)
    p = scene.add_point(3, 4, fixed=True)
    scene.add_constraint(make_point_on_line(p, seg))
    assert (p.x, p.y) == (3.0, 4.0)
    assert seg.y1 == pytest.approx(4.0)
    assert seg.y2 == pytest.approx(4.0)


def test_point_on_circle(scene):
    circle = scene.add_circle(0, 0, 2)
    p = scene.add_point(3, 4)
    scene.add_constraint(make_point_on_circle(p, circle))
    assert abs(p.distance_to_point(circle.center) - 2) < TOL
    assert (p.x, p.y) == pytest.approx((1.2, 1.6))


def test_point_on_circle_moves_center_when_point_fixed(scene):
    circle = scene.add_circle(0, 0, 2)
    p = scene.add_point(0, 5, fixed=True)
    scene.add_constraint(make_point_on_circle(p, circle))
    assert (circle.center.x, circle.center.y) == pytest.approx((0.0, 3.0))


def test_midpoint(scene):
    seg = scene.add_segment(0, 0, 10, 0)
    p = scene.add_point(1, 1)
    scene.add_constraint(make_midpoint(p, seg))
    assert (p.x, p.y) == pytest.approx((5.0, 0.0))


def test_tangent(scene):
    seg = scene.add_segment(-5, 1, 5, 1)
    circle = scene.add_circle(0, 0, 0.5)
    scene.add_constraint(make_tangent(seg, circle))
    assert seg.y1 == pytest.approx(0.5)
    assert seg.y2 == pytest.approx(0.5)
    assert _line_distance(circle.center, seg) == pytest.approx(0.5, abs=TOL)


class TestFixed:

    def test_fixed_point_never_moves(self, scene):
        anchor = scene.add_point(1, 2)
        other = scene.add_point(4, 6)
        scene.add_constraint(make_fixed(anchor))
        scene.add_constraint(make_distance(anchor, other, 10))
        for _ in range(3):
            scene.solve()
            assert (anchor.x, anchor.y) == (1.0, 2.0)
        assert anchor.distance_to_point(other) == pytest.approx(10.0, abs=TOL)

    def test_fixed_restores_target(self, scene):
        p = scene.add_point(1, 2)
        scene.add_constraint(make_fixed(p))
        p.move_to(5, 5)
        scene.solve()
        assert (p.x, p.y) == (1.0, 2.0)

    def test_removing_fixed_releases_point(self, scene):
        p = scene.add_point(1, 2)
        c = scene.add_constraint(make_fixed(p))
        assert p.fixed
        scene.remove_constraint(c)
        assert not p.fixed

    def test_constructing_fixed_does_not_touch_point(self, scene):
        p = scene.add_point(1, 2)
        make_fixed(p)
        assert not p.fixed

    def test_rejected_fixed_leaves_point_free(self, scene):
        stray = Point2D(4, 4)
        with pytest.raises(PrimitiveNotInSceneError):
            scene.add_constraint(make_fixed(stray))
        assert not stray.fixed

    def test_point_stays_fixed_while_another_fixed_remains(self, scene):
        p = scene.add_point(1, 2)
        first = scene.add_constraint(make_fixed(p))
        second = scene.add_constraint(make_fixed(p))
        scene.remove_constraint(first)
        assert p.fixed
        scene.remove_constraint(second)
        assert not p.fixed

    def test_removing_fixed_keeps_flag_set_before(self, scene):
        p = scene.add_point(1, 2, fixed=True)
        c = scene.add_constraint(make_fixed(p))
        scene.remove_constraint(c)
        assert p.fixed


def test_shared_point_needs_no_coincident(l_shape):
    scene, a, b = l_shape
    assert a.p2 is b.p1
    assert make_coincident(a.p2, b.p1).error() == 0.0


class TestTargets:

    def test_nan_target_is_inactive(self, scene):
        a = scene.add_point(0, 0)
        b = scene.add_point(3, 4)
        c = scene.add_constraint(make_distance(a, b, "undefined_name"))
        assert not c.is_active
        assert c.error() == 0.0
        assert c.status() is ConstraintStatus.INACTIVE
        assert is_constraint_satisfied(c)
        assert (b.x, b.y) == (3.0, 4.0)

    def test_min_max_clamp(self, scene):
        a = scene.add_point(0, 0)
        b = scene.add_point(3, 4)
        c = make_distance(a, b, 20)
        c.max = 12
        scene.add_constraint(c)
        assert c.target() == 12
        assert a.distance_to_point(b) == pytest.approx(12.0, abs=TOL)

    def test_formula_target(self, scene):
        seg = scene.add_segment(0, 0, 1, 0)
        scene.set_variable("w", 4)
        c = scene.add_constraint(make_length(seg, "w * 2 + 1"))
        assert c.target() == pytest.approx(9.0)
        assert seg.length == pytest.approx(9.0, abs=TOL)


class TestBookkeeping:

    def test_add_constraint_requires_scene_primitives(self, scene):
        foreign = Point2D(0, 0)
        inside = scene.add_point(1, 1)
        with pytest.raises(PrimitiveNotInSceneError):
            scene.add_constraint(make_distance(foreign, inside, 2))
        assert scene.constraints == []

    def test_constraint_ids_are_separate_namespace(self, scene):
        seg = scene.add_segment(0, 0, 10, 1)
        c1 = scene.add_constraint(make_horizontal(seg))
        c2 = scene.add_constraint(make_length(seg, 5))
        assert seg.id == 3
        assert (c1.id, c2.id) == (1, 2)

    def test_serialized_form(self, scene):
        seg = scene.add_segment(0, 0, 10, 0)
        c = scene.add_constraint(make_length(seg, "L"), solve=False)
        assert c.to_dict() == {'id': 1, 'type': 'length', 'seg': seg.id, 'value': 'L'}
        assert c.type is ConstraintType.LENGTH

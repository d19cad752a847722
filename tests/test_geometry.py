import math

import pytest

from tikzlive.geometry import (
    Point,
    Point3,
    Transform,
    anchor_offset,
    bezier_point,
    bezier_tangent,
    calculate_anchors,
    curve_controls,
    normalize_anchor,
)


def test_point_arithmetic():
    a = Point(1.0, 2.0)
    b = Point(3.0, -1.0)

    assert a.add(b) == Point(4.0, 1.0)
    assert b.subtract(a) == Point(2.0, -3.0)
    assert a.scale(2.0) == Point(2.0, 4.0)
    assert a.lerp(b, 0.5) == Point(2.0, 0.5)
    assert Point(0.0, 0.0).distance_to(Point(3.0, 4.0)) == 5.0


def test_point_rotation():
    rotated = Point(1.0, 0.0).rotate(90.0)

    assert rotated.x == pytest.approx(0.0, abs=1e-12)
    assert rotated.y == pytest.approx(1.0)


def test_point3_projection():
    assert Point3(1.0, 1.0, 2.0).project((-0.5, -0.5)) == Point(0.0, 0.0)


def test_transform_composition_order():
    move_then_turn = Transform.translation(1.0, 0.0).then(Transform.rotation(90.0))

    moved = move_then_turn.apply(Point(0.0, 0.0))

    assert moved.x == pytest.approx(0.0, abs=1e-12)
    assert moved.y == pytest.approx(1.0)


def test_transform_inverse_and_scale():
    transform = Transform.scaling(2.0).then(Transform.translation(3.0, -1.0))

    point = transform.apply(Point(1.0, 1.0))
    back = transform.inverse().apply(point)

    assert point == Point(5.0, 1.0)
    assert (back.x, back.y) == pytest.approx((1.0, 1.0))
    assert transform.uniform_scale() == pytest.approx(2.0)
    assert Transform().is_identity


def test_axis_radii_of_rotated_scaling():
    transform = Transform.scaling(2.0, 1.0).then(Transform.rotation(45.0))

    rx, ry, rotation = transform.axis_radii(1.0, 1.0)

    assert rx == pytest.approx(2.0)
    assert ry == pytest.approx(1.0)
    assert rotation == pytest.approx(45.0)


def test_apply_all_matches_apply():
    transform = Transform.rotation(30.0).then(Transform.translation(1.0, 2.0))
    points = [Point(0.0, 0.0), Point(1.0, 0.0), Point(-2.0, 5.0)]
    expected = [transform.apply(p).as_tuple() for p in points]

    assert [p.as_tuple() for p in transform.apply_all(points)] == [pytest.approx(t) for t in expected]
    assert transform.apply_all([]) == []


def test_rectangle_and_circle_anchors():
    rect = calculate_anchors(Point(0.0, 0.0), 'rectangle', 4.0, 2.0)
    circle = calculate_anchors(Point(0.0, 0.0), 'circle', 2.0, 2.0)

    assert rect['north east'] == Point(2.0, 1.0)
    assert rect['west'] == Point(-2.0, 0.0)
    assert math.hypot(circle['north east'].x, circle['north east'].y) == pytest.approx(1.0)


@pytest.mark.parametrize(
    'name, expected',
    [
        ('north  east', 'north east'),
        ('South West', 'south west'),
        ('center', 'center'),
    ],
)
def test_normalize_anchor(name, expected):
    assert normalize_anchor(name) == expected


def test_anchor_offset():
    assert anchor_offset('south', 'rectangle', 2.0, 1.0) == Point(0.0, -0.5)
    assert anchor_offset(None, 'rectangle', 2.0, 1.0) == Point(0.0, 0.0)


def test_curve_controls_follow_the_angles():
    c1, c2 = curve_controls(Point(0.0, 0.0), Point(3.0, 0.0), 90.0, 90.0)

    assert c1.x == pytest.approx(0.0, abs=1e-12)
    assert c1.y == pytest.approx(1.0)
    assert c2.x == pytest.approx(3.0)
    assert c2.y == pytest.approx(1.0)


def test_bezier_point_and_tangent():
    p0, c1, c2, p3 = Point(0.0, 0.0), Point(0.0, 1.0), Point(2.0, 1.0), Point(2.0, 0.0)

    assert bezier_point(p0, c1, c2, p3, 0.0) == p0
    assert bezier_point(p0, c1, c2, p3, 1.0) == p3
    assert bezier_point(p0, c1, c2, p3, 0.5) == Point(1.0, 0.75)
    assert bezier_tangent(p0, c1, c2, p3, 0.5) == Point(3.0, 0.0)

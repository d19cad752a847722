"""Path decorations: wavy outlines and curly braces.

Everything here works in drawing units (cm, y up); the renderer maps the
results to SVG space.
"""

from __future__ import annotations

import math
from typing import List, Tuple

import numpy as np

from .geometry import Point

POINTS_PER_WAVE = 12
MIN_WAVES = 20

# one cubic segment: control1, control2, end
BezierSegment = Tuple[Point, Point, Point]


def snake_circle(center: Point, radius: float, amplitude: float, segment_length: float) -> List[Point]:
    """Closed polyline of a circle whose radius oscillates sinusoidally."""
    circumference = 2 * math.pi * radius
    waves = max(MIN_WAVES, int(round(circumference / segment_length))) if segment_length > 0 else MIN_WAVES
    total = waves * POINTS_PER_WAVE
    theta = np.linspace(0.0, 2 * math.pi, total, endpoint=False)
    r = radius + amplitude * np.sin(theta * waves)
    xs = center.x + r * np.cos(theta)
    ys = center.y + r * np.sin(theta)
    return [Point(float(x), float(y)) for x, y in zip(xs, ys)]


def _wave(phase: np.ndarray, kind: str) -> np.ndarray:
    if kind == "zigzag":
        # triangle wave in [-1, 1] with the same period as sin
        frac = np.mod(phase / (2 * math.pi) + 0.25, 1.0)
        return 4.0 * np.abs(frac - 0.5) - 1.0
    return np.sin(phase)


def snake_line(
    start: Point, end: Point, amplitude: float, segment_length: float, kind: str = "snake"
) -> List[Point]:
    """Polyline from ``start`` to ``end`` displaced by a wave normal to it.

    The wave count is rounded so the line starts and ends on its axis.
    """
    length = start.distance_to(end)
    if length == 0:
        return [start, end]
    waves = max(1, int(round(length / segment_length))) if segment_length > 0 else 1
    t = np.linspace(0.0, 1.0, waves * POINTS_PER_WAVE + 1)
    offset = amplitude * _wave(t * waves * 2 * math.pi, kind)
    dx = (end.x - start.x) / length
    dy = (end.y - start.y) / length
    xs = start.x + (end.x - start.x) * t - dy * offset
    ys = start.y + (end.y - start.y) * t + dx * offset
    return [Point(float(x), float(y)) for x, y in zip(xs, ys)]


def brace_path(start: Point, end: Point, amplitude: float, mirror: bool = False) -> List[BezierSegment]:
    """Four cubic segments forming a curly brace from ``start`` to ``end``.

    The brace is laid out along whichever axis has the larger span and
    bulges to the left of the direction of travel (to the right when
    ``mirror`` is set).
    """
    horizontal = abs(end.x - start.x) >= abs(end.y - start.y)
    if horizontal:
        along = end.x - start.x
        sign = 1.0 if along >= 0 else -1.0
    else:
        along = end.y - start.y
        sign = -1.0 if along >= 0 else 1.0
    if mirror:
        sign = -sign
    a = amplitude * sign

    def at(t: float, k: float) -> Point:
        # t runs along the brace axis, k is the bulge in units of the amplitude
        if horizontal:
            return Point(start.x + along * t, start.y + a * k)
        return Point(start.x + a * k, start.y + along * t)

    return [
        (at(0.0, 0.5), at(0.1, 0.5), at(0.25, 0.5)),
        (at(0.4, 0.5), at(0.5, 0.5), at(0.5, 1.0)),
        (at(0.5, 0.5), at(0.6, 0.5), at(0.75, 0.5)),
        (at(0.9, 0.5), at(1.0, 0.5), at(1.0, 0.0)),
    ]

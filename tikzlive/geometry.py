"""Plane geometry primitives shared by the parser and the renderer."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

SQRT1_2 = math.sqrt(0.5)

ANCHOR_NAMES = (
    "center",
    "north",
    "south",
    "east",
    "west",
    "north east",
    "north west",
    "south east",
    "south west",
)

# unit offsets of each compass anchor relative to the half extents
ANCHOR_DIRECTIONS: Dict[str, Tuple[float, float]] = {
    "center": (0.0, 0.0),
    "north": (0.0, 1.0),
    "south": (0.0, -1.0),
    "east": (1.0, 0.0),
    "west": (-1.0, 0.0),
    "north east": (1.0, 1.0),
    "north west": (-1.0, 1.0),
    "south east": (1.0, -1.0),
    "south west": (-1.0, -1.0),
}

_ANCHOR_ALIASES = {
    "mid": "center",
    "base": "center",
    "northeast": "north east",
    "northwest": "north west",
    "southeast": "south east",
    "southwest": "south west",
}


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def add(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def subtract(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)

    def scale(self, factor: float) -> "Point":
        return Point(self.x * factor, self.y * factor)

    def rotate(self, angle_deg: float) -> "Point":
        """Rotate counter-clockwise around the origin by ``angle_deg`` degrees."""
        rad = math.radians(angle_deg)
        cos_a, sin_a = math.cos(rad), math.sin(rad)
        return Point(self.x * cos_a - self.y * sin_a, self.x * sin_a + self.y * cos_a)

    def distance_to(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def lerp(self, other: "Point", t: float) -> "Point":
        return Point(self.x + (other.x - self.x) * t, self.y + (other.y - self.y) * t)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


ORIGIN = Point(0.0, 0.0)


@dataclass(frozen=True)
class Point3:
    x: float
    y: float
    z: float = 0.0

    def add(self, other: "Point3") -> "Point3":
        return Point3(self.x + other.x, self.y + other.y, self.z + other.z)

    def project(self, z_vector: Tuple[float, float], factor: float = 1.0) -> Point:
        """Oblique projection: ``z`` runs along ``z_vector``."""
        return Point(
            (self.x + self.z * z_vector[0]) * factor,
            (self.y + self.z * z_vector[1]) * factor,
        )


def normalize_anchor(name: str) -> str:
    key = " ".join(name.strip().lower().split())
    return _ANCHOR_ALIASES.get(key, key)


def calculate_anchors(center: Point, shape: str, width: float, height: float) -> Dict[str, Point]:
    hw = width / 2.0
    hh = height / 2.0
    anchors = {
        name: Point(center.x + dx * hw, center.y + dy * hh)
        for name, (dx, dy) in ANCHOR_DIRECTIONS.items()
    }
    if shape == "circle":
        r = max(hw, hh)
        diag = r * SQRT1_2
        anchors["north"] = Point(center.x, center.y + r)
        anchors["south"] = Point(center.x, center.y - r)
        anchors["east"] = Point(center.x + r, center.y)
        anchors["west"] = Point(center.x - r, center.y)
        anchors["north east"] = Point(center.x + diag, center.y + diag)
        anchors["north west"] = Point(center.x - diag, center.y + diag)
        anchors["south east"] = Point(center.x + diag, center.y - diag)
        anchors["south west"] = Point(center.x - diag, center.y - diag)
    return anchors


def anchor_offset(anchor: Optional[str], shape: str, width: float, height: float) -> Point:
    """Offset of ``anchor`` from the node center."""
    if not anchor:
        return ORIGIN
    anchors = calculate_anchors(ORIGIN, shape, width, height)
    return anchors.get(normalize_anchor(anchor), ORIGIN)


def boundary_point(center: Point, shape: str, width: float, height: float, target: Point) -> Point:
    """Where a ray from ``center`` toward ``target`` leaves the node outline."""
    dx = target.x - center.x
    dy = target.y - center.y
    if dx == 0 and dy == 0:
        return center
    hw = width / 2.0
    hh = height / 2.0

    if shape == "circle":
        r = max(hw, hh)
        dist = math.hypot(dx, dy)
        return Point(center.x + dx * r / dist, center.y + dy * r / dist)

    if shape == "ellipse":
        # angle-parameterised, not the exact ray/ellipse intersection
        angle = math.atan2(dy, dx)
        return Point(center.x + hw * math.cos(angle), center.y + hh * math.sin(angle))

    best_t = math.inf
    if dx != 0:
        for edge_x in (hw, -hw):
            t = edge_x / dx
            if t > 0 and abs(t * dy) <= hh + 1e-12 and t < best_t:
                best_t = t
    if dy != 0:
        for edge_y in (hh, -hh):
            t = edge_y / dy
            if t > 0 and abs(t * dx) <= hw + 1e-12 and t < best_t:
                best_t = t
    if not math.isfinite(best_t):
        return center
    return Point(center.x + dx * best_t, center.y + dy * best_t)


def angle_of(vec: Point) -> float:
    return math.degrees(math.atan2(vec.y, vec.x))


class Transform:
    """2D affine map stored as a 3x3 homogeneous matrix."""

    __slots__ = ("matrix",)

    def __init__(self, matrix: Optional[np.ndarray] = None):
        self.matrix = np.eye(3, dtype=float) if matrix is None else np.asarray(matrix, dtype=float)

    @classmethod
    def translation(cls, dx: float, dy: float) -> "Transform":
        return cls(np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]]))

    @classmethod
    def rotation(cls, angle_deg: float) -> "Transform":
        rad = math.radians(angle_deg)
        c, s = math.cos(rad), math.sin(rad)
        return cls(np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]))

    @classmethod
    def scaling(cls, sx: float, sy: Optional[float] = None) -> "Transform":
        sy = sx if sy is None else sy
        return cls(np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]]))

    def then(self, other: "Transform") -> "Transform":
        """Apply ``self`` first, then ``other``."""
        return Transform(other.matrix @ self.matrix)

    @property
    def is_identity(self) -> bool:
        return bool(np.allclose(self.matrix, np.eye(3)))

    def apply(self, point: Point) -> Point:
        vec = self.matrix @ np.array([point.x, point.y, 1.0])
        return Point(float(vec[0]), float(vec[1]))

    def apply_vector(self, vec: Point) -> Point:
        out = self.matrix[:2, :2] @ np.array([vec.x, vec.y])
        return Point(float(out[0]), float(out[1]))

    def apply_all(self, points: Iterable[Point]) -> list:
        pts = list(points)
        if not pts:
            return []
        arr = np.array([[p.x, p.y, 1.0] for p in pts]).T
        out = self.matrix @ arr
        return [Point(float(x), float(y)) for x, y in zip(out[0], out[1])]

    def axis_radii(self, rx: float, ry: float) -> Tuple[float, float, float]:
        """Transformed ellipse radii and the rotation (degrees) of its x axis."""
        ax = self.apply_vector(Point(rx, 0.0))
        ay = self.apply_vector(Point(0.0, ry))
        return math.hypot(ax.x, ax.y), math.hypot(ay.x, ay.y), angle_of(ax)

    def inverse(self) -> "Transform":
        return Transform(np.linalg.inv(self.matrix))

    def uniform_scale(self) -> float:
        det = float(np.linalg.det(self.matrix[:2, :2]))
        return math.sqrt(abs(det))


def bounding_box(points: Sequence[Point]) -> Optional[Tuple[float, float, float, float]]:
    if not points:
        return None
    xs = [p.x for p in points]
    ys = [p.y for p in points]
    return min(xs), min(ys), max(xs), max(ys)


def curve_controls(
    start: Point, end: Point, out_deg: float, in_deg: float, looseness: float = 1.0
) -> Tuple[Point, Point]:
    """Control points of a ``to[out=..,in=..]`` curve."""
    dist = start.distance_to(end) / 3.0 * looseness
    out_rad = math.radians(out_deg)
    in_rad = math.radians(in_deg)
    c1 = Point(start.x + dist * math.cos(out_rad), start.y + dist * math.sin(out_rad))
    c2 = Point(end.x + dist * math.cos(in_rad), end.y + dist * math.sin(in_rad))
    return c1, c2


def bezier_point(p0: Point, c1: Point, c2: Point, p3: Point, t: float) -> Point:
    mt = 1.0 - t
    a = mt * mt * mt
    b = 3 * mt * mt * t
    c = 3 * mt * t * t
    d = t * t * t
    return Point(
        a * p0.x + b * c1.x + c * c2.x + d * p3.x,
        a * p0.y + b * c1.y + c * c2.y + d * p3.y,
    )


def bezier_tangent(p0: Point, c1: Point, c2: Point, p3: Point, t: float) -> Point:
    mt = 1.0 - t
    return Point(
        3 * mt * mt * (c1.x - p0.x) + 6 * mt * t * (c2.x - c1.x) + 3 * t * t * (p3.x - c2.x),
        3 * mt * mt * (c1.y - p0.y) + 6 * mt * t * (c2.y - c1.y) + 3 * t * t * (p3.y - c2.y),
    )

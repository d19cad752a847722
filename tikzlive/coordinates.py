"""Coordinate resolution, the node registry and node geometry queries."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

from .expressions import ExpressionError, evaluate, evaluate_coordinate_component, normalize_math
from .geometry import (
    ORIGIN,
    SQRT1_2,
    Point,
    Point3,
    boundary_point,
    calculate_anchors,
    normalize_anchor,
)
from .styles import Transformation, compose_transformations, parse_distance, split_top_level

logger = logging.getLogger(__name__)

# TikZ's default z vector is 3.85mm down-left at 45 degrees
DEFAULT_Z_PROJECTION = (-0.385 * SQRT1_2, -0.385 * SQRT1_2)

_UNIT_RE = re.compile(r"^(.*?\d\.?)\s*(cm|mm|pt|em|ex|in|px)$")
_ANCHOR_RE = re.compile(r"^(.+?)\.\s*([A-Za-z][A-Za-z \-]*|-?\d+(?:\.\d+)?)$")
_FACTOR_RE = re.compile(r"\s*(-?(?:\d+\.?\d*|\.\d+))\s*\*\s*")


@dataclass
class NodeRecord:
    center: Point
    shape: str
    width: float
    height: float
    anchors: Dict[str, Point] = field(default_factory=dict)


@dataclass(frozen=True)
class CoordinateRef:
    """A resolved point plus the node it came from, if any."""

    point: Point
    node_name: Optional[str] = None
    anchor: Optional[str] = None
    # already in drawing space: node points, named coordinates, calc results
    absolute: bool = False


class CoordinateSystem:
    def __init__(self) -> None:
        self.named_coordinates: Dict[str, Point] = {}
        self.nodes: Dict[str, NodeRecord] = {}
        self.current_position: Point = ORIGIN
        self.axis_scale: float = 1.0
        self.global_scale: float = 1.0
        self.z_projection: Tuple[float, float] = DEFAULT_Z_PROJECTION

    def reset(self) -> None:
        """Move the cursor back to the origin; registries are kept."""
        self.current_position = ORIGIN

    @property
    def factor(self) -> float:
        return self.axis_scale * self.global_scale

    def register_node(self, name: str, center: Point, shape: str, width: float, height: float) -> NodeRecord:
        record = NodeRecord(center, shape, width, height, calculate_anchors(center, shape, width, height))
        self.nodes[name] = record
        return record

    def set_named_coordinate(self, name: str, point: Point) -> None:
        self.named_coordinates[name] = point

    def get_node_boundary_point(self, node_name: str, target: Point) -> Point:
        node = self.nodes.get(node_name)
        if node is None:
            return target
        return boundary_point(node.center, node.shape, node.width, node.height, target)

    def apply_transformations(self, point: Point, transformations: Sequence[Transformation]) -> Point:
        if not transformations:
            return point
        return compose_transformations(transformations).apply(point)

    def parse_coordinate(self, text: str, is_relative: bool = False, update_position: bool = True) -> Point:
        return self.resolve(text, is_relative, update_position).point

    def resolve(self, text: str, is_relative: bool = False, update_position: bool = True) -> CoordinateRef:
        """Resolve one coordinate literal (without its parentheses).

        Forms are tried in order: calc ``$...$``, polar ``a:r``, numeric
        tuples, ``name.anchor``, bare names. Anything else resolves to the
        current position and leaves the cursor alone.
        """
        text = text.strip()
        try:
            ref = self._resolve(text, is_relative)
        except ExpressionError as exc:
            logger.debug("Cannot evaluate coordinate %r: %s", text, exc)
            ref = None
        if ref is None:
            logger.debug("Unresolved coordinate %r, using current position", text)
            return CoordinateRef(self.current_position)
        if update_position:
            self.current_position = ref.point
        return ref

    def _resolve(self, text: str, is_relative: bool) -> Optional[CoordinateRef]:
        if len(text) >= 2 and text.startswith("$") and text.endswith("$"):
            return CoordinateRef(self._resolve_calc(text[1:-1]), absolute=True)

        if text.count(":") == 1 and "$" not in text:
            angle_text, radius_text = text.split(":")
            angle = self._component(angle_text)
            radius = self._component(radius_text)
            rad = math.radians(angle)
            offset = Point3(radius * math.cos(rad), radius * math.sin(rad))
            return CoordinateRef(self._place(offset, is_relative))

        parts = split_top_level(text)
        if len(parts) in (2, 3) and "," in text:
            values = [self._component(part) for part in parts]
            return CoordinateRef(self._place(Point3(*values), is_relative))

        node_ref = self._resolve_named(text)
        if node_ref is not None:
            return node_ref
        return None

    def _place(self, point: Point3, is_relative: bool) -> Point:
        projected = point.project(self.z_projection, self.factor)
        if is_relative:
            return self.current_position.add(projected)
        return projected

    def _component(self, text: str) -> float:
        text = text.strip()
        if text.startswith("{") and text.endswith("}"):
            return evaluate(normalize_math(text[1:-1]))
        match = _UNIT_RE.match(text)
        if match:
            distance = parse_distance(text)
            if distance is not None:
                return distance
            return evaluate_coordinate_component(match.group(1)) * parse_distance("1" + match.group(2))
        return evaluate_coordinate_component(text)

    def _resolve_named(self, text: str) -> Optional[CoordinateRef]:
        node = self.nodes.get(text)
        if node is not None:
            return CoordinateRef(node.center, node_name=text, absolute=True)
        if text in self.named_coordinates:
            return CoordinateRef(self.named_coordinates[text], absolute=True)

        match = _ANCHOR_RE.match(text)
        if not match:
            return None
        name, anchor = match.group(1).strip(), match.group(2).strip()
        node = self.nodes.get(name)
        if node is None:
            if name in self.named_coordinates:
                return CoordinateRef(self.named_coordinates[name], absolute=True)
            return None
        try:
            angle = float(anchor)
        except ValueError:
            key = normalize_anchor(anchor)
            point = node.anchors.get(key)
            if point is None:
                return None
            return CoordinateRef(point, node_name=name, anchor=key, absolute=True)
        rad = math.radians(angle)
        target = Point(node.center.x + math.cos(rad), node.center.y + math.sin(rad))
        point = boundary_point(node.center, node.shape, node.width, node.height, target)
        return CoordinateRef(point, node_name=name, anchor=anchor, absolute=True)

    def _resolve_calc(self, expr: str) -> Point:
        """``(A) + 2*(B) - (1,0)`` and partway ``(A)!0.25!(B)`` terms."""
        total = ORIGIN
        i = 0
        n = len(expr)
        while True:
            while i < n and expr[i].isspace():
                i += 1
            if i >= n:
                break
            sign = 1.0
            if expr[i] in "+-":
                sign = -1.0 if expr[i] == "-" else 1.0
                i += 1
            factor = 1.0
            match = _FACTOR_RE.match(expr, i)
            if match:
                factor = float(match.group(1))
                i = match.end()
            while i < n and expr[i].isspace():
                i += 1
            inner, i = _read_group(expr, i)
            point = self.resolve(inner, update_position=False).point
            while i < n and expr[i] == "!":
                end = expr.find("!", i + 1)
                if end < 0:
                    raise ExpressionError(f"unterminated partway modifier in {expr!r}")
                t = evaluate(expr[i + 1:end])
                other_text, i = _read_group(expr, end + 1)
                other = self.resolve(other_text, update_position=False).point
                point = point.lerp(other, t)
            total = total.add(point.scale(sign * factor))
        return total


def _read_group(text: str, start: int) -> Tuple[str, int]:
    if start >= len(text) or text[start] != "(":
        raise ExpressionError(f"expected '(' at offset {start} in {text!r}")
    depth = 0
    for idx in range(start, len(text)):
        ch = text[idx]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[start + 1:idx], idx + 1
    raise ExpressionError(f"unbalanced parentheses in {text!r}")

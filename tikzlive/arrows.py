"""Arrow-tip catalog and per-render SVG marker definitions."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .svg import sub

# marker size in px at the base render scale
SIZE_FACTOR = 0.02


@dataclass(frozen=True)
class ArrowShape:
    name: str
    view_box: str
    ref_x_end: float
    ref_x_start: float
    ref_y: float
    size: float
    path: str
    filled: bool = True
    orient: str = "auto-start-reverse"
    stroke_attrs: Dict[str, str] = field(default_factory=dict)


ARROW_SHAPES: Dict[str, ArrowShape] = {
    shape.name: shape
    for shape in (
        ArrowShape("standard", "0 0 10 10", 9, 1, 5, 10, "M 0 0 L 10 5 L 0 10 L 3 5 Z"),
        ArrowShape("stealth", "0 0 12 12", 11, 1, 6, 12, "M 0 0 L 12 6 L 0 12 L 4 6 Z"),
        ArrowShape(
            "latex", "0 0 10 10", 9, 1, 5, 10,
            "M 0 0 C 3 3, 3 5, 0 5 L 10 5 L 0 5 C 3 5, 3 7, 0 10 L 0 0 Z",
        ),
        ArrowShape(
            "to", "0 0 10 10", 8, 2, 5, 8, "M 0 0 L 10 5 L 0 10", filled=False,
            stroke_attrs={"stroke-width": "1.5", "stroke-linecap": "round", "stroke-linejoin": "round"},
        ),
        ArrowShape(
            "bar", "0 0 10 10", 5, 5, 5, 8, "M 5 0 L 5 10", filled=False, orient="auto",
            stroke_attrs={"stroke-width": "2"},
        ),
        ArrowShape("reversed", "0 0 10 10", 1, 9, 5, 10, "M 10 0 L 0 5 L 10 10 L 7 5 Z"),
        ArrowShape(
            "double", "0 0 14 10", 13, 1, 5, 14,
            "M 0 0 L 7 5 L 0 10 L 2 5 Z M 6 0 L 13 5 L 6 10 L 8 5 Z",
        ),
    )
}

TYPE_MAP: Dict[str, str] = {
    ">": "standard",
    "<": "reversed",
    "stealth": "stealth",
    "latex": "latex",
    "to": "to",
    "|": "bar",
    ">>": "double",
    "<<": "double",
}


def arrow_name(arrow_type: str) -> str:
    return TYPE_MAP.get(arrow_type.strip().lower(), "standard")


def color_id(color: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "", color.strip().lower())


def marker_id(arrow_type: str, is_start: bool, color: str) -> str:
    side = "start" if is_start else "end"
    return f"arrow-{arrow_name(arrow_type)}-{side}-{color_id(color)}"


def marker_reference(arrow_type: str, is_start: bool, color: str = "#000000") -> str:
    """``url(#...)`` reference for ``marker-start``/``marker-end``."""
    return f"url(#{marker_id(arrow_type, is_start, color)})"


def build_marker(parent: ET.Element, arrow_type: str, is_start: bool, color: str, scale: float = 50.0) -> ET.Element:
    shape = ARROW_SHAPES[arrow_name(arrow_type)]
    size = shape.size * scale * SIZE_FACTOR
    marker = sub(
        parent,
        "marker",
        id=marker_id(arrow_type, is_start, color),
        viewBox=shape.view_box,
        refX=shape.ref_x_start if is_start else shape.ref_x_end,
        refY=shape.ref_y,
        markerWidth=size,
        markerHeight=size,
        orient=shape.orient,
        markerUnits="userSpaceOnUse",
    )
    if shape.filled:
        sub(marker, "path", d=shape.path, fill=color)
    else:
        path = sub(marker, "path", d=shape.path, fill="none", stroke=color)
        for key, value in shape.stroke_attrs.items():
            path.set(key, value)
    return marker


class MarkerRegistry:
    """Emits each (type, side, color) marker into ``defs`` at most once."""

    def __init__(self, defs: ET.Element, scale: float = 50.0):
        self.defs = defs
        self.scale = scale
        self._seen: Dict[Tuple[str, bool, str], str] = {}

    def reference(self, arrow_type: str, is_start: bool, color: Optional[str]) -> str:
        color = (color or "#000000").strip().lower()
        key = (arrow_name(arrow_type), is_start, color)
        if key not in self._seen:
            build_marker(self.defs, arrow_type, is_start, color, self.scale)
            self._seen[key] = marker_reference(arrow_type, is_start, color)
        return self._seen[key]

    def __len__(self) -> int:
        return len(self._seen)

"""Option lists to style records.

Every option key maps to a small handler in ``OPTION_HANDLERS``; handlers
receive the style being built (always a fresh clone) and the option value.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .geometry import Point, Transform

COLORS: Dict[str, str] = {
    "red": "#ff0000",
    "green": "#00ff00",
    "blue": "#0000ff",
    "cyan": "#00ffff",
    "magenta": "#ff00ff",
    "yellow": "#ffff00",
    "black": "#000000",
    "white": "#ffffff",
    "gray": "#808080",
    "grey": "#808080",
    "darkgray": "#404040",
    "darkgrey": "#404040",
    "lightgray": "#c0c0c0",
    "lightgrey": "#c0c0c0",
    "brown": "#bf8040",
    "lime": "#bfff00",
    "olive": "#808000",
    "orange": "#ff8000",
    "pink": "#ffbfbf",
    "purple": "#bf0040",
    "teal": "#008080",
    "violet": "#800080",
    "red!50": "#ff8080",
    "blue!50": "#8080ff",
    "green!50": "#80ff80",
    "red!25": "#ffbfbf",
    "blue!25": "#bfbfff",
    "green!25": "#bfffbf",
    "red!75": "#ff4040",
    "blue!75": "#4040ff",
    "green!75": "#40ff40",
}

# presets in pt
LINE_WIDTHS: Dict[str, float] = {
    "ultra thin": 0.1,
    "very thin": 0.2,
    "thin": 0.4,
    "semithick": 0.6,
    "thick": 0.8,
    "very thick": 1.2,
    "ultra thick": 1.6,
}

DASH_PATTERNS: Dict[str, Optional[List[float]]] = {
    "solid": None,
    "dashed": [5, 5],
    "dotted": [1, 3],
    "densely dashed": [3, 2],
    "loosely dashed": [5, 8],
    "densely dotted": [1, 2],
    "loosely dotted": [1, 5],
    "dash dot": [5, 3, 1, 3],
    "dash dot dot": [5, 3, 1, 3, 1, 3],
}

FONT_SIZES: Dict[str, int] = {
    "\\tiny": 6,
    "\\scriptsize": 8,
    "\\footnotesize": 10,
    "\\small": 12,
    "\\normalsize": 14,
    "\\large": 16,
    "\\Large": 18,
    "\\LARGE": 20,
    "\\huge": 24,
    "\\Huge": 28,
}

# centimetres per unit
LENGTH_UNITS: Dict[str, float] = {
    "cm": 1.0,
    "mm": 0.1,
    "pt": 0.0353,
    "em": 0.423,
    "ex": 0.19,
    "in": 2.54,
    "px": 0.0264,
}

# points per unit, for line widths
_PT_UNITS: Dict[str, float] = {
    "pt": 1.0,
    "mm": 2.845,
    "cm": 28.45,
    "in": 72.27,
    "px": 0.75,
    "em": 10.0,
    "ex": 4.3,
}

ARROW_TIPS = (">>", "<<", ">", "<", "|", "stealth", "latex", "to")

DECORATION_DEFAULTS: Dict[str, Tuple[float, float]] = {
    "snake": (0.05, 0.5),
    "zigzag": (0.05, 0.5),
    "coil": (0.05, 0.5),
    "brace": (0.15, 0.5),
}

_NUMBER = r"-?(?:\d+\.?\d*|\.\d+)"
_LENGTH_RE = re.compile(rf"^({_NUMBER})\s*(cm|mm|pt|em|ex|in|px)?$")
_MIX_RE = re.compile(r"^[a-z]+(?:!\d+(?:\.\d+)?(?:![a-z]+)?)+$")
_RGB_RE = re.compile(r"rgb\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)")
_XCOLOR_RGB_RE = re.compile(
    r"rgb\s*,\s*255\s*:\s*red\s*,\s*(\d+)\s*;\s*green\s*,\s*(\d+)\s*;\s*blue\s*,\s*(\d+)"
)
_HEX_RE = re.compile(r"^#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})$")
_DASH_RE = re.compile(rf"on\s+({_NUMBER})\s*(?:pt)?\s+off\s+({_NUMBER})\s*(?:pt)?")
_PAIR_RE = re.compile(rf"^\{{?\s*\(?\s*([^,()]+?)\s*,\s*([^,()]+?)\s*\)?\s*\}}?$")


@dataclass
class Transformation:
    kind: str
    x: float = 0.0
    y: float = 0.0
    value: float = 0.0

    def as_transform(self) -> Transform:
        if self.kind == "shift":
            return Transform.translation(self.x, self.y)
        if self.kind == "xshift":
            return Transform.translation(self.value, 0.0)
        if self.kind == "yshift":
            return Transform.translation(0.0, self.value)
        if self.kind == "rotate":
            return Transform.rotation(self.value)
        if self.kind == "scale":
            return Transform.scaling(self.value)
        if self.kind == "xscale":
            return Transform.scaling(self.value, 1.0)
        if self.kind == "yscale":
            return Transform.scaling(1.0, self.value)
        raise ValueError(f"unknown transformation {self.kind!r}")


@dataclass
class Decoration:
    kind: str = "snake"
    amplitude: float = 0.05
    segment_length: float = 0.5
    mirror: bool = False


@dataclass
class Style:
    stroke: str = "#000000"
    fill: str = "none"
    color: Optional[str] = None
    text_color: Optional[str] = None
    line_width: float = 0.4
    dash_pattern: Optional[List[float]] = None
    opacity: float = 1.0
    fill_opacity: float = 1.0
    stroke_opacity: float = 1.0
    line_cap: str = "butt"
    line_join: str = "miter"
    rounded_corners: float = 0.0
    arrow_start: Optional[str] = None
    arrow_end: Optional[str] = None
    arrow_tip: Optional[str] = None
    transformations: List[Transformation] = field(default_factory=list)
    decorate: bool = False
    decoration: Optional[Decoration] = None

    def clone(self) -> "Style":
        style = copy.copy(self)
        style.dash_pattern = list(self.dash_pattern) if self.dash_pattern is not None else None
        style.transformations = [copy.copy(t) for t in self.transformations]
        style.decoration = copy.copy(self.decoration) if self.decoration is not None else None
        return style


def split_option(opt: str) -> Tuple[str, Optional[str]]:
    """``'key=value'`` -> ``('key', 'value')``; bare flags get ``None``."""
    trimmed = opt.strip()
    idx = trimmed.find("=")
    if idx == -1:
        return trimmed, None
    return trimmed[:idx].strip(), trimmed[idx + 1:].strip()


def strip_braces(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    while trimmed.startswith("{") and trimmed.endswith("}"):
        trimmed = trimmed[1:-1].strip()
    return trimmed


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split on ``sep`` outside of ``{}``/``()``/``[]`` groups."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch in "{([":
            depth += 1
        elif ch in "})]":
            depth -= 1
        if ch == sep and depth == 0:
            part = "".join(current).strip()
            if part:
                parts.append(part)
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def parse_distance(value: Optional[str], default_unit: str = "cm") -> Optional[float]:
    """Length with optional unit, converted to centimetres."""
    if value is None:
        return None
    match = _LENGTH_RE.match(value.strip())
    if not match:
        return None
    unit = match.group(2) or default_unit
    return float(match.group(1)) * LENGTH_UNITS[unit]


def parse_line_width(value: Optional[str]) -> Optional[float]:
    """Line width in points; presets are accepted too."""
    if value is None:
        return None
    key = value.strip().lower()
    if key in LINE_WIDTHS:
        return LINE_WIDTHS[key]
    match = _LENGTH_RE.match(key)
    if not match:
        return None
    return float(match.group(1)) * _PT_UNITS[match.group(2) or "pt"]


def parse_dash_pattern(value: Optional[str]) -> Optional[List[float]]:
    if not value:
        return None
    key = value.strip().lower()
    if key in DASH_PATTERNS:
        pattern = DASH_PATTERNS[key]
        return list(pattern) if pattern is not None else None
    match = _DASH_RE.search(key)
    if match:
        return [float(match.group(1)), float(match.group(2))]
    return None


def _hex_to_rgb(color: str) -> Tuple[int, int, int]:
    match = _HEX_RE.match(color.strip().lower())
    if not match:
        return (0, 0, 0)
    return tuple(int(part, 16) for part in match.groups())  # type: ignore[return-value]


def _mix(parts: Sequence[str]) -> str:
    r, g, b = _hex_to_rgb(COLORS.get(parts[0], "#000000"))
    idx = 1
    while idx < len(parts):
        ratio = float(parts[idx]) / 100.0
        partner = parts[idx + 1] if idx + 1 < len(parts) else "white"
        pr, pg, pb = _hex_to_rgb(COLORS.get(partner, "#ffffff"))
        r = round(r * ratio + pr * (1 - ratio))
        g = round(g * ratio + pg * (1 - ratio))
        b = round(b * ratio + pb * (1 - ratio))
        idx += 2
    return f"rgb({r}, {g}, {b})"


def parse_color(value: Optional[str]) -> Optional[str]:
    """Resolve a color name, ``c1!p!c2`` mix, rgb form or hex literal.

    Unknown names are passed through unchanged so CSS color keywords keep
    working; empty input yields ``None``.
    """
    if not value:
        return None
    raw = strip_braces(value) or ""
    trimmed = raw.lower()
    if not trimmed:
        return None
    if trimmed in COLORS:
        return COLORS[trimmed]
    if _MIX_RE.match(trimmed):
        return _mix(trimmed.split("!"))
    match = _RGB_RE.search(trimmed) or _XCOLOR_RGB_RE.search(trimmed)
    if match:
        r, g, b = (min(255, int(part)) for part in match.groups())
        return f"rgb({r}, {g}, {b})"
    if trimmed.startswith("#"):
        return trimmed
    return raw


def _set_stroke_color(style: Style, value: Optional[str]) -> None:
    color = parse_color(value)
    if color:
        style.stroke = color
        style.color = color


def _opt_draw(style: Style, value: Optional[str]) -> None:
    if value:
        style.stroke = parse_color(value) or style.stroke


def _opt_fill(style: Style, value: Optional[str]) -> None:
    style.fill = parse_color(value) or "currentColor"


def _opt_text(style: Style, value: Optional[str]) -> None:
    style.text_color = parse_color(value) or style.text_color


def _opt_line_width(style: Style, value: Optional[str]) -> None:
    width = parse_line_width(value)
    if width is not None:
        style.line_width = width


def _preset_width(name: str) -> Callable[[Style, Optional[str]], None]:
    def handler(style: Style, value: Optional[str]) -> None:
        style.line_width = LINE_WIDTHS[name]

    return handler


def _preset_dash(name: str) -> Callable[[Style, Optional[str]], None]:
    def handler(style: Style, value: Optional[str]) -> None:
        style.dash_pattern = parse_dash_pattern(name)

    return handler


def _opt_dash_pattern(style: Style, value: Optional[str]) -> None:
    style.dash_pattern = parse_dash_pattern(value)


def _float_setter(attr: str) -> Callable[[Style, Optional[str]], None]:
    def handler(style: Style, value: Optional[str]) -> None:
        try:
            setattr(style, attr, float(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            pass

    return handler


def _str_setter(attr: str) -> Callable[[Style, Optional[str]], None]:
    def handler(style: Style, value: Optional[str]) -> None:
        if value:
            setattr(style, attr, value)

    return handler


def _opt_rounded_corners(style: Style, value: Optional[str]) -> None:
    radius = parse_distance(value, default_unit="pt") if value else None
    style.rounded_corners = radius if radius is not None else 0.1


def _opt_sharp_corners(style: Style, value: Optional[str]) -> None:
    style.rounded_corners = 0.0


def _opt_help_lines(style: Style, value: Optional[str]) -> None:
    style.stroke = COLORS["gray"]
    style.line_width = LINE_WIDTHS["very thin"]


def _opt_arrow_tip(style: Style, value: Optional[str]) -> None:
    if value:
        style.arrow_tip = value.strip().lower()


def _opt_arrow(style: Style, value: Optional[str]) -> None:
    style.arrow_end = ">"


def _parse_pair(value: Optional[str]) -> Optional[Point]:
    if not value:
        return None
    match = _PAIR_RE.match(value.strip())
    if not match:
        return None
    x = parse_distance(match.group(1))
    y = parse_distance(match.group(2))
    if x is None or y is None:
        return None
    return Point(x, y)


def _opt_shift(style: Style, value: Optional[str]) -> None:
    offset = _parse_pair(value)
    if offset is not None:
        style.transformations.append(Transformation("shift", x=offset.x, y=offset.y))


def _shift_axis(kind: str) -> Callable[[Style, Optional[str]], None]:
    def handler(style: Style, value: Optional[str]) -> None:
        amount = parse_distance(strip_braces(value), default_unit="pt")
        if amount is not None:
            style.transformations.append(Transformation(kind, value=amount))

    return handler


def _scalar_transform(kind: str) -> Callable[[Style, Optional[str]], None]:
    def handler(style: Style, value: Optional[str]) -> None:
        try:
            amount = float(strip_braces(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return
        style.transformations.append(Transformation(kind, value=amount))

    return handler


def _opt_decorate(style: Style, value: Optional[str]) -> None:
    style.decorate = True


def parse_decoration(value: Optional[str]) -> Optional[Decoration]:
    """``{snake, amplitude=1mm, segment length=4mm}`` style decoration specs."""
    if not value:
        return None
    parts = split_top_level(strip_braces(value) or "")
    kind = "snake"
    for part in parts:
        key, _ = split_option(part)
        if key in DECORATION_DEFAULTS:
            kind = key
    amplitude, segment_length = DECORATION_DEFAULTS[kind]
    decoration = Decoration(kind, amplitude, segment_length)
    for part in parts:
        key, val = split_option(part)
        if key == "amplitude":
            parsed = parse_distance(val, default_unit="mm")
            if parsed is not None:
                decoration.amplitude = parsed
        elif key == "segment length":
            parsed = parse_distance(val, default_unit="mm")
            if parsed is not None and parsed > 0:
                decoration.segment_length = parsed
        elif key in ("mirror", "mirror=true"):
            decoration.mirror = True
    return decoration


def _opt_decoration(style: Style, value: Optional[str]) -> None:
    decoration = parse_decoration(value)
    if decoration is not None:
        style.decoration = decoration


def _normalize_tip(tip: str, at_start: bool) -> str:
    tip = tip.lower()
    if at_start:
        # a tip written on the left points outward when it opens to the left
        return {"<": ">", ">": "<", "<<": ">>", ">>": "<<"}.get(tip, tip)
    return tip


def parse_arrow_spec(key: str) -> Optional[Tuple[Optional[str], Optional[str]]]:
    """``'<->'`` -> ``('>', '>')``, ``'-stealth'`` -> ``(None, 'stealth')``."""
    if "-" not in key or "=" in key:
        return None
    for idx, ch in enumerate(key):
        if ch != "-":
            continue
        left, right = key[:idx], key[idx + 1:]
        left_ok = left == "" or left.lower() in ARROW_TIPS
        right_ok = right == "" or right.lower() in ARROW_TIPS
        if left_ok and right_ok and (left or right):
            start = _normalize_tip(left, True) if left else None
            end = _normalize_tip(right, False) if right else None
            return start, end
    return None


OPTION_HANDLERS: Dict[str, Callable[[Style, Optional[str]], None]] = {
    "color": _set_stroke_color,
    "draw": _opt_draw,
    "fill": _opt_fill,
    "text": _opt_text,
    "line width": _opt_line_width,
    "dash pattern": _opt_dash_pattern,
    "opacity": _float_setter("opacity"),
    "fill opacity": _float_setter("fill_opacity"),
    "draw opacity": _float_setter("stroke_opacity"),
    "line cap": _str_setter("line_cap"),
    "line join": _str_setter("line_join"),
    "rounded corners": _opt_rounded_corners,
    "sharp corners": _opt_sharp_corners,
    "help lines": _opt_help_lines,
    ">": _opt_arrow_tip,
    "arrow": _opt_arrow,
    "shift": _opt_shift,
    "xshift": _shift_axis("xshift"),
    "yshift": _shift_axis("yshift"),
    "rotate": _scalar_transform("rotate"),
    "scale": _scalar_transform("scale"),
    "xscale": _scalar_transform("xscale"),
    "yscale": _scalar_transform("yscale"),
    "decorate": _opt_decorate,
    "decoration": _opt_decoration,
}
OPTION_HANDLERS.update({name: _preset_width(name) for name in LINE_WIDTHS})
OPTION_HANDLERS.update({name: _preset_dash(name) for name in DASH_PATTERNS})


def apply_option(style: Style, opt: str) -> None:
    key, value = split_option(opt)
    handler = OPTION_HANDLERS.get(key)
    if handler is not None:
        handler(style, value)
        return
    arrows = parse_arrow_spec(key) if value is None else None
    if arrows is not None:
        start, end = arrows
        style.arrow_start = start
        style.arrow_end = end
        return
    if value is None:
        color = parse_color(key)
        if color and color != key:
            style.stroke = color
            style.color = color


def parse_options(options: Iterable[str], base: Optional[Style] = None) -> Style:
    """Build a style from ``options`` on top of a clone of ``base``."""
    style = base.clone() if base is not None else Style()
    for opt in options:
        if opt.strip():
            apply_option(style, opt)
    return style


def compose_transformations(transformations: Sequence[Transformation]) -> Transform:
    """Compose in list order: the first entry is applied to a point first."""
    result = Transform()
    for item in transformations:
        result = result.then(item.as_transform())
    return result


def transform_for(style: Style) -> Transform:
    return compose_transformations(style.transformations)


@dataclass
class NodeOptions:
    shape: str = "rectangle"
    anchor: str = "center"
    min_width: float = 0.0
    min_height: float = 0.0
    inner_sep: float = 0.3333 * LENGTH_UNITS["em"]
    outer_sep: float = 0.0
    draw: bool = False
    fill: Optional[str] = None
    align: str = "center"
    font_size: Optional[int] = None
    rotate: float = 0.0
    text_width: Optional[float] = None


_OPPOSITE_ANCHORS = {
    "above": "south",
    "below": "north",
    "left": "east",
    "right": "west",
    "above left": "south east",
    "above right": "south west",
    "below left": "north east",
    "below right": "north west",
}


def parse_font_size(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    for token in reversed(re.findall(r"\\[A-Za-z]+", value)):
        if token in FONT_SIZES:
            return FONT_SIZES[token]
    return None


def parse_node_options(options: Iterable[str], default_font_size: Optional[int] = None) -> NodeOptions:
    result = NodeOptions(font_size=default_font_size)
    for opt in options:
        key, value = split_option(opt)
        if key in ("circle", "rectangle", "ellipse"):
            result.shape = key
        elif key == "shape" and value:
            result.shape = value
        elif key == "box":
            result.shape = "rectangle"
            result.draw = True
        elif key == "anchor" and value:
            result.anchor = value
        elif key == "minimum width":
            result.min_width = parse_distance(value) or 0.0
        elif key == "minimum height":
            result.min_height = parse_distance(value) or 0.0
        elif key == "minimum size":
            result.min_width = result.min_height = parse_distance(value) or 0.0
        elif key == "inner sep":
            sep = parse_distance(value, default_unit="pt")
            if sep is not None:
                result.inner_sep = sep
        elif key == "outer sep":
            result.outer_sep = parse_distance(value, default_unit="pt") or 0.0
        elif key == "draw":
            result.draw = value != "none"
        elif key == "fill":
            result.fill = value or "currentColor"
        elif key == "align":
            result.align = value or "center"
        elif key == "font":
            result.font_size = parse_font_size(value) or result.font_size
        elif key == "rotate":
            try:
                result.rotate = float(value or 0)
            except ValueError:
                result.rotate = 0.0
        elif key == "text width":
            result.text_width = parse_distance(value)
        elif key in _OPPOSITE_ANCHORS:
            result.anchor = _OPPOSITE_ANCHORS[key]
    return result

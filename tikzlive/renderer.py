"""Document to SVG.

Rendering runs in two passes. :meth:`Renderer.measure` sizes every node
from its text with the configured :class:`~tikzlive.text.TextMeasurer`;
:meth:`Renderer.layout` then computes the drawing bounds and emits SVG,
recomputing every node-attached endpoint from the measured sizes since
the parser only had a rough estimate.

Drawing space is centimetres with y pointing up; the y flip happens in
``_Canvas.to_svg`` and nowhere else.
"""

from __future__ import annotations

import itertools
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .arrows import MarkerRegistry
from .ast import (
    ARC_SEGMENT,
    AXIS,
    CIRCLE,
    COORDINATE,
    CURVE_SEGMENT,
    CYCLE,
    DRAW,
    ELLIPSE,
    FILL,
    FILLDRAW,
    GRID,
    LINE_SEGMENT,
    NODE,
    NODE_SEGMENT,
    PATH,
    PLOT_SEGMENT,
    RECTANGLE,
    Command,
    Document,
    EdgeLabel,
    NodeSpec,
    Segment,
)
from .config import RenderOptions, get_default_render_options
from .coordinates import CoordinateSystem
from .decorations import brace_path, snake_circle, snake_line
from .geometry import (
    Point,
    anchor_offset,
    angle_of,
    bezier_point,
    bezier_tangent,
    boundary_point,
    calculate_anchors,
    curve_controls,
    normalize_anchor,
)
from .logging_utils import apply_debug_logging
from .pgfplots import axis_extent, render_axis
from .styles import Style, parse_color, split_option
from .svg import element, fmt, sub
from .svg import to_svg_string as _serialize
from .text import PillowTextMeasurer, TextLine, TextMeasurer, append_rich_text, measure_block, parse_node_text

logger = logging.getLogger(__name__)

NODE_LINE_HEIGHT = 16
LABEL_FONT_SIZE = 10
LABEL_LINE_HEIGHT = 14
MIN_CANVAS = 100

# (stroke, fill) painted by default for each path command
_PAINT = {
    DRAW: (True, False),
    FILL: (False, True),
    FILLDRAW: (True, True),
}


@dataclass
class NodeMetrics:
    """Measured node box in drawing units."""

    center: Point
    width: float
    height: float
    shape: str = "rectangle"
    anchor: str = "center"

    def boundary_point(self, target: Point) -> Point:
        return boundary_point(self.center, self.shape, self.width, self.height, target)

    def anchor_point(self, anchor: str) -> Point:
        try:
            angle = float(anchor)
        except ValueError:
            anchors = calculate_anchors(self.center, self.shape, self.width, self.height)
            return anchors.get(normalize_anchor(anchor), self.center)
        rad = math.radians(angle)
        return self.boundary_point(Point(self.center.x + math.cos(rad), self.center.y + math.sin(rad)))


class _Canvas:
    """Per-render state: pixel mapping, defs, markers and id counters."""

    def __init__(
        self,
        options: RenderOptions,
        measurer: TextMeasurer,
        bounds: Tuple[float, float, float, float],
        defs: ET.Element,
    ):
        self.options = options
        self.scale = options.scale
        self.font_scale = options.font_scale
        self.family = options.font_family
        self.measurer = measurer
        self.bounds = bounds
        self.defs = defs
        self.markers = MarkerRegistry(defs, options.scale)
        self._ids: Dict[str, Iterator[int]] = {}

    def to_svg(self, point: Point) -> Tuple[float, float]:
        return point.x * self.scale, (self.bounds[3] - point.y) * self.scale

    def new_id(self, prefix: str) -> str:
        counter = self._ids.setdefault(prefix, itertools.count(1))
        return f"{prefix}-{next(counter)}"


class _PathData:
    """Accumulates one SVG path string, inserting moves only when needed."""

    def __init__(self, canvas: _Canvas):
        self.canvas = canvas
        self.parts: List[str] = []
        self.pen: Optional[Tuple[float, float]] = None
        self.subpath_start: Optional[Tuple[float, float]] = None

    def _xy(self, point: Point) -> Tuple[float, float]:
        return self.canvas.to_svg(point)

    def ensure(self, point: Point) -> None:
        x, y = self._xy(point)
        if self.pen is None or abs(self.pen[0] - x) > 1e-6 or abs(self.pen[1] - y) > 1e-6:
            self.parts.append(f"M {fmt(x)} {fmt(y)}")
            self.pen = (x, y)
            self.subpath_start = (x, y)

    def line(self, point: Point) -> None:
        x, y = self._xy(point)
        self.parts.append(f"L {fmt(x)} {fmt(y)}")
        self.pen = (x, y)

    def curve(self, c1: Point, c2: Point, end: Point) -> None:
        coords = [self._xy(p) for p in (c1, c2, end)]
        self.parts.append("C " + ", ".join(f"{fmt(x)} {fmt(y)}" for x, y in coords))
        self.pen = coords[-1]

    def arc(self, rx: float, ry: float, rotation: float, large: bool, sweep: bool, end: Point) -> None:
        x, y = self._xy(end)
        scale = self.canvas.scale
        self.parts.append(
            f"A {fmt(rx * scale)} {fmt(ry * scale)} {fmt(-rotation)} {int(large)} {int(sweep)} {fmt(x)} {fmt(y)}"
        )
        self.pen = (x, y)

    def close(self) -> None:
        self.parts.append("Z")
        self.pen = self.subpath_start

    def __bool__(self) -> bool:
        return bool(self.parts)

    def __str__(self) -> str:
        return " ".join(self.parts)


def _smooth_controls(points: Sequence[Point]) -> List[Tuple[Point, Point, Point]]:
    """Catmull-Rom spline through ``points`` as cubic Bezier pieces."""
    pieces = []
    n = len(points)
    for i in range(n - 1):
        p0 = points[i - 1] if i > 0 else points[i]
        p1 = points[i]
        p2 = points[i + 1]
        p3 = points[i + 2] if i + 2 < n else p2
        c1 = p1.add(p2.subtract(p0).scale(1 / 6))
        c2 = p2.subtract(p3.subtract(p1).scale(1 / 6))
        pieces.append((c1, c2, p2))
    return pieces


def _has_option(options: Sequence[str], key: str) -> bool:
    return any(split_option(opt)[0] == key for opt in options)


def _readable_angle(angle: float) -> float:
    if angle > 90:
        return angle - 180
    if angle < -90:
        return angle + 180
    return angle


class Renderer:
    def __init__(self, options: Optional[RenderOptions] = None, measurer: Optional[TextMeasurer] = None):
        self.options = options or get_default_render_options()
        self.measurer = measurer or PillowTextMeasurer()
        self._measured: Dict[int, NodeMetrics] = {}

    # -- pass 1: measurement -----------------------------------------------

    def _text_lines(self, text: str, font_size: Optional[float]) -> List[TextLine]:
        return parse_node_text(text, font_size, self.options.font_scale)

    def _measure_text(self, lines: List[TextLine], line_height: float) -> Tuple[float, float]:
        return measure_block(self.measurer, lines, self.options.font_family, line_height)

    def measure_node(self, node: NodeSpec) -> NodeMetrics:
        scale = self.options.scale
        opts = node.options
        lines = self._text_lines(node.text, opts.font_size)
        text_w, text_h = self._measure_text(lines, NODE_LINE_HEIGHT * self.options.font_scale)
        min_width = opts.min_width
        if opts.text_width is not None:
            min_width = max(min_width, opts.text_width + 2 * opts.inner_sep)
        width = max(min_width * scale, text_w + 2 * opts.inner_sep * scale) / scale
        height = max(opts.min_height * scale, text_h + 2 * opts.inner_sep * scale) / scale
        if opts.shape == "circle":
            width = height = max(width, height)
        width += 2 * opts.outer_sep
        height += 2 * opts.outer_sep
        center = node.position
        if not node.positioned:
            center = node.position.subtract(anchor_offset(opts.anchor, opts.shape, width, height))
        return NodeMetrics(center, width, height, opts.shape, opts.anchor)

    def _metrics_of(self, node: NodeSpec) -> NodeMetrics:
        key = id(node)
        if key not in self._measured:
            self._measured[key] = self.measure_node(node)
        return self._measured[key]

    def _node_metrics(self, node: NodeSpec, metrics: Dict[str, NodeMetrics]) -> NodeMetrics:
        """Caller-supplied metrics for a named node, else its own measurement."""
        own = self._metrics_of(node)
        supplied = metrics.get(node.name) if node.name else None
        if supplied is None or any(supplied is m for m in self._measured.values()):
            return own
        return supplied

    def measure(self, document: Document) -> Dict[str, NodeMetrics]:
        """Metrics of every named node; a later node with the same name wins."""
        metrics: Dict[str, NodeMetrics] = {}
        self._measured = {}
        for node in document.iter_nodes():
            measured = self._metrics_of(node)
            if node.name:
                metrics[node.name] = measured
        logger.debug("Measured %d named node(s)", len(metrics))
        return metrics

    # -- geometry recomputed from metrics ----------------------------------

    def _metrics_for(
        self, name: Optional[str], metrics: Dict[str, NodeMetrics], coords: Optional[CoordinateSystem]
    ) -> Optional[NodeMetrics]:
        if not name:
            return None
        found = metrics.get(name)
        if found is None and coords is not None and name in coords.nodes:
            record = coords.nodes[name]
            found = NodeMetrics(record.center, record.width, record.height, record.shape)
        if found is None:
            logger.debug("No metrics for node %r, keeping parsed endpoint", name)
        return found

    def _endpoints(
        self,
        seg: Segment,
        metrics: Dict[str, NodeMetrics],
        coords: Optional[CoordinateSystem],
        toward_from: Optional[Point] = None,
        toward_to: Optional[Point] = None,
    ) -> Tuple[Point, Point]:
        """Start and end of a line or curve after re-trimming against measured nodes.

        ``toward_from``/``toward_to`` override the direction used to trim each
        end (curves trim toward their control points).
        """
        frm: Point = seg.get("from")
        to: Point = seg.get("to")
        fm = self._metrics_for(seg.get("from_node"), metrics, coords)
        tm = self._metrics_for(seg.get("to_node"), metrics, coords)
        from_anchor = seg.get("from_anchor")
        to_anchor = seg.get("to_anchor")
        if fm is not None and from_anchor:
            frm = fm.anchor_point(from_anchor)
        if tm is not None and to_anchor:
            to = tm.anchor_point(to_anchor)
        from_ref = frm if fm is None or from_anchor else fm.center
        to_ref = to if tm is None or to_anchor else tm.center
        if fm is not None and not from_anchor:
            frm = fm.boundary_point(toward_from or to_ref)
        if tm is not None and not to_anchor:
            to = tm.boundary_point(toward_to or from_ref)
        return frm, to

    def _curve_geometry(
        self, seg: Segment, metrics: Dict[str, NodeMetrics], coords: Optional[CoordinateSystem]
    ) -> Tuple[Point, Point, Point, Point]:
        if seg.get("out") is not None and seg.get("in") is not None:
            out_deg, in_deg = seg.get("out"), seg.get("in")
            frm, to = seg.get("from"), seg.get("to")
            fm = self._metrics_for(seg.get("from_node"), metrics, coords)
            tm = self._metrics_for(seg.get("to_node"), metrics, coords)
            toward_from = toward_to = None
            if fm is not None:
                rad = math.radians(out_deg)
                toward_from = Point(fm.center.x + math.cos(rad), fm.center.y + math.sin(rad))
            if tm is not None:
                rad = math.radians(in_deg)
                toward_to = Point(tm.center.x + math.cos(rad), tm.center.y + math.sin(rad))
            if fm is not None or tm is not None:
                frm, to = self._endpoints(seg, metrics, coords, toward_from, toward_to)
            c1, c2 = curve_controls(frm, to, out_deg, in_deg, seg.get("looseness", 1.0))
            return frm, c1, c2, to
        c1, c2 = seg.get("control1"), seg.get("control2")
        frm, to = self._endpoints(seg, metrics, coords, c1, c2)
        return frm, c1, c2, to

    # -- pass 2: bounds ----------------------------------------------------

    def _node_extent(self, node: NodeSpec, metrics: Dict[str, NodeMetrics]) -> List[Point]:
        m = self._node_metrics(node, metrics)
        hw, hh = m.width / 2, m.height / 2
        return [Point(m.center.x - hw, m.center.y - hh), Point(m.center.x + hw, m.center.y + hh)]

    def _segment_extent(self, seg: Segment) -> List[Point]:
        points: List[Point] = []
        for key in ("from", "to", "control1", "control2", "start", "end", "mid"):
            value = seg.get(key)
            if isinstance(value, Point):
                points.append(value)
        center = seg.get("center")
        if isinstance(center, Point):
            r = seg.get("radius") or max(seg.get("rx", 0.0), seg.get("ry", 0.0))
            decoration_pad = 0.2
            points.append(Point(center.x - r - decoration_pad, center.y - r - decoration_pad))
            points.append(Point(center.x + r + decoration_pad, center.y + r + decoration_pad))
        points.extend(seg.get("points") or [])
        points.extend(seg.get("corners") or [])
        for label in seg.get("labels") or []:
            frm, to = seg.get("from"), seg.get("to")
            at = frm.lerp(to, label.pos).add(label.offset)
            points.append(Point(at.x - 0.5, at.y - 1.0))
            points.append(Point(at.x + 3.0, at.y + 1.0))
        return points

    def compute_bounds(self, document: Document, metrics: Dict[str, NodeMetrics]) -> Tuple[float, float, float, float]:
        """``(min_x, min_y, max_x, max_y)`` of the drawing plus the margin."""
        min_x, min_y, max_x, max_y = -1.0, -1.0, 1.0, 1.0
        points: List[Point] = []
        for cmd in document.commands:
            if cmd.kind == NODE and "node" in cmd.data:
                points.extend(self._node_extent(cmd.data["node"], metrics))
            elif cmd.kind == COORDINATE:
                points.append(cmd.data["position"])
            elif cmd.kind == AXIS:
                points.extend(axis_extent(cmd, self.measurer, self.options.base_scale))
            for seg in cmd.segments:
                if seg.kind == NODE_SEGMENT:
                    points.extend(self._node_extent(seg.data["node"], metrics))
                else:
                    points.extend(self._segment_extent(seg))
        for p in points:
            min_x, max_x = min(min_x, p.x), max(max_x, p.x)
            min_y, max_y = min(min_y, p.y), max(max_y, p.y)
        margin = self.options.margin
        return min_x - margin, min_y - margin, max_x + margin, max_y + margin

    # -- pass 2: emission --------------------------------------------------

    def layout(
        self,
        document: Document,
        metrics: Dict[str, NodeMetrics],
        coords: Optional[CoordinateSystem] = None,
    ) -> ET.Element:
        opts = self.options
        bounds = self.compute_bounds(document, metrics)
        min_x, min_y, max_x, max_y = bounds
        width = max(MIN_CANVAS, (max_x - min_x) * opts.scale + 2 * opts.padding)
        height = max(MIN_CANVAS, (max_y - min_y) * opts.scale + 2 * opts.padding)

        root = element(
            "svg",
            width=width,
            height=height,
            viewBox=f"0 0 {fmt(width)} {fmt(height)}",
            style=f"background-color: {opts.background}",
        )
        defs = sub(root, "defs")
        canvas = _Canvas(opts, self.measurer, bounds, defs)
        main = sub(root, "g", transform=f"translate({fmt(opts.padding - min_x * opts.scale)}, {fmt(opts.padding)})")

        for cmd in document.commands:
            if cmd.kind == NODE and "node" in cmd.data:
                self._render_node(canvas, main, cmd.data["node"], metrics)
            elif cmd.kind == AXIS:
                render_axis(canvas, main, cmd)
            elif cmd.kind in _PAINT or cmd.kind == PATH:
                self._render_path_command(canvas, main, cmd, metrics, coords)
        logger.info("Rendered %d command(s) onto a %sx%s px canvas", len(document.commands), fmt(width), fmt(height))
        return root

    def render(self, document: Document, coords: Optional[CoordinateSystem] = None) -> ET.Element:
        metrics = self.measure(document)
        return self.layout(document, metrics, coords)

    # -- paint ---------------------------------------------------------------

    def _paint(self, cmd: Command) -> Tuple[bool, bool]:
        stroke_on, fill_on = _PAINT.get(cmd.kind, (False, False))
        style = cmd.style
        if cmd.kind == PATH and _has_option(cmd.options, "draw"):
            stroke_on = True
        if style.fill not in ("none", None):
            fill_on = True
        return stroke_on, fill_on

    def _stroke_color(self, style: Style) -> str:
        return style.stroke or self.options.default_stroke

    def _fill_color(self, style: Style) -> str:
        if style.fill in ("none", None, "currentColor"):
            return style.color or self._stroke_color(style)
        return style.fill

    def _paint_attrs(self, style: Style, stroke_on: bool, fill_on: bool) -> Dict[str, object]:
        attrs: Dict[str, object] = {}
        if stroke_on:
            attrs["stroke"] = self._stroke_color(style)
            attrs["stroke_width"] = style.line_width * 2
            if style.dash_pattern:
                attrs["stroke_dasharray"] = " ".join(fmt(v * 2) for v in style.dash_pattern)
            if style.line_cap != "butt":
                attrs["stroke_linecap"] = style.line_cap
            if style.line_join != "miter":
                attrs["stroke_linejoin"] = style.line_join
            if style.stroke_opacity != 1.0:
                attrs["stroke_opacity"] = style.stroke_opacity
        else:
            attrs["stroke"] = "none"
        if fill_on:
            attrs["fill"] = self._fill_color(style)
            if style.fill_opacity != 1.0:
                attrs["fill_opacity"] = style.fill_opacity
        else:
            attrs["fill"] = "none"
        if style.opacity != 1.0:
            attrs["opacity"] = style.opacity
        return attrs

    def _marker_attrs(self, canvas: _Canvas, style: Style) -> Dict[str, object]:
        attrs: Dict[str, object] = {}
        color = self._stroke_color(style)
        end = style.arrow_end
        if end == ">" and style.arrow_tip:
            end = style.arrow_tip
        start = style.arrow_start
        if start == ">" and style.arrow_tip:
            start = style.arrow_tip
        if end:
            attrs["marker_end"] = canvas.markers.reference(end, False, color)
        if start:
            attrs["marker_start"] = canvas.markers.reference(start, True, color)
        return attrs

    # -- paths ---------------------------------------------------------------

    def _render_path_command(
        self,
        canvas: _Canvas,
        parent: ET.Element,
        cmd: Command,
        metrics: Dict[str, NodeMetrics],
        coords: Optional[CoordinateSystem],
    ) -> None:
        style = cmd.style
        stroke_on, fill_on = self._paint(cmd)
        paint = self._paint_attrs(style, stroke_on, fill_on)
        decoration = style.decoration if style.decorate and style.decoration is not None else None
        path = _PathData(canvas)
        shapes: List[ET.Element] = []
        overlays: List[Tuple[str, object]] = []

        for seg in cmd.segments:
            kind = seg.kind
            if kind == LINE_SEGMENT:
                frm, to = self._endpoints(seg, metrics, coords)
                path.ensure(frm)
                if decoration is not None and decoration.kind == "brace":
                    for c1, c2, end in brace_path(frm, to, decoration.amplitude, decoration.mirror):
                        path.curve(c1, c2, end)
                elif decoration is not None:
                    points = snake_line(frm, to, decoration.amplitude, decoration.segment_length, decoration.kind)
                    for point in points[1:]:
                        path.line(point)
                else:
                    path.line(to)
                for label in seg.get("labels") or []:
                    overlays.append(("label", (label, (frm, to))))
            elif kind == CURVE_SEGMENT:
                frm, c1, c2, to = self._curve_geometry(seg, metrics, coords)
                path.ensure(frm)
                path.curve(c1, c2, to)
                for label in seg.get("labels") or []:
                    overlays.append(("label", (label, (frm, c1, c2, to))))
            elif kind == ARC_SEGMENT:
                self._arc(path, seg)
            elif kind == CIRCLE:
                shapes.append(self._circle(canvas, seg, decoration, paint))
            elif kind == ELLIPSE:
                shapes.append(self._ellipse(canvas, seg, paint))
            elif kind == RECTANGLE:
                shapes.append(self._rectangle(canvas, seg, style, paint))
            elif kind == GRID:
                shapes.append(self._grid(canvas, seg, self._paint_attrs(style, True, False)))
            elif kind == PLOT_SEGMENT:
                self._plot(path, seg)
            elif kind == CYCLE:
                if path:
                    path.close()
            elif kind == NODE_SEGMENT:
                overlays.append(("node", seg.data["node"]))

        parent.extend(shapes)

        if path:
            attrs = dict(paint)
            if stroke_on:
                attrs.update(self._marker_attrs(canvas, style))
            sub(parent, "path", d=str(path), **attrs)

        for kind, payload in overlays:
            if kind == "node":
                self._render_node(canvas, parent, payload, metrics)
            else:
                label, geometry = payload
                self._render_edge_label(canvas, parent, label, geometry)

    def _arc(self, path: _PathData, seg: Segment) -> None:
        start: Point = seg.get("start")
        end: Point = seg.get("end")
        rx, ry, rotation = seg.get("rx"), seg.get("ry"), seg.get("rotation", 0.0)
        delta = abs(seg.get("end_angle") - seg.get("start_angle"))
        sweep = not seg.get("ccw")
        path.ensure(start)
        if delta >= 360:
            mid: Point = seg.get("mid")
            path.arc(rx, ry, rotation, delta / 2 > 180, sweep, mid)
            path.arc(rx, ry, rotation, delta / 2 > 180, sweep, end)
        else:
            path.arc(rx, ry, rotation, delta > 180, sweep, end)

    def _plot(self, path: _PathData, seg: Segment) -> None:
        points: List[Point] = seg.get("points") or []
        if not points:
            return
        if seg.get("connect"):
            path.ensure(seg.get("from"))
            path.line(points[0])
        else:
            path.ensure(points[0])
        if seg.get("smooth") and len(points) > 2:
            for c1, c2, end in _smooth_controls(points):
                path.curve(c1, c2, end)
        else:
            for point in points[1:]:
                path.line(point)

    def _circle(self, canvas: _Canvas, seg: Segment, decoration, paint: Dict[str, object]) -> ET.Element:
        center: Point = seg.get("center")
        radius: float = seg.get("radius")
        if decoration is not None and decoration.kind in ("snake", "zigzag", "coil"):
            points = snake_circle(center, radius, decoration.amplitude, decoration.segment_length)
            data = _PathData(canvas)
            data.ensure(points[0])
            for point in points[1:]:
                data.line(point)
            data.close()
            return element("path", d=str(data), **paint)
        cx, cy = canvas.to_svg(center)
        return element("circle", cx=cx, cy=cy, r=radius * canvas.scale, **paint)

    def _ellipse(self, canvas: _Canvas, seg: Segment, paint: Dict[str, object]) -> ET.Element:
        cx, cy = canvas.to_svg(seg.get("center"))
        rotation = seg.get("rotation", 0.0)
        transform = None
        if abs(rotation) > 1e-9:
            transform = f"rotate({fmt(-rotation)} {fmt(cx)} {fmt(cy)})"
        return element(
            "ellipse",
            cx=cx,
            cy=cy,
            rx=seg.get("rx") * canvas.scale,
            ry=seg.get("ry") * canvas.scale,
            transform=transform,
            **paint,
        )

    def _rectangle(
        self, canvas: _Canvas, seg: Segment, style: Style, paint: Dict[str, object]
    ) -> ET.Element:
        corners = seg.get("corners")
        if corners:
            points = " ".join("{},{}".format(*map(fmt, canvas.to_svg(p))) for p in corners)
            return element("polygon", points=points, **paint)
        frm: Point = seg.get("from")
        to: Point = seg.get("to")
        x, y = canvas.to_svg(Point(min(frm.x, to.x), max(frm.y, to.y)))
        radius = style.rounded_corners * canvas.scale if style.rounded_corners else None
        return element(
            "rect",
            x=x,
            y=y,
            width=abs(to.x - frm.x) * canvas.scale,
            height=abs(to.y - frm.y) * canvas.scale,
            rx=radius,
            ry=radius,
            **paint,
        )

    def _grid(self, canvas: _Canvas, seg: Segment, paint: Dict[str, object]) -> ET.Element:
        frm: Point = seg.get("from")
        to: Point = seg.get("to")
        group = element("g", **paint)
        lo_x, hi_x = min(frm.x, to.x), max(frm.x, to.x)
        lo_y, hi_y = min(frm.y, to.y), max(frm.y, to.y)
        xstep, ystep = seg.get("xstep"), seg.get("ystep")
        if xstep and xstep > 0:
            for i in range(int(math.floor((hi_x - lo_x) / xstep + 1e-9)) + 1):
                x = lo_x + i * xstep
                x1, y1 = canvas.to_svg(Point(x, lo_y))
                x2, y2 = canvas.to_svg(Point(x, hi_y))
                sub(group, "line", x1=x1, y1=y1, x2=x2, y2=y2)
        if ystep and ystep > 0:
            for i in range(int(math.floor((hi_y - lo_y) / ystep + 1e-9)) + 1):
                y = lo_y + i * ystep
                x1, y1 = canvas.to_svg(Point(lo_x, y))
                x2, y2 = canvas.to_svg(Point(hi_x, y))
                sub(group, "line", x1=x1, y1=y1, x2=x2, y2=y2)
        return group

    # -- text ----------------------------------------------------------------

    def _text_fill(self, style: Style) -> str:
        return style.text_color or style.color or self.options.default_stroke

    def _emit_lines(
        self,
        parent: ET.Element,
        lines: List[TextLine],
        x: float,
        line_height: float,
        anchor: str,
        fill: str,
    ) -> ET.Element:
        text = sub(parent, "text", x=x, text_anchor=anchor, font_family=self.options.font_family, fill=fill)
        first_dy = -((len(lines) - 1) * line_height) / 2
        for index, line in enumerate(lines):
            tspan = sub(
                text,
                "tspan",
                x=x,
                dy=first_dy if index == 0 else line_height,
                dominant_baseline="central",
                font_size=line.font_size,
                font_weight="bold" if line.bold else None,
                font_style="italic" if line.italic else None,
            )
            append_rich_text(tspan, line.content)
        return text

    def _render_node(
        self, canvas: _Canvas, parent: ET.Element, node: NodeSpec, metrics: Dict[str, NodeMetrics]
    ) -> None:
        m = self._node_metrics(node, metrics)
        opts = node.options
        style = node.style
        lines = self._text_lines(node.text, opts.font_size)
        if not lines and not (opts.draw or opts.fill):
            return

        cx, cy = canvas.to_svg(m.center)
        transform = f"translate({fmt(cx)}, {fmt(cy)})"
        if opts.rotate:
            transform += f" rotate({fmt(-opts.rotate)})"
        group = sub(parent, "g", transform=transform)
        w = (m.width - 2 * opts.outer_sep) * canvas.scale
        h = (m.height - 2 * opts.outer_sep) * canvas.scale

        if opts.draw or opts.fill:
            if opts.fill:
                fill = parse_color(opts.fill)
                if fill in (None, "currentColor"):
                    fill = style.color or "#ffffff"
            else:
                fill = "none"
            paint: Dict[str, object] = {"fill": fill}
            if opts.draw:
                paint["stroke"] = self._stroke_color(style)
                paint["stroke_width"] = style.line_width * 2
                if style.dash_pattern:
                    paint["stroke_dasharray"] = " ".join(fmt(v * 2) for v in style.dash_pattern)
            else:
                paint["stroke"] = "none"
            if style.fill_opacity != 1.0:
                paint["fill_opacity"] = style.fill_opacity
            if opts.shape == "circle":
                sub(group, "circle", cx=0, cy=0, r=max(w, h) / 2, **paint)
            elif opts.shape == "ellipse":
                sub(group, "ellipse", cx=0, cy=0, rx=w / 2, ry=h / 2, **paint)
            else:
                radius = style.rounded_corners * canvas.scale if style.rounded_corners else None
                sub(group, "rect", x=-w / 2, y=-h / 2, width=w, height=h, rx=radius, ry=radius, **paint)

        if lines:
            anchor = {"left": "start", "right": "end"}.get(opts.align, "middle")
            inner = opts.inner_sep * canvas.scale
            x = {"start": -w / 2 + inner, "end": w / 2 - inner}.get(anchor, 0.0)
            self._emit_lines(group, lines, x, NODE_LINE_HEIGHT * canvas.font_scale, anchor, self._text_fill(style))

    def _render_edge_label(
        self, canvas: _Canvas, parent: ET.Element, label: EdgeLabel, geometry: Tuple[Point, ...]
    ) -> None:
        if len(geometry) == 4:
            at = bezier_point(*geometry, label.pos)
            direction = bezier_tangent(*geometry, label.pos)
        else:
            frm, to = geometry
            at = frm.lerp(to, label.pos)
            direction = to.subtract(frm)
        at = at.add(label.offset)
        lines = self._text_lines(label.text, label.options.font_size or LABEL_FONT_SIZE)
        if not lines:
            return
        x, y = canvas.to_svg(at)
        transform = f"translate({fmt(x)}, {fmt(y)})"
        if label.sloped and (direction.x or direction.y):
            transform += f" rotate({fmt(-_readable_angle(angle_of(direction)))})"
        group = sub(parent, "g", transform=transform)
        anchor = {"left": "start", "right": "end"}.get(label.align, "middle")
        self._emit_lines(group, lines, 0.0, LABEL_LINE_HEIGHT * canvas.font_scale, anchor, self._text_fill(label.style))


def render(
    document: Document,
    coords: Optional[CoordinateSystem] = None,
    options: Optional[RenderOptions] = None,
    measurer: Optional[TextMeasurer] = None,
) -> ET.Element:
    """Render ``document`` to an ``<svg>`` element tree."""
    return Renderer(options, measurer).render(document, coords)


def to_svg_string(tree: ET.Element) -> str:
    return _serialize(tree)


apply_debug_logging(globals(), logger=logger, wrap_methods=False)

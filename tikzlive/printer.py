from typing import List

from .ast import (
    ARC_SEGMENT,
    AXIS,
    CIRCLE,
    COORDINATE,
    CURVE_SEGMENT,
    CYCLE,
    ELLIPSE,
    GRID,
    LINE_SEGMENT,
    NODE,
    NODE_SEGMENT,
    PATH_KINDS,
    PLOT_SEGMENT,
    RECTANGLE,
    Command,
    Document,
    NodeSpec,
    Segment,
)
from .geometry import Point
from .svg import fmt


def point_str(point: Point) -> str:
    return f"({fmt(point.x)}, {fmt(point.y)})"


def _format_options(options: List[str]) -> str:
    if not options:
        return ""
    return "[" + ", ".join(options) + "]"


def _endpoint(point: Point, node: object, anchor: object) -> str:
    if node:
        suffix = f".{anchor}" if anchor else ""
        return f"{node}{suffix}@{point_str(point)}"
    return point_str(point)


def node_str(node: NodeSpec) -> str:
    name = f" ({node.name})" if node.name else ""
    shape = f" {node.options.shape}" if node.options.shape != "rectangle" else ""
    return f"node{name}{shape} at {point_str(node.position)} {{{node.text}}}"


def segment_str(seg: Segment) -> str:
    kind = seg.kind
    if kind in (LINE_SEGMENT, CYCLE):
        frm = _endpoint(seg.get("from"), seg.get("from_node"), seg.get("from_anchor"))
        to = _endpoint(seg.get("to"), seg.get("to_node"), seg.get("to_anchor"))
        word = "line" if kind == LINE_SEGMENT else "cycle"
        labels = seg.get("labels") or []
        suffix = "".join(f" label {{{label.text}}}" for label in labels)
        return f"{word} {frm} -- {to}{suffix}"
    if kind == CURVE_SEGMENT:
        frm = _endpoint(seg.get("from"), seg.get("from_node"), seg.get("from_anchor"))
        to = _endpoint(seg.get("to"), seg.get("to_node"), seg.get("to_anchor"))
        return (
            f"curve {frm} .. controls {point_str(seg.get('control1'))} and "
            f"{point_str(seg.get('control2'))} .. {to}"
        )
    if kind == ARC_SEGMENT:
        return (
            f"arc {point_str(seg.get('start'))} -> {point_str(seg.get('end'))} "
            f"({fmt(seg.get('start_angle'))}:{fmt(seg.get('end_angle'))}:"
            f"{fmt(seg.get('rx'))} and {fmt(seg.get('ry'))})"
        )
    if kind == CIRCLE:
        return f"circle {point_str(seg.get('center'))} r={fmt(seg.get('radius'))}"
    if kind == ELLIPSE:
        rotation = seg.get("rotation", 0.0)
        rotated = f" rotate={fmt(rotation)}" if rotation else ""
        return f"ellipse {point_str(seg.get('center'))} rx={fmt(seg.get('rx'))} ry={fmt(seg.get('ry'))}{rotated}"
    if kind == RECTANGLE:
        return f"rectangle {point_str(seg.get('from'))} {point_str(seg.get('to'))}"
    if kind == GRID:
        return (
            f"grid {point_str(seg.get('from'))} {point_str(seg.get('to'))} "
            f"step={fmt(seg.get('xstep'))},{fmt(seg.get('ystep'))}"
        )
    if kind == PLOT_SEGMENT:
        points = seg.get("points") or []
        source = seg.get("expression") or "coordinates"
        return f"plot {{{source}}} points={len(points)}"
    if kind == NODE_SEGMENT:
        return node_str(seg.data["node"])
    raise ValueError(f"unknown segment kind {kind!r}")


def format_command(cmd: Command) -> str:
    """Return a single-line representation of ``cmd``."""

    opts = _format_options(cmd.options)
    if cmd.kind in PATH_KINDS:
        body = "; ".join(segment_str(seg) for seg in cmd.segments)
        return f"{cmd.kind}{opts} {body}".rstrip()
    if cmd.kind == NODE:
        return f"NODE{opts} {node_str(cmd.data['node'])}"
    if cmd.kind == COORDINATE:
        return f"COORDINATE ({cmd.data['name']}) at {point_str(cmd.data['position'])}"
    if cmd.kind == AXIS:
        plots = cmd.data.get("plots") or []
        legend = cmd.data.get("legend") or []
        return f"AXIS{opts} plots={len(plots)} legend={legend!r}"
    raise ValueError(f"unknown command kind {cmd.kind!r}")


def print_document(document: Document) -> str:
    lines = [f"{cmd.span.line:>4}: {format_command(cmd)}" for cmd in document.commands]
    return "\n".join(lines) + "\n" if lines else ""

"""pgfplots-style ``axis`` environments: parsing, tick generation, drawing.

The parser hands itself to :func:`parse_axis` when it meets
``\\begin{axis}`` and to :func:`parse_implicit_axis` for a bare
``\\addplot``. Only the cursor, ``parse_option_block``, ``soft_error`` and
``finish_statement`` of the parser are used here.
"""

from __future__ import annotations

import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .ast import AXIS, Command, Span
from .expressions import evaluate_expression, parse_domain, parse_number, sample_domain
from .geometry import Point
from .styles import (
    Style,
    parse_color,
    parse_distance,
    parse_line_width,
    parse_options,
    split_option,
    split_top_level,
    strip_braces,
)
from .svg import fmt, sub
from .text import TextLine, TextMeasurer, append_rich_text, measure_block

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 8.0
DEFAULT_HEIGHT = 6.0
DEFAULT_SAMPLES = 100
TICK_LENGTH = 0.1
LABEL_FONT_SIZE = 12
LEGEND_FONT_SIZE = 12
LEGEND_SAMPLE = 0.6
LEGEND_PADDING = 0.15
LEGEND_INSET = 0.1

COLOR_CYCLE = (
    "blue",
    "red",
    "brown!60!black",
    "black",
    "blue!50!black",
    "red!50!black",
    "green!50!black",
)

_COORDS_RE = re.compile(r"\(([^()]*)\)")
_AT_RE = re.compile(r"^\{?\s*\(\s*([^,()]+)\s*,\s*([^,()]+)\s*\)\s*\}?$")
_OF_RE = re.compile(r"^(.+?)\s+and\s+(.+)$")
_PLOT_COMMANDS = ("\\addplot", "\\addplot3", "\\addlegendentry", "\\legend")


@dataclass
class AxisSettings:
    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT
    xmin: Optional[float] = None
    xmax: Optional[float] = None
    ymin: Optional[float] = None
    ymax: Optional[float] = None
    xtick: Optional[List[float]] = None
    ytick: Optional[List[float]] = None
    title: Optional[str] = None
    xlabel: Optional[str] = None
    ylabel: Optional[str] = None
    grid: Optional[str] = None
    grid_style: List[str] = field(default_factory=list)
    major_grid_style: List[str] = field(default_factory=list)
    legend_pos: str = "north east"
    legend_style: List[str] = field(default_factory=list)
    domain: Optional[Tuple[float, float]] = None
    samples: int = DEFAULT_SAMPLES
    origin: Point = field(default_factory=lambda: Point(0.0, 0.0))


@dataclass
class Plot:
    style: Style
    options: List[str] = field(default_factory=list)
    points: List[Tuple[float, float]] = field(default_factory=list)
    expression: Optional[str] = None
    domain: Optional[Tuple[float, float]] = None
    samples: int = DEFAULT_SAMPLES
    name_path: Optional[str] = None
    fill_between: Optional[Tuple[str, str]] = None
    explicit_color: Optional[str] = None
    marks: bool = False
    only_marks: bool = False


def parse_tick_list(value: Optional[str]) -> Optional[List[float]]:
    """``{0,1,...,5}`` -> ``[0, 1, 2, 3, 4, 5]``; ``{}`` -> ``[]``."""
    if value is None:
        return None
    items = split_top_level(strip_braces(value) or "")
    ticks: List[float] = []
    for idx, item in enumerate(items):
        if item != "...":
            ticks.append(parse_number(item, math.nan))
            continue
        if len(ticks) == 0 or idx + 1 >= len(items):
            continue
        end = parse_number(items[idx + 1], math.nan)
        step = ticks[-1] - ticks[-2] if len(ticks) >= 2 else 1.0
        if step == 0 or not math.isfinite(end):
            continue
        current = ticks[-1] + step
        while (step > 0 and current < end - 1e-9) or (step < 0 and current > end + 1e-9):
            ticks.append(round(current, 10))
            current += step
    return [tick for tick in ticks if math.isfinite(tick)]


def build_axis_settings(options: Sequence[str]) -> AxisSettings:
    settings = AxisSettings()
    for opt in options:
        key, value = split_option(opt)
        if key in ("width", "height"):
            length = parse_distance(strip_braces(value))
            if length is not None and length > 0:
                setattr(settings, key, length)
        elif key in ("xmin", "xmax", "ymin", "ymax"):
            number = parse_number(value, math.nan)
            setattr(settings, key, number if math.isfinite(number) else None)
        elif key in ("xtick", "ytick"):
            setattr(settings, key, parse_tick_list(value))
        elif key in ("title", "xlabel", "ylabel"):
            setattr(settings, key, strip_braces(value))
        elif key == "grid":
            settings.grid = (value or "major").strip()
        elif key in ("xmajorgrids", "ymajorgrids"):
            settings.grid = settings.grid or "major"
        elif key == "grid style":
            settings.grid_style = split_top_level(strip_braces(value) or "")
        elif key == "major grid style":
            settings.major_grid_style = split_top_level(strip_braces(value) or "")
        elif key == "legend pos" and value:
            settings.legend_pos = " ".join(value.split())
        elif key == "legend style":
            settings.legend_style = split_top_level(strip_braces(value) or "")
        elif key == "domain":
            settings.domain = parse_domain(value)
        elif key == "samples":
            settings.samples = max(2, int(parse_number(value, DEFAULT_SAMPLES)))
        elif key == "at" and value:
            match = _AT_RE.match(value.strip())
            if match:
                x = parse_distance(match.group(1))
                y = parse_distance(match.group(2))
                if x is not None and y is not None:
                    settings.origin = Point(x, y)
    return settings


def _explicit_color(options: Sequence[str]) -> Optional[str]:
    for opt in options:
        key, value = split_option(opt)
        if key in ("color", "draw") and value:
            return parse_color(value)
        if value is None:
            color = parse_color(key)
            if color and color != key:
                return color
    return None


def _x_expression(expr: str) -> str:
    return expr.replace("\\x", "x")


def parse_addplot(parser, settings: AxisSettings) -> Optional[Plot]:
    """Read one ``\\addplot`` statement; ``None`` when it carries no data."""
    cur = parser.cur
    start = cur.advance()
    cur.match("PLUS")
    options = parser.parse_option_block()
    plot = Plot(style=parse_options(options), options=options, samples=settings.samples)
    plot.explicit_color = _explicit_color(options)
    for opt in options:
        key, value = split_option(opt)
        if key == "domain":
            plot.domain = parse_domain(value)
        elif key == "samples":
            plot.samples = max(2, int(parse_number(value, settings.samples)))
        elif key == "name path" and value:
            plot.name_path = strip_braces(value)
        elif key == "mark":
            plot.marks = (value or "").strip() != "none"
        elif key == "only marks":
            plot.marks = plot.only_marks = True
        elif key == "no marks":
            plot.marks = False

    tok = cur.peek()
    if tok.type == "IDENTIFIER" and tok.value == "coordinates":
        cur.advance()
        body = cur.match("STRING")
        for text in _COORDS_RE.findall(body.value if body else ""):
            parts = split_top_level(text)
            if len(parts) >= 2:
                x = parse_number(parts[0], math.nan)
                y = parse_number(parts[1], math.nan)
                if math.isfinite(x) and math.isfinite(y):
                    plot.points.append((x, y))
    elif tok.type == "IDENTIFIER" and tok.value == "fill" and cur.peek_ahead().value == "between":
        cur.advance()
        cur.advance()
        for opt in parser.parse_option_block():
            key, value = split_option(opt)
            match = _OF_RE.match(value or "") if key == "of" else None
            if match:
                plot.fill_between = (match.group(1).strip(), match.group(2).strip())
        if plot.fill_between is None:
            parser.soft_error("fill between needs of=<path> and <path>", start.position)
    elif tok.type == "STRING":
        cur.advance()
        plot.expression = _x_expression(tok.value.strip())
        lo, hi = _plot_domain(plot, settings)
        for x in sample_domain(lo, hi, plot.samples):
            plot.points.append((x, evaluate_expression(plot.expression, "x", x)))
    elif tok.type == "COORDINATE":
        cur.advance()
        parts = [_x_expression(strip_braces(p) or "") for p in split_top_level(tok.value)]
        if len(parts) == 2:
            lo, hi = _plot_domain(plot, settings)
            for t in sample_domain(lo, hi, plot.samples):
                plot.points.append((evaluate_expression(parts[0], "x", t), evaluate_expression(parts[1], "x", t)))
        else:
            parser.soft_error(f"cannot read plot specification ({tok.value})", tok.position)
    else:
        parser.soft_error(f"expected plot data after \\addplot, got {tok.type}", tok.position)

    parser.finish_statement("\\addplot")
    if not plot.points and plot.fill_between is None:
        return None
    return plot


def _plot_domain(plot: Plot, settings: AxisSettings) -> Tuple[float, float]:
    if plot.domain is not None:
        return plot.domain
    if settings.domain is not None:
        return settings.domain
    if settings.xmin is not None and settings.xmax is not None and settings.xmin != settings.xmax:
        return settings.xmin, settings.xmax
    return 0.0, 1.0


def _parse_axis_statement(parser, settings: AxisSettings, plots: List[Plot], legend: List[str]) -> bool:
    cur = parser.cur
    tok = cur.peek()
    if tok.type != "COMMAND" or tok.value not in _PLOT_COMMANDS:
        return False
    if tok.value in ("\\addplot", "\\addplot3"):
        plot = parse_addplot(parser, settings)
        if plot is not None:
            plots.append(plot)
    elif tok.value == "\\addlegendentry":
        cur.advance()
        if cur.match("OPTION_START"):
            _skip_to(cur, "OPTION_END")
        text = cur.match("STRING")
        if text is not None:
            legend.append(text.value.strip())
        cur.match("SEMICOLON")
    else:
        cur.advance()
        body = cur.match("STRING")
        if body is not None:
            legend.extend(strip_braces(entry) or "" for entry in split_top_level(body.value))
        cur.match("SEMICOLON")
    return True


def _skip_to(cur, kind: str) -> None:
    while not cur.at(kind, "EOF"):
        cur.advance()
    cur.match(kind)


def _axis_command(span: Span, options: List[str], settings: AxisSettings, plots: List[Plot], legend: List[str]) -> Command:
    logger.debug("Axis with %d plot(s) and %d legend entr(ies)", len(plots), len(legend))
    data = {"settings": settings, "plots": plots, "legend": legend}
    return Command(AXIS, span, Style(), [], data, options)


def parse_axis(parser, span: Span) -> Command:
    """Body of ``\\begin{axis}[...]`` up to and including ``\\end{axis}``."""
    cur = parser.cur
    options = parser.parse_option_block()
    settings = build_axis_settings(options)
    plots: List[Plot] = []
    legend: List[str] = []
    while not cur.at("EOF"):
        tok = cur.peek()
        if tok.type == "COMMAND" and tok.value == "\\end":
            cur.advance()
            env = cur.match("STRING")
            if env is not None and env.value.strip() == "axis":
                return _axis_command(span, options, settings, plots, legend)
            continue
        if not _parse_axis_statement(parser, settings, plots, legend):
            cur.advance()
    parser.soft_error("unterminated axis environment: expected \\end{axis}")
    return _axis_command(span, options, settings, plots, legend)


def parse_implicit_axis(parser, span: Span) -> Command:
    """Consecutive ``\\addplot``/legend statements outside an axis environment."""
    settings = AxisSettings()
    plots: List[Plot] = []
    legend: List[str] = []
    while _parse_axis_statement(parser, settings, plots, legend):
        pass
    return _axis_command(span, [], settings, plots, legend)


def nice_ticks(lo: float, hi: float, desired: int = 6) -> List[float]:
    """Tick positions on a 1-2-5-10 step scaled to the range's magnitude.

    Ticks start at the first multiple of the step not below ``lo`` and run
    while they stay within ``hi + step/2``.
    """
    if hi < lo:
        lo, hi = hi, lo
    span = hi - lo
    if span <= 0 or desired < 1:
        return [lo]
    raw = span / desired
    magnitude = 10 ** math.floor(math.log10(raw))
    step = 10 * magnitude
    for factor in (1, 2, 5, 10):
        if factor * magnitude >= raw:
            step = factor * magnitude
            break
    ticks = []
    value = math.ceil(lo / step - 1e-9) * step
    while value <= hi + step / 2:
        ticks.append(round(value, 10))
        value += step
    return ticks


@dataclass
class AxisLayout:
    """Data-space ranges mapped onto an axis rectangle in drawing units."""

    origin: Point
    width: float
    height: float
    xmin: float
    xmax: float
    ymin: float
    ymax: float
    xticks: List[float]
    yticks: List[float]

    def to_scene(self, x: float, y: float) -> Point:
        return Point(
            self.origin.x + (x - self.xmin) / (self.xmax - self.xmin) * self.width,
            self.origin.y + (y - self.ymin) / (self.ymax - self.ymin) * self.height,
        )


def _range(lo: Optional[float], hi: Optional[float], values: List[float]) -> Tuple[float, float]:
    data_lo = min(values) if values else 0.0
    data_hi = max(values) if values else 1.0
    lo = data_lo if lo is None else lo
    hi = data_hi if hi is None else hi
    if hi < lo:
        lo, hi = hi, lo
    if hi - lo < 1e-12:
        lo, hi = lo - 1.0, hi + 1.0
    return lo, hi


def _visible(ticks: List[float], lo: float, hi: float) -> List[float]:
    eps = (hi - lo) * 1e-9
    return [tick for tick in ticks if lo - eps <= tick <= hi + eps]


def compute_layout(settings: AxisSettings, plots: Sequence[Plot]) -> AxisLayout:
    xs = [x for plot in plots for x, _ in plot.points]
    ys = [y for plot in plots for _, y in plot.points]
    xmin, xmax = _range(settings.xmin, settings.xmax, xs)
    ymin, ymax = _range(settings.ymin, settings.ymax, ys)
    xticks = settings.xtick if settings.xtick is not None else nice_ticks(xmin, xmax)
    yticks = settings.ytick if settings.ytick is not None else nice_ticks(ymin, ymax)
    return AxisLayout(
        settings.origin,
        settings.width,
        settings.height,
        xmin,
        xmax,
        ymin,
        ymax,
        _visible(xticks, xmin, xmax),
        _visible(yticks, ymin, ymax),
    )


def _legend_pairs(command: Command) -> List[Tuple[int, Plot, str]]:
    plots = command.data.get("plots", [])
    return [(idx, plot, text) for idx, (plot, text) in enumerate(zip(plots, command.data.get("legend", [])))]


def legend_size(
    entries: Sequence[str], measurer: TextMeasurer, font_size: float, scale: float, family: str = "serif"
) -> Tuple[float, float]:
    """Legend box size in pixels, sized from its longest label."""
    if not entries:
        return 0.0, 0.0
    lines = [TextLine(entry, font_size) for entry in entries]
    text_width, text_height = measure_block(measurer, lines, family)
    row = text_height / len(entries)
    pad = LEGEND_PADDING * scale
    width = 2 * pad + LEGEND_SAMPLE * scale + pad + text_width
    height = 2 * pad + row * len(entries)
    return width, height


def axis_extent(command: Command, measurer: Optional[TextMeasurer] = None, base_scale: float = 50.0) -> List[Point]:
    """Corners of the area an axis occupies, labels and legend included."""
    settings: AxisSettings = command.data["settings"]
    o = settings.origin
    right = settings.width
    entries = [text for _, _, text in _legend_pairs(command)]
    if entries and measurer is not None and settings.legend_pos.startswith("outer"):
        width, _ = legend_size(entries, measurer, LEGEND_FONT_SIZE, base_scale)
        right += LEGEND_INSET + width / base_scale
    return [Point(o.x - 1.2, o.y - 1.0), Point(o.x + right, o.y + settings.height + 0.6)]


def _plot_color(plot: Plot, index: int) -> str:
    if plot.explicit_color:
        return plot.explicit_color
    return parse_color(COLOR_CYCLE[index % len(COLOR_CYCLE)]) or "#000000"


def _grid_attrs(options: List[str], canvas) -> Dict[str, object]:
    style = parse_options(["color=lightgray", "very thin"] + options)
    return {
        "stroke": style.stroke,
        "stroke_width": style.line_width * 2 * canvas.font_scale,
        "stroke_dasharray": " ".join(fmt(v * 2) for v in style.dash_pattern) if style.dash_pattern else None,
        "fill": "none",
    }


def _text(parent: ET.Element, canvas, x: float, y: float, content: str, size: float, **attrs) -> ET.Element:
    elem = sub(
        parent,
        "text",
        x=x,
        y=y,
        font_family=canvas.family,
        font_size=size * canvas.font_scale,
        fill="#000000",
        **attrs,
    )
    append_rich_text(elem, content)
    return elem


def render_axis(canvas, parent: ET.Element, command: Command) -> ET.Element:
    """Draw one axis into ``parent``.

    ``canvas`` maps drawing points to pixels (``to_svg``) and carries the
    render scale, font scale, text measurer and ``defs`` element.
    """
    settings: AxisSettings = command.data["settings"]
    plots: List[Plot] = command.data.get("plots", [])
    layout = compute_layout(settings, plots)
    group = sub(parent, "g", **{"class": "axis"})

    x0, y_top = canvas.to_svg(Point(layout.origin.x, layout.origin.y + layout.height))
    x1, y_bottom = canvas.to_svg(Point(layout.origin.x + layout.width, layout.origin.y))
    width_px, height_px = x1 - x0, y_bottom - y_top

    clip_id = canvas.new_id("axis-clip")
    clip = sub(canvas.defs, "clipPath", id=clip_id)
    sub(clip, "rect", x=x0, y=y_top, width=width_px, height=height_px)

    if settings.grid and settings.grid != "none":
        grid = sub(group, "g", **_grid_attrs(settings.grid_style + settings.major_grid_style, canvas))
        for tick in layout.xticks:
            px, _ = canvas.to_svg(layout.to_scene(tick, layout.ymin))
            sub(grid, "line", x1=px, y1=y_top, x2=px, y2=y_bottom)
        for tick in layout.yticks:
            _, py = canvas.to_svg(layout.to_scene(layout.xmin, tick))
            sub(grid, "line", x1=x0, y1=py, x2=x1, y2=py)

    sub(group, "rect", x=x0, y=y_top, width=width_px, height=height_px, fill="none", stroke="#000000",
        stroke_width=0.8 * canvas.font_scale)

    tick_px = TICK_LENGTH * canvas.scale
    ticks = sub(group, "g", stroke="#000000", stroke_width=0.8 * canvas.font_scale)
    for tick in layout.xticks:
        px, _ = canvas.to_svg(layout.to_scene(tick, layout.ymin))
        sub(ticks, "line", x1=px, y1=y_bottom, x2=px, y2=y_bottom - tick_px)
        sub(ticks, "line", x1=px, y1=y_top, x2=px, y2=y_top + tick_px)
        _text(group, canvas, px, y_bottom + tick_px + LABEL_FONT_SIZE * canvas.font_scale,
              f"{tick:g}", LABEL_FONT_SIZE, text_anchor="middle")
    for tick in layout.yticks:
        _, py = canvas.to_svg(layout.to_scene(layout.xmin, tick))
        sub(ticks, "line", x1=x0, y1=py, x2=x0 + tick_px, y2=py)
        sub(ticks, "line", x1=x1, y1=py, x2=x1 - tick_px, y2=py)
        _text(group, canvas, x0 - tick_px, py, f"{tick:g}", LABEL_FONT_SIZE, text_anchor="end",
              dominant_baseline="central")

    center_x = (x0 + x1) / 2
    if settings.title:
        _text(group, canvas, center_x, y_top - 0.3 * canvas.scale, settings.title, LABEL_FONT_SIZE + 2,
              text_anchor="middle")
    if settings.xlabel:
        _text(group, canvas, center_x, y_bottom + 0.8 * canvas.scale, settings.xlabel, LABEL_FONT_SIZE,
              text_anchor="middle")
    if settings.ylabel:
        lx = x0 - 1.0 * canvas.scale
        ly = (y_top + y_bottom) / 2
        _text(group, canvas, lx, ly, settings.ylabel, LABEL_FONT_SIZE, text_anchor="middle",
              transform=f"rotate(-90 {fmt(lx)} {fmt(ly)})")

    clipped = sub(group, "g", clip_path=f"url(#{clip_id})")
    named = {plot.name_path: plot for plot in plots if plot.name_path}
    for index, plot in enumerate(plots):
        color = _plot_color(plot, index)
        if plot.fill_between is not None:
            _draw_fill_between(canvas, clipped, layout, plot, named, color)
        else:
            _draw_plot(canvas, clipped, layout, plot, color)

    pairs = _legend_pairs(command)
    if pairs:
        _draw_legend(canvas, group, settings, pairs, (x0, y_top, x1, y_bottom))
    return group


def _points_attr(canvas, layout: AxisLayout, points: Sequence[Tuple[float, float]]) -> str:
    coords = []
    for x, y in points:
        px, py = canvas.to_svg(layout.to_scene(x, y))
        coords.append(f"{fmt(px)},{fmt(py)}")
    return " ".join(coords)


def _draw_plot(canvas, parent: ET.Element, layout: AxisLayout, plot: Plot, color: str) -> None:
    width = max(plot.style.line_width, 0.8) * 2 * canvas.font_scale
    if not plot.only_marks:
        fill = "none"
        if plot.style.fill not in ("none", None):
            fill = color if plot.style.fill == "currentColor" else plot.style.fill
        sub(
            parent,
            "polyline",
            points=_points_attr(canvas, layout, plot.points),
            fill=fill,
            stroke=color,
            stroke_width=width,
            stroke_dasharray=" ".join(fmt(v * 2) for v in plot.style.dash_pattern) if plot.style.dash_pattern else None,
            stroke_linejoin="round",
        )
    if plot.marks:
        for x, y in plot.points:
            px, py = canvas.to_svg(layout.to_scene(x, y))
            sub(parent, "circle", cx=px, cy=py, r=2.5 * canvas.font_scale, fill=color)


def _draw_fill_between(
    canvas, parent: ET.Element, layout: AxisLayout, plot: Plot, named: Dict[str, Plot], color: str
) -> None:
    first, second = (named.get(name) for name in plot.fill_between)
    if first is None or second is None:
        logger.debug("fill between references unknown path(s) %r", plot.fill_between)
        return
    polygon = list(first.points) + list(reversed(second.points))
    fill = color
    if plot.style.fill not in ("none", "currentColor", None):
        fill = plot.style.fill
    opacity = plot.style.fill_opacity if plot.style.fill_opacity < 1.0 else 0.5
    sub(parent, "polygon", points=_points_attr(canvas, layout, polygon), fill=fill, fill_opacity=opacity,
        stroke="none")


def _legend_origin(pos: str, box: Tuple[float, float, float, float], size: Tuple[float, float], inset: float) -> Tuple[float, float]:
    x0, y_top, x1, y_bottom = box
    w, h = size
    if pos.startswith("outer"):
        return x1 + inset, y_top
    horizontal = "center"
    vertical = "center"
    for word in pos.split():
        if word in ("east", "west"):
            horizontal = word
        elif word in ("north", "south"):
            vertical = word
    x = {"west": x0 + inset, "east": x1 - inset - w}.get(horizontal, (x0 + x1 - w) / 2)
    y = {"north": y_top + inset, "south": y_bottom - inset - h}.get(vertical, (y_top + y_bottom - h) / 2)
    return x, y


def _draw_legend(
    canvas,
    parent: ET.Element,
    settings: AxisSettings,
    pairs: List[Tuple[int, Plot, str]],
    box: Tuple[float, float, float, float],
) -> None:
    font = LEGEND_FONT_SIZE * canvas.font_scale
    entries = [text for _, _, text in pairs]
    size = legend_size(entries, canvas.measurer, font, canvas.scale, canvas.family)
    x, y = _legend_origin(settings.legend_pos, box, size, LEGEND_INSET * canvas.scale)
    style = parse_options(["fill=white", "draw=black"] + settings.legend_style)
    legend = sub(parent, "g", **{"class": "legend"})
    sub(
        legend,
        "rect",
        x=x,
        y=y,
        width=size[0],
        height=size[1],
        fill="#ffffff" if style.fill == "currentColor" else style.fill,
        stroke=style.stroke,
        stroke_width=parse_line_width("0.4pt") * 2 * canvas.font_scale,
    )
    pad = LEGEND_PADDING * canvas.scale
    row = (size[1] - 2 * pad) / len(pairs)
    for row_idx, (plot_idx, plot, text) in enumerate(pairs):
        color = _plot_color(plot, plot_idx)
        cy = y + pad + row * (row_idx + 0.5)
        sx = x + pad
        if plot.fill_between is not None:
            sub(legend, "rect", x=sx, y=cy - row / 4, width=LEGEND_SAMPLE * canvas.scale, height=row / 2,
                fill=color, fill_opacity=0.5)
        else:
            sub(legend, "line", x1=sx, y1=cy, x2=sx + LEGEND_SAMPLE * canvas.scale, y2=cy, stroke=color,
                stroke_width=1.6 * canvas.font_scale)
        label = sub(legend, "text", x=sx + LEGEND_SAMPLE * canvas.scale + pad, y=cy, font_family=canvas.family,
                    font_size=font, dominant_baseline="central", fill="#000000")
        append_rich_text(label, text)

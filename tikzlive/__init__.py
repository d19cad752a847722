from .lexer import Token, tokenize
from .ast import Command, Document, EdgeLabel, NodeSpec, ParseError, Segment, Span
from .geometry import Point, Point3, Transform
from .coordinates import CoordinateRef, CoordinateSystem, NodeRecord
from .styles import Decoration, NodeOptions, Style, parse_color, parse_node_options, parse_options
from .arrows import MarkerRegistry, marker_reference
from .parser import CoordinateEnvironment, ParseResult, TikzSyntaxError, format_error, parse
from .pgfplots import nice_ticks
from .text import PillowTextMeasurer, TableTextMeasurer, TextMeasurer
from .config import RenderOptions, get_default_render_options, set_default_render_options
from .renderer import NodeMetrics, Renderer, render, to_svg_string
from .printer import format_command, print_document

__all__ = [
    'Token',
    'tokenize',
    'Command',
    'Document',
    'EdgeLabel',
    'NodeSpec',
    'ParseError',
    'Segment',
    'Span',
    'Point',
    'Point3',
    'Transform',
    'CoordinateRef',
    'CoordinateSystem',
    'NodeRecord',
    'Decoration',
    'NodeOptions',
    'Style',
    'parse_color',
    'parse_node_options',
    'parse_options',
    'MarkerRegistry',
    'marker_reference',
    'CoordinateEnvironment',
    'ParseResult',
    'TikzSyntaxError',
    'format_error',
    'parse',
    'nice_ticks',
    'PillowTextMeasurer',
    'TableTextMeasurer',
    'TextMeasurer',
    'RenderOptions',
    'get_default_render_options',
    'set_default_render_options',
    'NodeMetrics',
    'Renderer',
    'render',
    'to_svg_string',
    'format_command',
    'print_document',
]

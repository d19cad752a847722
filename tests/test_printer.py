import pytest

from tikzlive.ast import (
    CIRCLE,
    COORDINATE,
    CURVE_SEGMENT,
    DRAW,
    LINE_SEGMENT,
    NODE,
    Command,
    Document,
    EdgeLabel,
    NodeSpec,
    Segment,
    Span,
)
from tikzlive.geometry import Point
from tikzlive.parser import parse
from tikzlive.printer import format_command, print_document, segment_str
from tikzlive.styles import NodeOptions, Style


def test_draw_command_prints_options_and_segments():
    seg = Segment(LINE_SEGMENT, {'from': Point(0.0, 0.0), 'to': Point(1.0, 0.0)})
    cmd = Command(DRAW, Span(3, 1), Style(), [seg], {}, ['->', 'red'])

    assert print_document(Document([cmd])) == '   3: DRAW[->, red] line (0, 0) -- (1, 0)\n'


def test_line_endpoints_name_their_nodes():
    label = EdgeLabel('x', Style(), NodeOptions())
    seg = Segment(LINE_SEGMENT, {
        'from': Point(0.5, 0.0),
        'to': Point(2.0, 1.25),
        'from_node': 'a',
        'to_node': 'b',
        'to_anchor': 'north',
        'labels': [label],
    })

    assert segment_str(seg) == 'line a@(0.5, 0) -- b.north@(2, 1.25) label {x}'


def test_curve_segment():
    seg = Segment(CURVE_SEGMENT, {
        'from': Point(0.0, 0.0),
        'control1': Point(1.0, 1.0),
        'control2': Point(2.0, 1.0),
        'to': Point(3.0, 0.0),
    })

    assert segment_str(seg) == 'curve (0, 0) .. controls (1, 1) and (2, 1) .. (3, 0)'


def test_circle_segment():
    seg = Segment(CIRCLE, {'center': Point(1.0, -1.0), 'radius': 0.5})

    assert segment_str(seg) == 'circle (1, -1) r=0.5'


def test_unknown_segment_kind_raises():
    with pytest.raises(ValueError):
        segment_str(Segment('WOBBLE', {}))


def test_node_and_coordinate_commands():
    node = NodeSpec('a', Point(1.0, 2.0), 'A', Style(), NodeOptions(shape='circle'))
    node_cmd = Command(NODE, Span(1, 1), Style(), [], {'node': node, 'name': 'a'}, ['draw'])
    coord_cmd = Command(COORDINATE, Span(2, 1), Style(), [], {'name': 'P', 'position': Point(0.0, 3.0)}, [])

    assert format_command(node_cmd) == 'NODE[draw] node (a) circle at (1, 2) {A}'
    assert format_command(coord_cmd) == 'COORDINATE (P) at (0, 3)'


def test_print_parsed_document():
    result = parse("\\draw (0,0) -- (1,0) -- cycle;\n\\addplot{x}; \\legend{a}")

    assert print_document(result.document) == (
        '   1: DRAW line (0, 0) -- (1, 0); cycle (1, 0) -- (0, 0)\n'
        "   2: AXIS plots=1 legend=['a']\n"
    )


def test_empty_document_prints_nothing():
    assert print_document(Document()) == ''

import pytest

from tikzlive.ast import (
    ARC_SEGMENT,
    AXIS,
    CIRCLE,
    COORDINATE,
    CURVE_SEGMENT,
    CYCLE,
    DRAW,
    FILL,
    GRID,
    LINE_SEGMENT,
    NODE,
    NODE_SEGMENT,
    PLOT_SEGMENT,
    RECTANGLE,
)
from tikzlive.geometry import Point
from tikzlive.parser import Parser, expand_foreach_values, format_error, parse


def _kinds(cmd):
    return [seg.kind for seg in cmd.segments]


def test_closed_triangle():
    result = parse(r"\draw (0,0) -- (2,0) -- (2,1) -- cycle;")

    assert result.errors == []
    cmd = result.document.commands[0]
    assert cmd.kind == DRAW
    assert _kinds(cmd) == [LINE_SEGMENT, LINE_SEGMENT, CYCLE]
    assert cmd.segments[0].data['from'] == Point(0.0, 0.0)
    assert cmd.segments[0].data['to'] == Point(2.0, 0.0)
    assert cmd.segments[1].data['to'] == Point(2.0, 1.0)
    assert cmd.segments[2].data['from'] == Point(2.0, 1.0)
    assert cmd.segments[2].data['to'] == Point(0.0, 0.0)


def test_line_between_nodes_is_trimmed_to_their_boundaries():
    result = parse(
        r"""
        \node (a) at (0,0) {A};
        \node (b) at (3,0) {B};
        \draw (a) -- (b);
        """
    )

    assert result.errors == []
    seg = result.document.commands[2].segments[0]
    assert seg.data['from_node'] == 'a'
    assert seg.data['to_node'] == 'b'
    assert 0.0 < seg.data['from'].x < 1.0
    assert 2.0 < seg.data['to'].x < 3.0
    assert seg.data['from'].y == pytest.approx(0.0)


def test_anchored_endpoint_is_not_trimmed():
    result = parse(
        r"""
        \node[draw, minimum size=1cm] (a) at (0,0) {};
        \draw (a.north) -- (0,3);
        """
    )

    seg = result.document.commands[1].segments[0]
    assert seg.data['from_anchor'] == 'north'
    assert seg.data['from'].x == pytest.approx(0.0)
    assert seg.data['from'].y == pytest.approx(0.5)


def test_foreach_expands_one_command_per_value():
    result = parse(r"\foreach \x in {0,1,2} { \draw (\x,0) circle (0.2); }")

    assert result.errors == []
    circles = [seg for cmd in result.document.commands for seg in cmd.segments]
    assert [seg.kind for seg in circles] == [CIRCLE, CIRCLE, CIRCLE]
    assert [seg.data['center'] for seg in circles] == [Point(0.0, 0.0), Point(1.0, 0.0), Point(2.0, 0.0)]
    assert all(seg.data['radius'] == pytest.approx(0.2) for seg in circles)


def test_foreach_with_paired_variables_and_count():
    result = parse(r"\foreach \x/\y [count=\i] in {0/1, 2/3} \node (n\i) at (\x,\y) {};")

    assert result.errors == []
    assert [node.name for node in result.document.named_nodes()] == ['n1', 'n2']
    assert result.coords.nodes['n2'].center == Point(2.0, 3.0)


def test_foreach_nodes_are_visible_after_the_loop():
    result = parse(r"\foreach \i in {1,2} { \node (n\i) at (\i,0) {}; } \draw (n1) -- (n2);")

    assert result.errors == []
    seg = result.document.commands[-1].segments[0]
    assert (seg.data['from_node'], seg.data['to_node']) == ('n1', 'n2')


@pytest.mark.parametrize(
    'text, expected',
    [
        ('1,...,4', ['1', '2', '3', '4']),
        ('0,0.5,...,2', ['0', '0.5', '1', '1.5', '2']),
        ('5,...,3', ['5', '4', '3']),
        ('a, {b, c}', ['a', 'b, c']),
    ],
)
def test_expand_foreach_values(text, expected):
    assert [row[0] for row in expand_foreach_values(text)] == expected


def test_arrow_and_color_options():
    result = parse(r"\draw[->, red] (0,0) -- (1,0);")

    style = result.document.commands[0].style
    assert style.arrow_end == '>'
    assert style.stroke == '#ff0000'


def test_unterminated_command_is_reported_not_raised():
    result = parse(r"\draw (0,0) -- (1,0)")

    assert len(result.errors) == 1
    assert 'unterminated' in result.errors[0].message
    assert result.errors[0].line == 1
    assert len(result.document.commands) == 1
    assert _kinds(result.document.commands[0]) == [LINE_SEGMENT]


def test_syntax_error_skips_to_next_statement():
    result = parse("\\draw (0,0) -- ;\n\\draw (1,1) -- (2,2);")

    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.message == 'expected COORDINATE, got SEMICOLON'
    assert (error.line, error.column) == (1, 16)
    assert len(result.document.commands) == 2
    assert _kinds(result.document.commands[1]) == [LINE_SEGMENT]


def test_unexpected_failure_is_recorded_and_parsing_resumes(monkeypatch):
    def _fail(self, state):
        raise RuntimeError('boom')

    monkeypatch.setattr(Parser, '_parse_rectangle', _fail)

    result = parse("\\draw (0,0) rectangle (1,1);\n\\draw (1,1) -- (2,2);")

    assert len(result.errors) == 1
    assert 'boom' in result.errors[0].message
    assert (result.errors[0].line, result.errors[0].column) == (1, 1)
    assert len(result.document.commands) == 1
    assert _kinds(result.document.commands[0]) == [LINE_SEGMENT]


@pytest.mark.parametrize(
    'source, kind',
    [
        (r"\draw[scale=0] plot (\x,\x);", PLOT_SEGMENT),
        (r"\draw[rotate=30, xscale=0] (0,0) rectangle (1,1);", RECTANGLE),
    ],
)
def test_degenerate_transform_does_not_abort_the_statement(source, kind):
    result = parse(source)

    assert result.errors == []
    assert _kinds(result.document.commands[0]) == [kind]


def test_format_error_points_at_the_column():
    source = "\\draw (0,0) -- ;"
    result = parse(source)

    text = format_error(result.errors[0], source)

    assert text.splitlines() == [
        '[line 1, col 16] expected COORDINATE, got SEMICOLON',
        '    \\draw (0,0) -- ;',
        '    ' + ' ' * 15 + '^',
    ]


def test_addplot_outside_axis_samples_the_default_domain():
    result = parse(r"\addplot{x^2};")

    assert result.errors == []
    cmd = result.document.commands[0]
    assert cmd.kind == AXIS
    points = cmd.data['plots'][0].points
    xs = [x for x, _ in points]
    assert len(points) == 100
    assert xs[0] == 0.0
    assert xs[-1] == 1.0
    assert all(b > a for a, b in zip(xs, xs[1:]))
    assert points[50][1] == pytest.approx(xs[50] ** 2)


def test_relative_coordinates():
    result = parse(r"\draw (1,1) -- ++(1,0) -- +(0,1) -- (0,0);")

    segs = result.document.commands[0].segments
    assert [seg.data['to'] for seg in segs] == [Point(2.0, 1.0), Point(2.0, 2.0), Point(0.0, 0.0)]


def test_orthogonal_lines_turn_through_a_corner():
    result = parse(r"\draw (0,0) -| (2,1);")

    segs = result.document.commands[0].segments
    assert [seg.data['to'] for seg in segs] == [Point(2.0, 0.0), Point(2.0, 1.0)]


def test_curve_with_explicit_controls():
    result = parse(r"\draw (0,0) .. controls (1,1) and (2,1) .. (3,0);")

    seg = result.document.commands[0].segments[0]
    assert seg.kind == CURVE_SEGMENT
    assert seg.data['control1'] == Point(1.0, 1.0)
    assert seg.data['control2'] == Point(2.0, 1.0)
    assert seg.data['to'] == Point(3.0, 0.0)


def test_to_with_out_and_in_angles():
    result = parse(r"\draw (0,0) to[out=90, in=180] (2,2);")

    seg = result.document.commands[0].segments[0]
    assert seg.kind == CURVE_SEGMENT
    assert seg.data['out'] == 90.0
    assert seg.data['in'] == 180.0
    assert seg.data['control1'].x == pytest.approx(0.0, abs=1e-12)
    assert seg.data['control1'].y > 0.0
    assert seg.data['control2'].y == pytest.approx(2.0)
    assert seg.data['control2'].x < 2.0


def test_bend_left_and_plain_to():
    result = parse(r"\draw (0,0) to[bend left] (2,0) to (3,0);")

    bent, straight = result.document.commands[0].segments
    assert bent.kind == CURVE_SEGMENT
    assert bent.data['out'] == pytest.approx(30.0)
    assert bent.data['in'] == pytest.approx(150.0)
    assert straight.kind == LINE_SEGMENT


def test_arc_from_current_point():
    result = parse(r"\draw (1,0) arc (0:90:1);")

    seg = result.document.commands[0].segments[0]
    assert seg.kind == ARC_SEGMENT
    assert seg.data['center'] == Point(0.0, 0.0)
    assert seg.data['end'].x == pytest.approx(0.0, abs=1e-12)
    assert seg.data['end'].y == pytest.approx(1.0)
    assert seg.data['ccw'] is True


def test_grid_takes_step_from_path_options():
    result = parse(r"\draw[step=0.5] (0,0) grid (2,2);")

    seg = result.document.commands[0].segments[0]
    assert seg.kind == GRID
    assert seg.data['xstep'] == pytest.approx(0.5)
    assert seg.data['to'] == Point(2.0, 2.0)


def test_rectangle_and_rotated_rectangle():
    result = parse(
        r"""
        \draw (0,0) rectangle (2,1);
        \draw[rotate=90] (0,0) rectangle (2,1);
        """
    )

    plain = result.document.commands[0].segments[0]
    rotated = result.document.commands[1].segments[0]
    assert plain.kind == RECTANGLE
    assert 'corners' not in plain.data
    assert len(rotated.data['corners']) == 4
    assert rotated.data['to'].x == pytest.approx(-1.0)
    assert rotated.data['to'].y == pytest.approx(2.0)


def test_ellipse_radii():
    result = parse(r"\draw (0,0) ellipse (2 and 1);")

    seg = result.document.commands[0].segments[0]
    assert (seg.data['rx'], seg.data['ry']) == (pytest.approx(2.0), pytest.approx(1.0))


def test_plot_expression_on_a_path():
    result = parse(r"\draw plot[domain=0:1, samples=5] (\x, \x*\x);")

    seg = result.document.commands[0].segments[0]
    assert seg.kind == PLOT_SEGMENT
    assert seg.data['samples'] == 5
    assert [p.x for p in seg.data['points']] == pytest.approx([0.0, 0.25, 0.5, 0.75, 1.0])
    assert seg.data['points'][2].y == pytest.approx(0.25)


def test_plot_coordinates_list():
    result = parse(r"\draw plot coordinates {(0,0) (1,1) (2,0)};")

    seg = result.document.commands[0].segments[0]
    assert seg.data['points'] == [Point(0.0, 0.0), Point(1.0, 1.0), Point(2.0, 0.0)]


def test_edge_labels_attach_to_segments():
    result = parse(r"\draw (0,0) -- node[above] {mid} (2,0) -- (2,2) node[near end, right] {side};")

    first, second = result.document.commands[0].segments
    label = first.data['labels'][0]
    assert label.text == 'mid'
    assert label.pos == 0.5
    assert label.anchor == 'south'
    assert second.data['labels'][0].pos == 0.75
    assert second.data['labels'][0].anchor == 'west'


def test_inline_node_without_placement_sits_at_the_pen():
    result = parse(r"\draw (0,0) -- (1,1) node[right] {end};")

    segs = result.document.commands[0].segments
    assert [seg.kind for seg in segs] == [LINE_SEGMENT, NODE_SEGMENT]
    node = segs[1].data['node']
    assert node.position == Point(1.0, 1.0)
    assert node.text == 'end'
    assert node.options.anchor == 'west'


def test_positioning_relative_to_another_node():
    result = parse(
        r"""
        \node (a) at (0,0) {A};
        \node[right=of a] (b) {B};
        """
    )

    a = result.coords.nodes['a']
    b = result.document.commands[1].data['node']
    assert b.positioned is True
    assert b.position.x == pytest.approx(a.anchors['east'].x + 1.8)
    assert b.position.y == pytest.approx(0.0)


def test_named_coordinate_command():
    result = parse(r"\coordinate (P) at (1,2); \draw (P) -- (0,0);")

    assert result.document.commands[0].kind == COORDINATE
    seg = result.document.commands[1].segments[0]
    assert seg.data['from'] == Point(1.0, 2.0)
    assert seg.data['from_node'] is None


def test_tikzset_styles_expand():
    result = parse(r"\tikzset{important/.style={red, very thick}} \fill[important] (0,0) circle (1);")

    cmd = result.document.commands[0]
    assert cmd.kind == FILL
    assert cmd.style.stroke == '#ff0000'
    assert cmd.style.line_width == pytest.approx(1.2)


def test_cyclic_style_is_a_soft_error():
    result = parse(r"\tikzset{a/.style={b}, b/.style={a}} \draw[a] (0,0) -- (1,0);")

    assert len(result.errors) == 1
    assert 'cyclic' in result.errors[0].message
    assert _kinds(result.document.commands[0]) == [LINE_SEGMENT]


def test_scope_options_apply_until_end():
    result = parse(
        r"""
        \begin{scope}[blue, shift={(1,0)}]
          \draw (0,0) -- (1,0);
        \end{scope}
        \draw (0,0) -- (1,0);
        """
    )

    inside, outside = result.document.commands
    assert inside.style.stroke == '#0000ff'
    assert inside.segments[0].data['from'] == Point(1.0, 0.0)
    assert outside.style.stroke == '#000000'
    assert outside.segments[0].data['from'] == Point(0.0, 0.0)


def test_picture_scale_multiplies_coordinates():
    result = parse(
        r"""
        \begin{tikzpicture}[scale=2]
          \draw (0,0) -- (1,1);
        \end{tikzpicture}
        """
    )

    assert result.document.commands[0].segments[0].data['to'] == Point(2.0, 2.0)


def test_unknown_commands_are_skipped():
    result = parse(r"\usetikzlibrary{arrows} \draw (0,0) -- (1,0);")

    assert result.errors == []
    assert [cmd.kind for cmd in result.document.commands] == [DRAW]


def test_node_command_data():
    result = parse(r"\node[draw, circle] (c) at (1,1) {Hi};")

    cmd = result.document.commands[0]
    assert cmd.kind == NODE
    assert cmd.data['name'] == 'c'
    assert cmd.data['node'].options.shape == 'circle'
    assert 'c' in result.coords.nodes

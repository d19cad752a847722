import pytest

from tikzlive.config import RenderOptions
from tikzlive.geometry import Point
from tikzlive.parser import parse
from tikzlive.renderer import NodeMetrics, Renderer, render, to_svg_string
from tikzlive.svg import q
from tikzlive.text import TableTextMeasurer


class BrokenMeasurer(TableTextMeasurer):
    def measure_lines(self, lines, family='serif', line_height=None):
        raise OSError('no fonts available')


def _render(source, options=None):
    result = parse(source)
    return render(result.document, result.coords, options=options, measurer=TableTextMeasurer())


def _main(root):
    return root.findall(q('g'))[0]


def _path_numbers(path):
    return [float(token) for token in path.get('d').replace(',', ' ').split() if token[0] not in 'MLCAZ']


def test_arrow_marker_is_referenced_and_defined():
    root = _render(r"\draw[->, red] (0,0) -- (1,0);")

    path = _main(root).find(q('path'))
    assert path.get('marker-end') == 'url(#arrow-standard-end-ff0000)'
    assert path.get('stroke') == '#ff0000'
    markers = root.find(q('defs')).findall(q('marker'))
    assert [marker.get('id') for marker in markers] == ['arrow-standard-end-ff0000']


def test_same_marker_is_defined_once():
    root = _render(r"\draw[->] (0,0) -- (1,0); \draw[->] (0,1) -- (1,1);")

    assert len(root.find(q('defs')).findall(q('marker'))) == 1


def test_line_between_nodes_uses_measured_boundaries():
    result = parse(
        r"""
        \node (a) at (0,0) {A};
        \node (b) at (4,0) {B};
        \draw (a) -- (b);
        """
    )
    renderer = Renderer(measurer=TableTextMeasurer())
    metrics = renderer.measure(result.document)

    root = renderer.layout(result.document, metrics, result.coords)

    paths = _main(root).findall(q('path'))
    assert len(paths) == 1
    x1, y1, x2, y2 = _path_numbers(paths[0])
    assert x1 == pytest.approx(metrics['a'].width / 2 * 50, abs=1e-3)
    assert x2 == pytest.approx((4 - metrics['b'].width / 2) * 50, abs=1e-3)
    assert y1 == y2


def test_anchored_line_end_uses_the_anchor():
    result = parse(
        r"""
        \node[draw, minimum size=1cm] (a) at (0,0) {};
        \draw (a.north) -- (0,3);
        """
    )
    renderer = Renderer(measurer=TableTextMeasurer())
    metrics = renderer.measure(result.document)

    root = renderer.layout(result.document, metrics, result.coords)

    x1, y1, _, y2 = _path_numbers(_main(root).find(q('path')))
    assert x1 == pytest.approx(0.0)
    assert y1 - y2 == pytest.approx((3 - metrics['a'].height / 2) * 50, abs=1e-3)


def test_failed_measurement_falls_back_to_inner_sep():
    result = parse(r"\node (a) at (0,0) {Text};")
    node = result.document.commands[0].data['node']

    metrics = Renderer(measurer=BrokenMeasurer()).measure(result.document)

    assert metrics['a'].width == pytest.approx(2 * node.options.inner_sep + 2 * node.options.outer_sep)
    assert metrics['a'].height == pytest.approx(metrics['a'].width)


def test_circle_radius_is_scaled():
    circle = _main(_render(r"\draw (0,0) circle (0.5);")).find(q('circle'))

    assert circle.get('r') == '25'
    assert circle.get('fill') == 'none'
    assert circle.get('stroke') == '#000000'


def test_fill_rectangle():
    rect = _main(_render(r"\fill[blue] (0,0) rectangle (1,1);")).find(q('rect'))

    assert rect.get('fill') == '#0000ff'
    assert rect.get('stroke') == 'none'
    assert (rect.get('width'), rect.get('height')) == ('50', '50')


def test_arc_path_command():
    path = _main(_render(r"\draw (1,0) arc (0:90:1);")).find(q('path'))

    assert 'A 50 50 0 0 0' in path.get('d')


def test_rotated_ellipse():
    ellipse = _main(_render(r"\draw[rotate=30] (0,0) ellipse (2 and 1);")).find(q('ellipse'))

    assert ellipse.get('rx') == '100'
    assert ellipse.get('ry') == '50'
    assert ellipse.get('transform').startswith('rotate(-30 ')


def test_grid_lines():
    grid = _main(_render(r"\draw[step=0.5] (0,0) grid (1,1);")).find(q('g'))

    assert len(grid.findall(q('line'))) == 6
    assert grid.get('stroke') == '#000000'


def test_dashed_stroke_attributes():
    path = _main(_render(r"\draw[dashed] (0,0) -- (1,0);")).find(q('path'))

    assert path.get('stroke-dasharray') == '10 10'
    assert path.get('stroke-width') == '0.8'


def test_path_only_strokes_with_draw_option():
    plain, drawn = _main(_render(r"\path (0,0) -- (1,0); \path[draw] (0,1) -- (1,1);")).findall(q('path'))

    assert plain.get('stroke') == 'none'
    assert drawn.get('stroke') == '#000000'


def test_snake_decoration_becomes_a_polyline():
    path = _main(_render(r"\draw[decorate, decoration=snake] (0,0) -- (2,0);")).find(q('path'))

    assert path.get('d').count('L') > 10


def test_node_shape_and_text():
    group = _main(_render(r"\node[draw, fill=yellow] (n) at (0,0) {Hello};")).find(q('g'))

    rect = group.find(q('rect'))
    assert rect.get('fill') == '#ffff00'
    assert rect.get('stroke') == '#000000'
    text = group.find(q('text'))
    assert text.get('text-anchor') == 'middle'
    assert ''.join(text.itertext()) == 'Hello'


def test_multiline_node_text_is_centred_vertically():
    text = _main(_render(r"\node at (0,0) {a\\b};")).find(q('g')).find(q('text'))

    first, second = text.findall(q('tspan'))
    assert first.get('dy') == '-8'
    assert second.get('dy') == '16'
    assert first.get('dominant-baseline') == 'central'


def test_edge_label_is_placed_above_the_midpoint():
    main = _main(_render(r"\draw (0,0) -- node[above] {m} (2,0);"))

    label = main.find(q('g'))
    assert label.get('transform') == 'translate(50, 75)'
    assert ''.join(label.itertext()) == 'm'


def test_canvas_has_a_minimum_size():
    root = _render('', RenderOptions(scale=10))

    assert root.get('width') == '100'
    assert root.get('height') == '100'
    assert root.get('viewBox') == '0 0 100 100'


def test_root_attributes_and_main_group_translation():
    root = _render(r"\draw (0,0) -- (1,0);")

    assert root.get('style') == 'background-color: #ffffff'
    assert root.get('width') == '190'
    assert _main(root).get('transform') == 'translate(95, 20)'
    assert to_svg_string(root).startswith('<svg xmlns="http://www.w3.org/2000/svg"')


def test_layout_uses_supplied_node_metrics():
    result = parse(r"\node[draw] (a) at (0,0) {A};")
    renderer = Renderer(measurer=TableTextMeasurer())
    metrics = renderer.measure(result.document)
    metrics['a'] = NodeMetrics(Point(0.0, 0.0), 3.0, 1.0)

    root = renderer.layout(result.document, metrics, result.coords)

    rect = _main(root).find(q('g')).find(q('rect'))
    assert (rect.get('width'), rect.get('height')) == ('150', '50')
    assert renderer.compute_bounds(result.document, metrics)[2] == pytest.approx(2.0)

import math

import pytest

from tikzlive.geometry import Point
from tikzlive.parser import parse
from tikzlive.pgfplots import (
    LEGEND_PADDING,
    axis_extent,
    build_axis_settings,
    compute_layout,
    nice_ticks,
    parse_tick_list,
)
from tikzlive.renderer import render
from tikzlive.svg import q
from tikzlive.text import TableTextMeasurer

AXIS_SOURCE = r"""
\begin{axis}[xmin=0, xmax=2, title={Squares}, xlabel=$x$, legend pos=north west]
  \addplot[blue, domain=0:2, samples=11] {x^2};
  \addlegendentry{$x^2$}
  \addplot coordinates {(0,1) (1,2) (2,3)};
\end{axis}
"""


def _is_nice_step(step):
    exponent = math.floor(math.log10(step))
    mantissa = step / 10 ** exponent
    return any(abs(mantissa - m) < 1e-9 for m in (1, 2, 5, 10))


@pytest.mark.parametrize('lo, hi', [(0.0, 97.0), (-1.0, 1.0), (0.003, 0.017), (-250.0, 1200.0)])
def test_nice_ticks_use_round_steps(lo, hi):
    ticks = nice_ticks(lo, hi)
    steps = [b - a for a, b in zip(ticks, ticks[1:])]

    assert len(ticks) >= 2
    assert all(b > a for a, b in zip(ticks, ticks[1:]))
    assert all(s == pytest.approx(steps[0]) for s in steps)
    assert _is_nice_step(steps[0])
    assert ticks[0] >= lo - 1e-9
    assert ticks[-1] <= hi + steps[0] / 2


def test_nice_ticks_known_values():
    assert nice_ticks(0.0, 97.0) == [0.0, 20.0, 40.0, 60.0, 80.0, 100.0]
    assert nice_ticks(-1.0, 1.0) == [-1.0, -0.5, 0.0, 0.5, 1.0]
    assert nice_ticks(2.0, 2.0) == [2.0]


@pytest.mark.parametrize(
    'value, expected',
    [
        ('{0,1,...,5}', [0, 1, 2, 3, 4, 5]),
        ('{0, 0.5}', [0.0, 0.5]),
        ('{10,8,...,4}', [10, 8, 6, 4]),
        ('{}', []),
        (None, None),
    ],
)
def test_parse_tick_list(value, expected):
    assert parse_tick_list(value) == expected


def test_build_axis_settings():
    settings = build_axis_settings(['width=10cm', 'ymin=-1', 'xtick={0,1,2}', 'grid=major', 'at={(1cm,2cm)}'])

    assert settings.width == pytest.approx(10.0)
    assert settings.ymin == -1.0
    assert settings.xtick == [0.0, 1.0, 2.0]
    assert settings.grid == 'major'
    assert settings.origin == Point(1.0, 2.0)


def test_axis_environment_is_parsed():
    result = parse(AXIS_SOURCE)

    assert result.errors == []
    cmd = result.document.commands[0]
    settings = cmd.data['settings']
    assert settings.xmin == 0.0
    assert settings.xmax == 2.0
    assert settings.title == 'Squares'
    assert settings.xlabel == '$x$'
    assert settings.legend_pos == 'north west'
    assert cmd.data['legend'] == ['$x^2$']

    squares, line = cmd.data['plots']
    assert squares.explicit_color == '#0000ff'
    assert len(squares.points) == 11
    assert squares.points[-1] == (pytest.approx(2.0), pytest.approx(4.0))
    assert line.points == [(0.0, 1.0), (1.0, 2.0), (2.0, 3.0)]


def test_unterminated_axis_is_a_soft_error():
    result = parse(r"\begin{axis} \addplot{x};")

    assert len(result.errors) == 1
    assert 'axis' in result.errors[0].message
    assert len(result.document.commands[0].data['plots']) == 1


def test_plot_domain_falls_back_to_axis_limits():
    result = parse(r"\begin{axis}[xmin=-2, xmax=2] \addplot[samples=5] {x}; \end{axis}")

    xs = [x for x, _ in result.document.commands[0].data['plots'][0].points]
    assert xs == pytest.approx([-2.0, -1.0, 0.0, 1.0, 2.0])


def test_compute_layout_maps_data_onto_the_axis_box():
    cmd = parse(AXIS_SOURCE).document.commands[0]

    layout = compute_layout(cmd.data['settings'], cmd.data['plots'])

    assert (layout.xmin, layout.xmax) == (0.0, 2.0)
    assert (layout.ymin, layout.ymax) == (0.0, 4.0)
    assert layout.xticks == [0.0, 0.5, 1.0, 1.5, 2.0]
    assert layout.yticks == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert layout.to_scene(2.0, 4.0) == Point(8.0, 6.0)


def test_axis_extent_includes_label_room():
    cmd = parse(AXIS_SOURCE).document.commands[0]

    low, high = axis_extent(cmd)

    assert low == Point(-1.2, -1.0)
    assert high.x == pytest.approx(8.0)
    assert high.y == pytest.approx(6.6)


def test_render_axis_emits_clip_plots_and_legend():
    result = parse(AXIS_SOURCE)

    root = render(result.document, result.coords, measurer=TableTextMeasurer())

    defs = root.find(q('defs'))
    clips = defs.findall(q('clipPath'))
    assert [clip.get('id') for clip in clips] == ['axis-clip-1']
    axis = [g for g in root.iter(q('g')) if g.get('class') == 'axis']
    assert len(axis) == 1
    polylines = list(axis[0].iter(q('polyline')))
    assert len(polylines) == 2
    assert polylines[0].get('stroke') == '#0000ff'
    assert len(polylines[0].get('points').split()) == 11
    legend = [g for g in axis[0].iter(q('g')) if g.get('class') == 'legend']
    assert len(legend) == 1
    texts = [''.join(t.itertext()) for t in axis[0].iter(q('text'))]
    assert 'Squares' in texts


class NoFontMeasurer(TableTextMeasurer):
    def measure_line(self, line, family='serif'):
        raise OSError('no font')

    def box_height(self, size, family='serif'):
        raise OSError('no font')


@pytest.mark.parametrize('legend_pos', ['north east', 'outer north east'])
def test_legend_survives_a_failing_measurer(legend_pos):
    result = parse(
        r"\begin{axis}[legend pos=%s] \addplot{x}; \addlegendentry{f} \end{axis}" % legend_pos
    )

    root = render(result.document, result.coords, measurer=NoFontMeasurer())

    legend = [g for g in root.iter(q('g')) if g.get('class') == 'legend']
    assert len(legend) == 1
    box = legend[0].find(q('rect'))
    assert float(box.get('height')) == pytest.approx(2 * LEGEND_PADDING * 50)

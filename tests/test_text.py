import xml.etree.ElementTree as ET

import pytest

from tikzlive.svg import q
from tikzlive.text import (
    PillowTextMeasurer,
    TableTextMeasurer,
    TextLine,
    append_rich_text,
    measure_block,
    parse_node_text,
    split_math,
    text_runs,
)


def test_line_breaks_split_node_text():
    lines = parse_node_text('First\\\\Second \\\\[2pt] Third')

    assert [line.content for line in lines] == ['First', 'Second', 'Third']
    assert all(line.font_size == 14 for line in lines)


def test_font_switch_applies_to_its_own_line():
    lines = parse_node_text('\\small Hi \\\\ There')

    assert [(line.content, line.font_size) for line in lines] == [('Hi', 12), ('There', 14)]


def test_bold_and_italic_wrappers():
    bold, italic = parse_node_text('\\textbf{Bold} \\\\ \\emph{soft}')

    assert (bold.content, bold.bold, bold.italic) == ('Bold', True, False)
    assert (italic.content, italic.bold, italic.italic) == ('soft', False, True)


def test_tabular_rows_become_lines():
    lines = parse_node_text('\\begin{tabular}{cc} a & b \\\\ c & d \\end{tabular}')

    assert [line.content for line in lines] == ['a b', 'c d']


def test_math_content_is_kept_verbatim():
    lines = parse_node_text('value $x_{1}$')

    assert lines[0].content == 'value $x_{1}$'


def test_font_scale_and_default_size():
    assert parse_node_text('A', 10, 2.0)[0].font_size == 20
    assert parse_node_text('') == []


def test_split_math_and_runs():
    assert split_math('a $x^2$ b') == [('a ', False), ('x^2', True), (' b', False)]
    assert text_runs('a $x^2$') == [('a ', 1.0), ('x', 1.0), ('2', pytest.approx(0.7))]


def test_append_rich_text_mixes_plain_and_math():
    parent = ET.Element(q('text'))

    append_rich_text(parent, 'a $x$')

    plain, math = list(parent)
    assert plain.text == 'a '
    assert math.text == 'x'
    assert math.get('font-style') == 'italic'
    assert ''.join(parent.itertext()) == 'a x'


def test_table_measurer_widths_and_heights():
    measurer = TableTextMeasurer()

    assert measurer.text_width('Ab', 10) == pytest.approx(12.0)
    assert measurer.text_width('Ab', 10, bold=True) == pytest.approx(12.6)
    assert measurer.box_height(10) == pytest.approx(12.0)


def test_measure_lines_uses_widest_line_and_line_height():
    measurer = TableTextMeasurer()
    lines = [TextLine('Ab', 10), TextLine('A', 10)]

    width, height = measurer.measure_lines(lines, line_height=16)

    assert width == pytest.approx(12.0)
    assert height == pytest.approx(28.0)
    assert measurer.measure_lines([]) == (0.0, 0.0)


def test_math_runs_are_measured_at_script_size():
    measurer = TableTextMeasurer()

    assert measurer.measure_line(TextLine('$x^2$', 10)) == pytest.approx(5.0 + 0.55 * 7.0)


def test_pillow_measurer_grows_with_text():
    measurer = PillowTextMeasurer()

    short = measurer.text_width('ab', 14)
    long = measurer.text_width('abcdefgh', 14)

    assert 0 < short < long
    assert measurer.box_height(14) > 0
    assert measurer.font(14) is measurer.font(14.2)


def test_measure_block_turns_failures_into_an_empty_box():
    class Failing(TableTextMeasurer):
        def text_width(self, text, size, family='serif', bold=False):
            raise RuntimeError('broken font table')

    lines = [TextLine('abc', 10)]

    assert measure_block(Failing(), lines) == (0.0, 0.0)
    assert measure_block(TableTextMeasurer(), lines) == TableTextMeasurer().measure_lines(lines)

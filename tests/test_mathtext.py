import xml.etree.ElementTree as ET

import pytest

from tikzlive.mathtext import append_math, math_runs, typeset_math
from tikzlive.svg import q


@pytest.mark.parametrize(
    'text, expected',
    [
        ('x^2', [('x', 1.0), ('2', 0.7)]),
        ('a_{ij}', [('a', 1.0), ('ij', 0.7)]),
        ('\\alpha + \\beta', [('α + β', 1.0)]),
        ('\\frac{a}{b}', [('a', 0.7), ('⁄', 1.0), ('b', 0.7)]),
        ('\\sqrt{x}', [('√', 1.0), ('x', 1.0)]),
        ('\\mathcal{L}', [('ℒ', 1.0)]),
        ('\\unknown', [('\\unknown', 1.0)]),
        ('\\left( x \\right)', [('( ', 1.0), ('x', 1.0), (' )', 1.0)]),
    ],
)
def test_math_runs(text, expected):
    runs = math_runs(text)

    assert [run for run, _ in runs] == [run for run, _ in expected]
    assert [size for _, size in runs] == pytest.approx([size for _, size in expected])


def test_nested_scripts_compound_their_scale():
    runs = math_runs('e^{x^2}')

    assert runs[-1][0] == '2'
    assert runs[-1][1] == pytest.approx(0.49)


def test_letters_are_italic_and_mathrm_is_upright():
    spans = typeset_math('x\\mathrm{d}')

    assert spans[0].text == 'x'
    assert spans[0].italic is True
    assert spans[1].children[0].text == 'd'
    assert spans[1].children[0].italic is False


def test_append_math_builds_nested_tspans():
    parent = ET.Element(q('text'))

    append_math(parent, 'x^2')

    base, script = list(parent)
    assert base.text == 'x'
    assert base.get('font-style') == 'italic'
    assert script.get('baseline-shift') == 'super'
    assert script.get('font-size') == '70%'
    assert script[0].text == '2'


def test_mathbf_sets_weight():
    spans = typeset_math('\\mathbf{v}')

    assert spans[0].weight == 'bold'
    assert spans[0].children[0].italic is False

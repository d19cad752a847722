import math

import pytest

from tikzlive.expressions import (
    ExpressionError,
    evaluate,
    evaluate_expression,
    parse_domain,
    parse_number,
    sample_domain,
    sample_expression,
    to_python_syntax,
)


@pytest.mark.parametrize(
    'expr, expected',
    [
        ('1 + 2 * 3', 7.0),
        ('2 ** 3', 8.0),
        ('-(4 - 6)', 2.0),
        ('sqrt(16) + abs(-1)', 5.0),
        ('max(1, 5, 3)', 5.0),
        ('pi', math.pi),
        ('ln(e)', 1.0),
        ('7 % 4', 3.0),
    ],
)
def test_evaluate(expr, expected):
    assert evaluate(expr) == pytest.approx(expected)


@pytest.mark.parametrize('expr', ['__import__("os")', 'open("x")', '(1).real', 'lambda: 1', '1 +', 'unknown(2)'])
def test_evaluate_rejects_anything_outside_the_sandbox(expr):
    with pytest.raises(ExpressionError):
        evaluate(expr)


def test_evaluate_with_bound_names():
    assert evaluate('x * y', {'x': 2.0, 'y': 3.5}) == pytest.approx(7.0)


def test_to_python_syntax_binds_backslash_variable():
    assert to_python_syntax('\\x^2 + \\xa', '\\x', 3.0) == '(3.0)**2 + \\xa'


def test_to_python_syntax_binds_plain_variable_on_word_boundaries():
    assert to_python_syntax('x^2 + exp(x)', 'x', 2.0) == '(2.0)**2 + exp((2.0))'


def test_trig_functions_take_radians():
    assert evaluate_expression('sin(x)', 'x', math.pi / 2) == pytest.approx(1.0)
    assert evaluate_expression('\\x r', '\\x', 1.0) == pytest.approx(1.0)


def test_evaluate_expression_degrades_to_zero():
    assert evaluate_expression('1/x', 'x', 0.0) == 0.0
    assert evaluate_expression('sqrt(x)', 'x', -1.0) == 0.0
    assert evaluate_expression('x +* 1', 'x', 1.0) == 0.0
    assert evaluate_expression('exp(x)', 'x', 1e6) == 0.0


def test_sample_domain_is_evenly_spaced_and_inclusive():
    xs = sample_domain(0.0, 1.0, 100)

    assert len(xs) == 100
    assert xs[0] == 0.0
    assert xs[-1] == 1.0
    assert all(b > a for a, b in zip(xs, xs[1:]))


def test_sample_domain_enforces_two_samples():
    assert sample_domain(-1.0, 1.0, 1) == [-1.0, 1.0]


def test_sample_expression_pairs():
    pairs = sample_expression('x^2', 'x', -1.0, 1.0, 3)

    assert pairs == [(-1.0, 1.0), (0.0, 0.0), (1.0, 1.0)]


def test_parse_number_and_domain():
    assert parse_number('{2*3}', 0.0) == 6.0
    assert parse_number('oops', 1.5) == 1.5
    assert parse_number(None, 2.0) == 2.0
    assert parse_domain('-2:2*pi') == pytest.approx((-2.0, 2 * math.pi))
    assert parse_domain('{0:1}') == (0.0, 1.0)
    assert parse_domain('1') is None

from tikzlive.lexer import tokenize


def _types(source):
    return [tok.type for tok in tokenize(source)]


def test_draw_statement_token_stream():
    tokens = tokenize(r"\draw (0,0) -- (1,0);")

    assert [tok.type for tok in tokens] == ['COMMAND', 'COORDINATE', 'LINE_TO', 'COORDINATE', 'SEMICOLON', 'EOF']
    assert tokens[0].value == '\\draw'
    assert tokens[1].value == '0,0'


def test_comments_and_whitespace_are_skipped():
    assert _types("% a comment\n\\fill ; % trailing") == ['COMMAND', 'SEMICOLON', 'EOF']


def test_positions_track_lines_and_columns():
    tokens = tokenize("\\draw\n  (1,2);")

    assert tokens[1].line == 2
    assert tokens[1].column == 3
    assert tokens[1].position.offset == 8


def test_keywords_and_identifiers():
    tokens = tokenize("circle arc foo controls node")

    assert [tok.type for tok in tokens[:-1]] == ['CIRCLE', 'ARC', 'IDENTIFIER', 'CONTROLS', 'NODE']


def test_braces_and_nested_parentheses_are_single_tokens():
    tokens = tokenize("{a {b} c} ($(A)+(1,0)$)")

    assert tokens[0].type == 'STRING'
    assert tokens[0].value == 'a {b} c'
    assert tokens[1].type == 'COORDINATE'
    assert tokens[1].value == '$(A)+(1,0)$'


def test_numbers_and_symbols():
    tokens = tokenize("[line width=-1.5pt]")

    assert [tok.type for tok in tokens] == [
        'OPTION_START', 'IDENTIFIER', 'IDENTIFIER', 'EQUALS', 'NUMBER', 'IDENTIFIER', 'OPTION_END', 'EOF',
    ]
    assert tokens[4].value == '-1.5'


def test_curve_operator_and_escaped_symbol():
    tokens = tokenize(r".. \\ ?")

    assert tokens[0].type == 'CURVE_TO'
    assert tokens[1].type == 'ERROR'
    assert tokens[1].value == '\\\\'
    assert tokens[2].type == 'ERROR'
    assert tokens[2].value == '?'

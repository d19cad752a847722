import re
from typing import List, NamedTuple, Optional


class Position(NamedTuple):
    line: int
    column: int
    offset: int


class Token(NamedTuple):
    type: str
    value: Optional[str]
    position: Position

    @property
    def line(self) -> int:
        return self.position.line

    @property
    def column(self) -> int:
        return self.position.column


SYMBOLS = {
    '[': 'OPTION_START',
    ']': 'OPTION_END',
    ';': 'SEMICOLON',
    ',': 'COMMA',
    '=': 'EQUALS',
    ':': 'COLON',
    '+': 'PLUS',
    '/': 'SLASH',
    '.': 'DOT',
}

KEYWORDS = {
    'to': 'TO',
    'cycle': 'CYCLE',
    'arc': 'ARC',
    'circle': 'CIRCLE',
    'ellipse': 'ELLIPSE',
    'rectangle': 'RECTANGLE',
    'grid': 'GRID',
    'node': 'NODE',
    'at': 'AT',
    'and': 'AND',
    'controls': 'CONTROLS',
    'plot': 'PLOT',
}

# keyword-typed tokens that still read as plain words inside option blocks
WORD_TYPES = frozenset(['IDENTIFIER'] + list(KEYWORDS.values()))

WS = ' \t\r\n'

_cmd_re = re.compile(r'\\[A-Za-z]+')
_id_re = re.compile(r'[A-Za-z][A-Za-z0-9_\-]*')
_num_re = re.compile(r'-?(?:\d+(?:\.\d*)?|\.\d+)')


class _Scanner:
    def __init__(self, source: str):
        self.src = source
        self.i = 0
        self.line = 1
        self.col = 1

    def position(self) -> Position:
        return Position(self.line, self.col, self.i)

    def advance_to(self, end: int) -> str:
        chunk = self.src[self.i:end]
        for ch in chunk:
            if ch == '\n':
                self.line += 1
                self.col = 1
            else:
                self.col += 1
        self.i = end
        return chunk

    def skip_blank(self) -> None:
        n = len(self.src)
        while self.i < n:
            ch = self.src[self.i]
            if ch in WS:
                self.advance_to(self.i + 1)
            elif ch == '%':
                end = self.src.find('\n', self.i)
                self.advance_to(n if end < 0 else end)
            else:
                break

    def read_balanced(self, open_ch: str, close_ch: str) -> str:
        """Consume a balanced group starting at ``open_ch``; returns the inner text."""
        depth = 0
        j = self.i
        n = len(self.src)
        while j < n:
            ch = self.src[j]
            if ch == open_ch:
                depth += 1
            elif ch == close_ch:
                depth -= 1
                if depth == 0:
                    break
            j += 1
        inner = self.src[self.i + 1:j]
        self.advance_to(min(j + 1, n))
        return inner


def tokenize(source: str) -> List[Token]:
    sc = _Scanner(source)
    tokens: List[Token] = []
    n = len(source)
    while True:
        sc.skip_blank()
        pos = sc.position()
        if sc.i >= n:
            tokens.append(Token('EOF', None, pos))
            return tokens
        ch = source[sc.i]
        nxt = source[sc.i + 1] if sc.i + 1 < n else ''
        if ch == '-' and nxt == '-':
            sc.advance_to(sc.i + 2)
            tokens.append(Token('LINE_TO', '--', pos))
            continue
        if ch == '.' and nxt == '.':
            sc.advance_to(sc.i + 2)
            tokens.append(Token('CURVE_TO', '..', pos))
            continue
        if ch == '\\':
            m = _cmd_re.match(source, sc.i)
            if m:
                tokens.append(Token('COMMAND', sc.advance_to(m.end()), pos))
            else:
                # escaped symbol such as \\ or \, outside of text
                tokens.append(Token('ERROR', sc.advance_to(min(sc.i + 2, n)), pos))
            continue
        if ch == '(':
            tokens.append(Token('COORDINATE', sc.read_balanced('(', ')').strip(), pos))
            continue
        if ch == '{':
            tokens.append(Token('STRING', sc.read_balanced('{', '}'), pos))
            continue
        if ch.isdigit() or (ch == '-' and nxt.isdigit()) or (ch == '.' and nxt.isdigit()):
            m = _num_re.match(source, sc.i)
            tokens.append(Token('NUMBER', sc.advance_to(m.end()), pos))
            continue
        if ch in SYMBOLS:
            sc.advance_to(sc.i + 1)
            tokens.append(Token(SYMBOLS[ch], ch, pos))
            continue
        m = _id_re.match(source, sc.i)
        if m:
            word = sc.advance_to(m.end())
            tokens.append(Token(KEYWORDS.get(word, 'IDENTIFIER'), word, pos))
            continue
        tokens.append(Token('ERROR', sc.advance_to(sc.i + 1), pos))

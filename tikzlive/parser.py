import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .ast import (
    ARC_SEGMENT,
    CIRCLE,
    COORDINATE,
    CURVE_SEGMENT,
    CYCLE,
    DRAW,
    ELLIPSE,
    FILL,
    FILLDRAW,
    GRID,
    LINE_SEGMENT,
    NODE,
    NODE_SEGMENT,
    PATH,
    PLOT_SEGMENT,
    RECTANGLE,
    Command,
    Document,
    EdgeLabel,
    NodeSpec,
    ParseError,
    Segment,
    Span,
)
from .coordinates import CoordinateRef, CoordinateSystem
from .expressions import evaluate_expression, parse_domain, parse_number, sample_domain
from .geometry import ORIGIN, Point, Transform, anchor_offset, angle_of, curve_controls
from .lexer import WORD_TYPES, Position, Token, tokenize
from .logging_utils import debug_log_call
from .pgfplots import parse_axis, parse_implicit_axis
from .styles import (
    NodeOptions,
    Style,
    compose_transformations,
    parse_distance,
    parse_font_size,
    parse_node_options,
    parse_options,
    split_option,
    split_top_level,
    strip_braces,
)

logger = logging.getLogger(__name__)

_ERROR_LOC_RE = re.compile(r"\[line (\d+), col (\d+)\]")

DEFAULT_NODE_DISTANCE = 1.0
DEFAULT_SAMPLES = 100
DEFAULT_DOMAIN = (0.0, 1.0)
# added to positioned nodes so ``below=of a`` clears the new node's own half height
NODE_HALF_HEIGHT = 0.8

_UNITS = frozenset(['cm', 'mm', 'pt', 'em', 'ex', 'in', 'px'])
_STYLE_DEF_RE = re.compile(r"^(.+?)\s*/\.(style|append style)\s*=\s*(.*)$", re.S)
_OF_RE = re.compile(r"^(?:(?P<first>\S+?)(?:\s+and\s+(?P<second>\S+?))?\s+)?of\s+(?P<node>.+)$")
_COORD_LIST_RE = re.compile(r"\(([^()]*)\)")
_TEXT_MARKUP_RE = re.compile(r"\\[A-Za-z]+|[{}$]")

_DIRECTIONS = ('above', 'below', 'left', 'right', 'above left', 'above right', 'below left', 'below right')
_LABEL_POSITIONS = {
    'midway': 0.5,
    'near start': 0.25,
    'near end': 0.75,
    'at start': 0.0,
    'at end': 1.0,
    'very near start': 0.125,
    'very near end': 0.875,
}

_PICTURE_KEYS = frozenset(['scale', 'x', 'z', 'node distance', 'font'])

_PATH_COMMANDS = {
    '\\draw': DRAW,
    '\\fill': FILL,
    '\\filldraw': FILLDRAW,
    '\\path': PATH,
}


class TikzSyntaxError(SyntaxError):
    """Raised inside the parser; ``parse`` turns it into a :class:`ParseError`."""

    def __init__(self, message: str, position: Optional[Position] = None):
        self.position = position
        if position is not None:
            message = f'[line {position.line}, col {position.column}] {message}'
        super().__init__(message)


class Cursor:
    def __init__(self, tokens: List[Token]):
        self.toks = tokens
        self.i = 0

    def peek(self, offset: int = 0) -> Token:
        idx = min(self.i + offset, len(self.toks) - 1)
        return self.toks[idx]

    def at(self, *types: str) -> bool:
        return self.peek().type in types

    def advance(self) -> Token:
        tok = self.peek()
        if tok.type != 'EOF':
            self.i += 1
        return tok

    def match(self, *types: str) -> Optional[Token]:
        if self.at(*types):
            return self.advance()
        return None

    def expect(self, *types: str) -> Token:
        tok = self.peek()
        if tok.type in types:
            return self.advance()
        want = '|'.join(types)
        raise TikzSyntaxError(f'expected {want}, got {tok.type}', tok.position)

    def peek_ahead(self, offset: int = 1) -> Token:
        return self.peek(offset)


@dataclass
class CoordinateEnvironment:
    """State shared by a parse and every ``\\foreach`` body it re-parses."""

    coords: CoordinateSystem = field(default_factory=CoordinateSystem)
    styles: Dict[str, List[str]] = field(default_factory=dict)
    node_distance: float = DEFAULT_NODE_DISTANCE
    default_font_size: Optional[int] = None
    picture_options: List[str] = field(default_factory=list)
    scopes: List[List[str]] = field(default_factory=list)

    def inherited_options(self) -> List[str]:
        options = list(self.picture_options)
        for scope in self.scopes:
            options.extend(scope)
        return options


@dataclass
class ParseResult:
    document: Document
    errors: List[ParseError]
    env: CoordinateEnvironment

    @property
    def coords(self) -> CoordinateSystem:
        return self.env.coords


@dataclass
class _PathState:
    style: Style
    transform: Transform
    options: List[str]
    segments: List[Segment] = field(default_factory=list)
    pen: Optional[Point] = None
    pen_node: Optional[str] = None
    pen_anchor: Optional[str] = None
    start: Optional[Point] = None


def _is_name(text: str) -> bool:
    return bool(text.strip()) and ',' not in text and ':' not in text and '$' not in text


def _length(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    distance = parse_distance(strip_braces(value))
    if distance is not None:
        return distance
    return parse_number(value, default)


def edge_label_placement(options: List[str]) -> Dict[str, object]:
    """``pos``/``midway``/``above``... on a label riding along a segment."""
    placement: Dict[str, object] = {
        'pos': 0.5,
        'offset': ORIGIN,
        'anchor': 'center',
        'align': 'center',
        'sloped': False,
    }
    for opt in options:
        key, value = split_option(opt)
        if key == 'pos':
            placement['pos'] = parse_number(value, 0.5)
        elif key in _LABEL_POSITIONS:
            placement['pos'] = _LABEL_POSITIONS[key]
        elif key == 'above':
            placement['offset'] = Point(0.0, parse_distance(value) or 0.15)
            placement['anchor'] = 'south'
            placement['align'] = 'center'
        elif key == 'below':
            placement['offset'] = Point(0.0, -(parse_distance(value) or 0.15))
            placement['anchor'] = 'north'
            placement['align'] = 'center'
        elif key == 'left':
            placement['offset'] = Point(-(parse_distance(value) or 0.15), 0.0)
            placement['anchor'] = 'east'
            placement['align'] = 'right'
        elif key == 'right':
            placement['offset'] = Point(parse_distance(value) or 0.15, 0.0)
            placement['anchor'] = 'west'
            placement['align'] = 'left'
        elif key == 'sloped':
            placement['sloped'] = True
    return placement


def _is_label_placement(options: List[str]) -> bool:
    for opt in options:
        key, _ = split_option(opt)
        if key == 'pos' or key in _LABEL_POSITIONS or key == 'sloped':
            return True
    return False


def estimate_node_size(text: str, options: NodeOptions) -> Tuple[float, float]:
    """Provisional node size in cm, replaced by measured metrics at render time."""
    lines = [_TEXT_MARKUP_RE.sub('', line).strip() for line in re.split(r"\\\\", text)] if text else []
    longest = max((len(line) for line in lines), default=0)
    scale = (options.font_size or 14) / 14.0
    width = 0.2 * longest * scale + 2 * options.inner_sep
    height = (0.4 * scale * len(lines) if longest else 0.0) + 2 * options.inner_sep
    width = max(width, options.min_width)
    height = max(height, options.min_height)
    if options.shape == 'circle':
        width = height = max(width, height)
    return width, height


def _format_value(value: float) -> str:
    rounded = round(value, 10)
    if rounded == int(rounded):
        return str(int(rounded))
    return f'{rounded:g}'


def expand_foreach_values(text: str, arity: int = 1) -> List[List[str]]:
    """Split a ``\\foreach`` list, expanding ``a,b,...,n`` ranges."""
    items = [strip_braces(item) or '' for item in split_top_level(text)]
    values: List[str] = []
    for idx, item in enumerate(items):
        if item != '...':
            values.append(item)
            continue
        try:
            end = float(items[idx + 1])
            last = float(values[-1])
            step = last - float(values[-2]) if len(values) >= 2 else (1.0 if end >= last else -1.0)
        except (IndexError, ValueError):
            raise TikzSyntaxError(f'cannot expand range in {{{text}}}')
        if step == 0:
            continue
        current = last + step
        while (step > 0 and current < end - 1e-9) or (step < 0 and current > end + 1e-9):
            values.append(_format_value(current))
            current += step
    if arity == 1:
        return [[value] for value in values]
    return [[part.strip() for part in value.split('/')] for value in values]


def _substitute(text: str, variable: str, value: str) -> str:
    return re.sub(re.escape(variable) + r'(?![A-Za-z])', lambda _m: value, text)


class Parser:
    def __init__(self, source: str, env: Optional[CoordinateEnvironment] = None):
        self.source = source
        self.cur = Cursor(tokenize(source))
        self.env = env if env is not None else CoordinateEnvironment()
        self.errors: List[ParseError] = []

    @property
    def coords(self) -> CoordinateSystem:
        return self.env.coords

    # -- statements -------------------------------------------------------

    def parse(self) -> Document:
        document = Document()
        while not self.cur.at('EOF'):
            start = self.cur.peek().position
            try:
                document.commands.extend(self.parse_statement())
            except TikzSyntaxError as exc:
                self.record_error(exc)
                self.skip_statement()
            except Exception as exc:
                logger.debug("Statement at line %d failed", start.line, exc_info=True)
                self.soft_error(f'cannot process statement: {exc}', start)
                self.skip_statement()
        return document

    def parse_statement(self) -> List[Command]:
        tok = self.cur.peek()
        if tok.type != 'COMMAND':
            self.cur.advance()
            return []
        if tok.value in _PATH_COMMANDS:
            return [self._parse_path_command(_PATH_COMMANDS[tok.value])]
        if tok.value == '\\node':
            return [self._parse_node_command()]
        if tok.value == '\\coordinate':
            return [self._parse_coordinate_command()]
        if tok.value == '\\begin':
            return self._parse_begin()
        if tok.value == '\\end':
            self._parse_end()
            return []
        if tok.value == '\\foreach':
            return self._parse_foreach()
        if tok.value == '\\tikzset':
            self._parse_tikzset()
            return []
        if tok.value == '\\addplot':
            return [parse_implicit_axis(self, self._span(tok))]
        logger.debug("Skipping unsupported command %s at line %d", tok.value, tok.line)
        self.cur.advance()
        return []

    def record_error(self, exc: TikzSyntaxError) -> None:
        position = exc.position or self.cur.peek().position
        message = _ERROR_LOC_RE.sub('', str(exc)).strip()
        self.errors.append(ParseError(message, position.line, position.column, position.offset))

    def soft_error(self, message: str, position: Optional[Position] = None) -> None:
        position = position or self.cur.peek().position
        self.errors.append(ParseError(message, position.line, position.column, position.offset))

    def skip_statement(self) -> None:
        while not self.cur.at('SEMICOLON', 'EOF'):
            self.cur.advance()
        self.cur.match('SEMICOLON')

    def finish_statement(self, what: str) -> None:
        if self.cur.match('SEMICOLON'):
            return
        tok = self.cur.peek()
        if tok.type == 'EOF':
            self.soft_error(f'unterminated {what}: expected SEMICOLON before end of input', tok.position)
            return
        self.soft_error(f'unexpected {tok.type} {tok.value!r} in {what}', tok.position)
        self.skip_statement()

    @staticmethod
    def _span(tok: Token) -> Span:
        return Span(tok.line, tok.column)

    # -- option blocks ----------------------------------------------------

    def parse_option_block(self, expand: bool = True) -> List[str]:
        """Read ``[...]`` into a list of option strings.

        The lexer drops whitespace, so word boundaries are restored here:
        ``inner sep``, ``on 2pt off 3pt`` and ``5mm and 1cm of a`` come back
        with their spaces, ``2pt`` and ``red!50`` without.
        """
        if not self.cur.match('OPTION_START'):
            return []
        options: List[str] = []
        current: List[str] = []
        last: Optional[Token] = None
        while not self.cur.at('OPTION_END', 'EOF'):
            tok = self.cur.advance()
            if tok.type == 'COMMA':
                if ''.join(current).strip():
                    options.append(''.join(current).strip())
                current = []
                last = None
                continue
            if last is not None and self._needs_space(last, tok):
                current.append(' ')
            if tok.type == 'STRING':
                current.append('{' + tok.value + '}')
            elif tok.type == 'COORDINATE':
                current.append('(' + tok.value + ')')
            elif tok.value is not None:
                current.append(tok.value)
            last = tok
        if ''.join(current).strip():
            options.append(''.join(current).strip())
        self.cur.expect('OPTION_END')
        options = self._take_style_definitions(options)
        if not expand:
            return options
        return self.expand_styles(options)

    @staticmethod
    def _needs_space(last: Token, tok: Token) -> bool:
        if last.type in WORD_TYPES and tok.type in WORD_TYPES:
            return True
        if last.type == 'NUMBER' and tok.type in WORD_TYPES:
            return tok.value not in _UNITS
        if last.type in WORD_TYPES and tok.type == 'NUMBER':
            return True
        return False

    def _take_style_definitions(self, options: List[str]) -> List[str]:
        remaining = []
        for opt in options:
            match = _STYLE_DEF_RE.match(opt)
            if not match:
                remaining.append(opt)
                continue
            name = ' '.join(match.group(1).split())
            body = split_top_level(strip_braces(match.group(3)) or '')
            if match.group(2) == 'append style':
                self.env.styles[name] = self.env.styles.get(name, []) + body
            else:
                self.env.styles[name] = body
        return remaining

    def expand_styles(self, options: List[str], trail: Tuple[str, ...] = ()) -> List[str]:
        """Replace bare style names by their definitions, recursively.

        A style that reaches itself again is dropped at that point and
        reported as a soft error.
        """
        expanded: List[str] = []
        for opt in options:
            key, value = split_option(opt)
            if value is None and key in self.env.styles:
                if key in trail:
                    self.soft_error(f'cyclic style definition {key!r}')
                    continue
                expanded.extend(self.expand_styles(self.env.styles[key], trail + (key,)))
            else:
                expanded.append(opt)
        return expanded

    def _apply_picture_options(self, options: List[str]) -> None:
        for opt in options:
            key, value = split_option(opt)
            if key == 'scale':
                self.coords.global_scale = parse_number(value, 1.0)
            elif key == 'x':
                self.coords.axis_scale = _length(value, 1.0)
            elif key == 'z':
                pair = split_top_level((strip_braces(value) or '').strip('()'))
                if len(pair) == 2:
                    self.coords.z_projection = (_length(pair[0], 0.0), _length(pair[1], 0.0))
            elif key == 'node distance':
                distance = parse_distance(value)
                if distance is not None:
                    self.env.node_distance = distance
            elif key == 'font':
                self.env.default_font_size = parse_font_size(value)
            if key not in _PICTURE_KEYS:
                self.env.picture_options.append(opt)

    # -- environments and macros ------------------------------------------

    def _parse_begin(self) -> List[Command]:
        begin = self.cur.advance()
        env_name = (self.cur.expect('STRING').value or '').strip()
        if env_name == 'tikzpicture':
            self._apply_picture_options(self.parse_option_block())
        elif env_name == 'scope':
            self.env.scopes.append(self.parse_option_block())
        elif env_name == 'axis':
            return [parse_axis(self, self._span(begin))]
        return []

    def _parse_end(self) -> None:
        self.cur.advance()
        env = self.cur.match('STRING')
        if env is not None and env.value.strip() == 'scope' and self.env.scopes:
            self.env.scopes.pop()

    def _parse_tikzset(self) -> None:
        self.cur.advance()
        body = self.cur.expect('STRING')
        leftover = self._take_style_definitions(split_top_level(body.value))
        for opt in leftover:
            self.env.picture_options.append(opt)
        self.cur.match('SEMICOLON')

    def _parse_foreach(self) -> List[Command]:
        start = self.cur.advance()
        variables: List[str] = []
        while self.cur.at('COMMAND'):
            variables.append(self.cur.advance().value)
            if not self.cur.match('SLASH'):
                break
        if not variables:
            raise TikzSyntaxError('expected loop variable after \\foreach', self.cur.peek().position)
        count_var = None
        for opt in self.parse_option_block(expand=False):
            key, value = split_option(opt)
            if key == 'count' and value:
                count_var = value.split('from')[0].strip()
        keyword = self.cur.expect('IDENTIFIER')
        if keyword.value != 'in':
            raise TikzSyntaxError(f"expected 'in' after loop variable, got {keyword.value!r}", keyword.position)
        values = expand_foreach_values(self.cur.expect('STRING').value, len(variables))
        body = self._read_loop_body()

        commands: List[Command] = []
        for index, row in enumerate(values, start=1):
            text = body
            for variable, value in zip(variables, row):
                text = _substitute(text, variable, value)
            if count_var:
                text = _substitute(text, count_var, str(index))
            child = Parser(text, env=self.env)
            commands.extend(child.parse().commands)
            for error in child.errors:
                self.errors.append(
                    ParseError(f'in \\foreach body: {error.message}', start.line, start.column, start.position.offset)
                )
        logger.debug("\\foreach over %d value(s) produced %d command(s)", len(values), len(commands))
        return commands

    def _read_loop_body(self) -> str:
        body = self.cur.match('STRING')
        if body is not None:
            self.cur.match('SEMICOLON')
            return body.value
        begin = self.cur.peek().position.offset
        while not self.cur.at('SEMICOLON', 'EOF'):
            self.cur.advance()
        end_tok = self.cur.advance()
        end = end_tok.position.offset + 1 if end_tok.type == 'SEMICOLON' else len(self.source)
        return self.source[begin:end]

    # -- \node and \coordinate --------------------------------------------

    def _command_style(self, options: List[str]) -> Style:
        return parse_options(self.env.inherited_options() + options)

    def _node_options(self, options: List[str]) -> List[str]:
        every = self.expand_styles(self.env.styles.get('every node', []))
        return every + options

    def _outer_transform(self) -> Transform:
        return compose_transformations(parse_options(self.env.inherited_options()).transformations)

    def _parse_node_head(self) -> Tuple[Optional[str], List[str], Optional[CoordinateRef]]:
        name = None
        options: List[str] = []
        at: Optional[CoordinateRef] = None
        while True:
            tok = self.cur.peek()
            if tok.type == 'COORDINATE' and name is None and _is_name(tok.value):
                name = self.cur.advance().value.strip()
            elif tok.type == 'OPTION_START':
                options.extend(self.parse_option_block())
            elif tok.type == 'AT':
                self.cur.advance()
                at = self.coords.resolve(self.cur.expect('COORDINATE').value, update_position=False)
            else:
                return name, options, at

    def _parse_node_command(self) -> Command:
        start = self.cur.advance()
        name, own_options, at = self._parse_node_head()
        text = self.cur.match('STRING')
        options = self._node_options(own_options)
        style = self._command_style(options)
        node_opts = parse_node_options(options, self.env.default_font_size)

        outer = self._outer_transform()
        own_shift = compose_transformations(
            [t for t in parse_options(options).transformations if t.kind in ('shift', 'xshift', 'yshift')]
        )
        center, offset = self._positioning(options)
        positioned = center is not None
        if center is not None:
            position = own_shift.apply(center)
        else:
            base = ORIGIN
            if at is not None:
                base = at.point if at.absolute else outer.apply(at.point)
            position = own_shift.apply(base.add(offset))

        node = self._make_node(name, position, text.value if text else '', style, node_opts, positioned)
        self.finish_statement('\\node')
        return Command(NODE, self._span(start), style, [], {'node': node, 'name': name}, own_options)

    def _make_node(
        self,
        name: Optional[str],
        position: Point,
        text: str,
        style: Style,
        node_opts: NodeOptions,
        positioned: bool = False,
        inline: bool = False,
    ) -> NodeSpec:
        if name:
            width, height = estimate_node_size(text, node_opts)
            center = position
            if not positioned:
                center = position.subtract(anchor_offset(node_opts.anchor, node_opts.shape, width, height))
            self.coords.register_node(name, center, node_opts.shape, width, height)
        return NodeSpec(name, position, text, style, node_opts, positioned=positioned, inline=inline)

    def _positioning(self, options: List[str]) -> Tuple[Optional[Point], Point]:
        """Centre from ``<dir>=of <node>`` options, or an offset from ``<dir>=<dist>``."""
        direction = None
        ref_name = None
        first = second = None
        offset = ORIGIN
        for opt in options:
            key, value = split_option(opt)
            if key not in _DIRECTIONS or not value:
                continue
            match = _OF_RE.match(value.strip())
            if match:
                direction = key
                ref_name = match.group('node').strip()
                if match.group('first'):
                    first = parse_distance(match.group('first'), default_unit='mm')
                if match.group('second'):
                    second = parse_distance(match.group('second'), default_unit='mm')
                continue
            dist = parse_distance(value)
            if dist is None:
                continue
            dx = -dist if 'left' in key else dist if 'right' in key else 0.0
            dy = dist if 'above' in key else -dist if 'below' in key else 0.0
            offset = offset.add(Point(dx, dy))

        if ref_name is None:
            return None, offset
        node = self.coords.nodes.get(ref_name)
        if node is None:
            logger.debug("Positioning reference %r is not a known node", ref_name)
            return None, offset
        vertical = first if first is not None else self.env.node_distance
        horizontal = second if second is not None else vertical
        x, y = node.center.x, node.center.y
        if 'above' in direction:
            y = node.anchors['north'].y + vertical + NODE_HALF_HEIGHT
        elif 'below' in direction:
            y = node.anchors['south'].y - vertical - NODE_HALF_HEIGHT
        if 'left' in direction:
            x = node.anchors['west'].x - horizontal - NODE_HALF_HEIGHT
        elif 'right' in direction:
            x = node.anchors['east'].x + horizontal + NODE_HALF_HEIGHT
        return Point(x, y), ORIGIN

    def _parse_coordinate_command(self) -> Command:
        start = self.cur.advance()
        name, options, at = self._parse_node_head()
        position = ORIGIN
        if at is not None:
            position = at.point if at.absolute else self._outer_transform().apply(at.point)
        if name:
            self.coords.set_named_coordinate(name, position)
        self.finish_statement('\\coordinate')
        return Command(COORDINATE, self._span(start), Style(), [], {'name': name, 'position': position}, options)

    # -- paths --------------------------------------------------------------

    def _parse_path_command(self, kind: str) -> Command:
        start = self.cur.advance()
        options = self.parse_option_block()
        style = self._command_style(options)
        state = _PathState(style, compose_transformations(style.transformations), options)
        self.coords.reset()
        try:
            while not self.cur.at('SEMICOLON', 'EOF'):
                if not self._parse_segment(state):
                    break
        except TikzSyntaxError as exc:
            self.record_error(exc)
            while not self.cur.at('SEMICOLON', 'EOF'):
                self.cur.advance()
        self.finish_statement(start.value)
        return Command(kind, self._span(start), style, state.segments, {}, options)

    def _parse_segment(self, state: _PathState) -> bool:
        tok = self.cur.peek()
        kind = tok.type
        if kind in ('COORDINATE', 'PLUS'):
            ref = self._read_coordinate(state)
            self._move_to(state, ref)
        elif kind == 'LINE_TO':
            self._parse_line_to(state)
        elif kind == 'CURVE_TO':
            self._parse_curve_to(state)
        elif kind == 'TO':
            self._parse_to(state)
        elif kind == 'CIRCLE':
            self._parse_circle(state)
        elif kind == 'ELLIPSE':
            self._parse_ellipse(state)
        elif kind == 'RECTANGLE':
            self._parse_rectangle(state)
        elif kind == 'ARC':
            self._parse_arc(state)
        elif kind == 'GRID':
            self._parse_grid(state)
        elif kind == 'PLOT':
            self._parse_plot(state, connect=False)
        elif kind == 'CYCLE':
            self.cur.advance()
            self._close(state)
        elif kind == 'NODE':
            self._parse_inline_node(state)
        elif kind == 'IDENTIFIER' and tok.value == 'coordinate':
            self._parse_inline_coordinate(state)
        elif kind == 'ERROR' and tok.value in ('-', '|') and self.cur.peek_ahead().type == 'ERROR':
            self._parse_orthogonal(state)
        else:
            return False
        return True

    def _pen(self, state: _PathState) -> Point:
        if state.pen is None:
            return state.transform.apply(self.coords.current_position)
        return state.pen

    def _read_coordinate(self, state: _PathState, update: bool = True) -> CoordinateRef:
        plus = 0
        while self.cur.match('PLUS'):
            plus += 1
        tok = self.cur.expect('COORDINATE')
        ref = self.coords.resolve(tok.value, is_relative=plus > 0, update_position=update and plus != 1)
        if ref.absolute:
            return ref
        return CoordinateRef(state.transform.apply(ref.point), ref.node_name, ref.anchor, True)

    def _move_to(self, state: _PathState, ref: CoordinateRef) -> None:
        state.pen = ref.point
        state.pen_node = ref.node_name
        state.pen_anchor = ref.anchor
        state.start = ref.point

    def _advance_pen(self, state: _PathState, ref: CoordinateRef) -> None:
        state.pen = ref.point
        state.pen_node = ref.node_name
        state.pen_anchor = ref.anchor
        if state.start is None:
            state.start = ref.point

    def _trim(self, node: Optional[str], anchor: Optional[str], point: Point, toward: Point) -> Point:
        if node and anchor is None:
            return self.coords.get_node_boundary_point(node, toward)
        return point

    def _line_to(self, state: _PathState, ref: CoordinateRef, labels: Optional[List[EdgeLabel]] = None) -> Segment:
        frm = self._pen(state)
        if state.start is None:
            state.start = frm
        segment = Segment(LINE_SEGMENT, {
            'from': self._trim(state.pen_node, state.pen_anchor, frm, ref.point),
            'to': self._trim(ref.node_name, ref.anchor, ref.point, frm),
            'from_node': state.pen_node,
            'to_node': ref.node_name,
            'from_anchor': state.pen_anchor,
            'to_anchor': ref.anchor,
            'labels': labels or [],
        })
        state.segments.append(segment)
        self._advance_pen(state, ref)
        return segment

    def _parse_line_to(self, state: _PathState) -> None:
        self.cur.advance()
        self.parse_option_block()
        if self.cur.match('CYCLE'):
            self._close(state)
            return
        if self.cur.at('PLOT'):
            self._parse_plot(state, connect=True)
            return
        labels = []
        while self.cur.at('NODE'):
            labels.append(self._parse_edge_label())
        ref = self._read_coordinate(state)
        self._line_to(state, ref, labels)

    def _parse_orthogonal(self, state: _PathState) -> None:
        first = self.cur.advance().value
        self.cur.advance()
        ref = self._read_coordinate(state)
        frm = self._pen(state)
        if first == '-':
            corner = Point(ref.point.x, frm.y)
        else:
            corner = Point(frm.x, ref.point.y)
        self._line_to(state, CoordinateRef(corner, absolute=True))
        self._line_to(state, ref)

    def _parse_edge_label(self) -> EdgeLabel:
        self.cur.advance()
        name, options, _ = self._parse_node_head()
        text = self.cur.match('STRING')
        return self._edge_label(name, options, text.value if text else '')

    def _edge_label(self, name: Optional[str], own_options: List[str], text: str) -> EdgeLabel:
        options = self._node_options(own_options)
        placement = edge_label_placement(own_options)
        return EdgeLabel(
            text=text,
            style=self._command_style(options),
            options=parse_node_options(options, self.env.default_font_size),
            pos=float(placement['pos']),
            offset=placement['offset'],
            anchor=str(placement['anchor']),
            align=str(placement['align']),
            sloped=bool(placement['sloped']),
            name=name,
        )

    def _parse_curve_to(self, state: _PathState) -> None:
        self.cur.advance()
        self.cur.expect('CONTROLS')
        control1 = self._read_coordinate(state, update=False)
        control2 = control1
        if self.cur.match('AND'):
            control2 = self._read_coordinate(state, update=False)
        self.cur.expect('CURVE_TO')
        end = self._read_coordinate(state)
        self._curve_to(state, control1.point, control2.point, end)

    def _curve_to(
        self,
        state: _PathState,
        c1: Point,
        c2: Point,
        end: CoordinateRef,
        labels: Optional[List[EdgeLabel]] = None,
        extra: Optional[Dict[str, float]] = None,
    ) -> Segment:
        frm = self._pen(state)
        if state.start is None:
            state.start = frm
        data = {
            'from': self._trim(state.pen_node, state.pen_anchor, frm, c1),
            'control1': c1,
            'control2': c2,
            'to': self._trim(end.node_name, end.anchor, end.point, c2),
            'from_node': state.pen_node,
            'to_node': end.node_name,
            'from_anchor': state.pen_anchor,
            'to_anchor': end.anchor,
            'labels': labels or [],
        }
        data.update(extra or {})
        segment = Segment(CURVE_SEGMENT, data)
        state.segments.append(segment)
        self._advance_pen(state, end)
        return segment

    def _parse_to(self, state: _PathState) -> None:
        self.cur.advance()
        options = self.parse_option_block()
        labels = []
        while self.cur.at('NODE'):
            labels.append(self._parse_edge_label())
        end = self._read_coordinate(state)
        frm = self._pen(state)

        out_deg = in_deg = None
        looseness = 1.0
        for opt in options:
            key, value = split_option(opt)
            if key == 'out':
                out_deg = parse_number(value, 0.0)
            elif key == 'in':
                in_deg = parse_number(value, 0.0)
            elif key == 'looseness':
                looseness = parse_number(value, 1.0)
            elif key in ('bend left', 'bend right'):
                bend = parse_number(value, 30.0) if value else 30.0
                if key == 'bend right':
                    bend = -bend
                direction = angle_of(end.point.subtract(frm))
                out_deg = direction + bend
                in_deg = direction + 180.0 - bend

        if out_deg is None or in_deg is None:
            self._line_to(state, end, labels)
            return

        c1, c2 = curve_controls(frm, end.point, out_deg, in_deg, looseness)
        start = self._trim(state.pen_node, state.pen_anchor, frm, c1)
        stop = self._trim(end.node_name, end.anchor, end.point, c2)
        c1, c2 = curve_controls(start, stop, out_deg, in_deg, looseness)
        self._curve_to(state, c1, c2, end, labels, {'out': out_deg, 'in': in_deg, 'looseness': looseness})

    def _radii(self, state: _PathState, rx: float, ry: float, center: Point) -> Segment:
        factor = self.coords.factor
        rx, ry, rotation = state.transform.axis_radii(rx * factor, ry * factor)
        if abs(rx - ry) < 1e-9:
            return Segment(CIRCLE, {'center': center, 'radius': rx})
        return Segment(ELLIPSE, {'center': center, 'rx': rx, 'ry': ry, 'rotation': rotation})

    def _parse_circle(self, state: _PathState) -> None:
        self.cur.advance()
        rx = ry = 1.0
        for opt in self.parse_option_block():
            key, value = split_option(opt)
            if key == 'radius':
                rx = ry = _length(value, 1.0)
            elif key == 'x radius':
                rx = _length(value, rx)
            elif key == 'y radius':
                ry = _length(value, ry)
        if self.cur.at('COORDINATE'):
            text = self.cur.advance().value
            parts = re.split(r'\s+and\s+', text)
            if len(parts) == 2:
                rx, ry = _length(parts[0], rx), _length(parts[1], ry)
            else:
                rx = ry = _length(text, rx)
        state.segments.append(self._radii(state, rx, ry, self._pen(state)))

    def _parse_ellipse(self, state: _PathState) -> None:
        self.cur.advance()
        rx, ry = 1.0, 0.5
        for opt in self.parse_option_block():
            key, value = split_option(opt)
            if key == 'x radius':
                rx = _length(value, rx)
            elif key == 'y radius':
                ry = _length(value, ry)
        if self.cur.at('COORDINATE'):
            parts = re.split(r'\s+and\s+', self.cur.advance().value)
            if len(parts) == 2:
                rx, ry = _length(parts[0], rx), _length(parts[1], ry)
        state.segments.append(self._radii(state, rx, ry, self._pen(state)))

    def _parse_rectangle(self, state: _PathState) -> None:
        self.cur.advance()
        frm = self._pen(state)
        corner = self._read_coordinate(state)
        data = {'from': frm, 'to': corner.point}
        matrix = state.transform.matrix
        rotated = abs(matrix[0][1]) > 1e-9 or abs(matrix[1][0]) > 1e-9
        if rotated and state.transform.uniform_scale() > 1e-12:
            inverse = state.transform.inverse()
            a = inverse.apply(frm)
            b = inverse.apply(corner.point)
            data['corners'] = state.transform.apply_all(
                [Point(a.x, a.y), Point(b.x, a.y), Point(b.x, b.y), Point(a.x, b.y)]
            )
        state.segments.append(Segment(RECTANGLE, data))
        self._advance_pen(state, corner)

    def _parse_arc(self, state: _PathState) -> None:
        self.cur.advance()
        start_angle, end_angle = 0.0, 90.0
        rx = ry = 1.0
        delta = None
        for opt in self.parse_option_block():
            key, value = split_option(opt)
            if key == 'start angle':
                start_angle = parse_number(value, start_angle)
            elif key == 'end angle':
                end_angle = parse_number(value, end_angle)
            elif key == 'delta angle':
                delta = parse_number(value, 90.0)
            elif key == 'radius':
                rx = ry = _length(value, 1.0)
            elif key == 'x radius':
                rx = _length(value, rx)
            elif key == 'y radius':
                ry = _length(value, ry)
        if delta is not None:
            end_angle = start_angle + delta
        if self.cur.at('COORDINATE'):
            parts = self.cur.advance().value.split(':')
            if len(parts) == 3:
                start_angle = parse_number(parts[0], start_angle)
                end_angle = parse_number(parts[1], end_angle)
                radii = re.split(r'\s+and\s+', parts[2])
                if len(radii) == 2:
                    rx, ry = _length(radii[0], rx), _length(radii[1], ry)
                else:
                    rx = ry = _length(parts[2], rx)

        factor = self.coords.factor
        rx, ry = rx * factor, ry * factor
        cursor = self.coords.current_position
        s, e = math.radians(start_angle), math.radians(end_angle)
        center = Point(cursor.x - rx * math.cos(s), cursor.y - ry * math.sin(s))
        end = Point(center.x + rx * math.cos(e), center.y + ry * math.sin(e))
        m = (s + e) / 2.0
        mid = Point(center.x + rx * math.cos(m), center.y + ry * math.sin(m))

        transform = state.transform
        t_rx, t_ry, rotation = transform.axis_radii(rx, ry)
        mirrored = float(transform.matrix[0][0] * transform.matrix[1][1] - transform.matrix[0][1] * transform.matrix[1][0]) < 0
        frm = self._pen(state)
        if state.start is None:
            state.start = frm
        state.segments.append(Segment(ARC_SEGMENT, {
            'start': frm,
            'end': transform.apply(end),
            'mid': transform.apply(mid),
            'center': transform.apply(center),
            'rx': t_rx,
            'ry': t_ry,
            'rotation': rotation,
            'start_angle': start_angle,
            'end_angle': end_angle,
            'ccw': (end_angle > start_angle) != mirrored,
        }))
        self.coords.current_position = end
        state.pen = transform.apply(end)
        state.pen_node = state.pen_anchor = None

    def _parse_grid(self, state: _PathState) -> None:
        self.cur.advance()
        xstep = ystep = 1.0
        for opt in state.options + self.parse_option_block():
            key, value = split_option(opt)
            if key == 'step':
                xstep = ystep = _length(value, 1.0)
            elif key == 'xstep':
                xstep = _length(value, xstep)
            elif key == 'ystep':
                ystep = _length(value, ystep)
        frm = self._pen(state)
        corner = self._read_coordinate(state)
        scale = self.coords.factor * state.transform.uniform_scale()
        state.segments.append(Segment(GRID, {
            'from': frm,
            'to': corner.point,
            'xstep': xstep * scale,
            'ystep': ystep * scale,
        }))
        self._advance_pen(state, corner)

    def _parse_plot(self, state: _PathState, connect: bool) -> None:
        self.cur.advance()
        local = self.parse_option_block()
        options = state.options + local
        domain = DEFAULT_DOMAIN
        samples = DEFAULT_SAMPLES
        variable = '\\x'
        for opt in options:
            key, value = split_option(opt)
            if key == 'domain':
                domain = parse_domain(value) or domain
            elif key == 'samples':
                samples = max(2, int(parse_number(value, DEFAULT_SAMPLES)))
            elif key == 'variable' and value:
                variable = value.strip()

        raw: List[Point] = []
        expression = None
        if self.cur.at('IDENTIFIER') and self.cur.peek().value == 'coordinates':
            self.cur.advance()
            body = self.cur.expect('STRING').value
            for text in _COORD_LIST_RE.findall(body):
                raw.append(self.coords.resolve(text, update_position=False).point)
        else:
            spec = self.cur.expect('COORDINATE')
            parts = split_top_level(spec.value)
            if len(parts) != 2:
                raise TikzSyntaxError(f'cannot read plot specification ({spec.value})', spec.position)
            x_expr, y_expr = (strip_braces(p) or '' for p in parts)
            if x_expr.startswith('\\') and re.fullmatch(r'\\[A-Za-z]+', x_expr):
                variable = x_expr
            expression = y_expr
            factor = self.coords.factor
            for t in sample_domain(domain[0], domain[1], samples):
                x = t if x_expr == variable else evaluate_expression(x_expr, variable, t)
                y = evaluate_expression(y_expr, variable, t)
                raw.append(Point(x * factor, y * factor))

        points = state.transform.apply_all(raw)
        if not points:
            return
        if not connect:
            state.start = points[0]
        elif state.start is None:
            state.start = self._pen(state)
        state.segments.append(Segment(PLOT_SEGMENT, {
            'from': self._pen(state),
            'points': points,
            'domain': domain,
            'samples': samples,
            'expression': expression,
            'connect': connect,
            'smooth': any(split_option(o)[0] == 'smooth' for o in local),
        }))
        self.coords.current_position = raw[-1]
        state.pen = points[-1]
        state.pen_node = state.pen_anchor = None

    def _close(self, state: _PathState) -> None:
        frm = self._pen(state)
        target = state.start if state.start is not None else frm
        state.segments.append(Segment(CYCLE, {'from': frm, 'to': target}))
        state.pen = target
        state.pen_node = state.pen_anchor = None

    def _parse_inline_node(self, state: _PathState) -> None:
        self.cur.advance()
        name, own_options, at = self._parse_node_head()
        text_tok = self.cur.match('STRING')
        text = text_tok.value if text_tok else ''

        previous = state.segments[-1] if state.segments else None
        if (
            previous is not None
            and previous.kind in (LINE_SEGMENT, CURVE_SEGMENT)
            and at is None
            and _is_label_placement(own_options)
        ):
            previous.data.setdefault('labels', []).append(self._edge_label(name, own_options, text))
            return

        options = self._node_options(own_options)
        style = parse_options(options, state.style)
        node_opts = parse_node_options(options, self.env.default_font_size)
        position = self._pen(state)
        if at is not None:
            position = at.point if at.absolute else state.transform.apply(at.point)
        _, offset = self._positioning(options)
        node = self._make_node(name, position.add(offset), text, style, node_opts, inline=True)
        state.segments.append(Segment(NODE_SEGMENT, {'node': node, 'at': node.position}))

    def _parse_inline_coordinate(self, state: _PathState) -> None:
        self.cur.advance()
        name, _, _ = self._parse_node_head()
        if name:
            self.coords.set_named_coordinate(name, self._pen(state))


def format_error(error: ParseError, source: str) -> str:
    """Error message followed by the offending source line and a caret."""
    lines = source.splitlines()
    message = str(error)
    if not 0 < error.line <= len(lines):
        return message
    line_text = lines[error.line - 1]
    caret_line = ' ' * (max(error.column, 1) - 1) + '^'
    return f"{message}\n    {line_text.rstrip()}\n    {caret_line}"


@debug_log_call(logger)
def parse(source: str, env: Optional[CoordinateEnvironment] = None) -> ParseResult:
    parser = Parser(source, env)
    document = parser.parse()
    logger.info("Parsed %d command(s) with %d error(s)", len(document.commands), len(parser.errors))
    return ParseResult(document, parser.errors, parser.env)

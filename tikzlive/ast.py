from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .geometry import Point
from .styles import NodeOptions, Style

DRAW = 'DRAW'
FILL = 'FILL'
FILLDRAW = 'FILLDRAW'
PATH = 'PATH'
NODE = 'NODE'
COORDINATE = 'COORDINATE'
AXIS = 'AXIS'

PATH_KINDS = (DRAW, FILL, FILLDRAW, PATH)

LINE_SEGMENT = 'LINE_SEGMENT'
CURVE_SEGMENT = 'CURVE_SEGMENT'
ARC_SEGMENT = 'ARC_SEGMENT'
CIRCLE = 'CIRCLE'
ELLIPSE = 'ELLIPSE'
RECTANGLE = 'RECTANGLE'
GRID = 'GRID'
PLOT_SEGMENT = 'PLOT_SEGMENT'
CYCLE = 'CYCLE'
NODE_SEGMENT = 'NODE'


@dataclass
class Span:
    line: int
    col: int


@dataclass
class NodeSpec:
    """A placed node: top-level ``\\node`` or inline ``node`` on a path."""

    name: Optional[str]
    position: Point
    text: str
    style: Style
    options: NodeOptions
    # centre already computed by ``of`` positioning, anchor must not shift it
    positioned: bool = False
    inline: bool = False


@dataclass
class EdgeLabel:
    text: str
    style: Style
    options: NodeOptions
    pos: float = 0.5
    offset: Point = field(default_factory=lambda: Point(0.0, 0.0))
    anchor: str = 'center'
    align: str = 'center'
    sloped: bool = False
    name: Optional[str] = None


@dataclass
class Segment:
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass
class Command:
    kind: str
    span: Span
    style: Style = field(default_factory=Style)
    segments: List[Segment] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    options: List[str] = field(default_factory=list)


@dataclass
class Document:
    commands: List[Command] = field(default_factory=list)

    def named_nodes(self) -> List[NodeSpec]:
        """Every node carrying a name, in document order."""
        found: List[NodeSpec] = []
        for node in self.iter_nodes():
            if node.name:
                found.append(node)
        return found

    def iter_nodes(self):
        for cmd in self.commands:
            if cmd.kind == NODE and 'node' in cmd.data:
                yield cmd.data['node']
            for seg in cmd.segments:
                if seg.kind == NODE_SEGMENT:
                    yield seg.data['node']


@dataclass
class ParseError:
    message: str
    line: int
    column: int
    offset: int = 0

    def __str__(self) -> str:
        return f'[line {self.line}, col {self.column}] {self.message}'

"""Node text: line splitting, inline math detection and text measurement.

Two measurers share one interface. :class:`PillowTextMeasurer` asks Pillow
for real font metrics and is what the renderer uses by default;
:class:`TableTextMeasurer` is a fixed per-character width table so layouts
are reproducible on machines without fonts.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import ImageFont

from .mathtext import append_math, math_runs
from .styles import FONT_SIZES
from .svg import sub

logger = logging.getLogger(__name__)

DEFAULT_FONT_SIZE = 14

_TABULAR_RE = re.compile(r"\\begin\{tabular\}\{[^}]*\}(.*?)\\end\{tabular\}", re.S)
_LINE_BREAK_RE = re.compile(r"\\\\(?:\[[^\]]*\])?")
_FONT_CMD_RE = re.compile(r"\\(tiny|scriptsize|footnotesize|small|normalsize|large|Large|LARGE|huge|Huge)\b\s*")
_WRAPPER_RE = re.compile(r"\\(textbf|textit|emph|textrm|textsf|texttt|mbox)\{([^{}]*)\}")
_SWITCH_RE = re.compile(r"\\(bfseries|itshape|centering|raggedright|raggedleft|hline|noindent)\b\s*")
_MATH_RE = re.compile(r"\$([^$]+)\$")


@dataclass
class TextLine:
    content: str
    font_size: float
    bold: bool = False
    italic: bool = False


def parse_node_text(
    text: str, default_font_size: Optional[float] = None, font_scale: float = 1.0
) -> List[TextLine]:
    """Split node text into lines.

    ``\\\\`` breaks lines, a ``tabular`` body contributes one line per row
    with ``&`` cells joined by spaces, and a font-size switch sets the size
    of the line it appears on. Empty lines are dropped.
    """
    if not text:
        return []
    body = text
    match = _TABULAR_RE.search(body)
    if match:
        body = match.group(1).strip().replace("&", "  ")

    lines: List[TextLine] = []
    for raw in _LINE_BREAK_RE.split(body):
        content = raw.strip()
        size = float(default_font_size or DEFAULT_FONT_SIZE)
        font = _FONT_CMD_RE.search(content)
        if font:
            size = float(FONT_SIZES["\\" + font.group(1)])
            content = _FONT_CMD_RE.sub("", content)
        bold = "\\textbf" in content or "\\bfseries" in content
        italic = "\\textit" in content or "\\emph" in content or "\\itshape" in content
        content = _WRAPPER_RE.sub(lambda m: m.group(2), content)
        content = _SWITCH_RE.sub("", content)
        content = " ".join(content.replace("{", "").replace("}", "").split()) if "$" not in content else content.strip()
        if content:
            lines.append(TextLine(content, size * font_scale, bold, italic))
    return lines


def split_math(content: str) -> List[Tuple[str, bool]]:
    """``'a $x^2$ b'`` -> ``[('a ', False), ('x^2', True), (' b', False)]``."""
    parts: List[Tuple[str, bool]] = []
    last = 0
    for match in _MATH_RE.finditer(content):
        if match.start() > last:
            parts.append((content[last:match.start()], False))
        parts.append((match.group(1), True))
        last = match.end()
    if last < len(content):
        parts.append((content[last:], False))
    return parts


def text_runs(content: str) -> List[Tuple[str, float]]:
    """Visible text of a line as ``(text, relative size)`` runs."""
    runs: List[Tuple[str, float]] = []
    for chunk, is_math in split_math(content):
        if is_math:
            runs.extend(math_runs(chunk))
        else:
            runs.append((chunk, 1.0))
    return runs


def append_rich_text(parent: ET.Element, content: str) -> None:
    """Append ``content`` to a text element as tspans, typesetting ``$...$``."""
    for chunk, is_math in split_math(content):
        if is_math:
            append_math(parent, chunk)
        else:
            sub(parent, "tspan", chunk)


class TextMeasurer:
    """Pixel extents of text lines; subclasses supply the glyph metrics."""

    def text_width(self, text: str, size: float, family: str = "serif", bold: bool = False) -> float:
        raise NotImplementedError

    def box_height(self, size: float, family: str = "serif") -> float:
        raise NotImplementedError

    def measure_line(self, line: TextLine, family: str = "serif") -> float:
        return sum(
            self.text_width(run, line.font_size * scale, family, line.bold)
            for run, scale in text_runs(line.content)
        )

    def measure_lines(
        self, lines: Sequence[TextLine], family: str = "serif", line_height: Optional[float] = None
    ) -> Tuple[float, float]:
        """Width and height of a block of lines, in pixels."""
        if not lines:
            return 0.0, 0.0
        width = max(self.measure_line(line, family) for line in lines)
        tallest = max(self.box_height(line.font_size, family) for line in lines)
        if line_height is None:
            line_height = tallest
        return width, (len(lines) - 1) * line_height + tallest


def measure_block(
    measurer: TextMeasurer,
    lines: Sequence[TextLine],
    family: str = "serif",
    line_height: Optional[float] = None,
) -> Tuple[float, float]:
    """``measurer.measure_lines`` that yields a zero box when measuring fails."""
    try:
        return measurer.measure_lines(lines, family, line_height)
    except Exception as exc:
        logger.debug("Text measurement failed for %r: %s", [line.content for line in lines], exc)
        return 0.0, 0.0


GENERIC_FONT_FALLBACKS: Dict[str, List[str]] = {
    "serif": ["Times New Roman", "Times", "Liberation Serif", "DejaVu Serif"],
    "sans-serif": ["Helvetica", "Arial", "Liberation Sans", "DejaVu Sans"],
    "monospace": ["Courier New", "Courier", "Liberation Mono", "DejaVu Sans Mono"],
}


def _normalize_font_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


class PillowTextMeasurer(TextMeasurer):
    """Caches Pillow fonts and measures with their advance widths."""

    FONT_DIRS = [
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/Library/Fonts"),
        Path("~/Library/Fonts").expanduser(),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    def __init__(self) -> None:
        self._font_cache: Dict[Tuple[str, int, bool], ImageFont.ImageFont] = {}
        self._font_paths: Dict[str, Optional[str]] = {}

    def font(self, size: float, family: str = "serif", bold: bool = False):
        key_size = max(1, int(round(size)))
        cache_key = (family.lower(), key_size, bold)
        if cache_key in self._font_cache:
            return self._font_cache[cache_key]

        candidates: List[str] = []
        for name in GENERIC_FONT_FALLBACKS.get(family.lower(), [family]):
            resolved = self._locate_font(name + " Bold" if bold else name) or self._locate_font(name)
            if resolved:
                candidates.append(resolved)
        candidates.append("DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf")

        font = None
        for candidate in candidates:
            try:
                font = ImageFont.truetype(candidate, key_size)
                break
            except OSError:
                continue
        if font is None:
            logger.debug("No TrueType font for %r, using Pillow's default", family)
            font = ImageFont.load_default()
        self._font_cache[cache_key] = font
        return font

    def _locate_font(self, name: str) -> Optional[str]:
        key = _normalize_font_name(name)
        if key in self._font_paths:
            return self._font_paths[key]
        found = None
        for directory in self.FONT_DIRS:
            if not directory.is_dir():
                continue
            for path in directory.rglob("*.tt[fc]"):
                if _normalize_font_name(path.stem) == key:
                    found = str(path)
                    break
            if found:
                break
        self._font_paths[key] = found
        return found

    def text_width(self, text: str, size: float, family: str = "serif", bold: bool = False) -> float:
        return float(self.font(size, family, bold).getlength(text))

    def box_height(self, size: float, family: str = "serif") -> float:
        font = self.font(size, family)
        try:
            ascent, descent = font.getmetrics()
        except AttributeError:
            ascent, descent = size * 0.8, size * 0.2
        return float(ascent + descent)


_NARROW = set("il.,;:'|!")
_WIDE = set("mwMW")


class TableTextMeasurer(TextMeasurer):
    """Deterministic widths from a small per-character table."""

    def char_width(self, ch: str) -> float:
        if ch in _NARROW:
            return 0.28
        if ch in _WIDE:
            return 0.85
        if ch == " ":
            return 0.3
        if ch.isdigit():
            return 0.55
        if ch.isupper():
            return 0.7
        return 0.5

    def text_width(self, text: str, size: float, family: str = "serif", bold: bool = False) -> float:
        width = sum(self.char_width(ch) for ch in text) * size
        return width * 1.05 if bold else width

    def box_height(self, size: float, family: str = "serif") -> float:
        return size * 1.2

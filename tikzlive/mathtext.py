"""Inline ``$...$`` math to nested SVG ``<tspan>`` runs.

A small recursive-descent reader covers sub/superscripts, ``{}`` groups,
``\\mathrm``/``\\mathcal``/``\\mathbf``/``\\text``, ``\\sqrt``, ``\\frac``
and a fixed symbol table. It is a textual approximation: scripts shrink
to 70% and shift the baseline, ``\\sqrt`` is a radical sign followed by an
overlined group, ``\\frac`` is a raised numerator, a fraction slash and a
lowered denominator. Unknown commands are kept as their literal text.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .svg import sub

SCRIPT_SCALE = 0.7

SYMBOLS = {
    "alpha": "α", "beta": "β", "gamma": "γ", "delta": "δ", "epsilon": "ε",
    "varepsilon": "ε", "zeta": "ζ", "eta": "η", "theta": "θ", "vartheta": "ϑ",
    "iota": "ι", "kappa": "κ", "lambda": "λ", "mu": "μ", "nu": "ν", "xi": "ξ",
    "pi": "π", "varpi": "ϖ", "rho": "ρ", "sigma": "σ", "tau": "τ",
    "upsilon": "υ", "phi": "φ", "varphi": "φ", "chi": "χ", "psi": "ψ",
    "omega": "ω",
    "Gamma": "Γ", "Delta": "Δ", "Theta": "Θ", "Lambda": "Λ", "Xi": "Ξ",
    "Pi": "Π", "Sigma": "Σ", "Upsilon": "Υ", "Phi": "Φ", "Psi": "Ψ",
    "Omega": "Ω",
    "times": "×", "cdot": "·", "pm": "±", "mp": "∓", "div": "÷",
    "leq": "≤", "le": "≤", "geq": "≥", "ge": "≥", "neq": "≠", "ne": "≠",
    "approx": "≈", "equiv": "≡", "sim": "∼", "propto": "∝",
    "infty": "∞", "partial": "∂", "nabla": "∇", "sum": "∑", "prod": "∏",
    "int": "∫", "oint": "∮",
    "in": "∈", "notin": "∉", "subset": "⊂", "subseteq": "⊆", "cup": "∪",
    "cap": "∩", "emptyset": "∅", "forall": "∀", "exists": "∃", "neg": "¬",
    "land": "∧", "lor": "∨",
    "to": "→", "rightarrow": "→", "leftarrow": "←", "leftrightarrow": "↔",
    "Rightarrow": "⇒", "Leftarrow": "⇐", "Leftrightarrow": "⇔", "mapsto": "↦",
    "ldots": "…", "cdots": "⋯", "dots": "…", "circ": "∘", "bullet": "•",
    "prime": "′", "star": "⋆", "ast": "∗", "angle": "∠", "perp": "⊥",
    "parallel": "∥", "hbar": "ℏ", "ell": "ℓ",
    "langle": "⟨", "rangle": "⟩", "lbrace": "{", "rbrace": "}",
    "{": "{", "}": "}", "$": "$", "%": "%", "&": "&", "#": "#", "_": "_",
}

SPACING = {
    ",": " ",
    ":": " ",
    ";": " ",
    "!": "",
    " ": " ",
    "quad": " ",
    "qquad": "  ",
}

CALLIGRAPHIC = {
    "A": "𝒜", "B": "ℬ", "C": "𝒞", "D": "𝒟", "E": "ℰ", "F": "ℱ", "G": "𝒢",
    "H": "ℋ", "I": "ℐ", "J": "𝒥", "K": "𝒦", "L": "ℒ", "M": "ℳ", "N": "𝒩",
    "O": "𝒪", "P": "𝒫", "Q": "𝒬", "R": "ℛ", "S": "𝒮", "T": "𝒯", "U": "𝒰",
    "V": "𝒱", "W": "𝒲", "X": "𝒳", "Y": "𝒴", "Z": "𝒵",
}

_UPRIGHT = ("mathrm", "text", "textrm", "operatorname", "mbox")
_IGNORED = ("left", "right", "big", "Big", "displaystyle", "limits")


@dataclass
class MathSpan:
    text: str = ""
    italic: bool = False
    shift: Optional[str] = None
    scale: float = 1.0
    weight: Optional[str] = None
    decoration: Optional[str] = None
    children: List["MathSpan"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


def _set_upright(spans: List[MathSpan]) -> None:
    for span in spans:
        span.italic = False
        _set_upright(span.children)


def _flatten_text(spans: List[MathSpan]) -> str:
    return "".join(span.text + _flatten_text(span.children) for span in spans)


class _MathParser:
    def __init__(self, text: str):
        self.text = text
        self.i = 0

    def parse(self) -> List[MathSpan]:
        return self.sequence(stop=False)

    def sequence(self, stop: bool) -> List[MathSpan]:
        spans: List[MathSpan] = []
        n = len(self.text)
        while self.i < n:
            ch = self.text[self.i]
            if ch == "}":
                self.i += 1
                if stop:
                    return spans
                continue
            if ch in "_^":
                self.i += 1
                shift = "sub" if ch == "_" else "super"
                spans.append(MathSpan(shift=shift, scale=SCRIPT_SCALE, children=self.argument()))
            elif ch == "{":
                self.i += 1
                spans.extend(self.sequence(stop=True))
            elif ch == "\\":
                spans.extend(self.command())
            else:
                self.i += 1
                spans.append(MathSpan(ch, italic=ch.isalpha()))
        return spans

    def argument(self) -> List[MathSpan]:
        n = len(self.text)
        while self.i < n and self.text[self.i] == " ":
            self.i += 1
        if self.i >= n:
            return []
        ch = self.text[self.i]
        if ch == "{":
            self.i += 1
            return self.sequence(stop=True)
        if ch == "\\":
            return self.command()
        self.i += 1
        return [MathSpan(ch, italic=ch.isalpha())]

    def _read_name(self) -> str:
        start = self.i
        while self.i < len(self.text) and self.text[self.i].isalpha():
            self.i += 1
        if self.i == start and self.i < len(self.text):
            self.i += 1
        return self.text[start:self.i]

    def command(self) -> List[MathSpan]:
        self.i += 1
        name = self._read_name()
        if not name:
            return [MathSpan("\\")]
        if name in _UPRIGHT:
            arg = self.argument()
            _set_upright(arg)
            return [MathSpan(children=arg)]
        if name == "mathbf":
            arg = self.argument()
            _set_upright(arg)
            return [MathSpan(weight="bold", children=arg)]
        if name == "mathit":
            return [MathSpan(italic=True, children=self.argument())]
        if name == "mathcal":
            raw = _flatten_text(self.argument())
            return [MathSpan("".join(CALLIGRAPHIC.get(c, c) for c in raw))]
        if name == "sqrt":
            return [MathSpan("√"), MathSpan(decoration="overline", children=self.argument())]
        if name in ("frac", "dfrac", "tfrac"):
            numerator = self.argument()
            denominator = self.argument()
            return [
                MathSpan(shift="super", scale=SCRIPT_SCALE, children=numerator),
                MathSpan("⁄"),
                MathSpan(shift="sub", scale=SCRIPT_SCALE, children=denominator),
            ]
        if name in SPACING:
            return [MathSpan(SPACING[name])] if SPACING[name] else []
        if name in SYMBOLS:
            return [MathSpan(SYMBOLS[name])]
        if name in _IGNORED:
            return []
        return [MathSpan("\\" + name)]


def _merge(spans: List[MathSpan]) -> List[MathSpan]:
    merged: List[MathSpan] = []
    for span in spans:
        if span.children:
            span.children = _merge(span.children)
        prev = merged[-1] if merged else None
        if (
            prev is not None
            and prev.is_leaf
            and span.is_leaf
            and (prev.italic, prev.shift, prev.weight, prev.decoration) == (span.italic, span.shift, span.weight, span.decoration)
            and prev.scale == span.scale
        ):
            prev.text += span.text
        else:
            merged.append(span)
    return merged


def typeset_math(text: str) -> List[MathSpan]:
    """Parse the body of ``$...$`` into a span tree."""
    return _merge(_MathParser(text).parse())


def _emit(parent: ET.Element, span: MathSpan) -> None:
    attrs = {}
    if span.shift is not None:
        attrs["baseline_shift"] = span.shift
    if span.scale != 1.0:
        attrs["font_size"] = f"{int(round(span.scale * 100))}%"
    attrs["font_style"] = "italic" if span.italic else None
    if span.weight:
        attrs["font_weight"] = span.weight
    if span.decoration:
        attrs["text_decoration"] = span.decoration
    elem = sub(parent, "tspan", span.text or None, **attrs)
    for child in span.children:
        _emit(elem, child)


def append_math(parent: ET.Element, text: str) -> None:
    for span in typeset_math(text):
        _emit(parent, span)


def math_runs(text: str) -> List[Tuple[str, float]]:
    """Flatten to ``(text, relative size)`` pairs for measurement."""
    runs: List[Tuple[str, float]] = []

    def walk(spans: List[MathSpan], scale: float) -> None:
        for span in spans:
            size = scale * span.scale
            if span.text:
                runs.append((span.text, size))
            walk(span.children, size)

    walk(typeset_math(text), 1.0)
    return runs

"""Small ElementTree helpers for building SVG drawing trees."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Optional

SVG_NS = "http://www.w3.org/2000/svg"

ET.register_namespace("", SVG_NS)


def q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def fmt(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def _attr_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return fmt(float(value))
    return str(value)


def _set_attrs(elem: ET.Element, attrs: dict) -> None:
    for key, value in attrs.items():
        if value is None:
            continue
        elem.set(key.replace("_", "-"), _attr_value(value))


def element(tag: str, text: Optional[str] = None, **attrs: Any) -> ET.Element:
    """Create ``<tag>``; ``None`` attributes are dropped, ``_`` becomes ``-``."""
    elem = ET.Element(q(tag))
    _set_attrs(elem, attrs)
    if text is not None:
        elem.text = text
    return elem


def sub(parent: ET.Element, tag: str, text: Optional[str] = None, **attrs: Any) -> ET.Element:
    elem = ET.SubElement(parent, q(tag))
    _set_attrs(elem, attrs)
    if text is not None:
        elem.text = text
    return elem


def to_svg_string(root: ET.Element) -> str:
    return ET.tostring(root, encoding="unicode")

"""Render configuration."""

from __future__ import annotations

import copy
from dataclasses import dataclass


@dataclass
class RenderOptions:
    """Configuration knobs for the SVG renderer."""

    scale: float = 50.0  # px per cm
    padding: float = 20.0  # px around the drawing
    background: str = "#ffffff"
    default_stroke: str = "#000000"
    font_family: str = "serif"
    base_scale: float = 50.0  # scale at which font sizes are taken literally
    margin: float = 0.5  # cm added to the content bounds

    @property
    def font_scale(self) -> float:
        return self.scale / self.base_scale if self.base_scale else 1.0


_DEFAULT_OPTIONS = RenderOptions()


def get_default_render_options() -> RenderOptions:
    return copy.deepcopy(_DEFAULT_OPTIONS)


def set_default_render_options(options: RenderOptions) -> None:
    """Replace the options used when ``render`` is called without any."""
    global _DEFAULT_OPTIONS
    _DEFAULT_OPTIONS = copy.deepcopy(options)

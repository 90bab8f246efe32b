"""
Configuration objects.

``LayoutConfig`` and ``ChromePalette`` are read from the chrome CSS theme;
``PlaybackSettings`` holds the user-facing timing options and clamps them to
the supported ranges.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any

from .css_utils import CSSParser, RGB
from .theme_loader import validate_theme

logger = logging.getLogger(__name__)

DEFAULT_MIN_EXPORT_HEIGHT = 1080
DEFAULT_CHROME_THEME = "dark"


def _chrome_css(variant: str) -> CSSParser:
    # Only dark and light chrome themes ship; unknown variants use dark.
    if not validate_theme(variant):
        logger.warning(f"No chrome theme '{variant}', using '{DEFAULT_CHROME_THEME}'")
        variant = DEFAULT_CHROME_THEME
    return CSSParser(variant)


@dataclass(frozen=True)
class LayoutConfig:
    canvas_width: int = 1920
    canvas_height: int = DEFAULT_MIN_EXPORT_HEIGHT
    line_height: int = 40
    padding_x: int = 64
    padding_y: int = 48
    font_size: int = 28
    gutter_gap: int = 32
    start_line: int = 1
    show_line_numbers: bool = False
    min_export_height: int = DEFAULT_MIN_EXPORT_HEIGHT

    @classmethod
    def from_theme(cls, variant: str = "dark") -> "LayoutConfig":
        css = _chrome_css(variant)
        return cls(
            canvas_width=css.get_px_value("canvas-width"),
            canvas_height=css.get_px_value("min-export-height"),
            line_height=css.get_px_value("line-height"),
            padding_x=css.get_px_value("padding-x"),
            padding_y=css.get_px_value("padding-y"),
            font_size=css.get_px_value("font-size"),
            gutter_gap=css.get_px_value("gutter-gap"),
            min_export_height=css.get_px_value("min-export-height"),
        )

    def for_step(self, *, show_line_numbers: bool, start_line: int) -> "LayoutConfig":
        return replace(self, show_line_numbers=show_line_numbers, start_line=max(1, int(start_line)))


@dataclass(frozen=True)
class ChromePalette:
    """Colours that do not come from the syntax theme."""
    gutter_color: RGB
    fallback_foreground: RGB
    fallback_background: RGB

    @classmethod
    def from_theme(cls, variant: str = "dark") -> "ChromePalette":
        css = _chrome_css(variant)
        return cls(
            gutter_color=css.get_color("gutter-color"),
            fallback_foreground=css.get_color("fallback-foreground"),
            fallback_background=css.get_color("fallback-background"),
        )


def _clamp(value: Any, low: int, high: int, default: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(max(low, min(high, number)))


@dataclass(frozen=True)
class PlaybackSettings:
    """
    Timing options for preview and export.

    Out-of-range values are clamped, unusable ones fall back to the default,
    mirroring what the numeric inputs of the editor allow.
    """
    fps: int = 30
    transition_ms: int = 800
    start_hold_ms: int = 250
    between_hold_ms: int = 120
    end_hold_ms: int = 250
    force_line_numbers: bool = False

    FPS_RANGE = (10, 60)
    TRANSITION_RANGE = (100, 5000)
    HOLD_RANGE = (0, 2000)

    def __post_init__(self):
        object.__setattr__(self, "fps", _clamp(self.fps, *self.FPS_RANGE, 30))
        object.__setattr__(self, "transition_ms", _clamp(self.transition_ms, *self.TRANSITION_RANGE, 800))
        object.__setattr__(self, "start_hold_ms", _clamp(self.start_hold_ms, *self.HOLD_RANGE, 250))
        object.__setattr__(self, "between_hold_ms", _clamp(self.between_hold_ms, *self.HOLD_RANGE, 120))
        object.__setattr__(self, "end_hold_ms", _clamp(self.end_hold_ms, *self.HOLD_RANGE, 250))
        object.__setattr__(self, "force_line_numbers", bool(self.force_line_numbers))

    def with_changes(self, **changes: Any) -> "PlaybackSettings":
        return replace(self, **changes)

#!/usr/bin/env python3
"""Layout engine: measures highlighted tokens and places them on the canvas."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from PIL import ImageFont

from .css_utils import RGB
from .errors import LayoutError
from .models import Layout, PositionedToken, StepLayout, TokenLine
from .settings import DEFAULT_MIN_EXPORT_HEIGHT, ChromePalette, LayoutConfig

logger = logging.getLogger(__name__)

MONOSPACE_FONTS = [
    "DejaVuSansMono.ttf",
    "LiberationMono-Regular.ttf",
    "Menlo.ttc",
    "Consolas.ttf",
    "consola.ttf",
    "cour.ttf",
]


class FontCache:
    """Cache for loaded fonts to avoid repeated FreeType initialisation."""

    def __init__(self, debug: bool = False):
        self.cache: Dict[Tuple[Optional[str], int], ImageFont.ImageFont] = {}
        self.debug = debug

    def get_font(self, font_size: int, font_path: Optional[str] = None):
        key = (font_path, font_size)
        if key in self.cache:
            return self.cache[key]
        font = load_font(font_size, font_path)
        self.cache[key] = font
        if self.debug:
            logger.debug(f"🔤 Loaded font {font_path or 'monospace'} at {font_size}px")
        return font


_font_cache = FontCache()


def load_font(font_size: int, font_path: Optional[str] = None):
    """
    Load a monospace font for measuring and drawing tokens.

    Tries ``font_path`` (when given), then a list of common monospace fonts,
    then Pillow's bundled scalable font.

    Raises:
        LayoutError: If no font can be created at all
    """
    candidates: List[str] = [font_path] if font_path else []
    candidates.extend(MONOSPACE_FONTS)
    for candidate in candidates:
        try:
            return ImageFont.truetype(candidate, font_size)
        except OSError:
            continue

    try:
        logger.debug("No monospace TrueType font found, using Pillow's default font")
        return ImageFont.load_default(size=font_size)
    except (OSError, TypeError, ValueError) as exc:
        raise LayoutError(f"Could not create a font for rendering: {exc}") from exc


def font_metrics(font) -> Tuple[int, int]:
    """Return (ascent, descent) for any Pillow font."""
    if hasattr(font, "getmetrics"):
        return font.getmetrics()
    _, top, _, bottom = font.getbbox("Ag")
    return bottom - top, 0


def gutter_metrics(font, config: LayoutConfig, line_count: int) -> Tuple[float, float]:
    """
    Width of the widest line number and of the whole gutter.

    The widest number is ``start_line + line_count - 1``.
    """
    last_line = config.start_line + max(line_count, 1) - 1
    digits = len(str(last_line))
    digits_width = font.getlength("0" * digits)
    return digits_width, digits_width + config.gutter_gap


def calculate_canvas_height(
    line_count: int,
    line_height: int,
    padding_y: int,
    min_height: int = DEFAULT_MIN_EXPORT_HEIGHT,
) -> int:
    """
    Height needed to show ``line_count`` lines, never below ``min_height``.
    """
    content_height = line_count * line_height + 2 * padding_y
    return max(int(min_height), int(content_height))


def required_canvas_height(step_layouts: Sequence[StepLayout], config: LayoutConfig) -> int:
    """Shared canvas height for a set of steps: the tallest step wins."""
    max_line_count = max((s.token_line_count for s in step_layouts), default=0)
    return calculate_canvas_height(
        line_count=max_line_count,
        line_height=config.line_height,
        padding_y=config.padding_y,
        min_height=config.min_export_height,
    )


class LayoutEngine:
    """
    Places highlighted tokens left to right, top to bottom on a fixed-width canvas.
    """

    def __init__(self, config: Optional[LayoutConfig] = None, *, font=None,
                 font_path: Optional[str] = None, debug: bool = False):
        """
        Args:
            config: Base layout configuration (defaults from the dark chrome theme)
            font: Pre-loaded Pillow font; loaded from ``font_path`` otherwise
            font_path: Optional TrueType font file
            debug: Whether to enable debug output
        """
        self.config = config or LayoutConfig.from_theme("dark")
        self.debug = debug
        self.font = font if font is not None else _font_cache.get_font(self.config.font_size, font_path)
        self.ascent, self.descent = font_metrics(self.font)

    def text_offset_y(self, config: LayoutConfig) -> float:
        """Vertical offset of the glyph box inside a line box."""
        return (config.line_height - (self.ascent + self.descent)) / 2

    def layout(
        self,
        token_lines: Iterable[TokenLine],
        background_color: Optional[RGB],
        theme_variant: str = "dark",
        config: Optional[LayoutConfig] = None,
    ) -> Layout:
        """
        Position every token of one step.

        Args:
            token_lines: One list of themed tokens per source line
            background_color: Theme background; the chrome fallback is used when None
            theme_variant: ``dark`` or ``light``
            config: Per-step configuration (line numbers, start line)

        Returns:
            Layout with one PositionedToken per input token
        """
        cfg = config or self.config
        lines = list(token_lines)
        line_count = len(lines)

        if background_color is None:
            background_color = ChromePalette.from_theme(theme_variant).fallback_background

        gutter_width = 0.0
        if cfg.show_line_numbers:
            _, gutter_width = gutter_metrics(self.font, cfg, line_count)
        code_left = cfg.padding_x + gutter_width
        offset = self.text_offset_y(cfg)

        tokens: List[PositionedToken] = []
        for index, line in enumerate(lines):
            y = cfg.padding_y + index * cfg.line_height
            x = code_left
            for token in line:
                width = self.font.getlength(token.text)
                tokens.append(PositionedToken(
                    text=token.text,
                    color=token.color,
                    x=x,
                    y=y,
                    width=width,
                    height=cfg.line_height,
                    baseline=y + offset + self.ascent,
                ))
                x += width

        content_height = line_count * cfg.line_height + 2 * cfg.padding_y
        if self.debug:
            logger.debug(f"📐 Laid out {len(tokens)} tokens on {line_count} lines "
                         f"(gutter {gutter_width:.0f}px, height {content_height}px)")

        return Layout(
            tokens=tuple(tokens),
            line_count=line_count,
            gutter_width=gutter_width,
            content_height=content_height,
            background_color=background_color,
            code_left=code_left,
            text_offset_y=offset,
        )

#!/usr/bin/env python3
"""
Frame renderer: paints a code panel onto a Pillow image.
"""
import logging
import math
from typing import Optional, Sequence

from PIL import Image, ImageDraw

from .layout_engine import font_metrics, gutter_metrics
from .models import AnimatedToken, Layout
from .settings import ChromePalette, LayoutConfig

logger = logging.getLogger(__name__)


def _alpha(opacity: float) -> int:
    return int(round(255 * min(1.0, max(0.0, opacity))))


class FrameRenderer:
    """
    Stateless painter for one frame. The same instance is reused for every frame.
    """

    def __init__(self, font, palette: ChromePalette):
        self.font = font
        self.palette = palette
        self.ascent, _ = font_metrics(font)

    def render(
        self,
        surface: Image.Image,
        config: LayoutConfig,
        layout: Layout,
        tokens: Optional[Sequence[AnimatedToken]] = None,
        *,
        show_line_numbers: bool,
        start_line: int,
        line_count: int,
    ) -> None:
        """
        Paint background, optional gutter and tokens onto ``surface``.

        Args:
            surface: Target image, painted in place
            config: Layout configuration (paddings, line height)
            layout: Layout providing background and, without ``tokens``, the tokens
            tokens: Animated tokens for a transition frame
            show_line_numbers: Whether to draw the gutter
            start_line: Number printed on the first line
            line_count: Number of gutter lines
        """
        draw = ImageDraw.Draw(surface)
        # Fill what is actually allocated; the surface may have grown since the last frame.
        width, height = surface.size
        draw.rectangle([0, 0, width, height], fill=tuple(layout.background_color))

        if show_line_numbers:
            self._draw_gutter(draw, config, layout, start_line, line_count)

        if tokens is None:
            for token in layout.tokens:
                draw.text((token.x, token.baseline - self.ascent), token.text,
                          fill=tuple(token.color), font=self.font)
            return

        for token in tokens:
            alpha = _alpha(token.opacity)
            if alpha == 0:
                continue
            position = (token.x, token.y + layout.text_offset_y)
            if alpha == 255:
                draw.text(position, token.text, fill=tuple(token.color), font=self.font)
            else:
                self._blend_text(surface, draw, position, token.text, token.color, alpha)

    def _blend_text(self, surface: Image.Image, draw, position, text: str, color, alpha: int) -> None:
        """Paste ``color`` through the glyph coverage mask scaled by ``alpha``."""
        left, top, right, bottom = draw.textbbox(position, text, font=self.font)
        left, top = math.floor(left), math.floor(top)
        right, bottom = math.ceil(right), math.ceil(bottom)
        if right <= left or bottom <= top:
            return
        mask = Image.new("L", (right - left, bottom - top), 0)
        ImageDraw.Draw(mask).text((position[0] - left, position[1] - top), text, fill=alpha, font=self.font)
        surface.paste(tuple(color), (left, top, right, bottom), mask)

    def _draw_gutter(self, draw, config: LayoutConfig, layout: Layout, start_line: int, line_count: int):
        gutter_config = config.for_step(show_line_numbers=True, start_line=start_line)
        digits_width, _ = gutter_metrics(self.font, gutter_config, line_count)
        right = config.padding_x + digits_width
        fill = tuple(self.palette.gutter_color)
        for index in range(line_count):
            label = str(start_line + index)
            x = right - self.font.getlength(label)
            y = config.padding_y + index * config.line_height + layout.text_offset_y
            draw.text((x, y), label, fill=fill, font=self.font)

"""Test frame painting onto Pillow surfaces."""

import pytest
from PIL import Image

from magic_move.models import AnimatedToken
from magic_move.renderer import FrameRenderer
from magic_move.settings import ChromePalette

GUTTER = (200, 200, 0)


@pytest.fixture
def renderer(font):
    palette = ChromePalette(gutter_color=GUTTER, fallback_foreground=(255, 255, 255),
                            fallback_background=(0, 0, 0))
    return FrameRenderer(font, palette)


def _colours(surface):
    return {colour for _, colour in surface.getcolors(surface.width * surface.height)}


def test_background_fills_whole_surface(renderer, small_config, layout_factory):
    surface = Image.new("RGB", (120, 60), (255, 0, 0))
    layout = layout_factory(background=(10, 20, 30))

    renderer.render(surface, small_config, layout, show_line_numbers=False, start_line=1, line_count=1)

    assert _colours(surface) == {(10, 20, 30)}


def test_static_tokens_are_drawn(renderer, small_config, layout_factory):
    surface = Image.new("RGB", (200, 120))
    layout = layout_factory(("XX", 20, 40))

    renderer.render(surface, small_config, layout, show_line_numbers=False, start_line=1, line_count=1)

    assert surface.getbbox() is not None


def test_invisible_tokens_are_skipped(renderer, small_config, layout_factory):
    surface = Image.new("RGB", (200, 120))
    layout = layout_factory()
    tokens = [AnimatedToken("XX", (255, 255, 255), 20, 40, opacity=0.0)]

    renderer.render(surface, small_config, layout, tokens, show_line_numbers=False, start_line=1, line_count=1)

    assert surface.getbbox() is None


def test_half_opacity_blends_with_background(renderer, small_config, layout_factory):
    surface = Image.new("RGB", (200, 120))
    layout = layout_factory()
    tokens = [AnimatedToken("XX", (255, 255, 255), 20, 40, opacity=0.5)]

    renderer.render(surface, small_config, layout, tokens, show_line_numbers=False, start_line=1, line_count=1)

    brightest = max(max(colour) for colour in _colours(surface))
    assert 0 < brightest <= 128


def _ink(renderer, config, layout, opacity):
    surface = Image.new("RGB", (200, 120))
    tokens = [AnimatedToken("XX", (255, 255, 255), 20, 40, opacity=opacity)]
    renderer.render(surface, config, layout, tokens, show_line_numbers=False, start_line=1, line_count=1)
    return sum(surface.convert("L").getdata())


def test_fading_tokens_get_brighter_with_opacity(renderer, small_config, layout_factory):
    layout = layout_factory()
    levels = [_ink(renderer, small_config, layout, opacity) for opacity in (0.1, 0.25, 0.5, 0.75, 1.0)]

    assert levels == sorted(levels)
    assert len(set(levels)) == len(levels)
    assert levels[2] < levels[4] * 0.6


def test_gutter_uses_chrome_colour(renderer, small_config, layout_factory):
    surface = Image.new("RGB", (200, 120))
    layout = layout_factory()

    renderer.render(surface, small_config, layout, show_line_numbers=False, start_line=1, line_count=2)
    assert surface.getbbox() is None

    renderer.render(surface, small_config, layout, show_line_numbers=True, start_line=9, line_count=2)
    assert any(r > 0 and b == 0 for r, _, b in _colours(surface))

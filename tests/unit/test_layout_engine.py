"""Test token placement and canvas sizing."""

import pytest

from magic_move.layout_engine import (
    LayoutEngine,
    calculate_canvas_height,
    gutter_metrics,
    load_font,
    required_canvas_height,
)
from magic_move.models import StepLayout, ThemedToken

WHITE = (255, 255, 255)


@pytest.fixture
def engine(small_config, font):
    return LayoutEngine(small_config, font=font)


def _lines(*texts):
    return [[ThemedToken(part, WHITE) for part in text.split("|") if part] for text in texts]


def test_calculate_canvas_height():
    """Short snippets use the minimum height; long ones grow."""
    assert calculate_canvas_height(5, 24, 40, 1080) == 1080
    assert calculate_canvas_height(100, 24, 40, 1080) == 2480
    assert calculate_canvas_height(0, 24, 40, 0) == 80


def test_one_positioned_token_per_input_token(engine):
    lines = _lines("const| |a| = 1", "", "let|b")
    layout = engine.layout(lines, (0, 0, 0))

    assert len(layout.tokens) == sum(len(line) for line in lines)
    assert [t.text for t in layout.tokens] == ["const", " ", "a", " = 1", "let", "b"]
    assert layout.line_count == 3


def test_tokens_flow_left_to_right(engine, small_config):
    layout = engine.layout(_lines("ab|cd|ef"), (0, 0, 0))
    xs = [t.x for t in layout.tokens]

    assert xs[0] == small_config.padding_x
    assert xs == sorted(xs)
    for left, right in zip(layout.tokens, layout.tokens[1:]):
        assert right.x == pytest.approx(left.x + left.width)


def test_line_positions(engine, small_config):
    layout = engine.layout(_lines("a", "b", "c"), (0, 0, 0))

    assert [t.y for t in layout.tokens] == [
        small_config.padding_y,
        small_config.padding_y + small_config.line_height,
        small_config.padding_y + 2 * small_config.line_height,
    ]
    assert layout.content_height == 3 * small_config.line_height + 2 * small_config.padding_y
    for token in layout.tokens:
        assert token.height == small_config.line_height
        assert token.y <= token.baseline <= token.y + small_config.line_height


def test_gutter_shifts_code(engine, small_config, font):
    plain = engine.layout(_lines("a"), (0, 0, 0))
    numbered_config = small_config.for_step(show_line_numbers=True, start_line=98)
    numbered = engine.layout(_lines("a", "b", "c"), (0, 0, 0), config=numbered_config)

    digits_width, gutter_width = gutter_metrics(font, numbered_config, 3)
    assert plain.gutter_width == 0
    # Lines 98..100 need three digits.
    assert digits_width == pytest.approx(font.getlength("000"))
    assert numbered.gutter_width == pytest.approx(gutter_width)
    assert numbered.tokens[0].x == pytest.approx(small_config.padding_x + gutter_width)
    assert numbered.code_left == numbered.tokens[0].x


def test_missing_background_uses_chrome_fallback(engine):
    assert engine.layout(_lines("a"), None, "dark").background_color == (0x0B, 0x10, 0x21)
    assert engine.layout(_lines("a"), None, "light").background_color == (255, 255, 255)


def test_required_canvas_height_uses_tallest_step(engine, small_config):
    short = engine.layout(_lines("a"), (0, 0, 0))
    tall = engine.layout(_lines(*["x"] * 20), (0, 0, 0))
    steps = [StepLayout(short, 1, 1, False), StepLayout(tall, 20, 1, False)]

    assert required_canvas_height(steps, small_config) == 20 * 24 + 80
    assert required_canvas_height(steps[:1], small_config) == small_config.min_export_height


def test_load_font_falls_back_for_missing_path():
    font = load_font(20, "/nonexistent/font.ttf")
    assert font.getlength("mm") > 0

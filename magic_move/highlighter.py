"""
Syntax tokenizer built on Pygments.

Turns a step's code into per-line coloured tokens plus the theme background.
Unknown languages fall back to plain text; tokenizing never raises for a
language the lexer registry does not know.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .css_utils import RGB, parse_color
from .models import ThemedToken, TokenLine
from .settings import ChromePalette

logger = logging.getLogger(__name__)

DEFAULT_THEME = "github-dark"

AVAILABLE_THEMES = [
    "github-dark",
    "default",
    "monokai",
    "nord",
    "one-dark",
    "dracula",
    "solarized-dark",
    "solarized-light",
    "vs",
]

TAB_SIZE = 4


@dataclass(frozen=True)
class HighlightResult:
    lines: List[TokenLine]
    background: RGB
    variant: str


def _relative_luminance(color: RGB) -> float:
    r, g, b = (c / 255 for c in color)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def _load_style(theme: str):
    try:
        return get_style_by_name(theme)
    except ClassNotFound:
        raise ValueError(f"Unknown theme '{theme}'. Available themes: {AVAILABLE_THEMES}") from None


def get_theme_variant(theme: str) -> str:
    """Return ``"dark"`` or ``"light"`` depending on the style's background."""
    style = _load_style(theme)
    try:
        background = parse_color(style.background_color or "#ffffff")
    except ValueError:
        return "light"
    return "dark" if _relative_luminance(background) < 0.5 else "light"


class Highlighter:
    """
    Tokenizes code for one syntax theme.
    """

    def __init__(self, theme: str = DEFAULT_THEME):
        self.theme = theme
        self.style = _load_style(theme)
        self.variant = get_theme_variant(theme)
        self.palette = ChromePalette.from_theme(self.variant)
        self._color_cache = {}

    def _lexer_for(self, language: str):
        name = (language or "").strip().lower() or "text"
        try:
            return get_lexer_by_name(name, stripnl=False, ensurenl=False, tabsize=TAB_SIZE)
        except ClassNotFound:
            logger.debug("No lexer for language '%s', falling back to plain text", language)
            return TextLexer(stripnl=False, ensurenl=False, tabsize=TAB_SIZE)

    def _color_for(self, ttype) -> RGB:
        cached = self._color_cache.get(ttype)
        if cached is not None:
            return cached
        raw: Optional[str] = self.style.style_for_token(ttype).get("color")
        color = self.palette.fallback_foreground
        if raw:
            try:
                color = parse_color(raw if raw.startswith("#") else f"#{raw}")
            except ValueError:
                logger.debug("Unusable colour %r in theme %s", raw, self.theme)
        self._color_cache[ttype] = color
        return color

    def background(self) -> RGB:
        try:
            return parse_color(self.style.background_color)
        except (TypeError, ValueError):
            return self.palette.fallback_background

    def tokenize(self, code: str, language: str) -> HighlightResult:
        """
        Split highlighted code into one token list per source line.

        Args:
            code: Step source, lines separated by ``\\n``
            language: Fence language, any Pygments alias

        Returns:
            HighlightResult with ``code.count("\\n") + 1`` lines
        """
        lexer = self._lexer_for(language)
        lines: List[TokenLine] = [[]]
        for ttype, value in lexer.get_tokens(code):
            color = self._color_for(ttype)
            segments = value.split("\n")
            for index, segment in enumerate(segments):
                if index > 0:
                    lines.append([])
                if segment:
                    lines[-1].append(ThemedToken(segment, color))

        expected = code.count("\n") + 1
        # Some lexers swallow or add a trailing newline; keep one line per source line.
        while len(lines) > expected and not lines[-1]:
            lines.pop()
        while len(lines) < expected:
            lines.append([])

        return HighlightResult(lines=lines, background=self.background(), variant=self.variant)

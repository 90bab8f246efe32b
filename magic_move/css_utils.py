"""
CSS variable extraction for chrome themes.

Canvas metrics and chrome colours live in ``:root`` custom properties of the
theme files so they can be tweaked without touching code.
"""
import re
from typing import Dict, Tuple

from .theme_loader import get_css

RGB = Tuple[int, int, int]


def parse_color(value: str) -> RGB:
    """
    Convert ``#rgb``, ``#rrggbb``, ``#rrggbbaa`` or ``rgb(r, g, b)`` into an RGB tuple.

    Raises:
        ValueError: If the value is not a recognised colour
    """
    val = value.strip()
    if val.startswith("#"):
        hexval = val[1:]
        if len(hexval) in (3, 4):
            hexval = "".join(c * 2 for c in hexval[:3])
        if len(hexval) in (6, 8):
            try:
                return tuple(int(hexval[i:i + 2], 16) for i in (0, 2, 4))
            except ValueError:
                pass
    else:
        rgb_match = re.match(r"rgba?\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)", val, re.IGNORECASE)
        if rgb_match:
            return tuple(min(255, int(rgb_match.group(i))) for i in range(1, 4))
    raise ValueError(f"Unrecognised colour value: {value!r}")


class CSSParser:
    """
    Reads ``:root`` variables from a chrome theme. Cached per instance.
    """

    def __init__(self, theme: str = "dark"):
        self.theme = theme
        self.css_content = get_css(theme)
        self._css_vars = None

    def get_css_variables(self) -> Dict[str, str]:
        """Extract all CSS variables from the :root section."""
        if self._css_vars is not None:
            return self._css_vars

        root_match = re.search(r':root\s*\{([^}]+)\}', self.css_content, re.DOTALL)
        if not root_match:
            raise ValueError(f"No :root section found in theme '{self.theme}'")

        css_vars = re.findall(r'--([^:]+):\s*([^;]+);', root_match.group(1))
        self._css_vars = {name.strip(): value.strip() for name, value in css_vars}
        return self._css_vars

    def get_raw_value(self, variable_name: str) -> str:
        """Get raw CSS variable value."""
        value = self.get_css_variables().get(variable_name)
        if not value:
            raise ValueError(f"CSS variable '--{variable_name}' not found in theme '{self.theme}'")
        return value

    def get_px_value(self, variable_name: str) -> int:
        """Get pixel value from CSS variable."""
        value = self.get_raw_value(variable_name)
        px_match = re.search(r'(\d+)px', value)
        if not px_match:
            raise ValueError(f"CSS variable '--{variable_name}' is not a pixel value: {value}")
        return int(px_match.group(1))

    def get_color(self, variable_name: str) -> RGB:
        """Get an RGB colour from CSS variable."""
        return parse_color(self.get_raw_value(variable_name))

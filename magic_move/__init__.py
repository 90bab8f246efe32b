"""Magic Move – top-level package

Exposes the public API (`MagicMoveGenerator`, `MagicMoveEngine`, …) **and**
sets up a minimal logging configuration so that every sub-module can call

```python
import logging
logger = logging.getLogger(__name__)
```

and honour a single environment variable `MAGICMOVE_LOG_LEVEL`.
"""

from __future__ import annotations

import logging
import os

# ------------------------------------------------------------------
# Default logging – honour env var, otherwise WARNING.
# ------------------------------------------------------------------
LOG_LEVEL = os.getenv("MAGICMOVE_LOG_LEVEL", "WARNING").upper()
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

# Public API re-exports ------------------------------------------------
from .animate import animate_layouts  # noqa: E402  (import after logger)
from .engine import EngineState, MagicMoveEngine  # noqa: E402
from .errors import EngineBusyError, ExportError, LayoutError, MagicMoveError, ParseError  # noqa: E402
from .generator import MagicMoveGenerator  # noqa: E402
from .layout_engine import LayoutEngine, calculate_canvas_height  # noqa: E402
from .markdown_parser import MagicMoveParser, parse_magic_move  # noqa: E402
from .settings import LayoutConfig, PlaybackSettings  # noqa: E402
from .timeline import Holding, Timeline, Transitioning  # noqa: E402

__all__ = [
    "MagicMoveGenerator",
    "MagicMoveEngine",
    "EngineState",
    "MagicMoveParser",
    "parse_magic_move",
    "LayoutEngine",
    "LayoutConfig",
    "PlaybackSettings",
    "calculate_canvas_height",
    "animate_layouts",
    "Timeline",
    "Holding",
    "Transitioning",
    "MagicMoveError",
    "ParseError",
    "LayoutError",
    "ExportError",
    "EngineBusyError",
]

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import magic_move` works
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from magic_move.encoder import EncodedResult, VideoEncoder  # noqa: E402
from magic_move.layout_engine import load_font  # noqa: E402
from magic_move.models import Layout, PositionedToken  # noqa: E402
from magic_move.settings import LayoutConfig  # noqa: E402


TWO_STEP_DOC = """---
transition: slide-left
---

# Refactor

````shiki-magic-move {lines:true}
```ts
const a = 1
```

```ts
const a = 2
const b = a
```
````
"""


@pytest.fixture
def small_config():
    """A compact canvas so rendering tests stay fast."""
    return LayoutConfig(
        canvas_width=640,
        canvas_height=240,
        line_height=24,
        padding_x=20,
        padding_y=40,
        font_size=16,
        gutter_gap=12,
        min_export_height=240,
    )


@pytest.fixture(scope="session")
def font():
    return load_font(16)


@pytest.fixture
def two_step_doc():
    return TWO_STEP_DOC


def make_layout(*tokens, background=(0, 0, 0), line_count=1):
    """Build a Layout from ``(text, x, y)`` or ``(text, x, y, color)`` tuples."""
    positioned = []
    for item in tokens:
        text, x, y = item[:3]
        color = item[3] if len(item) > 3 else (255, 255, 255)
        positioned.append(PositionedToken(text=text, color=color, x=x, y=y, width=10.0 * len(text),
                                          height=24, baseline=y + 18))
    return Layout(
        tokens=tuple(positioned),
        line_count=line_count,
        gutter_width=0.0,
        content_height=line_count * 24 + 80,
        background_color=background,
    )


@pytest.fixture
def layout_factory():
    return make_layout


class FakeEncoder(VideoEncoder):
    """Collects frames in memory instead of running ffmpeg."""

    def __init__(self, fail_at=None):
        self.fail_at = fail_at
        self.frames = []
        self.size = None
        self.fps = None
        self.finished = False
        self.aborted = False

    def open(self, size, fps):
        self.size = size
        self.fps = fps

    def write_frame(self, surface):
        if self.fail_at is not None and len(self.frames) == self.fail_at:
            raise RuntimeError("disk full")
        self.frames.append(surface.copy())

    def finish(self):
        self.finished = True
        return EncodedResult(
            path=Path("fake.webm"),
            width=self.size[0],
            height=self.size[1],
            fps=self.fps,
            frame_count=len(self.frames),
            duration_ms=len(self.frames) * 1000.0 / self.fps,
        )

    def abort(self):
        self.aborted = True


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def failing_encoder():
    return FakeEncoder(fail_at=2)

"""
Data models for the magic-move renderer.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .errors import ParseError

RGB = Tuple[int, int, int]


class BlockKind(str, Enum):
    """Wrapper syntax a magic-move block was written with."""
    SLIDEV = "md magic-move"
    MARKDOWN = "shiki-magic-move"


@dataclass(frozen=True)
class StepMeta:
    """Per-step line numbering options."""
    show_line_numbers: bool = False
    start_line: int = 1


@dataclass(frozen=True)
class Step:
    """
    One code snippet inside a magic-move block.
    """
    language: str
    code: str
    meta: StepMeta = field(default_factory=StepMeta)

    @property
    def line_count(self) -> int:
        return self.code.count("\n") + 1


@dataclass
class MagicMoveBlock:
    """
    An ordered group of steps sharing one outer metadata scope.
    """
    kind: BlockKind
    outer_meta: StepMeta
    steps: List[Step] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def describe(self, index: int) -> str:
        """Human readable label, e.g. ``Block 1 · shiki-magic-move · 2 steps``."""
        return f"Block {index + 1} · {self.kind.value} · {len(self.steps)} steps"


@dataclass
class ParseResult:
    """Blocks found in a document plus document-level errors."""
    blocks: List[MagicMoveBlock] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def block(self, index: int) -> Optional[MagicMoveBlock]:
        if 0 <= index < len(self.blocks):
            return self.blocks[index]
        return None

    def all_errors(self, block_index: int = 0) -> List[str]:
        """Document errors followed by the errors of the selected block."""
        active = self.block(block_index)
        return [*self.errors, *(active.errors if active else [])]

    def raise_for_errors(self, block_index: int = 0) -> None:
        messages = self.all_errors(block_index)
        if messages:
            raise ParseError(messages)


@dataclass(frozen=True)
class ThemedToken:
    """A highlighted run of text as produced by the tokenizer."""
    text: str
    color: RGB


TokenLine = List[ThemedToken]


@dataclass(frozen=True)
class PositionedToken:
    """
    A token placed on the virtual canvas.

    ``y`` is the top of the line box; ``baseline`` is where the glyphs sit.
    """
    text: str
    color: RGB
    x: float
    y: float
    width: float
    height: float
    baseline: float


@dataclass(frozen=True)
class Layout:
    """Positioned, coloured token representation of one step."""
    tokens: Tuple[PositionedToken, ...]
    line_count: int
    gutter_width: float
    content_height: int
    background_color: RGB
    code_left: float = 0.0
    text_offset_y: float = 0.0  # glyph top relative to the line box top


@dataclass(frozen=True)
class AnimatedToken:
    """A token as it should be painted on one frame of a transition."""
    text: str
    color: RGB
    x: float
    y: float
    opacity: float = 1.0


@dataclass(frozen=True)
class StepLayout:
    """Layout of one step together with the options it was built with."""
    layout: Layout
    token_line_count: int
    start_line: int
    show_line_numbers: bool

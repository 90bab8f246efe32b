"""
Parser for Slidev-style magic-move blocks.

Two outer wrappers are recognised, both opened by a fence of four backticks
(or tildes)::

    ````md magic-move {lines:true}
    ````shiki-magic-move {lines:true,startLine:5}

Inside a wrapper every triple fence is one step. Everything else in the
document (front matter, slide separators, prose, other fences) is ignored.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from markdown_it import MarkdownIt

from .models import BlockKind, MagicMoveBlock, ParseResult, Step, StepMeta

logger = logging.getLogger(__name__)

OUTER_FENCE_LENGTH = 4
STEP_FENCE_LENGTH = 3

NO_STEPS_ERROR = "No code steps found inside this magic-move block."
NO_BLOCKS_ERROR = (
    "No magic-move blocks found.\n\n"
    "Supported formats:\n"
    "- ````md magic-move ... ```` (4 backticks)\n"
    "- ````shiki-magic-move {lines:true} ... ```` (4 backticks)\n\n"
    "Inside, include multiple triple-backtick code fences (```lang ... ```)."
)

_WRAPPER_RE = re.compile(r'^(md\s+magic-move|shiki-magic-move)(?![\w-])\s*(.*)$')
_META_GROUP_RE = re.compile(r'\{([^}]*)\}')


@dataclass
class LineMetaParseResult:
    """Parsed metadata plus the keys that were explicitly given."""
    meta: StepMeta = field(default_factory=StepMeta)
    specified: Dict[str, bool] = field(default_factory=lambda: {"lines": False, "startLine": False})


def parse_line_meta(info: Optional[str]) -> LineMetaParseResult:
    """
    Parse ``{key:value,...}`` groups from a fence info string.

    Examples (order-insensitive, unknown keys ignored)::

        {lines:true,startLine:5}
        {startLine:10}{lines:true}
    """
    lines = False
    start_line = 1
    specified = {"lines": False, "startLine": False}
    if not info:
        return LineMetaParseResult(StepMeta(lines, start_line), specified)

    for group in _META_GROUP_RE.findall(info):
        for raw_part in group.split(","):
            part = raw_part.strip()
            if not part:
                continue
            pieces = [p.strip() for p in part.split(":")]
            key = pieces[0]
            value = pieces[1] if len(pieces) > 1 else None
            if not key:
                continue

            if key == "lines":
                lines = value == "true"
                specified["lines"] = True
            elif key == "startLine":
                number = _to_number(value)
                if number is not None and math.isfinite(number) and number >= 1:
                    start_line = math.floor(number)
                    specified["startLine"] = True

    return LineMetaParseResult(StepMeta(lines, start_line), specified)


def _to_number(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _split_info(info: str) -> Tuple[str, str]:
    """Split a fence info string into its first word and the rest."""
    parts = info.strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], (parts[1].strip() if len(parts) > 1 else "")


class MagicMoveParser:
    """
    Extracts magic-move blocks and their steps using markdown-it-py fence tokens.
    """

    def __init__(self):
        self.markdown_processor = MarkdownIt('commonmark')

    def parse(self, document: str) -> ParseResult:
        """
        Parse a markdown document into magic-move blocks.

        Args:
            document: Raw markdown text

        Returns:
            ParseResult with one block per wrapper and document-level errors
        """
        text = (document or "").replace("\r\n", "\n")
        lines = text.split("\n")
        blocks: List[MagicMoveBlock] = []

        for token in self.markdown_processor.parse(text):
            if token.type != "fence" or len(token.markup) != OUTER_FENCE_LENGTH:
                continue
            wrapper = _WRAPPER_RE.match(token.info.strip())
            if not wrapper:
                continue
            if not self._is_closed(token, lines):
                logger.debug("Ignoring unclosed magic-move wrapper at line %s", token.map[0] + 1 if token.map else "?")
                continue

            kind = BlockKind(re.sub(r'\s+', ' ', wrapper.group(1)))
            outer_meta = parse_line_meta(wrapper.group(2)).meta
            blocks.append(self._parse_block(kind, outer_meta, token.content))

        errors = [] if blocks else [NO_BLOCKS_ERROR]
        logger.debug("Parsed %d magic-move block(s)", len(blocks))
        return ParseResult(blocks=blocks, errors=errors)

    def _parse_block(self, kind: BlockKind, outer_meta: StepMeta, body: str) -> MagicMoveBlock:
        steps: List[Step] = []
        for token in self.markdown_processor.parse(body):
            # Only triple fences are steps; any other content between them is ignored.
            if token.type != "fence" or len(token.markup) != STEP_FENCE_LENGTH:
                continue

            language, rest = _split_info(token.info)
            parsed = parse_line_meta(rest)
            meta = StepMeta(
                show_line_numbers=(parsed.meta.show_line_numbers if parsed.specified["lines"]
                                   else outer_meta.show_line_numbers),
                start_line=(parsed.meta.start_line if parsed.specified["startLine"]
                            else outer_meta.start_line),
            )
            code = token.content[:-1] if token.content.endswith("\n") else token.content
            steps.append(Step(language=language or "text", code=code, meta=meta))

        errors: List[str] = []
        if not steps:
            errors.append(NO_STEPS_ERROR)
        for idx, step in enumerate(steps):
            if step.meta.start_line < 1:
                errors.append(f"Step {idx + 1}: startLine must be >= 1")

        return MagicMoveBlock(kind=kind, outer_meta=outer_meta, steps=steps, errors=errors)

    @staticmethod
    def _is_closed(token, lines: List[str]) -> bool:
        """True when the fence ends with a closing line of the same character."""
        if not token.map:
            return False
        start, end = token.map
        # Opening line, at least one body line (possibly blank), closing line.
        if end - start < 3 or end > len(lines):
            return False
        closing = lines[end - 1].strip()
        char = token.markup[0]
        return (
            len(closing) >= len(token.markup)
            and closing == char * len(closing)
        )


def parse_magic_move(document: str) -> ParseResult:
    """
    Convenience function to parse a document with a fresh parser.
    """
    return MagicMoveParser().parse(document)

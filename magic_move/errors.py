"""Exception types raised across the magic-move pipeline."""
from typing import Iterable


class MagicMoveError(Exception):
    """Base class for all magic-move errors."""


class ParseError(MagicMoveError):
    """The document has no usable magic-move block."""

    def __init__(self, messages: Iterable[str]):
        self.messages = list(messages)
        super().__init__("\n".join(self.messages) or "Invalid magic-move document")


class LayoutError(MagicMoveError):
    """No raster context (font) could be created for measuring tokens."""


class ExportError(MagicMoveError):
    """The encoder rejected the stream or the export was interrupted."""


class EngineBusyError(MagicMoveError):
    """The surface is owned by a running export."""

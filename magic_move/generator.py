#!/usr/bin/env python3
"""
Main magic-move module that ties together the engine and the video encoder.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from .encoder import WebmEncoder
from .engine import MagicMoveEngine
from .errors import LayoutError, ParseError
from .highlighter import AVAILABLE_THEMES, DEFAULT_THEME
from .paths import DEFAULT_OUTPUT_NAME, prepare_workspace, resolve_output_path
from .settings import PlaybackSettings

logger = logging.getLogger(__name__)


class MagicMoveGenerator:
    """
    Main class for turning magic-move markdown into a video.
    """

    def __init__(
        self,
        *,
        output_dir,
        theme: str = DEFAULT_THEME,
        settings: Optional[PlaybackSettings] = None,
        keep_tmp: bool = False,
        debug: bool = False,
    ):
        """Create a new :class:`MagicMoveGenerator`.

        Parameters
        ----------
        output_dir
            Directory where the final video (and optional stills) will be
            written.  *Required*.
        theme
            Pygments style used for highlighting (``github-dark`` / ``vs`` / …).
        settings
            Frame rate, transition and hold durations, line-number override.
        keep_tmp
            If ``True`` the working directory ``.mm_tmp`` inside *output_dir*
            will be left on disk for inspection.
        debug
            Enable verbose logging.
        """
        self.debug = debug
        self.theme = theme
        self.settings = settings or PlaybackSettings()
        self.paths = prepare_workspace(output_dir, keep_tmp=keep_tmp)
        self.engine = MagicMoveEngine(self.settings, theme, debug=debug)

    async def prepare(self, markdown_text: str, block_index: int = 0) -> MagicMoveEngine:
        """
        Parse the document, select a block and build its layouts.

        Raises:
            ParseError: If the document or the selected block has errors
            LayoutError: If the layouts could not be built
        """
        parsed = self.engine.load_document(markdown_text)
        if parsed.blocks and not 0 <= block_index < len(parsed.blocks):
            raise ParseError([f"Block {block_index + 1} does not exist; the document has "
                              f"{len(parsed.blocks)} magic-move block(s)."])
        self.engine.select_block(block_index)
        parsed.raise_for_errors(self.engine.state.block_index)

        layouts = await self.engine.build_layouts()
        if layouts is None:
            raise LayoutError(self.engine.state.layout_error or "Failed to build preview")

        if self.debug:
            logger.info(f"Steps: {len(layouts)}")
            for number, step in enumerate(self.engine.steps, start=1):
                logger.info(f"  Step {number}: {step.language}, {step.line_count} lines")
            logger.info(f"Total duration: {self.engine.timeline.total_ms:.0f}ms")
        return self.engine

    async def generate(
        self,
        markdown_text: str,
        output_path=DEFAULT_OUTPUT_NAME,
        block_index: int = 0,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> str:
        """
        Generate a WebM video from markdown text.

        Args:
            markdown_text: Document containing at least one magic-move block
            output_path: Where the video should be saved
            block_index: Which magic-move block to export
            on_progress: Receives export progress in [0, 1]

        Returns:
            str: Path to the generated video
        """
        destination = resolve_output_path(output_path, self.paths["output_dir"])
        await self.prepare(markdown_text, block_index)

        encoder = WebmEncoder(self.paths["tmp_dir"], filename=destination.name)
        result = await self.engine.export(encoder, on_progress=on_progress)
        try:
            result.save(destination)
        finally:
            result.release()
            self.engine.state.export.result = None

        if self.debug:
            logger.info(f"Generated video saved to: {destination}")
            logger.info(f"Frames: {result.frame_count} @ {result.fps}fps, {result.width}x{result.height}")
            logger.info(f"Theme: {self.theme}")
        return str(destination)

    async def render_still(self, markdown_text: str, at_ms: float, output_path, block_index: int = 0) -> str:
        """Render the frame at ``at_ms`` as a PNG (useful for previews)."""
        await self.prepare(markdown_text, block_index)
        destination = Path(output_path)
        if not destination.is_absolute() and len(destination.parts) == 1:
            destination = self.paths["output_dir"] / destination
        destination.parent.mkdir(parents=True, exist_ok=True)
        self.engine.render_still(at_ms, destination)
        return str(destination)


def main():
    """Command-line entry point for the magic-move renderer."""
    import argparse
    import asyncio
    import sys

    from .errors import MagicMoveError
    from .markdown_parser import parse_magic_move

    def _build_parser() -> argparse.ArgumentParser:
        p = argparse.ArgumentParser(prog="magicmove", description="Render Slidev-style magic-move markdown to a WebM video.")
        p.add_argument("markdown", type=Path, help="Markdown file containing magic-move blocks")
        p.add_argument("--output", "-o", type=Path, default=Path("output") / DEFAULT_OUTPUT_NAME, help="Destination video path")
        p.add_argument("--theme", "-t", default=DEFAULT_THEME, choices=AVAILABLE_THEMES, help="Syntax highlighting theme")
        p.add_argument("--fps", type=int, default=30, help="Frames per second (10-60)")
        p.add_argument("--transition-ms", type=int, default=800, help="Duration of each transition (100-5000)")
        p.add_argument("--start-hold-ms", type=int, default=250, help="Hold on the first step (0-2000)")
        p.add_argument("--between-hold-ms", type=int, default=120, help="Hold between transitions (0-2000)")
        p.add_argument("--end-hold-ms", type=int, default=250, help="Hold on the last step (0-2000)")
        p.add_argument("--lines", action="store_true", help="Force line numbers on every step")
        p.add_argument("--block", type=int, default=1, help="1-based index of the magic-move block to render")
        p.add_argument("--still", type=float, metavar="MS", help="Write a PNG of the frame at MS instead of a video")
        p.add_argument("--list-blocks", action="store_true", help="List the magic-move blocks and exit")
        p.add_argument("--debug", action="store_true", help="Enable verbose logging")
        p.add_argument("--keep-tmp", action="store_true", help="Keep .mm_tmp directory after run")
        return p

    async def _generate_async(args) -> int:
        md_path: Path = args.markdown
        if not md_path.exists():
            logger.error(f"Markdown file '{md_path}' not found")
            return 1
        markdown_text = md_path.read_text(encoding="utf-8")

        if args.list_blocks:
            parsed = parse_magic_move(markdown_text)
            for message in parsed.errors:
                logger.error(message)
            for index, block in enumerate(parsed.blocks):
                print(block.describe(index))
            return 0 if parsed.blocks else 1

        settings = PlaybackSettings(
            fps=args.fps,
            transition_ms=args.transition_ms,
            start_hold_ms=args.start_hold_ms,
            between_hold_ms=args.between_hold_ms,
            end_hold_ms=args.end_hold_ms,
            force_line_numbers=args.lines,
        )
        generator = MagicMoveGenerator(
            output_dir=args.output.parent,
            theme=args.theme,
            settings=settings,
            debug=args.debug,
            keep_tmp=args.keep_tmp,
        )

        try:
            if args.still is not None:
                still_path = args.output.with_suffix(".png")
                output_path = await generator.render_still(markdown_text, args.still, still_path, args.block - 1)
            else:
                def _report(progress: float) -> None:
                    print(f"\rExporting… {round(progress * 100)}%", end="", file=sys.stderr, flush=True)

                output_path = await generator.generate(markdown_text, args.output, args.block - 1, on_progress=_report)
                print(file=sys.stderr)
        except ParseError as exc:
            for message in exc.messages:
                logger.error(message)
            return 1
        except MagicMoveError as exc:
            logger.error(f"❌ {exc}")
            return 1

        logger.info("✅ Written to %s", output_path)
        return 0

    logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s", force=True)

    parser = _build_parser()
    args = parser.parse_args()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    sys.exit(asyncio.run(_generate_async(args)))


if __name__ == "__main__":
    main()

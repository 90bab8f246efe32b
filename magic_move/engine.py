#!/usr/bin/env python3
"""
Magic-move engine: owns the document, the step layouts, the playhead and the
raster surface, and wires parser → tokenizer → layout → animator → renderer.

Everything runs on one asyncio event loop. Layout builds suspend between
steps and can be superseded; export owns the surface exclusively while it
runs.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from PIL import Image

from .animate import animate_layouts
from .encoder import EncodedResult, VideoEncoder
from .errors import EngineBusyError, ExportError, LayoutError
from .exporter import ExportScheduler
from .highlighter import DEFAULT_THEME, Highlighter
from .layout_engine import LayoutEngine, required_canvas_height
from .markdown_parser import MagicMoveParser
from .models import MagicMoveBlock, ParseResult, Step, StepLayout
from .renderer import FrameRenderer
from .settings import ChromePalette, LayoutConfig, PlaybackSettings
from .timeline import Holding, Playhead, Timeline

logger = logging.getLogger(__name__)

LIVE_FRAME_INTERVAL_MS = 1000.0 / 60


@dataclass
class ExportStatus:
    is_exporting: bool = False
    progress: float = 0.0
    result: Optional[EncodedResult] = None
    error: Optional[str] = None


@dataclass
class EngineState:
    """Everything the preview UI needs to draw itself."""
    parsed: ParseResult = field(default_factory=ParseResult)
    block_index: int = 0
    step_layouts: Optional[List[StepLayout]] = None
    layout_error: Optional[str] = None
    export: ExportStatus = field(default_factory=ExportStatus)
    playhead: Optional[Playhead] = None


class BuildToken:
    """Cancellation flag handed to one layout build."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class MagicMoveEngine:
    """
    Preview/export engine for one markdown document.
    """

    def __init__(
        self,
        settings: Optional[PlaybackSettings] = None,
        theme: str = DEFAULT_THEME,
        *,
        layout_config: Optional[LayoutConfig] = None,
        font=None,
        debug: bool = False,
    ):
        """
        Args:
            settings: Timing options and the line-number override
            theme: Pygments style used for highlighting
            layout_config: Canvas metrics; read from the chrome theme when omitted
            font: Pre-loaded Pillow font (mainly for tests)
            debug: Enable verbose logging
        """
        self.settings = settings or PlaybackSettings()
        self.debug = debug
        self.state = EngineState()
        self.surface: Optional[Image.Image] = None

        self._parser = MagicMoveParser()
        self._scheduler = ExportScheduler(debug=debug)
        self._font = font
        self._custom_layout_config = layout_config
        self._apply_theme(theme)

        self.timeline = self._build_timeline()
        self.state.playhead = Playhead(self.timeline)

        self._build_token: Optional[BuildToken] = None
        self._live_task: Optional[asyncio.Task] = None
        self._export_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    @property
    def active_block(self) -> Optional[MagicMoveBlock]:
        return self.state.parsed.block(self.state.block_index)

    @property
    def steps(self) -> List[Step]:
        block = self.active_block
        return list(block.steps) if block else []

    @property
    def errors(self) -> List[str]:
        return self.state.parsed.all_errors(self.state.block_index)

    @property
    def playhead(self) -> Playhead:
        return self.state.playhead

    @property
    def is_exporting(self) -> bool:
        return self.state.export.is_exporting

    @property
    def can_export(self) -> bool:
        return bool(self.state.step_layouts) and not self.errors and not self.is_exporting

    def _check_idle(self) -> None:
        if self.state.export.is_exporting:
            raise EngineBusyError("An export is in progress")

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def load_document(self, text: str) -> ParseResult:
        """Parse ``text`` and invalidate the current layouts."""
        self._check_idle()
        self.state.parsed = self._parser.parse(text)
        max_index = max(0, len(self.state.parsed.blocks) - 1)
        self.state.block_index = min(max(0, self.state.block_index), max_index)
        self._invalidate()
        return self.state.parsed

    def select_block(self, index: int) -> None:
        self._check_idle()
        self.stop()
        self.playhead.reset()
        max_index = max(0, len(self.state.parsed.blocks) - 1)
        self.state.block_index = min(max(0, int(index)), max_index)
        self._invalidate()

    def set_theme(self, theme: str) -> None:
        self._check_idle()
        self._apply_theme(theme)
        self._invalidate()

    def set_settings(self, settings: PlaybackSettings) -> None:
        """Apply new timing options; layouts are rebuilt only if line numbers change."""
        self._check_idle()
        rebuild = settings.force_line_numbers != self.settings.force_line_numbers
        self.settings = settings
        if rebuild:
            self._invalidate()
        else:
            self._retime()

    def set_force_line_numbers(self, enabled: bool) -> None:
        self.set_settings(self.settings.with_changes(force_line_numbers=enabled))

    def set_transition_ms(self, transition_ms: int) -> None:
        self.set_settings(self.settings.with_changes(transition_ms=transition_ms))

    def _apply_theme(self, theme: str) -> None:
        self._highlighter = Highlighter(theme)
        self.theme = theme
        variant = self._highlighter.variant
        self.layout_config = self._custom_layout_config or LayoutConfig.from_theme(variant)
        self._palette = ChromePalette.from_theme(variant)
        self._layout_engine: Optional[LayoutEngine] = None
        self._renderer: Optional[FrameRenderer] = None

    def _build_timeline(self) -> Timeline:
        return Timeline.build(
            len(self.steps),
            self.settings.transition_ms,
            self.settings.start_hold_ms,
            self.settings.between_hold_ms,
            self.settings.end_hold_ms,
        )

    def _retime(self) -> None:
        self.timeline = self._build_timeline()
        self.playhead.retime(self.timeline)

    def _invalidate(self) -> None:
        if self._build_token is not None:
            self._build_token.cancel()
            self._build_token = None
        self.state.step_layouts = None
        self.state.layout_error = None
        self._retime()

    # ------------------------------------------------------------------
    # Layout build
    # ------------------------------------------------------------------
    def _ensure_layout_engine(self) -> LayoutEngine:
        if self._layout_engine is None:
            self._layout_engine = LayoutEngine(self.layout_config, font=self._font, debug=self.debug)
            self._renderer = FrameRenderer(self._layout_engine.font, self._palette)
        return self._layout_engine

    async def build_layouts(self) -> Optional[List[StepLayout]]:
        """
        Tokenize and lay out every step of the active block.

        Returns the committed layouts, or None when the build was superseded
        or failed (see ``state.layout_error``).
        """
        self._check_idle()
        if self._build_token is not None:
            self._build_token.cancel()
        token = BuildToken()
        self._build_token = token
        self.state.step_layouts = None
        self.state.layout_error = None

        steps = self.steps
        layouts: List[StepLayout] = []
        try:
            layout_engine = self._ensure_layout_engine()
            for step in steps:
                highlighted = self._highlighter.tokenize(step.code, step.language)
                config = self.layout_config.for_step(
                    show_line_numbers=self.settings.force_line_numbers or step.meta.show_line_numbers,
                    start_line=step.meta.start_line,
                )
                layout = layout_engine.layout(highlighted.lines, highlighted.background,
                                              highlighted.variant, config)
                layouts.append(StepLayout(
                    layout=layout,
                    token_line_count=len(highlighted.lines),
                    start_line=config.start_line,
                    show_line_numbers=config.show_line_numbers,
                ))
                await asyncio.sleep(0)
                if token.cancelled:
                    logger.debug("Discarding superseded layout build")
                    return None
        except LayoutError as exc:
            if token.cancelled:
                return None
            logger.error(f"❌ Failed to build preview: {exc}")
            self.state.layout_error = str(exc)
            return None

        if token.cancelled:
            return None
        self.state.step_layouts = layouts
        if self.debug:
            logger.info(f"Built {len(layouts)} step layouts for block {self.state.block_index + 1}")
        return layouts

    def schedule_build(self) -> asyncio.Task:
        """Start a layout build on the running loop, superseding any in-flight one."""
        self._check_idle()
        if self._build_token is not None:
            self._build_token.cancel()
        return asyncio.ensure_future(self.build_layouts())

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _ensure_surface(self, height: int) -> Image.Image:
        size = (self.layout_config.canvas_width, height)
        if self.surface is None or self.surface.size != size:
            self.surface = Image.new("RGB", size)
        return self.surface

    def _paint(self, ms: float, *, resize: bool) -> Optional[Image.Image]:
        layouts = self.state.step_layouts
        if not layouts:
            return None
        self._ensure_layout_engine()
        if resize or self.surface is None:
            self._ensure_surface(required_canvas_height(layouts, self.layout_config))
        surface = self.surface
        # Renderer config must match the surface actually allocated.
        config = replace(self.layout_config, canvas_height=surface.height)

        state = self.timeline.state_at(ms)
        if isinstance(state, Holding):
            shown = layouts[min(state.step_index, len(layouts) - 1)]
            self._renderer.render(
                surface, config, shown.layout,
                show_line_numbers=shown.show_line_numbers,
                start_line=shown.start_line,
                line_count=shown.token_line_count,
            )
            return surface

        a = layouts[state.from_index]
        b = layouts[state.to_index]
        tokens = animate_layouts(a.layout, b.layout, state.progress)
        self._renderer.render(
            surface, config, b.layout, tokens,
            show_line_numbers=a.show_line_numbers or b.show_line_numbers,
            start_line=b.start_line,
            line_count=b.token_line_count,
        )
        return surface

    def render_at(self, ms: float) -> Optional[Image.Image]:
        """Paint the frame at ``ms`` onto the surface (resizing it if needed)."""
        self._check_idle()
        return self._paint(ms, resize=True)

    def render_still(self, ms: float, path) -> Optional[Image.Image]:
        """Render the frame at ``ms`` and save it as an image file."""
        surface = self.render_at(ms)
        if surface is not None:
            surface.save(path)
        return surface

    # ------------------------------------------------------------------
    # Live playback
    # ------------------------------------------------------------------
    def seek(self, ms: float) -> float:
        self._check_idle()
        position = self.playhead.seek(ms)
        self._paint(position, resize=True)
        return position

    def play(self) -> None:
        self._check_idle()
        self.playhead.play()

    def stop(self) -> None:
        """Pause playback and end the live loop, if any."""
        self.playhead.pause()
        if self._live_task is not None and not self._live_task.done():
            self._live_task.cancel()
        self._live_task = None

    def reset(self) -> None:
        self.stop()
        self.playhead.reset()
        if not self.is_exporting:
            self._paint(0, resize=True)

    def advance(self, dt_ms: float) -> float:
        """One playback tick: move the playhead by ``dt_ms`` and repaint."""
        position = self.playhead.advance(dt_ms)
        if not self.is_exporting:
            self._paint(position, resize=True)
        return position

    async def play_live(self, frame_interval_ms: float = LIVE_FRAME_INTERVAL_MS) -> None:
        """Drive ``advance`` from the event loop clock until ``stop()``."""
        self.play()
        loop = asyncio.get_running_loop()
        last = loop.time()
        while self.playhead.is_playing:
            await asyncio.sleep(frame_interval_ms / 1000.0)
            now = loop.time()
            dt_ms = (now - last) * 1000.0
            last = now
            if not self.playhead.is_playing:
                break
            self.advance(dt_ms)

    def start_live(self, frame_interval_ms: float = LIVE_FRAME_INTERVAL_MS) -> asyncio.Task:
        self.stop()
        self._live_task = asyncio.ensure_future(self.play_live(frame_interval_ms))
        return self._live_task

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    async def export(
        self,
        encoder: VideoEncoder,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> EncodedResult:
        """
        Encode the active block. A running export is cancelled first.

        Raises:
            ExportError: If the document has errors, layouts are missing or encoding fails
        """
        previous = self._export_task
        if previous is not None and not previous.done():
            logger.info("Superseding the running export")
            previous.cancel()
            with contextlib.suppress(asyncio.CancelledError, ExportError):
                await previous

        self._export_task = asyncio.ensure_future(self._run_export(encoder, on_progress))
        return await self._export_task

    async def _run_export(self, encoder: VideoEncoder,
                          on_progress: Optional[Callable[[float], None]]) -> EncodedResult:
        if self.errors:
            raise ExportError("Cannot export: " + "; ".join(self.errors))
        layouts = self.state.step_layouts
        if not layouts:
            raise ExportError(self.state.layout_error or "Nothing to export: layouts are not built")

        self.stop()
        export = self.state.export
        if export.result is not None:
            export.result.release()
            export.result = None
        export.error = None
        export.progress = 0.0
        export.is_exporting = True

        # Fixed for the whole export, sized for the tallest step.
        self._ensure_surface(required_canvas_height(layouts, self.layout_config))

        def _progress(value: float) -> None:
            export.progress = value
            if on_progress is not None:
                on_progress(value)

        try:
            result = await self._scheduler.run(
                self.surface,
                self.timeline,
                self.settings.fps,
                lambda ms: self._paint(ms, resize=False),
                encoder,
                _progress,
            )
            export.result = result
            return result
        except ExportError as exc:
            export.error = str(exc)
            logger.error(f"❌ {exc}")
            raise
        finally:
            export.is_exporting = False
            export.progress = 0.0
            self.playhead.reset()
            self._paint(0, resize=True)

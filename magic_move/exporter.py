"""
Export scheduler: drives the timeline frame by frame into an encoder.

The export clock is derived from the frame index, never from wall-clock
time, so the same document always encodes to the same frames.
"""
import asyncio
import logging
from typing import Callable, Optional

from PIL import Image

from .encoder import EncodedResult, VideoEncoder
from .errors import ExportError
from .timeline import Timeline

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
FrameCallback = Callable[[float], None]


class ExportScheduler:
    """
    Renders ``timeline`` at a fixed frame rate and hands every frame to an encoder.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug

    async def run(
        self,
        surface: Image.Image,
        timeline: Timeline,
        fps: int,
        render_frame: FrameCallback,
        encoder: VideoEncoder,
        on_progress: Optional[ProgressCallback] = None,
    ) -> EncodedResult:
        """
        Encode the whole timeline.

        Args:
            surface: Image ``render_frame`` paints into; its size is fixed for the run
            timeline: Timeline to play from 0 to ``total_ms``
            fps: Frames per second of the output
            render_frame: Paints the state at the given elapsed milliseconds onto ``surface``
            encoder: Sink receiving every frame
            on_progress: Receives ``elapsed / total_ms`` after each frame

        Returns:
            EncodedResult from the encoder

        Raises:
            ExportError: If rendering or encoding fails; partial output is discarded
        """
        if fps <= 0:
            raise ExportError(f"Invalid frame rate: {fps}")

        size = surface.size
        frame_ms = 1000.0 / fps
        frame_count = timeline.frame_count(fps)
        total_ms = timeline.total_ms
        logger.info("Exporting %d frames (%.0fms @ %dfps, %sx%s)", frame_count, total_ms, fps, *size)

        try:
            encoder.open(size, fps)
            for index in range(frame_count):
                elapsed = min(index * frame_ms, total_ms)
                render_frame(elapsed)
                if surface.size != size:
                    raise ExportError(f"Surface resized during export: {size} -> {surface.size}")
                encoder.write_frame(surface)

                if on_progress is not None:
                    done = min((index + 1) * frame_ms, total_ms)
                    on_progress(0.0 if total_ms <= 0 else done / total_ms)
                if self.debug and index % fps == 0:
                    logger.debug("Frame %d/%d at %.0fms", index + 1, frame_count, elapsed)

                # Hand control back to the event loop between frames.
                await asyncio.sleep(0)

            result = encoder.finish()
        except asyncio.CancelledError:
            logger.info("Export cancelled")
            encoder.abort()
            raise
        except ExportError:
            encoder.abort()
            raise
        except Exception as exc:
            encoder.abort()
            raise ExportError(f"Export failed: {exc}") from exc

        if on_progress is not None:
            on_progress(1.0)
        logger.info("Export finished: %s", result.path)
        return result

"""
Video encoder sinks.

``VideoEncoder`` is the seam the export scheduler talks to: ``open`` once,
``write_frame`` per rendered frame, then ``finish`` (success) or ``abort``
(failure, partial output discarded). ``WebmEncoder`` streams frames to
ffmpeg through imageio.
"""
import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import imageio.v2 as iio
import numpy as np
from PIL import Image

from .errors import ExportError
from .paths import DEFAULT_OUTPUT_NAME

logger = logging.getLogger(__name__)


@dataclass
class EncodedResult:
    """A finished video sitting in the workspace tmp dir."""
    path: Path
    width: int
    height: int
    fps: int
    frame_count: int
    duration_ms: float

    def save(self, destination) -> Path:
        """Copy the video to ``destination`` and return the destination path."""
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.path, destination)
        return destination

    def release(self) -> None:
        """Delete the temporary artifact."""
        if self.path.exists():
            self.path.unlink()
            logger.debug("Released export artifact %s", self.path)


class VideoEncoder:
    """Interface for encoder sinks."""

    def open(self, size: Tuple[int, int], fps: int) -> None:
        raise NotImplementedError

    def write_frame(self, surface: Image.Image) -> None:
        raise NotImplementedError

    def finish(self) -> EncodedResult:
        raise NotImplementedError

    def abort(self) -> None:
        raise NotImplementedError


class WebmEncoder(VideoEncoder):
    """
    VP9/WebM encoder backed by imageio's ffmpeg writer.

    Frames are written to a uniquely named file in ``tmp_dir``; the file only
    survives a successful ``finish``.
    """

    def __init__(self, tmp_dir, filename: str = DEFAULT_OUTPUT_NAME, codec: str = "libvpx-vp9",
                 crf: int = 32):
        self.tmp_dir = Path(tmp_dir)
        self.filename = filename
        self.codec = codec
        self.crf = crf
        self.path: Optional[Path] = None
        self._writer = None
        self._size: Optional[Tuple[int, int]] = None
        self._fps = 0
        self._frames = 0

    def open(self, size: Tuple[int, int], fps: int) -> None:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.tmp_dir / f"{uuid.uuid4().hex[:8]}-{self.filename}"
        self._size = size
        self._fps = fps
        self._frames = 0
        try:
            self._writer = iio.get_writer(
                str(self.path),
                format="FFMPEG",
                fps=fps,
                codec=self.codec,
                quality=None,
                macro_block_size=1,
                ffmpeg_log_level="error",
                output_params=["-b:v", "0", "-crf", str(self.crf)],
            )
        except Exception as exc:
            raise ExportError(f"Could not start the video encoder: {exc}") from exc
        logger.debug("Encoding %sx%s @ %sfps into %s", size[0], size[1], fps, self.path)

    def write_frame(self, surface: Image.Image) -> None:
        if self._writer is None:
            raise ExportError("Encoder is not open")
        if surface.size != self._size:
            raise ExportError(f"Frame size {surface.size} does not match stream size {self._size}")
        self._writer.append_data(np.asarray(surface.convert("RGB"), dtype=np.uint8))
        self._frames += 1

    def finish(self) -> EncodedResult:
        if self._writer is None:
            raise ExportError("Encoder is not open")
        writer, self._writer = self._writer, None
        writer.close()
        if self.path is None or not self.path.exists() or self.path.stat().st_size == 0:
            raise ExportError("Video stream ended early: encoder produced no output")
        return EncodedResult(
            path=self.path,
            width=self._size[0],
            height=self._size[1],
            fps=self._fps,
            frame_count=self._frames,
            duration_ms=self._frames * 1000.0 / self._fps,
        )

    def abort(self) -> None:
        writer, self._writer = self._writer, None
        if writer is not None:
            try:
                writer.close()
            except Exception as exc:
                logger.warning(f"Encoder did not close cleanly: {exc}")
        if self.path is not None and self.path.exists():
            self.path.unlink()
            logger.debug("Discarded partial export %s", self.path)

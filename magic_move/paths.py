#!/usr/bin/env python3
"""Utility helpers for resolving output and temporary directories.

Every public entry point supplies an explicit ``output_dir``. Encoders write
their in-progress video into a ``.mm_tmp`` sub-directory of it, so a failed
export never leaves a half-written file next to finished ones. If that
directory cannot be created (e.g. read-only share) we fall back to
:pyfunc:`tempfile.mkdtemp`.

The temporary directory is deleted automatically via an ``atexit`` hook
unless ``keep_tmp`` is True *and* it lives inside the output directory.
"""
from __future__ import annotations

import atexit
import errno
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

__all__ = ["prepare_workspace", "resolve_output_path", "DEFAULT_OUTPUT_NAME"]

DEFAULT_OUTPUT_NAME = "magic-move.webm"
TMP_DIR_NAME = ".mm_tmp"


def prepare_workspace(output_dir: str | Path, *, keep_tmp: bool = False) -> Dict[str, Path]:
    """Resolve the output directory, create a working tmp dir and register cleanup.

    Returns
    -------
    dict with keys:
        ``output_dir`` – absolute :class:`pathlib.Path`
        ``tmp_dir``    – absolute :class:`pathlib.Path` for in-progress artifacts
    """
    out_path = Path(output_dir).expanduser().resolve()
    out_path.mkdir(parents=True, exist_ok=True)

    proposed_tmp = out_path / TMP_DIR_NAME
    use_fallback = False
    try:
        proposed_tmp.mkdir(parents=True, exist_ok=True)
    except OSError as exc:  # permission denied, read-only FS, …
        if exc.errno not in (errno.EACCES, errno.EROFS):
            raise
        use_fallback = True

    tmp_path = Path(tempfile.mkdtemp(prefix="magicmove_tmp_")) if use_fallback else proposed_tmp
    should_cleanup = not keep_tmp or use_fallback

    def _cleanup() -> None:
        if should_cleanup and tmp_path.exists():
            shutil.rmtree(tmp_path, ignore_errors=True)

    atexit.register(_cleanup)
    logger.debug("Workspace ready: output=%s tmp=%s", out_path, tmp_path)

    return {
        "output_dir": out_path,
        "tmp_dir": tmp_path,
    }


def resolve_output_path(output_path: str | Path | None, output_dir: Path) -> Path:
    """
    Normalise the requested video path.

    A bare file name is placed inside ``output_dir``; a missing ``.webm``
    suffix is appended.
    """
    path = Path(output_path) if output_path else Path(DEFAULT_OUTPUT_NAME)
    if path.suffix.lower() != ".webm":
        path = path.with_name(f"{path.name}.webm")
    if not path.is_absolute() and len(path.parts) == 1:
        path = Path(output_dir) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path

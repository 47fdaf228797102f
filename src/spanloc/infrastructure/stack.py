"""Live call-stack capture.

Converts interpreter frames to Frame value objects. Bounded by limit so a
pathologically deep stack costs no more than a shallow one.
"""

from __future__ import annotations

import os
import sys

from spanloc.domain.model.frame import Frame
from spanloc.domain.model.meta_keys import MAX_CALLER_DEPTH


def capture_frames(skip: int = 0, limit: int = MAX_CALLER_DEPTH) -> tuple[Frame, ...]:
    """Capture up to limit frames of the caller's stack.

    Args:
        skip: Frames to skip above the caller of capture_frames()
        limit: Maximum number of frames returned

    Returns:
        Frames ordered innermost first. Empty if the stack is shallower
        than skip.
    """
    if limit <= 0:
        return ()
    try:
        # SLF001: sys._getframe is the documented fast path for stack access
        frame = sys._getframe(skip + 1)  # noqa: SLF001
    except ValueError:
        return ()

    frames: list[Frame] = []
    while frame is not None and len(frames) < limit:
        file = absolute_filename(frame.f_code.co_filename)
        frames.append(Frame(file=file, line=frame.f_lineno or 0))
        frame = frame.f_back
    return tuple(frames)


def absolute_filename(filename: str) -> str | None:
    """Absolute path for a code filename, None for synthetic ones.

    Synthetic filenames look like "<string>" or "<frozen importlib._bootstrap>".
    """
    if not filename or filename.startswith("<"):
        return None
    if os.path.isabs(filename):
        return filename
    return os.path.abspath(filename)

"""Call stack walker: first attributable frame of a stack window.

A frame is attributable when its file belongs to a known library or to
the application (see ProjectPaths). Internal frames of the engine and the
probes are skipped by the caller through the capture offset.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import TYPE_CHECKING

from spanloc.domain.model.meta_keys import DEFAULT_CACHE_SIZE, MAX_CALLER_DEPTH
from spanloc.infrastructure.lru_cache import LruCache
from spanloc.infrastructure.stack import capture_frames

if TYPE_CHECKING:
    from spanloc.domain.model.frame import Frame
    from spanloc.infrastructure.library_index import LibraryPathIndex
    from spanloc.infrastructure.project_paths import ProjectPaths


class CallStackWalker:
    """Finds the frame a span should be attributed to.

    Results are memoized per (cache key, line numbers of the window): a hit
    is reused only while the call site's stack shape is unchanged.
    """

    __slots__ = ("_cache", "_index", "_max_depth", "_paths")

    def __init__(
        self,
        index: LibraryPathIndex,
        paths: ProjectPaths,
        *,
        cache_size: int = DEFAULT_CACHE_SIZE,
        max_depth: int = MAX_CALLER_DEPTH,
    ) -> None:
        """Initialize walker.

        Args:
            index: Library path index for library classification
            paths: Application root rules
            cache_size: Capacity of the result cache
            max_depth: Max frames inspected per walk
        """
        self._index = index
        self._paths = paths
        self._max_depth = max_depth
        self._cache: LruCache[tuple[Hashable, tuple[int, ...]], Frame | None] = LruCache(
            cache_size
        )

    def find_caller(
        self,
        frames: Sequence[Frame],
        cache_key: Hashable | None = None,
    ) -> Frame | None:
        """First frame in library or application code.

        Args:
            frames: Stack window, innermost first. Truncated to max_depth.
            cache_key: Call-site key enabling memoization

        Returns:
            Matching frame, or None if no frame in the window matches.
        """
        window = tuple(frames[: self._max_depth])
        if cache_key is None:
            return self._first_match(window)

        key = (cache_key, tuple(frame.line for frame in window))
        return self._cache.fetch(key, lambda: self._first_match(window))

    def caller(self, skip: int = 0, cache_key: Hashable | None = None) -> Frame | None:
        """Capture the current stack and walk it.

        Args:
            skip: Frames to skip above the caller of this method
            cache_key: Call-site key enabling memoization
        """
        frames = capture_frames(skip + 1, self._max_depth)
        return self.find_caller(frames, cache_key)

    def is_attributable(self, path: str | None) -> bool:
        """Check that path is library or application code."""
        return self._index.classify(path) is not None or self._paths.is_project_path(path)

    @property
    def cache(self) -> LruCache[tuple[Hashable, tuple[int, ...]], Frame | None]:
        """Result cache (for diagnostics)."""
        return self._cache

    @property
    def max_depth(self) -> int:
        """Max frames inspected per walk."""
        return self._max_depth

    def _first_match(self, window: tuple[Frame, ...]) -> Frame | None:
        for frame in window:
            if self.is_attributable(frame.file):
                return frame
        return None

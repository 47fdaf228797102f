"""Source location engine: one attribution session.

Owns every stateful piece (library index, symbol index, both caches) so
their lifetime is the instrumentation session, not first access. Built once
at startup, then shared by reference with every instrumentation call site.

Example:
    >>> engine = SourceLocationEngine.from_config(EngineConfig(root=Path("/srv/app")))
    >>> meta = {}
    >>> _ = engine.process_instrument_options({"source_file": "/srv/app/jobs.py",
    ...                                        "source_line": 12}, meta)
    >>> engine.trace_preprocess_meta(meta)
    >>> meta
    {'source_location': 'jobs.py:12'}
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from spanloc.application.caller_walker import CallStackWalker
from spanloc.application.dispatcher import ResolutionDispatcher
from spanloc.application.method_locator import MethodSourceLocator
from spanloc.domain.model.meta_keys import ALLOWED_META_KEYS
from spanloc.domain.model.method_variant import MethodVariant
from spanloc.infrastructure.library_index import LibraryPathIndex
from spanloc.infrastructure.project_paths import ProjectPaths
from spanloc.infrastructure.symbol_index import MethodSymbolIndex

if TYPE_CHECKING:
    import os

    from spanloc.domain.model.configuration import EngineConfig
    from spanloc.domain.model.frame import Frame
    from spanloc.domain.model.source_location import SourceLocation
    from spanloc.infrastructure.lru_cache import LruCache

# Own frames are never attributed
_SELF_LIBRARY = "spanloc"

# Engine method between the caller and the dispatcher
_ENGINE_FRAMES = 1


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Counters of one bounded cache.

    Attributes:
        size: Current number of entries
        capacity: Maximum number of entries
        hits: Lookups served from cache
        misses: Lookups that computed
    """

    size: int
    capacity: int
    hits: int
    misses: int


@dataclass(frozen=True, slots=True)
class EngineStats:
    """Snapshot of engine state for diagnostics.

    Attributes:
        libraries: Number of libraries in the path index
        indexed_types: Number of type names in the symbol index
        caller_cache: Stack walker cache counters
        method_cache: Method locator cache counters
    """

    libraries: int
    indexed_types: int
    caller_cache: CacheStats
    method_cache: CacheStats


class SourceLocationEngine:
    """Facade over the attribution components of one session."""

    __slots__ = ("_config", "_dispatcher", "_index", "_locator", "_paths", "_symbols", "_walker")

    def __init__(
        self,
        config: EngineConfig,
        index: LibraryPathIndex,
        *,
        paths: ProjectPaths | None = None,
        symbols: MethodSymbolIndex | None = None,
    ) -> None:
        """Wire components around a prebuilt library index.

        Args:
            config: Engine configuration
            index: Library path index
            paths: Application root rules (default: from config)
            symbols: Method symbol index (default: empty, filled on demand)
        """
        self._config = config
        self._index = index
        self._paths = paths if paths is not None else ProjectPaths.from_config(config)
        self._symbols = symbols if symbols is not None else MethodSymbolIndex()
        self._walker = CallStackWalker(
            index,
            self._paths,
            cache_size=config.cache_size,
            max_depth=config.max_caller_depth,
        )
        self._locator = MethodSourceLocator(self._symbols, cache_size=config.cache_size)
        self._dispatcher = ResolutionDispatcher(
            index,
            self._paths,
            self._walker,
            self._locator,
            caller_skip=config.caller_skip + _ENGINE_FRAMES,
        )

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        *,
        libraries: Iterable[tuple[str, Iterable[str | os.PathLike[str]]]] | None = None,
        scan_modules: Iterable[str] = (),
    ) -> SourceLocationEngine:
        """Build an engine for one session.

        Args:
            config: Engine configuration
            libraries: (name, source roots) pairs. None = installed distributions.
            scan_modules: Imported modules whose classes are indexed up front

        Returns:
            Ready engine
        """
        ignored = config.ignored_libraries | {_SELF_LIBRARY}
        if libraries is None:
            index = LibraryPathIndex.from_installed(ignored, project_root=config.root)
        else:
            index = LibraryPathIndex.build(libraries, ignored)

        symbols = MethodSymbolIndex()
        symbols.scan(scan_modules)
        return cls(config, index, symbols=symbols)

    # Dispatcher operations

    def process_trace_meta(self, meta: MutableMapping[str, object]) -> None:
        """Stack-walk fallback for a trace's root span."""
        self._dispatcher.process_trace_meta(meta)

    def process_instrument_options(
        self,
        opts: Mapping[str, object],
        meta: MutableMapping[str, object],
    ) -> MutableMapping[str, object]:
        """Resolve location for an instrumented span."""
        self._dispatcher.process_instrument_options(opts, meta)
        return meta

    def process_normalizer_meta(
        self,
        payload: object,
        meta: MutableMapping[str, object],
        **opts: object,
    ) -> MutableMapping[str, object]:
        """Resolve location for a normalized span."""
        self._dispatcher.process_normalizer_meta(payload, meta, **opts)
        return meta

    def trace_preprocess_meta(self, meta: MutableMapping[str, object]) -> None:
        """Rewrite file/line into a canonical location."""
        self._dispatcher.trace_preprocess_meta(meta)

    # Direct resolution

    def sanitize_source_location(self, path: object, line: object = None) -> str | None:
        """Canonical location string for a file, or None."""
        return self._dispatcher.sanitize_source_location(path, line)

    def resolve_source_location(self, path: object, line: object = None) -> SourceLocation | None:
        """Typed location for a file, or None."""
        return self._dispatcher.resolve_source_location(path, line)

    def find_caller(
        self,
        frames: Sequence[Frame],
        cache_key: Hashable | None = None,
    ) -> Frame | None:
        """First library or application frame of a stack window."""
        return self._walker.find_caller(frames, cache_key)

    def locate(
        self,
        type_name: str,
        method_name: str,
        variant: MethodVariant | str = MethodVariant.INSTANCE_METHOD,
    ) -> tuple[str, int] | None:
        """Definition site of a named method."""
        return self._locator.locate(type_name, method_name, variant)

    def classify(self, path: str | None) -> str | None:
        """Library enclosing path, or None."""
        return self._index.classify(path)

    def is_project_path(self, path: str | None) -> bool:
        """Check that path is first-party application code."""
        return self._paths.is_project_path(path)

    # Introspection

    @property
    def allowed_meta_keys(self) -> tuple[str, ...]:
        """Metadata keys this engine writes on spans."""
        return ALLOWED_META_KEYS

    @property
    def config(self) -> EngineConfig:
        """Engine configuration."""
        return self._config

    @property
    def library_index(self) -> LibraryPathIndex:
        """Library path index."""
        return self._index

    def stats(self) -> EngineStats:
        """Snapshot of index sizes and cache counters."""
        return EngineStats(
            libraries=len(self._index),
            indexed_types=len(self._symbols),
            caller_cache=_cache_stats(self._walker.cache),
            method_cache=_cache_stats(self._locator.cache),
        )


def _cache_stats(cache: LruCache[Any, Any]) -> CacheStats:
    return CacheStats(
        size=len(cache),
        capacity=cache.capacity,
        hits=cache.hits,
        misses=cache.misses,
    )

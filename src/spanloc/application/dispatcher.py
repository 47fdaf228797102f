"""Resolution dispatcher: the attribution entry points used by the agent.

Each operation takes span metadata (a mutable mapping), applies a fixed
precedence over the location inputs it carries, and writes the result back
in place:

    source_location    canonical "path:line" or library name
    source_file        absolute path, rewritten at preprocess time
    source_line        line number, rewritten at preprocess time

Attribution is best-effort metadata. No operation raises: ambiguous input is
resolved by precedence and logged as a warning, unresolvable input leaves
the span without attribution.
"""

from __future__ import annotations

import functools
import logging
import os
from collections.abc import Callable, Hashable, Mapping, MutableMapping, Sequence
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from spanloc.domain.model.frame import Frame
from spanloc.domain.model.location_hint import (
    CanonicalHint,
    FileLineHint,
    MethodHint,
    NoHint,
    select_hint,
)
from spanloc.domain.model.meta_keys import (
    INSTRUMENT_LOCATION,
    NESTED_META,
    PAYLOAD_SOURCE_LOCATION,
    SOURCE_FILE,
    SOURCE_LINE,
    SOURCE_LOCATION,
    SOURCE_LOCATION_HINT,
)
from spanloc.domain.model.source_location import LibraryLocation, ProjectLocation

if TYPE_CHECKING:
    from spanloc.application.caller_walker import CallStackWalker
    from spanloc.application.method_locator import MethodSourceLocator
    from spanloc.domain.model.source_location import SourceLocation
    from spanloc.infrastructure.library_index import LibraryPathIndex
    from spanloc.infrastructure.project_paths import ProjectPaths

logger = logging.getLogger(__name__)

Meta = MutableMapping[str, object]

P = ParamSpec("P")
R = TypeVar("R")

# Frames between the stack capture and the operation's caller:
# _walk, the operation, its _best_effort wrapper
_INTERNAL_FRAMES = 3


def _best_effort(
    meta_arg: int | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R | None]]:
    """Absorb any exception raised while attributing.

    A missing source location must never break the operation being traced.
    On failure the wrapped operation returns its metadata argument
    (positional index meta_arg) unchanged, or None.
    """

    def decorate(method: Callable[P, R]) -> Callable[P, R | None]:
        @functools.wraps(method)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            try:
                return method(*args, **kwargs)
            # BLE001: attribution runs inside arbitrary application code;
            # any failure degrades to "no attribution".
            except Exception:  # noqa: BLE001
                logger.warning(
                    "Source location attribution failed in %s", method.__name__, exc_info=True
                )
                if meta_arg is not None and len(args) > meta_arg:
                    return args[meta_arg]  # type: ignore[return-value]
                return kwargs.get("meta")  # type: ignore[return-value]

        return wrapper

    return decorate


class ResolutionDispatcher:
    """Applies location precedence rules and writes span metadata."""

    __slots__ = ("_caller_skip", "_index", "_locator", "_paths", "_walker")

    def __init__(
        self,
        index: LibraryPathIndex,
        paths: ProjectPaths,
        walker: CallStackWalker,
        locator: MethodSourceLocator,
        *,
        caller_skip: int = 0,
    ) -> None:
        """Initialize dispatcher.

        Args:
            index: Library path index
            paths: Application root rules
            walker: Call stack walker (fallback resolution)
            locator: Method source locator (named-method hints)
            caller_skip: Extra frames to skip above the operation's caller
        """
        self._index = index
        self._paths = paths
        self._walker = walker
        self._locator = locator
        self._caller_skip = caller_skip

    @_best_effort()
    def process_trace_meta(self, meta: Meta) -> None:
        """Fall back to the caller's location for a trace's root span.

        No-op when meta already carries a location or a file, so repeated
        calls never walk the stack twice.
        """
        if meta.get(SOURCE_LOCATION) or meta.get(SOURCE_FILE):
            return

        if meta.get(SOURCE_LINE) is not None:
            logger.warning("Ignoring source_line without source_file")

        frame = self._walk()
        if frame is not None:
            _write_frame(meta, frame)

    @_best_effort(meta_arg=2)
    def process_instrument_options(self, opts: Mapping[str, object], meta: Meta) -> Meta:
        """Resolve the location of a span opened through instrument().

        Inputs are read from opts, then from opts["meta"]. Precedence:
        canonical location, named-method hint, explicit file and line,
        instrumentation-site marker inside the application, stack walk.

        Returns:
            meta, updated in place.
        """
        nested = opts.get(NESTED_META)
        if not isinstance(nested, Mapping):
            nested = {}

        location = _option(opts, nested, SOURCE_LOCATION)
        file = _option(opts, nested, SOURCE_FILE)
        line = _option(opts, nested, SOURCE_LINE)
        raw_hint = _option(opts, nested, SOURCE_LOCATION_HINT)

        if location and (file or line is not None):
            logger.warning(
                "Found both source_location and source_file or source_line, using source_location\n"
                "  location=%s; file=%s; line=%s",
                location,
                file,
                line,
            )

        method = _parse_hint(raw_hint, meta)
        hint = select_hint(location=location, method=method, file=file, line=line)

        match hint:
            case CanonicalHint(location=canonical):
                meta[SOURCE_LOCATION] = canonical

            case MethodHint():
                resolved = self._locate(hint, meta)
                if resolved is not None:
                    meta[SOURCE_FILE], meta[SOURCE_LINE] = resolved

            case FileLineHint(file=hint_file, line=hint_line):
                meta[SOURCE_FILE] = hint_file
                meta[SOURCE_LINE] = hint_line

            case NoHint():
                marker = _as_frame(opts.get(INSTRUMENT_LOCATION))
                if marker is not None and self._paths.is_project_path(marker.file):
                    _write_frame(meta, marker)
                else:
                    if line is not None:
                        logger.warning("Ignoring source_line without source_file")
                    frame = self._walk(_options_key(opts))
                    if frame is not None:
                        _write_frame(meta, frame)

        return meta

    @_best_effort(meta_arg=2)
    def process_normalizer_meta(
        self,
        payload: object,
        meta: Meta,
        **opts: object,
    ) -> Meta:
        """Resolve the location of a span built by a normalizer.

        Precedence: named-method hint, canonical location (from opts, then
        meta), explicit file and line, location embedded in the payload,
        stack walk keyed by opts["cache_key"].

        Returns:
            meta, updated in place.
        """
        location = opts.get(SOURCE_LOCATION)
        file = opts.get(SOURCE_FILE)
        line = opts.get(SOURCE_LINE)

        if location and (file or line is not None):
            logger.warning(
                "Found both source_location and source_file or source_line in normalizer\n"
                "  location=%s; file=%s; line=%s",
                location,
                file,
                line,
            )

        location = location or meta.get(SOURCE_LOCATION)
        method = _parse_hint(opts.get(SOURCE_LOCATION_HINT), meta)
        hint = select_hint(
            location=location, method=method, file=file, line=line, method_first=True
        )

        if isinstance(hint, MethodHint):
            resolved = self._locate(hint, meta)
            if resolved is not None:
                logger.debug("normalizer source_location=%s:%s", *resolved)
                meta[SOURCE_FILE], meta[SOURCE_LINE] = resolved
                return meta
            # Unresolved hint: continue with the remaining inputs
            hint = select_hint(location=location, file=file, line=line)

        match hint:
            case CanonicalHint(location=canonical):
                meta[SOURCE_LOCATION] = canonical

            case FileLineHint(file=hint_file, line=hint_line):
                meta[SOURCE_FILE] = hint_file
                meta[SOURCE_LINE] = hint_line

            case MethodHint() | NoHint():
                frame = None
                if isinstance(payload, Mapping):
                    frame = _as_frame(payload.get(PAYLOAD_SOURCE_LOCATION))
                if frame is None:
                    frame = self._walk(_hashable_or_none(opts.get("cache_key")))
                if frame is not None:
                    logger.debug("normalizer source_location=%s", frame)
                    _write_frame(meta, frame)

        return meta

    @_best_effort()
    def trace_preprocess_meta(self, meta: Meta) -> None:
        """Rewrite source_file/source_line into a canonical source_location.

        Runs once per span before the trace is shipped. Files outside both
        the application and any known library lose their attribution.
        """
        line = meta.pop(SOURCE_LINE, None)
        file = meta.pop(SOURCE_FILE, None)
        location = meta.pop(SOURCE_LOCATION, None)

        if location is not None:
            meta[SOURCE_LOCATION] = location
            if file or line is not None:
                logger.warning(
                    "Found both source_location and source_file or source_line, "
                    "using source_location\n  location=%s; file=%s; line=%s",
                    location,
                    file,
                    line,
                )
            if not isinstance(location, str):
                logger.warning("Found non-string value for source_location; skipping")
                del meta[SOURCE_LOCATION]
        elif file:
            sanitized = self.sanitize_source_location(file, line)
            if sanitized is not None:
                meta[SOURCE_LOCATION] = sanitized
        elif line is not None:
            logger.warning("Ignoring source_line without source_file; source_line=%s", line)

        if meta.get(SOURCE_LOCATION):
            logger.debug("source_location=%s", meta[SOURCE_LOCATION])

    def resolve_source_location(self, path: object, line: object = None) -> SourceLocation | None:
        """Classify a resolved file as library or project code.

        Library classification comes first: libraries may be vendored inside
        the application root. Library line numbers are dropped.

        Returns:
            LibraryLocation, ProjectLocation relative to the root, or None for
            files outside both.
        """
        if isinstance(path, os.PathLike):
            path = os.fspath(path)
        if not isinstance(path, str) or not path:
            return None

        library = self._index.classify(path)
        if library is not None:
            return LibraryLocation(library)

        if not self._paths.is_project_path(path):
            return None

        return ProjectLocation(path=self._paths.relative(path), line=_positive_line(line))

    def sanitize_source_location(self, path: object, line: object = None) -> str | None:
        """Canonical location string for a file and optional line.

        Returns:
            "relative/path:line", "relative/path", library name, or None.
        """
        resolved = self.resolve_source_location(path, line)
        return None if resolved is None else resolved.canonical()

    def _locate(self, hint: MethodHint, meta: Meta) -> tuple[str, int] | None:
        """Resolve a named-method hint, consuming it from meta.

        The hint key is removed whether or not it resolves, so downstream
        processing never retries it.
        """
        meta.pop(SOURCE_LOCATION_HINT, None)
        return self._locator.locate(hint.type_name, hint.method_name, hint.variant)

    def _walk(self, cache_key: Hashable | None = None) -> Frame | None:
        """Stack-walk fallback starting at the operation's caller."""
        return self._walker.caller(_INTERNAL_FRAMES + self._caller_skip, cache_key)


def _parse_hint(raw_hint: object, meta: Meta) -> MethodHint | None:
    """Parse a named-method hint. A malformed hint is dropped from meta."""
    if raw_hint is None:
        return None
    method = MethodHint.parse(raw_hint)
    if method is None:
        logger.warning("Ignoring malformed source_location_hint: %r", raw_hint)
        meta.pop(SOURCE_LOCATION_HINT, None)
    return method


def _option(opts: Mapping[str, object], nested: Mapping[str, object], key: str) -> object:
    """Value from opts, falling back to the nested meta mapping."""
    value = opts.get(key)
    return nested.get(key) if value is None else value


def _positive_line(line: object) -> int | None:
    """Line number if it is a positive int, else None."""
    if isinstance(line, int) and not isinstance(line, bool) and line > 0:
        return line
    return None


def _write_frame(meta: Meta, frame: Frame) -> None:
    meta[SOURCE_FILE] = frame.file
    meta[SOURCE_LINE] = frame.line


def _as_frame(value: object) -> Frame | None:
    """Coerce a location marker to Frame.

    Accepts Frame, objects with filename/lineno (inspect.FrameInfo,
    traceback.FrameSummary) and (file, line) pairs.
    """
    if value is None or isinstance(value, Frame):
        return value

    file: object
    line: object
    if hasattr(value, "filename") and hasattr(value, "lineno"):
        file, line = value.filename, value.lineno  # type: ignore[attr-defined]
    elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) == 2:
        file, line = value
    else:
        return None

    if isinstance(file, os.PathLike):
        file = os.fspath(file)
    if not isinstance(file, str) or not file:
        return None
    if not isinstance(line, int) or isinstance(line, bool) or line < 0:
        line = 0
    return Frame(file=file, line=line)


def _options_key(opts: Mapping[str, object]) -> Hashable | None:
    """Stable cache key for instrumentation options, None if unhashable."""
    try:
        frozen = _freeze(opts)
        hash(frozen)
    except TypeError:
        return None
    return frozen


def _freeze(value: object) -> Hashable:
    """Recursively convert mappings and sequences to hashable equivalents."""
    if isinstance(value, Mapping):
        return frozenset((key, _freeze(item)) for key, item in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(item) for item in value)
    if not isinstance(value, Hashable):
        raise TypeError(f"unhashable option value: {type(value).__name__}")
    return value


def _hashable_or_none(value: object) -> Hashable | None:
    """Value itself if usable as a cache key, else None."""
    if value is None:
        return None
    try:
        hash(value)
    except TypeError:
        return None
    return value

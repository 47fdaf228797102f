"""Engine configuration.

Immutable settings for one instrumentation session. The agent's own
configuration loader builds this once at startup; from_mapping() accepts
its string-keyed settings.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from spanloc.domain.exceptions import InvalidConfigError
from spanloc.domain.model.meta_keys import DEFAULT_CACHE_SIZE, MAX_CALLER_DEPTH

_DEFAULT_RUNTIME_VERSION = f"{sys.version_info.major}.{sys.version_info.minor}"


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Attribution engine configuration.

    Immutable configuration object with FAIL-FIRST validation.

    Attributes:
        root: Application root directory (absolute). Files under it are
            first-party code, attributed by relative path.
        cache_size: Capacity of each bounded cache.
        ignored_libraries: Library names never attributed (normalized).
        vendor_paths: Dependency directories excluded from the root.
            None = detect from the running interpreter.
        runtime_version: "major.minor" used to recognize stdlib paths.
        max_caller_depth: Max call-stack frames inspected per walk.
        caller_skip: Extra internal frames to skip above the engine.
    """

    root: Path
    cache_size: int = DEFAULT_CACHE_SIZE
    ignored_libraries: frozenset[str] = field(default_factory=frozenset)
    vendor_paths: tuple[Path, ...] | None = None
    runtime_version: str = _DEFAULT_RUNTIME_VERSION
    max_caller_depth: int = MAX_CALLER_DEPTH
    caller_skip: int = 0

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if self.root is None:
            raise TypeError("root must not be None")
        if not self.root.is_absolute():
            raise InvalidConfigError("root", f"must be absolute, got {self.root}")
        if self.cache_size < 1:
            raise InvalidConfigError("cache_size", f"must be >= 1, got {self.cache_size}")
        if self.max_caller_depth < 1:
            raise InvalidConfigError(
                "max_caller_depth", f"must be >= 1, got {self.max_caller_depth}"
            )
        if self.caller_skip < 0:
            raise InvalidConfigError("caller_skip", f"must be >= 0, got {self.caller_skip}")
        if not self.runtime_version:
            raise InvalidConfigError("runtime_version", "must not be empty")

        # Normalize once so lookups compare like with like
        normalized = frozenset(normalize_library_name(n) for n in self.ignored_libraries)
        object.__setattr__(self, "ignored_libraries", normalized)

    def is_ignored(self, library: str) -> bool:
        """Check if library is excluded from attribution."""
        return normalize_library_name(library) in self.ignored_libraries

    @classmethod
    def from_mapping(cls, settings: Mapping[str, object]) -> EngineConfig:
        """Build from the agent's string-keyed settings.

        Recognized keys:
            root: Application root (required)
            source_location_cache_size: Cache capacity
            source_location_ignored_libraries / source_location_ignored_gems:
                Names as list or comma-separated string
            vendor_paths: Paths as list or os.pathsep-separated string
            runtime_version: "major.minor"
            max_caller_depth: Frame cap

        Raises:
            InvalidConfigError: If root is missing or a value is invalid.
        """
        root = settings.get("root")
        if not root:
            raise InvalidConfigError("root", "is required")

        ignored = settings.get("source_location_ignored_libraries")
        if ignored is None:
            ignored = settings.get("source_location_ignored_gems")

        vendor_raw = settings.get("vendor_paths")
        vendor_paths = (
            None
            if vendor_raw is None
            else tuple(absolute_path(p) for p in _split(vendor_raw, os.pathsep))
        )

        return cls(
            root=absolute_path(str(root)),
            cache_size=_int_setting(settings, "source_location_cache_size", DEFAULT_CACHE_SIZE),
            ignored_libraries=frozenset(_split(ignored, ",")),
            vendor_paths=vendor_paths,
            runtime_version=str(settings.get("runtime_version") or _DEFAULT_RUNTIME_VERSION),
            max_caller_depth=_int_setting(settings, "max_caller_depth", MAX_CALLER_DEPTH),
        )


def absolute_path(path: str | os.PathLike[str]) -> Path:
    """Absolute, normalized form of path. Symlinks are kept as given.

    Frame filenames are not resolved either, so both sides of a prefix
    comparison must use the same spelling of a symlinked deploy root.
    """
    return Path(os.path.abspath(os.path.expanduser(os.fspath(path))))


def normalize_library_name(name: str) -> str:
    """Normalize library name for consistent matching.

    - Lowercase
    - Replace - and . with _
    """
    return name.lower().replace("-", "_").replace(".", "_")


def _split(value: object, separator: str) -> tuple[str, ...]:
    """Split list-or-string setting into non-empty stripped items."""
    if value is None:
        return ()
    items: Iterable[object]
    if isinstance(value, str):
        items = value.split(separator)
    elif isinstance(value, Iterable):
        items = value
    else:
        raise InvalidConfigError("setting", f"expected list or string, got {type(value).__name__}")
    return tuple(s for s in (str(item).strip() for item in items) if s)


def _int_setting(settings: Mapping[str, object], key: str, default: int) -> int:
    """Read integer setting, accepting numeric strings."""
    value = settings.get(key)
    if value is None:
        return default
    try:
        return int(str(value))
    except ValueError:
        raise InvalidConfigError(key, f"expected integer, got {value!r}") from None

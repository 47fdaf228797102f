"""spanloc domain layer.

Pure domain logic with no external dependencies.
Only imports: standard library (typing, dataclasses, enum, os, pathlib).
"""

from spanloc.domain.exceptions import (
    InvalidCapacityError,
    InvalidConfigError,
    SpanLocError,
    UnknownVariantError,
)
from spanloc.domain.model import (
    CanonicalHint,
    EngineConfig,
    FileLineHint,
    Frame,
    LibraryLocation,
    LocationHint,
    MethodHint,
    MethodVariant,
    NoHint,
    ProjectLocation,
    SourceLocation,
)

__all__ = [
    "CanonicalHint",
    "EngineConfig",
    "FileLineHint",
    "Frame",
    "InvalidCapacityError",
    "InvalidConfigError",
    "LibraryLocation",
    "LocationHint",
    "MethodHint",
    "MethodVariant",
    "NoHint",
    "ProjectLocation",
    "SourceLocation",
    "SpanLocError",
    "UnknownVariantError",
]

"""Domain model entities."""

from spanloc.domain.model.configuration import (
    EngineConfig,
    absolute_path,
    normalize_library_name,
)
from spanloc.domain.model.frame import Frame
from spanloc.domain.model.location_hint import (
    CanonicalHint,
    FileLineHint,
    LocationHint,
    MethodHint,
    NoHint,
    select_hint,
)
from spanloc.domain.model.method_variant import MethodVariant
from spanloc.domain.model.source_location import (
    LibraryLocation,
    ProjectLocation,
    SourceLocation,
)

__all__ = [
    "CanonicalHint",
    "EngineConfig",
    "FileLineHint",
    "Frame",
    "LibraryLocation",
    "LocationHint",
    "MethodHint",
    "MethodVariant",
    "NoHint",
    "ProjectLocation",
    "SourceLocation",
    "absolute_path",
    "normalize_library_name",
    "select_hint",
]

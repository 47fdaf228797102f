"""Application layer for source location attribution.

Components:
- caller_walker: First attributable frame of a stack window
- method_locator: Definition site of a named method
- dispatcher: Metadata entry points with resolution precedence
- engine: Session facade owning indexes and caches
- reporters: Diagnostics output (rich)
"""

from spanloc.application.caller_walker import CallStackWalker
from spanloc.application.dispatcher import ResolutionDispatcher
from spanloc.application.engine import CacheStats, EngineStats, SourceLocationEngine
from spanloc.application.method_locator import MethodSourceLocator

__all__ = [
    "CacheStats",
    "CallStackWalker",
    "EngineStats",
    "MethodSourceLocator",
    "ResolutionDispatcher",
    "SourceLocationEngine",
]

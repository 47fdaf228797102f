"""spanloc - source location attribution for tracing spans."""

__version__ = "0.1.0"

from spanloc.application.engine import SourceLocationEngine
from spanloc.domain.model.configuration import EngineConfig

__all__ = ["EngineConfig", "SourceLocationEngine", "__version__"]

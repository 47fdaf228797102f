"""Resolved source location: project code or library code.

Absent attribution is represented by None, not by a third variant.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProjectLocation:
    """Location inside the application root.

    Attributes:
        path: Path relative to the application root (POSIX separators)
        line: Line number (1-based) or None if unknown
    """

    path: str
    line: int | None = None

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.path:
            raise ValueError("path must not be empty")
        if self.line is not None and self.line <= 0:
            raise ValueError(f"line must be > 0, got {self.line}")

    def canonical(self) -> str:
        """Canonical form: path:line, or bare path without line."""
        if self.line is None:
            return self.path
        return f"{self.path}:{self.line}"


@dataclass(frozen=True, slots=True)
class LibraryLocation:
    """Location inside a third-party library. Line numbers are not kept.

    Attributes:
        name: Library name as registered in the path index
    """

    name: str

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.name:
            raise ValueError("name must not be empty")

    def canonical(self) -> str:
        """Canonical form: bare library name."""
        return self.name


SourceLocation = ProjectLocation | LibraryLocation

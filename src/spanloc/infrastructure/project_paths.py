"""Application root membership rules.

A path is first-party when it lies under the application root but not in
a dependency directory (site-packages, virtualenv) or the interpreter's
standard library, even when those live inside the root.
"""

from __future__ import annotations

import os
import sys
import sysconfig
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spanloc.domain.model.configuration import EngineConfig


def detect_vendor_paths() -> tuple[Path, ...]:
    """Dependency directories of the running interpreter.

    site-packages from sysconfig (not hardcoded), plus the active
    virtualenv prefix when running inside one.
    """
    paths = {
        Path(p)
        for p in (sysconfig.get_path("purelib"), sysconfig.get_path("platlib"))
        if p is not None
    }
    if sys.prefix != sys.base_prefix:
        paths.add(Path(sys.prefix))
    return tuple(sorted(paths))


def detect_stdlib_paths() -> tuple[Path, ...]:
    """Standard library directories of the running interpreter."""
    return tuple(
        sorted(
            {
                Path(p)
                for p in (sysconfig.get_path("stdlib"), sysconfig.get_path("platstdlib"))
                if p is not None
            }
        )
    )


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    """Decides whether a file belongs to the application.

    Prefixes are stored as strings: membership is a string comparison per
    prefix, no filesystem access.

    Attributes:
        root: Application root without trailing separator
        excluded: Vendor and stdlib prefixes excluded from the root
        runtime_marker: Path fragment identifying stdlib installs
            of this runtime version (e.g. "/lib/python3.12/")
    """

    root: str
    excluded: tuple[str, ...] = ()
    runtime_marker: str | None = None

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.root:
            raise ValueError("root must not be empty")

    @classmethod
    def from_config(cls, config: EngineConfig) -> ProjectPaths:
        """Build rules from engine configuration."""
        vendor = config.vendor_paths if config.vendor_paths is not None else detect_vendor_paths()
        excluded = tuple(_strip(os.fspath(p)) for p in (*vendor, *detect_stdlib_paths()))
        marker = f"{os.sep}lib{os.sep}python{config.runtime_version}{os.sep}"
        return cls(root=_strip(os.fspath(config.root)), excluded=excluded, runtime_marker=marker)

    def is_project_path(self, path: str | None) -> bool:
        """Check that path is first-party application code."""
        if not path:
            return False
        # Must be in the project root
        if not _is_under(path, self.root):
            return False
        # Must not be a dependency or stdlib location
        if any(_is_under(path, prefix) for prefix in self.excluded):
            return False
        if self.runtime_marker is not None and self.runtime_marker in path:
            return False
        return True

    def relative(self, path: str) -> str:
        """Path relative to the root, POSIX separators."""
        return PurePath(path).relative_to(self.root).as_posix()


def _is_under(path: str, prefix: str) -> bool:
    """Segment-aware prefix test: /app/root2 is not under /app/root."""
    if prefix.endswith(os.sep):
        return path.startswith(prefix)
    return path == prefix or path.startswith(prefix + os.sep)


def _strip(path: str) -> str:
    """Drop trailing separators, keeping a bare filesystem root."""
    stripped = path.rstrip(os.sep)
    return stripped or path

"""Library path index: prefix tree over installed library roots.

Classifies an absolute file path as belonging to a third-party library in
O(path segments). Built once at startup, read-only afterwards, so lookups
need no locking.
"""

from __future__ import annotations

import logging
import os
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path

from spanloc.domain.model.configuration import normalize_library_name

logger = logging.getLogger(__name__)

_METADATA_SUFFIXES = (".dist-info", ".egg-info")


@dataclass(slots=True)
class PathTrieNode:
    """Trie node: path segment → child, plus optional library label.

    Attributes:
        children: Segment → child node mapping
        label: Library name if a library root ends at this node
    """

    children: dict[str, PathTrieNode] = field(default_factory=dict)
    label: str | None = None


class LibraryPathIndex:
    """Maps file paths to the library whose source root encloses them.

    Lookup returns the label of the first labeled node on the path,
    i.e. the nearest enclosing library root.
    """

    __slots__ = ("_libraries", "_root")

    def __init__(self) -> None:
        """Create empty index. Use build() or from_installed()."""
        self._root = PathTrieNode()
        self._libraries: dict[str, tuple[str, ...]] = {}

    @classmethod
    def build(
        cls,
        libraries: Iterable[tuple[str, Iterable[str | os.PathLike[str]]]],
        ignored: frozenset[str] = frozenset(),
    ) -> LibraryPathIndex:
        """Build index from (library name, source roots) pairs.

        Args:
            libraries: Library name with its source root directories
            ignored: Normalized library names to skip

        Returns:
            Populated index
        """
        index = cls()
        for name, roots in libraries:
            if normalize_library_name(name) in ignored:
                logger.debug("Skipping ignored library %s", name)
                continue
            for root in roots:
                index._insert(os.fspath(root), name)
        return index

    @classmethod
    def from_installed(
        cls,
        ignored: frozenset[str] = frozenset(),
        project_root: Path | None = None,
        distributions: Iterable[metadata.Distribution] | None = None,
    ) -> LibraryPathIndex:
        """Build index from distributions visible to importlib.metadata.

        Args:
            ignored: Normalized library names to skip
            project_root: Application root. Editable-install paths inside it
                are not registered, so first-party code stays first-party.
            distributions: Distributions to index (default: all installed)

        Returns:
            Populated index
        """
        if distributions is None:
            distributions = metadata.distributions()
        return cls.build(_installed_libraries(distributions, project_root), ignored)

    def classify(self, path: str | None) -> str | None:
        """Return library name enclosing path, or None.

        Args:
            path: Absolute file path (None allowed)

        Returns:
            Label of the nearest enclosing library root, None if the path
            falls off the trie first.
        """
        if not path:
            return None

        node = self._root
        for segment in _segments(path):
            child = node.children.get(segment)
            if child is None:
                return None
            if child.label is not None:
                return child.label
            node = child
        return None

    @property
    def libraries(self) -> dict[str, tuple[str, ...]]:
        """Registered library name → source roots (copy)."""
        return dict(self._libraries)

    def __len__(self) -> int:
        """Number of registered libraries."""
        return len(self._libraries)

    def _insert(self, root: str, name: str) -> None:
        """Insert one source root, labeling its last segment with name."""
        segments = _segments(root)
        if not segments:
            return

        node = self._root
        for segment in segments:
            node = node.children.setdefault(segment, PathTrieNode())
        if node.label is not None and node.label != name:
            # First registration keeps the root
            logger.warning(
                "Root %s already belongs to %s; not registering %s", root, node.label, name
            )
            return
        node.label = name

        self._libraries[name] = (*self._libraries.get(name, ()), root)


def _segments(path: str) -> list[str]:
    """Split path into non-empty segments."""
    if os.altsep:
        path = path.replace(os.altsep, os.sep)
    return [s for s in path.split(os.sep) if s]


def _installed_libraries(
    distributions: Iterable[metadata.Distribution],
    project_root: Path | None,
) -> Iterator[tuple[str, tuple[Path, ...]]]:
    """Yield (name, source roots) for each installed distribution.

    A directory claimed by several distributions (a namespace shared the
    old way, with an __init__.py each) is narrowed to the entries each
    distribution actually installed below it.
    """
    candidates: list[tuple[str, metadata.Distribution, tuple[Path, ...]]] = []
    claims: Counter[Path] = Counter()
    for dist in distributions:
        try:
            name = dist.metadata["Name"]
            if not name:
                continue
            roots = tuple(_distribution_roots(dist, project_root))
        except (OSError, ValueError, KeyError) as exc:
            logger.debug("Skipping distribution with unreadable metadata: %s", exc)
            continue
        if roots:
            candidates.append((name, dist, roots))
            claims.update(set(roots))

    for name, dist, roots in candidates:
        owned: list[Path] = []
        for root in roots:
            if claims[root] > 1 and root.is_dir():
                logger.debug("Root %s shared by several distributions; narrowing %s", root, name)
                owned.extend(_narrow(dist, root))
            else:
                owned.append(root)
        if owned:
            yield name, tuple(owned)


def _distribution_roots(dist: metadata.Distribution, project_root: Path | None) -> Iterator[Path]:
    """Source roots of one distribution.

    Top-level packages (directories) and modules (.py files) under the
    install directory, plus directories listed in editable-install .pth files.
    Namespace directories (no __init__.py) are never roots themselves: the
    distribution's own entries below them are.
    """
    base = Path(str(dist.locate_file("")))
    files = _installed_files(dist)

    for top in sorted(_top_level_names(dist)):
        package_dir = base / top
        if package_dir.is_dir():
            yield from _package_roots(package_dir, (top,), files)
            continue
        module_file = base / f"{top}.py"
        if module_file.is_file():
            yield module_file

    for file in dist.files or ():
        if file.suffix != ".pth":
            continue
        pth = Path(str(dist.locate_file(file)))
        if not pth.is_file():
            continue
        for line in pth.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            # Skip comments and executable import lines
            if not line or line.startswith(("#", "import ", "import\t")):
                continue
            editable = Path(line)
            if not editable.is_absolute() or not editable.is_dir():
                continue
            if project_root is not None and editable.is_relative_to(project_root):
                continue
            yield editable


def _package_roots(
    directory: Path,
    prefix: tuple[str, ...],
    files: frozenset[tuple[str, ...]],
) -> Iterator[Path]:
    """Directory itself if it is a regular package, else its owned children."""
    if (directory / "__init__.py").is_file():
        yield directory
        return

    children = list(_owned_children(directory, prefix, files))
    if not children:
        # Nothing recorded below it: the directory is the best root available
        yield directory
        return
    yield from children


def _narrow(dist: metadata.Distribution, root: Path) -> Iterator[Path]:
    """Entries dist installed directly below a shared root."""
    base = Path(str(dist.locate_file("")))
    if not root.is_relative_to(base):
        return
    yield from _owned_children(root, root.relative_to(base).parts, _installed_files(dist))


def _owned_children(
    directory: Path,
    prefix: tuple[str, ...],
    files: frozenset[tuple[str, ...]],
) -> Iterator[Path]:
    """Sub-packages and modules below directory that hold recorded files."""
    depth = len(prefix)
    names = sorted(
        {parts[depth] for parts in files if len(parts) > depth and parts[:depth] == prefix}
    )
    for name in names:
        if name in ("__init__.py", "__pycache__"):
            continue
        path = directory / name
        if path.is_dir():
            yield from _package_roots(path, (*prefix, name), files)
        elif name.endswith(".py") and path.is_file():
            yield path


def _installed_files(dist: metadata.Distribution) -> frozenset[tuple[str, ...]]:
    """Recorded files of dist as path parts relative to its install directory."""
    return frozenset(
        tuple(file.parts) for file in dist.files or () if file.parts and file.parts[0] != ".."
    )

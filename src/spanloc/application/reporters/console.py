"""Console reporter: attribution diagnostics → rich formatted string."""

from __future__ import annotations

from dataclasses import dataclass
from io import StringIO
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from spanloc.domain.model.source_location import LibraryLocation, ProjectLocation

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from spanloc.application.engine import CacheStats, EngineStats
    from spanloc.domain.model.source_location import SourceLocation


@dataclass(frozen=True, slots=True)
class PathReport:
    """Attribution result for one file path.

    Attributes:
        path: Path as given
        location: Resolved location, None if unattributed
    """

    path: str
    location: SourceLocation | None


@dataclass(frozen=True, slots=True)
class ConsoleConfig:
    """Configuration for console reporter.

    Attributes:
        width: Console width in characters.
        color: Emit ANSI styles.
        max_roots: Max roots listed per library. None = unlimited.
    """

    width: int = 120
    color: bool = True
    max_roots: int | None = None


class ConsoleReporter:
    """Console reporter: outputs rich formatted text.

    Output is str, not print(). Caller decides destination.
    """

    def __init__(self, config: ConsoleConfig | None = None) -> None:
        """Initialize reporter.

        Args:
            config: Reporter configuration. Uses defaults if None.
        """
        self._config = config or ConsoleConfig()

    def report_paths(self, reports: Iterable[PathReport]) -> str:
        """Format path classification results as a table."""
        table = Table(title="SOURCE LOCATIONS")
        table.add_column("Path", overflow="fold")
        table.add_column("Kind")
        table.add_column("Location", overflow="fold")

        for report in reports:
            match report.location:
                case LibraryLocation():
                    kind = "[cyan]library[/cyan]"
                case ProjectLocation():
                    kind = "[green]project[/green]"
                case None:
                    kind = "[dim]unattributed[/dim]"
            canonical = "" if report.location is None else report.location.canonical()
            table.add_row(report.path, kind, canonical)

        return self._render(table)

    def report_libraries(self, libraries: Mapping[str, tuple[str, ...]]) -> str:
        """Format registered library roots as a table."""
        table = Table(title=f"LIBRARIES ({len(libraries)})")
        table.add_column("Library", style="cyan")
        table.add_column("Source roots", overflow="fold")

        for name in sorted(libraries, key=str.lower):
            roots = libraries[name]
            if self._config.max_roots is not None and len(roots) > self._config.max_roots:
                hidden = len(roots) - self._config.max_roots
                roots = (*roots[: self._config.max_roots], f"... {hidden} more")
            table.add_row(name, "\n".join(roots))

        return self._render(table)

    def report_method(
        self,
        type_name: str,
        method_name: str,
        variant: str,
        location: tuple[str, int] | None,
        canonical: str | None,
    ) -> str:
        """Format one method lookup."""
        output = StringIO()
        console = self._console(output)

        console.print(f"[bold]{type_name}.{method_name}[/bold] ({variant})")
        if location is None:
            console.print("  [dim]not found[/dim]")
        else:
            console.print(f"  defined at {location[0]}:{location[1]}")
            console.print(f"  source_location: {canonical or '[dim]unattributed[/dim]'}")

        return output.getvalue()

    def report_stats(self, stats: EngineStats) -> str:
        """Format engine counters."""
        table = Table(title="ENGINE")
        table.add_column("Metric")
        table.add_column("Value", justify="right")

        table.add_row("Libraries", str(stats.libraries))
        table.add_row("Indexed types", str(stats.indexed_types))
        _add_cache_rows(table, "Caller cache", stats.caller_cache)
        _add_cache_rows(table, "Method cache", stats.method_cache)

        return self._render(table)

    def _render(self, table: Table) -> str:
        output = StringIO()
        self._console(output).print(table)
        return output.getvalue()

    def _console(self, output: StringIO) -> Console:
        return Console(
            file=output,
            force_terminal=self._config.color,
            no_color=not self._config.color,
            width=self._config.width,
        )


def _add_cache_rows(table: Table, label: str, cache: CacheStats) -> None:
    table.add_row(f"{label} size", f"{cache.size}/{cache.capacity}")
    table.add_row(f"{label} hits", str(cache.hits))
    table.add_row(f"{label} misses", str(cache.misses))

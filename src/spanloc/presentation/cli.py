"""spanloc command line: attribution diagnostics.

Commands:
    spanloc classify PATH... [--root DIR] [--line N]
    spanloc libraries [--ignore NAME ...]
    spanloc locate TYPE METHOD [--variant V] [--root DIR]
    spanloc stats [--root DIR] [--ignore NAME ...] [--scan MODULE ...]
"""

from __future__ import annotations

import argparse
import importlib
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from spanloc import __version__
from spanloc.application.engine import SourceLocationEngine
from spanloc.application.reporters.console import ConsoleConfig, ConsoleReporter, PathReport
from spanloc.domain.exceptions import SpanLocError
from spanloc.domain.model.configuration import EngineConfig, absolute_path
from spanloc.domain.model.method_variant import MethodVariant

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the spanloc command."""
    parser = argparse.ArgumentParser(
        prog="spanloc",
        description="Inspect how spanloc attributes files and methods to source locations",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI styles")

    commands = parser.add_subparsers(dest="command", required=True)

    classify = commands.add_parser("classify", help="Attribute file paths")
    classify.add_argument("paths", nargs="+", metavar="PATH", help="Files to attribute")
    classify.add_argument("--root", type=Path, default=None, help="Application root (default: cwd)")
    classify.add_argument("--line", type=int, default=None, help="Line number for every path")
    classify.add_argument(
        "--ignore", action="append", default=[], metavar="NAME", help="Library to ignore"
    )

    libraries = commands.add_parser("libraries", help="List indexed library roots")
    libraries.add_argument(
        "--ignore", action="append", default=[], metavar="NAME", help="Library to ignore"
    )
    libraries.add_argument(
        "--max-roots", type=int, default=None, help="Max roots listed per library"
    )

    locate = commands.add_parser("locate", help="Find where a method is defined")
    locate.add_argument("type_name", metavar="TYPE", help="Dotted type name (module.Class)")
    locate.add_argument("method_name", metavar="METHOD", help="Method name")
    locate.add_argument(
        "--variant",
        choices=[v.value for v in MethodVariant],
        default=MethodVariant.INSTANCE_METHOD.value,
        help="Which definition of the override chain to report",
    )
    locate.add_argument("--root", type=Path, default=None, help="Application root (default: cwd)")

    stats = commands.add_parser("stats", help="Show engine index and cache counters")
    stats.add_argument("--root", type=Path, default=None, help="Application root (default: cwd)")
    stats.add_argument(
        "--ignore", action="append", default=[], metavar="NAME", help="Library to ignore"
    )
    stats.add_argument(
        "--scan", action="append", default=[], metavar="MODULE", help="Module to import and index"
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the spanloc command.

    Args:
        argv: Arguments without program name (default: sys.argv[1:])

    Returns:
        Exit code: 0 on success, 1 if nothing was found, 2 on bad input.
    """
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    reporter = ConsoleReporter(
        ConsoleConfig(color=not args.no_color, max_roots=getattr(args, "max_roots", None))
    )

    try:
        match args.command:
            case "classify":
                return _classify(args, reporter)
            case "libraries":
                return _libraries(args, reporter)
            case "locate":
                return _locate(args, reporter)
            case "stats":
                return _stats(args, reporter)
    except SpanLocError as e:
        print(f"spanloc: {e}", file=sys.stderr)
        return 2
    return 2


def _classify(args: argparse.Namespace, reporter: ConsoleReporter) -> int:
    engine = _engine(args.root, args.ignore)
    reports = [
        PathReport(path, engine.resolve_source_location(os.path.abspath(path), args.line))
        for path in args.paths
    ]
    print(reporter.report_paths(reports), end="")
    return 0 if all(r.location is not None for r in reports) else 1


def _libraries(args: argparse.Namespace, reporter: ConsoleReporter) -> int:
    engine = _engine(None, args.ignore)
    print(reporter.report_libraries(engine.library_index.libraries), end="")
    return 0


def _locate(args: argparse.Namespace, reporter: ConsoleReporter) -> int:
    module_name = _import_owner(args.type_name)
    if module_name is None:
        print(f"spanloc: cannot import a module for {args.type_name}", file=sys.stderr)
        return 1

    engine = _engine(args.root, (), scan_modules=(module_name,))
    location = engine.locate(args.type_name, args.method_name, args.variant)
    canonical = None if location is None else engine.sanitize_source_location(*location)

    print(
        reporter.report_method(
            args.type_name, args.method_name, args.variant, location, canonical
        ),
        end="",
    )
    return 0 if location is not None else 1


def _stats(args: argparse.Namespace, reporter: ConsoleReporter) -> int:
    for module_name in args.scan:
        try:
            importlib.import_module(module_name)
        except ImportError as e:
            print(f"spanloc: cannot import {module_name}: {e}", file=sys.stderr)
            return 1

    engine = _engine(args.root, args.ignore, scan_modules=args.scan)
    print(reporter.report_stats(engine.stats()), end="")
    return 0


def _engine(
    root: Path | None,
    ignored: Sequence[str],
    *,
    scan_modules: Sequence[str] = (),
) -> SourceLocationEngine:
    config = EngineConfig(
        root=absolute_path(root or Path.cwd()),
        ignored_libraries=frozenset(ignored),
    )
    return SourceLocationEngine.from_config(config, scan_modules=scan_modules)


def _import_owner(type_name: str) -> str | None:
    """Import the longest importable module prefix of a dotted type name.

    The engine itself never imports; the CLI does so the type can be indexed.
    """
    # Application modules are importable from the working directory
    if "" not in sys.path and os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    parts = type_name.split(".")
    for end in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:end])
        try:
            importlib.import_module(module_name)
        except ImportError:
            logger.debug("Not importable: %s", module_name)
            continue
        return module_name
    return None

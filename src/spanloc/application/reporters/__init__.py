"""Reporters for attribution diagnostics.

Reporters return strings; the caller decides where to print.
"""

from spanloc.application.reporters.console import ConsoleConfig, ConsoleReporter, PathReport

__all__ = [
    "ConsoleConfig",
    "ConsoleReporter",
    "PathReport",
]

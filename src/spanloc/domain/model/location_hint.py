"""Location hints: the four mutually exclusive inputs of the dispatcher.

A span's options may carry several location inputs at once. Only one is
honored per call; select_hint() picks it with a fixed precedence so the
dispatcher can match exhaustively on the result.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from os import PathLike

from spanloc.domain.exceptions import UnknownVariantError
from spanloc.domain.model.method_variant import MethodVariant


@dataclass(frozen=True, slots=True)
class CanonicalHint:
    """Already-canonical location, used verbatim.

    Attributes:
        location: Canonical value as supplied. Not type-checked here,
            non-string values are discarded at preprocess time.
    """

    location: object


@dataclass(frozen=True, slots=True)
class FileLineHint:
    """Explicit file and optional line.

    Attributes:
        file: Absolute source file path
        line: Line number or None
    """

    file: str
    line: int | None = None

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.file:
            raise ValueError("file must not be empty")


@dataclass(frozen=True, slots=True)
class MethodHint:
    """Named method whose definition site is the location.

    Attributes:
        variant: Which definition in the override chain to use
        type_name: Dotted name of the owning type (module.Class)
        method_name: Method name
    """

    variant: MethodVariant
    type_name: str
    method_name: str

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.type_name:
            raise ValueError("type_name must not be empty")
        if not self.method_name:
            raise ValueError("method_name must not be empty")

    @classmethod
    def parse(cls, value: object) -> MethodHint | None:
        """Build from a (variant, type name, method name) triple.

        Returns:
            MethodHint, or None if value is not a well-formed triple.
        """
        if isinstance(value, MethodHint):
            return value
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            return None
        if len(value) != 3:
            return None

        variant_name, type_name, method_name = value
        if not isinstance(type_name, str) or not type_name:
            return None
        if not isinstance(method_name, str) or not method_name:
            return None
        try:
            variant = MethodVariant.parse(variant_name)
        except UnknownVariantError:
            return None
        return cls(variant=variant, type_name=type_name, method_name=method_name)


@dataclass(frozen=True, slots=True)
class NoHint:
    """Nothing supplied: fall back to a stack walk."""


LocationHint = CanonicalHint | FileLineHint | MethodHint | NoHint


def select_hint(
    *,
    location: object = None,
    method: MethodHint | None = None,
    file: object = None,
    line: object = None,
    method_first: bool = False,
) -> LocationHint:
    """Pick the single honored hint.

    Precedence is canonical > method > file, or method > canonical > file
    when method_first is set. Empty values count as absent.

    Args:
        location: Canonical location value
        method: Parsed method hint
        file: Explicit source file
        line: Explicit source line (ignored without file)
        method_first: Give the method hint priority over the canonical one

    Returns:
        Exactly one LocationHint variant.
    """
    if method_first and method is not None:
        return method
    if location:
        return CanonicalHint(location)
    if method is not None:
        return method
    if isinstance(file, PathLike):
        file = os.fspath(file)
    if isinstance(file, str) and file:
        return FileLineHint(file=file, line=line if isinstance(line, int) else None)
    return NoHint()

"""Method source locator: where is a named method defined.

Answers from the method symbol index, picking one definition from the
override chain according to the requested variant. Results are memoized:
the same (type, method, variant) is asked on every invocation of an
instrumented call site.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from spanloc.domain.model.meta_keys import BEFORE_INSTRUMENT_PREFIX, DEFAULT_CACHE_SIZE
from spanloc.domain.model.method_variant import MethodVariant
from spanloc.infrastructure.lru_cache import LruCache
from spanloc.infrastructure.symbol_index import MethodKind

if TYPE_CHECKING:
    from spanloc.infrastructure.symbol_index import (
        MethodDefinition,
        MethodSymbolIndex,
        TypeSymbols,
    )

logger = logging.getLogger(__name__)

_TYPE_LEVEL_KINDS = frozenset({MethodKind.CLASS, MethodKind.STATIC})


class MethodSourceLocator:
    """Resolves (type name, method name, variant) to (file, line)."""

    __slots__ = ("_cache", "_index")

    def __init__(self, index: MethodSymbolIndex, *, cache_size: int = DEFAULT_CACHE_SIZE) -> None:
        """Initialize locator.

        Args:
            index: Method symbol index to read from
            cache_size: Capacity of the result cache
        """
        self._index = index
        self._cache: LruCache[tuple[str, str, MethodVariant], tuple[str, int] | None] = LruCache(
            cache_size
        )

    def locate(
        self,
        type_name: str,
        method_name: str,
        variant: MethodVariant | str = MethodVariant.INSTANCE_METHOD,
    ) -> tuple[str, int] | None:
        """Definition site of a method.

        Args:
            type_name: Dotted type name (module.Class)
            method_name: Method name
            variant: Which definition of the override chain to report

        Returns:
            (absolute file, line), or None if the type, method or requested
            definition cannot be found.
        """
        if not isinstance(type_name, str) or not isinstance(method_name, str):
            return None
        try:
            variant = MethodVariant.parse(variant)
        except ValueError:
            logger.warning("Unknown method variant %r for %s.%s", variant, type_name, method_name)
            return None

        key = (type_name, method_name, variant)
        return self._cache.fetch(key, lambda: self._locate(type_name, method_name, variant))

    @property
    def cache(self) -> LruCache[tuple[str, str, MethodVariant], tuple[str, int] | None]:
        """Result cache (for diagnostics)."""
        return self._cache

    def _locate(
        self,
        type_name: str,
        method_name: str,
        variant: MethodVariant,
    ) -> tuple[str, int] | None:
        symbols = self._index.lookup(type_name)
        if symbols is None:
            logger.debug("Type not found: %s", type_name)
            return None

        # Instrumentation may have moved the canonical definition
        instrumented = f"{BEFORE_INSTRUMENT_PREFIX}{method_name}"
        if instrumented in symbols:
            method_name = instrumented

        definition = _select(symbols, method_name, variant)
        if definition is None:
            logger.debug("Method not found: %s.%s (%s)", type_name, method_name, variant.value)
            return None
        return definition.file, definition.line


def _select(
    symbols: TypeSymbols,
    method_name: str,
    variant: MethodVariant,
) -> MethodDefinition | None:
    """Pick the definition for variant from the method's chain."""
    chain = symbols.chain(method_name)
    if not chain:
        return None

    match variant:
        case MethodVariant.INSTANCE_METHOD:
            head = chain[0]
            return head if head.kind is MethodKind.INSTANCE else None

        case MethodVariant.OWN_INSTANCE_METHOD:
            if chain[0].kind is not MethodKind.INSTANCE:
                return None
            for definition in chain:
                if definition.owner == symbols.fqn and not definition.injected:
                    return definition
            return None

        case MethodVariant.INSTANCE_METHOD_SUPER:
            if chain[0].kind is not MethodKind.INSTANCE:
                return None
            return chain[-1]

        case MethodVariant.CLASS_METHOD:
            head = chain[0]
            return head if head.kind in _TYPE_LEVEL_KINDS else None

"""Method symbol index: (type, method) → definition chain.

Reflection over the type system happens once per type, when the type is
indexed. Every later lookup is a dictionary read on immutable entries.

A chain lists the definitions a method name goes through, most derived
first. It follows the MRO, and expands each class attribute through its
__wrapped__ links so a wrapper installed over a method precedes the method
it wraps:

    class Base:            def run(self): ...         # run#Base
    class Child(Base):     @traced                     # run#traced (injected)
                           def run(self): ...          # run#Child

    chain(Child, "run") == (run#traced, run#Child, run#Base)
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from types import FunctionType, MappingProxyType, ModuleType

from spanloc.infrastructure.stack import absolute_filename

# Guard against __wrapped__ cycles
_MAX_WRAP_DEPTH = 64

_MISSING = object()


class MethodKind(Enum):
    """How a definition is bound when looked up on the type."""

    INSTANCE = auto()  # plain function in class body
    CLASS = auto()  # classmethod
    STATIC = auto()  # staticmethod


@dataclass(frozen=True, slots=True)
class MethodDefinition:
    """One definition in a method's override chain.

    Attributes:
        name: Method name
        owner: Dotted name of the class whose namespace holds it
        kind: Binding kind
        file: Absolute path of the defining source file
        line: First line of the definition (1-based)
        injected: True for wrapper layers and for functions defined
            outside the owner's body and assigned into it
    """

    name: str
    owner: str
    kind: MethodKind
    file: str
    line: int
    injected: bool = False

    def __post_init__(self) -> None:
        """Validate invariants. FAIL-FIRST."""
        if not self.name:
            raise ValueError("name must not be empty")
        if not self.file:
            raise ValueError("file must not be empty")
        if self.line <= 0:
            raise ValueError(f"line must be > 0, got {self.line}")


@dataclass(frozen=True, slots=True)
class TypeSymbols:
    """Definition chains of every method visible on one type.

    Attributes:
        fqn: Dotted name of the type (module.QualName)
        methods: Method name → chain, most derived definition first
    """

    fqn: str
    methods: Mapping[str, tuple[MethodDefinition, ...]]

    def chain(self, method_name: str) -> tuple[MethodDefinition, ...]:
        """Definition chain for method_name (empty if unknown)."""
        return self.methods.get(method_name, ())

    def __contains__(self, method_name: object) -> bool:
        """Check if the type has a method with this name."""
        return method_name in self.methods


class MethodSymbolIndex:
    """Index of type names to their method definition chains.

    Populated by scan() at startup and, for types not covered by the scan,
    once on first lookup. Entries are immutable once stored.

    Thread Safety:
      - _lock serializes writes to _types
      - readers see either no entry or a complete TypeSymbols
    """

    __slots__ = ("_lock", "_types")

    def __init__(self) -> None:
        """Create empty index."""
        self._types: dict[str, TypeSymbols] = {}
        self._lock = threading.Lock()

    def scan(self, module_names: Iterable[str]) -> int:
        """Index every class defined in the given imported modules.

        Modules not present in sys.modules are skipped: scanning never
        imports. Order is deterministic (sorted module and class names).

        Args:
            module_names: Dotted module names

        Returns:
            Number of types indexed
        """
        count = 0
        for module_name in sorted(set(module_names)):
            module = sys.modules.get(module_name)
            if module is None:
                continue
            for cls in _module_classes(module):
                self.index_type(cls)
                count += 1
        return count

    def index_type(self, cls: type) -> TypeSymbols:
        """Index cls (idempotent) and return its symbols."""
        fqn = type_name(cls)
        existing = self._types.get(fqn)
        if existing is not None:
            return existing

        symbols = _build_symbols(cls, fqn)
        with self._lock:
            return self._types.setdefault(fqn, symbols)

    def lookup(self, name: str) -> TypeSymbols | None:
        """Symbols for a dotted type name, indexing it on first use.

        Returns:
            TypeSymbols, or None if no loaded type has this name.
        """
        symbols = self._types.get(name)
        if symbols is not None:
            return symbols

        cls = resolve_type(name)
        if cls is None:
            return None
        symbols = self.index_type(cls)
        if name != symbols.fqn:
            # Re-exported name: remember the alias
            with self._lock:
                self._types.setdefault(name, symbols)
        return symbols

    def __contains__(self, name: object) -> bool:
        """Check if a type name is already indexed."""
        return name in self._types

    def __len__(self) -> int:
        """Number of indexed names (aliases included)."""
        return len(self._types)


def type_name(cls: type) -> str:
    """Dotted name of a class: module.QualName."""
    return f"{cls.__module__}.{cls.__qualname__}"


def resolve_type(name: str) -> type | None:
    """Resolve a dotted name to an already-loaded type.

    Looks only in sys.modules (never imports). Undotted names are looked up
    in __main__ and builtins. Never raises.

    Args:
        name: Dotted name such as "app.models.User" or "app.models.Outer.Inner"

    Returns:
        The type, or None for unknown or malformed names.
    """
    if not isinstance(name, str) or not name:
        return None

    parts = name.split(".")
    if not all(parts):
        return None

    if len(parts) == 1:
        candidates = [("__main__", parts), ("builtins", parts)]
    else:
        # Longest module prefix first: "a.b.C" tries module "a.b" then "a"
        candidates = [(".".join(parts[:i]), parts[i:]) for i in range(len(parts) - 1, 0, -1)]

    for module_name, attrs in candidates:
        module = sys.modules.get(module_name)
        if module is None:
            continue
        obj = _getattr_chain(module, attrs)
        if isinstance(obj, type):
            return obj
    return None


def _getattr_chain(obj: object, attrs: list[str]) -> object | None:
    """Follow attribute chain, None on any failure."""
    for attr in attrs:
        try:
            obj = getattr(obj, attr)
        # BLE001: module __getattr__ hooks may raise anything
        except Exception:  # noqa: BLE001
            return None
    return obj


def _module_classes(module: ModuleType) -> Iterator[type]:
    """Classes defined in module, nested classes included, sorted by name."""
    try:
        namespace = dict(vars(module))
    except TypeError:
        return
    for _, obj in sorted(namespace.items()):
        if isinstance(obj, type) and obj.__module__ == module.__name__:
            yield obj
            yield from _nested_classes(obj)


def _nested_classes(cls: type) -> Iterator[type]:
    """Classes defined in the body of cls, recursively."""
    prefix = cls.__qualname__ + "."
    for _, obj in sorted(vars(cls).items()):
        if isinstance(obj, type) and obj.__qualname__.startswith(prefix):
            yield obj
            yield from _nested_classes(obj)


def _build_symbols(cls: type, fqn: str) -> TypeSymbols:
    """Build chains for every attribute name along the MRO."""
    names: set[str] = set()
    for klass in cls.__mro__:
        names.update(vars(klass))

    methods: dict[str, tuple[MethodDefinition, ...]] = {}
    for name in sorted(names):
        chain = _build_chain(cls, name)
        if chain:
            methods[name] = chain
    return TypeSymbols(fqn=fqn, methods=MappingProxyType(methods))


def _build_chain(cls: type, name: str) -> tuple[MethodDefinition, ...]:
    """Definitions of name along the MRO, wrappers expanded.

    Stops at the first class attribute that is not a method: it shadows
    everything above it.
    """
    chain: list[MethodDefinition] = []
    for klass in cls.__mro__:
        attr = vars(klass).get(name, _MISSING)
        if attr is _MISSING:
            continue
        unwrapped = _unwrap_descriptor(attr)
        if unwrapped is None:
            break
        kind, func = unwrapped
        chain.extend(_expand_wrappers(func, name, klass, kind))
    return tuple(chain)


def _unwrap_descriptor(attr: object) -> tuple[MethodKind, object] | None:
    """Binding kind and underlying callable of a class attribute."""
    if isinstance(attr, staticmethod):
        return MethodKind.STATIC, attr.__func__
    if isinstance(attr, classmethod):
        return MethodKind.CLASS, attr.__func__
    if isinstance(attr, FunctionType) or hasattr(attr, "__wrapped__"):
        return MethodKind.INSTANCE, attr
    return None


def _expand_wrappers(
    func: object,
    name: str,
    klass: type,
    kind: MethodKind,
) -> Iterator[MethodDefinition]:
    """Yield wrapper layers, then the wrapped function."""
    owner = type_name(klass)
    seen: set[int] = set()

    for _ in range(_MAX_WRAP_DEPTH):
        if id(func) in seen:
            return
        seen.add(id(func))

        wrapped = getattr(func, "__wrapped__", None)
        injected = wrapped is not None or not _defined_in(func, klass)
        definition = _definition(func, name, owner, kind, injected=injected)
        if definition is not None:
            yield definition
        if wrapped is None:
            return
        func = wrapped


def _defined_in(func: object, klass: type) -> bool:
    """Check that func was defined in the body of klass.

    Packages that re-export a class often reassign its __module__, so a
    module mismatch alone proves nothing. It rules func out only when the
    function's own module holds a different class under the same qualname.
    """
    qualname = getattr(func, "__qualname__", "")
    if qualname.rpartition(".")[0] != klass.__qualname__:
        return False

    module_name = getattr(func, "__module__", None)
    if module_name == klass.__module__ or not isinstance(module_name, str):
        return True
    module = sys.modules.get(module_name)
    if module is None:
        return True
    namesake = _getattr_chain(module, klass.__qualname__.split("."))
    return namesake is None or namesake is klass


def _definition(
    func: object,
    name: str,
    owner: str,
    kind: MethodKind,
    *,
    injected: bool,
) -> MethodDefinition | None:
    """Definition for a Python function, None without source."""
    code = getattr(func, "__code__", None)
    if code is None:
        return None
    file = absolute_filename(code.co_filename)
    if file is None or code.co_firstlineno <= 0:
        return None
    return MethodDefinition(
        name=name,
        owner=owner,
        kind=kind,
        file=file,
        line=code.co_firstlineno,
        injected=injected,
    )

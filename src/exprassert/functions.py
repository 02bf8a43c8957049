"""Helper function registry for exprassert expressions.

Helper functions are callable from expressions as `#name(arg1, arg2, ...)`.
They are extracted from an ordered list of sources:

- classes: public static methods and class methods
- modules: public functions defined in the module (or listed in __all__)
- mappings: explicit name -> callable tables

Overloading is not supported. When two sources define the same name, the
one registered last wins.
"""

import inspect
import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType, ModuleType
from typing import Any, Callable

logger = logging.getLogger(__name__)


def extract_functions(sources: Iterable[Any]) -> dict[str, Callable[..., Any]]:
    """Collect helper functions from sources, keyed by simple name.

    Args:
        sources: Classes, modules or mappings, in registration order

    Returns:
        Mapping of function name to callable; empty for no sources

    Raises:
        TypeError: If a source is not a class, module or mapping, or a
            mapping entry is not callable
    """
    functions: dict[str, Callable[..., Any]] = {}

    for source in sources:
        for name, func in _functions_of(source):
            if name in functions and functions[name] is not func:
                logger.debug("Helper '%s' from %r replaces an earlier definition", name, source)
            functions[name] = func

    return functions


def _functions_of(source: Any) -> list[tuple[str, Callable[..., Any]]]:
    if isinstance(source, type):
        return _class_functions(source)
    if isinstance(source, ModuleType):
        return _module_functions(source)
    if isinstance(source, Mapping):
        return _mapping_functions(source)
    raise TypeError(
        f"Helper source must be a class, module or mapping, got {type(source).__name__}"
    )


def _class_functions(cls: type) -> list[tuple[str, Callable[..., Any]]]:
    """Static and class methods, base classes first so subclasses override."""
    found: dict[str, Callable[..., Any]] = {}

    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if name.startswith("_"):
                continue
            if isinstance(member, staticmethod):
                found[name] = member.__func__
            elif isinstance(member, classmethod):
                # Bind to the requested class, not the declaring base
                found[name] = getattr(cls, name)

    return list(found.items())


def _module_functions(module: ModuleType) -> list[tuple[str, Callable[..., Any]]]:
    exported = getattr(module, "__all__", None)
    names = list(exported) if exported is not None else list(vars(module))

    found = []
    for name in names:
        if name.startswith("_"):
            continue
        member = getattr(module, name, None)
        if not (inspect.isfunction(member) or inspect.isbuiltin(member)):
            continue
        # Without __all__, skip names imported from elsewhere
        if exported is None and getattr(member, "__module__", None) != module.__name__:
            continue
        found.append((name, member))

    return found


def _mapping_functions(table: Mapping[str, Any]) -> list[tuple[str, Callable[..., Any]]]:
    found = []
    for name, func in table.items():
        if not callable(func):
            raise TypeError(f"Helper '{name}' is not callable: {func!r}")
        found.append((str(name), func))
    return found


class FunctionRegistry:
    """Per-rule registry of helper functions.

    Unlike a process-wide registry, each compiled rule owns one instance, so
    rules declared with different helper sources never see each other's
    functions.

    Example:
        registry = FunctionRegistry.from_sources([MathHelpers, text_helpers])
        registry.get("isEven")(4)  # True
    """

    def __init__(self, functions: Mapping[str, Callable[..., Any]] | None = None):
        self._functions: dict[str, Callable[..., Any]] = dict(functions or {})

    @classmethod
    def from_sources(cls, sources: Iterable[Any]) -> "FunctionRegistry":
        """Build a registry from helper sources (see extract_functions)."""
        return cls(extract_functions(sources))

    def register(self, name: str, func: Callable[..., Any]) -> None:
        """Register a function, replacing any existing one with the same name."""
        if not callable(func):
            raise TypeError(f"Helper '{name}' is not callable: {func!r}")
        self._functions[name] = func

    def get(self, name: str) -> Callable[..., Any]:
        """Get a function by name.

        Raises:
            KeyError: If no function is registered under name
        """
        if name not in self._functions:
            raise KeyError(f"Unknown function: {name}")
        return self._functions[name]

    def is_registered(self, name: str) -> bool:
        return name in self._functions

    def names(self) -> list[str]:
        return sorted(self._functions)

    def as_mapping(self) -> Mapping[str, Callable[..., Any]]:
        """Read-only snapshot of the registered functions."""
        return MappingProxyType(dict(self._functions))

    def describe(self) -> dict[str, str]:
        """Name -> call signature, e.g. {"isEven": "#isEven(value)"}."""
        return {name: describe_function(name, func) for name, func in sorted(self._functions.items())}

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions


def describe_function(name: str, func: Callable[..., Any]) -> str:
    """Render a helper as it is called from an expression."""
    try:
        params = ", ".join(inspect.signature(func).parameters)
    except (TypeError, ValueError):
        params = "..."
    return f"#{name}({params})"

"""Evaluation context for a single rule evaluation.

A context is built fresh for every validation call and exposes:
- the root object, for unqualified property and method access
- helper functions, callable as `#name(...)`
- named services, resolved as `@name` through an optional resolver
- the type converter used for boolean and result conversion

Contexts are never cached or shared between calls.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable

from exprassert.conversion import TypeConverter, default_converter
from exprassert.errors import EvaluationError, ResolutionError
from exprassert.services import ServiceResolver

# Variables that always refer to the root object
ROOT_VARIABLES = frozenset({"this", "root"})


@dataclass(frozen=True)
class EvaluationContext:
    """Context for expression evaluation.

    Attributes:
        root_object: The object under validation (any value, including None)
        functions: Helper functions by name (shared, read-only)
        service_resolver: Resolver for `@name` references, or None
        type_converter: Converter for boolean operands and results
    """

    root_object: Any
    functions: Mapping[str, Callable[..., Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    service_resolver: ServiceResolver | None = None
    type_converter: TypeConverter = field(default_factory=default_converter)

    def lookup_function(self, name: str) -> Callable[..., Any]:
        """Return the helper registered as name.

        Raises:
            EvaluationError: If no helper has that name
        """
        if name not in self.functions:
            raise EvaluationError(f"Unknown function: #{name}")
        return self.functions[name]

    def lookup_variable(self, name: str) -> Any:
        """Resolve `#name` without a call: root aliases or a helper function."""
        if name in ROOT_VARIABLES:
            return self.root_object
        if name in self.functions:
            return self.functions[name]
        raise EvaluationError(f"Unknown variable: #{name}")

    def resolve_service(self, name: str) -> Any:
        """Resolve `@name` through the configured resolver.

        Raises:
            ResolutionError: If no resolver is configured or the name is unknown
        """
        if self.service_resolver is None:
            raise ResolutionError(
                name, f"Cannot resolve service '@{name}': no service resolver configured"
            )

        try:
            service = self.service_resolver.resolve(name)
        except ResolutionError:
            raise
        except LookupError as e:
            raise ResolutionError(name, f"Cannot resolve service '@{name}': {e}") from e

        if service is None:
            raise ResolutionError(name)
        return service


def build_context(
    root_object: Any,
    functions: Mapping[str, Callable[..., Any]] | None = None,
    resolver: ServiceResolver | None = None,
    type_converter: TypeConverter | None = None,
) -> EvaluationContext:
    """Build a fresh evaluation context.

    Args:
        root_object: The object under validation
        functions: Helper functions by name; wrapped read-only if not already
        resolver: Optional service resolver for `@name` references
        type_converter: Converter to use; defaults to the relaxed boolean converter

    Returns:
        A new EvaluationContext
    """
    if functions is None:
        functions = MappingProxyType({})
    elif not isinstance(functions, MappingProxyType):
        functions = MappingProxyType(dict(functions))

    return EvaluationContext(
        root_object=root_object,
        functions=functions,
        service_resolver=resolver,
        type_converter=type_converter if type_converter is not None else default_converter(),
    )

"""Rule definitions and one-time rule compilation.

A RuleDefinition is what a declaration site provides: the rule expression,
an optional guard expression, and the helper sources. compile_rule turns it
into a CompiledRule once; the compiled form is immutable and can be shared
by concurrent evaluations.
"""

import importlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable

from exprassert.expressions import CompiledExpression, compile_expression
from exprassert.functions import FunctionRegistry


@dataclass(frozen=True)
class RuleDefinition:
    """Declaration-time configuration of a rule.

    Attributes:
        expression: Rule expression; the object is valid when it is true
        guard: Optional expression; the rule only applies when it is true.
            Empty or whitespace-only means the rule always applies.
        helpers: Classes, modules or name -> callable mappings whose
            functions are callable as #name(...). Later entries win on
            name collisions.
    """

    expression: str
    guard: str = ""
    helpers: tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not isinstance(self.helpers, tuple):
            object.__setattr__(self, "helpers", tuple(self.helpers))
        if self.guard is None:
            object.__setattr__(self, "guard", "")

    @property
    def has_guard(self) -> bool:
        return bool(self.guard and self.guard.strip())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleDefinition":
        """Create a RuleDefinition from a YAML/JSON dict.

        Keys:
            expression (or value): The rule expression (required)
            guard (or applyIf): Optional guard expression
            helpers: List of helper sources; strings are imported as
                "package.module" or "package.module:ClassName"
        """
        expression = data.get("expression", data.get("value"))
        if expression is None:
            raise ValueError("Rule definition requires an 'expression'")

        guard = data.get("guard", data.get("applyIf")) or ""

        helpers = data.get("helpers") or []
        if isinstance(helpers, str):
            helpers = [helpers]

        return cls(
            expression=expression,
            guard=guard,
            helpers=tuple(load_helper(h) if isinstance(h, str) else h for h in helpers),
        )


@dataclass(frozen=True)
class CompiledRule:
    """Compiled, immutable form of a RuleDefinition.

    Attributes:
        main_expression: The compiled rule expression
        guard_expression: The compiled guard, or None if the rule always applies
        functions: Helper functions by name (read-only)
    """

    main_expression: CompiledExpression
    guard_expression: CompiledExpression | None = None
    functions: Mapping[str, Callable[..., Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )


def compile_rule(definition: RuleDefinition) -> CompiledRule:
    """Compile a rule definition.

    Raises:
        CompilationError: If the expression is empty or either expression
            is not valid
        TypeError: If a helper source is not a class, module or mapping
    """
    main_expression = compile_expression(definition.expression)

    guard_expression = None
    if definition.has_guard:
        guard_expression = compile_expression(definition.guard)

    registry = FunctionRegistry.from_sources(definition.helpers)

    return CompiledRule(
        main_expression=main_expression,
        guard_expression=guard_expression,
        functions=registry.as_mapping(),
    )


def load_helper(reference: str) -> Any:
    """Import a helper source from "package.module" or "package.module:Name".

    Raises:
        ImportError: If the module cannot be imported
        ValueError: If the named attribute does not exist
    """
    module_name, _, attribute = reference.partition(":")
    module = importlib.import_module(module_name.strip())

    if not attribute:
        return module

    target: Any = module
    for part in attribute.strip().split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise ValueError(f"Helper '{reference}' not found: no attribute '{part}'") from e
    return target

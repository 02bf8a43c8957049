"""exprassert: expression-based validation rules.

Attach a boolean expression to an object as a validation rule, with an
optional guard deciding whether the rule applies, helper functions callable
as `#name(...)` and named services resolved as `@name`.

Usage:
    from exprassert import RuleDefinition, RuleValidator

    validator = RuleValidator(RuleDefinition(
        expression="first > second",
        guard="first == 42",
    ))
    validator.validate({"first": 0, "second": 66})  # True, guard is false
"""

from exprassert.context import EvaluationContext, build_context
from exprassert.conversion import (
    RelaxedBooleanConverter,
    StandardTypeConverter,
    TypeConverter,
    default_converter,
)
from exprassert.errors import (
    CompilationError,
    ConversionError,
    EvaluationError,
    ExprAssertError,
    ResolutionError,
)
from exprassert.functions import FunctionRegistry, extract_functions
from exprassert.rules import CompiledRule, RuleDefinition, compile_rule
from exprassert.services import MappingServiceResolver, ServiceResolver
from exprassert.validator import RuleValidator

__all__ = [
    # Context
    "EvaluationContext",
    "build_context",
    # Conversion
    "RelaxedBooleanConverter",
    "StandardTypeConverter",
    "TypeConverter",
    "default_converter",
    # Errors
    "CompilationError",
    "ConversionError",
    "EvaluationError",
    "ExprAssertError",
    "ResolutionError",
    # Functions
    "FunctionRegistry",
    "extract_functions",
    # Rules
    "CompiledRule",
    "RuleDefinition",
    "compile_rule",
    # Services
    "MappingServiceResolver",
    "ServiceResolver",
    # Validator
    "RuleValidator",
]

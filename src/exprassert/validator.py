"""Rule validator: evaluates a compiled rule against object instances.

Validation order for one instance:
1. None is always valid
2. If a guard is configured and does not evaluate to true, the rule does
   not apply and the instance is valid; the main expression is skipped
3. Otherwise the main expression decides

Both expressions are converted to bool through the type converter, and a
null result counts as false. Evaluation errors propagate to the caller.
"""

import logging
from typing import Any

from exprassert.context import EvaluationContext, build_context
from exprassert.conversion import TypeConverter, default_converter
from exprassert.expressions import CompiledExpression
from exprassert.functions import FunctionRegistry
from exprassert.rules import CompiledRule, RuleDefinition, compile_rule
from exprassert.services import ServiceResolver

logger = logging.getLogger(__name__)


class RuleValidator:
    """Validates objects against one expression rule.

    The rule is compiled on construction (CompilationError surfaces here,
    never from validate). The resolver and converter are fixed for the
    lifetime of the validator. One validator may be used from several
    threads at once; each call builds its own context.

    Example:
        validator = RuleValidator(RuleDefinition(
            expression="#isEven(first)",
            guard="first > 0",
            helpers=(MathHelpers,),
        ))
        validator.validate({"first": 2})  # True
    """

    def __init__(
        self,
        rule: RuleDefinition | CompiledRule,
        service_resolver: ServiceResolver | None = None,
        type_converter: TypeConverter | None = None,
    ):
        if isinstance(rule, RuleDefinition):
            rule = compile_rule(rule)
        self._rule = rule
        self._service_resolver = service_resolver
        self._type_converter = type_converter if type_converter is not None else default_converter()
        self._signatures = ", ".join(FunctionRegistry(rule.functions).describe().values())

    @property
    def rule(self) -> CompiledRule:
        return self._rule

    @property
    def expression(self) -> str:
        return self._rule.main_expression.expression_string

    @property
    def guard(self) -> str | None:
        if self._rule.guard_expression is None:
            return None
        return self._rule.guard_expression.expression_string

    def validate(self, instance: Any) -> bool:
        """Return True if instance satisfies the rule (or the rule does not apply).

        Raises:
            EvaluationError: If either expression fails to evaluate,
                including ResolutionError for unresolvable services
        """
        if instance is None:
            return True

        context = self._create_context(instance)

        if not self._guard_applies(context):
            return True

        logger.debug(
            "Evaluating expression {%s} on object: %r", self.expression, instance
        )
        return self._evaluate(self._rule.main_expression, context)

    is_valid = validate

    def _guard_applies(self, context: EvaluationContext) -> bool:
        guard = self._rule.guard_expression
        if guard is None:
            return True

        applies = self._evaluate(guard, context)
        logger.debug(
            "Guard {%s} on object %r evaluated to %s",
            guard.expression_string,
            context.root_object,
            applies,
        )
        return applies

    def _evaluate(self, expression: CompiledExpression, context: EvaluationContext) -> bool:
        return expression.get_value(context, bool) is True

    def _create_context(self, instance: Any) -> EvaluationContext:
        context = build_context(
            instance,
            self._rule.functions,
            self._service_resolver,
            self._type_converter,
        )
        if self._signatures:
            logger.debug("Registered functions: %s", self._signatures)
        return context

    def __repr__(self) -> str:
        if self.guard is None:
            return f"RuleValidator({self.expression!r})"
        return f"RuleValidator({self.expression!r}, guard={self.guard!r})"

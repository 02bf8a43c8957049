"""Evaluator for the exprassert expression language.

Walks the AST and computes the result against an EvaluationContext holding
the root object, helper functions, an optional service resolver and the
type converter.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable

from exprassert.context import EvaluationContext, build_context
from exprassert.conversion import coerce
from exprassert.errors import CompilationError, EvaluationError
from exprassert.expressions.lexer import LexerError
from exprassert.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    Elvis,
    FunctionCall,
    HelperCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    MethodCall,
    ObjectLiteral,
    ParseError,
    ServiceReference,
    Ternary,
    UnaryOp,
    VariableReference,
    parse,
)

_NUMBER = (int, float, Decimal)


class Evaluator:
    """Evaluates expression AST against a context.

    Usage:
        ctx = build_context(order, functions={"isEven": is_even})
        evaluator = Evaluator(ctx)
        result = evaluator.evaluate(ast)
    """

    def __init__(self, context: EvaluationContext):
        self.context = context

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an AST node and return the result."""
        method_name = f"_eval_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_literal(self, node: Literal) -> Any:
        """Evaluate a literal value."""
        return node.value

    def _eval_identifier(self, node: Identifier) -> Any:
        """Evaluate an identifier (property of the root object)."""
        return self._read_property(self.context.root_object, node.name)

    def _eval_memberaccess(self, node: MemberAccess) -> Any:
        """Evaluate member access (a.b, a?.b)."""
        obj = self.evaluate(node.object)

        if obj is None and node.null_safe:
            return None

        return self._read_property(obj, node.member)

    def _eval_methodcall(self, node: MethodCall) -> Any:
        """Evaluate a method call on an object (a.b(...), a?.b(...))."""
        obj = self.evaluate(node.object)

        if obj is None and node.null_safe:
            return None

        args = [self.evaluate(arg) for arg in node.arguments]
        return self._invoke_method(obj, node.name, args)

    def _eval_functioncall(self, node: FunctionCall) -> Any:
        """Evaluate an unqualified call as a method of the root object."""
        args = [self.evaluate(arg) for arg in node.arguments]
        return self._invoke_method(self.context.root_object, node.name, args)

    def _eval_helpercall(self, node: HelperCall) -> Any:
        """Evaluate a registered helper function call (#name(...))."""
        func = self.context.lookup_function(node.name)
        args = [self.evaluate(arg) for arg in node.arguments]
        return self._call(f"#{node.name}", func, args)

    def _eval_variablereference(self, node: VariableReference) -> Any:
        """Evaluate a context variable (#this, #root, #helper)."""
        return self.context.lookup_variable(node.name)

    def _eval_servicereference(self, node: ServiceReference) -> Any:
        """Evaluate a named service reference (@name)."""
        return self.context.resolve_service(node.name)

    def _eval_indexaccess(self, node: IndexAccess) -> Any:
        """Evaluate index access (a[b])."""
        obj = self.evaluate(node.object)
        index = self.evaluate(node.index)

        if obj is None:
            raise EvaluationError(f"Cannot index null with {index!r}")

        try:
            return obj[index]
        except (KeyError, IndexError) as e:
            raise EvaluationError(f"Index {index!r} not found in {type(obj).__name__}") from e
        except TypeError as e:
            raise EvaluationError(f"Cannot index {type(obj).__name__} with {index!r}") from e

    def _eval_binaryop(self, node: BinaryOp) -> Any:
        """Evaluate a binary operation."""
        op = node.operator

        # Short-circuit evaluation for logical operators
        if op == "&&":
            left = self.evaluate(node.left)
            if not self._to_bool(left):
                return False
            return self._to_bool(self.evaluate(node.right))

        if op == "||":
            left = self.evaluate(node.left)
            if self._to_bool(left):
                return True
            return self._to_bool(self.evaluate(node.right))

        # Evaluate both operands for other operators
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)

        # Comparison operators
        if op == "==":
            return self._equals(left, right)
        if op == "!=":
            return not self._equals(left, right)
        if op == "<":
            return self._compare(left, right) < 0
        if op == "<=":
            return self._compare(left, right) <= 0
        if op == ">":
            return self._compare(left, right) > 0
        if op == ">=":
            return self._compare(left, right) >= 0

        # Membership and pattern operators
        if op == "in":
            return self._in(left, right)
        if op == "not in":
            return not self._in(left, right)
        if op == "matches":
            return self._matches(left, right)

        # Arithmetic operators
        if op == "+":
            return self._add(left, right)
        if op == "-":
            return self._arithmetic("subtract", left, right, lambda a, b: a - b)
        if op == "*":
            return self._arithmetic("multiply", left, right, lambda a, b: a * b)
        if op == "/":
            return self._divide(left, right)
        if op == "%":
            return self._modulo(left, right)

        raise EvaluationError(f"Unknown operator: {op}")

    def _eval_unaryop(self, node: UnaryOp) -> Any:
        """Evaluate a unary operation."""
        operand = self.evaluate(node.operand)

        if node.operator == "!":
            return not self._to_bool(operand)

        if node.operator == "-":
            if operand is None:
                return None
            if isinstance(operand, _NUMBER) and not isinstance(operand, bool):
                return -operand
            raise EvaluationError(f"Cannot negate non-numeric value: {operand!r}")

        raise EvaluationError(f"Unknown unary operator: {node.operator}")

    def _eval_ternary(self, node: Ternary) -> Any:
        """Evaluate a conditional expression."""
        if self._to_bool(self.evaluate(node.condition)):
            return self.evaluate(node.if_true)
        return self.evaluate(node.if_false)

    def _eval_elvis(self, node: Elvis) -> Any:
        """Evaluate an elvis expression; null and "" fall back."""
        value = self.evaluate(node.value)
        if value is None or (isinstance(value, str) and value == ""):
            return self.evaluate(node.fallback)
        return value

    def _eval_arrayliteral(self, node: ArrayLiteral) -> list[Any]:
        """Evaluate an array literal."""
        return [self.evaluate(elem) for elem in node.elements]

    def _eval_objectliteral(self, node: ObjectLiteral) -> dict[str, Any]:
        """Evaluate an object literal."""
        return {key: self.evaluate(value) for key, value in node.pairs}

    # -------------------------------------------------------------------------
    # Property and method resolution
    # -------------------------------------------------------------------------

    def _read_property(self, obj: Any, name: str) -> Any:
        """Read a property: mapping key for mappings, attribute otherwise."""
        if obj is None:
            raise EvaluationError(f"Cannot read property '{name}' of null")

        if isinstance(obj, Mapping):
            if name in obj:
                return obj[name]
            raise EvaluationError(f"Property '{name}' not found on {type(obj).__name__}")

        try:
            return getattr(obj, name)
        except AttributeError as e:
            raise EvaluationError(
                f"Property '{name}' not found on {type(obj).__name__}"
            ) from e

    def _invoke_method(self, obj: Any, name: str, args: list[Any]) -> Any:
        """Call method `name` on obj."""
        if obj is None:
            raise EvaluationError(f"Cannot call method '{name}' on null")

        try:
            method = getattr(obj, name)
        except AttributeError as e:
            raise EvaluationError(
                f"Method '{name}' not found on {type(obj).__name__}"
            ) from e

        if not callable(method):
            raise EvaluationError(f"'{name}' on {type(obj).__name__} is not callable")

        return self._call(name, method, args)

    def _call(self, name: str, func: Callable[..., Any], args: list[Any]) -> Any:
        try:
            return func(*args)
        except EvaluationError:
            raise
        except Exception as e:
            raise EvaluationError(f"Error calling {name}: {e}") from e

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _to_bool(self, value: Any) -> bool:
        """Convert an operand to boolean through the context's converter."""
        result = coerce(value, bool, self.context.type_converter)
        if result is None:
            raise EvaluationError("Cannot use null as a boolean operand")
        if not isinstance(result, bool):
            raise EvaluationError(f"Cannot use {type(value).__name__} as a boolean operand")
        return result

    def _equals(self, left: Any, right: Any) -> bool:
        """Check equality with numeric and date coercion."""
        if left is None and right is None:
            return True
        if left is None or right is None:
            return False

        # Numeric comparison
        if _is_number(left) and _is_number(right):
            return self._numeric("compare", left, right, lambda a, b: a == b)

        # Date comparison
        if isinstance(left, (date, datetime)) and isinstance(right, (date, datetime)):
            # Convert datetime to date for comparison if needed
            if isinstance(left, datetime) and not isinstance(right, datetime):
                left = left.date()
            elif isinstance(right, datetime) and not isinstance(left, datetime):
                right = right.date()
            return left == right

        return left == right

    def _compare(self, left: Any, right: Any) -> int:
        """Compare two values, returning -1, 0, or 1."""
        if left is None or right is None:
            # None comparisons: None < any non-None value
            if left is None and right is None:
                return 0
            if left is None:
                return -1
            return 1

        # Numeric comparison
        if _is_number(left) and _is_number(right):
            return self._numeric("compare", left, right, lambda a, b: (a > b) - (a < b))

        # Date comparison
        if isinstance(left, (date, datetime)) and isinstance(right, (date, datetime)):
            if isinstance(left, datetime) != isinstance(right, datetime):
                left = left.date() if isinstance(left, datetime) else left
                right = right.date() if isinstance(right, datetime) else right
            return (left > right) - (left < right)

        # String comparison
        if isinstance(left, str) and isinstance(right, str):
            return (left > right) - (left < right)

        raise EvaluationError(f"Cannot compare {type(left).__name__} and {type(right).__name__}")

    def _in(self, item: Any, collection: Any) -> bool:
        """Check if item is in collection."""
        if collection is None:
            return False

        if isinstance(collection, str):
            if item is None:
                return False
            return str(item) in collection

        if isinstance(collection, (list, tuple, set, frozenset, dict)):
            try:
                return item in collection
            except TypeError as e:  # unhashable item in a set or dict
                raise EvaluationError(f"Cannot look up {item!r} in {type(collection).__name__}") from e

        raise EvaluationError(f"'in' operator requires collection, got {type(collection).__name__}")

    def _matches(self, value: Any, pattern: Any) -> bool:
        """Full regex match of a string against a pattern."""
        if value is None:
            return False
        if not isinstance(pattern, str):
            raise EvaluationError(f"'matches' requires a string pattern, got {type(pattern).__name__}")
        try:
            return re.fullmatch(pattern, str(value)) is not None
        except re.error as e:
            raise EvaluationError(f"Invalid pattern '{pattern}': {e}") from e

    def _add(self, left: Any, right: Any) -> Any:
        """Add two values."""
        if left is None or right is None:
            return None

        # String concatenation
        if isinstance(left, str) or isinstance(right, str):
            return str(left) + str(right)

        return self._arithmetic("add", left, right, lambda a, b: a + b)

    def _divide(self, left: Any, right: Any) -> Any:
        """Divide two values."""
        if _is_number(right) and right == 0:
            raise EvaluationError("Division by zero")
        return self._arithmetic("divide", left, right, lambda a, b: a / b)

    def _modulo(self, left: Any, right: Any) -> Any:
        """Modulo operation."""
        if _is_number(right) and right == 0:
            raise EvaluationError("Modulo by zero")
        return self._arithmetic("modulo", left, right, lambda a, b: a % b)

    def _arithmetic(
        self, verb: str, left: Any, right: Any, op: Callable[[Any, Any], Any]
    ) -> Any:
        if left is None or right is None:
            return None

        if _is_number(left) and _is_number(right):
            return self._numeric(verb, left, right, op)

        raise EvaluationError(
            f"Cannot {verb} {type(left).__name__} and {type(right).__name__}"
        )

    def _numeric(
        self, verb: str, left: Any, right: Any, op: Callable[[Any, Any], Any]
    ) -> Any:
        """Apply op to two numbers without going through float."""
        try:
            if isinstance(left, Decimal) != isinstance(right, Decimal):
                # float and Decimal do not mix
                left, right = Decimal(str(left)), Decimal(str(right))
            return op(left, right)
        except ArithmeticError as e:
            raise EvaluationError(f"Cannot {verb} {left!r} and {right!r}: {e}") from e


def _is_number(value: Any) -> bool:
    return isinstance(value, _NUMBER) and not isinstance(value, bool)


# -----------------------------------------------------------------------------
# Compiled expressions
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CompiledExpression:
    """A parsed expression, reusable across evaluations and threads.

    Attributes:
        expression_string: The source text
        ast: The parsed AST root
    """

    expression_string: str
    ast: ASTNode

    def get_value(self, context: EvaluationContext, expected_type: type | None = None) -> Any:
        """Evaluate against context, optionally converting the result.

        Args:
            context: The evaluation context
            expected_type: Convert the result to this type via the context's
                converter (None results stay None)

        Raises:
            EvaluationError: If evaluation or conversion fails
        """
        value = Evaluator(context).evaluate(self.ast)
        if expected_type is None:
            return value
        return coerce(value, expected_type, context.type_converter)

    def __str__(self) -> str:
        return self.expression_string


def compile_expression(source: str) -> CompiledExpression:
    """Parse source into a CompiledExpression.

    Raises:
        CompilationError: If source is empty or not a valid expression
    """
    if not isinstance(source, str):
        raise CompilationError(
            f"Expression must be a string, got {type(source).__name__}", expression=repr(source)
        )

    try:
        ast = parse(source)
    except (LexerError, ParseError) as e:
        raise CompilationError(
            f"Invalid expression '{source}': {e}", expression=source, position=e.position
        ) from e

    return CompiledExpression(source, ast)


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def evaluate(
    expression: str,
    root_object: Any,
    functions: Mapping[str, Callable[..., Any]] | None = None,
    resolver: Any = None,
) -> Any:
    """Evaluate an expression string against a root object.

    Args:
        expression: The expression string to evaluate
        root_object: Object whose properties are visible unqualified
        functions: Helper functions callable as #name(...)
        resolver: Service resolver for @name references

    Returns:
        The result of evaluating the expression

    Example:
        result = evaluate('first == second', {"first": 42, "second": 42})
        # result = True
    """
    ctx = build_context(root_object, functions, resolver)
    return compile_expression(expression).get_value(ctx)


def evaluate_bool(
    expression: str,
    root_object: Any,
    functions: Mapping[str, Callable[..., Any]] | None = None,
    resolver: Any = None,
) -> bool:
    """Evaluate an expression and return a boolean result.

    The result goes through the relaxed boolean converter; null is False.
    """
    ctx = build_context(root_object, functions, resolver)
    result = compile_expression(expression).get_value(ctx, bool)
    return result is True

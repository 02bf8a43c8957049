"""Error taxonomy for exprassert.

- CompilationError: rule or guard text is not a valid expression (setup time)
- EvaluationError: evaluating a compiled expression failed (validation time)
- ResolutionError: a named service could not be resolved
- ConversionError: a value could not be converted to the requested type

A rule that legitimately evaluates to null is not an error; the validator
treats it as false.
"""


class ExprAssertError(Exception):
    """Base class for all exprassert errors."""


class CompilationError(ExprAssertError):
    """Expression text could not be compiled.

    Attributes:
        expression: The source text that failed to compile
        position: Character offset of the failure, if known
    """

    def __init__(self, message: str, expression: str = "", position: int | None = None):
        self.expression = expression
        self.position = position
        super().__init__(message)


class EvaluationError(ExprAssertError):
    """Error during expression evaluation."""


class ResolutionError(EvaluationError):
    """A named service referenced from an expression could not be resolved.

    Attributes:
        name: The service name that was requested
    """

    def __init__(self, name: str, message: str | None = None):
        self.name = name
        super().__init__(message or f"No service named '{name}' could be resolved")


class ConversionError(EvaluationError):
    """A value could not be converted to the requested type."""

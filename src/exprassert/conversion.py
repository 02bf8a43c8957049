"""Type conversion for expression results and operands.

Two converters implement the TypeConverter protocol:

- StandardTypeConverter: strict conversions (identity, str <-> scalar,
  number <-> number). Numbers, collections and arrays do not convert to bool.
- RelaxedBooleanConverter: decorates another converter and adds relaxed
  truthiness for bool targets, so a rule written as `tags` behaves like
  `len(tags) != 0` and `count` like `count != 0`.

Converters hold no mutable state; build one and pass it to whatever needs it.
"""

import array
import numbers
from collections.abc import Collection
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from exprassert.errors import ConversionError


class TypeConverter(Protocol):
    """Protocol for converting values between types."""

    def can_convert(self, source_type: type, target_type: type) -> bool:
        """Return True if values of source_type can be converted to target_type."""
        ...

    def convert(self, value: Any, source_type: type, target_type: type) -> Any:
        """Convert value (of source_type) to target_type.

        Raises:
            ConversionError: If the conversion is not supported
        """
        ...


# -----------------------------------------------------------------------------
# Type kinds
# -----------------------------------------------------------------------------

_NUMERIC_TYPES = (numbers.Real, Decimal)
_ARRAY_TYPES = (tuple, array.array)
_STRING_TYPES = (str, bytes, bytearray, memoryview)


def _is_type(value: Any, kinds: type | tuple[type, ...]) -> bool:
    return isinstance(value, type) and issubclass(value, kinds)


def is_boolean_type(target_type: type) -> bool:
    return _is_type(target_type, bool)


def is_numeric_type(source_type: type) -> bool:
    """Real numbers and Decimal; bool is not numeric here."""
    return _is_type(source_type, _NUMERIC_TYPES) and not _is_type(source_type, bool)


def is_array_type(source_type: type) -> bool:
    """Fixed-size sequences: tuples and array.array."""
    return _is_type(source_type, _ARRAY_TYPES)


def is_collection_type(source_type: type) -> bool:
    """Sized containers other than strings and arrays (list, set, dict, deque...)."""
    return (
        _is_type(source_type, Collection)
        and not _is_type(source_type, _STRING_TYPES)
        and not is_array_type(source_type)
    )


# -----------------------------------------------------------------------------
# Standard converter
# -----------------------------------------------------------------------------

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})
_NUMBER_TARGETS = (int, float, Decimal)


class StandardTypeConverter:
    """Strict converter used as the base of the conversion chain.

    - None converts to None for every target
    - A value that already is the target type passes through
    - str -> bool accepts true/false, yes/no, on/off, 1/0 (empty string -> None)
    - str -> int/float/Decimal parses; numbers convert between each other
    - anything -> str via str()
    """

    def can_convert(self, source_type: type, target_type: type) -> bool:
        if source_type is type(None):
            return True
        if _is_type(source_type, target_type):
            return True
        if target_type is str:
            return True
        if is_boolean_type(target_type):
            return _is_type(source_type, str)
        if target_type in _NUMBER_TARGETS:
            return _is_type(source_type, str) or is_numeric_type(source_type)
        return False

    def convert(self, value: Any, source_type: type, target_type: type) -> Any:
        if value is None:
            return None
        if isinstance(value, target_type):
            return value
        if target_type is str:
            return str(value)

        if is_boolean_type(target_type) and isinstance(value, str):
            text = value.strip().lower()
            if not text:
                return None
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
            raise ConversionError(f"Cannot convert '{value}' to bool")

        if target_type in _NUMBER_TARGETS and not isinstance(value, bool):
            if isinstance(value, str) or is_numeric_type(type(value)):
                try:
                    return target_type(value.strip() if isinstance(value, str) else value)
                except (ValueError, OverflowError, InvalidOperation) as e:
                    raise ConversionError(
                        f"Cannot convert {value!r} to {target_type.__name__}: {e}"
                    ) from e

        raise ConversionError(
            f"Cannot convert {type(value).__name__} to {target_type.__name__}"
        )


# -----------------------------------------------------------------------------
# Relaxed boolean decorator
# -----------------------------------------------------------------------------


class RelaxedBooleanConverter:
    """Adds relaxed boolean conversion on top of another converter.

    For bool targets:
    - numbers: truncated to an integer, then compared with zero (0.5 -> False)
    - collections and arrays: non-empty -> True
    - bool values pass through

    Everything else, None included, goes to the decorated converter unchanged.
    """

    def __init__(self, decorated: TypeConverter):
        """
        Args:
            decorated: Converter that handles every conversion this one does not
        """
        self._decorated = decorated

    @property
    def decorated(self) -> TypeConverter:
        return self._decorated

    def can_convert(self, source_type: type, target_type: type) -> bool:
        if is_boolean_type(target_type) and (
            is_numeric_type(source_type)
            or is_collection_type(source_type)
            or is_array_type(source_type)
        ):
            return True
        return self._decorated.can_convert(source_type, target_type)

    def convert(self, value: Any, source_type: type, target_type: type) -> Any:
        if not is_boolean_type(target_type):
            return self._decorated.convert(value, source_type, target_type)

        if value is not None:
            if isinstance(value, bool):
                return value
            if is_numeric_type(type(value)):
                return _truncates_to_nonzero(value)
            if is_collection_type(source_type) or is_array_type(source_type):
                return len(value) != 0

        return self._decorated.convert(value, source_type, target_type)


def _truncates_to_nonzero(value: Any) -> bool:
    try:
        return int(value) != 0
    except ValueError:  # NaN
        return False
    except OverflowError:  # infinity
        return True


def default_converter() -> TypeConverter:
    """Relaxed boolean converter over the standard converter."""
    return RelaxedBooleanConverter(StandardTypeConverter())


def coerce(value: Any, target_type: type, converter: TypeConverter) -> Any:
    """Convert an evaluation result to target_type using converter.

    None stays None; a value already of target_type is returned as is.

    Raises:
        ConversionError: If converter cannot handle the conversion
    """
    if value is None:
        return None
    if isinstance(value, target_type):
        return value

    source_type = type(value)
    if not converter.can_convert(source_type, target_type):
        raise ConversionError(
            f"Cannot convert {source_type.__name__} to {target_type.__name__}"
        )
    return converter.convert(value, source_type, target_type)

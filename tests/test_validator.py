"""Tests for RuleValidator.

Covers the guard-then-rule pipeline, null handling, relaxed boolean
results, helper functions and service resolution.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from sample_helpers import Helpers, OtherHelpers

from exprassert.conversion import StandardTypeConverter
from exprassert.errors import CompilationError, ConversionError, EvaluationError, ResolutionError
from exprassert.rules import RuleDefinition, compile_rule
from exprassert.services import MappingServiceResolver
from exprassert.validator import RuleValidator


@dataclass
class Mock:
    first: Any = None
    second: Any = None
    third: list = field(default_factory=list)

    def sayHello(self, name):
        return f"hello, {name}!"


def make_validator(expression: str, guard: str = "", helpers=(), **kwargs) -> RuleValidator:
    """Helper to create a validator from rule text."""
    return RuleValidator(
        RuleDefinition(expression=expression, guard=guard, helpers=helpers), **kwargs
    )


# =============================================================================
# Valid / invalid scenarios
# =============================================================================


VALID_ENTITIES = [
    # expression                        guard           helpers      object
    ("first == second",                 "",             (),          Mock(42, 42)),
    ("first > second",                  "first == 42",  (),          Mock(42, 24)),
    ("first > second",                  "first == 42",  (),          Mock(0, 66)),
    ("first == 'foo'",                  "second",       (),          Mock("bar", False)),
    ("first == 'foo'",                  "second",       (),          Mock("foo", 1)),
    ("first == second",                 "",             (),          Mock("foo", "foo")),
    ("!third",                          "",             (),          Mock(third=[])),
    ("third",                           "",             (),          Mock(third=["foo"])),
    ("'foo' in third",                  "",             (),          Mock(third=["foo"])),
    ("sayHello(first) == 'hello, John!'", "",           (),          Mock("John")),
    ("#isEven(first)",                  "",             (Helpers,),  Mock(2)),
    ("#countChars(first) == 4",         "",             (Helpers,),  Mock("cool")),
]

INVALID_ENTITIES = [
    ("first == second",                 "",             (),          Mock(0, 66)),
    ("first == second",                 "first == 42",  (),          Mock(42, 66)),
    ("first == 66",                     "second",       (),          Mock(0, True)),
    ("third",                           "",             (),          Mock(third=[])),
    ("sayHello(first) == 'hello, foo!'", "",            (),          Mock("John")),
    ("#isEven(first)",                  "",             (Helpers,),  Mock(1)),
]


class TestScenarios:
    @pytest.mark.parametrize("expression,guard,helpers,entity", VALID_ENTITIES)
    def test_valid_entities(self, expression, guard, helpers, entity):
        validator = make_validator(expression, guard, helpers)

        assert validator.validate(entity) is True, f"{expression!r} (if {guard!r}) on {entity}"

    @pytest.mark.parametrize("expression,guard,helpers,entity", INVALID_ENTITIES)
    def test_invalid_entities(self, expression, guard, helpers, entity):
        validator = make_validator(expression, guard, helpers)

        assert validator.validate(entity) is False, f"{expression!r} (if {guard!r}) on {entity}"

    def test_large_integers_are_not_equal(self):
        validator = make_validator("first == second")

        assert validator.validate({"first": 2**53, "second": 2**53 + 1}) is False
        assert validator.validate({"first": 2**53 + 1, "second": 2**53 + 1}) is True

    def test_mapping_instances(self):
        validator = make_validator("first == second")

        assert validator.validate({"first": 42, "second": 42}) is True
        assert validator.validate({"first": 0, "second": 66}) is False


# =============================================================================
# Pipeline semantics
# =============================================================================


class TestNullInstance:
    def test_none_is_always_valid(self):
        assert make_validator("false").validate(None) is True

    def test_none_skips_evaluation(self):
        probe = MagicMock(return_value=False)
        validator = make_validator("#probe()", guard="#probe()", helpers=({"probe": probe},))

        assert validator.validate(None) is True
        probe.assert_not_called()


class TestGuard:
    def test_false_guard_skips_main_expression(self):
        probe = MagicMock(return_value=False)
        validator = make_validator("#probe()", guard="first == 42", helpers=({"probe": probe},))

        assert validator.validate({"first": 0}) is True
        probe.assert_not_called()

    def test_true_guard_evaluates_main_expression(self):
        probe = MagicMock(return_value=False)
        validator = make_validator("#probe()", guard="first == 42", helpers=({"probe": probe},))

        assert validator.validate({"first": 42}) is False
        probe.assert_called_once_with()

    def test_null_guard_is_false(self):
        probe = MagicMock(return_value=False)
        validator = make_validator("#probe()", guard="second", helpers=({"probe": probe},))

        assert validator.validate({"second": None}) is True
        probe.assert_not_called()

    @pytest.mark.parametrize("guard", [0, [], ()])
    def test_relaxed_false_guard(self, guard):
        validator = make_validator("false", guard="second")

        assert validator.validate({"second": guard}) is True

    def test_guard_error_propagates(self):
        validator = make_validator("true", guard="missing")

        with pytest.raises(EvaluationError):
            validator.validate({"first": 1})


class TestNoGuard:
    @pytest.mark.parametrize(
        "value,expected",
        [(True, True), (False, False), (1, True), (0, False), (-5, True),
         (["x"], True), ([], False), (("x",), True), ((), False), (None, False)],
    )
    def test_result_is_coerced_main_expression(self, value, expected):
        assert make_validator("first").validate({"first": value}) is expected

    def test_string_result_goes_through_standard_converter(self):
        validator = make_validator("first")

        assert validator.validate({"first": "yes"}) is True
        assert validator.validate({"first": "off"}) is False

    def test_unconvertible_result_raises(self):
        with pytest.raises(ConversionError):
            make_validator("first").validate({"first": object()})

    def test_strict_converter(self):
        validator = make_validator("first", type_converter=StandardTypeConverter())

        with pytest.raises(ConversionError):
            validator.validate({"first": 1})


class TestErrors:
    def test_compilation_error_at_construction(self):
        with pytest.raises(CompilationError):
            make_validator("first ==")

    def test_compilation_error_in_guard(self):
        with pytest.raises(CompilationError):
            make_validator("first", guard="first $ 1")

    def test_integer_too_large_for_float(self):
        validator = make_validator("first > second")

        assert validator.validate({"first": 10**400, "second": 1}) is True

    def test_float_overflow_raises_evaluation_error(self):
        with pytest.raises(EvaluationError):
            make_validator("first + 0.5 > second").validate({"first": 10**400, "second": 1})

    def test_undefined_property_raises(self):
        with pytest.raises(EvaluationError):
            make_validator("missing == 1").validate({"first": 1})

    def test_unregistered_function_raises(self):
        with pytest.raises(EvaluationError):
            make_validator("#isEven(first)").validate({"first": 2})

    def test_service_without_resolver_raises(self):
        validator = make_validator("@registry.isValid(first)")

        with pytest.raises(ResolutionError):
            validator.validate({"first": "VALID"})

    def test_unknown_service_raises(self):
        validator = make_validator(
            "@other.isValid(first)",
            service_resolver=MappingServiceResolver({"registry": object()}),
        )

        with pytest.raises(ResolutionError):
            validator.validate({"first": "VALID"})


# =============================================================================
# Helpers and services
# =============================================================================


class TestHelpers:
    def test_later_helper_source_wins(self):
        validator = make_validator("#isEven(first)", helpers=(Helpers, OtherHelpers))

        assert validator.validate({"first": 1}) is True

    def test_earlier_helper_source_loses(self):
        validator = make_validator("#isEven(first)", helpers=(OtherHelpers, Helpers))

        assert validator.validate({"first": 1}) is False


class TestServices:
    class MockService:
        def isValid(self, value):
            return value == "VALID"

    def test_service_call(self):
        validator = make_validator(
            "@mockService.isValid(#this)",
            service_resolver=MappingServiceResolver({"mockService": self.MockService()}),
        )

        assert validator.validate("VALID") is True
        assert validator.validate("INVALID") is False

    def test_custom_resolver(self):
        resolver = MagicMock()
        resolver.resolve.return_value = self.MockService()
        validator = make_validator("@mockService.isValid(first)", service_resolver=resolver)

        assert validator.validate({"first": "VALID"}) is True
        resolver.resolve.assert_called_once_with("mockService")


# =============================================================================
# Construction, logging, concurrency
# =============================================================================


class TestRuleValidator:
    def test_accepts_compiled_rule(self):
        compiled = compile_rule(RuleDefinition("first == 1"))
        validator = RuleValidator(compiled)

        assert validator.rule is compiled
        assert validator.validate({"first": 1}) is True

    def test_expression_and_guard(self):
        validator = make_validator("first > second", guard="first == 42")

        assert validator.expression == "first > second"
        assert validator.guard == "first == 42"
        assert make_validator("first").guard is None

    def test_is_valid_alias(self):
        assert make_validator("first").is_valid({"first": 1}) is True

    def test_repr(self):
        assert repr(make_validator("first")) == "RuleValidator('first')"
        assert "guard='second'" in repr(make_validator("first", guard="second"))

    def test_debug_logging(self, caplog):
        validator = make_validator("#isEven(first)", guard="first > 0", helpers=(Helpers,))

        with caplog.at_level(logging.DEBUG, logger="exprassert.validator"):
            assert validator.validate({"first": 2}) is True

        messages = "\n".join(r.getMessage() for r in caplog.records)
        assert "Guard {first > 0}" in messages
        assert "Evaluating expression {#isEven(first)}" in messages
        assert "#isEven(value)" in messages

    def test_signatures_rendered_once(self, caplog):
        with patch("exprassert.functions.describe_function", return_value="#f()") as describe:
            validator = make_validator("#isEven(first)", helpers=(Helpers,))
            rendered = describe.call_count

            with caplog.at_level(logging.DEBUG, logger="exprassert.validator"):
                validator.validate({"first": 2})
                validator.validate({"first": 4})

        assert rendered == 4
        assert describe.call_count == rendered

    def test_logging_does_not_change_result(self, caplog):
        validator = make_validator("first == 1")

        with caplog.at_level(logging.DEBUG):
            debug_result = validator.validate({"first": 2})

        assert debug_result is validator.validate({"first": 2}) is False

    def test_shared_across_threads(self):
        validator = make_validator("#isEven(first)", helpers=(Helpers,))
        results: dict[int, bool] = {}

        def run(value: int) -> None:
            results[value] = validator.validate({"first": value})

        threads = [threading.Thread(target=run, args=(n,)) for n in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == {n: n % 2 == 0 for n in range(20)}

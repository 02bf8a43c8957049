"""Tests for helper function extraction and the FunctionRegistry."""

import math
import types

import pytest

import sample_helpers
from sample_helpers import Helpers, OtherHelpers

from exprassert.functions import FunctionRegistry, describe_function, extract_functions


class TestExtractFunctions:
    def test_empty_sources(self):
        assert extract_functions([]) == {}

    def test_class_static_methods(self):
        functions = extract_functions([Helpers])

        assert functions["isEven"](4) is True
        assert functions["isOdd"](4) is False
        assert functions["countChars"]("cool") == 4

    def test_class_methods_are_bound(self):
        functions = extract_functions([Helpers])

        assert functions["describe"](1) == "Helpers:1"

    def test_class_skips_instance_and_private_methods(self):
        functions = extract_functions([Helpers])

        assert "instance_only" not in functions
        assert "_hidden" not in functions

    def test_inherited_static_methods(self):
        class Derived(Helpers):
            @staticmethod
            def isOdd(value):
                return "overridden"

        functions = extract_functions([Derived])

        assert functions["isEven"](2) is True
        assert functions["isOdd"](2) == "overridden"

    def test_module_functions(self):
        functions = extract_functions([sample_helpers])

        assert functions["count_chars"]("abc") == 3
        assert functions["shout"]("hi") == "HI!"
        assert "_private" not in functions
        # Imported names and classes are not helpers
        assert "sqrt" not in functions
        assert "Helpers" not in functions

    def test_module_with_all(self):
        module = types.ModuleType("exported_helpers")
        module.__all__ = ["sqrt"]
        module.sqrt = math.sqrt
        module.floor = math.floor

        functions = extract_functions([module])

        assert list(functions) == ["sqrt"]

    def test_builtin_module(self):
        functions = extract_functions([math])

        assert functions["sqrt"](16) == 4

    def test_mapping_source(self):
        functions = extract_functions([{"double": lambda x: x * 2}])

        assert functions["double"](21) == 42

    def test_mapping_with_non_callable_raises(self):
        with pytest.raises(TypeError):
            extract_functions([{"answer": 42}])

    def test_unsupported_source_raises(self):
        with pytest.raises(TypeError):
            extract_functions([42])

    def test_last_registered_wins(self):
        functions = extract_functions([Helpers, OtherHelpers])

        assert functions["isEven"](1) is True

    def test_last_registered_wins_reversed(self):
        functions = extract_functions([OtherHelpers, Helpers])

        assert functions["isEven"](1) is False

    def test_collision_keeps_other_names(self):
        functions = extract_functions([Helpers, OtherHelpers])

        assert functions["isOdd"](1) is True


class TestFunctionRegistry:
    def test_from_sources(self):
        registry = FunctionRegistry.from_sources([Helpers])

        assert registry.is_registered("isEven")
        assert "isOdd" in registry
        assert registry.get("countChars")("abc") == 3

    def test_register_replaces(self):
        registry = FunctionRegistry({"f": lambda: 1})
        registry.register("f", lambda: 2)

        assert registry.get("f")() == 2
        assert len(registry) == 1

    def test_register_non_callable_raises(self):
        registry = FunctionRegistry()

        with pytest.raises(TypeError):
            registry.register("f", "not callable")

    def test_get_unknown_raises(self):
        with pytest.raises(KeyError):
            FunctionRegistry().get("missing")

    def test_names_sorted(self):
        registry = FunctionRegistry.from_sources([Helpers])

        assert registry.names() == ["countChars", "describe", "isEven", "isOdd"]

    def test_as_mapping_is_read_only(self):
        mapping = FunctionRegistry.from_sources([Helpers]).as_mapping()

        with pytest.raises(TypeError):
            mapping["isEven"] = None

    def test_describe(self):
        registry = FunctionRegistry.from_sources([Helpers])

        assert registry.describe()["isEven"] == "#isEven(value)"


class TestDescribeFunction:
    def test_plain_function(self):
        def add(a, b):
            return a + b

        assert describe_function("add", add) == "#add(a, b)"

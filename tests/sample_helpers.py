"""Helper sources used by the test suite (imported by name from tests and the CLI)."""

from math import sqrt  # noqa: F401  (imported, must not be extracted)


def count_chars(value):
    return len(value)


def shout(value):
    return value.upper() + "!"


def _private(value):
    return value


class Helpers:
    @staticmethod
    def isEven(value):
        return value % 2 == 0

    @staticmethod
    def isOdd(value):
        return value % 2 != 0

    @staticmethod
    def countChars(value):
        return len(value)

    @classmethod
    def describe(cls, value):
        return f"{cls.__name__}:{value}"

    def instance_only(self, value):
        return value

    @staticmethod
    def _hidden(value):
        return value


class OtherHelpers:
    @staticmethod
    def isEven(value):
        return True


class Registry:
    """Service used through @registry in CLI tests."""

    def isValid(self, value):
        return value == "VALID"


registry = Registry()

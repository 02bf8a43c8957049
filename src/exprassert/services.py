"""Service resolvers for `@name` references in expressions.

A resolver maps a service name to an object supplied by the host
application (a repository, a lookup table, a remote client...). The
expression `@users.exists(email)` resolves `users` and calls `exists` on it.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from exprassert.errors import ResolutionError


@runtime_checkable
class ServiceResolver(Protocol):
    """Protocol for resolving named services.

    Implementations raise ResolutionError (or any LookupError) when the
    name is unknown. Latency and failure handling of the lookup are up to
    the implementation; no timeout is imposed by the caller.
    """

    def resolve(self, name: str) -> Any:
        """Return the service registered under name."""
        ...


class MappingServiceResolver:
    """Resolves services from a fixed mapping.

    Example:
        resolver = MappingServiceResolver({"users": user_repository})
        resolver.resolve("users")  # user_repository
    """

    def __init__(self, services: Mapping[str, Any]):
        self._services = dict(services)

    def resolve(self, name: str) -> Any:
        if name not in self._services:
            raise ResolutionError(name)
        return self._services[name]

    def names(self) -> list[str]:
        return sorted(self._services)

    def __repr__(self) -> str:
        return f"MappingServiceResolver({self.names()!r})"

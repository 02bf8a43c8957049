"""Load rule declarations and data objects from YAML/JSON files.

Rules file format:

    rules:
      - expression: "first == second"
      - expression: "#isEven(first)"
        guard: "first > 0"
        helpers: ["myapp.helpers:MathHelpers"]
    services:
      users: "myapp.services:user_repository"

JSON is accepted wherever YAML is, since it is parsed with yaml.safe_load.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from exprassert.rules import RuleDefinition, load_helper
from exprassert.services import MappingServiceResolver


class RulesFileError(ValueError):
    """A rules or data file is malformed."""


@dataclass
class RulesFile:
    """Parsed rules file.

    Attributes:
        rules: Rule definitions in declared order
        services: Service objects by name (imported from "module:attr")
    """

    rules: list[RuleDefinition] = field(default_factory=list)
    services: dict[str, Any] = field(default_factory=dict)

    def create_resolver(self) -> MappingServiceResolver | None:
        """Resolver over the declared services, or None if there are none."""
        if not self.services:
            return None
        return MappingServiceResolver(self.services)


def load_rules_file(path: Path) -> RulesFile:
    """Load rule definitions and services from a YAML file.

    Raises:
        RulesFileError: If the file structure is invalid
        ImportError: If a helper or service module cannot be imported
    """
    data = _load_yaml(path)

    if not isinstance(data, dict) or "rules" not in data:
        raise RulesFileError(f"{path}: expected a mapping with a 'rules' list")

    raw_rules = data["rules"]
    if not isinstance(raw_rules, list):
        raise RulesFileError(f"{path}: 'rules' must be a list")

    rules = []
    for index, raw in enumerate(raw_rules):
        if isinstance(raw, str):
            raw = {"expression": raw}
        if not isinstance(raw, dict):
            raise RulesFileError(f"{path}: rule {index} must be a mapping or a string")
        try:
            rules.append(RuleDefinition.from_dict(raw))
        except ValueError as e:
            raise RulesFileError(f"{path}: rule {index}: {e}") from e

    raw_services = data.get("services") or {}
    if not isinstance(raw_services, dict):
        raise RulesFileError(f"{path}: 'services' must be a mapping")

    services = {
        str(name): load_helper(reference) if isinstance(reference, str) else reference
        for name, reference in raw_services.items()
    }

    return RulesFile(rules=rules, services=services)


def load_objects(path: Path) -> list[Any]:
    """Load the objects to validate: a list, or a single document."""
    data = _load_yaml(path)
    if isinstance(data, list):
        return data
    return [data]


def _load_yaml(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RulesFileError(f"{path}: invalid YAML: {e}") from e

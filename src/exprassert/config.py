"""Engine configuration from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from exprassert.conversion import (
    RelaxedBooleanConverter,
    StandardTypeConverter,
    TypeConverter,
)

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class EngineConfig:
    """Rule engine configuration.

    Attributes:
        relaxed_booleans: Wrap the standard converter so numbers, collections
            and arrays convert to bool
        log_level: Logging level name used by the CLI
    """

    relaxed_booleans: bool = True
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create config from environment variables.

        - EXPRASSERT_RELAXED_BOOLEANS: "0", "false", "no" or "off" disables
          relaxed boolean conversion (default: enabled)
        - EXPRASSERT_LOG_LEVEL: logging level name (default: WARNING)
        """
        relaxed = os.environ.get("EXPRASSERT_RELAXED_BOOLEANS", "true")
        log_level = os.environ.get("EXPRASSERT_LOG_LEVEL", "WARNING")

        return cls(
            relaxed_booleans=relaxed.strip().lower() not in _FALSE_VALUES,
            log_level=log_level.strip().upper() or "WARNING",
        )

    def create_converter(self) -> TypeConverter:
        """Build the type converter described by this config."""
        converter: TypeConverter = StandardTypeConverter()
        if self.relaxed_booleans:
            converter = RelaxedBooleanConverter(converter)
        return converter

    def configure_logging(self) -> None:
        """Configure root logging at log_level (used by the CLI)."""
        level = logging.getLevelName(self.log_level)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

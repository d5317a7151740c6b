"""Runtime configuration model for Strata.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_LOG_LEVEL,
    ENV_CONFIG_DIR,
    ENV_DURABLE_WRITES,
    ENV_LOG_LEVEL,
    FALSE_VALUES,
    SUPPORTED_LOG_LEVELS,
    TRUE_VALUES,
)
from core.errors import StrataConfigError


@dataclass(frozen=True)
class StrataConfig:
    """Validated runtime configuration.

    Attributes:
        config_dir: Directory holding one file per registered schema.
        durable_writes: Whether atomic writes fsync file and directory.
        log_level: Minimum structured log level.
    """

    config_dir: Path
    durable_writes: bool = True
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "StrataConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            StrataConfigError: If environment values are invalid.
        """
        config_dir_value = os.getenv(ENV_CONFIG_DIR, str(DEFAULT_CONFIG_DIR))
        durable_writes = _parse_bool(ENV_DURABLE_WRITES, os.getenv(ENV_DURABLE_WRITES, "true"))
        log_level = _parse_log_level(os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL))
        return cls(
            config_dir=Path(config_dir_value).expanduser().resolve(),
            durable_writes=durable_writes,
            log_level=log_level,
        )


def _parse_bool(env_name: str, raw_value: str) -> bool:
    """Parse a boolean environment value.

    Args:
        env_name: Environment variable name, for error messages.
        raw_value: Raw string from environment.

    Returns:
        Parsed boolean.

    Raises:
        StrataConfigError: If value is not a recognized boolean literal.
    """
    normalized = raw_value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise StrataConfigError(
        f"Invalid {env_name} value: expected one of "
        f"{', '.join(TRUE_VALUES + FALSE_VALUES)}, got '{raw_value}'."
    )


def _parse_log_level(raw_value: str) -> str:
    normalized = raw_value.strip().lower()
    if normalized not in SUPPORTED_LOG_LEVELS:
        raise StrataConfigError(
            f"Invalid {ENV_LOG_LEVEL} value: expected one of "
            f"{', '.join(SUPPORTED_LOG_LEVELS)}, got '{raw_value}'."
        )
    return normalized

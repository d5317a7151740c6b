"""Core constants used across Strata modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_DIR = Path(".strata")
DEFAULT_LOG_LEVEL = "info"
SUPPORTED_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
VERSION_KEY = "_version"
INITIAL_SCHEMA_VERSION = 1
TEMP_FILE_SUFFIX = ".tmp"
LOCK_FILE_SUFFIX = ".lock"
FILE_ENCODING = "utf-8"
TOML_SUFFIX = ".toml"
JSON_SUFFIX = ".json"
YAML_SUFFIXES = (".yaml", ".yml")
JSON_INDENT = 2
ENV_CONFIG_DIR = "STRATA_CONFIG_DIR"
ENV_DURABLE_WRITES = "STRATA_DURABLE_WRITES"
ENV_LOG_LEVEL = "STRATA_LOG_LEVEL"
TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")

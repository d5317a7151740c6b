"""Public SDK surface for Strata.

This module provides a stable import path for library users.
It re-exports the store, registry, settings, and error types.
"""

from __future__ import annotations

from core.config import StrataConfig
from core.errors import (
    StrataConfigError,
    StrataDecodeError,
    StrataEncodeError,
    StrataError,
    StrataIOError,
    StrataMigrationError,
    StrataNotLoadedError,
    StrataRegistryError,
    StrataUnregisteredSchemaError,
)
from core.types import ConfigSchema, MigrationStep, RecordMap, SchemaDescriptor
from migrate.migration_engine import migrate_record
from store.atomic_file import AtomicFile
from store.config_store import ConfigStore
from store.schema_registry import SchemaRegistry, build_registry

__all__ = [
    "AtomicFile",
    "ConfigSchema",
    "ConfigStore",
    "MigrationStep",
    "RecordMap",
    "SchemaDescriptor",
    "SchemaRegistry",
    "StrataConfig",
    "StrataConfigError",
    "StrataDecodeError",
    "StrataEncodeError",
    "StrataError",
    "StrataIOError",
    "StrataMigrationError",
    "StrataNotLoadedError",
    "StrataRegistryError",
    "StrataUnregisteredSchemaError",
    "build_registry",
    "migrate_record",
]

"""Config store managing every registered schema.

This module owns one typed holder per registered schema and exposes
typed load, get, update, and two-phase edit operations keyed by the
schema class. Every mutation that succeeds is persisted immediately
through the atomic file channel.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from pathlib import Path
from typing import Callable, TypeVar

from core.config import StrataConfig
from core.errors import StrataEncodeError, StrataIOError, StrataUnregisteredSchemaError
from core.logging_config import configure_logging, get_logger
from store.config_holder import ConfigHolder
from store.schema_registry import SchemaRegistry, schema_file_name

_LOGGER = get_logger(__name__)

SchemaT = TypeVar("SchemaT")


class ConfigStore:
    """Typed access to versioned config files in one directory.

    Lifecycle: build the store from a populated registry, call `load` or
    `load_all`, then read with `get` and change values with `update` or
    `begin_edit` / `commit_edit`. The store is not thread-safe; callers
    sharing it across threads must serialize access.
    """

    def __init__(self, registry: SchemaRegistry, config: StrataConfig | None = None) -> None:
        """Create a store for every schema in the registry.

        The registry is frozen and the config directory created.

        Args:
            registry: Populated schema registry.
            config: Optional runtime configuration.

        Raises:
            StrataIOError: If the config directory cannot be created.
        """
        self._config = config or StrataConfig.from_env()
        configure_logging(self._config.log_level)
        try:
            self._config.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise StrataIOError(
                f"Failed to create config directory {self._config.config_dir}: {error}."
            ) from error
        registry.freeze()
        self._registry = registry
        self._holders: dict[type, ConfigHolder] = {
            descriptor.schema: ConfigHolder(
                descriptor,
                registry.migrations_for(descriptor.schema),
                self._config.config_dir,
                durable=self._config.durable_writes,
            )
            for descriptor in registry.descriptors()
        }

    @classmethod
    def for_directory(cls, config_dir: Path | str, registry: SchemaRegistry) -> "ConfigStore":
        """Create a store for an explicit config directory.

        Other settings still come from the environment.
        """
        config = replace(
            StrataConfig.from_env(),
            config_dir=Path(config_dir).expanduser().resolve(),
        )
        return cls(registry, config)

    @property
    def config_dir(self) -> Path:
        return self._config.config_dir

    def schemas(self) -> tuple[type, ...]:
        """Return registered schema classes in registration order."""
        return tuple(self._holders)

    def config_path(self, schema: type) -> Path:
        """Return the file path backing a registered schema."""
        return self._holder(schema).path

    def is_loaded(self, schema: type) -> bool:
        return self._holder(schema).is_loaded

    def load(self, schema: type) -> None:
        """Load one schema from disk, migrating and creating as needed.

        Args:
            schema: Registered schema class.

        Raises:
            StrataUnregisteredSchemaError: If the schema is not registered.
            StrataIOError: If the file cannot be read or written.
            StrataDecodeError: If the file or migrated record is invalid.
            StrataMigrationError: If a migration step fails.
        """
        self._holder(schema).load()

    def load_all(self) -> None:
        """Load every registered schema in registration order.

        The first failure stops the pass; schemas loaded before it stay
        loaded and later ones are not attempted.
        """
        for holder in self._holders.values():
            holder.load()

    def get(self, schema: type[SchemaT]) -> SchemaT:
        """Return the loaded value of a schema.

        Raises:
            StrataUnregisteredSchemaError: If the schema is not registered.
            StrataNotLoadedError: If the schema was never loaded.
        """
        return self._holder(schema).value

    def update(
        self,
        schema: type[SchemaT],
        mutator: Callable[[SchemaT], SchemaT | None],
    ) -> SchemaT:
        """Mutate a loaded value and persist it.

        The mutator changes the held value in place or returns a new value
        of the schema type. If it raises, the exception propagates, changes
        it already made stay in memory, and nothing is written. The result
        is validated against the schema before it is written. Use
        `begin_edit` / `commit_edit` when partial changes must not be kept.

        Args:
            schema: Registered schema class.
            mutator: Callable receiving the held value.

        Returns:
            The held value after the update.

        Raises:
            StrataUnregisteredSchemaError: If the schema is not registered.
            StrataNotLoadedError: If the schema was never loaded.
            StrataEncodeError: If the mutator returns a foreign value or the
                value cannot be serialized.
            StrataDecodeError: If the mutated value does not satisfy the schema;
                memory keeps the mutation and nothing is written.
            StrataIOError: If the write fails; memory keeps the mutation.
        """
        holder = self._holder(schema)
        replacement = mutator(holder.value)
        if replacement is not None:
            _require_instance(holder, replacement, "update mutator returned")
            holder.replace_value(replacement)
        holder.validate(holder.value)
        holder.save()
        return holder.value

    def begin_edit(self, schema: type[SchemaT]) -> SchemaT:
        """Return a detached deep copy of a loaded value for editing.

        Changes to the copy are invisible to the store until passed to
        `commit_edit`.
        """
        return copy.deepcopy(self._holder(schema).value)

    def commit_edit(self, schema: type[SchemaT], edited: SchemaT) -> SchemaT:
        """Validate and persist an edited copy, then make it current.

        Memory and disk are left untouched when validation or the write
        fails.

        Args:
            schema: Registered schema class.
            edited: Value obtained from `begin_edit` and modified.

        Returns:
            The validated value now held by the store.

        Raises:
            StrataUnregisteredSchemaError: If the schema is not registered.
            StrataNotLoadedError: If the schema was never loaded.
            StrataEncodeError: If the value has the wrong type or cannot be
                serialized.
            StrataDecodeError: If the value does not satisfy the schema.
            StrataIOError: If the write fails.
        """
        holder = self._holder(schema)
        holder.require_loaded()
        _require_instance(holder, edited, "commit_edit received")
        validated = holder.validate(edited)
        holder.write_value(validated)
        holder.replace_value(validated)
        _LOGGER.info("config_edit_committed", schema=holder.descriptor.name, path=str(holder.path))
        return validated

    def save(self, schema: type) -> None:
        """Persist the currently held value of a schema."""
        self._holder(schema).save()

    def _holder(self, schema: type) -> ConfigHolder:
        holder = self._holders.get(schema)
        if holder is None:
            raise StrataUnregisteredSchemaError(schema_file_name(schema))
        return holder


def _require_instance(holder: ConfigHolder, value: object, context: str) -> None:
    schema = holder.descriptor.schema
    if not isinstance(value, schema):
        raise StrataEncodeError(
            f"{context} {type(value).__name__} for {holder.descriptor.name} config; "
            f"expected a {schema.__qualname__} instance."
        )

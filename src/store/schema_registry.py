"""Registry of config schemas and migration steps.

The registry is built once during application start-up and passed into
the config store. It is append-only: schemas and steps are never removed,
and the store freezes it so later registrations are rejected.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

from pydantic import PydanticSchemaGenerationError, PydanticUserError, TypeAdapter

from core.errors import StrataRegistryError, StrataUnregisteredSchemaError
from core.types import MigrationFn, MigrationStep, SchemaDescriptor
from store.record_codec import codec_for


class SchemaRegistry:
    """Append-only table of schema descriptors and migration steps."""

    def __init__(self) -> None:
        self._descriptors: dict[type, SchemaDescriptor] = {}
        self._schemas_by_file_name: dict[str, type] = {}
        self._steps: dict[tuple[type, int], MigrationStep] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        schema: type,
        default_factory: Callable[[], Any] | None = None,
    ) -> SchemaDescriptor:
        """Register a config schema class.

        The schema declares its current version and file name through the
        `VERSION` and `FILE_NAME` class attributes.

        Args:
            schema: Pydantic model or dataclass type.
            default_factory: Builder for the default value; the schema class
                itself when omitted.

        Returns:
            The registered descriptor.

        Raises:
            StrataRegistryError: If the schema is invalid, already registered,
                or its file name is taken, or the registry is frozen.
        """
        self._ensure_mutable(schema_file_name(schema))
        if schema in self._descriptors:
            raise StrataRegistryError(
                f"Config schema {schema.__qualname__} is already registered. "
                "Register each schema exactly once at start-up."
            )
        version = _declared_version(schema)
        file_name = _declared_file_name(schema)
        owner = self._schemas_by_file_name.get(file_name)
        if owner is not None:
            raise StrataRegistryError(
                f"Config file name {file_name!r} of {schema.__qualname__} is already used "
                f"by {owner.__qualname__}. File names must be unique per config directory."
            )
        codec_for(file_name)
        descriptor = SchemaDescriptor(
            schema=schema,
            version=version,
            file_name=file_name,
            default_factory=default_factory or schema,
            adapter=_build_adapter(schema),
        )
        self._descriptors[schema] = descriptor
        self._schemas_by_file_name[file_name] = schema
        return descriptor

    def register_migration(
        self,
        schema: type,
        from_version: int,
        migrate: MigrationFn,
    ) -> MigrationStep:
        """Register the step upgrading `schema` records from `from_version`.

        Steps may be registered before or after their schema.

        Raises:
            StrataRegistryError: If the step is invalid or duplicated, or the
                registry is frozen.
        """
        self._ensure_mutable(schema_file_name(schema))
        if isinstance(from_version, bool) or not isinstance(from_version, int) or from_version < 0:
            raise StrataRegistryError(
                f"Invalid migration source version {from_version!r} for "
                f"{schema.__qualname__}: expected a non-negative integer."
            )
        if not callable(migrate):
            raise StrataRegistryError(
                f"Migration for {schema.__qualname__} from version {from_version} is not callable."
            )
        declared_version = getattr(schema, "VERSION", None)
        if isinstance(declared_version, int) and from_version >= declared_version:
            raise StrataRegistryError(
                f"Migration for {schema.__qualname__} from version {from_version} would never "
                f"run: the schema is at version {declared_version}."
            )
        key = (schema, from_version)
        if key in self._steps:
            raise StrataRegistryError(
                f"A migration for {schema.__qualname__} from version {from_version} "
                "is already registered."
            )
        step = MigrationStep(schema=schema, from_version=from_version, migrate=migrate)
        self._steps[key] = step
        return step

    def migration(self, schema: type, from_version: int) -> Callable[[MigrationFn], MigrationFn]:
        """Decorator form of `register_migration`.

        Example:
            >>> @registry.migration(ServerConfig, from_version=1)
            ... def add_tls(record):
            ...     record["use_tls"] = True
        """

        def decorator(migrate: MigrationFn) -> MigrationFn:
            self.register_migration(schema, from_version, migrate)
            return migrate

        return decorator

    def freeze(self) -> None:
        """Reject further registrations."""
        self._frozen = True

    def descriptors(self) -> tuple[SchemaDescriptor, ...]:
        """Return registered descriptors in registration order."""
        return tuple(self._descriptors.values())

    def descriptor(self, schema: type) -> SchemaDescriptor:
        """Return the descriptor of a registered schema.

        Raises:
            StrataUnregisteredSchemaError: If the schema is unknown.
        """
        descriptor = self._descriptors.get(schema)
        if descriptor is None:
            raise StrataUnregisteredSchemaError(schema_file_name(schema))
        return descriptor

    def is_registered(self, schema: type) -> bool:
        return schema in self._descriptors

    def migrations_for(self, schema: type) -> dict[int, MigrationFn]:
        """Return a schema's migration functions keyed by source version."""
        return {
            from_version: step.migrate
            for (step_schema, from_version), step in self._steps.items()
            if step_schema is schema
        }

    def __len__(self) -> int:
        return len(self._descriptors)

    def _ensure_mutable(self, file_name: str) -> None:
        if self._frozen:
            raise StrataRegistryError(
                f"Cannot register {file_name}: the schema registry is frozen because a "
                "config store was already built from it. Register everything at start-up."
            )


def build_registry(*schemas: type) -> SchemaRegistry:
    """Create a registry with the given schemas registered in order."""
    registry = SchemaRegistry()
    for schema in schemas:
        registry.register(schema)
    return registry


def schema_file_name(schema: type) -> str:
    """Return the declared file name of a schema, or its name when undeclared."""
    file_name = getattr(schema, "FILE_NAME", None)
    if isinstance(file_name, str) and file_name:
        return file_name
    return getattr(schema, "__qualname__", repr(schema))


def _declared_version(schema: type) -> int:
    version = getattr(schema, "VERSION", None)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise StrataRegistryError(
            f"Config schema {schema.__qualname__} must declare VERSION as a positive "
            f"integer, got {version!r}."
        )
    return version


def _declared_file_name(schema: type) -> str:
    file_name = getattr(schema, "FILE_NAME", None)
    if not isinstance(file_name, str) or not file_name:
        raise StrataRegistryError(
            f"Config schema {schema.__qualname__} must declare FILE_NAME as a non-empty string."
        )
    if Path(file_name).name != file_name or file_name in {".", ".."}:
        raise StrataRegistryError(
            f"FILE_NAME of {schema.__qualname__} must be a plain file name without "
            f"directories, got {file_name!r}."
        )
    return file_name


def _build_adapter(schema: type) -> TypeAdapter[Any]:
    try:
        return TypeAdapter(schema)
    except (PydanticSchemaGenerationError, PydanticUserError) as error:
        raise StrataRegistryError(
            f"Config schema {schema.__qualname__} cannot be validated by pydantic: {error}. "
            "Use a pydantic model or a dataclass."
        ) from error

"""Shared typed models.

This module defines immutable data models used by the registry,
migration engine, and store layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, ClassVar, Mapping, Protocol, Union

from pydantic import TypeAdapter

RecordScalar = Union[str, bool, int, float, datetime, date, time]
RecordValue = Union[RecordScalar, list["RecordValue"], dict[str, "RecordValue"]]
RecordMap = dict[str, RecordValue]
MigrationFn = Callable[[RecordMap], Union[Mapping[str, RecordValue], None]]


class ConfigSchema(Protocol):
    """Class-level contract every registered config type satisfies.

    Attributes:
        VERSION: Current schema version, incremented on breaking changes.
        FILE_NAME: File name of the schema's file in the config directory.
    """

    VERSION: ClassVar[int]
    FILE_NAME: ClassVar[str]


@dataclass(frozen=True)
class SchemaDescriptor:
    """Registered identity and storage metadata of one config schema.

    Attributes:
        schema: Schema class, also used as the identity key.
        version: Current schema version.
        file_name: File name inside the config directory.
        default_factory: Zero-argument callable building the default value.
        adapter: Pydantic adapter validating and dumping schema values.
    """

    schema: type
    version: int
    file_name: str
    default_factory: Callable[[], Any]
    adapter: TypeAdapter[Any] = field(compare=False, repr=False)

    @property
    def name(self) -> str:
        return self.schema.__qualname__


@dataclass(frozen=True)
class MigrationStep:
    """One registered transformation from `from_version` to the next version.

    Attributes:
        schema: Schema class the step belongs to.
        from_version: Version the step upgrades from.
        migrate: Transformation over the generic record.
    """

    schema: type
    from_version: int
    migrate: MigrationFn


@dataclass(frozen=True)
class MigrationOutcome:
    """Result of walking a record up to the current schema version.

    Attributes:
        record: Normalized record carrying the target `_version`.
        changed: Whether the stored version differed from the target.
        from_version: Version the record declared before migration.
    """

    record: RecordMap
    changed: bool
    from_version: int

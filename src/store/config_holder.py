"""Typed holder binding one registered schema to its config file.

A holder starts empty, is populated by `load`, and afterwards always
holds exactly one value of its schema type. It owns the per-schema load
pipeline (read, parse, migrate, decode) and the save pipeline (encode,
stamp version, serialize, atomic write).
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Mapping

from core.errors import StrataNotLoadedError
from core.logging_config import get_logger
from core.types import MigrationFn, RecordMap, SchemaDescriptor
from migrate.migration_engine import migrate_record
from migrate.record_defaults import stamp_version
from store.atomic_file import AtomicFile
from store.record_codec import (
    codec_for,
    decode_value,
    encode_value,
    require_restorable_nones,
)

_LOGGER = get_logger(__name__)


class ConfigHolder:
    """Holds zero-or-one loaded value of one schema."""

    def __init__(
        self,
        descriptor: SchemaDescriptor,
        steps: Mapping[int, MigrationFn],
        config_dir: Path,
        durable: bool = True,
    ) -> None:
        self._descriptor = descriptor
        self._steps = dict(steps)
        self._codec = codec_for(descriptor.file_name)
        self._file = AtomicFile(config_dir / descriptor.file_name, durable=durable)
        self._value: Any = None
        self._loaded = False

    @property
    def descriptor(self) -> SchemaDescriptor:
        return self._descriptor

    @property
    def path(self) -> Path:
        return self._file.path

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def value(self) -> Any:
        """Return the loaded value.

        Raises:
            StrataNotLoadedError: If the holder was never loaded.
        """
        self.require_loaded()
        return self._value

    def replace_value(self, value: Any) -> None:
        """Swap the held value of a loaded holder."""
        self.require_loaded()
        self._value = value

    def load(self) -> None:
        """Load, migrate, and decode the schema's file.

        A missing file starts from schema defaults. The file is rewritten
        when it was missing or its version changed.

        Raises:
            StrataIOError: If the file cannot be read or written.
            StrataDecodeError: If the file or the migrated record is invalid.
            StrataMigrationError: If a migration step fails.
        """
        descriptor = self._descriptor
        defaults = self.encode_defaults()
        file_existed = self.path.exists()
        if file_existed:
            record = self._codec.parse(self._file.read(), self.path)
        else:
            record = stamp_version(copy.deepcopy(defaults), descriptor.version)
        outcome = migrate_record(
            record,
            descriptor.version,
            self._steps,
            defaults,
            descriptor.name,
        )
        self._value = decode_value(descriptor.adapter, outcome.record, descriptor.name)
        self._loaded = True
        if outcome.changed or not file_existed:
            self.save()
        _LOGGER.info(
            "config_loaded" if file_existed else "config_created",
            schema=descriptor.name,
            path=str(self.path),
            version=descriptor.version,
            migrated_from=outcome.from_version if outcome.changed else None,
        )

    def save(self) -> None:
        """Persist the held value atomically.

        Raises:
            StrataNotLoadedError: If the holder was never loaded.
            StrataEncodeError: If the value cannot be serialized.
            StrataIOError: If the write fails.
        """
        self.write_value(self.value)

    def write_value(self, value: Any) -> None:
        """Encode a schema value, stamp the version, and write it atomically."""
        descriptor = self._descriptor
        record = encode_value(descriptor.adapter, value, descriptor.name)
        if self._codec.drops_none:
            require_restorable_nones(record, self.encode_defaults(), descriptor.name)
        stamp_version(record, descriptor.version)
        self._file.write(self._codec.serialize(record, self.path))
        _LOGGER.info(
            "config_saved",
            schema=descriptor.name,
            path=str(self.path),
            version=descriptor.version,
        )

    def encode_defaults(self) -> RecordMap:
        """Encode the schema's default value as a generic record."""
        descriptor = self._descriptor
        return encode_value(descriptor.adapter, descriptor.default_factory(), descriptor.name)

    def validate(self, value: Any) -> Any:
        """Round-trip a value through the typed codec to validate it.

        Returns:
            The value decoded from its own encoding.

        Raises:
            StrataEncodeError: If the value cannot be encoded.
            StrataDecodeError: If the encoding does not satisfy the schema.
        """
        descriptor = self._descriptor
        record = encode_value(descriptor.adapter, value, descriptor.name)
        return decode_value(descriptor.adapter, record, descriptor.name)

    def require_loaded(self) -> None:
        """Raise StrataNotLoadedError unless the holder was loaded."""
        if not self._loaded:
            raise StrataNotLoadedError(
                f"Config {self._descriptor.file_name} was accessed before it was loaded. "
                "Call ConfigStore.load or ConfigStore.load_all first."
            )

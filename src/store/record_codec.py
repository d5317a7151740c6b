"""Generic record codecs and typed value conversion.

This module turns file bytes into generic records and back, picking the
text format from the file suffix, and converts between generic records
and typed schema values through pydantic type adapters.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
import tomllib
from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError
import tomli_w
import yaml

from core.constants import (
    FILE_ENCODING,
    JSON_INDENT,
    JSON_SUFFIX,
    TOML_SUFFIX,
    VERSION_KEY,
    YAML_SUFFIXES,
)
from core.errors import StrataDecodeError, StrataEncodeError, StrataRegistryError
from core.types import RecordMap, RecordValue


@dataclass(frozen=True)
class RecordCodec:
    """Text format used to persist generic records.

    Attributes:
        format_name: Human readable format name.
        loads: Parser from text to a generic value.
        dumps: Serializer from a generic record to text.
        parse_errors: Exception types the parser raises for bad input.
        drops_none: Whether None values are omitted on write.
    """

    format_name: str
    loads: Callable[[str], object]
    dumps: Callable[[RecordMap], str]
    parse_errors: tuple[type[Exception], ...]
    drops_none: bool = False

    def parse(self, data: bytes, source: Path) -> RecordMap:
        """Parse raw file bytes into a map-rooted generic record.

        Args:
            data: Raw file bytes.
            source: File path, for error messages.

        Returns:
            Parsed record. Blank files parse as an empty record.

        Raises:
            StrataDecodeError: If bytes are not valid text in this format,
                or the top level is not a map.
        """
        try:
            text = data.decode(FILE_ENCODING)
        except UnicodeDecodeError as error:
            raise StrataDecodeError(
                f"Failed to decode config file {source}: not valid UTF-8 ({error.reason})."
            ) from error
        if not text.strip():
            return {}
        try:
            payload = self.loads(text)
        except self.parse_errors as error:
            raise StrataDecodeError(
                f"Failed to parse {self.format_name} config file {source}: {error}. "
                "Fix the file syntax or delete it to recreate defaults."
            ) from error
        return require_record_map(payload, str(source))

    def serialize(self, record: RecordMap, destination: Path) -> bytes:
        """Serialize a generic record into file bytes.

        Raises:
            StrataEncodeError: If the record holds values the format cannot express.
        """
        try:
            text = self.dumps(record)
        except (TypeError, ValueError, yaml.YAMLError) as error:
            raise StrataEncodeError(
                f"Failed to serialize {self.format_name} config for {destination}: {error}."
            ) from error
        return text.encode(FILE_ENCODING)


def codec_for(file_name: str) -> RecordCodec:
    """Pick the codec matching a config file name suffix.

    Args:
        file_name: Config file name.

    Returns:
        Matching codec.

    Raises:
        StrataRegistryError: If the suffix has no codec.
    """
    suffix = Path(file_name).suffix.lower()
    codec = _CODECS_BY_SUFFIX.get(suffix)
    if codec is None:
        supported = ", ".join(sorted(_CODECS_BY_SUFFIX))
        raise StrataRegistryError(
            f"Unsupported config file format for {file_name!r}. "
            f"Use one of these suffixes: {supported}."
        )
    return codec


def require_record_map(payload: object, source: str) -> RecordMap:
    """Validate that a generic value is a string-keyed map at the root.

    Raises:
        StrataDecodeError: If the root is not a map with string keys.
    """
    if not isinstance(payload, dict):
        raise StrataDecodeError(
            f"Invalid config record from {source}: expected a map at top level, "
            f"got {type(payload).__name__}."
        )
    non_string_keys = [key for key in payload if not isinstance(key, str)]
    if non_string_keys:
        raise StrataDecodeError(
            f"Invalid config record from {source}: top-level keys must be strings, "
            f"got {non_string_keys[0]!r}."
        )
    return payload


def encode_value(adapter: TypeAdapter[Any], value: object, schema_name: str) -> RecordMap:
    """Convert a typed schema value into a generic record.

    Raises:
        StrataEncodeError: If the value cannot be dumped or is not map-shaped.
    """
    try:
        payload = adapter.dump_python(value, mode="json", warnings="error")
    except PydanticSerializationError as error:
        raise StrataEncodeError(f"Failed to encode {schema_name} config: {error}.") from error
    if not isinstance(payload, dict):
        raise StrataEncodeError(
            f"Failed to encode {schema_name} config: expected the value to serialize "
            f"to a map, got {type(payload).__name__}."
        )
    return payload


def decode_value(adapter: TypeAdapter[Any], record: RecordMap, schema_name: str) -> Any:
    """Convert a normalized generic record into a typed schema value.

    The reserved version key is stripped before validation.

    Raises:
        StrataDecodeError: If the record does not satisfy the schema.
    """
    fields = {key: value for key, value in record.items() if key != VERSION_KEY}
    try:
        return adapter.validate_python(fields)
    except ValidationError as error:
        raise StrataDecodeError(
            f"Failed to decode {schema_name} config: {error.error_count()} invalid field(s).\n"
            f"{error}"
        ) from error


def require_restorable_nones(
    record: RecordMap,
    defaults: RecordMap,
    schema_name: str,
    location: str = "",
) -> None:
    """Reject None values that would not survive a format without null.

    A dropped None reloads as the field default, so it is only safe where
    that default is None as well.

    Raises:
        StrataEncodeError: If a None value has a non-None default.
    """
    for key, value in record.items():
        field_path = f"{location}{key}"
        default = defaults.get(key)
        if value is None:
            if key not in defaults or default is not None:
                raise StrataEncodeError(
                    f"Cannot store {schema_name}.{field_path} = None: the file format "
                    "has no null value and the field would reload as its default. "
                    "Use a JSON or YAML config file for this schema or pick a non-None value."
                )
        elif isinstance(value, dict):
            nested_defaults = default if isinstance(default, dict) else {}
            require_restorable_nones(value, nested_defaults, schema_name, f"{field_path}.")


def _dump_toml(record: RecordMap) -> str:
    # TOML has no null, so absent optionals are omitted.
    return tomli_w.dumps(_drop_none(record))


def _drop_none(value: RecordValue) -> RecordValue:
    if isinstance(value, dict):
        return {key: _drop_none(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [_drop_none(item) for item in value]
    return value


def _dump_json(record: RecordMap) -> str:
    return json.dumps(record, indent=JSON_INDENT, ensure_ascii=False) + "\n"


def _dump_yaml(record: RecordMap) -> str:
    return yaml.safe_dump(record, sort_keys=False, default_flow_style=False, allow_unicode=True)


TOML_CODEC = RecordCodec(
    format_name="TOML",
    loads=tomllib.loads,
    dumps=_dump_toml,
    parse_errors=(tomllib.TOMLDecodeError,),
    drops_none=True,
)
JSON_CODEC = RecordCodec(
    format_name="JSON",
    loads=json.loads,
    dumps=_dump_json,
    parse_errors=(json.JSONDecodeError,),
)
YAML_CODEC = RecordCodec(
    format_name="YAML",
    loads=yaml.safe_load,
    dumps=_dump_yaml,
    parse_errors=(yaml.YAMLError,),
)
_CODECS_BY_SUFFIX: dict[str, RecordCodec] = {
    TOML_SUFFIX: TOML_CODEC,
    JSON_SUFFIX: JSON_CODEC,
    **{suffix: YAML_CODEC for suffix in YAML_SUFFIXES},
}

"""Version field and default-merge helpers for generic records."""

from __future__ import annotations

import copy

from core.constants import INITIAL_SCHEMA_VERSION, VERSION_KEY
from core.errors import StrataDecodeError
from core.types import RecordMap


def extract_version(record: object, source: str) -> int:
    """Read the declared schema version of a generic record.

    Records without a version field predate explicit versioning and are
    treated as the initial version.

    Args:
        record: Generic record, expected to be a map.
        source: Schema or file name, for error messages.

    Returns:
        Declared non-negative version.

    Raises:
        StrataDecodeError: If the record is not a map or the version
            field is not an unsigned integer.
    """
    if not isinstance(record, dict):
        raise StrataDecodeError(
            f"Invalid config record for {source}: expected a map at top level, "
            f"got {type(record).__name__}."
        )
    if VERSION_KEY not in record:
        return INITIAL_SCHEMA_VERSION
    return _coerce_version(record[VERSION_KEY], source)


def merge_defaults(record: RecordMap, defaults: RecordMap) -> list[str]:
    """Insert top-level default keys missing from the record.

    Existing keys are never overwritten.

    Args:
        record: Record updated in place.
        defaults: Encoded schema defaults.

    Returns:
        Keys that were inserted.
    """
    inserted: list[str] = []
    for key, value in defaults.items():
        if key not in record:
            record[key] = copy.deepcopy(value)
            inserted.append(key)
    return inserted


def stamp_version(record: RecordMap, version: int) -> RecordMap:
    """Write the version field into a record and return it."""
    record[VERSION_KEY] = version
    return record


def _coerce_version(raw_version: object, source: str) -> int:
    if isinstance(raw_version, bool):
        raise _invalid_version(raw_version, source)
    if isinstance(raw_version, float) and raw_version.is_integer():
        raw_version = int(raw_version)
    if isinstance(raw_version, int) and raw_version >= 0:
        return raw_version
    raise _invalid_version(raw_version, source)


def _invalid_version(raw_version: object, source: str) -> StrataDecodeError:
    return StrataDecodeError(
        f"Invalid {VERSION_KEY} in config record for {source}: expected an unsigned "
        f"integer, got {raw_version!r}. Fix or remove the {VERSION_KEY} field."
    )

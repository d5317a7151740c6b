"""Forward-only migration of generic records between schema versions.

A record declares its version in the reserved version field. The engine
steps the record one version at a time up to the target, merging schema
defaults before each step and applying the step registered for the
version being left, if any. Versions without a registered step only
gain defaulted fields.
"""

from __future__ import annotations

from collections.abc import Mapping

from core.errors import StrataMigrationError
from core.logging_config import get_logger
from core.types import MigrationFn, MigrationOutcome, RecordMap
from migrate.record_defaults import extract_version, merge_defaults, stamp_version

_LOGGER = get_logger(__name__)


def migrate_record(
    record: RecordMap,
    target_version: int,
    steps: Mapping[int, MigrationFn],
    defaults: RecordMap,
    schema_name: str,
) -> MigrationOutcome:
    """Upgrade a generic record to the target schema version.

    Args:
        record: Map-rooted record, mutated in place where possible.
        target_version: Current schema version.
        steps: Migration functions keyed by the version they upgrade from.
        defaults: Encoded schema defaults merged at every step.
        schema_name: Schema name, for logs and error messages.

    Returns:
        Outcome holding the normalized record and whether it changed.

    Raises:
        StrataDecodeError: If the record or its version field is malformed.
        StrataMigrationError: If the record is newer than the target or a
            step fails. The record is left partially migrated.
    """
    from_version = extract_version(record, schema_name)
    if from_version > target_version:
        raise StrataMigrationError(
            f"Cannot migrate {schema_name} config from version {from_version} down to "
            f"{target_version}: migrations are forward-only. "
            "The file was written by a newer release of the application."
        )
    current_version = from_version
    while current_version != target_version:
        merge_defaults(record, defaults)
        step = steps.get(current_version)
        if step is not None:
            record = _apply_step(step, record, current_version, schema_name)
        current_version += 1
    stamp_version(record, target_version)
    changed = from_version != target_version
    if changed:
        _LOGGER.info(
            "config_migrated",
            schema=schema_name,
            from_version=from_version,
            to_version=target_version,
        )
    return MigrationOutcome(record=record, changed=changed, from_version=from_version)


def _apply_step(
    step: MigrationFn,
    record: RecordMap,
    from_version: int,
    schema_name: str,
) -> RecordMap:
    """Run one migration step and validate the record it leaves behind."""
    try:
        replacement = step(record)
    except StrataMigrationError:
        raise
    except Exception as error:
        raise StrataMigrationError(
            f"Migration of {schema_name} config from version {from_version} to "
            f"{from_version + 1} failed: {error}"
        ) from error
    if replacement is not None:
        if not isinstance(replacement, Mapping):
            raise StrataMigrationError(
                f"Migration of {schema_name} config from version {from_version} returned "
                f"{type(replacement).__name__}; return None or a map."
            )
        record = dict(replacement)
    _LOGGER.debug(
        "migration_step_applied",
        schema=schema_name,
        from_version=from_version,
        to_version=from_version + 1,
    )
    return record

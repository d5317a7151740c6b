"""Strata exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class StrataError(Exception):
    """Base exception for all recoverable Strata failures."""


class StrataConfigError(StrataError):
    """Raised for invalid runtime configuration."""


class StrataIOError(StrataError):
    """Raised when a config file cannot be read, locked, or written."""


class StrataEncodeError(StrataError):
    """Raised when a typed value cannot be serialized to a record."""


class StrataDecodeError(StrataError):
    """Raised when bytes or a record cannot be decoded into a typed value."""


class StrataMigrationError(StrataError):
    """Raised when a registered migration step fails."""


class StrataRegistryError(StrataError):
    """Raised for invalid or duplicate schema registration."""


class StrataUnregisteredSchemaError(StrataError):
    """Raised when an operation targets a schema that was never registered.

    Attributes:
        file_name: File name declared by the offending schema.
    """

    def __init__(self, file_name: str) -> None:
        super().__init__(
            f"Config schema not registered: {file_name}. "
            "Register the schema on the SchemaRegistry before building the store."
        )
        self.file_name = file_name


class StrataNotLoadedError(RuntimeError):
    """Raised when a registered schema is accessed before it was loaded.

    This is a programming error, so it does not derive from StrataError.
    """

"""Config storage layer.

This module persists one file per registered config schema.
It provides atomic writes, format codecs, and typed store access.
"""

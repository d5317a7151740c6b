"""Schema version migration.

This module walks generic records from their stored version up to the
current schema version, applying registered steps and schema defaults.
"""

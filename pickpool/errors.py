"""Exceptions raised by the pick pool engine."""

from __future__ import annotations


class PickPoolError(Exception):
    """Base class for engine failures that callers must not paper over."""


class ConfigurationMissing(PickPoolError):
    """The scoring table has no entry for a stage that has matches."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"No scoring config for stage '{stage}'")


class SnapshotError(PickPoolError):
    """A snapshot document is structurally unusable."""

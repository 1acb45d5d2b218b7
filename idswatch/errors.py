"""Exception hierarchy for idswatch."""

from __future__ import annotations


class IdsWatchError(Exception):
    """Base class for all idswatch errors."""


class AlertDecodeError(IdsWatchError, ValueError):
    """A channel payload or alert object could not be decoded."""


class StorageError(IdsWatchError):
    """Persistent storage could not be read or written."""


class StatsFetchError(IdsWatchError):
    """The statistics endpoint could not be polled."""


class ConfigError(IdsWatchError, ValueError):
    """Client configuration is invalid."""

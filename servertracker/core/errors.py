"""Exceptions raised by the tracker core.

InvalidInputError is always raised before any storage access, StorageFailure
after the enclosing transaction has been rolled back.
"""


class TrackerError(Exception):
    pass


class InvalidInputError(TrackerError, ValueError):
    """Malformed identity, limit, merge gap or poll target."""


class StorageFailure(TrackerError):
    """A poll transaction could not be committed; nothing was applied."""


class NoKeeperCandidate(TrackerError):
    """A merge group resolved to an empty row set."""

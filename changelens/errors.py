"""Exception types raised across changelens."""

from __future__ import annotations


class ChangeLensError(Exception):
    """Base exception for changelens failures."""


class SourceUnavailableError(ChangeLensError):
    """Change data could not be retrieved from the repository."""


class InvalidInputError(ChangeLensError):
    """A change record cannot be classified as given."""


class PublishError(ChangeLensError):
    """The documentation backend rejected or failed a publish call."""

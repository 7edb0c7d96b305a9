"""
Failure kinds raised inside the install/uninstall pipelines.

They never leave ``ModManager``: each public operation catches ``ModError``
at its boundary and turns it into a queued, human-readable message.
"""


class ModError(Exception):
    """Base class for lifecycle failures."""


class ValidationError(ModError):
    """A precondition for the requested transition is not met."""


class ArchiveError(ModError):
    """The archive is missing, has no recognizable mod root, or failed to extract."""


class FilesystemError(ModError):
    """A rename or removal could not be carried out, or mod data is missing."""

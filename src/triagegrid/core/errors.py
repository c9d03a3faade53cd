"""Exceptions raised by the triage engine and its collaborators."""


class GridError(Exception):
    """Base class for triage engine errors."""


class InvalidPageSize(GridError):
    """Raised when a page size below 1 is requested."""


class InvalidInterval(GridError):
    """Raised when the refresh interval is not a positive number."""


class UnknownQuickFilter(GridError):
    """Raised when a quick filter or preset id is not registered."""


class MissingCollaborator(GridError):
    """Raised when an operation needs a collaborator that was not supplied."""


class SourceError(GridError):
    """Raised when a record source cannot be read or parsed."""

"""Exception types raised by the planner."""


class ValidationError(ValueError):
    """Input rejected before any state was changed."""


class RepositoryError(Exception):
    """Stored data could not be read or written."""

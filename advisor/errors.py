"""Exceptions raised by the recovery advisor."""


class ValidationError(ValueError):
    """A required request field is missing or empty."""

"""Exceptions."""


class ConfigurationError(ValueError):
    """An objective term was constructed with invalid or missing arguments."""

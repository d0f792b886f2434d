"""Exceptions raised by the Slack sink."""


class ConfigurationError(ValueError):
    """Raised when sink options are missing or invalid."""

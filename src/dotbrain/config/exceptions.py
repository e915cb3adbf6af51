"""Custom exceptions for configuration management."""


class ConfigError(Exception):
    """Raised when DotBrain configuration cannot be read, merged, or validated."""

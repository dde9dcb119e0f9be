"""Domain errors."""


class GrantCueError(Exception):
    """Base class for errors raised by GrantCue services."""


class ConfigurationError(GrantCueError):
    """Required server configuration is missing."""


class CriteriaError(GrantCueError):
    """An alert's saved criteria cannot be turned into a catalog query."""

    def __init__(self, field: str, value, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}={value!r}: {reason}")

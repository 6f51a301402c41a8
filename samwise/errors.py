"""Error types. Every failure is fatal and surfaces at the process boundary."""


class SamwiseError(Exception):
    """Base class for all samwise failures."""


class ConfigError(SamwiseError):
    """Raised when the config file is missing, unreadable, or malformed."""

    def __init__(self, details: str, path: object = None) -> None:
        self.path = path
        self.details = details
        where = f" ({path})" if path is not None else ""
        super().__init__(f"Config error{where}: {details}")


class DiffError(SamwiseError):
    """Raised when the diff tool fails or produces non-UTF-8 output."""


class SummarizerError(SamwiseError):
    """Raised when the completion request fails."""


class SessionError(SamwiseError):
    """Raised when the presence connection cannot start or a command fails."""


class ChannelClosedError(SamwiseError):
    """Raised when sending on a status channel that has been closed."""

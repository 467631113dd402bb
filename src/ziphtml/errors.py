"""Exception types for ziphtml."""


class ZiphtmlError(Exception):
    """Base exception for ziphtml errors."""

    pass


class MissingInputError(ZiphtmlError):
    """Raised when an operation needs an archive, document or tab that is absent."""

    pass


class ArchiveError(ZiphtmlError):
    """Raised when archive bytes cannot be read or packed."""

    pass


class SessionFormatError(ZiphtmlError):
    """Raised when a session file is missing a required entry or is corrupt."""

    pass


class ConfigError(ZiphtmlError):
    """Raised for invalid or unreadable configuration."""

    pass

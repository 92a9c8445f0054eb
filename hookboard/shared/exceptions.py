"""Custom exception hierarchy for Hookboard."""


class HookboardError(Exception):
    """Base exception for all dashboard errors."""

    pass


class ConfigError(HookboardError):
    """Raised when configuration validation fails."""

    pass


class PayloadError(HookboardError):
    """Raised when an upstream webhook payload cannot be interpreted."""

    pass


class DatabaseError(HookboardError):
    """Raised when database operations fail."""

    pass


class DuplicateKeyError(DatabaseError):
    """Raised when an insert collides with an existing primary key."""

    pass


class TableMissingError(DatabaseError):
    """Raised when the target table has not been created yet."""

    pass

"""Custom exceptions for RoomSplit."""


class RoomSplitError(Exception):
    """Base exception for all RoomSplit errors."""

    pass


class ConfigurationError(RoomSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(RoomSplitError):
    """Raised when a mutation would break a ledger rule."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ImportFormatError(ValidationError):
    """Raised when an imported payload is not a valid group snapshot."""

    pass


class NotFoundError(RoomSplitError):
    """Raised when operating on an unknown member or expense."""

    def __init__(self, kind: str, identifier: str, message: str | None = None):
        self.kind = kind
        self.identifier = identifier
        super().__init__(message or f"No {kind} found for '{identifier}'")


class StorageError(RoomSplitError):
    """Raised when a persisted snapshot cannot be read."""

    pass

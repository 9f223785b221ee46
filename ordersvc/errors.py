"""Errors shared by the storage, use-case and HTTP layers."""


class RecordNotFoundError(LookupError):
    """Raised when a requested record does not exist."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)
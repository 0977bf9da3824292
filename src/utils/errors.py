"""Custom exception types for consistent error handling."""


class DataUnavailableError(Exception):
    """Raised when Firestore reads or writes fail or the store is unavailable."""


class NotFoundError(Exception):
    """Raised when a referenced profile no longer exists."""


class InvalidInputError(Exception):
    """Raised when an identifier, radius or swipe action is malformed."""

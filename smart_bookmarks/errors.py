"""Errors surfaced to the user through the view's error message slot."""

REQUIRED_FIELDS_MESSAGE = 'Title and URL are required.'
SESSION_FALLBACK_MESSAGE = 'Failed to load session. Please sign in again.'


class BookmarkAppError(Exception):
    """Base error; ``message`` is shown to the user as-is."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(BookmarkAppError):
    """Raised before any network call when a title or URL is blank."""

    def __init__(self, message=REQUIRED_FIELDS_MESSAGE):
        super().__init__(message)


class StorageError(BookmarkAppError):
    """Raised when a read or write against the bookmarks table fails."""


class SessionError(BookmarkAppError):
    """Raised when the identity service fails to resolve, sign in or sign out."""

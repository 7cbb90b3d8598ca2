"""
Service exceptions.

Handlers and the store raise these. The exception handler registered in
books_api.main translates them into an ErrorResponse with `status_code`.
"""

from typing import Optional


class BookServiceError(Exception):
    """Base class for all service errors."""

    status_code: int = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationError(BookServiceError):
    """Request body could not be deserialized into a book."""

    status_code = 400


class NotFoundError(BookServiceError):
    """No book matches the given id."""

    status_code = 404

    def __init__(self, book_id: str):
        self.book_id = book_id
        super().__init__(f"Book with ID '{book_id}' not found")


class StorageError(BookServiceError):
    """The document store failed for a reason other than a missing book."""

    status_code = 500


class DuplicateIdError(StorageError):
    """A document with the generated id already exists."""

    def __init__(self, book_id: str):
        self.book_id = book_id
        super().__init__(f"Book with ID '{book_id}' already exists")


class DeadlineExceededError(StorageError):
    """A store call did not finish before the request deadline."""


class ServiceUnavailableError(BookServiceError):
    """The document store is not connected."""

    status_code = 503


class RequestCancelledError(BookServiceError):
    """The caller went away while a store call was in flight."""

    status_code = 499


class StartupError(BookServiceError):
    """The document store could not be reached or verified at startup."""

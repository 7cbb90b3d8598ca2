"""
Book resource handlers.

BookHandlers is bound to one store and one id generator at construction.
Each coroutine implements one CRUD operation and returns wire-ready data;
failures are raised as BookServiceError subclasses for the app to map.
"""

from typing import Any, Dict, List, Optional

import structlog

from books_api.database import BookStore
from books_api.deadline import RequestDeadline
from books_api.exceptions import DuplicateIdError, StorageError
from books_api.ids import IdGenerator, UUIDGenerator
from books_api.models import Book, BookCreate, BookUpdate

logger = structlog.get_logger(__name__)

DELETE_CONFIRMATION = "Book deleted successfully"


class BookHandlers:
    """CRUD operations for books against a single BookStore."""

    def __init__(self, store: BookStore, id_generator: Optional[IdGenerator] = None, max_id_attempts: int = 3):
        """
        Initialize handlers.

        Args:
            store: Connected store shared by all requests
            id_generator: Source of ids for new books
            max_id_attempts: Inserts tried before giving up on id collisions
        """
        self.store = store
        self.id_generator = id_generator or UUIDGenerator()
        self.max_id_attempts = max_id_attempts

    async def list_books(self, deadline: Optional[RequestDeadline] = None) -> List[Dict[str, Any]]:
        """List every book. An empty store yields an empty list."""
        books = await self.store.find_all(deadline)
        logger.debug("Listed books", count=len(books))
        return [book.to_response() for book in books]

    async def get_book(self, book_id: str, deadline: Optional[RequestDeadline] = None) -> Dict[str, Any]:
        book = await self.store.find_by_id(book_id, deadline)
        return book.to_response()

    async def create_book(self, payload: BookCreate, deadline: Optional[RequestDeadline] = None) -> Dict[str, Any]:
        """
        Create a book under a freshly generated id.

        The store rejects duplicate ids; on a collision a new id is drawn,
        up to max_id_attempts times.

        Args:
            payload: Validated request body
            deadline: Request deadline passed to every store call

        Returns:
            The created book including its id
        """
        fields = payload.present_fields()
        for attempt in range(1, self.max_id_attempts + 1):
            book = Book(id=self.id_generator.new_id(), **fields)
            try:
                created = await self.store.insert(book, deadline)
            except DuplicateIdError:
                logger.warning("Generated book id collided", book_id=book.id,
                               attempt=attempt, max_attempts=self.max_id_attempts)
                continue
            logger.info("Book created", book_id=created.id)
            return created.to_response()

        raise StorageError(
            "Failed to create book",
            detail=f"no unique id after {self.max_id_attempts} attempts",
        )

    async def update_book(
        self, book_id: str, payload: BookUpdate, deadline: Optional[RequestDeadline] = None
    ) -> Dict[str, Any]:
        """
        Merge the supplied fields into an existing book.

        Fields left out of the body keep their stored values. The response is
        the book as stored after the merge.
        """
        book = await self.store.update_by_id(book_id, payload.present_fields(), deadline)
        logger.info("Book updated", book_id=book_id)
        return book.to_response()

    async def delete_book(self, book_id: str, deadline: Optional[RequestDeadline] = None) -> Dict[str, str]:
        await self.store.delete_by_id(book_id, deadline)
        logger.info("Book deleted", book_id=book_id)
        return {"message": DELETE_CONFIRMATION}

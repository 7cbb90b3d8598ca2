"""
MongoDB store for book documents.
Handles connection, liveness checking and single-document CRUD operations.
"""

from typing import Any, Dict, List, Optional

import structlog
from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import ValidationError as ModelValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from books_api.deadline import RequestDeadline
from books_api.exceptions import DuplicateIdError, NotFoundError, StartupError, StorageError
from books_api.models import Book

logger = structlog.get_logger(__name__)


class BookStore:
    """
    Interface the handlers use to talk to the document store.

    Every operation takes an optional RequestDeadline; implementations run
    their store calls through it so a request's cancellation reaches them.
    """

    async def find_all(self, deadline: Optional[RequestDeadline] = None) -> List[Book]:
        raise NotImplementedError

    async def find_by_id(self, book_id: str, deadline: Optional[RequestDeadline] = None) -> Book:
        raise NotImplementedError

    async def insert(self, book: Book, deadline: Optional[RequestDeadline] = None) -> Book:
        raise NotImplementedError

    async def update_by_id(
        self, book_id: str, fields: Dict[str, Any], deadline: Optional[RequestDeadline] = None
    ) -> Book:
        raise NotImplementedError

    async def delete_by_id(self, book_id: str, deadline: Optional[RequestDeadline] = None) -> None:
        raise NotImplementedError

    async def health_check(self) -> Dict[str, Any]:
        raise NotImplementedError


async def _run(awaitable, deadline: Optional[RequestDeadline]):
    if deadline is None:
        return await awaitable
    return await deadline.run(awaitable)


class MongoBookStore(BookStore):
    """
    Async MongoDB store for books.
    One instance is connected at startup and shared by all requests.
    """

    def __init__(self, connection_url: str, database_name: str, collection_name: str):
        """
        Initialize MongoDB store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the collection
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """
        Establish the connection and verify it with a ping.

        Raises:
            StartupError: The server could not be reached or did not answer
        """
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]

            # Test connection
            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        collection=self.collection_name)

        except PyMongoError as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise StartupError("Could not connect to MongoDB", detail=str(e)) from e

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def find_all(self, deadline: Optional[RequestDeadline] = None) -> List[Book]:
        """
        Get every book in store order.

        Returns:
            List of books, empty when the collection is empty

        Raises:
            StorageError: The query or decoding any document failed
        """
        try:
            cursor = self.collection.find({})
            documents = await _run(cursor.to_list(length=None), deadline)
            return [Book.from_document(document) for document in documents]

        except (PyMongoError, BSONError, ModelValidationError, KeyError) as e:
            logger.error("Failed to list books", error=str(e))
            raise StorageError("Failed to retrieve books", detail=str(e)) from e

    async def find_by_id(self, book_id: str, deadline: Optional[RequestDeadline] = None) -> Book:
        """
        Get a single book by ID.

        Raises:
            NotFoundError: No document has this id
            StorageError: The lookup or decoding failed
        """
        try:
            document = await _run(self.collection.find_one({"_id": book_id}), deadline)
            if document is None:
                raise NotFoundError(book_id)
            return Book.from_document(document)

        except (PyMongoError, BSONError, ModelValidationError) as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise StorageError("Failed to retrieve book", detail=str(e)) from e

    async def insert(self, book: Book, deadline: Optional[RequestDeadline] = None) -> Book:
        """
        Insert a new book document keyed by its id.

        Raises:
            DuplicateIdError: A document with this id already exists
            StorageError: The insert failed
        """
        try:
            await _run(self.collection.insert_one(book.to_document()), deadline)
            logger.debug("Successfully inserted book", book_id=book.id)
            return book

        except DuplicateKeyError as e:
            logger.warning("Book already exists", book_id=book.id)
            raise DuplicateIdError(book.id) from e

        except (PyMongoError, BSONError) as e:
            logger.error("Failed to insert book", book_id=book.id, error=str(e))
            raise StorageError("Failed to create book", detail=str(e)) from e

    async def update_by_id(
        self, book_id: str, fields: Dict[str, Any], deadline: Optional[RequestDeadline] = None
    ) -> Book:
        """
        Merge fields into an existing book.

        Args:
            book_id: Book identifier
            fields: Non-empty fields to set; omitted fields keep their values

        Returns:
            The book as stored after the update

        Raises:
            NotFoundError: No document has this id
            StorageError: The update failed
        """
        if not fields:
            return await self.find_by_id(book_id, deadline)

        try:
            document = await _run(
                self.collection.find_one_and_update(
                    {"_id": book_id},
                    {"$set": fields},
                    return_document=ReturnDocument.AFTER,
                ),
                deadline,
            )
            if document is None:
                raise NotFoundError(book_id)
            logger.debug("Successfully updated book", book_id=book_id, fields=sorted(fields))
            return Book.from_document(document)

        except (PyMongoError, BSONError, ModelValidationError) as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise StorageError("Failed to update book", detail=str(e)) from e

    async def delete_by_id(self, book_id: str, deadline: Optional[RequestDeadline] = None) -> None:
        """
        Remove a book.

        Raises:
            NotFoundError: No document has this id
            StorageError: The delete failed
        """
        try:
            result = await _run(self.collection.delete_one({"_id": book_id}), deadline)

        except (PyMongoError, BSONError) as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise StorageError("Failed to delete book", detail=str(e)) from e

        if result.deleted_count == 0:
            raise NotFoundError(book_id)
        logger.debug("Successfully deleted book", book_id=book_id)

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            books_count = await self.collection.count_documents({})

            return {
                "status": "healthy",
                "books_collection": "accessible",
                "books_count": books_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
            }

"""
Pytest configuration and shared fixtures.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from books_api.config import APIConfig
from books_api.database import BookStore
from books_api.deadline import RequestDeadline
from books_api.exceptions import DuplicateIdError, NotFoundError
from books_api.handlers import BookHandlers
from books_api.main import create_app
from books_api.models import Book


class InMemoryBookStore(BookStore):
    """BookStore keeping documents in a dict, keyed by `_id` like MongoDB."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.delay = 0.0

    async def _checkpoint(self, deadline: Optional[RequestDeadline]) -> None:
        # Yield to the loop so concurrent requests interleave
        if deadline is None:
            await asyncio.sleep(self.delay)
        else:
            await deadline.run(asyncio.sleep(self.delay))

    async def find_all(self, deadline=None) -> List[Book]:
        self.calls.append("find_all")
        await self._checkpoint(deadline)
        return [Book.from_document(document) for document in self.documents.values()]

    async def find_by_id(self, book_id, deadline=None) -> Book:
        self.calls.append("find_by_id")
        await self._checkpoint(deadline)
        if book_id not in self.documents:
            raise NotFoundError(book_id)
        return Book.from_document(self.documents[book_id])

    async def insert(self, book, deadline=None) -> Book:
        self.calls.append("insert")
        await self._checkpoint(deadline)
        if book.id in self.documents:
            raise DuplicateIdError(book.id)
        self.documents[book.id] = book.to_document()
        return book

    async def update_by_id(self, book_id, fields, deadline=None) -> Book:
        self.calls.append("update_by_id")
        await self._checkpoint(deadline)
        if book_id not in self.documents:
            raise NotFoundError(book_id)
        self.documents[book_id].update(fields)
        return Book.from_document(self.documents[book_id])

    async def delete_by_id(self, book_id, deadline=None) -> None:
        self.calls.append("delete_by_id")
        await self._checkpoint(deadline)
        if self.documents.pop(book_id, None) is None:
            raise NotFoundError(book_id)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "books_count": len(self.documents)}


@pytest.fixture
def settings():
    """Settings independent of the local environment and .env file."""
    return APIConfig(_env_file=None, request_timeout=5, disconnect_poll_interval=0.05)


@pytest.fixture
def store():
    """Create an empty in-memory store."""
    return InMemoryBookStore()


@pytest.fixture
def handlers(store):
    """Handlers bound to the in-memory store."""
    return BookHandlers(store)


@pytest.fixture
def client(settings, store):
    """Create test client backed by the in-memory store."""
    return TestClient(create_app(settings, store=store))


@pytest.fixture
def dune():
    """Sample book body."""
    return {"title": "Dune", "author": "Herbert", "year": 1965}

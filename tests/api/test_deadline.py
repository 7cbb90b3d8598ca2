"""
Tests for identifier generation and request deadlines.
"""

import asyncio

import pytest

from books_api.deadline import RequestDeadline
from books_api.exceptions import DeadlineExceededError, RequestCancelledError, StorageError
from books_api.ids import TimestampIdGenerator, UUIDGenerator, get_id_generator
from books_api.main import _watch_disconnect


class TestIdGenerators:
    """Test cases for id generators."""

    def test_uuid_ids_are_unique_hex(self):
        generator = UUIDGenerator()
        ids = {generator.new_id() for _ in range(1000)}
        assert len(ids) == 1000
        assert all(len(book_id) == 32 for book_id in ids)

    def test_timestamp_ids_are_decimal_strings(self):
        generator = TimestampIdGenerator(clock=lambda: 1700000000123456789)
        assert generator.new_id() == "1700000000123456789"

    def test_get_id_generator(self):
        assert isinstance(get_id_generator("uuid"), UUIDGenerator)
        assert isinstance(get_id_generator("timestamp"), TimestampIdGenerator)
        with pytest.raises(ValueError):
            get_id_generator("sequence")


class _FakeRequest:
    def __init__(self, disconnect_after: int):
        self.checks = 0
        self.disconnect_after = disconnect_after

    async def is_disconnected(self) -> bool:
        self.checks += 1
        return self.checks >= self.disconnect_after


class TestRequestDeadline:
    """Test cases for RequestDeadline."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def operation():
            return "done"

        assert await RequestDeadline(timeout=1).run(operation()) == "done"

    @pytest.mark.asyncio
    async def test_unbounded(self):
        deadline = RequestDeadline()
        assert deadline.remaining() is None
        assert await deadline.run(asyncio.sleep(0, result=5)) == 5

    @pytest.mark.asyncio
    async def test_propagates_operation_errors(self):
        async def operation():
            raise StorageError("boom")

        with pytest.raises(StorageError):
            await RequestDeadline(timeout=1).run(operation())

    @pytest.mark.asyncio
    async def test_timeout_aborts_operation(self):
        """Test that an overdue store call is cancelled and reported."""
        aborted = asyncio.Event()

        async def slow_operation():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                aborted.set()
                raise

        with pytest.raises(DeadlineExceededError) as exc_info:
            await RequestDeadline(timeout=0.05).run(slow_operation())

        assert isinstance(exc_info.value, StorageError)
        await asyncio.sleep(0.01)
        assert aborted.is_set()

    @pytest.mark.asyncio
    async def test_cancel_aborts_in_flight_operation(self):
        """Test that cancelling the request aborts the store call."""
        deadline = RequestDeadline(timeout=5)
        aborted = asyncio.Event()

        async def slow_operation():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                aborted.set()
                raise

        asyncio.get_running_loop().call_later(0.05, deadline.cancel)

        with pytest.raises(RequestCancelledError):
            await deadline.run(slow_operation())
        await asyncio.sleep(0.01)
        assert aborted.is_set()

    @pytest.mark.asyncio
    async def test_cancelled_deadline_rejects_new_calls(self):
        deadline = RequestDeadline(timeout=5)
        deadline.cancel()

        with pytest.raises(RequestCancelledError):
            await deadline.run(asyncio.sleep(0))

    @pytest.mark.asyncio
    async def test_disconnect_watcher_cancels_deadline(self):
        """A client disconnect cancels the request's deadline."""
        deadline = RequestDeadline(timeout=5)
        request = _FakeRequest(disconnect_after=3)

        await asyncio.wait_for(_watch_disconnect(request, deadline, 0.01), timeout=1)

        assert deadline.cancelled
        assert request.checks == 3

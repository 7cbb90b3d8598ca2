"""
FastAPI main application for the Golib Books API.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as ModelValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from books_api.config import APIConfig, config
from books_api.database import BookStore, MongoBookStore
from books_api.deadline import RequestDeadline
from books_api.exceptions import BookServiceError, ServiceUnavailableError, ValidationError
from books_api.handlers import BookHandlers
from books_api.ids import IdGenerator, get_id_generator
from books_api.models import Book, BookCreate, BookUpdate, ErrorResponse, HealthResponse, MessageResponse
from utilities.logger import bind_request_context, clear_request_context

# Setup logging
logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/books", tags=["Books"])


class RequestContextMiddleware:
    """Binds request id, method and path to the log context of each request."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        supplied = headers.get(b"x-request-id")
        request_id = bind_request_context(
            scope["method"], scope["path"], supplied.decode("latin-1") if supplied else None
        )

        async def send_with_request_id(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"] = list(message["headers"]) + [
                    (b"x-request-id", request_id.encode("latin-1"))
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            clear_request_context()


def _error_response(status_code: int, error: str, detail: Optional[str] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
        headers=headers,
    )


def _format_errors(errors) -> str:
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(messages)


async def _parse_body(request: Request, model):
    # Bodies are decoded as JSON whatever their Content-Type
    try:
        return model.model_validate_json(await request.body())
    except ModelValidationError as e:
        raise ValidationError("Invalid request body", detail=_format_errors(e.errors())) from e


async def create_payload(request: Request) -> BookCreate:
    return await _parse_body(request, BookCreate)


async def update_payload(request: Request) -> BookUpdate:
    return await _parse_body(request, BookUpdate)


async def _watch_disconnect(request: Request, deadline: RequestDeadline, interval: float) -> None:
    while not deadline.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling store calls")
            deadline.cancel()
            return
        await asyncio.sleep(interval)


async def request_deadline(request: Request) -> AsyncIterator[RequestDeadline]:
    """Deadline for the store calls of one request, cancelled if the client disconnects."""
    settings: APIConfig = request.app.state.settings
    # The body must be consumed before the watcher starts reading from the connection
    await request.body()
    deadline = RequestDeadline(settings.request_timeout_or_none())

    watcher = None
    if settings.disconnect_poll_interval:
        watcher = asyncio.create_task(
            _watch_disconnect(request, deadline, settings.disconnect_poll_interval)
        )
    try:
        yield deadline
    finally:
        if watcher is not None:
            watcher.cancel()


def get_handlers(request: Request) -> BookHandlers:
    handlers = request.app.state.handlers
    if handlers is None:
        raise ServiceUnavailableError("Database service not available")
    return handlers


# Books endpoints
@router.get("", response_model=List[Book])
async def list_books(
    handlers: BookHandlers = Depends(get_handlers),
    deadline: RequestDeadline = Depends(request_deadline),
):
    """List all books. An empty catalogue returns an empty list."""
    return JSONResponse(content=await handlers.list_books(deadline))


@router.get("/{book_id}", response_model=Book)
async def get_book(
    book_id: str,
    handlers: BookHandlers = Depends(get_handlers),
    deadline: RequestDeadline = Depends(request_deadline),
):
    """
    Get a single book by ID.

    - **book_id**: Book identifier
    """
    return JSONResponse(content=await handlers.get_book(book_id, deadline))


@router.post("", response_model=Book)
async def create_book(
    payload: BookCreate = Depends(create_payload),
    handlers: BookHandlers = Depends(get_handlers),
    deadline: RequestDeadline = Depends(request_deadline),
):
    """
    Create a book. The id is generated by the service; a supplied id is ignored.
    """
    return JSONResponse(content=await handlers.create_book(payload, deadline))


@router.put("/{book_id}", response_model=Book)
async def update_book(
    book_id: str,
    payload: BookUpdate = Depends(update_payload),
    handlers: BookHandlers = Depends(get_handlers),
    deadline: RequestDeadline = Depends(request_deadline),
):
    """
    Update a book. Only fields present in the body change; the stored
    book after the update is returned.
    """
    return JSONResponse(content=await handlers.update_book(book_id, payload, deadline))


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    handlers: BookHandlers = Depends(get_handlers),
    deadline: RequestDeadline = Depends(request_deadline),
):
    """Delete a book."""
    return JSONResponse(content=await handlers.delete_book(book_id, deadline))


def create_app(
    settings: Optional[APIConfig] = None,
    store: Optional[BookStore] = None,
    id_generator: Optional[IdGenerator] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration, defaults to the environment
        store: Already connected store; when omitted a MongoBookStore is
            connected during startup and closed on shutdown
        id_generator: Source of new book ids, defaults to settings.id_strategy

    Returns:
        Configured FastAPI application
    """
    settings = settings or config
    id_generator = id_generator or get_id_generator(settings.id_strategy)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Golib Books API")

        owned_store = None
        if app.state.store is None:
            # StartupError propagates and aborts startup
            owned_store = MongoBookStore(
                connection_url=settings.mongodb_url,
                database_name=settings.mongodb_database,
                collection_name=settings.mongodb_collection,
            )
            await owned_store.connect()
            logger.info("Database connection established")
            app.state.store = owned_store
            app.state.handlers = BookHandlers(owned_store, id_generator, settings.id_max_attempts)

        yield

        logger.info("Shutting down Golib Books API")
        if owned_store is not None:
            await owned_store.disconnect()
            app.state.store = None
            app.state.handlers = None

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.handlers = (
        BookHandlers(store, id_generator, settings.id_max_attempts) if store is not None else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    # Exception handlers
    @app.exception_handler(BookServiceError)
    async def service_exception_handler(request: Request, exc: BookServiceError):
        """Translate service errors into their status code."""
        if exc.status_code >= 500:
            logger.error("Request failed", error=exc.message, detail=exc.detail,
                         status_code=exc.status_code)
        else:
            logger.info("Request rejected", error=exc.message, status_code=exc.status_code)
        detail = exc.detail if exc.status_code < 500 or settings.debug else None
        return _error_response(exc.status_code, exc.message, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are rejected with 400."""
        return await service_exception_handler(
            request, ValidationError("Invalid request body", _format_errors(exc.errors()))
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            str(exc) if settings.debug else None,
        )

    # Health check endpoint
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        db_status = "unavailable"
        current_store = request.app.state.store
        if current_store is not None:
            health_info = await current_store.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.utcnow(),
            version=settings.api_version,
            database_status=db_status,
        )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "books_api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )

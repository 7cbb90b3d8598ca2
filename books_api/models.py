"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


def _is_empty(value: Any) -> bool:
    """Empty strings, zero and None are never serialized or stored."""
    return value is None or value == "" or (isinstance(value, int) and value == 0)


class BookFields(BaseModel):
    """Client-writable book fields. Every field is optional on the wire."""
    title: Optional[StrictStr] = Field(None, description="Book title")
    author: Optional[StrictStr] = Field(None, description="Book author")
    # BSON integers are signed 64-bit
    year: Optional[StrictInt] = Field(None, ge=-(2**63), le=2**63 - 1, description="Publication year")

    model_config = ConfigDict(extra="ignore")

    def present_fields(self) -> Dict[str, Any]:
        """
        Fields that carry a value.

        Returns:
            Dictionary of the non-empty fields, suitable for storage
        """
        return {
            key: value
            for key, value in self.model_dump(exclude={"id"}).items()
            if not _is_empty(value)
        }


class BookCreate(BookFields):
    """Request body for creating a book. A client supplied id is ignored."""


class BookUpdate(BookFields):
    """Request body for updating a book. Only supplied fields change."""


class Book(BookFields):
    """A persisted book."""
    id: StrictStr = Field(..., min_length=1, description="Unique book identifier")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Book":
        """Decode a MongoDB document, mapping `_id` to `id`."""
        data = {key: value for key, value in document.items() if key != "_id"}
        data["id"] = str(document["_id"])
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        """Encode for MongoDB. Empty fields are left out of the document."""
        document = {"_id": self.id}
        document.update(self.present_fields())
        return document

    def to_response(self) -> Dict[str, Any]:
        """Serialize for the wire, omitting empty and zero fields."""
        response = {"id": self.id}
        response.update(self.present_fields())
        return response


class MessageResponse(BaseModel):
    """Confirmation message model."""
    message: str = Field(..., description="Confirmation message")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")

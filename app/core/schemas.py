"""
app/core/schemas.py

Core Schemas

Defines core Pydantic models used across the application, including:
- Generic paginated response schema.
- UTC-normalized datetime annotation.
"""

from datetime import datetime
from typing import Annotated, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, Field

from app.core.clock import ensure_utc

# Define a type variable for the items in the paginated response
T = TypeVar("T")

# Datetimes read back from SQLite are naive; everything leaving the API is UTC-aware.
UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class PaginatedResponse(BaseModel, Generic[T]):
    """
    Generic schema for paginated list responses.
    """

    total_count: int = Field(..., description="Total number of items available")
    has_next_page: bool = Field(..., description="Indicates if there are more items available")
    items: list[T] = Field(..., description="List of items for the current page")

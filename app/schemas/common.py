from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class Pagination(BaseModel):
    page: int = Field(..., description="Current page, starting at 1")
    limit: int = Field(..., description="Page size")
    total: int = Field(..., description="Number of matching records")
    pages: int = Field(..., description="Number of pages")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope returned by every endpoint."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    pagination: Optional[Pagination] = None

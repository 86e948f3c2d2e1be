from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by the job-control and distribution endpoints."""

    success: bool = True
    message: str = ""
    data: T | None = None

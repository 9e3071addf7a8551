"""Success envelope shared by all routers."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform success body: ``{"success": true, "message": ..., "data": ...}``."""

    success: bool = True
    message: str | None = None
    data: T


def ok(data: T, message: str | None = None) -> ApiResponse[T]:
    """Wrap payload into success envelope."""
    return ApiResponse(data=data, message=message)

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ResponseModel(BaseModel, Generic[T]):
    data: Optional[T] = Field(description="Response data", default=None)
    message: Optional[str] = Field(description="Response message", examples=["Success"])
    status: str = Field(default="ok", description="Response status")

    @classmethod
    def success(
        cls, data: Optional[T] = None, message: str = "Success"
    ) -> "ResponseModel[T]":
        """Create a successful response."""
        return cls(data=data, message=message, status="ok")

    @classmethod
    def accepted(
        cls, data: Optional[T] = None, message: str = "Accepted"
    ) -> "ResponseModel[T]":
        """Create a response for work handed off to the background."""
        return cls(data=data, message=message, status="accepted")

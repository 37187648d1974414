"""Shared DTOs for the timesheet notifications API."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseDTO(BaseModel):
    """Base DTO with common configuration."""

    model_config = ConfigDict(from_attributes=True)


class TaskResponse(BaseDTO):
    """Response DTO for work accepted for asynchronous processing."""
    task_id: Optional[str] = Field(default=None, description="Task identifier, if queued")
    status: str = Field(description="Task status")
    message: str = Field(description="Status message")
    created_at: datetime = Field(default_factory=datetime.utcnow)

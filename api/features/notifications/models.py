"""Models for the Notifications feature."""
import enum
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TimesheetStatus(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class TimesheetEntry(BaseModel):
    """One day of effort on a project task, as decided by a manager."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    user_id: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    project_title: str
    timesheet_date: date
    hours: float = Field(ge=0)
    manager_comment: Optional[str] = None


class DispatchSummary(BaseModel):
    """Counts of what a notification run handed to the dispatcher."""

    cards_dispatched: int = 0
    users_notified: int = 0
    users_skipped: int = 0

    def merge(self, other: "DispatchSummary") -> "DispatchSummary":
        return DispatchSummary(
            cards_dispatched=self.cards_dispatched + other.cards_dispatched,
            users_notified=self.users_notified + other.users_notified,
            users_skipped=self.users_skipped + other.users_skipped,
        )

"""DTOs for the Notifications feature."""
from typing import Dict, List

from pydantic import Field, field_validator

from api.features.notifications.models import TimesheetEntry, TimesheetStatus
from api.shared.dtos import BaseDTO


class TimesheetDecisionRequest(BaseDTO):
    """Timesheets a manager just approved or rejected."""

    status: TimesheetStatus = Field(description="Decision applied to every entry")
    timesheets: List[TimesheetEntry] = Field(description="Decided timesheet entries")


class DispatchSummaryResponse(BaseDTO):
    """What was handed to the dispatcher; delivery itself is best effort."""

    cards_dispatched: int = Field(description="Cards queued for delivery")
    users_notified: int = Field(description="Users with a stored conversation")
    users_skipped: int = Field(description="Users without a stored conversation")


class ManagerReminderRequest(BaseDTO):
    """Pending request counts per manager user id."""

    pending_by_manager: Dict[str, int] = Field(
        description="Manager user id to number of submitted timesheets awaiting approval"
    )

    @field_validator("pending_by_manager")
    @classmethod
    def non_negative_counts(cls, value: Dict[str, int]) -> Dict[str, int]:
        if any(count < 0 for count in value.values()):
            raise ValueError("Pending counts must not be negative")
        return value


class MemberReminderRequest(BaseDTO):
    """Members of active projects who should fill their timesheet."""

    user_ids: List[str] = Field(description="Member user ids, duplicates allowed")

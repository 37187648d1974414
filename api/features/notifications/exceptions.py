"""Exceptions for the Notifications feature."""
from typing import Any, Dict, Optional

from api.shared.exceptions import TimesheetAppException


class NotificationException(TimesheetAppException):
    """Base exception for notification requests.

    Delivery failures never raise; these cover malformed requests only.
    """
    pass


class InvalidReminderRequestError(NotificationException):
    """Raised when a reminder request carries nothing to send."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "INVALID_REMINDER_REQUEST", details)


class ReminderEnqueueError(NotificationException):
    """Raised when a reminder run cannot be handed to the worker queue."""

    def __init__(self, reminder: str, message: str):
        super().__init__(
            f"Failed to enqueue '{reminder}' reminder: {message}",
            "REMINDER_ENQUEUE_ERROR",
            {"reminder": reminder},
        )

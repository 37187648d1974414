"""Controller for the Notifications feature."""
import structlog
from fastapi import HTTPException
from kombu.exceptions import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.notifications.dtos import (
    DispatchSummaryResponse,
    ManagerReminderRequest,
    MemberReminderRequest,
    TimesheetDecisionRequest,
)
from api.features.notifications.exceptions import (
    InvalidReminderRequestError,
    ReminderEnqueueError,
)
from api.features.notifications.service import TimesheetNotificationService
from api.shared.dtos import TaskResponse
from api.shared.response import ResponseModel
from workers.celery_app import FILL_TIMESHEET_REMINDERS_TASK, MANAGER_REMINDERS_TASK
from workers.celery_app import app as celery_app

logger = structlog.get_logger("notifications")


class NotificationController:
    """Controller for notification triggers."""

    def __init__(self, notification_service: TimesheetNotificationService):
        self.notification_service = notification_service

    async def notify_timesheet_decisions(
        self, request: TimesheetDecisionRequest, db_session: AsyncSession
    ) -> ResponseModel[DispatchSummaryResponse]:
        summary = await self.notification_service.notify_timesheet_decisions(
            request.timesheets, request.status, db_session
        )
        return ResponseModel.accepted(
            data=DispatchSummaryResponse(**summary.model_dump()),
            message="Notifications dispatched",
        )

    def _enqueue(self, reminder: str, task_name: str, payload) -> ResponseModel[TaskResponse]:
        try:
            result = celery_app.send_task(task_name, args=[payload])
        except OperationalError as e:
            error = ReminderEnqueueError(reminder, str(e))
            logger.error("notification.reminder.enqueue_failed", reminder=reminder, error=str(e))
            raise HTTPException(status_code=503, detail=error.message)

        logger.info("notification.reminder.enqueued", reminder=reminder, task_id=result.id)
        return ResponseModel.accepted(
            data=TaskResponse(
                task_id=result.id, status="queued", message=f"{reminder} reminder queued"
            ),
            message="Reminder queued",
        )

    async def enqueue_manager_reminders(
        self, request: ManagerReminderRequest
    ) -> ResponseModel[TaskResponse]:
        try:
            self.validate_manager_reminder(request)
        except InvalidReminderRequestError as e:
            logger.warning("notification.reminder.invalid", reminder="managers", details=e.details)
            raise HTTPException(status_code=400, detail=e.message)
        return self._enqueue("managers", MANAGER_REMINDERS_TASK, request.pending_by_manager)

    async def enqueue_member_reminders(
        self, request: MemberReminderRequest
    ) -> ResponseModel[TaskResponse]:
        try:
            user_ids = self.validate_member_reminder(request)
        except InvalidReminderRequestError as e:
            logger.warning("notification.reminder.invalid", reminder="members", details=e.details)
            raise HTTPException(status_code=400, detail=e.message)
        return self._enqueue("members", FILL_TIMESHEET_REMINDERS_TASK, user_ids)

    @staticmethod
    def validate_manager_reminder(request: ManagerReminderRequest) -> None:
        if not any(count > 0 for count in request.pending_by_manager.values()):
            raise InvalidReminderRequestError(
                "No manager has pending requests",
                {"managers": len(request.pending_by_manager)},
            )

    @staticmethod
    def validate_member_reminder(request: MemberReminderRequest) -> list[str]:
        """Drop blanks and duplicates, keeping first-seen order."""
        user_ids = [u for u in dict.fromkeys(request.user_ids) if u]
        if not user_ids:
            raise InvalidReminderRequestError(
                "No members to remind", {"received": len(request.user_ids)}
            )
        return user_ids

"""Router for the Notifications feature."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.notifications.controller import NotificationController
from api.features.notifications.dtos import (
    DispatchSummaryResponse,
    ManagerReminderRequest,
    MemberReminderRequest,
    TimesheetDecisionRequest,
)
from api.shared.db import get_db_session
from api.shared.dtos import TaskResponse
from api.shared.response import ResponseModel
from di.container import ApplicationContainer

router = APIRouter()


@router.post(
    "/timesheet-decisions",
    response_model=ResponseModel[DispatchSummaryResponse],
    status_code=status.HTTP_202_ACCEPTED,
)
@inject
async def notify_timesheet_decisions(
    request: TimesheetDecisionRequest,
    controller: NotificationController = Depends(
        Provide[ApplicationContainer.controllers.notification_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Notify users that their timesheets were approved or rejected."""
    return await controller.notify_timesheet_decisions(request, db_session)


@router.post(
    "/reminders/managers",
    response_model=ResponseModel[TaskResponse],
    status_code=status.HTTP_202_ACCEPTED,
)
@inject
async def enqueue_manager_reminders(
    request: ManagerReminderRequest,
    controller: NotificationController = Depends(
        Provide[ApplicationContainer.controllers.notification_controller]
    ),
):
    """Queue a pending-requests reminder for managers."""
    return await controller.enqueue_manager_reminders(request)


@router.post(
    "/reminders/members",
    response_model=ResponseModel[TaskResponse],
    status_code=status.HTTP_202_ACCEPTED,
)
@inject
async def enqueue_member_reminders(
    request: MemberReminderRequest,
    controller: NotificationController = Depends(
        Provide[ApplicationContainer.controllers.notification_controller]
    ),
):
    """Queue a fill-timesheet reminder for project members."""
    return await controller.enqueue_member_reminders(request)

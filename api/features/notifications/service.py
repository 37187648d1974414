"""Service layer for the Notifications feature.

Turns business events (timesheet decisions, reminder runs) into cards and
hands them to the dispatcher. Users without a stored conversation are skipped.
"""
from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Mapping, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversations.service import ConversationService
from api.features.notifications.cards import (
    AdaptiveCardService,
    ApproveRejectCardDetails,
    NotificationCard,
)
from api.features.notifications.dispatcher import NotificationDispatcher
from api.features.notifications.models import (
    DispatchSummary,
    TimesheetEntry,
    TimesheetStatus,
)
from api.shared.utils import format_card_date, format_hours

logger = structlog.get_logger("notifications.service")


def group_by_date_sequence(entries: Iterable[TimesheetEntry]) -> List[List[TimesheetEntry]]:
    """Split entries into runs of consecutive dates.

    Entries are sorted by date first; an entry continues the current run when
    its date equals or is one day after the previous entry's date.
    """
    runs: List[List[TimesheetEntry]] = []
    for entry in sorted(entries, key=lambda e: e.timesheet_date):
        if runs:
            last_date = runs[-1][-1].timesheet_date
            if entry.timesheet_date - last_date <= timedelta(days=1):
                runs[-1].append(entry)
                continue
        runs.append([entry])
    return runs


def prepare_card_details(
    run: List[TimesheetEntry], manager_comment: Optional[str] = None
) -> ApproveRejectCardDetails:
    first, last = run[0], run[-1]
    if first.timesheet_date == last.timesheet_date:
        date_text = format_card_date(first.timesheet_date)
    else:
        date_text = (
            f"{format_card_date(first.timesheet_date)} - "
            f"{format_card_date(last.timesheet_date)}"
        )
    return ApproveRejectCardDetails(
        date=date_text,
        project_title=first.project_title,
        hours=format_hours(sum(entry.hours for entry in run)),
        comment=manager_comment,
    )


class TimesheetNotificationService:
    """Builds and dispatches timesheet decision and reminder cards."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        card_service: AdaptiveCardService,
        conversation_service: ConversationService,
    ):
        self.dispatcher = dispatcher
        self.card_service = card_service
        self.conversation_service = conversation_service

    def build_decision_cards(
        self, entries: Iterable[TimesheetEntry], status: TimesheetStatus
    ) -> Dict[str, List[NotificationCard]]:
        """Cards per user: one per project and consecutive-date run.

        Entries with zero hours are ignored. The manager comment is only shown
        on rejections.
        """
        by_user: Dict[str, Dict[str, List[TimesheetEntry]]] = defaultdict(
            lambda: defaultdict(list)
        )
        for entry in entries:
            if entry.hours > 0:
                by_user[entry.user_id][entry.project_id].append(entry)

        cards: Dict[str, List[NotificationCard]] = {}
        for user_id, projects in by_user.items():
            user_cards = []
            for project_entries in projects.values():
                for run in group_by_date_sequence(project_entries):
                    if status is TimesheetStatus.REJECTED:
                        details = prepare_card_details(run, run[0].manager_comment or "")
                        user_cards.append(self.card_service.rejected_card(details))
                    else:
                        details = prepare_card_details(run, "")
                        user_cards.append(self.card_service.approved_card(details))
            cards[user_id] = user_cards
        return cards

    async def notify_timesheet_decisions(
        self,
        entries: Iterable[TimesheetEntry],
        status: TimesheetStatus,
        db_session: AsyncSession,
        wait: bool = False,
    ) -> DispatchSummary:
        """Notify each user about the timesheets a manager approved or rejected.

        Sends run in the background unless wait is set; delivery failures are
        never reported back.
        """
        cards_by_user = self.build_decision_cards(entries, status)
        references = await self.conversation_service.get_references(
            cards_by_user.keys(), db_session
        )

        summary = DispatchSummary()
        deliveries = []
        for user_id, cards in cards_by_user.items():
            reference = references.get(user_id)
            if reference is None:
                summary.users_skipped += 1
                continue
            summary.users_notified += 1
            summary.cards_dispatched += len(cards)
            deliveries.extend((reference, card) for card in cards)

        if wait:
            await self.dispatcher.broadcast(deliveries)
        else:
            for reference, card in deliveries:
                self.dispatcher.dispatch_in_background(reference, card)

        logger.info(
            "notification.timesheet_decisions.dispatched",
            status=status.value,
            **summary.model_dump(),
        )
        return summary

    async def send_manager_reminders(
        self, pending_by_manager: Mapping[str, int], db_session: AsyncSession
    ) -> DispatchSummary:
        """Remind each manager with a stored conversation about pending requests."""
        managers = {m: count for m, count in pending_by_manager.items() if count > 0}
        references = await self.conversation_service.get_references(managers.keys(), db_session)

        deliveries = [
            (references[manager_id], self.card_service.manager_reminder_card(count))
            for manager_id, count in managers.items()
            if manager_id in references
        ]
        await self.dispatcher.broadcast(deliveries)

        summary = DispatchSummary(
            cards_dispatched=len(deliveries),
            users_notified=len(deliveries),
            users_skipped=len(managers) - len(deliveries),
        )
        logger.info("notification.manager_reminders.dispatched", **summary.model_dump())
        return summary

    async def send_fill_timesheet_reminders(
        self, user_ids: Iterable[str], db_session: AsyncSession
    ) -> DispatchSummary:
        """Remind project members to fill their timesheet, once per user."""
        unique_ids = list(dict.fromkeys(user_ids))
        references = await self.conversation_service.get_references(unique_ids, db_session)
        card = self.card_service.fill_timesheet_reminder_card()

        await self.dispatcher.broadcast(
            (references[user_id], card) for user_id in unique_ids if user_id in references
        )

        summary = DispatchSummary(
            cards_dispatched=len(references),
            users_notified=len(references),
            users_skipped=len(unique_ids) - len(references),
        )
        logger.info("notification.fill_timesheet_reminders.dispatched", **summary.model_dump())
        return summary

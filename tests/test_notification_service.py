from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.features.conversations.models import ConversationReferenceModel
from api.features.notifications.cards import CardKind
from api.features.notifications.models import TimesheetEntry, TimesheetStatus
from api.features.notifications.service import (
    TimesheetNotificationService,
    group_by_date_sequence,
    prepare_card_details,
)


def entry(day: int, hours: float = 8, user: str = "u1", project: str = "p1", comment=None):
    return TimesheetEntry(
        user_id=user,
        project_id=project,
        project_title=f"Project {project}",
        timesheet_date=date(2025, 9, day),
        hours=hours,
        manager_comment=comment,
    )


def reference(user_id: str) -> ConversationReferenceModel:
    return ConversationReferenceModel(
        user_id=user_id, conversation_id=f"conv-{user_id}", service_url="https://smba.example.com"
    )


@pytest.fixture
def conversation_service():
    service = MagicMock()
    service.get_references = AsyncMock(return_value={})
    return service


@pytest.fixture
def fake_dispatcher():
    dispatcher = MagicMock()
    dispatcher.broadcast = AsyncMock(side_effect=lambda deliveries: len(list(deliveries)))
    return dispatcher


@pytest.fixture
def service(fake_dispatcher, card_service, conversation_service):
    return TimesheetNotificationService(fake_dispatcher, card_service, conversation_service)


class TestGroupByDateSequence:
    def test_consecutive_and_same_dates_form_one_run(self):
        runs = group_by_date_sequence([entry(3), entry(1), entry(2), entry(2)])
        assert [[e.timesheet_date.day for e in run] for run in runs] == [[1, 2, 2, 3]]

    def test_gap_starts_a_new_run(self):
        runs = group_by_date_sequence([entry(1), entry(2), entry(5), entry(9), entry(10)])
        assert [[e.timesheet_date.day for e in run] for run in runs] == [[1, 2], [5], [9, 10]]

    def test_empty_input(self):
        assert group_by_date_sequence([]) == []


class TestPrepareCardDetails:
    def test_single_day(self):
        details = prepare_card_details([entry(15, hours=4), entry(15, hours=3.5)])
        assert details.date == "{{DATE(2025-09-15T00:00:00Z)}}"
        assert details.hours == "7.5"
        assert details.project_title == "Project p1"

    def test_date_range(self):
        details = prepare_card_details([entry(15), entry(16), entry(17)], "Too many hours")
        assert details.date == "{{DATE(2025-09-15T00:00:00Z)}} - {{DATE(2025-09-17T00:00:00Z)}}"
        assert details.hours == "24"
        assert details.comment == "Too many hours"


class TestBuildDecisionCards:
    def test_one_card_per_project_run(self, service):
        entries = [
            entry(1), entry(2), entry(4),
            entry(1, project="p2"),
            entry(1, user="u2"),
        ]
        cards = service.build_decision_cards(entries, TimesheetStatus.APPROVED)

        assert len(cards["u1"]) == 3
        assert len(cards["u2"]) == 1
        assert all(card.kind is CardKind.APPROVED for card in cards["u1"])

    def test_zero_hour_entries_are_ignored(self, service):
        cards = service.build_decision_cards(
            [entry(1, hours=0), entry(2, hours=0, user="u2"), entry(3, user="u2")],
            TimesheetStatus.APPROVED,
        )
        assert list(cards) == ["u2"]

    def test_rejection_carries_first_comment(self, service):
        cards = service.build_decision_cards(
            [entry(1, comment="Wrong project"), entry(2, comment="ignored")],
            TimesheetStatus.REJECTED,
        )
        (card,) = cards["u1"]
        facts = {f["title"]: f["value"] for f in card.content["body"][2]["facts"]}
        assert card.kind is CardKind.REJECTED
        assert facts["Comment"] == "Wrong project"


@pytest.mark.asyncio
async def test_decisions_skip_users_without_conversation(service, fake_dispatcher, conversation_service):
    conversation_service.get_references.return_value = {"u1": reference("u1")}
    entries = [entry(1), entry(5), entry(1, user="u2")]

    summary = await service.notify_timesheet_decisions(
        entries, TimesheetStatus.APPROVED, db_session=MagicMock()
    )

    assert summary.users_notified == 1
    assert summary.users_skipped == 1
    assert summary.cards_dispatched == 2
    assert fake_dispatcher.dispatch_in_background.call_count == 2
    targets = {c.args[0].user_id for c in fake_dispatcher.dispatch_in_background.call_args_list}
    assert targets == {"u1"}


@pytest.mark.asyncio
async def test_decisions_can_be_awaited(service, fake_dispatcher, conversation_service):
    conversation_service.get_references.return_value = {"u1": reference("u1")}

    await service.notify_timesheet_decisions(
        [entry(1)], TimesheetStatus.APPROVED, db_session=MagicMock(), wait=True
    )

    fake_dispatcher.broadcast.assert_awaited_once()
    fake_dispatcher.dispatch_in_background.assert_not_called()


@pytest.mark.asyncio
async def test_manager_reminders_only_for_pending_and_reachable(service, fake_dispatcher, conversation_service):
    conversation_service.get_references.return_value = {"m1": reference("m1")}

    summary = await service.send_manager_reminders({"m1": 4, "m2": 2, "m3": 0}, MagicMock())

    requested = set(conversation_service.get_references.call_args.args[0])
    assert requested == {"m1", "m2"}
    assert summary.cards_dispatched == 1
    assert summary.users_skipped == 1
    (deliveries,) = fake_dispatcher.broadcast.call_args.args
    (target, card), = deliveries
    assert target.user_id == "m1"
    assert card.kind is CardKind.MANAGER_REMINDER


@pytest.mark.asyncio
async def test_fill_timesheet_reminders_are_deduplicated(service, conversation_service):
    conversation_service.get_references.return_value = {
        "u1": reference("u1"),
        "u2": reference("u2"),
    }

    summary = await service.send_fill_timesheet_reminders(["u1", "u2", "u1", "u3"], MagicMock())

    assert conversation_service.get_references.call_args.args[0] == ["u1", "u2", "u3"]
    assert summary.cards_dispatched == 2
    assert summary.users_skipped == 1

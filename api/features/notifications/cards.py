"""Adaptive card builders for bot notifications.

Cards are JSON templates under `templates/` with `${Property}` placeholders.
Template text is read once and cached; values are JSON escaped on expansion.
"""
import enum
import json
from functools import lru_cache
from pathlib import Path
from string import Template
from typing import Any, Dict, Mapping, Optional

from botbuilder.core import CardFactory
from botbuilder.schema import Attachment
from pydantic import BaseModel, ConfigDict, Field

from api.features.notifications.strings import localize
from api.shared.utils import teams_tab_deep_link
from core.settings import SETTINGS

TEMPLATES_DIR = Path(__file__).parent / "templates"


class CardKind(str, enum.Enum):
    WELCOME = "welcome"
    APPROVED = "approved"
    REJECTED = "rejected"
    MANAGER_REMINDER = "manager_reminder"
    FILL_TIMESHEET_REMINDER = "fill_timesheet_reminder"


class TeamsTab(str, enum.Enum):
    TIMESHEET = "timesheet"
    MANAGER_DASHBOARD = "manager-dashboard"


TEMPLATE_FILES: Dict[CardKind, str] = {
    CardKind.WELCOME: "welcome-card.json",
    CardKind.APPROVED: "approved-card.json",
    CardKind.REJECTED: "rejected-card.json",
    CardKind.MANAGER_REMINDER: "manager-reminder-card.json",
    CardKind.FILL_TIMESHEET_REMINDER: "fill-timesheet-reminder-card.json",
}


class NotificationCard(BaseModel):
    """Rendered card payload ready to be sent as a message attachment."""

    model_config = ConfigDict(frozen=True)

    kind: CardKind
    title: str
    content: Dict[str, Any] = Field(description="Adaptive card JSON")
    action_url: Optional[str] = None

    def to_attachment(self) -> Attachment:
        return CardFactory.adaptive_card(self.content)


class ApproveRejectCardDetails(BaseModel):
    """Values shown on a timesheet decision card."""

    date: str
    project_title: str
    hours: str
    comment: Optional[str] = None


@lru_cache(maxsize=SETTINGS.BOT.CARD_CACHE_SIZE)
def load_template(file_name: str) -> str:
    return (TEMPLATES_DIR / file_name).read_text(encoding="utf-8")


def expand_template(template_text: str, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Substitute `${Name}` placeholders and parse the result.

    Raises KeyError when the template references a value that was not given.
    """
    escaped = {
        key: json.dumps("" if value is None else str(value))[1:-1]
        for key, value in values.items()
    }
    return json.loads(Template(template_text).substitute(escaped))


class AdaptiveCardService:
    """Builds the cards the bot sends proactively or in a turn."""

    def __init__(self, app_base_uri: str, manifest_id: str, locale: str = "en"):
        self.app_base_uri = app_base_uri.rstrip("/")
        self.manifest_id = manifest_id
        self.locale = locale

    @property
    def app_image(self) -> str:
        return f"{self.app_base_uri}/images/logo.png"

    def tab_url(self, tab: TeamsTab) -> str:
        return teams_tab_deep_link(self.manifest_id, tab.value)

    def _text(self, key: str, *args) -> str:
        return localize(key, *args, locale=self.locale)

    def _build(
        self,
        kind: CardKind,
        title_key: str,
        values: Dict[str, Any],
        action_url: str,
    ) -> NotificationCard:
        content = expand_template(load_template(TEMPLATE_FILES[kind]), values)
        return NotificationCard(
            kind=kind, title=self._text(title_key), content=content, action_url=action_url
        )

    def welcome_card(self) -> NotificationCard:
        url = self.tab_url(TeamsTab.TIMESHEET)
        return self._build(
            CardKind.WELCOME,
            "WelcomeCardTitle",
            {
                "AppImage": self.app_image,
                "TimesheetTabUrl": url,
                "WelcomeCardFillTimesheetButton": self._text("FillTimesheetButton"),
                "WelcomeCardIntro": self._text("WelcomeCardIntro"),
                "WelcomeCardSubtitle": self._text("WelcomeCardSubtitle"),
                "WelcomeCardTitle": self._text("WelcomeCardTitle"),
            },
            url,
        )

    def _decision_values(self, details: ApproveRejectCardDetails) -> Dict[str, Any]:
        return {
            "TimesheetTabUrl": self.tab_url(TeamsTab.TIMESHEET),
            "Date": details.date,
            "ProjectLabel": self._text("ProjectLabel"),
            "ProjectTitle": details.project_title,
            "HoursLabel": self._text("HoursLabel"),
            "Hours": details.hours,
            "ViewTimesheetButtonText": self._text("ViewTimesheetButtonText"),
        }

    def approved_card(self, details: ApproveRejectCardDetails) -> NotificationCard:
        values = self._decision_values(details)
        values.update(
            CardTitle=self._text("TimesheetApprovedCardTitle"),
            StatusLabel=self._text("ApprovedStatus"),
        )
        return self._build(
            CardKind.APPROVED, "TimesheetApprovedCardTitle", values, values["TimesheetTabUrl"]
        )

    def rejected_card(self, details: ApproveRejectCardDetails) -> NotificationCard:
        values = self._decision_values(details)
        values.update(
            CardTitle=self._text("TimesheetRejectedCardTitle"),
            StatusLabel=self._text("RejectedStatus"),
            CommentLabel=self._text("CommentLabel"),
            Comment=details.comment or "",
        )
        return self._build(
            CardKind.REJECTED, "TimesheetRejectedCardTitle", values, values["TimesheetTabUrl"]
        )

    def manager_reminder_card(self, pending_requests: int) -> NotificationCard:
        url = self.tab_url(TeamsTab.MANAGER_DASHBOARD)
        return self._build(
            CardKind.MANAGER_REMINDER,
            "ManagerReminderCardTitle",
            {
                "AppImage": self.app_image,
                "CardTitle": self._text("ManagerReminderCardTitle"),
                "CardSubtitle": self._text("ManagerReminderCardSubTitle"),
                "PendingRequestsText": self._text("PendingRequests", pending_requests),
                "ButtonText": self._text("ManagerReminderCardButtonText"),
                "ManagerDashboardTabUrl": url,
            },
            url,
        )

    def fill_timesheet_reminder_card(self) -> NotificationCard:
        url = self.tab_url(TeamsTab.TIMESHEET)
        return self._build(
            CardKind.FILL_TIMESHEET_REMINDER,
            "FillTimesheetReminderCardTitle",
            {
                "CardTitle": self._text("FillTimesheetReminderCardTitle"),
                "FillTimesheetButton": self._text("FillTimesheetButton"),
                "TimesheetTabUrl": url,
            },
            url,
        )

"""User facing card strings keyed by resource name."""
from typing import Dict

DEFAULT_LOCALE = "en"

STRINGS: Dict[str, Dict[str, str]] = {
    "en": {
        "WelcomeCardTitle": "Welcome to Timesheet",
        "WelcomeCardSubtitle": "Log your efforts, right from Teams",
        "WelcomeCardIntro": (
            "Fill your daily efforts against the project tasks assigned to you "
            "and keep track of approvals from your manager."
        ),
        "FillTimesheetButton": "Fill timesheet",
        "TimesheetApprovedCardTitle": "Your timesheet has been approved",
        "TimesheetRejectedCardTitle": "Your timesheet has been rejected",
        "ApprovedStatus": "Approved",
        "RejectedStatus": "Rejected",
        "ProjectLabel": "Project",
        "HoursLabel": "Hours",
        "CommentLabel": "Comment",
        "ViewTimesheetButtonText": "View timesheet",
        "ManagerReminderCardTitle": "Pending timesheet approvals",
        "ManagerReminderCardSubTitle": "Review the requests from your team",
        "PendingRequests": "Pending requests: {0}",
        "ManagerReminderCardButtonText": "Open dashboard",
        "FillTimesheetReminderCardTitle": "Don't forget to fill your timesheet",
    },
}


def localize(key: str, *args, locale: str = DEFAULT_LOCALE) -> str:
    """Look up a string, falling back to the default locale then the key itself."""
    table = STRINGS.get(locale) or STRINGS[DEFAULT_LOCALE]
    value = table.get(key) or STRINGS[DEFAULT_LOCALE].get(key, key)
    return value.format(*args) if args else value

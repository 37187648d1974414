"""Common utility functions."""
from datetime import date, datetime
from itertools import islice
from typing import Iterable, Iterator, List, TypeVar

T = TypeVar("T")

TEAMS_DEEP_LINK_BASE = "https://teams.microsoft.com/l/entity"


def batched(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield successive lists of at most size items."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    iterator = iter(items)
    while batch := list(islice(iterator, size)):
        yield batch


def teams_tab_deep_link(manifest_id: str, tab: str) -> str:
    """Build the deep link that opens a personal tab of the Teams app."""
    return f"{TEAMS_DEEP_LINK_BASE}/{manifest_id}/{tab}"


def format_card_date(value: date | datetime) -> str:
    """Wrap a date in the adaptive card DATE() function.

    Teams renders the value in the reader's locale, e.g. '{{DATE(2025-09-15T00:00:00Z)}}'.
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return "{{DATE(" + value.strftime("%Y-%m-%dT%H:%M:%SZ") + ")}}"


def format_hours(hours: float) -> str:
    """Render an hours total without a trailing '.0' for whole numbers."""
    return str(int(hours)) if float(hours).is_integer() else f"{hours:g}"

"""Ticket link grouping and date label formatting."""
import logging
from typing import Iterable, List, Optional, Set

from processor.models import (
    DEFAULT_BUTTON_COLOR,
    POPUP_SENTINEL,
    SOLD_OUT_LINK_TYPE,
    WAITLIST_LINK_TYPE,
    DirectLink,
    Event,
    LinkBehavior,
    PurchaseAction,
    SoldOutPopup,
    TicketLink,
    WaitlistPopup,
)

logger = logging.getLogger(__name__)

MONTHS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def _split_date(date_str: str):
    year, month, day = date_str.split("-")[:3]
    month_index = int(month) - 1
    if not 0 <= month_index < len(MONTHS):
        raise ValueError(f"month out of range: {month}")
    return year, MONTHS[month_index], int(day)


def format_long(date_str: Optional[str]) -> str:
    """Format YYYY-MM-DD as 'May 1, 2024'."""
    if not date_str:
        return ""
    try:
        year, month, day = _split_date(date_str)
    except (AttributeError, ValueError):
        logger.warning(f"Unrecognised date '{date_str}', showing it as-is")
        return str(date_str)
    return f"{month} {day}, {year}"


def format_short(date_str: Optional[str]) -> str:
    """Format YYYY-MM-DD as 'May 1'."""
    if not date_str:
        return ""
    try:
        _, month, day = _split_date(date_str)
    except (AttributeError, ValueError):
        logger.warning(f"Unrecognised date '{date_str}', showing it as-is")
        return str(date_str)
    return f"{month} {day}"


def format_range(dates: Optional[Iterable[str]]) -> str:
    """
    Format a set of dates as a human-readable range.

    Args:
        dates: ISO dates, possibly repeated and unordered

    Returns:
        Long date if only one distinct date, 'short start - long end'
        otherwise, empty string for no dates
    """
    unique = sorted(set(dates or []))
    if not unique:
        return ""
    if len(unique) == 1:
        return format_long(unique[0])
    return f"{format_short(unique[0])} - {format_long(unique[-1])}"


def event_date_label(event: Event) -> str:
    if event.end_date:
        return f"{format_short(event.start_date)} - {format_long(event.end_date)}"
    return format_long(event.start_date)


def resolve_behavior(ticket_link: TicketLink) -> LinkBehavior:
    """Map a portal ticket link onto the action it should trigger."""
    if ticket_link.ticket_link == POPUP_SENTINEL:
        if ticket_link.link_type == WAITLIST_LINK_TYPE:
            return WaitlistPopup()
        if ticket_link.link_type == SOLD_OUT_LINK_TYPE:
            return SoldOutPopup()
    return DirectLink(url=ticket_link.ticket_link)


class TicketAggregator:
    """Builds one purchase action per ticket group and per ungrouped link."""

    def build_actions(self, event: Event) -> List[PurchaseAction]:
        """
        Prepare the ticket buttons for an event.

        Grouped links come first. Showtimes covered by any group are left out
        of the per-showtime pass so each showtime is offered exactly once.

        Args:
            event: Event to prepare

        Returns:
            Purchase actions in display order
        """
        actions = []
        grouped_ids: Set[str] = set()
        venue = event.display_venue

        for group in event.ticket_link_groups:
            grouped_ids.update(group.showtime_ids)
            actions.append(
                self._action(group.ticket_link, venue, format_range(group.showtime_dates))
            )

        for showtime in event.showtimes:
            if showtime.id in grouped_ids:
                continue
            for ticket_link in showtime.ticket_links:
                actions.append(
                    self._action(ticket_link, venue, format_short(showtime.date))
                )

        return actions

    def _action(
        self, ticket_link: TicketLink, venue: str, date_label: str
    ) -> PurchaseAction:
        return PurchaseAction(
            behavior=resolve_behavior(ticket_link),
            text=ticket_link.button_text or "",
            color=ticket_link.button_color or DEFAULT_BUTTON_COLOR,
            venue=venue,
            date_label=date_label,
        )

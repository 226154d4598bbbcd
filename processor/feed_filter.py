"""Time-window eligibility filter for the events feed."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from processor.models import Event

logger = logging.getLogger(__name__)

LIVE_STATUS = "live"
DEFAULT_START_TIME = "00:00"
END_OF_DAY = "23:59:59"


def parse_utc(date_str: str, time_str: str) -> datetime:
    """
    Parse a wall-clock date and time as a UTC instant.

    Args:
        date_str: Date in ISO 8601 format (YYYY-MM-DD)
        time_str: Time of day (HH:MM or HH:MM:SS)

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the date or time cannot be parsed
    """
    parsed = datetime.fromisoformat(f"{date_str.strip()}T{time_str.strip()}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def start_instant(event: Event) -> datetime:
    """Start of an event, defaulting to midnight when no time is given."""
    return parse_utc(event.start_date, event.start_time or DEFAULT_START_TIME)


def end_instant(event: Event) -> datetime:
    """Last second of the end date, or the start when there is no end date."""
    if event.end_date:
        return parse_utc(event.end_date, END_OF_DAY)
    return start_instant(event)


class FeedFilter:
    """Drops events that are not live or have already concluded."""

    BUFFER_HOURS = 6

    def __init__(self, buffer_hours: float = BUFFER_HOURS):
        self.buffer = timedelta(hours=buffer_hours)

    def filter_events(
        self,
        events: Iterable[Event],
        now: Optional[datetime] = None,
        sort: bool = True,
    ) -> List[Event]:
        """
        Select the events still worth showing.

        Args:
            events: Events from the feed, in feed order
            now: Current instant (default: current UTC time)
            sort: Order the result by start time; pass False to keep the
                input order (used once proximity ordering has been applied)

        Returns:
            Eligible events
        """
        now = now or datetime.now(timezone.utc)
        eligible = [event for event in events if self.is_eligible(event, now)]
        if sort:
            eligible.sort(key=start_instant)
        return eligible

    def is_eligible(self, event: Event, now: datetime) -> bool:
        if event.status != LIVE_STATUS or not event.start_date:
            return False

        try:
            end = end_instant(event)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(
                f"Skipping event at '{event.display_venue}' with malformed "
                f"dates ({event.start_date} {event.start_time} / "
                f"{event.end_date}): {e}"
            )
            return False

        # Start must parse too, it is the sort key
        if event.end_date:
            try:
                start_instant(event)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(
                    f"Skipping event at '{event.display_venue}' with malformed "
                    f"start {event.start_date} {event.start_time}: {e}"
                )
                return False

        return end + self.buffer >= now

"""Data models for the events feed."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

WAITLIST_LINK_TYPE = "Join Waitlist"
SOLD_OUT_LINK_TYPE = "Sold Out"
POPUP_SENTINEL = "popup"
DEFAULT_BUTTON_COLOR = "#000"


def _id_str(value: Any) -> str:
    """Portal ids may be numbers, strings or null."""
    return "" if value is None else str(value)


@dataclass
class TicketLink:
    """Purchase link as delivered by the events portal."""
    link_type: str
    ticket_link: str
    button_color: Optional[str] = None
    button_text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TicketLink":
        return cls(
            link_type=data.get("linkType") or "",
            ticket_link=data.get("ticketLink") or "",
            button_color=data.get("buttonColor"),
            button_text=data.get("buttonText"),
        )


@dataclass
class Showtime:
    """Single performance date and its ticket links."""
    id: str
    date: str
    ticket_links: List[TicketLink] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Showtime":
        return cls(
            id=_id_str(data.get("id")),
            date=data.get("date") or "",
            ticket_links=[
                TicketLink.from_dict(t) for t in data.get("ticketLinks") or []
            ],
        )


@dataclass
class TicketLinkGroup:
    """One ticket link standing in for several showtimes."""
    showtime_ids: List[str]
    showtime_dates: List[str]
    ticket_link: TicketLink

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TicketLinkGroup":
        return cls(
            showtime_ids=[
                str(i) for i in data.get("showtimeIds") or [] if i is not None
            ],
            showtime_dates=list(data.get("showtimeDates") or []),
            ticket_link=TicketLink.from_dict(data.get("ticketLink") or {}),
        )


@dataclass
class Event:
    """Event record from the events portal feed."""
    status: str
    start_date: Optional[str]
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    display_venue: str = ""
    display_city: str = ""
    display_state: str = ""
    additional_info: str = ""
    showtimes: List[Showtime] = field(default_factory=list)
    ticket_link_groups: List[TicketLinkGroup] = field(default_factory=list)
    distance: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """
        Build an Event from a portal payload entry.

        Args:
            data: Event object using the portal's camelCase keys

        Returns:
            Event with missing fields set to empty defaults
        """
        return cls(
            status=data.get("status") or "",
            start_date=data.get("startDate") or None,
            start_time=data.get("startTime") or None,
            end_date=data.get("endDate") or None,
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            display_venue=data.get("displayVenue") or "",
            display_city=data.get("displayCity") or "",
            display_state=data.get("displayState") or "",
            additional_info=data.get("additionalInfo") or "",
            showtimes=[Showtime.from_dict(s) for s in data.get("showtimes") or []],
            ticket_link_groups=[
                TicketLinkGroup.from_dict(g)
                for g in data.get("ticketLinkGroups") or []
            ],
        )


@dataclass(frozen=True)
class DirectLink:
    """Navigate to an external ticketing page in a new context."""
    url: str
    target: str = "_blank"
    rel: str = "noopener noreferrer"


@dataclass(frozen=True)
class WaitlistPopup:
    """Open the waitlist capture form."""


@dataclass(frozen=True)
class SoldOutPopup:
    """Open the sold-out capture form."""


LinkBehavior = Union[DirectLink, WaitlistPopup, SoldOutPopup]


@dataclass(frozen=True)
class PurchaseAction:
    """Prepared ticket button for one group or one showtime link."""
    behavior: LinkBehavior
    text: str
    color: str
    venue: str
    date_label: str


@dataclass
class PreparedEvent:
    """Event plus everything a renderer needs to draw its card."""
    event: Event
    date_label: str
    near_you: bool
    actions: List[PurchaseAction]

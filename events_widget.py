"""Events feed widget: fetches, filters, orders and prepares events for display."""
import asyncio
import json
import logging
import math
import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, TextIO

from location.geo_resolver import (
    GeoResolver,
    LocationStore,
    ResolverState,
    StaticLocationProvider,
    UserLocation,
)
from overlay.capture import CaptureTrigger
from overlay.gesture import GestureController, Scheduler
from overlay.listeners import ListenerRegistry
from overlay.panel import OverlayPanel
from portal.events_portal import EventsPortalClient
from processor.distance import DistanceEngine
from processor.feed_filter import FeedFilter
from processor.models import (
    DirectLink,
    Event,
    PreparedEvent,
    PurchaseAction,
    SoldOutPopup,
    WaitlistPopup,
)
from processor.tickets import TicketAggregator, event_date_label

logger = logging.getLogger(__name__)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


# Option names accepted by WidgetConfig.from_options
OPTION_NAMES = {
    'locationId': 'location_id',
    'eventPortalToken': 'event_portal_token',
    'waitlistFormId': 'waitlist_form_id',
    'soldOutFormId': 'sold_out_form_id',
    'nearYouThreshold': 'near_you_threshold',
    'textColor': 'text_color',
}

ENV_NAMES = {
    'EVENTS_LOCATION_ID': 'location_id',
    'EVENT_PORTAL_TOKEN': 'event_portal_token',
    'WAITLIST_FORM_ID': 'waitlist_form_id',
    'SOLD_OUT_FORM_ID': 'sold_out_form_id',
    'NEAR_YOU_THRESHOLD': 'near_you_threshold',
    'TEXT_COLOR': 'text_color',
}


@dataclass(frozen=True)
class WidgetConfig:
    """Widget options, fixed once the widget is initialized."""
    location_id: str = ""
    event_portal_token: str = ""
    waitlist_form_id: str = ""
    sold_out_form_id: str = ""
    near_you_threshold: float = 100.0
    text_color: str = "#605858"

    def __post_init__(self):
        object.__setattr__(self, 'near_you_threshold', float(self.near_you_threshold))

    @classmethod
    def from_options(cls, options: Optional[Dict[str, Any]] = None) -> "WidgetConfig":
        """
        Merge a camelCase option set over the defaults.

        Args:
            options: Options such as {'locationId': ..., 'nearYouThreshold': 50}

        Returns:
            WidgetConfig with unspecified options left at their defaults
        """
        values = {}
        for key, value in (options or {}).items():
            name = OPTION_NAMES.get(key)
            if name is None:
                logger.warning(f"Ignoring unknown widget option '{key}'")
                continue
            if value is not None:
                values[name] = value
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "WidgetConfig":
        """Read widget options from environment variables."""
        environ = os.environ if environ is None else environ
        values = {
            name: environ[var] for var, name in ENV_NAMES.items() if environ.get(var)
        }
        return cls(**values)


@dataclass
class FeedReady:
    """Payload of the feed-ready notification."""
    user_location: Optional[UserLocation]
    events: List[Event]


class Renderer(Protocol):
    """Draws prepared events; owns all markup."""

    def render(self, events: List[PreparedEvent], config: WidgetConfig) -> None:
        ...


def _action_to_dict(action: PurchaseAction) -> Dict[str, Any]:
    behavior = action.behavior
    data = {
        'text': action.text,
        'color': action.color,
        'date_label': action.date_label,
    }
    if isinstance(behavior, WaitlistPopup):
        data['kind'] = 'waitlist'
    elif isinstance(behavior, SoldOutPopup):
        data['kind'] = 'sold_out'
    else:
        data['kind'] = 'link'
        data['url'] = behavior.url
    return data


def prepared_event_to_dict(prepared: PreparedEvent) -> Dict[str, Any]:
    event = prepared.event
    distance = event.distance
    return {
        'venue': event.display_venue,
        'city': event.display_city,
        'state': event.display_state,
        'title': event.additional_info,
        'date_label': prepared.date_label,
        'near_you': prepared.near_you,
        'distance_km': round(distance, 1) if distance is not None and math.isfinite(distance) else None,
        'tickets': [_action_to_dict(a) for a in prepared.actions],
    }


class JsonRenderer:
    """Renderer keeping the latest pass as JSON-ready dicts."""

    def __init__(self):
        self.passes = 0
        self.last: List[Dict[str, Any]] = []

    def render(self, events: List[PreparedEvent], config: WidgetConfig) -> None:
        self.passes += 1
        self.last = [prepared_event_to_dict(p) for p in events]

    def dump(self, stream: TextIO) -> None:
        json.dump(self.last, stream, indent=2)
        stream.write("\n")


class EventsWidget:
    """
    Wires the feed pipeline, geolocation and overlay panel together.

    The feed is rendered twice: once in plain chronological order right after
    the fetch, and again ordered by proximity once the user location is known.
    The second pass replaces the first.
    """

    def __init__(
        self,
        config: WidgetConfig,
        client,
        renderer: Renderer,
        geo_resolver: Optional[GeoResolver] = None,
        panel: Optional[OverlayPanel] = None,
        document: Optional[ListenerRegistry] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the widget.

        Args:
            config: Widget options
            client: Feed source with a fetch_events() method
            renderer: Receives each prepared render pass
            geo_resolver: Location resolver (default: no geolocation support)
            panel: Overlay panel for the capture forms, if the page has one
            document: Page-wide listener registry for drag tracking
            scheduler: Timer used by the drag gesture's settle animation
            clock: Returns the current UTC instant
        """
        self.config = config
        self.client = client
        self.renderer = renderer
        self.geo_resolver = geo_resolver or GeoResolver(provider=None)
        self.location_store: LocationStore = self.geo_resolver.store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.feed_filter = FeedFilter()
        self.distance_engine = DistanceEngine(config.near_you_threshold)
        self.tickets = TicketAggregator()
        self.capture = CaptureTrigger(
            panel, config.waitlist_form_id, config.sold_out_form_id
        )
        self.gesture = GestureController(panel, document, scheduler)

        self.events: List[Event] = []
        self._ready_listeners: List[Callable[[FeedReady], None]] = []

    def add_ready_listener(self, listener: Callable[[FeedReady], None]) -> None:
        self._ready_listeners.append(listener)

    async def load(self) -> None:
        """
        Fetch the feed, render it, then reorder it by proximity.

        The fetch runs in a worker thread so the event loop stays free while
        the portal client waits on the network or its retry backoff. Once a
        location has been resolved, later loads reuse it instead of asking
        the provider again.
        """
        start_time = time.time()
        self.gesture.attach()

        self.events = await asyncio.to_thread(self.client.fetch_events)
        eligible = self.feed_filter.filter_events(self.events, now=self.clock())
        logger.info(f"{len(eligible)} of {len(self.events)} events are upcoming")
        self.publish(eligible, None)

        if self.geo_resolver.state is ResolverState.RESOLVED:
            self.reorder_with_stored_location()
        else:
            await self.locate_and_reorder()
        logger.info(
            f"Feed ready in {round(time.time() - start_time, 2)} seconds"
        )

    async def locate_and_reorder(self) -> None:
        """
        Resolve the user location and re-render the feed by proximity.

        Runs once per widget; the feed-ready notification fires whether or
        not a location was obtained.
        """
        if self.geo_resolver.state is not ResolverState.UNRESOLVED:
            return

        location = None
        ordered = self.feed_filter.filter_events(self.events, now=self.clock())
        try:
            result = await self.geo_resolver.resolve()
            if result is not None and result.is_resolved:
                location = result
                ordered = self._publish_by_proximity(location)
            else:
                logger.warning("No user location, keeping chronological order")
        finally:
            self._notify(FeedReady(user_location=location, events=ordered))

    def reorder_with_stored_location(self) -> None:
        """Re-render the current feed using the session location, if any."""
        location = self.location_store.current()
        if location is None:
            ordered = self.feed_filter.filter_events(self.events, now=self.clock())
        else:
            ordered = self._publish_by_proximity(location)
        self._notify(FeedReady(user_location=location, events=ordered))

    def _publish_by_proximity(self, location: UserLocation) -> List[Event]:
        eligible = self.feed_filter.filter_events(
            self.events, now=self.clock(), sort=False
        )
        ordered = self.distance_engine.order_by_proximity(eligible, location)
        self.publish(ordered, location)
        return ordered

    def publish(
        self, events: List[Event], location: Optional[UserLocation]
    ) -> List[PreparedEvent]:
        prepared = [self.prepare_event(event, location) for event in events]
        self.renderer.render(prepared, self.config)
        return prepared

    def prepare_event(
        self, event: Event, location: Optional[UserLocation]
    ) -> PreparedEvent:
        return PreparedEvent(
            event=event,
            date_label=event_date_label(event),
            near_you=location is not None and self.distance_engine.is_near(event),
            actions=self.tickets.build_actions(event),
        )

    def trigger(self, action: PurchaseAction) -> Optional[str]:
        """
        Carry out a purchase action.

        Args:
            action: Action prepared for a ticket button

        Returns:
            URL to navigate to or load in the panel, None if nothing opened
        """
        behavior = action.behavior
        if isinstance(behavior, WaitlistPopup):
            return self.join_waitlist(action.venue, action.date_label)
        if isinstance(behavior, SoldOutPopup):
            return self.open_sold_out(action.venue, action.date_label)
        if isinstance(behavior, DirectLink):
            return behavior.url
        raise TypeError(f"Unknown link behavior: {behavior!r}")

    def join_waitlist(self, venue: str = "", date: str = "") -> Optional[str]:
        return self.capture.join_waitlist(venue, date, self.location_store.current())

    def open_sold_out(self, venue: str = "", date: str = "") -> Optional[str]:
        return self.capture.open_sold_out(venue, date, self.location_store.current())

    def _notify(self, payload: FeedReady) -> None:
        for listener in list(self._ready_listeners):
            try:
                listener(payload)
            except Exception as e:
                logger.error(f"Feed-ready listener failed: {e}", exc_info=True)


def _location_provider_from_env(environ) -> Optional[StaticLocationProvider]:
    lat = environ.get('USER_LATITUDE')
    lon = environ.get('USER_LONGITUDE')
    if not lat or not lon:
        return None
    return StaticLocationProvider(float(lat), float(lon))


def main() -> int:
    """
    Run the feed pipeline once and print the final feed as JSON.

    Returns:
        Process exit status
    """
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    setup_logging(log_level)

    config = WidgetConfig.from_env()
    logger.info(
        "Events widget started",
        extra={
            'location_id': config.location_id,
            'near_you_threshold': config.near_you_threshold,
        }
    )

    client = EventsPortalClient(
        config.location_id, config.event_portal_token, timeout=timeout_seconds
    )
    renderer = JsonRenderer()
    widget = EventsWidget(
        config,
        client=client,
        renderer=renderer,
        geo_resolver=GeoResolver(_location_provider_from_env(os.environ)),
    )

    asyncio.run(widget.load())
    renderer.dump(sys.stdout)
    return 0


if __name__ == '__main__':
    sys.exit(main())

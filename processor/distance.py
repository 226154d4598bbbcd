"""Haversine distance and proximity ordering."""
import logging
import math
from typing import List, Optional, Sequence

from location.geo_resolver import UserLocation
from processor.feed_filter import start_instant
from processor.models import Event

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points on a sphere.

    Args:
        lat1: Latitude of the first point in degrees
        lon1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lon2: Longitude of the second point in degrees

    Returns:
        Distance in kilometers, or infinity if it cannot be computed
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    distance = EARTH_RADIUS_KM * c
    return distance if math.isfinite(distance) else math.inf


def parse_coordinate(value) -> Optional[float]:
    """Parse a coordinate string, returning None unless it is a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class DistanceEngine:
    """Annotates events with distance and orders them near-before-far."""

    def __init__(self, near_you_threshold: float = 100.0):
        self.near_you_threshold = near_you_threshold

    def annotate(self, events: Sequence[Event], location: UserLocation) -> None:
        """Set `distance` on every event, infinity when it has no usable coordinates."""
        for event in events:
            lat = parse_coordinate(event.latitude)
            lon = parse_coordinate(event.longitude)
            if lat is None or lon is None:
                event.distance = math.inf
            else:
                event.distance = haversine(location.lat, location.lon, lat, lon)

    def is_near(self, event: Event) -> bool:
        return event.distance is not None and event.distance <= self.near_you_threshold

    def order_by_proximity(
        self, events: Sequence[Event], location: UserLocation
    ) -> List[Event]:
        """
        Annotate events and order them by proximity tier, then start time.

        Near events (distance at or under the threshold) all come before far
        ones; each tier is sorted by start date/time on its own.

        Args:
            events: Events to order
            location: Resolved user location

        Returns:
            New list with the near tier followed by the far tier
        """
        self.annotate(events, location)

        near = [e for e in events if self.is_near(e)]
        far = [e for e in events if not self.is_near(e)]
        near.sort(key=start_instant)
        far.sort(key=start_instant)

        logger.info(
            f"Ordered {len(events)} events by proximity: "
            f"{len(near)} within {self.near_you_threshold} km, {len(far)} beyond"
        )
        return near + far

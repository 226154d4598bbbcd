"""Client for the events portal feed API."""
import logging
import time
from typing import Any, Dict, List

import requests

from processor.models import Event

logger = logging.getLogger(__name__)


class EventsPortalClient:
    """Fetches the event list for one location from the events portal."""

    BASE_URL = "https://events-portal-sage.vercel.app/api/events/"

    def __init__(
        self,
        location_id: str,
        token: str,
        timeout: int = 30,
        max_retries: int = 3,
    ):
        """
        Initialize the portal client.

        Args:
            location_id: Portal location whose events are fetched
            token: Bearer token for the portal API
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts before giving up (default: 3)
        """
        self.location_id = location_id
        self.token = token
        self.timeout = timeout
        self.max_retries = max_retries

    def fetch_events(self) -> List[Event]:
        """
        Fetch and parse the event list.

        Returns:
            List of Event objects, empty if the portal could not be reached
        """
        try:
            payload = self._fetch_payload()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Event fetch failed, continuing with no events: {e}")
            return []

        events = self._parse_events(payload)
        logger.info(f"Fetched {len(events)} events for location {self.location_id}")
        return events

    def _fetch_payload(self) -> Dict[str, Any]:
        """
        Fetch the feed JSON with retry logic.

        Returns:
            Decoded JSON payload

        Raises:
            requests.RequestException: If all retry attempts fail
            ValueError: If the response body is not JSON
        """
        url = f"{self.BASE_URL}{self.location_id}"
        headers = {
            'Authorization': f"Bearer {self.token}",
            'Accept': 'application/json',
        }
        base_delay = 1  # seconds

        for attempt in range(self.max_retries):
            try:
                logger.info(f"Fetching events feed (attempt {attempt + 1}/{self.max_retries})")
                response = requests.get(url, headers=headers, timeout=self.timeout)
                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise

    def _parse_events(self, payload: Any) -> List[Event]:
        """
        Parse events out of the feed payload.

        Args:
            payload: Decoded JSON, expected shape {"data": {"events": [...]}}

        Returns:
            List of Event objects
        """
        data = payload.get('data') if isinstance(payload, dict) else None
        raw_events = data.get('events') if isinstance(data, dict) else None
        if not isinstance(raw_events, list):
            logger.warning("Feed payload has no data.events list")
            return []

        events = []
        for raw in raw_events:
            try:
                events.append(Event.from_dict(raw))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Failed to parse event entry: {e}")
                continue

        return events

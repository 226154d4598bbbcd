"""Opens the waitlist and sold-out lead capture forms in the overlay panel."""
import logging
from typing import Optional

import requests

from location.geo_resolver import UserLocation
from overlay.panel import OverlayPanel

logger = logging.getLogger(__name__)


class CaptureTrigger:
    """Points the panel's embedded form at a lead capture form and shows it."""

    FORM_BASE_URL = "https://api.leadconnectorhq.com/widget/form/"
    WAITLIST_PARAM = "waitlist"
    SOLD_OUT_PARAM = "soldout"

    def __init__(
        self,
        panel: Optional[OverlayPanel],
        waitlist_form_id: str = "",
        sold_out_form_id: str = "",
    ):
        self.panel = panel
        self.waitlist_form_id = waitlist_form_id
        self.sold_out_form_id = sold_out_form_id

    def join_waitlist(
        self,
        venue: str = "",
        date: str = "",
        location: Optional[UserLocation] = None,
    ) -> Optional[str]:
        return self._open(
            self.waitlist_form_id, self.WAITLIST_PARAM, venue, date, location
        )

    def open_sold_out(
        self,
        venue: str = "",
        date: str = "",
        location: Optional[UserLocation] = None,
    ) -> Optional[str]:
        return self._open(
            self.sold_out_form_id, self.SOLD_OUT_PARAM, venue, date, location
        )

    def build_form_url(
        self,
        form_id: str,
        param: str,
        venue: str = "",
        date: str = "",
        location: Optional[UserLocation] = None,
    ) -> str:
        """
        Build the embedded form URL with the show and user location prefilled.

        Args:
            form_id: Lead capture form identifier
            param: Query parameter receiving the venue and date
            venue: Venue label of the show
            date: Date label of the show
            location: User location, added when it has coordinates

        Returns:
            Form URL
        """
        params = {}
        if venue or date:
            params[param] = f"{venue} {date}".strip()
        if location is not None and location.is_resolved:
            params["latitude"] = location.lat
            params["longitude"] = location.lon

        request = requests.Request("GET", f"{self.FORM_BASE_URL}{form_id}", params=params)
        return request.prepare().url

    def _open(
        self,
        form_id: str,
        param: str,
        venue: str,
        date: str,
        location: Optional[UserLocation],
    ) -> Optional[str]:
        panel = self.panel
        if panel is None or not panel.has_form_frame or not form_id:
            logger.debug(f"Cannot open '{param}' form: panel or form id missing")
            return None

        url = self.build_form_url(form_id, param, venue, date, location)
        panel.open(url)
        panel.bind_dismiss(panel.close)
        logger.info(f"Opened '{param}' form for '{venue} {date}'")
        return url

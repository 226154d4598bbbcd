"""Unit tests for EventsPortalClient."""
from unittest.mock import patch

import responses
from requests.exceptions import ConnectionError as RequestsConnectionError, Timeout

from portal.events_portal import EventsPortalClient

FEED_URL = "https://events-portal-sage.vercel.app/api/events/loc_42"

SAMPLE_PAYLOAD = {
    "data": {
        "events": [
            {
                "status": "live",
                "startDate": "2024-06-01",
                "startTime": "19:30",
                "endDate": "2024-06-03",
                "latitude": "38.8951",
                "longitude": "-77.0364",
                "displayVenue": "The Anthem",
                "displayCity": "Washington",
                "displayState": "DC",
                "additionalInfo": "Summer Tour",
                "showtimes": [
                    {
                        "id": "st_1",
                        "date": "2024-06-01",
                        "ticketLinks": [
                            {
                                "linkType": "Buy Tickets",
                                "ticketLink": "https://tickets.example.com/1",
                                "buttonColor": "#e63946",
                                "buttonText": "Tickets",
                            }
                        ],
                    }
                ],
                "ticketLinkGroups": [
                    {
                        "showtimeIds": ["st_2", "st_3"],
                        "showtimeDates": ["2024-06-02", "2024-06-03"],
                        "ticketLink": {
                            "linkType": "Join Waitlist",
                            "ticketLink": "popup",
                        },
                    }
                ],
            },
            {
                "status": "draft",
                "startDate": "2024-07-01",
            },
        ]
    }
}


class TestEventsPortalClient:
    """Test cases for EventsPortalClient class."""

    @responses.activate
    def test_fetch_events_success(self):
        """Test successful event fetching and parsing."""
        responses.add(responses.GET, FEED_URL, json=SAMPLE_PAYLOAD, status=200)

        client = EventsPortalClient("loc_42", "secret-token")
        events = client.fetch_events()

        assert len(events) == 2

        event = events[0]
        assert event.status == "live"
        assert event.start_date == "2024-06-01"
        assert event.start_time == "19:30"
        assert event.end_date == "2024-06-03"
        assert event.latitude == "38.8951"
        assert event.display_venue == "The Anthem"
        assert event.display_state == "DC"
        assert event.additional_info == "Summer Tour"
        assert event.distance is None

        showtime = event.showtimes[0]
        assert showtime.id == "st_1"
        assert showtime.ticket_links[0].button_text == "Tickets"

        group = event.ticket_link_groups[0]
        assert group.showtime_ids == ["st_2", "st_3"]
        assert group.ticket_link.link_type == "Join Waitlist"
        assert group.ticket_link.button_color is None

        # Missing fields default to empty values
        assert events[1].start_time is None
        assert events[1].showtimes == []

    @responses.activate
    def test_sends_bearer_token(self):
        """Test request headers."""
        responses.add(responses.GET, FEED_URL, json={"data": {"events": []}})

        EventsPortalClient("loc_42", "secret-token").fetch_events()

        headers = responses.calls[0].request.headers
        assert headers["Authorization"] == "Bearer secret-token"
        assert headers["Accept"] == "application/json"

    @responses.activate
    @patch('portal.events_portal.time.sleep')
    def test_fetch_events_with_retry_success(self, mock_sleep):
        """Test retry logic succeeds after initial failures."""
        responses.add(responses.GET, FEED_URL, body="Server Error", status=500)
        responses.add(responses.GET, FEED_URL, body="Server Error", status=500)
        responses.add(responses.GET, FEED_URL, json=SAMPLE_PAYLOAD, status=200)

        client = EventsPortalClient("loc_42", "secret-token")
        events = client.fetch_events()

        assert len(events) == 2
        assert len(responses.calls) == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    @responses.activate
    @patch('portal.events_portal.time.sleep')
    def test_all_retries_fail_returns_empty(self, mock_sleep):
        """Test that transport failure degrades to an empty feed."""
        for _ in range(3):
            responses.add(responses.GET, FEED_URL, body="Server Error", status=500)

        client = EventsPortalClient("loc_42", "secret-token")

        assert client.fetch_events() == []
        assert len(responses.calls) == 3

    @responses.activate
    @patch('portal.events_portal.time.sleep')
    def test_timeout_returns_empty(self, mock_sleep):
        """Test timeout handling."""
        for _ in range(3):
            responses.add(responses.GET, FEED_URL, body=Timeout("Request timed out"))

        client = EventsPortalClient("loc_42", "secret-token", timeout=5)

        assert client.fetch_events() == []
        assert len(responses.calls) == 3

    @responses.activate
    def test_connection_error_single_attempt(self):
        """Test that max_retries=1 gives up immediately."""
        responses.add(responses.GET, FEED_URL, body=RequestsConnectionError("refused"))

        client = EventsPortalClient("loc_42", "secret-token", max_retries=1)

        assert client.fetch_events() == []
        assert len(responses.calls) == 1

    @responses.activate
    @patch('portal.events_portal.time.sleep')
    def test_invalid_json_returns_empty(self, mock_sleep):
        """Test that a non-JSON body is treated as an empty feed."""
        for _ in range(3):
            responses.add(responses.GET, FEED_URL, body="<html>oops</html>", status=200)

        assert EventsPortalClient("loc_42", "secret-token").fetch_events() == []

    @responses.activate
    def test_unexpected_payload_shape(self):
        """Test payloads without a data.events list."""
        responses.add(responses.GET, FEED_URL, json={"data": None})

        assert EventsPortalClient("loc_42", "secret-token").fetch_events() == []

    @responses.activate
    def test_skips_malformed_entries(self):
        """Test that entries that are not objects are skipped."""
        payload = {"data": {"events": ["not-an-event", {"status": "live", "startDate": "2024-06-01"}]}}
        responses.add(responses.GET, FEED_URL, json=payload)

        events = EventsPortalClient("loc_42", "secret-token").fetch_events()

        assert len(events) == 1
        assert events[0].start_date == "2024-06-01"

    @responses.activate
    def test_null_ids_become_empty(self):
        """Test that null showtime and group ids are not read as 'None'."""
        payload = {"data": {"events": [{
            "status": "live",
            "startDate": "2024-06-01",
            "showtimes": [
                {"id": None, "date": "2024-06-01"},
                {"id": 7, "date": "2024-06-02"},
            ],
            "ticketLinkGroups": [
                {"showtimeIds": [None, 7], "ticketLink": {"ticketLink": "popup"}},
            ],
        }]}}
        responses.add(responses.GET, FEED_URL, json=payload)

        event = EventsPortalClient("loc_42", "secret-token").fetch_events()[0]

        assert [s.id for s in event.showtimes] == ["", "7"]
        assert event.ticket_link_groups[0].showtime_ids == ["7"]

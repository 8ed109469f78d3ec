"""Unit tests for the railway client and progress summary."""

import httpx
import pytest
import respx

from wakeme.integrations.railway import RailwayAPIError, RailwayClient
from wakeme.integrations.railway.client import parse_delay_minutes, summarize_progress

API = "https://rail.test"

STATIONS = [
    {"station": "Tumakuru (TK)", "status": "passed", "distance": "0 km", "current": "false"},
    {"station": "Dobbspet (DBS)", "status": "passed", "distance": "40 km", "current": "true",
     "delay": "+15 min"},
    {"station": "Yesvantpur (YPR)", "status": "upcoming", "distance": "35 km", "current": "false"},
    {"station": "KSR Bengaluru (SBC)", "status": "upcoming", "distance": "25 km",
     "current": "false"},
    {"station": "Bengaluru Cant (BNC)", "status": "upcoming", "distance": "6 km",
     "current": "false"},
]

PNR_BODY = {
    "success": True,
    "data": {
        "pnr": "4512345678",
        "train": {"number": "12628", "name": "Karnataka Express", "arrivalTime": "06:40"},
        "journey": {
            "dateOfJourney": "19-10-2026",
            "from": {"name": "NDLS"},
            "to": {"name": "SBC"},
            "departureTime": "20:15",
        },
    },
}


@pytest.mark.unit
class TestSummarizeProgress:
    def test_progress_towards_destination(self):
        progress = summarize_progress(STATIONS, "SBC")

        assert progress.current_station == "Dobbspet (DBS)"
        assert progress.next_station == "Yesvantpur (YPR)"
        assert progress.stations_remaining == 2
        assert progress.distance_remaining_km == 100.0
        assert progress.delay_minutes == 15

    def test_not_departed(self):
        stations = [dict(s, current="false") for s in STATIONS]
        assert summarize_progress(stations, "SBC") is None

    def test_destination_not_on_route(self):
        assert summarize_progress(STATIONS, "MAS") is None

    @pytest.mark.parametrize(
        "raw, minutes", [("+15 min", 15), ("On Time", 0), (None, 0), ("45", 45)]
    )
    def test_parse_delay(self, raw, minutes):
        assert parse_delay_minutes(raw) == minutes


@pytest.mark.unit
class TestRailwayClient:
    async def test_fetch_ticket(self):
        async with httpx.AsyncClient() as http:
            client = RailwayClient(http, API, api_key="rail-key")
            with respx.mock() as mock:
                route = mock.get(f"{API}/pnr/4512345678").mock(
                    return_value=httpx.Response(200, json=PNR_BODY)
                )
                ticket = await client.fetch_ticket("4512345678")

        assert route.calls.last.request.headers["x-api-key"] == "rail-key"
        assert ticket.train_number == "12628"
        assert ticket.journey_date == "19-10-2026"
        assert ticket.boarding_station == "NDLS"
        assert ticket.destination_station == "SBC"
        assert ticket.departure_time == "20:15"
        assert ticket.arrival_time == "06:40"

    async def test_unsuccessful_envelope_raises(self):
        async with httpx.AsyncClient() as http:
            client = RailwayClient(http, API)
            with respx.mock() as mock:
                mock.get(f"{API}/pnr/1111111111").mock(
                    return_value=httpx.Response(200, json={"success": False, "error": "bad"})
                )
                with pytest.raises(RailwayAPIError):
                    await client.fetch_ticket("1111111111")

    async def test_http_error_raises_with_status(self):
        async with httpx.AsyncClient() as http:
            client = RailwayClient(http, API)
            with respx.mock() as mock:
                mock.get(f"{API}/pnr/1111111111").mock(return_value=httpx.Response(503))
                with pytest.raises(RailwayAPIError) as exc_info:
                    await client.fetch_ticket("1111111111")

        assert exc_info.value.status_code == 503

    async def test_track_train_passes_date(self):
        async with httpx.AsyncClient() as http:
            client = RailwayClient(http, API)
            with respx.mock() as mock:
                route = mock.get(f"{API}/train/12628/live").mock(
                    return_value=httpx.Response(200, json={"success": True, "data": STATIONS})
                )
                stations = await client.track_train("12628", "19-10-2026")

        assert route.calls.last.request.url.params["date"] == "19-10-2026"
        assert len(stations) == 5

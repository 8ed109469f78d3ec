"""HTTP client for PNR lookup and live train running status."""

import re
from datetime import UTC, datetime
from typing import Any

import httpx

from wakeme.core.logging import get_logger
from wakeme.schemas import TrainProgress, TrainTicket

logger = get_logger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*(-?\d+)")
_DELAY_RE = re.compile(r"\+?(\d+)")


class RailwayAPIError(Exception):
    """Railway API error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


def _leading_int(value: Any) -> int | None:
    match = _LEADING_INT_RE.match(str(value or ""))
    return int(match.group(1)) if match else None


def parse_delay_minutes(delay: str | None) -> int:
    """Minutes of delay from strings such as "+15 min"; "On Time" is 0."""
    match = _DELAY_RE.search(delay or "")
    return int(match.group(1)) if match else 0


def summarize_progress(
    stations: list[dict[str, Any]], destination_station: str
) -> TrainProgress | None:
    """Reduce the live station list to progress towards the destination.

    Returns None when the current station is unknown (train not yet
    departed) or the destination is not on the route.
    """
    current_index = next(
        (i for i, s in enumerate(stations) if str(s.get("current", "")).lower() == "true"),
        None,
    )
    if current_index is None:
        logger.info("Current station unknown")
        return None

    needle = destination_station.strip().lower()
    destination_index = next(
        (i for i, s in enumerate(stations) if needle and needle in str(s.get("station", "")).lower()),
        None,
    )
    if destination_index is None:
        logger.info("Destination not on route", destination_station=destination_station)
        return None

    current = stations[current_index]
    upcoming = [
        s
        for s in stations[current_index + 1 : destination_index + 1]
        if s.get("status") == "upcoming"
    ]

    distance_km = 0
    for station in stations[current_index : destination_index + 1]:
        leg = _leading_int(station.get("distance"))
        if leg is not None:
            distance_km += leg

    return TrainProgress(
        current_station=str(current.get("station", "")),
        next_station=str(upcoming[0]["station"]) if upcoming else destination_station,
        stations_remaining=len(upcoming),
        distance_remaining_km=float(max(distance_km, 0)),
        delay_minutes=parse_delay_minutes(current.get("delay")),
        recorded_at=datetime.now(UTC),
    )


class RailwayClient:
    """PNR status and live running status over a shared httpx client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_base: str,
        api_key: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._http = http_client
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key} if self.api_key else {}

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = await self._http.get(
                f"{self.api_base}{path}",
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise RailwayAPIError(f"Railway API transport error: {e}") from e

        if not response.is_success:
            raise RailwayAPIError(
                f"Railway API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RailwayAPIError("Railway API returned invalid JSON") from e
        if not isinstance(body, dict):
            raise RailwayAPIError("Railway API returned an unexpected payload")
        if not body.get("success") or body.get("data") is None:
            raise RailwayAPIError(f"Railway API error: {body.get('error') or 'no data'}")
        return body["data"]

    async def fetch_ticket(self, pnr: str) -> TrainTicket:
        """Resolve a PNR into ticket details."""
        data = await self._get(f"/pnr/{pnr}")

        try:
            train = data["train"]
            journey = data["journey"]
            ticket = TrainTicket(
                pnr=str(data.get("pnr") or pnr),
                train_number=str(train["number"]),
                train_name=train.get("name"),
                journey_date=journey["dateOfJourney"],
                boarding_station=journey["from"]["name"],
                destination_station=journey["to"]["name"],
                departure_time=train.get("departureTime") or journey.get("departureTime"),
                arrival_time=train.get("arrivalTime") or journey.get("arrivalTime"),
            )
        except (KeyError, TypeError) as e:
            raise RailwayAPIError(f"Unexpected PNR payload: missing {e}") from e

        logger.info(
            "PNR resolved",
            pnr=pnr,
            train_number=ticket.train_number,
            journey_date=ticket.journey_date,
        )
        return ticket

    async def track_train(self, train_number: str, journey_date: str) -> list[dict[str, Any]]:
        """Live station list for a train run; journey_date is dd-mm-yyyy."""
        data = await self._get(f"/train/{train_number}/live", params={"date": journey_date})
        if not isinstance(data, list):
            raise RailwayAPIError("Unexpected live status payload")
        return data

"""Destination geocoding via the Google Geocoding API."""

import httpx

from wakeme.core.logging import get_logger
from wakeme.schemas import GeoPoint

logger = get_logger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Used when no API key is configured.
FALLBACK_CITIES: dict[str, GeoPoint] = {
    "mumbai": GeoPoint(lat=19.0760, lng=72.8777),
    "delhi": GeoPoint(lat=28.7041, lng=77.1025),
    "bangalore": GeoPoint(lat=12.9716, lng=77.5946),
    "hyderabad": GeoPoint(lat=17.3850, lng=78.4867),
    "chennai": GeoPoint(lat=13.0827, lng=80.2707),
    "kolkata": GeoPoint(lat=22.5726, lng=88.3639),
    "pune": GeoPoint(lat=18.5204, lng=73.8567),
    "ahmedabad": GeoPoint(lat=23.0225, lng=72.5714),
    "surat": GeoPoint(lat=21.1702, lng=72.8311),
    "jaipur": GeoPoint(lat=26.9124, lng=75.7873),
}


class GeocodingError(Exception):
    """Geocoding provider error."""


class Geocoder:
    """Resolves free-text destinations to coordinates."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str | None = None,
        region: str = "in",
        timeout: float = 30.0,
    ) -> None:
        self._http = http_client
        self.api_key = api_key
        self.region = region
        self.timeout = timeout

    async def geocode(self, address: str) -> GeoPoint | None:
        """Coordinates for address, or None when nothing matched.

        Raises:
            GeocodingError: on transport failures or provider errors.
        """
        if not self.api_key:
            point = FALLBACK_CITIES.get(address.strip().lower())
            logger.info("Geocoding from fallback table", address=address, found=point is not None)
            return point

        try:
            response = await self._http.get(
                GOOGLE_GEOCODE_URL,
                params={"address": address, "key": self.api_key, "region": self.region},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingError(f"Geocoding request failed: {e}") from e

        status = body.get("status")
        if status == "ZERO_RESULTS" or (status == "OK" and not body.get("results")):
            logger.info("Geocoding found nothing", address=address)
            return None
        if status != "OK":
            raise GeocodingError(f"Geocoding failed with status {status}")

        location = body["results"][0]["geometry"]["location"]
        point = GeoPoint(lat=location["lat"], lng=location["lng"])
        logger.info("Geocoded destination", address=address, lat=point.lat, lng=point.lng)
        return point

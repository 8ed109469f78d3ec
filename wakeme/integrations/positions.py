"""Geo/schedule provider backed by stored live locations and the railway API."""

from wakeme.core.logging import get_logger
from wakeme.core.services import GeoScheduleProvider
from wakeme.integrations.railway import RailwayAPIError, RailwayClient, summarize_progress
from wakeme.schemas import BusPosition, TrainProgress
from wakeme.storage.interfaces import TripStoreIface

logger = get_logger(__name__)


class LivePositionProvider(GeoScheduleProvider):
    """Bus positions come from Telegram live-location updates already
    written to the trip; train progress is fetched from the railway API.
    """

    def __init__(self, store: TripStoreIface, railway: RailwayClient):
        self._store = store
        self._railway = railway

    async def get_bus_position(self, trip_id: int) -> BusPosition | None:
        trip = await self._store.get_trip(trip_id)
        if trip is None or trip.current_lat is None or trip.current_lng is None:
            return None
        return BusPosition(
            lat=trip.current_lat,
            lng=trip.current_lng,
            recorded_at=trip.position_updated_at,
        )

    async def get_train_progress(
        self, train_number: str, journey_date: str, destination_station: str
    ) -> TrainProgress | None:
        try:
            stations = await self._railway.track_train(train_number, journey_date)
        except RailwayAPIError as e:
            logger.warning(
                "Train status unavailable",
                train_number=train_number,
                journey_date=journey_date,
                error=str(e),
            )
            return None
        return summarize_progress(stations, destination_station)

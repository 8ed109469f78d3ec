"""Pydantic schemas for trips, live snapshots and call results."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TripMode(str, Enum):
    """How the traveler is moving."""

    BUS = "bus"
    TRAIN = "train"


class TripStatus(str, Enum):
    """Trip lifecycle states."""

    CREATED = "created"
    AWAITING_ORIGIN = "awaiting_origin"
    AWAITING_DESTINATION = "awaiting_destination"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_PHONE = "awaiting_phone"
    ACTIVE = "active"
    ALERTING = "alerting"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {TripStatus.COMPLETED, TripStatus.MISSED, TripStatus.CANCELLED}
)


class CallStatus(str, Enum):
    """Wake-up call attempt states."""

    PENDING = "pending"
    INITIATED = "initiated"
    IN_PROGRESS = "in-progress"
    ENDED = "ended"
    FAILED = "failed"


class PromptTier(str, Enum):
    """Urgency of the spoken wake-up prompt."""

    CALM = "calm"
    FIRM = "firm"
    URGENT = "urgent"

    @classmethod
    def for_attempt(cls, attempt_no: int) -> "PromptTier":
        if attempt_no <= 1:
            return cls.CALM
        if attempt_no == 2:
            return cls.FIRM
        return cls.URGENT


class AlertZone(str, Enum):
    """Bus proximity zones, from far to near."""

    NONE = "none"
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class GeoPoint(BaseModel):
    """A latitude/longitude pair."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class BusPosition(BaseModel):
    """Last known bus position."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    recorded_at: datetime | None = None

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)


class TrainProgress(BaseModel):
    """Live train progress towards the traveler's destination station."""

    current_station: str
    next_station: str | None = None
    stations_remaining: int = Field(..., ge=0)
    distance_remaining_km: float = Field(..., ge=0)
    delay_minutes: int = 0
    recorded_at: datetime | None = None


class TrainTicket(BaseModel):
    """Ticket details resolved from a PNR."""

    pnr: str
    train_number: str
    train_name: str | None = None
    journey_date: str = Field(..., description="dd-mm-yyyy, as the railway API uses")
    boarding_station: str
    destination_station: str
    departure_time: str | None = None
    arrival_time: str | None = None
    passenger_name: str | None = None


class CallResult(BaseModel):
    """Vendor-neutral call-completion report."""

    external_call_id: str
    status: CallStatus = CallStatus.ENDED
    transcript: str | None = None
    duration_seconds: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

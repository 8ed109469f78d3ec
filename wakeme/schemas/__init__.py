"""Pydantic schemas shared across layers."""

from .trip import (
    TERMINAL_STATUSES,
    AlertZone,
    BusPosition,
    CallResult,
    CallStatus,
    GeoPoint,
    PromptTier,
    TrainProgress,
    TrainTicket,
    TripMode,
    TripStatus,
)

__all__ = [
    "TERMINAL_STATUSES",
    "AlertZone",
    "BusPosition",
    "CallResult",
    "CallStatus",
    "GeoPoint",
    "PromptTier",
    "TrainProgress",
    "TrainTicket",
    "TripMode",
    "TripStatus",
]

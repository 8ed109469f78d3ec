"""Database storage layer."""

from .base import Base
from .interfaces import TripStoreIface
from .models import CallAttempt, Trip, User
from .repository import SqlAlchemyTripStore

__all__ = [
    "Base",
    "TripStoreIface",
    "SqlAlchemyTripStore",
    "User",
    "Trip",
    "CallAttempt",
]

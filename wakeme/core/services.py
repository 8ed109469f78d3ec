"""Collaborator interfaces used by the domain layer."""

from abc import ABC, abstractmethod
from typing import Any

from wakeme.schemas import BusPosition, PromptTier, TrainProgress


class VoiceCallError(Exception):
    """Raised when a wake-up call could not be placed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RetrySchedulingError(Exception):
    """Raised when a call retry could not be handed to any scheduler."""


class NotificationSink(ABC):
    """Best-effort text notifications to a user."""

    @abstractmethod
    async def notify(self, user_id: int, text: str) -> bool:
        """Send text to the user. Never raises; returns delivery success."""
        pass


class VoiceGateway(ABC):
    """Outbound voice calls."""

    @abstractmethod
    async def place_call(
        self,
        phone: str,
        prompt_tier: PromptTier,
        callback_url: str,
        metadata: dict[str, Any],
    ) -> str:
        """Start a call and return the vendor call id.

        Raises:
            VoiceCallError: if the vendor rejected or never received the call.
        """
        pass


class GeoScheduleProvider(ABC):
    """Live position and schedule lookups."""

    @abstractmethod
    async def get_bus_position(self, trip_id: int) -> BusPosition | None:
        """Latest bus position, or None when not yet known."""
        pass

    @abstractmethod
    async def get_train_progress(
        self, train_number: str, journey_date: str, destination_station: str
    ) -> TrainProgress | None:
        """Train progress towards destination, or None when not evaluable."""
        pass


class RetryScheduler(ABC):
    """Delayed execution of a call retry."""

    @abstractmethod
    async def schedule_call_retry(self, trip_id: int, attempt_no: int, delay_sec: int) -> str:
        """Schedule attempt_no for trip_id after delay_sec; return the job id.

        Raises:
            RetrySchedulingError: if nothing will ever run the retry.
        """
        pass


def call_retry_job_id(trip_id: int, attempt_no: int) -> str:
    """Deterministic job id so re-scheduling the same attempt replaces it."""
    return f"call_retry:{trip_id}:{attempt_no}"

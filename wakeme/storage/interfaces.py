"""Repository interfaces for dependency injection."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from wakeme.schemas import CallStatus, PromptTier, TripMode, TripStatus
from wakeme.storage.models import CallAttempt, Trip, User


class TripStoreIface(ABC):
    """Persistence for users, trips and call attempts.

    Every write that guards an invariant is a conditional update and reports
    whether it changed a row, so concurrent callers can race safely.
    """

    # Trips

    @abstractmethod
    async def get_trips_pending_alert_evaluation(self, mode: TripMode) -> list[Trip]:
        """Active trips of the given mode whose alert marker is unset."""
        pass

    @abstractmethod
    async def get_alerted_trips(self, mode: TripMode) -> list[Trip]:
        """Unconfirmed trips of the given mode that are alerting or carry the alert marker."""
        pass

    @abstractmethod
    async def get_active_trip(self, user_id: int) -> Trip | None:
        """Most recent non-terminal trip for a user."""
        pass

    @abstractmethod
    async def get_trip(self, trip_id: int) -> Trip | None:
        """Get trip by ID."""
        pass

    @abstractmethod
    async def create_trip(
        self, user_id: int, mode: TripMode, status: TripStatus, **fields: Any
    ) -> Trip:
        """Create a new trip."""
        pass

    @abstractmethod
    async def update_trip(self, trip_id: int, **fields: Any) -> Trip | None:
        """Update trip columns other than status, marker and confirmation."""
        pass

    @abstractmethod
    async def try_set_alert_marker(self, trip_id: int) -> bool:
        """Set alert_marked_at if unset and the trip is active."""
        pass

    @abstractmethod
    async def update_status(
        self,
        trip_id: int,
        status: TripStatus,
        expected: Iterable[TripStatus],
        outcome: str | None = None,
    ) -> bool:
        """Move a trip to status if it currently holds one of expected."""
        pass

    @abstractmethod
    async def mark_confirmed(self, trip_id: int, outcome: str) -> bool:
        """Set confirmed and complete the trip if it is active or alerting."""
        pass

    # Call attempts

    @abstractmethod
    async def record_call_attempt(
        self,
        trip_id: int,
        attempt_no: int,
        external_call_id: str | None,
        status: CallStatus,
        prompt_tier: PromptTier,
    ) -> CallAttempt:
        """Insert a call attempt row."""
        pass

    @abstractmethod
    async def attach_external_call_id(self, attempt_id: int, external_call_id: str) -> None:
        """Store the vendor call id and mark the attempt initiated."""
        pass

    @abstractmethod
    async def mark_call_attempt_failed(self, attempt_id: int, error: str) -> None:
        """Mark a placement that never started a call."""
        pass

    @abstractmethod
    async def update_call_result(
        self,
        external_call_id: str,
        status: CallStatus,
        transcript: str | None,
        duration_seconds: int | None,
    ) -> bool:
        """Record a call result unless the attempt already ended."""
        pass

    @abstractmethod
    async def get_call_attempt(self, external_call_id: str) -> CallAttempt | None:
        """Get call attempt by vendor call id."""
        pass

    @abstractmethod
    async def count_call_attempts(
        self, trip_id: int, stale_pending_before: datetime | None = None
    ) -> int:
        """Number of attempts that consumed the call budget.

        Failed placements never count. With stale_pending_before, placements
        still pending since before that instant are treated as abandoned.
        """
        pass

    @abstractmethod
    async def count_failed_placements(self, trip_id: int, attempt_no: int | None = None) -> int:
        """Number of placements that failed before a call started.

        With attempt_no, only failures of that attempt are counted; those are
        consecutive because a failed placement is retried under the same number.
        """
        pass

    @abstractmethod
    async def get_latest_call_attempt(self, trip_id: int) -> CallAttempt | None:
        """Attempt with the highest number, latest row first on ties."""
        pass

    @abstractmethod
    async def latest_attempt_no(self, trip_id: int) -> int:
        """Highest attempt number recorded for a trip, 0 if none."""
        pass

    # Users

    @abstractmethod
    async def get_user(self, user_id: int) -> User | None:
        """Get user by Telegram ID."""
        pass

    @abstractmethod
    async def upsert_user(
        self,
        user_id: int,
        chat_id: int | None = None,
        display_name: str | None = None,
        username: str | None = None,
        language: str | None = None,
    ) -> User:
        """Create the user or refresh its profile fields."""
        pass

    @abstractmethod
    async def get_phone(self, user_id: int) -> str | None:
        """Get the user's phone number."""
        pass

    @abstractmethod
    async def set_phone(self, user_id: int, phone: str) -> None:
        """Store the user's phone number."""
        pass

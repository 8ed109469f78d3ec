"""Wake-up call escalation loop.

A trip in ``alerting`` gets attempt 1 immediately. Every call result either
completes the trip (traveler confirmed awake), schedules the next attempt,
or, once the budget is spent, closes the trip as missed. A loop that goes
quiet, because a placement was interrupted or a retry never fired, is
picked up again by the tracking cycle.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from wakeme.core.logging import get_logger
from wakeme.core.metrics import call_attempts_total, trips_missed_total, wake_confirmations_total
from wakeme.core.services import (
    NotificationSink,
    RetryScheduler,
    RetrySchedulingError,
    VoiceCallError,
    VoiceGateway,
)
from wakeme.core.settings import Settings
from wakeme.core.ui_strings import get_telegram_string
from wakeme.domain.confirmation import is_awake_confirmation
from wakeme.domain.trips import OUTCOME_CONFIRMED_CALL, TripStateMachine
from wakeme.schemas import CallResult, CallStatus, PromptTier, TripStatus
from wakeme.storage.interfaces import TripStoreIface
from wakeme.storage.models import CallAttempt, Trip

logger = get_logger(__name__)


class ResultOutcome(str, Enum):
    """What on_call_result did with a report."""

    UNKNOWN_CALL = "unknown_call"
    IGNORED_FINALIZED = "ignored_finalized"
    DUPLICATE = "duplicate"
    IN_PROGRESS = "in_progress"
    CONFIRMED = "confirmed"
    STALE = "stale"
    RETRY_SCHEDULED = "retry_scheduled"
    RETRY_DEFERRED = "retry_deferred"
    MISSED = "missed"


@dataclass(frozen=True)
class CallPolicy:
    """Budget and pacing of wake-up calls."""

    max_attempts: int = 5
    retry_delay_sec: int = 120
    placement_failure_limit: int = 5
    stall_timeout_sec: int = 300
    result_timeout_sec: int = 900
    callback_url: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "CallPolicy":
        return cls(
            max_attempts=settings.call_max_attempts,
            retry_delay_sec=settings.call_retry_delay_sec,
            placement_failure_limit=settings.call_placement_failure_limit,
            stall_timeout_sec=settings.call_stall_timeout_sec,
            result_timeout_sec=settings.call_result_timeout_sec,
            callback_url=settings.voice_webhook_url,
        )


class WakeCallOrchestrator:
    """Places wake-up calls and reacts to their results."""

    def __init__(
        self,
        store: TripStoreIface,
        gateway: VoiceGateway,
        notifier: NotificationSink,
        retry_scheduler: RetryScheduler,
        state_machine: TripStateMachine,
        policy: CallPolicy,
    ):
        self._store = store
        self._gateway = gateway
        self._notifier = notifier
        self._retry_scheduler = retry_scheduler
        self._state_machine = state_machine
        self._policy = policy

    async def on_alert(self, trip: Trip) -> CallAttempt | None:
        """Start the loop for a trip that just entered alerting."""
        return await self.place_attempt(trip.id, 1)

    async def run_retry(self, trip_id: int, attempt_no: int) -> CallAttempt | None:
        """Delayed step fired by the scheduler."""
        logger.info("Call retry fired", trip_id=trip_id, attempt_no=attempt_no)
        return await self.place_attempt(trip_id, attempt_no)

    async def place_attempt(self, trip_id: int, attempt_no: int) -> CallAttempt | None:
        """Place call attempt_no for a trip if it still needs waking."""
        trip = await self._store.get_trip(trip_id)
        if trip is None or trip.status != TripStatus.ALERTING or trip.confirmed:
            logger.info(
                "Call suppressed, trip no longer alerting",
                trip_id=trip_id,
                attempt_no=attempt_no,
                status=trip.status if trip else None,
            )
            return None

        placed = await self._store.count_call_attempts(
            trip_id, stale_pending_before=self._stall_cutoff(datetime.now(UTC))
        )
        if placed >= attempt_no:
            logger.info("Call attempt already placed", trip_id=trip_id, attempt_no=attempt_no)
            return None
        if placed >= self._policy.max_attempts or attempt_no > self._policy.max_attempts:
            await self._escalate_missed(trip)
            return None

        tier = PromptTier.for_attempt(attempt_no)
        attempt = await self._store.record_call_attempt(
            trip_id, attempt_no, None, CallStatus.PENDING, tier
        )

        # From here on the pending row exists; any failure must release it
        try:
            phone = await self._store.get_phone(trip.user_id)
            if not phone:
                raise VoiceCallError("no phone number on file")
            external_call_id = await self._gateway.place_call(
                phone, tier, self._policy.callback_url, self._call_metadata(trip, attempt_no)
            )
            await self._store.attach_external_call_id(attempt.id, external_call_id)
        except VoiceCallError as e:
            logger.error(
                "Wake-up call placement failed",
                trip_id=trip_id,
                attempt_no=attempt_no,
                error=str(e),
            )
            await self._placement_failed(trip, attempt, str(e))
            return None
        except Exception as e:
            logger.exception(
                "Wake-up call placement interrupted", trip_id=trip_id, attempt_no=attempt_no
            )
            await self._placement_failed(trip, attempt, f"{type(e).__name__}: {e}")
            return None

        attempt.external_call_id = external_call_id
        attempt.status = CallStatus.INITIATED.value
        call_attempts_total.labels(result="initiated").inc()

        logger.info(
            "Wake-up call placed",
            trip_id=trip_id,
            attempt_no=attempt_no,
            prompt_tier=tier.value,
            external_call_id=external_call_id,
        )

        if attempt_no == 1:
            await self._notifier.notify(trip.user_id, get_telegram_string("calling_now"))
        else:
            await self._notifier.notify(
                trip.user_id,
                get_telegram_string(
                    "calling_again",
                    attempt_no=attempt_no,
                    max_attempts=self._policy.max_attempts,
                ),
            )
        return attempt

    async def on_call_result(self, result: CallResult) -> ResultOutcome:
        """Classify a call report and advance the loop."""
        log = logger.bind(external_call_id=result.external_call_id)

        attempt = await self._store.get_call_attempt(result.external_call_id)
        if attempt is None:
            log.warning("Call result for unknown call")
            return ResultOutcome.UNKNOWN_CALL

        log = log.bind(trip_id=attempt.trip_id, attempt_no=attempt.attempt_no)
        trip = await self._store.get_trip(attempt.trip_id)
        if trip is None or TripStatus(trip.status).is_terminal or trip.confirmed:
            log.info("Call result ignored, trip finalized")
            return ResultOutcome.IGNORED_FINALIZED

        if result.status != CallStatus.ENDED:
            status = CallStatus(result.status)
            await self._store.update_call_result(
                result.external_call_id, status, result.transcript, result.duration_seconds
            )
            log.info("Call status updated", status=status.value)
            return ResultOutcome.IN_PROGRESS

        recorded = await self._store.update_call_result(
            result.external_call_id,
            CallStatus.ENDED,
            result.transcript,
            result.duration_seconds,
        )
        if not recorded:
            log.info("Duplicate call result ignored")
            return ResultOutcome.DUPLICATE

        if is_awake_confirmation(result.transcript):
            if not await self._state_machine.confirm_awake(trip.id, OUTCOME_CONFIRMED_CALL):
                log.info("Confirmation arrived after trip closed")
                return ResultOutcome.IGNORED_FINALIZED
            wake_confirmations_total.labels(source="call").inc()
            log.info("Traveler confirmed awake")
            await self._notifier.notify(trip.user_id, get_telegram_string("awake_confirmed_call"))
            return ResultOutcome.CONFIRMED

        latest = await self._store.latest_attempt_no(trip.id)
        if attempt.attempt_no < latest:
            log.info("Stale call result, newer attempt exists", latest_attempt_no=latest)
            return ResultOutcome.STALE

        if attempt.attempt_no >= self._policy.max_attempts:
            await self._escalate_missed(trip)
            return ResultOutcome.MISSED

        next_attempt = attempt.attempt_no + 1
        if not await self._schedule_retry(trip.id, next_attempt):
            return ResultOutcome.RETRY_DEFERRED
        log.info("Call retry scheduled", next_attempt_no=next_attempt)
        await self._notifier.notify(
            trip.user_id,
            get_telegram_string(
                "call_unanswered",
                minutes=max(1, round(self._policy.retry_delay_sec / 60)),
                next_attempt=next_attempt,
                max_attempts=self._policy.max_attempts,
            ),
        )
        return ResultOutcome.RETRY_SCHEDULED

    async def resume_stalled(
        self, trip: Trip, now: datetime | None = None
    ) -> CallAttempt | None:
        """Re-drive an alerting trip whose call loop went quiet.

        The loop has stalled when no attempt exists, or when the latest
        attempt has been quiet for longer than the stall timeout. A call that
        never reported a result is abandoned after the result timeout instead.
        A retry that fires late finds the attempt already placed and does
        nothing.
        """
        if trip.status != TripStatus.ALERTING or trip.confirmed:
            return None
        now = now or datetime.now(UTC)
        latest = await self._store.get_latest_call_attempt(trip.id)

        if latest is None:
            next_attempt = 1
        else:
            status = CallStatus(latest.status)
            if status in (CallStatus.INITIATED, CallStatus.IN_PROGRESS):
                quiet_since = latest.created_at
                timeout = self._policy.result_timeout_sec
                next_attempt = latest.attempt_no + 1
            elif status is CallStatus.ENDED:
                quiet_since = latest.ended_at or latest.created_at
                timeout = self._policy.stall_timeout_sec
                next_attempt = latest.attempt_no + 1
            else:
                quiet_since = latest.ended_at or latest.created_at
                timeout = self._policy.stall_timeout_sec
                next_attempt = latest.attempt_no
            if now - quiet_since < timedelta(seconds=timeout):
                return None
            if status is CallStatus.PENDING:
                await self._store.mark_call_attempt_failed(latest.id, "placement interrupted")

        logger.warning(
            "Resuming stalled wake-up loop",
            trip_id=trip.id,
            attempt_no=next_attempt,
            last_status=latest.status if latest else None,
        )
        if next_attempt > self._policy.max_attempts:
            await self._escalate_missed(trip)
            return None
        return await self.place_attempt(trip.id, next_attempt)

    async def _placement_failed(self, trip: Trip, attempt: CallAttempt, error: str) -> None:
        call_attempts_total.labels(result="failed").inc()
        await self._store.mark_call_attempt_failed(attempt.id, error)
        await self._handle_placement_failure(trip, attempt.attempt_no)

    async def _handle_placement_failure(self, trip: Trip, attempt_no: int) -> None:
        failures = await self._store.count_failed_placements(trip.id, attempt_no)
        if failures >= self._policy.placement_failure_limit:
            logger.error(
                "Giving up after repeated placement failures",
                trip_id=trip.id,
                attempt_no=attempt_no,
                failures=failures,
            )
            if await self._state_machine.mark_missed(trip.id):
                trips_missed_total.inc()
                await self._notifier.notify(
                    trip.user_id, get_telegram_string("calls_unavailable")
                )
            return

        await self._schedule_retry(trip.id, attempt_no)

    async def _schedule_retry(self, trip_id: int, attempt_no: int) -> bool:
        """Hand the retry to the scheduler; False leaves it to stall recovery."""
        try:
            await self._retry_scheduler.schedule_call_retry(
                trip_id, attempt_no, self._policy.retry_delay_sec
            )
        except RetrySchedulingError as e:
            logger.error(
                "Call retry not scheduled", trip_id=trip_id, attempt_no=attempt_no, error=str(e)
            )
            return False
        return True

    def _stall_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(seconds=self._policy.stall_timeout_sec)

    async def _escalate_missed(self, trip: Trip) -> None:
        if not await self._state_machine.mark_missed(trip.id):
            return
        trips_missed_total.inc()
        logger.warning("Traveler never confirmed, trip missed", trip_id=trip.id)
        await self._notifier.notify(
            trip.user_id,
            get_telegram_string("calls_exhausted", max_attempts=self._policy.max_attempts),
        )

    def _call_metadata(self, trip: Trip, attempt_no: int) -> dict[str, Any]:
        return {
            "trip_id": trip.id,
            "attempt": attempt_no,
            "user_id": trip.user_id,
            "mode": trip.mode,
            "destination": trip.destination_name or "your destination",
            "max_attempts": self._policy.max_attempts,
        }

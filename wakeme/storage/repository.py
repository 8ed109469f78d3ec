"""SQLAlchemy implementation of the trip store."""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wakeme.core.logging import get_logger
from wakeme.schemas import TERMINAL_STATUSES, CallStatus, PromptTier, TripMode, TripStatus
from wakeme.storage.interfaces import TripStoreIface
from wakeme.storage.models import CallAttempt, Trip, User

logger = get_logger(__name__)

# Columns owned by conditional writes; update_trip must not touch them.
GUARDED_TRIP_COLUMNS = frozenset({"status", "alert_marked_at", "confirmed", "id", "user_id"})

NON_TERMINAL_STATUSES = tuple(s.value for s in TripStatus if s not in TERMINAL_STATUSES)


class SqlAlchemyTripStore(TripStoreIface):
    """Trip store backed by PostgreSQL; one session per operation."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_trips_pending_alert_evaluation(self, mode: TripMode) -> list[Trip]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Trip)
                .where(
                    Trip.mode == TripMode(mode).value,
                    Trip.status == TripStatus.ACTIVE.value,
                    Trip.alert_marked_at.is_(None),
                )
                .order_by(Trip.id)
            )
            return list(result.scalars().all())

    async def get_alerted_trips(self, mode: TripMode) -> list[Trip]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Trip)
                .where(
                    Trip.mode == TripMode(mode).value,
                    Trip.confirmed.is_(False),
                    or_(
                        Trip.status == TripStatus.ALERTING.value,
                        and_(
                            Trip.status == TripStatus.ACTIVE.value,
                            Trip.alert_marked_at.is_not(None),
                        ),
                    ),
                )
                .order_by(Trip.id)
            )
            return list(result.scalars().all())

    async def get_active_trip(self, user_id: int) -> Trip | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Trip)
                .where(Trip.user_id == user_id, Trip.status.in_(NON_TERMINAL_STATUSES))
                .order_by(Trip.created_at.desc(), Trip.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_trip(self, trip_id: int) -> Trip | None:
        async with self._session_factory() as session:
            return await session.get(Trip, trip_id)

    async def create_trip(
        self, user_id: int, mode: TripMode, status: TripStatus, **fields: Any
    ) -> Trip:
        trip = Trip(
            user_id=user_id,
            mode=TripMode(mode).value,
            status=TripStatus(status).value,
            confirmed=False,
            **fields,
        )
        async with self._session_factory() as session:
            session.add(trip)
            await session.commit()
            await session.refresh(trip)

        logger.info("Trip created", trip_id=trip.id, user_id=user_id, mode=trip.mode)
        return trip

    async def update_trip(self, trip_id: int, **fields: Any) -> Trip | None:
        forbidden = GUARDED_TRIP_COLUMNS.intersection(fields)
        if forbidden:
            raise ValueError(f"update_trip cannot change {sorted(forbidden)}")

        async with self._session_factory() as session:
            trip = await session.get(Trip, trip_id)
            if trip is None:
                return None
            for key, value in fields.items():
                setattr(trip, key, value)
            trip.updated_at = datetime.now(UTC)
            await session.commit()
            await session.refresh(trip)
            return trip

    async def try_set_alert_marker(self, trip_id: int) -> bool:
        now = datetime.now(UTC)
        async with self._session_factory() as session:
            result = await session.execute(
                update(Trip)
                .where(
                    Trip.id == trip_id,
                    Trip.alert_marked_at.is_(None),
                    Trip.status == TripStatus.ACTIVE.value,
                )
                .values(alert_marked_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def update_status(
        self,
        trip_id: int,
        status: TripStatus,
        expected: Iterable[TripStatus],
        outcome: str | None = None,
    ) -> bool:
        expected_values = [TripStatus(s).value for s in expected]
        values: dict[str, Any] = {
            "status": TripStatus(status).value,
            "updated_at": datetime.now(UTC),
        }
        if outcome is not None:
            values["outcome"] = outcome

        async with self._session_factory() as session:
            result = await session.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.status.in_(expected_values))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def mark_confirmed(self, trip_id: int, outcome: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Trip)
                .where(
                    Trip.id == trip_id,
                    Trip.confirmed.is_(False),
                    Trip.status.in_([TripStatus.ACTIVE.value, TripStatus.ALERTING.value]),
                )
                .values(
                    confirmed=True,
                    status=TripStatus.COMPLETED.value,
                    outcome=outcome,
                    updated_at=datetime.now(UTC),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def record_call_attempt(
        self,
        trip_id: int,
        attempt_no: int,
        external_call_id: str | None,
        status: CallStatus,
        prompt_tier: PromptTier,
    ) -> CallAttempt:
        attempt = CallAttempt(
            trip_id=trip_id,
            attempt_no=attempt_no,
            external_call_id=external_call_id,
            status=CallStatus(status).value,
            prompt_tier=PromptTier(prompt_tier).value,
        )
        async with self._session_factory() as session:
            session.add(attempt)
            await session.commit()
            await session.refresh(attempt)
            return attempt

    async def attach_external_call_id(self, attempt_id: int, external_call_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(CallAttempt)
                .where(CallAttempt.id == attempt_id)
                .values(external_call_id=external_call_id, status=CallStatus.INITIATED.value)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def mark_call_attempt_failed(self, attempt_id: int, error: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(CallAttempt)
                .where(CallAttempt.id == attempt_id)
                .values(
                    status=CallStatus.FAILED.value,
                    error=error[:1000],
                    ended_at=datetime.now(UTC),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def update_call_result(
        self,
        external_call_id: str,
        status: CallStatus,
        transcript: str | None,
        duration_seconds: int | None,
    ) -> bool:
        status_value = CallStatus(status).value
        values: dict[str, Any] = {
            "status": status_value,
            "transcript": transcript,
            "duration_seconds": duration_seconds,
        }
        if status_value == CallStatus.ENDED.value:
            values["ended_at"] = datetime.now(UTC)

        async with self._session_factory() as session:
            result = await session.execute(
                update(CallAttempt)
                .where(
                    CallAttempt.external_call_id == external_call_id,
                    CallAttempt.status.notin_(
                        [CallStatus.ENDED.value, CallStatus.FAILED.value]
                    ),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def get_call_attempt(self, external_call_id: str) -> CallAttempt | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CallAttempt).where(CallAttempt.external_call_id == external_call_id)
            )
            return result.scalar_one_or_none()

    async def count_call_attempts(
        self, trip_id: int, stale_pending_before: datetime | None = None
    ) -> int:
        stmt = select(func.count(CallAttempt.id)).where(
            CallAttempt.trip_id == trip_id,
            CallAttempt.status != CallStatus.FAILED.value,
        )
        if stale_pending_before is not None:
            stmt = stmt.where(
                or_(
                    CallAttempt.status != CallStatus.PENDING.value,
                    CallAttempt.created_at >= stale_pending_before,
                )
            )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def count_failed_placements(self, trip_id: int, attempt_no: int | None = None) -> int:
        stmt = select(func.count(CallAttempt.id)).where(
            CallAttempt.trip_id == trip_id,
            CallAttempt.status == CallStatus.FAILED.value,
        )
        if attempt_no is not None:
            stmt = stmt.where(CallAttempt.attempt_no == attempt_no)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def get_latest_call_attempt(self, trip_id: int) -> CallAttempt | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CallAttempt)
                .where(CallAttempt.trip_id == trip_id)
                .order_by(CallAttempt.attempt_no.desc(), CallAttempt.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def latest_attempt_no(self, trip_id: int) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.max(CallAttempt.attempt_no)).where(CallAttempt.trip_id == trip_id)
            )
            return int(result.scalar_one_or_none() or 0)

    async def get_user(self, user_id: int) -> User | None:
        async with self._session_factory() as session:
            return await session.get(User, user_id)

    async def upsert_user(
        self,
        user_id: int,
        chat_id: int | None = None,
        display_name: str | None = None,
        username: str | None = None,
        language: str | None = None,
    ) -> User:
        now = datetime.now(UTC)
        profile = {
            key: value
            for key, value in {
                "chat_id": chat_id,
                "display_name": display_name,
                "username": username,
                "language": language,
            }.items()
            if value is not None
        }
        stmt = insert(User).values(id=user_id, last_active_at=now, **profile)
        stmt = stmt.on_conflict_do_update(
            index_elements=[User.id],
            set_={"last_active_at": now, **profile},
        )

        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
            user = await session.get(User, user_id, populate_existing=True)

        if user is None:
            raise RuntimeError(f"User {user_id} missing after upsert")
        return user

    async def get_phone(self, user_id: int) -> str | None:
        user = await self.get_user(user_id)
        return user.phone if user else None

    async def set_phone(self, user_id: int, phone: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(phone=phone, last_active_at=datetime.now(UTC))
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        logger.info("User phone stored", user_id=user_id)

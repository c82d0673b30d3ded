"""
Seat holds: advisory probe, atomic multi-seat lock, release, expiry sweep and
the admin status override.

A lock moves every requested seat AVAILABLE -> BOOKING_IN_PROGRESS with a
hold deadline, all or nothing, in one versioned write. A hold is released
either explicitly (the buyer abandons checkout) or by the sweep once its
deadline has passed. Both paths use the same downgrade-only transition, so
running them in any order, any number of times, converges on the same state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import utcnow
from boxoffice.core.config import get_settings
from boxoffice.core.exceptions import BoxOfficeValidationError, ConcurrencyConflictError, NotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_lock_attempt, record_release
from boxoffice.models.event import Event
from boxoffice.schemas.seat import SeatStatus
from boxoffice.services import seat_inventory
from boxoffice.services.cache_service import invalidate_seat_map
from boxoffice.services.seat_store import EventSnapshot, SeatStore, SeatWrite

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class LockResult:
    success: bool
    conflicts: list[str] = field(default_factory=list)
    hold_until: Optional[datetime] = None


def hold_deadline(now: datetime) -> datetime:
    return now + timedelta(seconds=settings.HOLD_DURATION_SECONDS)


async def hold_seat(db: AsyncSession, event_id: int, seat_id: str) -> bool:
    """
    Advisory availability probe. Does not reserve anything: two callers can
    both get True, and only one of them will win the subsequent lock.
    """
    snapshot = await SeatStore(db).load(event_id)
    if snapshot.event.is_general_admission:
        return True

    seat = seat_inventory.index_seats(snapshot.seats).get(seat_id)
    return seat is not None and seat.status == SeatStatus.AVAILABLE


async def lock_seats(
    db: AsyncSession,
    event_id: int,
    seat_ids: list[str],
    now: Optional[datetime] = None,
) -> LockResult:
    """
    Lock all requested seats or none of them.

    Conflicts (missing ids, seats not AVAILABLE) are a normal outcome, not an
    error: the result carries them and nothing is written.
    """
    seat_ids = seat_inventory.unique_ids(seat_ids)
    if len(seat_ids) > settings.MAX_SEATS_PER_LOCK:
        raise BoxOfficeValidationError(
            f"Cannot lock more than {settings.MAX_SEATS_PER_LOCK} seats at once",
            details={"requested": len(seat_ids), "max": settings.MAX_SEATS_PER_LOCK},
        )

    now = now or utcnow()
    hold_until = hold_deadline(now)

    def decide(snapshot: EventSnapshot):
        if snapshot.event.is_general_admission or not seat_ids:
            return None, LockResult(success=True)

        conflicts = seat_inventory.lock_conflicts(snapshot.seats, seat_ids)
        if conflicts:
            return None, LockResult(success=False, conflicts=conflicts)

        seats = seat_inventory.lock(snapshot.seats, seat_ids, hold_until)
        return SeatWrite(seats=seats), LockResult(success=True, hold_until=hold_until)

    try:
        result = await SeatStore(db).mutate(event_id, decide)
    except ConcurrencyConflictError:
        record_lock_attempt("error")
        raise

    if not result.success:
        record_lock_attempt("conflict")
        logger.info("seat_lock_conflict", event_id=event_id, conflicts=result.conflicts)
        return result

    record_lock_attempt("locked")
    if result.hold_until is not None:
        await invalidate_seat_map(event_id)
        logger.info(
            "seats_locked",
            event_id=event_id,
            seat_ids=seat_ids,
            hold_until=result.hold_until.isoformat(),
        )
    return result


async def release_seats(db: AsyncSession, event_id: int, seat_ids: list[str]) -> list[str]:
    """
    Return held seats to AVAILABLE. Idempotent: seats that are not in
    BOOKING_IN_PROGRESS (already released, sold, unknown) are ignored and
    nothing is written when nothing changes. Returns the ids actually released.
    """
    seat_ids = seat_inventory.unique_ids(seat_ids)

    def decide(snapshot: EventSnapshot):
        if snapshot.event.is_general_admission or not seat_ids:
            return None, []
        seats, released = seat_inventory.release(snapshot.seats, seat_ids)
        if not released:
            return None, []
        return SeatWrite(seats=seats), released

    released = await SeatStore(db).mutate(event_id, decide)
    if released:
        record_release("explicit", len(released))
        await invalidate_seat_map(event_id)
        logger.info("seats_released", event_id=event_id, seat_ids=released)
    return released


async def set_seat_status(
    db: AsyncSession,
    event_id: int,
    seat_ids: list[str],
    status: SeatStatus,
    now: Optional[datetime] = None,
) -> None:
    """Admin override. Any status may be set; hold_until follows the status."""
    seat_ids = seat_inventory.unique_ids(seat_ids)
    hold_until = hold_deadline(now or utcnow())

    def decide(snapshot: EventSnapshot):
        if snapshot.event.is_general_admission:
            raise BoxOfficeValidationError("General admission events have no seats to update")
        known = seat_inventory.index_seats(snapshot.seats)
        missing = [seat_id for seat_id in seat_ids if seat_id not in known]
        if missing:
            raise BoxOfficeValidationError("Unknown seat ids", details={"seat_ids": missing})
        return SeatWrite(seats=seat_inventory.override(snapshot.seats, seat_ids, status, hold_until)), None

    await SeatStore(db).mutate(event_id, decide)
    await invalidate_seat_map(event_id)
    logger.info("seat_status_overridden", event_id=event_id, seat_ids=seat_ids, status=status.value)


async def release_expired_holds(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Reclaim every hold whose deadline is strictly before `now`.

    Candidate events come from the indexed next_hold_expiry column, so events
    without stale holds are never loaded. Each event is reclaimed with its
    own versioned write; losing the race to a concurrent buyer just means the
    next sweep picks it up again.
    """
    now = now or utcnow()
    result = await db.execute(
        select(Event.id)
        .where(
            Event.deleted.is_(False),
            Event.next_hold_expiry.is_not(None),
            Event.next_hold_expiry < now,
        )
        .order_by(Event.next_hold_expiry)
    )
    event_ids = list(result.scalars().all())

    def decide(snapshot: EventSnapshot):
        seats, reclaimed = seat_inventory.release_expired(snapshot.seats, now)
        if not reclaimed:
            return None, []
        return SeatWrite(seats=seats), reclaimed

    store = SeatStore(db)
    total = 0
    for event_id in event_ids:
        try:
            reclaimed = await store.mutate(event_id, decide)
        except (ConcurrencyConflictError, NotFoundError) as e:
            logger.warning("hold_sweep_event_skipped", event_id=event_id, error=e.message)
            continue

        if reclaimed:
            total += len(reclaimed)
            await invalidate_seat_map(event_id)
            logger.info("expired_holds_released", event_id=event_id, seat_ids=reclaimed)

    record_release("sweep", total)
    return total

"""
Versioned read-modify-write of an event's seat inventory.

CONCURRENCY STRATEGY: Optimistic Locking with Fresh Re-read
===========================================================

Problem:
  Two buyers lock or buy the same seat at the same moment. Both read the seat
  array with the seat AVAILABLE, both write it back as theirs.
  Result: double-sell.

Solution:
  Every write to an event's seats is a compare-and-swap on the `version` column:

  1. Read the event (seats, ticket types, version)
  2. Decide the new seat array from that snapshot (pure functions in seat_inventory)
  3. UPDATE events SET seats = :new, version = version + 1
     WHERE id = :event_id AND version = :read_version
  4. If rows_affected == 0, someone else wrote first -> re-read and decide again

  The decision is always re-evaluated against freshly read state, never
  replayed from the stale snapshot: a seat that was AVAILABLE on the first
  read may be SOLD on the second, and the retry must see that.

  After CAS_MAX_ATTEMPTS lost races we give up with a 409 and let the client
  retry. Under normal contention almost every write succeeds first time.
"""

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.config import get_settings
from boxoffice.core.exceptions import ConcurrencyConflictError, EventNotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import cas_retries
from boxoffice.models.event import Event
from boxoffice.schemas.seat import EventSeat, TicketType
from boxoffice.services import seat_inventory

logger = get_logger(__name__)
settings = get_settings()

T = TypeVar("T")


@dataclass
class EventSnapshot:
    event: Event
    seats: list[EventSeat]
    ticket_types: list[TicketType]
    version: int


@dataclass
class SeatWrite:
    """New inventory to persist. None leaves that column untouched."""

    seats: Optional[list[EventSeat]] = None
    ticket_types: Optional[list[TicketType]] = None


# A decision returns (write or None for "nothing to change", outcome for the caller)
Decision = Callable[[EventSnapshot], tuple[Optional[SeatWrite], T]]


class SeatStore:
    def __init__(self, db: AsyncSession, max_attempts: Optional[int] = None):
        self.db = db
        self.max_attempts = max_attempts or settings.CAS_MAX_ATTEMPTS

    async def load(self, event_id: int) -> EventSnapshot:
        # populate_existing: a raw UPDATE bypasses the identity map, so always overwrite it
        result = await self.db.execute(
            select(Event)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        event = result.scalar_one_or_none()
        if event is None or event.deleted:
            raise EventNotFoundError(event_id)

        return EventSnapshot(
            event=event,
            seats=[EventSeat.model_validate(seat) for seat in event.seats or []],
            ticket_types=[TicketType.model_validate(tt) for tt in event.ticket_types or []],
            version=event.version,
        )

    async def compare_and_swap(self, snapshot: EventSnapshot, write: SeatWrite) -> bool:
        values = {"version": Event.version + 1}
        if write.seats is not None:
            values["seats"] = [seat.model_dump(mode="json") for seat in write.seats]
            values["next_hold_expiry"] = seat_inventory.next_hold_expiry(write.seats)
        if write.ticket_types is not None:
            values["ticket_types"] = [tt.model_dump(mode="json") for tt in write.ticket_types]

        result = await self.db.execute(
            update(Event)
            .where(Event.id == snapshot.event.id, Event.version == snapshot.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def mutate(self, event_id: int, decide: Decision) -> T:
        """
        Run `decide` against fresh state and persist its write with a CAS,
        re-reading and re-deciding on every lost race. Exceptions raised by
        `decide` propagate with nothing written.
        """
        for attempt in range(1, self.max_attempts + 1):
            snapshot = await self.load(event_id)
            write, outcome = decide(snapshot)
            if write is None:
                return outcome

            if await self.compare_and_swap(snapshot, write):
                if attempt > 1:
                    logger.info("seat_write_succeeded_after_retry", event_id=event_id, attempt=attempt)
                return outcome

            cas_retries.inc()
            logger.info(
                "seat_write_retry",
                event_id=event_id,
                attempt=attempt,
                read_version=snapshot.version,
                reason="version_conflict",
            )

        logger.warning("seat_write_gave_up", event_id=event_id, attempts=self.max_attempts)
        raise ConcurrencyConflictError(event_id, self.max_attempts)

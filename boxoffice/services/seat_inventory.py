"""
Seat state machine as pure functions over an event's seat list.

Allowed transitions:
  AVAILABLE           -> BOOKING_IN_PROGRESS   lock()
  BOOKING_IN_PROGRESS -> AVAILABLE             release(), release_expired()
  AVAILABLE | BOOKING_IN_PROGRESS -> SOLD      sell()
  any -> any                                   override() (admin only)
Nothing leaves SOLD except an admin override.

Every function returns a new list and never mutates its input, so callers can
evaluate against a snapshot and commit the result with a compare-and-swap.
hold_until is set if and only if status is BOOKING_IN_PROGRESS.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from boxoffice.core.clock import ensure_aware
from boxoffice.schemas.seat import EventSeat, SeatStatus, TicketType


class ConflictReason(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    SOLD = "SOLD"
    HELD = "HELD"
    UNAVAILABLE = "UNAVAILABLE"


# Deadline recorded for a hold that has none, so the sweep picks it up at once
STALE_HOLD_DEADLINE = datetime.min.replace(tzinfo=timezone.utc)

# Statuses a sale may never overwrite
NOT_SELLABLE = {
    SeatStatus.SOLD: ConflictReason.SOLD,
    SeatStatus.HELD: ConflictReason.HELD,
    SeatStatus.UNAVAILABLE: ConflictReason.UNAVAILABLE,
}


@dataclass(frozen=True)
class SeatConflict:
    seat_id: str
    reason: ConflictReason

    def to_dict(self) -> dict[str, str]:
        return {"seat_id": self.seat_id, "reason": self.reason.value}


def unique_ids(seat_ids: Iterable[str]) -> list[str]:
    """De-duplicate while keeping request order."""
    return list(dict.fromkeys(seat_ids))


def index_seats(seats: list[EventSeat]) -> dict[str, EventSeat]:
    return {seat.id: seat for seat in seats}


def _available(seat: EventSeat) -> EventSeat:
    return seat.model_copy(update={"status": SeatStatus.AVAILABLE, "hold_until": None})


def lock_conflicts(seats: list[EventSeat], seat_ids: list[str]) -> list[str]:
    """Requested ids that are missing or not AVAILABLE."""
    by_id = index_seats(seats)
    return [
        seat_id for seat_id in seat_ids
        if seat_id not in by_id or by_id[seat_id].status != SeatStatus.AVAILABLE
    ]


def lock(seats: list[EventSeat], seat_ids: list[str], hold_until: datetime) -> list[EventSeat]:
    wanted = set(seat_ids)
    return [
        seat.model_copy(update={"status": SeatStatus.BOOKING_IN_PROGRESS, "hold_until": hold_until})
        if seat.id in wanted else seat
        for seat in seats
    ]


def release(seats: list[EventSeat], seat_ids: list[str]) -> tuple[list[EventSeat], list[str]]:
    """Downgrade held seats among seat_ids. Anything not BOOKING_IN_PROGRESS is left as is."""
    wanted = set(seat_ids)
    released: list[str] = []
    updated: list[EventSeat] = []
    for seat in seats:
        if seat.id in wanted and seat.status == SeatStatus.BOOKING_IN_PROGRESS:
            updated.append(_available(seat))
            released.append(seat.id)
        else:
            updated.append(seat)
    return updated, released


def is_expired(seat: EventSeat, now: datetime) -> bool:
    if seat.status != SeatStatus.BOOKING_IN_PROGRESS:
        return False
    # A hold without a deadline can never be released by time; treat it as stale
    if seat.hold_until is None:
        return True
    return ensure_aware(seat.hold_until) < now


def release_expired(seats: list[EventSeat], now: datetime) -> tuple[list[EventSeat], list[str]]:
    reclaimed: list[str] = []
    updated: list[EventSeat] = []
    for seat in seats:
        if is_expired(seat, now):
            updated.append(_available(seat))
            reclaimed.append(seat.id)
        else:
            updated.append(seat)
    return updated, reclaimed


def sale_conflicts(seats: list[EventSeat], seat_ids: list[str]) -> list[SeatConflict]:
    """
    Commit-time check. Holds are not owned, so a seat in BOOKING_IN_PROGRESS is
    claimable whether its hold is still running (the buyer's own lock) or has
    already lapsed.
    """
    by_id = index_seats(seats)
    conflicts = []
    for seat_id in seat_ids:
        seat = by_id.get(seat_id)
        if seat is None:
            conflicts.append(SeatConflict(seat_id, ConflictReason.NOT_FOUND))
        elif seat.status in NOT_SELLABLE:
            conflicts.append(SeatConflict(seat_id, NOT_SELLABLE[seat.status]))
    return conflicts


def sell(seats: list[EventSeat], seat_ids: list[str]) -> list[EventSeat]:
    wanted = set(seat_ids)
    return [
        seat.model_copy(update={"status": SeatStatus.SOLD, "hold_until": None})
        if seat.id in wanted else seat
        for seat in seats
    ]


def override(
    seats: list[EventSeat],
    seat_ids: list[str],
    status: SeatStatus,
    hold_until: datetime,
) -> list[EventSeat]:
    wanted = set(seat_ids)
    stamp = hold_until if status == SeatStatus.BOOKING_IN_PROGRESS else None
    return [
        seat.model_copy(update={"status": status, "hold_until": stamp}) if seat.id in wanted else seat
        for seat in seats
    ]


def next_hold_expiry(seats: list[EventSeat]) -> Optional[datetime]:
    """Earliest deadline the sweep must act on; a hold without one is due immediately."""
    deadlines = [
        ensure_aware(seat.hold_until) if seat.hold_until is not None else STALE_HOLD_DEADLINE
        for seat in seats
        if seat.status == SeatStatus.BOOKING_IN_PROGRESS
    ]
    return min(deadlines) if deadlines else None


def count_by_status(seats: list[EventSeat]) -> Counter:
    return Counter(seat.status for seat in seats)


def sell_general_admission(
    ticket_types: list[TicketType],
    ticket_type_ids: list[str],
) -> tuple[list[TicketType], list[str]]:
    """
    Bump sold counters for GA units. Returns the updated catalog and any
    unknown ticket type ids. No capacity check: GA inventory is not enforced
    pessimistically.
    """
    counts = Counter(ticket_type_ids)
    known = {tt.id for tt in ticket_types}
    missing = [tt_id for tt_id in counts if tt_id not in known]
    updated = [
        tt.model_copy(update={"sold": tt.sold + counts[tt.id]}) if tt.id in counts else tt
        for tt in ticket_types
    ]
    return updated, missing

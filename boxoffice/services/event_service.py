"""
Event service: configuration, reads and the cached seat map.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import BoxOfficeValidationError, EventNotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.models.event import Event, SeatingType
from boxoffice.schemas.event import EventCreate, TemplateSeat
from boxoffice.schemas.seat import EventSeat, SeatMapResponse, SeatStatus, TicketType
from boxoffice.services import seat_inventory
from boxoffice.services.cache_service import get_cached_seat_map, invalidate_seat_map, set_cached_seat_map
from boxoffice.services.seat_store import SeatStore

logger = get_logger(__name__)


def hydrate_seats(
    template: list[TemplateSeat],
    ticket_types: list[TicketType],
    seat_mappings: dict[str, str],
) -> list[EventSeat]:
    """
    Build the event's sellable seat list from a theater layout.
    Mapped seats copy price, tier and color from their ticket type and start
    AVAILABLE; unmapped seats are UNAVAILABLE and free.
    """
    catalog = {tt.id: tt for tt in ticket_types}
    unknown = sorted({tt_id for tt_id in seat_mappings.values() if tt_id not in catalog})
    if unknown:
        raise BoxOfficeValidationError("Seat mappings reference unknown ticket types", details={"ticket_type_ids": unknown})

    seats = []
    for seat in template:
        ticket_type = catalog.get(seat_mappings.get(seat.id, ""))
        base = seat.model_dump()
        if ticket_type is None:
            seats.append(EventSeat(**base, status=SeatStatus.UNAVAILABLE, tier="N/A", price=Decimal("0")))
        else:
            seats.append(
                EventSeat(
                    **base,
                    status=SeatStatus.AVAILABLE,
                    tier=ticket_type.name,
                    price=ticket_type.price,
                    color=ticket_type.color,
                    ticket_type_id=ticket_type.id,
                )
            )
    return seats


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    if event_data.seating_type == SeatingType.GENERAL_ADMISSION:
        seats = []
    else:
        if not event_data.theater_seats:
            raise BoxOfficeValidationError("Reserved seating events need a seat layout")
        ids = [seat.id for seat in event_data.theater_seats]
        if len(set(ids)) != len(ids):
            raise BoxOfficeValidationError("Seat layout contains duplicate seat ids")
        seats = hydrate_seats(event_data.theater_seats, event_data.ticket_types, event_data.seat_mappings)

    event = Event(
        title=event_data.title,
        organizer_id=event_data.organizer_id,
        organizer_email=event_data.organizer_email,
        seating_type=event_data.seating_type,
        status=event_data.status,
        currency=event_data.currency.upper(),
        start_time=event_data.start_time,
        ticket_types=[tt.model_dump(mode="json") for tt in event_data.ticket_types],
        seats=[seat.model_dump(mode="json") for seat in seats],
        next_hold_expiry=None,
        version=1,
    )
    db.add(event)
    await db.flush()

    logger.info(
        "event_created",
        event_id=event.id,
        title=event.title,
        seating_type=event.seating_type,
        seats=len(seats),
    )
    return event


async def get_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(select(Event).where(Event.id == event_id, Event.deleted.is_(False)))
    event = result.scalar_one_or_none()
    if not event:
        raise EventNotFoundError(event_id)
    return event


async def delete_event(db: AsyncSession, event_id: int) -> None:
    event = await get_event(db, event_id)
    event.deleted = True
    await db.flush()
    await invalidate_seat_map(event_id)
    logger.info("event_deleted", event_id=event_id)


async def get_seat_map(db: AsyncSession, event_id: int) -> SeatMapResponse:
    cached = await get_cached_seat_map(event_id)
    if cached:
        return SeatMapResponse(**cached, cached=True)

    snapshot = await SeatStore(db).load(event_id)
    counts = seat_inventory.count_by_status(snapshot.seats)
    response = SeatMapResponse(
        event_id=event_id,
        seating_type=snapshot.event.seating_type,
        seats=snapshot.seats,
        available=counts[SeatStatus.AVAILABLE],
        in_progress=counts[SeatStatus.BOOKING_IN_PROGRESS],
        sold=counts[SeatStatus.SOLD],
    )
    await set_cached_seat_map(event_id, response.model_dump(mode="json", exclude={"cached"}))
    return response

"""
Event endpoints: configuration, seat map, seat locks and admin overrides.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.logging import get_logger
from boxoffice.db.session import get_db
from boxoffice.schemas.event import EventCreate, EventResponse
from boxoffice.schemas.seat import LockSeatsRequest, LockSeatsResponse, SeatMapResponse, SeatStatusUpdate, SuccessResponse
from boxoffice.services.event_service import create_event, delete_event, get_event, get_seat_map
from boxoffice.services.hold_service import lock_seats, release_seats, set_seat_status

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create an event and hydrate its seats from the theater layout."""
    return await create_event(db, event_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await get_event(db, event_id)


@router.delete("/{event_id}", response_model=SuccessResponse)
async def delete_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Soft delete. Seats, orders and tickets are kept."""
    await delete_event(db, event_id)
    return SuccessResponse()


@router.get("/{event_id}/seats", response_model=SeatMapResponse)
async def seat_map_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Seat map with per-status counts.
    Cached in Redis for a few seconds and invalidated on every seat write.
    """
    return await get_seat_map(db, event_id)


@router.post("/{event_id}/lock-seats", response_model=LockSeatsResponse)
async def lock_seats_endpoint(
    event_id: int,
    body: LockSeatsRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Lock seats for checkout, all or nothing.

    Seats already taken come back in `conflicts` with `success: false` and
    nothing is locked; the shopper can deselect just those seats and retry.
    """
    result = await lock_seats(db, event_id, body.seat_ids)
    return LockSeatsResponse(success=result.success, conflicts=result.conflicts, hold_until=result.hold_until)


def _parse_release_body(raw: bytes) -> list[str]:
    """Beacons send text/plain, so the body is parsed by hand."""
    if not raw:
        return []
    try:
        payload = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(payload, dict):
        return []
    seat_ids = payload.get("seat_ids") or payload.get("seatIds") or []
    if not isinstance(seat_ids, list):
        return []
    return [str(seat_id) for seat_id in seat_ids]


@router.post("/{event_id}/release-seats", response_model=SuccessResponse)
async def release_seats_endpoint(
    event_id: int,
    request: Request,
    seat_ids_param: Optional[str] = Query(None, alias="seatIds"),
    db: AsyncSession = Depends(get_db),
):
    """
    Release held seats. Safe to call any number of times, in any order
    relative to a sale or the expiry sweep.

    Accepts a JSON body, a JSON string sent as text/plain (navigator.sendBeacon)
    or a `?seatIds=a,b` query string.
    """
    seat_ids = _parse_release_body(await request.body())
    if not seat_ids and seat_ids_param:
        seat_ids = [seat_id.strip() for seat_id in seat_ids_param.split(",") if seat_id.strip()]

    await release_seats(db, event_id, seat_ids)
    return SuccessResponse()


@router.put("/{event_id}/seats", response_model=SuccessResponse)
async def update_seat_status_endpoint(
    event_id: int,
    body: SeatStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Admin override for blocking and unblocking seats."""
    await set_seat_status(db, event_id, body.seat_ids, body.status)
    return SuccessResponse()

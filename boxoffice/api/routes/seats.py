"""
Single-seat availability probe.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_db
from boxoffice.schemas.seat import HoldResponse, HoldSeatRequest
from boxoffice.services.hold_service import hold_seat

router = APIRouter(prefix="/seats", tags=["Seats"])


@router.post("/hold", response_model=HoldResponse)
async def hold_seat_endpoint(
    body: HoldSeatRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Advisory check used while the shopper clicks around the seat map.
    Reserves nothing; the binding step is /events/{id}/lock-seats.
    """
    return HoldResponse(success=await hold_seat(db, body.event_id, body.seat_id))

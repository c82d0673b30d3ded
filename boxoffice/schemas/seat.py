"""
Pydantic schemas for seats, ticket types and hold requests.

EventSeat and TicketType double as the storage shape of the JSON arrays
embedded in the events table.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SeatStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BOOKING_IN_PROGRESS = "BOOKING_IN_PROGRESS"
    HELD = "HELD"
    SOLD = "SOLD"
    UNAVAILABLE = "UNAVAILABLE"


class EventSeat(BaseModel):
    id: str
    row: Optional[int] = None
    col: Optional[int] = None
    row_label: str = ""
    seat_number: str = ""
    status: SeatStatus = SeatStatus.AVAILABLE
    hold_until: Optional[datetime] = None
    tier: str = "N/A"
    price: Decimal = Decimal("0")
    color: Optional[str] = None
    ticket_type_id: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.row_label}{self.seat_number}"


class TicketType(BaseModel):
    id: str
    name: str
    price: Decimal = Field(..., ge=0)
    color: Optional[str] = None
    description: Optional[str] = None
    total_quantity: int = Field(0, ge=0)
    sold: int = Field(0, ge=0)


class HoldSeatRequest(BaseModel):
    event_id: int
    seat_id: str


class LockSeatsRequest(BaseModel):
    seat_ids: list[str] = Field(default_factory=list)


class SeatStatusUpdate(BaseModel):
    seat_ids: list[str] = Field(..., min_length=1)
    status: SeatStatus


class HoldResponse(BaseModel):
    success: bool


class LockSeatsResponse(BaseModel):
    success: bool
    conflicts: list[str] = Field(default_factory=list)
    hold_until: Optional[datetime] = None


class SuccessResponse(BaseModel):
    success: bool = True


class SeatMapResponse(BaseModel):
    event_id: int
    seating_type: str
    seats: list[EventSeat]
    available: int
    in_progress: int
    sold: int
    cached: bool = False

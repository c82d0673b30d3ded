"""
Pydantic schemas for event configuration and responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from boxoffice.schemas.seat import TicketType


class TemplateSeat(BaseModel):
    """One seat of a theater layout, before ticket types are mapped onto it."""

    id: str
    row: Optional[int] = None
    col: Optional[int] = None
    row_label: str = ""
    seat_number: str = ""


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    organizer_id: str = Field(..., min_length=1, max_length=64)
    organizer_email: Optional[str] = Field(None, max_length=255)
    seating_type: str = Field("RESERVED", pattern=r"^(RESERVED|GENERAL_ADMISSION)$")
    status: str = "PUBLISHED"
    currency: str = Field("USD", min_length=3, max_length=3)
    start_time: Optional[datetime] = None
    ticket_types: list[TicketType] = Field(default_factory=list)
    theater_seats: list[TemplateSeat] = Field(default_factory=list)
    # seat id -> ticket type id; unmapped seats are not sellable
    seat_mappings: dict[str, str] = Field(default_factory=dict)


class EventResponse(BaseModel):
    id: int
    title: str
    organizer_id: str
    seating_type: str
    status: str
    currency: str
    start_time: Optional[datetime]
    ticket_types: list[TicketType]
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}

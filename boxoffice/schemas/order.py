"""
Pydantic schemas for checkout, orders and ticket check-in.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from boxoffice.schemas.cart import CartItem


class CustomerIn(BaseModel):
    id: Optional[str] = Field(None, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)


class OrderCreate(BaseModel):
    customer: CustomerIn
    event_id: int
    seats: list[CartItem] = Field(..., min_length=1)
    service_fee: Decimal = Field(Decimal("0"), ge=0)
    coupon_id: Optional[int] = None
    payment_mode: str = Field("ONLINE", pattern=r"^(ONLINE|OFFLINE|FREE)$")
    transaction_id: Optional[str] = Field(None, max_length=255)


class QuoteRequest(BaseModel):
    event_id: int
    seats: list[CartItem] = Field(..., min_length=1)
    coupon_id: Optional[int] = None


class QuoteResponse(BaseModel):
    subtotal: Decimal
    discount: Decimal
    coupon_id: Optional[int] = None
    coupon_code: Optional[str] = None
    service_fee: Decimal
    total_amount: Decimal


class TicketResponse(BaseModel):
    id: str
    event_id: int
    event_title: str
    seat_id: Optional[str]
    seat_label: Optional[str]
    price: Decimal
    ticket_type: Optional[str]
    color: Optional[str]
    qr_code_data: str
    purchase_date: datetime
    checked_in: bool
    check_in_date: Optional[datetime]

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    user_id: str
    customer_name: str
    customer_email: str
    event_id: int
    subtotal: Decimal
    discount_applied: Decimal
    service_fee: Decimal
    total_amount: Decimal
    coupon_code: Optional[str]
    status: str
    payment_mode: str
    transaction_id: Optional[str]
    created_at: datetime
    tickets: list[TicketResponse]

    model_config = {"from_attributes": True}


class TicketVerifyRequest(BaseModel):
    qr_code: str = Field(..., min_length=1)


class TicketVerifyResponse(BaseModel):
    valid: bool = True
    ticket: TicketResponse
    order: OrderResponse


class CheckInRequest(BaseModel):
    ticket_id: str = Field(..., min_length=1)
    checked_in: bool = True


class CheckInResponse(BaseModel):
    success: bool = True
    ticket: TicketResponse

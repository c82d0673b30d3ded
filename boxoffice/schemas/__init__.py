from boxoffice.schemas.cart import CartItem
from boxoffice.schemas.coupon import CouponCreate, CouponResponse, CouponUpdate
from boxoffice.schemas.event import EventCreate, EventResponse
from boxoffice.schemas.order import OrderCreate, OrderResponse, QuoteRequest, QuoteResponse
from boxoffice.schemas.seat import EventSeat, SeatStatus, TicketType
from boxoffice.schemas.service_charge import ServiceChargeCreate, ServiceChargeResponse, ServiceChargeUpdate

__all__ = [
    "CartItem",
    "CouponCreate", "CouponResponse", "CouponUpdate",
    "EventCreate", "EventResponse",
    "OrderCreate", "OrderResponse", "QuoteRequest", "QuoteResponse",
    "EventSeat", "SeatStatus", "TicketType",
    "ServiceChargeCreate", "ServiceChargeResponse", "ServiceChargeUpdate",
]

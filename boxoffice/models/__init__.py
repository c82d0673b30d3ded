from boxoffice.models.coupon import Coupon, DiscountType, RuleType
from boxoffice.models.event import Event, SeatingType
from boxoffice.models.order import Order, PaymentMode, Ticket
from boxoffice.models.service_charge import ServiceCharge

__all__ = [
    "Coupon", "DiscountType", "RuleType",
    "Event", "SeatingType",
    "Order", "PaymentMode", "Ticket",
    "ServiceCharge",
]

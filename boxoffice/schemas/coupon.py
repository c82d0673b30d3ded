"""
Pydantic schemas for coupon management and validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from boxoffice.schemas.cart import CartItem

RULE_TYPE_PATTERN = r"^(CODE|THRESHOLD|SEAT_COUNT|EARLY_BIRD)$"
DISCOUNT_TYPE_PATTERN = r"^(FIXED|PERCENTAGE)$"


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    discount_type: str = Field("FIXED", pattern=DISCOUNT_TYPE_PATTERN)
    value: Decimal = Field(..., ge=0)
    rule_type: str = Field("CODE", pattern=RULE_TYPE_PATTERN)
    min_amount: Optional[Decimal] = Field(None, ge=0)
    min_seats: Optional[int] = Field(None, ge=0)
    max_quantity_eligible: Optional[int] = Field(None, ge=0)
    value_per_ticket: bool = False
    event_id: Optional[int] = None
    organizer_id: str = Field(..., min_length=1, max_length=64)
    max_uses: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[datetime] = None
    active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=64)
    discount_type: Optional[str] = Field(None, pattern=DISCOUNT_TYPE_PATTERN)
    value: Optional[Decimal] = Field(None, ge=0)
    rule_type: Optional[str] = Field(None, pattern=RULE_TYPE_PATTERN)
    min_amount: Optional[Decimal] = Field(None, ge=0)
    min_seats: Optional[int] = Field(None, ge=0)
    max_quantity_eligible: Optional[int] = Field(None, ge=0)
    value_per_ticket: Optional[bool] = None
    event_id: Optional[int] = None
    max_uses: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[datetime] = None
    active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class CouponResponse(BaseModel):
    id: int
    code: str
    discount_type: str
    value: Decimal
    rule_type: str
    min_amount: Optional[Decimal]
    min_seats: Optional[int]
    max_quantity_eligible: Optional[int]
    value_per_ticket: bool
    event_id: Optional[int]
    organizer_id: str
    max_uses: Optional[int]
    used_count: int
    expiry_date: Optional[datetime]
    active: bool

    model_config = {"from_attributes": True}


class AppliedCouponResponse(CouponResponse):
    discount: Decimal


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1)
    event_id: int
    seats: list[CartItem] = Field(default_factory=list)


class BestCouponRequest(BaseModel):
    event_id: int
    seats: list[CartItem] = Field(default_factory=list)


class BestCouponResponse(BaseModel):
    coupon: Optional[AppliedCouponResponse] = None

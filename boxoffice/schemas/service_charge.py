"""
Pydantic schemas for platform service charges.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

CHARGE_TYPE_PATTERN = r"^(FIXED|PERCENTAGE)$"


class ServiceChargeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    charge_type: str = Field("FIXED", pattern=CHARGE_TYPE_PATTERN)
    value: Decimal = Field(..., ge=0)
    active: bool = True


class ServiceChargeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    charge_type: Optional[str] = Field(None, pattern=CHARGE_TYPE_PATTERN)
    value: Optional[Decimal] = Field(None, ge=0)
    active: Optional[bool] = None


class ServiceChargeResponse(BaseModel):
    id: int
    name: str
    charge_type: str
    value: Decimal
    active: bool

    model_config = {"from_attributes": True}

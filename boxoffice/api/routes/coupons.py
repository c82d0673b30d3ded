"""
Coupon management and validation endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_db
from boxoffice.schemas.coupon import (
    AppliedCouponResponse,
    BestCouponRequest,
    BestCouponResponse,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
    CouponValidateRequest,
)
from boxoffice.schemas.seat import SuccessResponse
from boxoffice.services import coupon_service

router = APIRouter(prefix="/coupons", tags=["Coupons"])


def _applied(coupon, discount) -> AppliedCouponResponse:
    return AppliedCouponResponse(
        **CouponResponse.model_validate(coupon).model_dump(),
        discount=discount.discount,
    )


@router.post("/", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon_endpoint(
    body: CouponCreate,
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.create_coupon(db, body)


@router.get("/", response_model=list[CouponResponse])
async def list_coupons_endpoint(
    organizer_id: Optional[str] = Query(None),
    event_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.list_coupons(db, organizer_id=organizer_id, event_id=event_id)


@router.post("/validate", response_model=AppliedCouponResponse)
async def validate_coupon_endpoint(
    body: CouponValidateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Check a typed code against the current cart.
    Returns the coupon with the discount it would give, or 400 with the reason.
    Does not consume a use.
    """
    coupon, discount = await coupon_service.validate_coupon(db, body.code, body.event_id, body.seats)
    return _applied(coupon, discount)


@router.post("/best", response_model=BestCouponResponse)
async def best_coupon_endpoint(
    body: BestCouponRequest,
    db: AsyncSession = Depends(get_db),
):
    """Best automatic coupon for the cart, if any applies."""
    best = await coupon_service.find_best_coupon(db, body.event_id, body.seats)
    if best is None:
        return BestCouponResponse()
    return BestCouponResponse(coupon=_applied(*best))


@router.get("/{coupon_id}", response_model=CouponResponse)
async def get_coupon_endpoint(
    coupon_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.get_coupon(db, coupon_id)


@router.patch("/{coupon_id}", response_model=CouponResponse)
async def update_coupon_endpoint(
    coupon_id: int,
    body: CouponUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await coupon_service.update_coupon(db, coupon_id, body)


@router.delete("/{coupon_id}", response_model=SuccessResponse)
async def delete_coupon_endpoint(
    coupon_id: int,
    db: AsyncSession = Depends(get_db),
):
    await coupon_service.delete_coupon(db, coupon_id)
    return SuccessResponse()

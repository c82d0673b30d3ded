"""
Service charge management endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_db
from boxoffice.schemas.seat import SuccessResponse
from boxoffice.schemas.service_charge import ServiceChargeCreate, ServiceChargeResponse, ServiceChargeUpdate
from boxoffice.services import service_charge_service

router = APIRouter(prefix="/service-charges", tags=["Service Charges"])


@router.post("/", response_model=ServiceChargeResponse, status_code=status.HTTP_201_CREATED)
async def create_charge_endpoint(
    body: ServiceChargeCreate,
    db: AsyncSession = Depends(get_db),
):
    return await service_charge_service.create_charge(db, body)


@router.get("/", response_model=list[ServiceChargeResponse])
async def list_charges_endpoint(
    active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await service_charge_service.list_charges(db, active=active)


@router.get("/{charge_id}", response_model=ServiceChargeResponse)
async def get_charge_endpoint(
    charge_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await service_charge_service.get_charge(db, charge_id)


@router.patch("/{charge_id}", response_model=ServiceChargeResponse)
async def update_charge_endpoint(
    charge_id: int,
    body: ServiceChargeUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change a charge; set `active` to false to stop adding it to quotes."""
    return await service_charge_service.update_charge(db, charge_id, body)


@router.delete("/{charge_id}", response_model=SuccessResponse)
async def delete_charge_endpoint(
    charge_id: int,
    db: AsyncSession = Depends(get_db),
):
    await service_charge_service.delete_charge(db, charge_id)
    return SuccessResponse()

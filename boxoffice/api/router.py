"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from boxoffice.api.routes import coupons, events, orders, seats, service_charges

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events.router)
api_router.include_router(seats.router)
api_router.include_router(orders.router)
api_router.include_router(coupons.router)
api_router.include_router(service_charges.router)

"""
API v1 router aggregation.
"""
from fastapi import APIRouter

from app.api.v1.endpoints import shipments, exceptions, trips, alerts, tracking

api_router = APIRouter()

api_router.include_router(
    shipments.router,
    prefix="/shipments",
    tags=["Shipments"],
)

api_router.include_router(
    exceptions.router,
    prefix="/exceptions",
    tags=["Exceptions"],
)

api_router.include_router(
    trips.router,
    prefix="/trips",
    tags=["Trips"],
)

api_router.include_router(
    tracking.router,
    prefix="/trips",
    tags=["Tracking"],
)

api_router.include_router(
    alerts.router,
    prefix="/alerts",
    tags=["Alerts"],
)

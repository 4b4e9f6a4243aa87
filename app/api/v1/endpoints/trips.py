"""
Trip API endpoints: alerts, consent and capacity.
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_async_session
from app.models.enums import AlertStatus
from app.schemas.alert import (
    AlertResponse,
    ConsentRevokedRequest,
    ConsentRevokedResponse,
    SweepResponse,
)
from app.schemas.base import ListResponse
from app.schemas.capacity import CapacityCheckRequest, CapacityCheckResponse
from app.services.alerts.engine import (
    handle_consent_revoked,
    list_trip_alerts,
    reconcile_duplicate_alerts,
    run_alert_sweep,
)
from app.services.capacity import validate_capacity

router = APIRouter()


@router.post("/alerts/sweep", response_model=SweepResponse)
async def sweep_alerts(
    reconcile: bool = Query(False, description="Also dismiss duplicate active alerts"),
    session: AsyncSession = Depends(get_async_session),
):
    """
    Run the periodic alert checks now.

    Normally scheduled through Celery beat; exposed for operators.
    """
    report = await run_alert_sweep(session)
    dismissed = await reconcile_duplicate_alerts(session) if reconcile else 0
    return SweepResponse(
        trips_checked=report.trips_checked,
        alerts_created=report.changes.created,
        alerts_resolved=report.changes.resolved,
        duplicates_dismissed=dismissed,
    )


@router.get("/{trip_id}/alerts", response_model=ListResponse[AlertResponse])
async def get_trip_alerts(
    trip_id: UUID,
    status: Optional[AlertStatus] = None,
    session: AsyncSession = Depends(get_async_session),
):
    """
    List alerts for a trip, newest first.

    - **status**: Filter by alert status (active, acknowledged, resolved, dismissed)
    """
    alerts = await list_trip_alerts(session, trip_id, status)
    return ListResponse[AlertResponse](
        items=[AlertResponse.model_validate(a) for a in alerts],
        total=len(alerts),
    )


@router.post("/{trip_id}/consent-revoked", response_model=ConsentRevokedResponse)
async def consent_revoked(
    trip_id: UUID,
    data: ConsentRevokedRequest,
    session: AsyncSession = Depends(get_async_session),
):
    """Driver revoked SIM tracking consent: raise a critical alert."""
    alert = await handle_consent_revoked(
        session,
        trip_id,
        driver_name=data.driver_name,
        driver_mobile=data.driver_mobile,
    )
    if alert is not None:
        await session.refresh(alert)
    return ConsentRevokedResponse(
        trip_id=trip_id,
        alert_created=alert is not None,
        alert=AlertResponse.model_validate(alert) if alert else None,
    )


@router.post("/{trip_id}/capacity-check", response_model=CapacityCheckResponse)
async def capacity_check(
    trip_id: UUID,
    data: CapacityCheckRequest,
    session: AsyncSession = Depends(get_async_session),
):
    """Check whether a candidate load still fits on the trip's vehicle."""
    verdict = await validate_capacity(
        session,
        trip_id,
        candidate_weight_kg=data.candidate_weight_kg,
        candidate_volume_cbm=data.candidate_volume_cbm,
    )
    return CapacityCheckResponse.model_validate(verdict)

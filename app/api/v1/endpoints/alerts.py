"""
Trip alert API endpoints.
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_async_session
from app.schemas.alert import AlertResponse, AlertStatusUpdate
from app.services.alerts.engine import update_alert_status

router = APIRouter()


@router.patch("/{alert_id}", response_model=AlertResponse)
async def update_alert(
    alert_id: UUID,
    data: AlertStatusUpdate,
    session: AsyncSession = Depends(get_async_session),
):
    """Acknowledge, resolve or dismiss an alert."""
    alert = await update_alert_status(
        session,
        alert_id,
        data.status,
        actor=data.actor,
        notes=data.notes,
    )
    return AlertResponse.model_validate(alert)

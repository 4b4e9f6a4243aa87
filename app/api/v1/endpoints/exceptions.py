"""
Shipment exception API endpoints.
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_async_session
from app.schemas.exception import ExceptionResponse, ExceptionStatusUpdate
from app.services.lifecycle.exception_manager import update_exception_status

router = APIRouter()


@router.patch("/{exception_id}", response_model=ExceptionResponse)
async def update_exception(
    exception_id: UUID,
    data: ExceptionStatusUpdate,
    session: AsyncSession = Depends(get_async_session),
):
    """
    Move an exception through its lifecycle.

    - **acknowledged**: notes are kept in metadata
    - **escalated**: requires `escalate_to`
    - **resolved**: notes become the resolution notes
    """
    exception = await update_exception_status(
        session,
        exception_id,
        data.status,
        notes=data.notes,
        escalate_to=data.escalate_to,
    )
    return ExceptionResponse.model_validate(exception)

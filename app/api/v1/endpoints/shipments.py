"""
Shipment lifecycle API endpoints.
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_async_session
from app.schemas.base import ListResponse
from app.schemas.capacity import CapacityCheckResponse
from app.schemas.exception import ExceptionCreate, ExceptionResponse
from app.schemas.shipment import (
    DelayCheckRequest,
    DelayCheckResponse,
    MandatoryFieldsResponse,
    MappingCheckRequest,
    MappingCheckResponse,
    ShipmentResponse,
    StatusHistoryResponse,
    TransitionRequest,
    TransitionResponse,
)
from app.services.lifecycle.exception_manager import (
    check_capacity_exceeded,
    check_delay_exceeded,
    check_duplicate_mapping,
    check_vehicle_not_arrived,
    list_exceptions,
    log_exception,
)
from app.services.lifecycle.status_machine import (
    get_shipment,
    get_status_history,
    transition,
    validate_mandatory_fields,
)

router = APIRouter()


@router.post("/{shipment_id}/transition", response_model=TransitionResponse)
async def transition_shipment(
    shipment_id: UUID,
    data: TransitionRequest,
    session: AsyncSession = Depends(get_async_session),
):
    """
    Move a shipment to a new status and/or sub-status.

    - Main status changes must follow the allowed-transition graph
    - Sub-statuses advance forward only within their main status
    - Confirming a shipment requires every mandatory field
    """
    result = await transition(
        session,
        shipment_id,
        data.new_status,
        data.new_sub_status,
        source=data.source,
        notes=data.notes,
        metadata=data.metadata,
        changed_by=data.changed_by,
    )
    await session.refresh(result.shipment)
    await session.refresh(result.history)
    return TransitionResponse(
        shipment=ShipmentResponse.model_validate(result.shipment),
        history=StatusHistoryResponse.model_validate(result.history),
    )


@router.get("/{shipment_id}/history", response_model=ListResponse[StatusHistoryResponse])
async def get_shipment_history(
    shipment_id: UUID,
    session: AsyncSession = Depends(get_async_session),
):
    """Status history for a shipment, newest first."""
    entries = await get_status_history(session, shipment_id)
    return ListResponse[StatusHistoryResponse](
        items=[StatusHistoryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )


@router.get("/{shipment_id}/mandatory-fields", response_model=MandatoryFieldsResponse)
async def get_mandatory_fields(
    shipment_id: UUID,
    session: AsyncSession = Depends(get_async_session),
):
    """Report which fields still block confirmation."""
    shipment = await get_shipment(session, shipment_id)
    missing = validate_mandatory_fields(shipment)
    return MandatoryFieldsResponse(
        shipment_id=shipment_id,
        valid=not missing,
        missing_fields=missing,
    )


@router.post("/{shipment_id}/mapping-check", response_model=MappingCheckResponse)
async def check_mapping(
    shipment_id: UUID,
    data: MappingCheckRequest,
    session: AsyncSession = Depends(get_async_session),
):
    """
    Check whether a shipment can be mapped to a trip.

    Logs a duplicate-mapping exception when another active trip holds the
    shipment, and a capacity exception when the load would overflow a PTL
    vehicle.
    """
    mapping = await check_duplicate_mapping(session, shipment_id, data.trip_id)
    response = MappingCheckResponse(
        valid=mapping.valid,
        existing_trip_id=mapping.existing_trip_id,
        existing_trip_code=mapping.existing_trip_code,
    )
    if not mapping.valid:
        return response

    shipment = await get_shipment(session, shipment_id)
    verdict = await check_capacity_exceeded(
        session,
        shipment_id,
        data.trip_id,
        float(shipment.weight_kg or 0),
        float(shipment.volume_cbm or 0),
    )
    response.valid = verdict.valid
    response.capacity = CapacityCheckResponse.model_validate(verdict)
    return response


@router.post("/{shipment_id}/vehicle-arrival-check", response_model=list[ExceptionResponse])
async def check_vehicle_arrival(
    shipment_id: UUID,
    session: AsyncSession = Depends(get_async_session),
):
    """Log a vehicle-not-arrived exception if pickup is overdue."""
    exception = await check_vehicle_not_arrived(session, shipment_id)
    if exception is None:
        return []
    await session.refresh(exception)
    return [ExceptionResponse.model_validate(exception)]


@router.post("/{shipment_id}/delay-check", response_model=DelayCheckResponse)
async def check_delay(
    shipment_id: UUID,
    data: DelayCheckRequest,
    session: AsyncSession = Depends(get_async_session),
):
    """Recompute delay tracking and log a delay exception when over threshold."""
    exception = await check_delay_exceeded(
        session,
        shipment_id,
        data.actual_time,
        standard_tat_hours=data.standard_tat_hours,
    )
    if exception is not None:
        await session.refresh(exception)
    shipment = await get_shipment(session, shipment_id)
    return DelayCheckResponse(
        delay_percentage=float(shipment.delay_percentage or 0),
        is_delayed=bool(shipment.is_delayed),
        exception=ExceptionResponse.model_validate(exception) if exception else None,
    )


@router.post("/{shipment_id}/exceptions", response_model=ExceptionResponse, status_code=201)
async def create_exception(
    shipment_id: UUID,
    data: ExceptionCreate,
    session: AsyncSession = Depends(get_async_session),
):
    """Log an exception against a shipment."""
    exception = await log_exception(
        session,
        shipment_id,
        data.exception_type,
        data.description,
        severity=data.severity,
        metadata=data.metadata,
        trip_id=data.trip_id,
    )
    await session.refresh(exception)
    return ExceptionResponse.model_validate(exception)


@router.get("/{shipment_id}/exceptions", response_model=ListResponse[ExceptionResponse])
async def get_shipment_exceptions(
    shipment_id: UUID,
    session: AsyncSession = Depends(get_async_session),
):
    """Exceptions for a shipment, most recently detected first."""
    exceptions = await list_exceptions(session, shipment_id)
    return ListResponse[ExceptionResponse](
        items=[ExceptionResponse.model_validate(e) for e in exceptions],
        total=len(exceptions),
    )

"""
Vehicle API Endpoints.
"""

import httpx
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_admin.app.core.config import settings
from rental_admin.app.core.dependencies import require_admin
from rental_admin.app.core.exceptions import CalendarUnavailableError, ResourceNotFoundError
from rental_admin.app.core.reliability import CircuitOpenError, calendar_circuit_breaker
from rental_admin.app.db.session import get_db
from rental_admin.app.models.vehicle import Vehicle
from rental_admin.app.schemas.vehicle import (
    VehicleCreate,
    VehicleListResponse,
    VehicleResponse,
    VehicleUnavailabilityCreate,
    VehicleUnavailabilityResponse,
    VehicleUpdate,
)
from rental_admin.app.services.audit import AuditAction, AuditEntity, record_audit
from rental_admin.app.services.calendar_service import CalendarError, CalendarService

router = APIRouter(tags=["Vehicles"])


@router.get("/vehicles", response_model=VehicleListResponse)
async def list_vehicles(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List the fleet, newest first."""
    result = await db.execute(select(Vehicle).order_by(Vehicle.created_at.desc(), Vehicle.id.desc()))
    vehicles = result.scalars().all()

    return VehicleListResponse(
        vehicles=[VehicleResponse.model_validate(v) for v in vehicles],
        total=len(vehicles)
    )


@router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a vehicle.

    `display_name` must match the name the storefront uses in its bookings,
    otherwise storefront conflicts for this vehicle go undetected.
    """
    new_vehicle = Vehicle(
        display_name=vehicle_data.display_name,
        plate=vehicle_data.plate or None,
        status=vehicle_data.status,
        daily_rate=vehicle_data.daily_rate
    )

    db.add(new_vehicle)
    await db.commit()
    await db.refresh(new_vehicle)

    await record_audit(
        db=db,
        action=AuditAction.CREATE,
        entity_type=AuditEntity.VEHICLE,
        entity_id=new_vehicle.id,
        diff=vehicle_data.model_dump(mode="json"),
        actor_id=admin["actor_id"]
    )

    return VehicleResponse.model_validate(new_vehicle)


@router.patch("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_data: VehicleUpdate,
    vehicle_id: int = Path(..., description="Vehicle ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise ResourceNotFoundError("Vehicle", vehicle_id)

    old_data = VehicleResponse.model_validate(vehicle).model_dump(mode="json")

    for field, value in vehicle_data.model_dump(exclude_unset=True).items():
        if value is None and field != "plate":
            continue
        setattr(vehicle, field, value)

    await db.commit()
    await db.refresh(vehicle)

    response = VehicleResponse.model_validate(vehicle)
    await record_audit(
        db=db,
        action=AuditAction.UPDATE,
        entity_type=AuditEntity.VEHICLE,
        entity_id=vehicle.id,
        diff={"old": old_data, "new": response.model_dump(mode="json")},
        actor_id=admin["actor_id"]
    )

    return response


@router.post(
    "/vehicles/{vehicle_id}/unavailability",
    response_model=VehicleUnavailabilityResponse,
    status_code=status.HTTP_201_CREATED
)
async def block_vehicle_in_calendar(
    block: VehicleUnavailabilityCreate,
    vehicle_id: int = Path(..., description="Vehicle ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Put a red "NON DISPONIBILE" all-day block on the shared calendar.

    Only the calendar is written; availability checks are unaffected.
    """
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise ResourceNotFoundError("Vehicle", vehicle_id)

    if not CalendarService.is_configured():
        raise CalendarUnavailableError("Google credentials not configured")

    try:
        async with httpx.AsyncClient(timeout=settings.external_timeout_seconds) as client:
            event = await calendar_circuit_breaker.call(
                CalendarService.create_unavailability_event,
                vehicle,
                block.unavailable_from,
                block.unavailable_until,
                client,
                block.reason,
            )
    except (CalendarError, CircuitOpenError, httpx.HTTPError) as exc:
        raise CalendarUnavailableError(str(exc)) from exc

    return VehicleUnavailabilityResponse(
        vehicle_id=vehicle.id,
        event_id=event.get("id"),
        event_link=event.get("htmlLink")
    )

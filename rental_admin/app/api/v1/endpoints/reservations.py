"""
Reservation API Endpoints.

Create, list, update and export admin reservations. Creates and moves are
checked for availability while holding the vehicle's reservation lock.
"""

from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rental_admin.app.core.config import settings
from rental_admin.app.core.dependencies import require_admin
from rental_admin.app.core.exceptions import ResourceNotFoundError
from rental_admin.app.core.redis_client import get_redis
from rental_admin.app.db.session import get_db
from rental_admin.app.domain.availability.availability_service import AvailabilityService
from rental_admin.app.domain.availability.validator import (
    RESERVATION_BLOCKING_STATUSES,
    ReservationProposal,
    get_business_timezone,
    to_business_time,
)
from rental_admin.app.models.customer import Customer
from rental_admin.app.models.enums import ReservationStatus
from rental_admin.app.models.reservation import Reservation
from rental_admin.app.models.vehicle import Vehicle
from rental_admin.app.schemas.reservation import (
    ReservationCreate,
    ReservationListResponse,
    ReservationResponse,
    ReservationUpdate,
)
from rental_admin.app.services.audit import AuditAction, AuditEntity, record_audit
from rental_admin.app.services.calendar_service import CalendarService
from rental_admin.app.services.export import export_reservations_csv
from rental_admin.app.services.notification_service import NotificationService
from rental_admin.app.services.reservation_lock import vehicle_reservation_lock

router = APIRouter(tags=["Reservations"])


async def get_reservation_or_404(db: AsyncSession, reservation_id: int) -> Reservation:
    """Load a reservation with customer and vehicle, bypassing stale identity-map state."""
    result = await db.execute(
        select(Reservation)
        .options(selectinload(Reservation.customer), selectinload(Reservation.vehicle))
        .where(Reservation.id == reservation_id)
        .execution_options(populate_existing=True)
    )
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise ResourceNotFoundError("Reservation", reservation_id)
    return reservation


async def get_vehicle_or_404(db: AsyncSession, vehicle_id: int) -> Vehicle:
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise ResourceNotFoundError("Vehicle", vehicle_id)
    return vehicle


async def ensure_customer_exists(db: AsyncSession, customer_id: int) -> None:
    if not await db.get(Customer, customer_id):
        raise ResourceNotFoundError("Customer", customer_id)


def snapshot(reservation: Reservation) -> Dict[str, Any]:
    return ReservationResponse.model_validate(reservation).model_dump(
        mode="json", exclude={"customer", "vehicle"}
    )


def is_blocking(reservation_status: ReservationStatus) -> bool:
    return reservation_status.value in RESERVATION_BLOCKING_STATUSES


@router.get("/reservations", response_model=ReservationListResponse)
async def list_reservations(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Items per page"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List reservations with customer and vehicle, latest start first."""
    total_result = await db.execute(select(func.count(Reservation.id)))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Reservation)
        .options(selectinload(Reservation.customer), selectinload(Reservation.vehicle))
        .order_by(Reservation.start_at.desc())
        .offset(offset)
        .limit(page_size)
    )
    reservations = result.scalars().all()

    return ReservationListResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: int = Path(..., description="Reservation ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    reservation = await get_reservation_or_404(db, reservation_id)
    return ReservationResponse.model_validate(reservation)


@router.post("/reservations", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    data: ReservationCreate,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Create a reservation.

    Validates:
    - Customer and vehicle exist
    - Neither date falls on a Sunday
    - A Saturday return is at or before 12:00
    - No pending/confirmed/active booking for the vehicle overlaps
      (storefront bookings and admin reservations)

    After the insert: audit entry, calendar event and WhatsApp notification.
    None of these can undo the reservation.
    """
    await ensure_customer_exists(db, data.customer_id)
    vehicle = await get_vehicle_or_404(db, data.vehicle_id)
    tz = get_business_timezone(settings.business_timezone)

    proposal = ReservationProposal(
        vehicle_id=vehicle.id,
        vehicle_display_name=vehicle.display_name,
        start_at=data.start_at,
        end_at=data.end_at,
    )

    async with vehicle_reservation_lock(redis, vehicle.id):
        await AvailabilityService.check_availability(db, proposal, tz)

        new_reservation = Reservation(
            customer_id=data.customer_id,
            vehicle_id=vehicle.id,
            start_at=data.start_at,
            end_at=data.end_at,
            status=data.status,
            source=data.source or "admin",
            total_amount=data.total_amount,
            currency=(data.currency or settings.default_currency).upper(),
        )
        db.add(new_reservation)
        await db.commit()

    reservation = await get_reservation_or_404(db, new_reservation.id)

    await record_audit(
        db=db,
        action=AuditAction.CREATE,
        entity_type=AuditEntity.RESERVATION,
        entity_id=reservation.id,
        diff=jsonable_encoder(data),
        actor_id=admin["actor_id"]
    )

    background_tasks.add_task(CalendarService.sync_reservation_created, reservation, tz)
    background_tasks.add_task(NotificationService.notify_reservation_created, reservation, tz)

    return ReservationResponse.model_validate(reservation)


@router.patch("/reservations/{reservation_id}", response_model=ReservationResponse)
async def update_reservation(
    data: ReservationUpdate,
    background_tasks: BackgroundTasks,
    reservation_id: int = Path(..., description="Reservation ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis)
):
    """
    Update a reservation.

    Moving it (vehicle or dates) or bringing it back to a blocking status
    re-runs the availability check, ignoring the reservation itself.
    Cancelling removes its calendar event.
    """
    reservation = await get_reservation_or_404(db, reservation_id)
    old_data = snapshot(reservation)
    tz = get_business_timezone(settings.business_timezone)
    updates = data.model_dump(exclude_unset=True)

    for field, value in updates.items():
        if value is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be null")

    start_at = to_business_time(updates.get("start_at", reservation.start_at), tz)
    end_at = to_business_time(updates.get("end_at", reservation.end_at), tz)
    if end_at <= start_at:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end_at must be after start_at")

    if "customer_id" in updates:
        await ensure_customer_exists(db, updates["customer_id"])
    vehicle = await get_vehicle_or_404(db, updates.get("vehicle_id", reservation.vehicle_id))

    new_status = updates.get("status", reservation.status)
    moved = (
        vehicle.id != reservation.vehicle_id
        or start_at != to_business_time(reservation.start_at, tz)
        or end_at != to_business_time(reservation.end_at, tz)
    )
    reactivated = is_blocking(new_status) and not is_blocking(reservation.status)
    needs_check = is_blocking(new_status) and (moved or reactivated)

    def apply_updates():
        for field, value in updates.items():
            if field == "currency" and value:
                value = value.upper()
            setattr(reservation, field, value)

    if needs_check:
        proposal = ReservationProposal(
            vehicle_id=vehicle.id,
            vehicle_display_name=vehicle.display_name,
            start_at=start_at,
            end_at=end_at,
        )
        async with vehicle_reservation_lock(redis, vehicle.id):
            await AvailabilityService.check_availability(
                db, proposal, tz, exclude_reservation_id=reservation.id
            )
            apply_updates()
            await db.commit()
    else:
        apply_updates()
        await db.commit()

    reservation = await get_reservation_or_404(db, reservation_id)

    await record_audit(
        db=db,
        action=AuditAction.UPDATE,
        entity_type=AuditEntity.RESERVATION,
        entity_id=reservation.id,
        diff={"old": old_data, "new": snapshot(reservation)},
        actor_id=admin["actor_id"]
    )

    if new_status == ReservationStatus.CANCELLED and old_data["status"] != ReservationStatus.CANCELLED.value:
        background_tasks.add_task(CalendarService.sync_reservation_cancelled, reservation.id)

    return ReservationResponse.model_validate(reservation)


@router.get("/export/reservations.csv")
async def export_reservations(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Download every reservation as CSV."""
    csv_body = await export_reservations_csv(db)
    return Response(
        content=csv_body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="reservations.csv"'}
    )

"""
Availability Service (Domain Logic).

Loads blocking bookings from both booking tables and runs the validator.
Fails closed: if either table cannot be read, nothing is admitted.
"""

import logging
from datetime import tzinfo
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rental_admin.app.core.exceptions import ReservationRejectedError, StoreReadError
from rental_admin.app.domain.availability.validator import (
    ExistingBooking,
    LEGACY_BLOCKING_STATUSES,
    RESERVATION_BLOCKING_STATUSES,
    ReservationProposal,
    check_business_calendar,
    legacy_to_existing,
    reservation_to_existing,
    validate,
)
from rental_admin.app.models.legacy_booking import LegacyBooking
from rental_admin.app.models.reservation import Reservation

logger = logging.getLogger("rental_admin.availability")


class AvailabilityService:

    @staticmethod
    async def load_legacy_bookings(
        db: AsyncSession,
        vehicle_display_name: str
    ) -> List[ExistingBooking]:
        """Blocking storefront bookings for a vehicle, matched by name."""
        try:
            result = await db.execute(
                select(LegacyBooking).where(
                    LegacyBooking.vehicle_name == vehicle_display_name,
                    LegacyBooking.status.in_(LEGACY_BLOCKING_STATUSES)
                ).order_by(LegacyBooking.pickup_date)
            )
            rows = result.scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Failed to read bookings for vehicle %r: %s", vehicle_display_name, exc)
            raise StoreReadError("bookings") from exc

        return [legacy_to_existing(row) for row in rows]

    @staticmethod
    async def load_reservations(
        db: AsyncSession,
        vehicle_id: int,
        exclude_reservation_id: Optional[int] = None
    ) -> List[ExistingBooking]:
        """Blocking admin reservations for a vehicle, optionally skipping one being edited."""
        query = select(Reservation).where(
            Reservation.vehicle_id == vehicle_id,
            Reservation.status.in_(RESERVATION_BLOCKING_STATUSES)
        )
        if exclude_reservation_id is not None:
            query = query.where(Reservation.id != exclude_reservation_id)

        try:
            result = await db.execute(query.order_by(Reservation.start_at))
            rows = result.scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Failed to read reservations for vehicle %s: %s", vehicle_id, exc)
            raise StoreReadError("reservations") from exc

        return [reservation_to_existing(row) for row in rows]

    @staticmethod
    async def load_existing_bookings(
        db: AsyncSession,
        proposal: ReservationProposal,
        exclude_reservation_id: Optional[int] = None
    ) -> List[ExistingBooking]:
        """
        Unified interval list: storefront bookings first, then reservations.

        Both reads share the request session, so they run one after the other.

        Raises:
            StoreReadError: If either table cannot be read
        """
        legacy = await AvailabilityService.load_legacy_bookings(db, proposal.vehicle_display_name)
        native = await AvailabilityService.load_reservations(
            db, proposal.vehicle_id, exclude_reservation_id
        )
        return legacy + native

    @staticmethod
    async def check_availability(
        db: AsyncSession,
        proposal: ReservationProposal,
        tz: tzinfo,
        exclude_reservation_id: Optional[int] = None
    ) -> None:
        """
        Validate a proposal against the calendar rules and existing bookings.

        Flow:
        1. Calendar rules (no reads needed)
        2. Load blocking bookings from both tables
        3. Overlap check

        Raises:
            ReservationRejectedError: CLOSED_DAY, SATURDAY_CUTOFF or VEHICLE_UNAVAILABLE
            StoreReadError: Conflict data could not be loaded
        """
        rejection = check_business_calendar(proposal, tz)
        if rejection:
            raise ReservationRejectedError(rejection)

        existing = await AvailabilityService.load_existing_bookings(
            db, proposal, exclude_reservation_id
        )

        rejection = validate(proposal, existing, tz)
        if rejection:
            logger.info(
                "Reservation for vehicle %s rejected: %s",
                proposal.vehicle_id, rejection.reason.value
            )
            raise ReservationRejectedError(rejection)

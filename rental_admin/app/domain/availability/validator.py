"""
Availability Validator (Domain Logic).

Decides whether a proposed reservation is bookable:
1. Closed day: neither endpoint may fall on a Sunday.
2. Saturday cutoff: a Saturday return must be at or before 12:00.
3. Overlap: no blocking booking for the vehicle may overlap the proposal.

Everything here is pure. Existing bookings are passed in already loaded, so
the rules can be exercised without a database. Loading them (and failing
closed when that is impossible) lives in ``availability_service``.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo


SUNDAY = 6
SATURDAY = 5
SATURDAY_RETURN_CUTOFF_MINUTES = 12 * 60

# Statuses that hold a vehicle. Everything else (cancelled, completed, ...) is ignored.
RESERVATION_BLOCKING_STATUSES = ("confirmed", "pending", "active")
LEGACY_BLOCKING_STATUSES = ("confirmed", "pending")

CLOSED_DAY_MESSAGE = "Le prenotazioni non sono disponibili la domenica."
SATURDAY_CUTOFF_MESSAGE = "Il sabato, la riconsegna deve essere entro le 12:00."
VEHICLE_UNAVAILABLE_MESSAGE = (
    "Questo veicolo non è disponibile. È già prenotato dal {start} al {end}."
)


class RejectionReason(str, enum.Enum):
    """Why a proposal was refused."""
    CLOSED_DAY = "CLOSED_DAY"
    SATURDAY_CUTOFF = "SATURDAY_CUTOFF"
    VEHICLE_UNAVAILABLE = "VEHICLE_UNAVAILABLE"


class BookingSource(str, enum.Enum):
    """Table an existing booking was read from."""
    LEGACY = "legacy"  # storefront `bookings`, joined by vehicle name
    RESERVATION = "reservation"  # admin `reservations`, joined by vehicle id


@dataclass(frozen=True)
class ReservationProposal:
    vehicle_id: Any
    vehicle_display_name: str
    start_at: datetime
    end_at: datetime


@dataclass(frozen=True)
class ExistingBooking:
    """An interval already holding the vehicle, whichever table it came from."""
    source: BookingSource
    start_at: datetime
    end_at: datetime
    reference: Optional[str] = None


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str
    conflict: Optional[ExistingBooking] = None


def get_business_timezone(name: str) -> tzinfo:
    return ZoneInfo(name)


def to_business_time(value: datetime, tz: tzinfo) -> datetime:
    """
    Express a timestamp in business-local time.

    Naive values are already wall-clock business time (that is what the admin
    form submits and what SQLite hands back). Aware values are converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def check_business_calendar(proposal: ReservationProposal, tz: tzinfo) -> Optional[Rejection]:
    """
    Apply the closed-day and Saturday-cutoff rules.

    Both endpoints are checked for Sunday; only the return is checked for
    the Saturday cutoff (a Saturday pickup is fine). The cutoff has minute
    granularity, seconds past 12:00 are ignored.
    """
    start = to_business_time(proposal.start_at, tz)
    end = to_business_time(proposal.end_at, tz)

    if start.weekday() == SUNDAY or end.weekday() == SUNDAY:
        return Rejection(RejectionReason.CLOSED_DAY, CLOSED_DAY_MESSAGE)

    if end.weekday() == SATURDAY and end.hour * 60 + end.minute > SATURDAY_RETURN_CUTOFF_MINUTES:
        return Rejection(RejectionReason.SATURDAY_CUTOFF, SATURDAY_CUTOFF_MESSAGE)

    return None


def intervals_overlap(
    start: datetime,
    end: datetime,
    existing_start: datetime,
    existing_end: datetime
) -> bool:
    """
    Overlap test with mixed boundaries.

    Conflict when the proposal starts inside [existing_start, existing_end),
    ends inside (existing_start, existing_end], or fully contains the
    existing interval. Touching endpoints (back-to-back) do not conflict.
    """
    return (
        (existing_start <= start < existing_end)
        or (existing_start < end <= existing_end)
        or (start <= existing_start and end >= existing_end)
    )


def find_conflict(
    proposal: ReservationProposal,
    existing: Iterable[ExistingBooking],
    tz: tzinfo
) -> Optional[ExistingBooking]:
    """Return the first existing booking overlapping the proposal, in input order."""
    start = to_business_time(proposal.start_at, tz)
    end = to_business_time(proposal.end_at, tz)

    for booking in existing:
        if intervals_overlap(
            start,
            end,
            to_business_time(booking.start_at, tz),
            to_business_time(booking.end_at, tz),
        ):
            return booking
    return None


def format_unavailable_message(conflict: ExistingBooking, tz: tzinfo) -> str:
    return VEHICLE_UNAVAILABLE_MESSAGE.format(
        start=to_business_time(conflict.start_at, tz).strftime("%d/%m/%Y"),
        end=to_business_time(conflict.end_at, tz).strftime("%d/%m/%Y"),
    )


def validate(
    proposal: ReservationProposal,
    existing: Iterable[ExistingBooking],
    tz: tzinfo
) -> Optional[Rejection]:
    """
    Run every rule against a proposal.

    Args:
        proposal: Reservation being created or moved
        existing: Blocking bookings for the vehicle from both tables
        tz: Business timezone used for weekday and time-of-day rules

    Returns:
        None if the proposal is bookable, otherwise the first Rejection
    """
    rejection = check_business_calendar(proposal, tz)
    if rejection:
        return rejection

    conflict = find_conflict(proposal, existing, tz)
    if conflict:
        return Rejection(
            RejectionReason.VEHICLE_UNAVAILABLE,
            format_unavailable_message(conflict, tz),
            conflict=conflict,
        )

    return None


def legacy_to_existing(booking) -> ExistingBooking:
    """Map a storefront `bookings` row onto an interval."""
    return ExistingBooking(
        source=BookingSource.LEGACY,
        start_at=booking.pickup_date,
        end_at=booking.dropoff_date,
        reference=str(booking.id),
    )


def reservation_to_existing(reservation) -> ExistingBooking:
    """Map an admin `reservations` row onto an interval."""
    return ExistingBooking(
        source=BookingSource.RESERVATION,
        start_at=reservation.start_at,
        end_at=reservation.end_at,
        reference=str(reservation.id),
    )

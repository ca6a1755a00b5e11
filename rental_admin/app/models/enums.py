"""
Status enumerations for vehicles, reservations and storefront bookings.
"""

import enum


class VehicleStatus(str, enum.Enum):
    """Fleet availability status."""
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class ReservationStatus(str, enum.Enum):
    """
    Admin reservation lifecycle.

    Created as pending or confirmed, moved by admin actions.
    pending/confirmed/active hold the vehicle; completed/cancelled do not.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LegacyBookingStatus(str, enum.Enum):
    """Storefront booking statuses this service understands."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def enum_values(enum_cls):
    """Persist enum values (lowercase) rather than member names."""
    return [member.value for member in enum_cls]

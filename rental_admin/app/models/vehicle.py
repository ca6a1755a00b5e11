"""
Vehicle database model.

`display_name` doubles as the join key to the storefront `bookings` table,
which references vehicles by name rather than by id.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from rental_admin.app.db.session import Base
from rental_admin.app.models.enums import VehicleStatus, enum_values


class Vehicle(Base):
    """Rental fleet vehicle."""
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Vehicle identification
    display_name = Column(String(255), nullable=False, index=True)
    plate = Column(String(50), nullable=True)

    # Availability and pricing
    status = Column(
        Enum(VehicleStatus, values_callable=enum_values, name="vehicle_status"),
        default=VehicleStatus.AVAILABLE,
        nullable=False
    )
    daily_rate = Column(Float, nullable=False, default=0.0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Vehicle(id={self.id}, display_name='{self.display_name}', status='{self.status}')>"

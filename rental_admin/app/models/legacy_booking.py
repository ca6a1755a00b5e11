"""
Storefront booking model (`bookings` table).

Written by the public website, read here for conflict detection only.
Vehicles are referenced by name, not by id.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from rental_admin.app.db.session import Base


class LegacyBooking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    vehicle_name = Column(String(255), nullable=False, index=True)
    pickup_date = Column(DateTime(timezone=True), nullable=False)
    dropoff_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(50), nullable=False, index=True)  # see LegacyBookingStatus

    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    price_total = Column(Integer, nullable=True)  # cents

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<LegacyBooking(id={self.id}, vehicle_name='{self.vehicle_name}', status='{self.status}')>"

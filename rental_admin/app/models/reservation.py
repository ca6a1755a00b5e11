"""
Reservation database model.

Native, foreign-keyed bookings created through the admin API.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from rental_admin.app.db.session import Base
from rental_admin.app.models.enums import ReservationStatus, enum_values


class Reservation(Base):
    """
    Reservation model.

    A vehicle is held from `start_at` to `end_at` while the status is
    pending, confirmed or active. Overlaps are refused before insert by the
    availability validator under a per-vehicle lock.
    """
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)

    # Rental interval
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)

    status = Column(
        Enum(ReservationStatus, values_callable=enum_values, name="reservation_status"),
        default=ReservationStatus.PENDING,
        nullable=False,
        index=True
    )
    source = Column(String(50), nullable=False, default="admin")

    # Money
    total_amount = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="EUR")

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("Customer", lazy="selectin")
    vehicle = relationship("Vehicle", lazy="selectin")

    __table_args__ = (
        Index("ix_reservations_vehicle_window", "vehicle_id", "start_at", "end_at"),
    )

    def __repr__(self):
        return f"<Reservation(id={self.id}, vehicle_id={self.vehicle_id}, status='{self.status}')>"

"""
Reservation Pydantic schemas.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional, List

from rental_admin.app.core.config import settings
from rental_admin.app.domain.availability.validator import get_business_timezone, to_business_time
from rental_admin.app.models.enums import ReservationStatus
from rental_admin.app.schemas.customer import CustomerResponse
from rental_admin.app.schemas.vehicle import VehicleResponse

INITIAL_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


def _in_business_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return to_business_time(value, get_business_timezone(settings.business_timezone))


class ReservationCreate(BaseModel):
    """
    Schema for creating a reservation.

    Naive datetimes are business-local wall-clock time.
    """
    customer_id: int
    vehicle_id: int
    start_at: datetime
    end_at: datetime
    status: ReservationStatus = ReservationStatus.PENDING
    source: str = Field("admin", max_length=50)
    total_amount: float = Field(0.0, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator("start_at", "end_at")
    @classmethod
    def in_business_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _in_business_time(value)

    @field_validator("status")
    @classmethod
    def status_is_initial(cls, value: ReservationStatus) -> ReservationStatus:
        if value not in INITIAL_STATUSES:
            raise ValueError("A reservation can only be created as pending or confirmed")
        return value

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class ReservationUpdate(BaseModel):
    """Schema for updating a reservation. Omitted fields are left unchanged."""
    customer_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    status: Optional[ReservationStatus] = None
    source: Optional[str] = Field(None, max_length=50)
    total_amount: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator("start_at", "end_at")
    @classmethod
    def in_business_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _in_business_time(value)


class ReservationResponse(BaseModel):
    id: int
    customer_id: int
    vehicle_id: int
    start_at: datetime
    end_at: datetime
    status: ReservationStatus
    source: str
    total_amount: float
    currency: str
    created_at: datetime
    updated_at: datetime
    customer: Optional[CustomerResponse] = None
    vehicle: Optional[VehicleResponse] = None

    class Config:
        from_attributes = True


class ReservationListResponse(BaseModel):
    reservations: List[ReservationResponse]
    total: int
    page: int
    page_size: int

"""
Vehicle Pydantic schemas.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import date, datetime
from typing import Optional, List

from rental_admin.app.models.enums import VehicleStatus


class VehicleCreate(BaseModel):
    """Schema for registering a vehicle."""
    display_name: str = Field(..., min_length=1, max_length=255, description="Name shown to customers, also used by storefront bookings")
    plate: Optional[str] = Field(None, max_length=50)
    status: VehicleStatus = VehicleStatus.AVAILABLE
    daily_rate: float = Field(..., ge=0, description="Daily rental rate")


class VehicleUpdate(BaseModel):
    """Schema for updating a vehicle. Omitted fields are left unchanged."""
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    plate: Optional[str] = Field(None, max_length=50)
    status: Optional[VehicleStatus] = None
    daily_rate: Optional[float] = Field(None, ge=0)


class VehicleResponse(BaseModel):
    id: int
    display_name: str
    plate: Optional[str]
    status: VehicleStatus
    daily_rate: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    vehicles: List[VehicleResponse]
    total: int


class VehicleUnavailabilityCreate(BaseModel):
    """Days the vehicle cannot be rented, both ends inclusive."""
    unavailable_from: date
    unavailable_until: date
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_range(self):
        if self.unavailable_until < self.unavailable_from:
            raise ValueError("unavailable_until must not be before unavailable_from")
        return self


class VehicleUnavailabilityResponse(BaseModel):
    vehicle_id: int
    event_id: Optional[str]
    event_link: Optional[str]

"""
Customer Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class CustomerCreate(BaseModel):
    """Schema for creating a customer."""
    full_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    driver_license_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class CustomerUpdate(BaseModel):
    """Schema for updating a customer. Omitted fields are left unchanged."""
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    driver_license_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class CustomerResponse(BaseModel):
    id: int
    full_name: str
    email: Optional[str]
    phone: Optional[str]
    driver_license_number: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerListResponse(BaseModel):
    customers: List[CustomerResponse]
    total: int

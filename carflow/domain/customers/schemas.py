"""Customer domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import BOOKING_SOURCES, Customer
from ...shared.validators import validate_choice, validate_email, validate_phone


class CustomerCreate(BaseModel):
    """Schema for creating a new customer"""

    fullName: str = Field(..., min_length=2, max_length=255)
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    driverLicense: Optional[str] = None
    notes: Optional[str] = None
    source: str = "direct"

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("source")
    @classmethod
    def check_source(cls, v):
        return validate_choice(v, BOOKING_SOURCES, "source")


class CustomerUpdate(BaseModel):
    """Schema for updating an existing customer"""

    fullName: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    driverLicense: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


class CustomerResponse(BaseModel):
    """Schema for customer response"""

    id: int
    fullName: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    driverLicense: Optional[str] = None
    notes: Optional[str] = None
    source: Optional[str] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_customer(cls, c: Customer) -> "CustomerResponse":
        return cls(
            id=c.id,
            fullName=c.full_name,
            email=c.email,
            phone=c.phone,
            address=c.address,
            driverLicense=c.driver_license,
            notes=c.notes,
            source=c.source,
            createdAt=c.created_at,
        )

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .models import (
    CALL_STATUSES,
    REPORT_TYPES,
    TICKET_PRIORITIES,
    TICKET_STATUSES,
    N8nCall,
    ReportTable,
    SupportTicket,
    User,
)
from .shared.validators import validate_choice, validate_email


# Auth
class UserRegister(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6, max_length=128)
    fullName: str = Field(..., min_length=2, max_length=255)
    email: str
    role: str = "user"

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        return validate_choice(v, ("user", "admin"), "role")


class UserLogin(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: int
    username: str
    fullName: str
    email: str
    role: str
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_user(cls, u: User) -> "UserResponse":
        return cls(
            id=u.id,
            username=u.username,
            fullName=u.full_name,
            email=u.email,
            role=u.role,
            createdAt=u.created_at,
        )


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    token: str


class MessageResponse(BaseModel):
    message: str


# Support tickets
class SupportTicketCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    customerId: Optional[int] = None
    bookingId: Optional[int] = None
    priority: str = "medium"
    status: str = "open"
    assignedTo: Optional[int] = None
    attachments: Optional[list[Any]] = None

    @field_validator("priority")
    @classmethod
    def check_priority(cls, v):
        return validate_choice(v, TICKET_PRIORITIES, "priority")

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, TICKET_STATUSES, "status")


class SupportTicketStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, TICKET_STATUSES, "status")


class EmergencySupportRequest(BaseModel):
    customerId: int
    description: str = Field(..., min_length=1)
    subject: Optional[str] = Field(None, max_length=255)
    bookingId: Optional[int] = None


class SupportTicketResponse(BaseModel):
    id: int
    subject: str
    description: str
    status: str
    priority: str
    customerId: Optional[int] = None
    customerName: Optional[str] = None
    bookingId: Optional[int] = None
    assignedTo: Optional[int] = None
    attachments: Optional[list[Any]] = None
    createdAt: Optional[datetime] = None
    resolvedAt: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_ticket(cls, t: SupportTicket) -> "SupportTicketResponse":
        return cls(
            id=t.id,
            subject=t.subject,
            description=t.description,
            status=t.status,
            priority=t.priority,
            customerId=t.customer_id,
            customerName=t.customer.full_name if t.customer else None,
            bookingId=t.booking_id,
            assignedTo=t.assigned_to,
            attachments=t.attachments,
            createdAt=t.created_at,
            resolvedAt=t.resolved_at,
        )


# n8n call log
class N8nCallCreate(BaseModel):
    callerId: Optional[str] = Field(None, max_length=100)
    callerName: Optional[str] = Field(None, max_length=255)
    callerPhone: Optional[str] = Field(None, max_length=50)
    callTime: Optional[datetime] = None
    callDuration: Optional[int] = Field(None, ge=0)
    status: str = "new"
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    bookingId: Optional[int] = None
    agentNotes: Optional[str] = None
    transcription: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, CALL_STATUSES, "status")


class N8nCallUpdate(BaseModel):
    callerName: Optional[str] = Field(None, max_length=255)
    callerPhone: Optional[str] = Field(None, max_length=50)
    callDuration: Optional[int] = Field(None, ge=0)
    status: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    bookingId: Optional[int] = None
    agentNotes: Optional[str] = None
    transcription: Optional[str] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return validate_choice(v, CALL_STATUSES, "status")


class N8nCallResponse(BaseModel):
    id: int
    callerId: Optional[str] = None
    callerName: Optional[str] = None
    callerPhone: Optional[str] = None
    callTime: Optional[datetime] = None
    callDuration: Optional[int] = None
    status: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    bookingId: Optional[int] = None
    agentNotes: Optional[str] = None
    transcription: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_call(cls, c: N8nCall) -> "N8nCallResponse":
        return cls(
            id=c.id,
            callerId=c.caller_id,
            callerName=c.caller_name,
            callerPhone=c.caller_phone,
            callTime=c.call_time,
            callDuration=c.call_duration,
            status=c.status,
            reason=c.reason,
            notes=c.notes,
            bookingId=c.booking_id,
            agentNotes=c.agent_notes,
            transcription=c.transcription,
            createdAt=c.created_at,
            updatedAt=c.updated_at,
        )


# Reports
class ReportTableCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str
    columns: list[str] = []
    filters: dict[str, Any] = {}

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        return validate_choice(v, REPORT_TYPES, "type")


class ReportTableResponse(BaseModel):
    id: int
    name: str
    type: str
    columns: list[str]
    filters: dict[str, Any] = {}
    createdBy: Optional[int] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_table(cls, t: ReportTable) -> "ReportTableResponse":
        return cls(
            id=t.id,
            name=t.name,
            type=t.type,
            columns=t.columns or [],
            filters=t.filters or {},
            createdBy=t.created_by,
            createdAt=t.created_at,
        )

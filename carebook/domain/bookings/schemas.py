"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import BookingType, Recurrence
from ...shared.validators import to_server_time, validate_meeting_url


class BookingCreate(BaseModel):
    """Schema for a requester creating a booking or a recurring series"""

    providerId: int
    dependentId: Optional[int] = None
    serviceId: Optional[int] = None
    bookingType: str = BookingType.APPOINTMENT
    scheduledAt: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    recurrence: str = Recurrence.NONE
    recurrenceEndDate: Optional[datetime] = None

    @field_validator("bookingType")
    @classmethod
    def validate_booking_type(cls, v):
        if v not in (BookingType.APPOINTMENT, BookingType.TOUR):
            raise ValueError(f"Invalid booking type: {v}")
        return v

    @field_validator("recurrence")
    @classmethod
    def validate_recurrence(cls, v):
        if v not in Recurrence.ALL:
            raise ValueError(f"Invalid recurrence: {v}")
        return v

    @field_validator("scheduledAt", "recurrenceEndDate")
    @classmethod
    def normalize_datetime(cls, v):
        return to_server_time(v)

    @model_validator(mode="after")
    def validate_schedule(self):
        if self.scheduledAt is None:
            if self.bookingType not in BookingType.SCHEDULE_LESS:
                raise ValueError("scheduledAt is required for appointments")
            if self.recurrence != Recurrence.NONE:
                raise ValueError("Recurring bookings need a scheduled time")
        if (
            self.recurrenceEndDate is not None
            and self.scheduledAt is not None
            and self.recurrenceEndDate < self.scheduledAt
        ):
            raise ValueError("recurrenceEndDate must be after scheduledAt")
        return self


class BookingReschedule(BaseModel):
    scheduledAt: datetime

    @field_validator("scheduledAt")
    @classmethod
    def normalize_datetime(cls, v):
        return to_server_time(v)


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class MeetingLinkUpdate(BaseModel):
    meetingUrl: str

    @field_validator("meetingUrl")
    @classmethod
    def validate_url(cls, v):
        return validate_meeting_url(v)


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    publicId: str
    providerId: int
    requesterId: int
    dependentId: Optional[int] = None
    serviceId: Optional[int] = None
    bookingType: str
    isRemote: bool
    scheduledAt: Optional[datetime] = None
    durationMinutes: int
    status: str
    notes: Optional[str] = None
    confirmedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    cancelReason: Optional[str] = None
    meetingUrl: Optional[str] = None
    recurrence: str
    seriesId: Optional[str] = None
    recurrenceEndDate: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            publicId=booking.public_id,
            providerId=booking.provider_id,
            requesterId=booking.requester_id,
            dependentId=booking.dependent_id,
            serviceId=booking.service_id,
            bookingType=booking.booking_type,
            isRemote=booking.is_remote,
            scheduledAt=booking.scheduled_at,
            durationMinutes=booking.duration_minutes,
            status=booking.status,
            notes=booking.notes,
            confirmedAt=booking.confirmed_at,
            cancelledAt=booking.cancelled_at,
            cancelReason=booking.cancel_reason,
            meetingUrl=booking.meeting_url,
            recurrence=booking.recurrence,
            seriesId=booking.series_id,
            recurrenceEndDate=booking.recurrence_end_date,
            createdAt=booking.created_at,
        )


def serialize_booking(booking) -> dict:
    return BookingResponse.from_booking(booking).model_dump(mode="json")


def serialize_bookings(bookings) -> list[dict]:
    return [serialize_booking(b) for b in bookings]

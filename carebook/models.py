import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import DEFAULT_SLOT_MINUTES
from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class UserRole:
    PARENT = "PARENT"
    PATIENT = "PATIENT"
    PROVIDER = "PROVIDER"
    CLINIC_STAFF = "CLINIC_STAFF"
    ADMIN = "ADMIN"

    REQUESTER_ROLES = (PARENT, PATIENT)
    STAFF_ROLES = (PROVIDER, CLINIC_STAFF)
    ALL = (PARENT, PATIENT, PROVIDER, CLINIC_STAFF, ADMIN)


class ProviderStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SUSPENDED = "SUSPENDED"


class BookingType:
    APPOINTMENT = "APPOINTMENT"
    TOUR = "TOUR"

    # Types that may be requested without a scheduled time
    SCHEDULE_LESS = (TOUR,)


class BookingStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    ACTIVE = (PENDING, CONFIRMED)
    TERMINAL = (COMPLETED, CANCELLED, NO_SHOW)


class Recurrence:
    NONE = "NONE"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"

    ALL = (NONE, WEEKLY, BIWEEKLY, MONTHLY)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), default=UserRole.PARENT, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    staff_memberships = relationship("ProviderStaff", back_populates="user")
    dependents = relationship("Dependent", back_populates="requester")


class Provider(Base):
    """A tenant business (daycare or clinic) offering bookable services"""

    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=True)  # Booking notifications go here
    status = Column(String(20), default=ProviderStatus.PENDING, nullable=False)
    default_slot_minutes = Column(Integer, default=DEFAULT_SLOT_MINUTES, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    staff = relationship("ProviderStaff", back_populates="provider")
    services = relationship("Service", back_populates="provider")
    schedules = relationship(
        "ProviderSchedule", back_populates="provider", order_by="ProviderSchedule.day_of_week"
    )


class ProviderStaff(Base):
    """Maps a staff user to the provider they act for"""

    __tablename__ = "provider_staff"
    __table_args__ = (UniqueConstraint("user_id", "provider_id", name="uq_staff_user_provider"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    role = Column(String(20), default="staff", nullable=False)  # owner, manager, staff
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="staff_memberships")
    provider = relationship("Provider", back_populates="staff")


class Dependent(Base):
    """Child or family member a requester books on behalf of"""

    __tablename__ = "dependents"

    id = Column(Integer, primary_key=True, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    date_of_birth = Column(Date, nullable=True)

    requester = relationship("User", back_populates="dependents")


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, default=DEFAULT_SLOT_MINUTES, nullable=False)
    is_remote = Column(Boolean, default=False, nullable=False)  # telehealth capable
    is_active = Column(Boolean, default=True, nullable=False)

    provider = relationship("Provider", back_populates="services")


class ProviderSchedule(Base):
    """Weekly operating hours. day_of_week follows date.weekday(): 0 = Monday"""

    __tablename__ = "provider_schedules"
    __table_args__ = (
        UniqueConstraint("provider_id", "day_of_week", name="uq_schedule_provider_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    open_time = Column(String(5), nullable=False, default="09:00")  # HH:MM
    close_time = Column(String(5), nullable=False, default="17:00")  # HH:MM
    is_closed = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship("Provider", back_populates="schedules")


class Booking(Base):
    """One scheduled interaction between a requester and a provider"""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )

    # Immutable ownership
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    dependent_id = Column(Integer, ForeignKey("dependents.id"), nullable=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)

    booking_type = Column(String(20), default=BookingType.APPOINTMENT, nullable=False)
    is_remote = Column(Boolean, default=False, nullable=False)
    scheduled_at = Column(DateTime, nullable=True, index=True)  # null for tour requests
    duration_minutes = Column(Integer, default=DEFAULT_SLOT_MINUTES, nullable=False)
    notes = Column(Text, nullable=True)

    # Status workflow: PENDING → CONFIRMED → COMPLETED / CANCELLED / NO_SHOW
    status = Column(String(20), default=BookingStatus.PENDING, nullable=False, index=True)
    confirmed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    meeting_url = Column(Text, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)

    # Recurrence
    recurrence = Column(String(20), default=Recurrence.NONE, nullable=False)
    series_id = Column(String(64), nullable=True, index=True)
    recurrence_end_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship("Provider")
    requester = relationship("User")
    dependent = relationship("Dependent")
    service = relationship("Service")

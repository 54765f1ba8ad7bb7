from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from petpocket.domain.entities import (
    DEFAULT_HEALTH_STATUS,
    AppointmentPaymentStatus,
    AppointmentStatus,
    FulfillmentStatus,
    OrderPaymentStatus,
    Role,
)

from .session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Columns prefixed ``encrypted_`` hold Fernet tokens produced by
# petpocket.core.cipher; ``email_index`` holds the keyed blind index.


class Owner(Base):
    """Pet owner (client) with encrypted contact data"""

    __tablename__ = "owners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    encrypted_name: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_email: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Not unique: uniqueness is checked by the service layer.
    email_index: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class Pet(Base):
    """Pet belonging to an owner; medical history lives in the document store"""

    __tablename__ = "pets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    encrypted_name: Mapped[str] = mapped_column(Text, nullable=False)
    breed: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    owner_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("owners.id"), nullable=True, index=True
    )
    health_status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_HEALTH_STATUS
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    owner: Mapped[Optional[Owner]] = relationship("Owner", lazy="joined")


class User(Base):
    """Staff account; password_hash is a bcrypt hash and is never decrypted"""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    encrypted_name: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_email: Mapped[str] = mapped_column(Text, nullable=False)
    email_index: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Role.RECEPTIONIST.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Order(Base):
    """Sales order; line items live in the order_details document"""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("owners.id", ondelete="SET NULL"), nullable=True, index=True
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderPaymentStatus.PENDING.value
    )
    fulfillment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FulfillmentStatus.IN_PROGRESS.value
    )
    order_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    client: Mapped[Optional[Owner]] = relationship("Owner", lazy="joined")


class Appointment(Base):
    """Clinic appointment; services and clinical notes live in appointment_details"""

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("owners.id", ondelete="SET NULL"), nullable=True, index=True
    )
    pet_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("pets.id", ondelete="SET NULL"), nullable=True, index=True
    )
    appointment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AppointmentStatus.PENDING.value
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AppointmentPaymentStatus.UNPAID.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    client: Mapped[Optional[Owner]] = relationship("Owner", lazy="joined")
    pet: Mapped[Optional[Pet]] = relationship("Pet", lazy="joined")

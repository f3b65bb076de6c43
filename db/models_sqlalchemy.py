"""SQLAlchemy models for the reservation booking engine tables."""

import datetime as dt
from typing import Optional

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Date, Time, Text, JSON, Index, ForeignKey,
    CheckConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base, TimestampMixin
from domain.enums import ReservationStatus


class DiningTable(Base, TimestampMixin):
    """Physical table in the restaurant."""

    __tablename__ = "tables"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    table_number: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        unique=True,
    )

    capacity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    location: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )

    reservations: Mapped[list["Reservation"]] = relationship(back_populates="table")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="capacity_positive"),
    )

    def __repr__(self) -> str:
        """String representation of DiningTable."""
        return (
            f"<DiningTable(id={self.id}, number='{self.table_number}', "
            f"capacity={self.capacity}, active={self.is_active})>"
        )


class Reservation(Base, TimestampMixin):
    """Reservation table model."""

    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    table_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tables.id"),
        nullable=True,
        index=True,
    )

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    time: Mapped[dt.time] = mapped_column(
        Time,
        nullable=False,
    )

    duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    party_size: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    status: Mapped[ReservationStatus] = mapped_column(
        SAEnum(
            ReservationStatus,
            native_enum=False,
            length=20,
            validate_strings=True,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=ReservationStatus.PENDING,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    phone: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    special_requests: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        index=True,
    )

    idempotency_key: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
    )

    cancelled_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    confirmed_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancelled_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    completed_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    table: Mapped[Optional[DiningTable]] = relationship(back_populates="reservations")

    __table_args__ = (
        Index("ix_reservations_table_date_status", "table_id", "date", "status"),
        Index("ix_reservations_status_date", "status", "date"),
        CheckConstraint("party_size > 0", name="party_size_positive"),
        CheckConstraint("duration_minutes > 0", name="duration_positive"),
    )

    def __repr__(self) -> str:
        """String representation of Reservation."""
        return (
            f"<Reservation(id={self.id}, table_id={self.table_id}, "
            f"date={self.date}, time={self.time}, party_size={self.party_size}, "
            f"status='{self.status}')>"
        )


class AuditLog(Base):
    """Audit log table for tracking all actions."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )

    entity_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    actor: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    details: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        """String representation of AuditLog."""
        return (
            f"<AuditLog(id={self.id}, action='{self.action}', "
            f"entity_type='{self.entity_type}', entity_id='{self.entity_id}')>"
        )

from datetime import date, datetime
from enum import Enum as PyEnum
from sqlalchemy import Date, DateTime, Enum, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class RequestStatus(str, PyEnum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class SoilTestingRequest(Base):
    __tablename__ = "soil_testing_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    farmer_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    center_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    preferred_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    preferred_time_slot: Mapped[str | None] = mapped_column(String(64))
    farmer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    farmer_location_address: Mapped[str | None] = mapped_column(String(255))
    farmer_latitude: Mapped[float | None] = mapped_column(Float)
    farmer_longitude: Mapped[float | None] = mapped_column(Float)
    additional_notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus), default=RequestStatus.pending, index=True
    )
    admin_notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(String(255))
    approved_date: Mapped[date | None] = mapped_column(Date)
    approved_start_time: Mapped[str | None] = mapped_column(String(5))
    approved_end_time: Mapped[str | None] = mapped_column(String(5))
    field_officer_id: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    schedule = relationship("Schedule", back_populates="request", uselist=False)

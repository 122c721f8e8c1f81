from datetime import date, datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class ScheduleStatus(str, PyEnum):
    pending = "pending"
    approved = "approved"
    completed = "completed"
    rejected = "rejected"
    cancelled = "cancelled"


class Schedule(Base):
    __tablename__ = "soil_testing_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int | None] = mapped_column(
        ForeignKey("soil_testing_requests.id", ondelete="SET NULL"), unique=True
    )
    farmer_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    center_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    scheduled_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    start_time: Mapped[str | None] = mapped_column(String(5))
    end_time: Mapped[str | None] = mapped_column(String(5))
    status: Mapped[ScheduleStatus] = mapped_column(
        Enum(ScheduleStatus), default=ScheduleStatus.pending, index=True
    )
    farmer_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    farmer_location_address: Mapped[str | None] = mapped_column(String(255))
    farmer_latitude: Mapped[float | None] = mapped_column(Float)
    farmer_longitude: Mapped[float | None] = mapped_column(Float)
    admin_notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(String(255))
    field_officer_id: Mapped[int | None] = mapped_column(Integer, index=True)
    time_slot_id: Mapped[int | None] = mapped_column(
        ForeignKey("soil_testing_time_slots.id", ondelete="SET NULL")
    )
    qr_code_url: Mapped[str | None] = mapped_column(Text)
    qr_code_data: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    request = relationship("SoilTestingRequest", back_populates="schedule")
    time_slot = relationship("TimeSlot")

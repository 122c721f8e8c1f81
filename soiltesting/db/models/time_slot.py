import datetime as dt
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base


class TimeSlot(Base):
    __tablename__ = "soil_testing_time_slots"
    __table_args__ = (
        UniqueConstraint(
            "center_id", "date", "start_time", "end_time", name="uq_time_slot_center_interval"
        ),
        CheckConstraint("max_bookings > 0", name="ck_time_slot_max_bookings_positive"),
        CheckConstraint("current_bookings >= 0", name="ck_time_slot_bookings_non_negative"),
        CheckConstraint(
            "current_bookings <= max_bookings", name="ck_time_slot_bookings_within_capacity"
        ),
        CheckConstraint("end_time > start_time", name="ck_time_slot_interval_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    center_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_bookings: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_bookings: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def available_bookings(self) -> int:
        return max((self.max_bookings or 0) - (self.current_bookings or 0), 0)

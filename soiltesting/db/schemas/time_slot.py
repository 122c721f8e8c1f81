import datetime as dt
from pydantic import BaseModel, Field, field_validator, model_validator

from .common import normalize_clock_time


class TimeSlotBase(BaseModel):
    center_id: int = Field(gt=0)
    date: dt.date
    start_time: str
    end_time: str
    max_bookings: int = Field(default=1, gt=0)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, value: object) -> object:
        return normalize_clock_time(value)

    @model_validator(mode="after")
    def check_interval(self) -> "TimeSlotBase":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimeSlotCreate(TimeSlotBase):
    pass


class Interval(BaseModel):
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, value: object) -> object:
        return normalize_clock_time(value)

    @model_validator(mode="after")
    def check_interval(self) -> "Interval":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimeSlotBulkCreate(BaseModel):
    center_id: int = Field(gt=0)
    dates: list[dt.date] = Field(min_length=1)
    intervals: list[Interval] = Field(min_length=1)
    max_bookings: int = Field(default=1, gt=0)


class TimeSlotUpdate(BaseModel):
    is_available: bool | None = None
    max_bookings: int | None = Field(default=None, gt=0)


class TimeSlot(BaseModel):
    id: int
    center_id: int
    date: dt.date
    start_time: str
    end_time: str
    is_available: bool
    max_bookings: int
    current_bookings: int
    available_bookings: int
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    class Config:
        from_attributes = True


class AvailableInterval(BaseModel):
    id: int
    start_time: str
    end_time: str
    is_available: bool
    max_bookings: int
    current_bookings: int
    available_bookings: int


class AvailableDate(BaseModel):
    date: dt.date
    time_slots: list[AvailableInterval]

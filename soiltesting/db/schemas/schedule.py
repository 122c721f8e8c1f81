from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.schedule import ScheduleStatus
from .common import normalize_clock_time


class ScheduleCreate(BaseModel):
    farmer_id: int = Field(gt=0)
    center_id: int = Field(gt=0)
    scheduled_date: date
    start_time: str | None = None
    end_time: str | None = None
    farmer_phone: str = Field(min_length=7, max_length=32)
    farmer_location_address: str | None = Field(default=None, max_length=255)
    farmer_latitude: float | None = Field(default=None, ge=-90, le=90)
    farmer_longitude: float | None = Field(default=None, ge=-180, le=180)
    field_officer_id: int | None = Field(default=None, gt=0)
    admin_notes: str | None = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, value: object) -> object:
        return normalize_clock_time(value)

    @model_validator(mode="after")
    def check_interval(self) -> "ScheduleCreate":
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleUpdate(BaseModel):
    status: ScheduleStatus | None = None
    start_time: str | None = None
    end_time: str | None = None
    admin_notes: str | None = None
    rejection_reason: str | None = Field(default=None, max_length=255)
    field_officer_id: int | None = Field(default=None, gt=0)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_time(cls, value: object) -> object:
        return normalize_clock_time(value)


class Schedule(BaseModel):
    id: int
    request_id: int | None = None
    farmer_id: int
    center_id: int
    scheduled_date: date
    start_time: str | None = None
    end_time: str | None = None
    status: ScheduleStatus
    farmer_phone: str
    farmer_location_address: str | None = None
    farmer_latitude: float | None = None
    farmer_longitude: float | None = None
    admin_notes: str | None = None
    rejection_reason: str | None = None
    field_officer_id: int | None = None
    time_slot_id: int | None = None
    qr_code_url: str | None = None
    qr_code_data: str | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class CredentialVerification(BaseModel):
    unique_id: str
    schedule: Schedule
    is_actionable: bool

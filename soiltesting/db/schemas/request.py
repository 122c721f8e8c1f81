from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.request import RequestStatus
from .schedule import Schedule
from .common import normalize_clock_time


class RequestBase(BaseModel):
    center_id: int = Field(gt=0)
    preferred_date: date
    preferred_time_slot: str | None = Field(default=None, max_length=64)
    farmer_phone: str = Field(min_length=7, max_length=32)
    farmer_location_address: str | None = Field(default=None, max_length=255)
    farmer_latitude: float | None = Field(default=None, ge=-90, le=90)
    farmer_longitude: float | None = Field(default=None, ge=-180, le=180)
    additional_notes: str | None = None

    @field_validator("farmer_phone")
    @classmethod
    def strip_phone(cls, value: str) -> str:
        value = value.strip()
        digits = [char for char in value if char.isdigit()]
        if len(digits) < 7:
            raise ValueError("Invalid phone number")
        return value


class RequestCreate(RequestBase):
    pass


class RequestApproval(BaseModel):
    approved_date: date
    approved_start_time: str
    approved_end_time: str
    field_officer_id: int = Field(gt=0)
    admin_notes: str | None = None

    @field_validator("approved_start_time", "approved_end_time", mode="before")
    @classmethod
    def normalize_time(cls, value: object) -> object:
        return normalize_clock_time(value)


class RequestRejection(BaseModel):
    rejection_reason: str = Field(min_length=1, max_length=255)
    admin_notes: str | None = None


class RequestUpdate(BaseModel):
    status: RequestStatus | None = None
    admin_notes: str | None = None
    rejection_reason: str | None = Field(default=None, max_length=255)
    approved_date: date | None = None
    approved_start_time: str | None = None
    approved_end_time: str | None = None
    field_officer_id: int | None = Field(default=None, gt=0)

    @field_validator("approved_start_time", "approved_end_time", mode="before")
    @classmethod
    def normalize_time(cls, value: object) -> object:
        return normalize_clock_time(value)

    @model_validator(mode="after")
    def check_status_fields(self) -> "RequestUpdate":
        if self.status == RequestStatus.approved:
            missing = [
                name
                for name in (
                    "approved_date",
                    "approved_start_time",
                    "approved_end_time",
                    "field_officer_id",
                )
                if getattr(self, name) is None
            ]
            if missing:
                raise ValueError(f"Approval requires: {', '.join(missing)}")
        if self.status == RequestStatus.rejected and not self.rejection_reason:
            raise ValueError("Rejection requires rejection_reason")
        return self


class SoilTestingRequest(RequestBase):
    id: int
    farmer_id: int
    status: RequestStatus
    admin_notes: str | None = None
    rejection_reason: str | None = None
    approved_date: date | None = None
    approved_start_time: str | None = None
    approved_end_time: str | None = None
    field_officer_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    schedule: Schedule | None = None

    class Config:
        from_attributes = True

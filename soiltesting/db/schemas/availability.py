import datetime as dt
from pydantic import BaseModel, Field


class DateAvailabilityChange(BaseModel):
    date: dt.date
    is_available: bool


class DateAvailabilityToggle(BaseModel):
    date: dt.date
    force: bool = False


class BulkDateAvailabilityUpdate(BaseModel):
    dates: list[DateAvailabilityChange] = Field(min_length=1)
    force: bool = False


class DateAvailabilityResult(BaseModel):
    center_id: int
    date: dt.date
    is_available: bool
    updated_slots: int


class DateUpdateError(BaseModel):
    date: dt.date
    reason: str


class BulkDateAvailabilityReport(BaseModel):
    center_id: int
    updated: list[DateAvailabilityChange]
    errors: list[DateUpdateError]

    @property
    def success(self) -> bool:
        return bool(self.updated)


class DateAvailabilitySummary(BaseModel):
    date: dt.date
    is_available: bool
    total_slots: int
    available_slots: int
    scheduled_appointments: int


class DateAppointmentsCheck(BaseModel):
    center_id: int
    date: dt.date
    has_scheduled_appointments: bool
    can_make_unavailable: bool

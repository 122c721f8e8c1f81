from .common import Page
from .time_slot import (
    TimeSlot,
    TimeSlotCreate,
    TimeSlotBulkCreate,
    TimeSlotUpdate,
    Interval,
    AvailableDate,
    AvailableInterval,
)
from .request import (
    SoilTestingRequest,
    RequestCreate,
    RequestUpdate,
    RequestApproval,
    RequestRejection,
)
from .schedule import Schedule, ScheduleCreate, ScheduleUpdate, CredentialVerification
from .availability import (
    DateAvailabilityChange,
    DateAvailabilityToggle,
    BulkDateAvailabilityUpdate,
    DateAvailabilityResult,
    DateUpdateError,
    BulkDateAvailabilityReport,
    DateAvailabilitySummary,
    DateAppointmentsCheck,
)

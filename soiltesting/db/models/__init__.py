from .time_slot import TimeSlot
from .request import SoilTestingRequest, RequestStatus
from .schedule import Schedule, ScheduleStatus
from .audit_log import AuditLog, ActorType

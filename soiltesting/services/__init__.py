from . import (
    audit,
    notification_service,
    qr_service,
    request_store,
    schedule_store,
    scheduling_service,
    time_slot_store,
)
__all__ = [
    "audit",
    "notification_service",
    "qr_service",
    "request_store",
    "schedule_store",
    "scheduling_service",
    "time_slot_store",
]

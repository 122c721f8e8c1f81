from . import (
    requests,
    schedules,
    time_slots,
    date_availability,
    misc,
)

__all__ = [
    "requests",
    "schedules",
    "time_slots",
    "date_availability",
    "misc",
]

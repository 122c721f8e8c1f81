"""Per-center, per-date capacity records for soil-testing visits.

``book`` and ``release`` are the only writers of ``current_bookings``; both are
single conditional UPDATE statements so concurrent callers can never push the
counter past ``max_bookings`` or below zero. Functions here flush but never
commit; the calling service owns the transaction.
"""
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
import logging

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError, DateHasAppointmentsError, SchedulingError, ValidationFailure
from ..db import models
from .pagination import PageResult, paginate

logger = logging.getLogger(__name__)

ACTIVE_SCHEDULE_STATUSES = (models.ScheduleStatus.pending, models.ScheduleStatus.approved)


@dataclass(slots=True)
class DateUpdateError:
    date: date
    reason: str


@dataclass(slots=True)
class BulkAvailabilityReport:
    updated: list[tuple[date, bool]] = field(default_factory=list)
    errors: list[DateUpdateError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.updated)


def get_slot(db: Session, slot_id: int) -> models.TimeSlot | None:
    return db.get(models.TimeSlot, slot_id)


def find_slot(
    db: Session, center_id: int, day: date, start_time: str, end_time: str
) -> models.TimeSlot | None:
    return db.execute(
        select(models.TimeSlot).where(
            models.TimeSlot.center_id == center_id,
            models.TimeSlot.date == day,
            models.TimeSlot.start_time == start_time,
            models.TimeSlot.end_time == end_time,
        )
    ).scalar_one_or_none()


def create_slot(
    db: Session,
    *,
    center_id: int,
    day: date,
    start_time: str,
    end_time: str,
    max_bookings: int = 1,
) -> models.TimeSlot:
    if find_slot(db, center_id, day, start_time, end_time) is not None:
        raise ConflictError(
            f"Time slot {start_time}-{end_time} on {day} already exists for center {center_id}"
        )
    slot = models.TimeSlot(
        center_id=center_id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        max_bookings=max_bookings,
        current_bookings=0,
        is_available=True,
    )
    db.add(slot)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            f"Time slot {start_time}-{end_time} on {day} already exists for center {center_id}"
        ) from exc
    return slot


def bulk_create_slots(
    db: Session,
    *,
    center_id: int,
    days: Iterable[date],
    intervals: Iterable[tuple[str, str]],
    max_bookings: int = 1,
) -> list[models.TimeSlot]:
    intervals = list(dict.fromkeys(intervals))
    created: list[models.TimeSlot] = []
    for day in dict.fromkeys(days):
        for start_time, end_time in intervals:
            if find_slot(db, center_id, day, start_time, end_time) is not None:
                continue
            slot = models.TimeSlot(
                center_id=center_id,
                date=day,
                start_time=start_time,
                end_time=end_time,
                max_bookings=max_bookings,
                current_bookings=0,
                is_available=True,
            )
            db.add(slot)
            created.append(slot)
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Time slots for center {center_id} already exist") from exc
    return created


def _expire_counter(db: Session, slot_id: int) -> None:
    cached = db.get(models.TimeSlot, slot_id)
    if cached is not None:
        db.expire(cached, ["current_bookings", "updated_at"])


def book(db: Session, slot_id: int) -> bool:
    result = db.execute(
        update(models.TimeSlot)
        .where(
            models.TimeSlot.id == slot_id,
            models.TimeSlot.current_bookings < models.TimeSlot.max_bookings,
        )
        .values(current_bookings=models.TimeSlot.current_bookings + 1)
        .execution_options(synchronize_session=False)
    )
    booked = result.rowcount == 1
    _expire_counter(db, slot_id)
    if not booked:
        logger.info("Time slot is fully booked", extra={"slot_id": slot_id})
    return booked


def release(db: Session, slot_id: int) -> bool:
    result = db.execute(
        update(models.TimeSlot)
        .where(models.TimeSlot.id == slot_id, models.TimeSlot.current_bookings > 0)
        .values(current_bookings=models.TimeSlot.current_bookings - 1)
        .execution_options(synchronize_session=False)
    )
    _expire_counter(db, slot_id)
    return result.rowcount == 1


def list_available(
    db: Session, center_id: int, date_from: date, date_to: date
) -> list[dict]:
    slots = (
        db.query(models.TimeSlot)
        .filter(models.TimeSlot.center_id == center_id)
        .filter(models.TimeSlot.date >= date_from)
        .filter(models.TimeSlot.date <= date_to)
        .filter(models.TimeSlot.is_available.is_(True))
        .order_by(models.TimeSlot.date, models.TimeSlot.start_time)
        .all()
    )
    grouped: dict[date, list[dict]] = {}
    for slot in slots:
        grouped.setdefault(slot.date, []).append(
            {
                "id": slot.id,
                "start_time": slot.start_time,
                "end_time": slot.end_time,
                "is_available": slot.is_available,
                "max_bookings": slot.max_bookings,
                "current_bookings": slot.current_bookings,
                "available_bookings": slot.available_bookings,
            }
        )
    return [{"date": day, "time_slots": intervals} for day, intervals in grouped.items()]


def search_slots(
    db: Session,
    *,
    center_id: int | None = None,
    day: date | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    is_available: bool | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    query = db.query(models.TimeSlot)
    if center_id:
        query = query.filter(models.TimeSlot.center_id == center_id)
    if day:
        query = query.filter(models.TimeSlot.date == day)
    if date_from:
        query = query.filter(models.TimeSlot.date >= date_from)
    if date_to:
        query = query.filter(models.TimeSlot.date <= date_to)
    if is_available is not None:
        query = query.filter(models.TimeSlot.is_available.is_(is_available))
    query = query.order_by(models.TimeSlot.date, models.TimeSlot.start_time)
    return paginate(query, page, limit)


def update_slot(db: Session, slot: models.TimeSlot, fields: dict) -> models.TimeSlot:
    max_bookings = fields.get("max_bookings")
    if max_bookings is not None and max_bookings < slot.current_bookings:
        raise ValidationFailure(
            f"max_bookings cannot be lower than current bookings ({slot.current_bookings})"
        )
    for key in ("is_available", "max_bookings"):
        if fields.get(key) is not None:
            setattr(slot, key, fields[key])
    db.flush()
    return slot


def delete_slot(db: Session, slot: models.TimeSlot) -> None:
    if slot.current_bookings > 0:
        raise ConflictError("Time slot has bookings and cannot be deleted")
    db.delete(slot)
    db.flush()


def has_active_bookings(db: Session, center_id: int, day: date) -> bool:
    schedules = db.scalar(
        select(func.count(models.Schedule.id)).where(
            models.Schedule.center_id == center_id,
            models.Schedule.scheduled_date == day,
            models.Schedule.status.in_(ACTIVE_SCHEDULE_STATUSES),
        )
    )
    if schedules:
        return True
    requests = db.scalar(
        select(func.count(models.SoilTestingRequest.id)).where(
            models.SoilTestingRequest.center_id == center_id,
            models.SoilTestingRequest.preferred_date == day,
            models.SoilTestingRequest.status == models.RequestStatus.pending,
        )
    )
    return bool(requests)


def set_date_availability(
    db: Session, center_id: int, day: date, available: bool, force: bool = False
) -> int:
    if not available and not force and has_active_bookings(db, center_id, day):
        raise DateHasAppointmentsError(day)
    result = db.execute(
        update(models.TimeSlot)
        .where(models.TimeSlot.center_id == center_id, models.TimeSlot.date == day)
        .values(is_available=available)
        .execution_options(synchronize_session=False)
    )
    for cached in list(db.identity_map.values()):
        if (
            isinstance(cached, models.TimeSlot)
            and cached.center_id == center_id
            and cached.date == day
        ):
            db.expire(cached, ["is_available", "updated_at"])
    return result.rowcount


def bulk_set_date_availability(
    db: Session,
    center_id: int,
    changes: Iterable[tuple[date, bool]],
    force: bool = False,
) -> BulkAvailabilityReport:
    report = BulkAvailabilityReport()
    for day, available in changes:
        try:
            touched = set_date_availability(db, center_id, day, available, force=force)
        except SchedulingError as exc:
            report.errors.append(DateUpdateError(date=day, reason=str(exc)))
            continue
        if not touched:
            report.errors.append(
                DateUpdateError(date=day, reason=f"No time slots exist for {day}")
            )
            continue
        report.updated.append((day, available))
    return report


def get_date_availability(
    db: Session, center_id: int, date_from: date, date_to: date
) -> list[dict]:
    rows = db.execute(
        select(
            models.TimeSlot.date,
            func.count(models.TimeSlot.id),
            func.sum(case((models.TimeSlot.is_available.is_(True), 1), else_=0)),
        )
        .where(
            models.TimeSlot.center_id == center_id,
            models.TimeSlot.date >= date_from,
            models.TimeSlot.date <= date_to,
        )
        .group_by(models.TimeSlot.date)
        .order_by(models.TimeSlot.date)
    ).all()
    appointment_counts = dict(
        db.execute(
            select(models.Schedule.scheduled_date, func.count(models.Schedule.id))
            .where(
                models.Schedule.center_id == center_id,
                models.Schedule.scheduled_date >= date_from,
                models.Schedule.scheduled_date <= date_to,
                models.Schedule.status.in_(ACTIVE_SCHEDULE_STATUSES),
            )
            .group_by(models.Schedule.scheduled_date)
        ).all()
    )
    summary = []
    for day, total_slots, available_slots in rows:
        available_slots = int(available_slots or 0)
        summary.append(
            {
                "date": day,
                "is_available": total_slots > 0 and available_slots == total_slots,
                "total_slots": int(total_slots),
                "available_slots": available_slots,
                "scheduled_appointments": int(appointment_counts.get(day, 0)),
            }
        )
    return summary

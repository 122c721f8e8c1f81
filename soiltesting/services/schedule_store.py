from collections.abc import Iterable
from datetime import date, datetime, timezone
import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import models
from .pagination import PageResult, paginate

UPDATABLE_FIELDS = (
    "status",
    "start_time",
    "end_time",
    "admin_notes",
    "rejection_reason",
    "field_officer_id",
    "completed_at",
    "time_slot_id",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_schedule(
    db: Session,
    farmer_id: int,
    data: dict[str, Any],
    *,
    status: models.ScheduleStatus = models.ScheduleStatus.pending,
) -> models.Schedule:
    schedule = models.Schedule(farmer_id=farmer_id, status=status, **data)
    db.add(schedule)
    db.flush()
    return schedule


def get_schedule(
    db: Session, schedule_id: int, *, for_update: bool = False
) -> models.Schedule | None:
    if not for_update:
        return db.get(models.Schedule, schedule_id)
    return db.execute(
        select(models.Schedule)
        .where(models.Schedule.id == schedule_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def update_schedule(
    db: Session, schedule: models.Schedule, fields: dict[str, Any]
) -> models.Schedule:
    for key, value in fields.items():
        if key in UPDATABLE_FIELDS:
            setattr(schedule, key, value)
    db.flush()
    return schedule


def attach_qr_credential(
    db: Session, schedule: models.Schedule, url: str, payload: dict[str, Any]
) -> models.Schedule:
    schedule.qr_code_url = url
    schedule.qr_code_data = json.dumps(payload, default=str)
    db.flush()
    return schedule


def mark_completed(db: Session, schedule_id: int) -> bool:
    schedule = get_schedule(db, schedule_id)
    if schedule is None:
        return False
    schedule.status = models.ScheduleStatus.completed
    schedule.completed_at = _utc_now()
    db.flush()
    return True


def search_schedules(
    db: Session,
    *,
    farmer_id: int | None = None,
    center_id: int | None = None,
    status: models.ScheduleStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    field_officer_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    query = db.query(models.Schedule)
    if farmer_id:
        query = query.filter(models.Schedule.farmer_id == farmer_id)
    if center_id:
        query = query.filter(models.Schedule.center_id == center_id)
    if status:
        query = query.filter(models.Schedule.status == status)
    if date_from:
        query = query.filter(models.Schedule.scheduled_date >= date_from)
    if date_to:
        query = query.filter(models.Schedule.scheduled_date <= date_to)
    if field_officer_id:
        query = query.filter(models.Schedule.field_officer_id == field_officer_id)
    query = query.order_by(
        models.Schedule.scheduled_date.desc(),
        models.Schedule.created_at.desc(),
        models.Schedule.id.desc(),
    )
    return paginate(query, page, limit)


def get_for_date(
    db: Session, day: date, statuses: Iterable[models.ScheduleStatus]
) -> list[models.Schedule]:
    return (
        db.query(models.Schedule)
        .filter(models.Schedule.scheduled_date == day)
        .filter(models.Schedule.status.in_(list(statuses)))
        .order_by(models.Schedule.start_time, models.Schedule.id)
        .all()
    )


def get_today(db: Session, today: date) -> list[models.Schedule]:
    return get_for_date(
        db, today, [models.ScheduleStatus.pending, models.ScheduleStatus.approved]
    )

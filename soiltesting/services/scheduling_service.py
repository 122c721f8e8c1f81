"""Soil-testing request/schedule workflow.

Every state change goes through the transition tables below. Approval and direct
schedule creation run as one unit of work: status change, capacity booking,
schedule row and QR credential commit together or not at all. SMS notifications
are sent only after commit and never change the outcome.
"""
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.exceptions import (
    ConflictError,
    InvalidCredentialError,
    InvalidStateError,
    NotFoundError,
    ValidationFailure,
)
from ..db import models, schemas
from . import audit, notification_service, qr_service, request_store, schedule_store, time_slot_store
from .pagination import PageResult

logger = logging.getLogger(__name__)

RequestStatus = models.RequestStatus
ScheduleStatus = models.ScheduleStatus

REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.pending: frozenset(
        {RequestStatus.approved, RequestStatus.rejected, RequestStatus.cancelled}
    ),
    RequestStatus.approved: frozenset(),
    RequestStatus.rejected: frozenset(),
    RequestStatus.cancelled: frozenset(),
}

SCHEDULE_TRANSITIONS: dict[ScheduleStatus, frozenset[ScheduleStatus]] = {
    ScheduleStatus.pending: frozenset(
        {ScheduleStatus.approved, ScheduleStatus.rejected, ScheduleStatus.cancelled}
    ),
    ScheduleStatus.approved: frozenset(
        {ScheduleStatus.completed, ScheduleStatus.rejected, ScheduleStatus.cancelled}
    ),
    ScheduleStatus.completed: frozenset(),
    ScheduleStatus.rejected: frozenset(),
    ScheduleStatus.cancelled: frozenset(),
}

ACTIVE_SCHEDULE_STATUSES = (ScheduleStatus.pending, ScheduleStatus.approved)
CAPACITY_RELEASING_STATUSES = (ScheduleStatus.rejected, ScheduleStatus.cancelled)


@dataclass(slots=True)
class CredentialCheck:
    unique_id: str
    schedule: models.Schedule
    is_actionable: bool


def can_transition_request(current: RequestStatus, target: RequestStatus) -> bool:
    return target in REQUEST_TRANSITIONS.get(current, frozenset())


def can_transition_schedule(current: ScheduleStatus, target: ScheduleStatus) -> bool:
    return target in SCHEDULE_TRANSITIONS.get(current, frozenset())


def _ensure_request_transition(request: models.SoilTestingRequest, target: RequestStatus) -> None:
    if not can_transition_request(request.status, target):
        raise InvalidStateError(
            f"Request {request.id} is {request.status.value} and cannot become {target.value}"
        )


def _ensure_schedule_transition(schedule: models.Schedule, target: ScheduleStatus) -> None:
    if not can_transition_schedule(schedule.status, target):
        raise InvalidStateError(
            f"Schedule {schedule.id} is {schedule.status.value} and cannot become {target.value}"
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_today() -> date:
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).date()


@contextmanager
def _unit_of_work(db: Session) -> Iterator[None]:
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def _validate_interval(start_time: str | None, end_time: str | None) -> None:
    if start_time is None or end_time is None:
        raise ValidationFailure("Both start and end time are required")
    if end_time <= start_time:
        raise ValidationFailure("End time must be after start time")


def _reserve_capacity(
    db: Session, center_id: int, day: date, start_time: str, end_time: str
) -> int | None:
    slot = time_slot_store.find_slot(db, center_id, day, start_time, end_time)
    if slot is None:
        if get_settings().require_time_slot:
            raise ConflictError(
                f"No time slot {start_time}-{end_time} exists on {day} for center {center_id}"
            )
        logger.info(
            "No time slot matches interval; scheduling without capacity booking",
            extra={"center_id": center_id, "date": str(day)},
        )
        return None
    if not slot.is_available:
        raise ConflictError(f"Time slot {start_time}-{end_time} on {day} is not available")
    if not time_slot_store.book(db, slot.id):
        raise ConflictError(f"Time slot {start_time}-{end_time} on {day} is fully booked")
    return slot.id


def _notify(recipient: str | None, message: str) -> bool:
    if not recipient:
        return False
    try:
        sent = notification_service.send_sms(recipient, message)
    except Exception:
        logger.exception("SMS notification failed")
        return False
    if not sent:
        logger.warning("SMS notification was not delivered")
    return sent


def _issue_credential(db: Session, schedule: models.Schedule) -> qr_service.QRCredential:
    credential = qr_service.issue(
        schedule.id, schedule.farmer_id, schedule.center_id, schedule.scheduled_date
    )
    schedule_store.attach_qr_credential(db, schedule, credential.image_url, credential.payload)
    return credential


def _send_schedule_confirmation(
    schedule: models.Schedule, credential: qr_service.QRCredential
) -> None:
    if credential.fallback:
        message = notification_service.build_approval_message(
            approved_date=schedule.scheduled_date,
            start_time=schedule.start_time or "-",
            end_time=schedule.end_time or "-",
        )
    else:
        message = notification_service.build_confirmation_message(
            scheduled_date=schedule.scheduled_date,
            verification_url=credential.verification_url,
            unique_id=credential.unique_id,
        )
    _notify(schedule.farmer_phone, message)


# ==================== REQUESTS ====================


def create_request(
    db: Session, farmer_id: int, data: schemas.RequestCreate
) -> models.SoilTestingRequest:
    with _unit_of_work(db):
        request = request_store.create_request(db, farmer_id, data.model_dump())
        audit.record(
            db,
            action="request_created",
            actor_type=models.ActorType.farmer,
            actor_id=farmer_id,
            payload={"request_id": request.id, "center_id": request.center_id},
        )
    logger.info("Soil testing request created", extra={"request_id": request.id})
    return request


def get_request(db: Session, request_id: int) -> models.SoilTestingRequest:
    request = request_store.get_request(db, request_id)
    if request is None:
        raise NotFoundError("Soil testing request not found")
    return request


def _get_request_for_transition(db: Session, request_id: int) -> models.SoilTestingRequest:
    request = request_store.get_request(db, request_id, for_update=True)
    if request is None:
        raise NotFoundError("Soil testing request not found")
    return request


def approve_request(
    db: Session,
    request_id: int,
    approval: schemas.RequestApproval,
    *,
    actor_id: int | None = None,
) -> models.SoilTestingRequest:
    _validate_interval(approval.approved_start_time, approval.approved_end_time)
    with _unit_of_work(db):
        request = _get_request_for_transition(db, request_id)
        _ensure_request_transition(request, RequestStatus.approved)
        slot_id = _reserve_capacity(
            db,
            request.center_id,
            approval.approved_date,
            approval.approved_start_time,
            approval.approved_end_time,
        )
        fields = {
            "approved_date": approval.approved_date,
            "approved_start_time": approval.approved_start_time,
            "approved_end_time": approval.approved_end_time,
            "field_officer_id": approval.field_officer_id,
        }
        if approval.admin_notes is not None:
            fields["admin_notes"] = approval.admin_notes
        request_store.update_request_status(db, request.id, RequestStatus.approved, fields)
        schedule = schedule_store.create_schedule(
            db,
            request.farmer_id,
            {
                "request_id": request.id,
                "center_id": request.center_id,
                "scheduled_date": approval.approved_date,
                "start_time": approval.approved_start_time,
                "end_time": approval.approved_end_time,
                "field_officer_id": approval.field_officer_id,
                "farmer_phone": request.farmer_phone,
                "farmer_location_address": request.farmer_location_address,
                "farmer_latitude": request.farmer_latitude,
                "farmer_longitude": request.farmer_longitude,
                "time_slot_id": slot_id,
            },
            status=ScheduleStatus.approved,
        )
        credential = _issue_credential(db, schedule)
        audit.record(
            db,
            action="request_approved",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={
                "request_id": request.id,
                "schedule_id": schedule.id,
                "time_slot_id": slot_id,
                "unique_id": credential.unique_id,
            },
        )
    logger.info(
        "Soil testing request approved",
        extra={"request_id": request.id, "schedule_id": schedule.id},
    )
    _send_schedule_confirmation(schedule, credential)
    return request


def reject_request(
    db: Session,
    request_id: int,
    rejection: schemas.RequestRejection,
    *,
    actor_id: int | None = None,
) -> models.SoilTestingRequest:
    with _unit_of_work(db):
        request = _get_request_for_transition(db, request_id)
        _ensure_request_transition(request, RequestStatus.rejected)
        fields = {"rejection_reason": rejection.rejection_reason}
        if rejection.admin_notes is not None:
            fields["admin_notes"] = rejection.admin_notes
        request_store.update_request_status(db, request.id, RequestStatus.rejected, fields)
        audit.record(
            db,
            action="request_rejected",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={"request_id": request.id, "reason": rejection.rejection_reason},
        )
    _notify(
        request.farmer_phone,
        notification_service.build_rejection_message(reason=rejection.rejection_reason),
    )
    return request


def cancel_request(
    db: Session,
    request_id: int,
    *,
    farmer_id: int | None = None,
    actor_id: int | None = None,
) -> models.SoilTestingRequest:
    """Cancel a pending request.

    With ``farmer_id`` the request must belong to that farmer; a foreign request
    is reported as missing.
    """
    with _unit_of_work(db):
        request = _get_request_for_transition(db, request_id)
        if farmer_id is not None and request.farmer_id != farmer_id:
            raise NotFoundError("Soil testing request not found")
        _ensure_request_transition(request, RequestStatus.cancelled)
        request_store.update_request_status(db, request.id, RequestStatus.cancelled)
        audit.record(
            db,
            action="request_cancelled",
            actor_type=models.ActorType.farmer if farmer_id is not None else models.ActorType.admin,
            actor_id=farmer_id if farmer_id is not None else actor_id,
            payload={"request_id": request.id},
        )
    return request


def update_request(
    db: Session,
    request_id: int,
    update: schemas.RequestUpdate,
    *,
    actor_id: int | None = None,
) -> models.SoilTestingRequest:
    target = update.status
    if target == RequestStatus.approved:
        return approve_request(
            db,
            request_id,
            schemas.RequestApproval(
                approved_date=update.approved_date,
                approved_start_time=update.approved_start_time,
                approved_end_time=update.approved_end_time,
                field_officer_id=update.field_officer_id,
                admin_notes=update.admin_notes,
            ),
            actor_id=actor_id,
        )
    if target == RequestStatus.rejected:
        return reject_request(
            db,
            request_id,
            schemas.RequestRejection(
                rejection_reason=update.rejection_reason, admin_notes=update.admin_notes
            ),
            actor_id=actor_id,
        )
    if target == RequestStatus.cancelled:
        return cancel_request(db, request_id, actor_id=actor_id)

    with _unit_of_work(db):
        request = _get_request_for_transition(db, request_id)
        if target == RequestStatus.pending and request.status != RequestStatus.pending:
            raise InvalidStateError(
                f"Request {request.id} is {request.status.value} and cannot return to pending"
            )
        if update.admin_notes is not None:
            request_store.update_request(db, request, {"admin_notes": update.admin_notes})
    return request


def search_requests(db: Session, **filters) -> PageResult:
    return request_store.search_requests(db, **filters)


def get_requests_by_farmer(db: Session, farmer_id: int, page: int = 1, limit: int = 10) -> PageResult:
    return request_store.get_by_farmer(db, farmer_id, page, limit)


def get_pending_requests(db: Session, page: int = 1, limit: int = 10) -> PageResult:
    return request_store.get_pending(db, page, limit)


# ==================== SCHEDULES ====================


def create_schedule(
    db: Session, data: schemas.ScheduleCreate, *, actor_id: int | None = None
) -> models.Schedule:
    fields = data.model_dump(exclude={"farmer_id"})
    with _unit_of_work(db):
        slot_id = None
        if data.start_time and data.end_time:
            slot_id = _reserve_capacity(
                db, data.center_id, data.scheduled_date, data.start_time, data.end_time
            )
        schedule = schedule_store.create_schedule(
            db,
            data.farmer_id,
            {**fields, "time_slot_id": slot_id},
            status=ScheduleStatus.pending,
        )
        credential = _issue_credential(db, schedule)
        audit.record(
            db,
            action="schedule_created",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={"schedule_id": schedule.id, "unique_id": credential.unique_id},
        )
    _send_schedule_confirmation(schedule, credential)
    return schedule


def get_schedule(db: Session, schedule_id: int) -> models.Schedule:
    schedule = schedule_store.get_schedule(db, schedule_id)
    if schedule is None:
        raise NotFoundError("Soil testing schedule not found")
    return schedule


def _get_schedule_for_transition(db: Session, schedule_id: int) -> models.Schedule:
    schedule = schedule_store.get_schedule(db, schedule_id, for_update=True)
    if schedule is None:
        raise NotFoundError("Soil testing schedule not found")
    return schedule


def _release_held_capacity(db: Session, schedule: models.Schedule) -> None:
    if schedule.time_slot_id is not None:
        time_slot_store.release(db, schedule.time_slot_id)


def update_schedule(
    db: Session,
    schedule_id: int,
    update: schemas.ScheduleUpdate,
    *,
    actor_id: int | None = None,
) -> models.Schedule:
    with _unit_of_work(db):
        schedule = _get_schedule_for_transition(db, schedule_id)
        if schedule.status == ScheduleStatus.completed:
            raise InvalidStateError(f"Schedule {schedule.id} is completed and cannot be changed")
        fields = update.model_dump(exclude_unset=True, exclude={"status"})

        start_time = fields.get("start_time", schedule.start_time)
        end_time = fields.get("end_time", schedule.end_time)
        interval_changed = (start_time, end_time) != (schedule.start_time, schedule.end_time)
        if interval_changed:
            _validate_interval(start_time, end_time)

        target = update.status
        if target is not None and target != schedule.status:
            _ensure_schedule_transition(schedule, target)
            fields["status"] = target
            if target == ScheduleStatus.completed:
                fields["completed_at"] = _utc_now()
            if target in CAPACITY_RELEASING_STATUSES:
                _release_held_capacity(db, schedule)
                fields["time_slot_id"] = None
                interval_changed = False

        if interval_changed and schedule.status in ACTIVE_SCHEDULE_STATUSES:
            _release_held_capacity(db, schedule)
            fields["time_slot_id"] = _reserve_capacity(
                db, schedule.center_id, schedule.scheduled_date, start_time, end_time
            )

        schedule_store.update_schedule(db, schedule, fields)
        audit.record(
            db,
            action="schedule_updated",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={
                "schedule_id": schedule.id,
                "fields": sorted(key for key in fields if key != "completed_at"),
                "status": schedule.status.value,
            },
        )
    return schedule


def mark_schedule_completed(
    db: Session,
    schedule_id: int,
    *,
    actor_type: models.ActorType = models.ActorType.field_officer,
    actor_id: int | None = None,
) -> models.Schedule:
    with _unit_of_work(db):
        schedule = _get_schedule_for_transition(db, schedule_id)
        _ensure_schedule_transition(schedule, ScheduleStatus.completed)
        if not schedule_store.mark_completed(db, schedule.id):
            raise NotFoundError("Soil testing schedule not found")
        audit.record(
            db,
            action="schedule_completed",
            actor_type=actor_type,
            actor_id=actor_id,
            payload={"schedule_id": schedule.id},
        )
    _notify(
        schedule.farmer_phone,
        notification_service.build_completion_message(scheduled_date=schedule.scheduled_date),
    )
    return schedule


def search_schedules(db: Session, **filters) -> PageResult:
    return schedule_store.search_schedules(db, **filters)


def get_today_schedules(db: Session) -> list[models.Schedule]:
    return schedule_store.get_today(db, local_today())


def verify_credential(db: Session, unique_id: str) -> CredentialCheck:
    parsed = qr_service.parse(unique_id)
    schedule = schedule_store.get_schedule(db, parsed.schedule_id)
    if schedule is None:
        raise NotFoundError("No soil testing schedule matches this credential")
    if schedule.farmer_id != parsed.farmer_id:
        raise InvalidCredentialError("Credential does not match the schedule")
    stored = qr_service.parse_payload(schedule.qr_code_data)
    if (stored.get("unique_id") or "").upper() != unique_id.strip().upper():
        raise InvalidCredentialError("Credential does not match the schedule")
    return CredentialCheck(
        unique_id=stored["unique_id"],
        schedule=schedule,
        is_actionable=schedule.status in ACTIVE_SCHEDULE_STATUSES,
    )


# ==================== TIME SLOTS ====================


def create_time_slot(
    db: Session, data: schemas.TimeSlotCreate, *, actor_id: int | None = None
) -> models.TimeSlot:
    with _unit_of_work(db):
        slot = time_slot_store.create_slot(
            db,
            center_id=data.center_id,
            day=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            max_bookings=data.max_bookings,
        )
        audit.record(
            db,
            action="time_slot_created",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={"time_slot_id": slot.id},
        )
    return slot


def bulk_create_time_slots(
    db: Session, data: schemas.TimeSlotBulkCreate, *, actor_id: int | None = None
) -> list[models.TimeSlot]:
    with _unit_of_work(db):
        slots = time_slot_store.bulk_create_slots(
            db,
            center_id=data.center_id,
            days=data.dates,
            intervals=[(item.start_time, item.end_time) for item in data.intervals],
            max_bookings=data.max_bookings,
        )
        audit.record(
            db,
            action="time_slots_bulk_created",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={"center_id": data.center_id, "created": len(slots)},
        )
    return slots


def get_time_slot(db: Session, slot_id: int) -> models.TimeSlot:
    slot = time_slot_store.get_slot(db, slot_id)
    if slot is None:
        raise NotFoundError("Time slot not found")
    return slot


def list_available_slots(
    db: Session, center_id: int, date_from: date, date_to: date
) -> list[dict]:
    if date_to < date_from:
        raise ValidationFailure("date_to must not be before date_from")
    return time_slot_store.list_available(db, center_id, date_from, date_to)


def search_time_slots(db: Session, **filters) -> PageResult:
    return time_slot_store.search_slots(db, **filters)


def update_time_slot(
    db: Session, slot_id: int, update: schemas.TimeSlotUpdate, *, actor_id: int | None = None
) -> models.TimeSlot:
    with _unit_of_work(db):
        slot = get_time_slot(db, slot_id)
        fields = update.model_dump(exclude_unset=True)
        time_slot_store.update_slot(db, slot, fields)
        audit.record(
            db,
            action="time_slot_updated",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={"time_slot_id": slot.id, **fields},
        )
    return slot


def delete_time_slot(db: Session, slot_id: int, *, actor_id: int | None = None) -> None:
    with _unit_of_work(db):
        slot = get_time_slot(db, slot_id)
        time_slot_store.delete_slot(db, slot)
        audit.record(
            db,
            action="time_slot_deleted",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={"time_slot_id": slot_id},
        )


def _set_date_availability(
    db: Session,
    center_id: int,
    day: date,
    available: bool,
    *,
    force: bool,
    actor_id: int | None,
) -> dict:
    with _unit_of_work(db):
        touched = time_slot_store.set_date_availability(
            db, center_id, day, available, force=force
        )
        if not touched:
            raise NotFoundError(f"No time slots exist for {day}")
        audit.record(
            db,
            action="date_availability_changed",
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            payload={
                "center_id": center_id,
                "date": day.isoformat(),
                "is_available": available,
                "force": force,
            },
        )
    return {
        "center_id": center_id,
        "date": day,
        "is_available": available,
        "updated_slots": touched,
    }


def make_date_unavailable(
    db: Session,
    center_id: int,
    day: date,
    *,
    force: bool = False,
    actor_id: int | None = None,
) -> dict:
    return _set_date_availability(db, center_id, day, False, force=force, actor_id=actor_id)


def make_date_available(
    db: Session, center_id: int, day: date, *, actor_id: int | None = None
) -> dict:
    return _set_date_availability(db, center_id, day, True, force=False, actor_id=actor_id)


def bulk_update_date_availability(
    db: Session,
    center_id: int,
    changes: Iterable[tuple[date, bool]],
    *,
    force: bool = False,
    actor_id: int | None = None,
) -> time_slot_store.BulkAvailabilityReport:
    with _unit_of_work(db):
        report = time_slot_store.bulk_set_date_availability(db, center_id, changes, force=force)
        if report.updated:
            audit.record(
                db,
                action="date_availability_bulk_changed",
                actor_type=models.ActorType.admin,
                actor_id=actor_id,
                payload={
                    "center_id": center_id,
                    "updated": [day.isoformat() for day, _ in report.updated],
                    "failed": [error.date.isoformat() for error in report.errors],
                    "force": force,
                },
            )
    if report.errors:
        logger.warning(
            "Some dates could not be updated",
            extra={"center_id": center_id, "failed": len(report.errors)},
        )
    return report


def check_date_appointments(db: Session, center_id: int, day: date) -> dict:
    has_appointments = time_slot_store.has_active_bookings(db, center_id, day)
    return {
        "center_id": center_id,
        "date": day,
        "has_scheduled_appointments": has_appointments,
        "can_make_unavailable": not has_appointments,
    }


def get_date_availability(
    db: Session, center_id: int, date_from: date, date_to: date
) -> list[dict]:
    if date_to < date_from:
        raise ValidationFailure("date_to must not be before date_from")
    return time_slot_store.get_date_availability(db, center_id, date_from, date_to)

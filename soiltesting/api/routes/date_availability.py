from datetime import date, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api import deps
from ...core.constants import ROLE_ADMIN
from ...core.exceptions import SchedulingError
from ...core.security import Principal
from ...db import schemas
from ...db.session import get_db
from ...services import scheduling_service

router = APIRouter(
    prefix="/soil-testing/date-availability", tags=["soil-testing-date-availability"]
)

DEFAULT_SUMMARY_WINDOW = timedelta(days=30)


@router.get("/{center_id}", response_model=list[schemas.DateAvailabilitySummary])
def get_date_availability(
    center_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
    db: Session = Depends(get_db),
):
    date_from = date_from or scheduling_service.local_today()
    date_to = date_to or date_from + DEFAULT_SUMMARY_WINDOW
    try:
        return scheduling_service.get_date_availability(db, center_id, date_from, date_to)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/{center_id}/unavailable", response_model=schemas.DateAvailabilityResult)
def make_date_unavailable(
    center_id: int,
    payload: schemas.DateAvailabilityToggle,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.make_date_unavailable(
            db, center_id, payload.date, force=payload.force, actor_id=admin.user_id
        )
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/{center_id}/available", response_model=schemas.DateAvailabilityResult)
def make_date_available(
    center_id: int,
    payload: schemas.DateAvailabilityToggle,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.make_date_available(
            db, center_id, payload.date, actor_id=admin.user_id
        )
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/{center_id}/bulk-update", response_model=schemas.BulkDateAvailabilityReport)
def bulk_update_date_availability(
    center_id: int,
    payload: schemas.BulkDateAvailabilityUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    report = scheduling_service.bulk_update_date_availability(
        db,
        center_id,
        [(change.date, change.is_available) for change in payload.dates],
        force=payload.force,
        actor_id=admin.user_id,
    )
    return schemas.BulkDateAvailabilityReport(
        center_id=center_id,
        updated=[
            schemas.DateAvailabilityChange(date=day, is_available=available)
            for day, available in report.updated
        ],
        errors=[
            schemas.DateUpdateError(date=error.date, reason=error.reason)
            for error in report.errors
        ],
    )


@router.get("/{center_id}/check/{day}", response_model=schemas.DateAppointmentsCheck)
def check_date_appointments(
    center_id: int,
    day: date,
    db: Session = Depends(get_db),
):
    return scheduling_service.check_date_appointments(db, center_id, day)

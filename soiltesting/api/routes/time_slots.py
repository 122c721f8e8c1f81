from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...api import deps
from ...core.constants import ROLE_ADMIN
from ...core.exceptions import SchedulingError
from ...core.security import Principal
from ...db import schemas
from ...db.session import get_db
from ...services import scheduling_service

router = APIRouter(prefix="/soil-testing/time-slots", tags=["soil-testing-time-slots"])

DEFAULT_AVAILABILITY_WINDOW = timedelta(days=30)


@router.post("", response_model=schemas.TimeSlot, status_code=201)
def create_time_slot(
    payload: schemas.TimeSlotCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.create_time_slot(db, payload, actor_id=admin.user_id)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/bulk", response_model=list[schemas.TimeSlot], status_code=201)
def bulk_create_time_slots(
    payload: schemas.TimeSlotBulkCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.bulk_create_time_slots(db, payload, actor_id=admin.user_id)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.get("", response_model=schemas.Page[schemas.TimeSlot])
def search_time_slots(
    center_id: int | None = None,
    day: date | None = Query(None, alias="date"),
    date_from: date | None = None,
    date_to: date | None = None,
    is_available: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    result = scheduling_service.search_time_slots(
        db,
        center_id=center_id,
        day=day,
        date_from=date_from,
        date_to=date_to,
        is_available=is_available,
        page=page,
        limit=limit,
    )
    return deps.to_page(result, schemas.TimeSlot)


@router.get("/available/{center_id}", response_model=list[schemas.AvailableDate])
def list_available_time_slots(
    center_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
    db: Session = Depends(get_db),
):
    date_from = date_from or scheduling_service.local_today()
    date_to = date_to or date_from + DEFAULT_AVAILABILITY_WINDOW
    try:
        return scheduling_service.list_available_slots(db, center_id, date_from, date_to)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.put("/{slot_id}", response_model=schemas.TimeSlot)
def update_time_slot(
    slot_id: int,
    payload: schemas.TimeSlotUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.update_time_slot(db, slot_id, payload, actor_id=admin.user_id)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.delete("/{slot_id}")
def delete_time_slot(
    slot_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        scheduling_service.delete_time_slot(db, slot_id, actor_id=admin.user_id)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc
    return {"status": "deleted"}

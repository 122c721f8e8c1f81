from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...api import deps
from ...core.constants import ROLE_ADMIN, ROLE_FARMER, ROLE_FIELD_OFFICER
from ...core.exceptions import NotFoundError, SchedulingError
from ...core.security import Principal
from ...db import models, schemas
from ...db.session import get_db
from ...services import scheduling_service

router = APIRouter(prefix="/soil-testing", tags=["soil-testing-schedules"])


@router.post("/schedules", response_model=schemas.Schedule, status_code=201)
def create_schedule(
    payload: schemas.ScheduleCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.create_schedule(db, payload, actor_id=admin.user_id)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.get("/schedules", response_model=schemas.Page[schemas.Schedule])
def search_schedules(
    farmer_id: int | None = None,
    center_id: int | None = None,
    status: models.ScheduleStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    field_officer_id: int | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(
        deps.require_roles(ROLE_ADMIN, ROLE_FIELD_OFFICER, ROLE_FARMER)
    ),
):
    if principal.role == ROLE_FARMER:
        farmer_id = principal.user_id
    result = scheduling_service.search_schedules(
        db,
        farmer_id=farmer_id,
        center_id=center_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        field_officer_id=field_officer_id,
        page=page,
        limit=limit,
    )
    return deps.to_page(result, schemas.Schedule)


@router.get("/schedules/today", response_model=list[schemas.Schedule])
def list_today_schedules(
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(ROLE_ADMIN, ROLE_FIELD_OFFICER)),
):
    return scheduling_service.get_today_schedules(db)


@router.get("/schedules/{schedule_id}", response_model=schemas.Schedule)
def get_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(
        deps.require_roles(ROLE_ADMIN, ROLE_FIELD_OFFICER, ROLE_FARMER)
    ),
):
    try:
        schedule = scheduling_service.get_schedule(db, schedule_id)
        if principal.role == ROLE_FARMER and schedule.farmer_id != principal.user_id:
            raise NotFoundError("Soil testing schedule not found")
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc
    return schedule


@router.put("/schedules/{schedule_id}", response_model=schemas.Schedule)
def update_schedule(
    schedule_id: int,
    payload: schemas.ScheduleUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.update_schedule(
            db, schedule_id, payload, actor_id=admin.user_id
        )
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/schedules/{schedule_id}/complete", response_model=schemas.Schedule)
def complete_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_roles(ROLE_ADMIN, ROLE_FIELD_OFFICER)),
):
    actor_type = (
        models.ActorType.admin if principal.role == ROLE_ADMIN else models.ActorType.field_officer
    )
    try:
        return scheduling_service.mark_schedule_completed(
            db, schedule_id, actor_type=actor_type, actor_id=principal.user_id
        )
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.get("/verify/{unique_id}", response_model=schemas.CredentialVerification)
def verify_credential(
    unique_id: str,
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(ROLE_ADMIN, ROLE_FIELD_OFFICER)),
):
    try:
        check = scheduling_service.verify_credential(db, unique_id)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc
    return schemas.CredentialVerification(
        unique_id=check.unique_id,
        schedule=schemas.Schedule.model_validate(check.schedule),
        is_actionable=check.is_actionable,
    )

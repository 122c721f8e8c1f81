from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...api import deps
from ...core.constants import ROLE_ADMIN, ROLE_FARMER
from ...core.exceptions import NotFoundError, SchedulingError
from ...core.security import Principal
from ...db import models, schemas
from ...db.session import get_db
from ...services import scheduling_service

router = APIRouter(prefix="/soil-testing-requests", tags=["soil-testing-requests"])


@router.post("", response_model=schemas.SoilTestingRequest, status_code=201)
def create_request(
    payload: schemas.RequestCreate,
    db: Session = Depends(get_db),
    farmer: Principal = Depends(deps.require_roles(ROLE_FARMER)),
):
    try:
        return scheduling_service.create_request(db, farmer.user_id, payload)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.get("", response_model=schemas.Page[schemas.SoilTestingRequest])
def search_requests(
    farmer_id: int | None = None,
    center_id: int | None = None,
    status: models.RequestStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    result = scheduling_service.search_requests(
        db,
        farmer_id=farmer_id,
        center_id=center_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return deps.to_page(result, schemas.SoilTestingRequest)


@router.get("/pending", response_model=schemas.Page[schemas.SoilTestingRequest])
def list_pending_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    result = scheduling_service.get_pending_requests(db, page, limit)
    return deps.to_page(result, schemas.SoilTestingRequest)


@router.get("/mine", response_model=schemas.Page[schemas.SoilTestingRequest])
def list_my_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    farmer: Principal = Depends(deps.require_roles(ROLE_FARMER)),
):
    result = scheduling_service.get_requests_by_farmer(db, farmer.user_id, page, limit)
    return deps.to_page(result, schemas.SoilTestingRequest)


@router.get("/farmer/{farmer_id}", response_model=schemas.Page[schemas.SoilTestingRequest])
def list_farmer_requests(
    farmer_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    result = scheduling_service.get_requests_by_farmer(db, farmer_id, page, limit)
    return deps.to_page(result, schemas.SoilTestingRequest)


@router.get("/{request_id}", response_model=schemas.SoilTestingRequest)
def get_request(
    request_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(deps.require_roles(ROLE_ADMIN, ROLE_FARMER)),
):
    try:
        request = scheduling_service.get_request(db, request_id)
        if principal.role == ROLE_FARMER and request.farmer_id != principal.user_id:
            raise NotFoundError("Soil testing request not found")
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc
    return request


@router.put("/{request_id}", response_model=schemas.SoilTestingRequest)
def update_request(
    request_id: int,
    payload: schemas.RequestUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.update_request(
            db, request_id, payload, actor_id=admin.user_id
        )
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/{request_id}/approve", response_model=schemas.SoilTestingRequest)
def approve_request(
    request_id: int,
    payload: schemas.RequestApproval,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.approve_request(
            db, request_id, payload, actor_id=admin.user_id
        )
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/{request_id}/reject", response_model=schemas.SoilTestingRequest)
def reject_request(
    request_id: int,
    payload: schemas.RequestRejection,
    db: Session = Depends(get_db),
    admin: Principal = Depends(deps.require_roles(ROLE_ADMIN)),
):
    try:
        return scheduling_service.reject_request(
            db, request_id, payload, actor_id=admin.user_id
        )
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc


@router.post("/{request_id}/cancel", response_model=schemas.SoilTestingRequest)
def cancel_request(
    request_id: int,
    db: Session = Depends(get_db),
    farmer: Principal = Depends(deps.require_roles(ROLE_FARMER)),
):
    try:
        return scheduling_service.cancel_request(db, request_id, farmer_id=farmer.user_id)
    except SchedulingError as exc:
        raise deps.to_http_exception(exc) from exc

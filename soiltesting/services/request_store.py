from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..db import models
from .pagination import PageResult, paginate

UPDATABLE_FIELDS = (
    "admin_notes",
    "rejection_reason",
    "approved_date",
    "approved_start_time",
    "approved_end_time",
    "field_officer_id",
)


def create_request(db: Session, farmer_id: int, data: dict[str, Any]) -> models.SoilTestingRequest:
    request = models.SoilTestingRequest(
        farmer_id=farmer_id,
        status=models.RequestStatus.pending,
        **data,
    )
    db.add(request)
    db.flush()
    return request


def get_request(
    db: Session, request_id: int, *, for_update: bool = False
) -> models.SoilTestingRequest | None:
    if not for_update:
        return db.get(models.SoilTestingRequest, request_id)
    return db.execute(
        select(models.SoilTestingRequest)
        .where(models.SoilTestingRequest.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def update_request(
    db: Session, request: models.SoilTestingRequest, fields: dict[str, Any]
) -> models.SoilTestingRequest:
    for key, value in fields.items():
        if key in UPDATABLE_FIELDS:
            setattr(request, key, value)
    db.flush()
    return request


def update_request_status(
    db: Session,
    request_id: int,
    status: models.RequestStatus,
    fields: dict[str, Any] | None = None,
) -> models.SoilTestingRequest:
    request = get_request(db, request_id)
    if request is None:
        raise NotFoundError("Soil testing request not found")
    request.status = status
    return update_request(db, request, fields or {})


def search_requests(
    db: Session,
    *,
    farmer_id: int | None = None,
    center_id: int | None = None,
    status: models.RequestStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    query = db.query(models.SoilTestingRequest)
    if farmer_id:
        query = query.filter(models.SoilTestingRequest.farmer_id == farmer_id)
    if center_id:
        query = query.filter(models.SoilTestingRequest.center_id == center_id)
    if status:
        query = query.filter(models.SoilTestingRequest.status == status)
    if date_from:
        query = query.filter(models.SoilTestingRequest.preferred_date >= date_from)
    if date_to:
        query = query.filter(models.SoilTestingRequest.preferred_date <= date_to)
    query = query.order_by(
        models.SoilTestingRequest.created_at.desc(), models.SoilTestingRequest.id.desc()
    )
    return paginate(query, page, limit)


def get_by_farmer(db: Session, farmer_id: int, page: int = 1, limit: int = 10) -> PageResult:
    return search_requests(db, farmer_id=farmer_id, page=page, limit=limit)


def get_pending(db: Session, page: int = 1, limit: int = 10) -> PageResult:
    return search_requests(db, status=models.RequestStatus.pending, page=page, limit=limit)

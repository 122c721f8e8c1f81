from typing import Annotated, Type, TypeVar

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import BaseModel

from ..core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    SchedulingError,
    ValidationFailure,
)
from ..core.security import Principal, decode_access_token
from ..db import schemas
from ..services.pagination import PageResult

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def get_current_principal(token: Annotated[str, Depends(oauth2_scheme)]) -> Principal:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    try:
        return decode_access_token(token)
    except (JWTError, ValueError) as exc:
        raise credentials_exception from exc


def require_roles(*roles: str):
    def dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return principal

    return dependency


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (InvalidStateError, ConflictError)):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ValidationFailure):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=str(exc))


def to_page(result: PageResult, schema: Type[SchemaT]) -> schemas.Page[SchemaT]:
    return schemas.Page[schema](
        items=[schema.model_validate(item) for item in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )

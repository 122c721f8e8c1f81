from typing import Any

from sqlalchemy.orm import Session

from ..db import models


def record(
    db: Session,
    *,
    action: str,
    actor_type: models.ActorType,
    actor_id: int | None = None,
    payload: dict[str, Any] | None = None,
) -> models.AuditLog:
    entry = models.AuditLog(
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        payload=payload,
    )
    db.add(entry)
    return entry

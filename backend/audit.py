# Audit trail writes
import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from models import AuditLog, Survey

log = logging.getLogger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def survey_snapshot(s: Survey) -> dict:
    return {"title": s.title, "description": s.description, "status": s.status, "public_slug": s.public_slug}


def record(db: Session, *, user_id: str, action: str, table_name: str, record_id=None,
           old_values: Optional[dict] = None, new_values: Optional[dict] = None,
           request: Optional[Request] = None) -> AuditLog:
    """Stage an audit row in the caller's transaction (committed with it)."""
    row = AuditLog(
        user_id=user_id,
        action=action,
        table_name=table_name,
        record_id=str(record_id) if record_id is not None else None,
        old_values=old_values,
        new_values=new_values,
        ip_address=client_ip(request),
    )
    db.add(row)
    log.debug("audit %s %s/%s by %s", action, table_name, record_id, user_id)
    return row
